"""
Unit tests for the admission check.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from service_limits.app.groups.client import StaticGroupResolver
from service_limits.app.limits.admission import AdmissionCheck
from service_limits.app.limits.catalog import MaterialCatalog
from service_limits.app.limits.models import Ceiling, RuleScope
from service_limits.app.limits.resolver import LimitResolver
from service_limits.app.limits.sources import MappingConfigSource
from shared.errors import BackingStoreError


def make_resolver(config):
    resolver = LimitResolver(MaterialCatalog())
    resolver.reload(MappingConfigSource(config))
    return resolver


class TestAdmissionCheck:
    """Test cases for AdmissionCheck."""

    @pytest.fixture
    def store(self):
        store = AsyncMock()
        store.count_owned.return_value = 0
        return store

    @pytest.mark.asyncio
    async def test_group_default_applies(self, store):
        resolver = make_resolver({
            "defaults": {"default": 3},
            "groups": {"vip": {"default": 10}},
        })
        store.count_owned.return_value = 5
        admission = AdmissionCheck(resolver, store)

        assert await admission.is_over_limit("alice", ["vip"], "chest") is False
        store.count_owned.assert_awaited_once_with("alice", None)

    @pytest.mark.asyncio
    async def test_unlimited_material_rule(self, store):
        resolver = make_resolver({"players": {"alice": {"chest": "unlimited"}}})
        store.count_owned.return_value = 9999
        admission = AdmissionCheck(resolver, store)

        verdict = await admission.check("alice", [], "chest")

        assert verdict.allowed is True
        assert verdict.ceiling == Ceiling.unlimited()
        store.count_owned.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_count_equal_to_ceiling_denies(self, store):
        resolver = make_resolver({"defaults": {"default": 2}})
        store.count_owned.return_value = 2
        admission = AdmissionCheck(resolver, store)

        assert await admission.is_over_limit("bob", [], "chest") is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count,expected", [(0, False), (1, False), (2, True), (50, True)])
    async def test_bounded_ceiling(self, store, count, expected):
        resolver = make_resolver({"defaults": {"default": 2}})
        store.count_owned.return_value = count
        admission = AdmissionCheck(resolver, store)

        assert await admission.is_over_limit("bob", [], "chest") is expected

    @pytest.mark.asyncio
    async def test_zero_ceiling_always_denies(self, store):
        resolver = make_resolver({"defaults": {"chest": 0}})
        admission = AdmissionCheck(resolver, store)

        assert await admission.is_over_limit("bob", [], "chest") is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 2 ** 31 - 1, 2 ** 63, 10 ** 30])
    async def test_unlimited_never_over_limit(self, store, count):
        resolver = make_resolver({"defaults": {"default": "unlimited"}})
        store.count_owned.return_value = count
        admission = AdmissionCheck(resolver, store)

        assert await admission.is_over_limit("bob", [], "chest") is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 5, 10 ** 9])
    async def test_no_rule_never_over_limit(self, store, count):
        resolver = make_resolver({})
        store.count_owned.return_value = count
        admission = AdmissionCheck(resolver, store)

        verdict = await admission.check("bob", ["vip"], "chest")

        assert verdict.allowed is True
        assert verdict.rule is None
        store.count_owned.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_material_rule_counts_material_only(self, store):
        resolver = make_resolver({"defaults": {"default": 10, "chest": 2}})
        store.count_owned.return_value = 1
        admission = AdmissionCheck(resolver, store)

        verdict = await admission.check("bob", [], "Chest")

        assert verdict.allowed is True
        assert verdict.rule.scope is RuleScope.MATERIAL
        assert verdict.observed_count == 1
        store.count_owned.assert_awaited_once_with("bob", "CHEST")

    @pytest.mark.asyncio
    async def test_verdict_carries_diagnostics(self, store):
        resolver = make_resolver({"groups": {"vip": {"default": 4}}})
        store.count_owned.return_value = 4
        admission = AdmissionCheck(resolver, store)

        verdict = await admission.check("bob", ["vip"], "furnace")

        assert verdict.over_limit is True
        assert verdict.source == "groups.vip"
        assert verdict.ceiling == Ceiling.bounded(4)
        assert verdict.observed_count == 4

    @pytest.mark.asyncio
    async def test_store_failure_raises(self, store):
        resolver = make_resolver({"defaults": {"default": 2}})
        store.count_owned.side_effect = ConnectionError("connection refused")
        admission = AdmissionCheck(resolver, store)

        with pytest.raises(BackingStoreError) as exc_info:
            await admission.is_over_limit("bob", [], "chest")

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_store_error_passes_through(self, store):
        resolver = make_resolver({"defaults": {"default": 2}})
        error = BackingStoreError("Protection store is not started")
        store.count_owned.side_effect = error
        admission = AdmissionCheck(resolver, store)

        with pytest.raises(BackingStoreError) as exc_info:
            await admission.check("bob", [], "chest")

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_store_timeout_raises(self):
        resolver = make_resolver({"defaults": {"default": 2}})

        class SlowStore:
            async def count_owned(self, player, material=None):
                await asyncio.sleep(10)
                return 0

        admission = AdmissionCheck(resolver, SlowStore(), count_timeout=0.01)

        with pytest.raises(BackingStoreError) as exc_info:
            await admission.check("bob", [], "chest")

        assert exc_info.value.details["timeout_seconds"] == 0.01

    @pytest.mark.asyncio
    async def test_in_flight_check_uses_old_snapshot(self):
        resolver = make_resolver({"defaults": {"default": 2}})
        counting = asyncio.Event()
        release = asyncio.Event()

        class BlockingStore:
            async def count_owned(self, player, material=None):
                counting.set()
                await release.wait()
                return 3

        admission = AdmissionCheck(resolver, BlockingStore())
        task = asyncio.ensure_future(admission.check("bob", [], "chest"))

        await counting.wait()
        resolver.reload(MappingConfigSource({"defaults": {"default": 100}}))
        release.set()
        verdict = await task

        assert verdict.ceiling == Ceiling.bounded(2)
        assert verdict.over_limit is True
        assert resolver.effective_limit("bob", [], "chest").ceiling == Ceiling.bounded(100)


class TestGroupResolution:
    """Test cases for checks that look up group memberships."""

    @pytest.fixture
    def resolver(self):
        return make_resolver({
            "defaults": {"default": 1},
            "groups": {"vip": {"default": 10}, "staff": {"default": 50}},
        })

    @pytest.mark.asyncio
    async def test_groups_fetched_when_missing(self, resolver):
        store = AsyncMock()
        store.count_owned.return_value = 5
        groups = StaticGroupResolver({"Alice": ["vip", "staff"]})
        admission = AdmissionCheck(resolver, store, group_resolver=groups)

        verdict = await admission.check_for_player("alice", "chest")

        assert verdict.allowed is True
        assert verdict.source == "groups.vip"

    @pytest.mark.asyncio
    async def test_supplied_groups_take_priority(self, resolver):
        store = AsyncMock()
        store.count_owned.return_value = 5
        groups = AsyncMock()
        admission = AdmissionCheck(resolver, store, group_resolver=groups)

        verdict = await admission.check_for_player("alice", "chest", groups=["staff"])

        assert verdict.source == "groups.staff"
        groups.resolve_groups.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_group_resolver(self, resolver):
        store = AsyncMock()
        store.count_owned.return_value = 1
        admission = AdmissionCheck(resolver, store)

        verdict = await admission.check_for_player("alice", "chest")

        assert verdict.source == "defaults"
        assert verdict.over_limit is True
