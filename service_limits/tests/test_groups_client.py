"""
Unit tests for the permissions service groups client.
"""

import json
import pytest
import httpx
from unittest.mock import AsyncMock, patch

from service_limits.app.groups.client import GroupsClient, StaticGroupResolver
from shared.errors import ExternalServiceError


def _response(status_code, payload):
    return httpx.Response(
        status_code=status_code,
        content=json.dumps(payload),
        request=httpx.Request("GET", "http://localhost:8020/permissions/groups/alice")
    )


class TestGroupsClient:
    """Test cases for GroupsClient."""

    @pytest.fixture
    def groups_client(self):
        """Create GroupsClient instance."""
        return GroupsClient("http://localhost:8020/")

    @pytest.mark.asyncio
    async def test_resolve_groups_keeps_order(self, groups_client):
        with patch('httpx.AsyncClient') as mock_client:
            get = AsyncMock(return_value=_response(200, {"groups": ["vip", "builder", "default"]}))
            mock_client.return_value.__aenter__.return_value.get = get

            groups = await groups_client.resolve_groups("alice")

            assert groups == ["vip", "builder", "default"]
            get.assert_awaited_once_with("http://localhost:8020/permissions/groups/alice")

    @pytest.mark.asyncio
    async def test_unknown_player_has_no_groups(self, groups_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(404, {"detail": "not found"})
            )

            assert await groups_client.resolve_groups("alice") == []

    @pytest.mark.asyncio
    async def test_missing_groups_field(self, groups_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(200, {})
            )

            assert await groups_client.resolve_groups("alice") == []

    @pytest.mark.asyncio
    async def test_server_error(self, groups_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(500, {"detail": "boom"})
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await groups_client.resolve_groups("alice")

            assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_connection_error(self, groups_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                side_effect=httpx.ConnectError("connection refused")
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await groups_client.resolve_groups("alice")

            assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_non_json_body(self, groups_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=httpx.Response(
                    status_code=200,
                    content=b"<html>maintenance</html>",
                    request=httpx.Request("GET", "http://localhost:8020/permissions/groups/alice")
                )
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await groups_client.resolve_groups("alice")

            assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_groups_must_be_a_list(self, groups_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(200, {"groups": "vip"})
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await groups_client.resolve_groups("alice")

            assert exc_info.value.details["found"] == "str"

    @pytest.mark.asyncio
    async def test_payload_must_be_an_object(self, groups_client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(200, ["vip"])
            )

            with pytest.raises(ExternalServiceError):
                await groups_client.resolve_groups("alice")

    @pytest.mark.asyncio
    async def test_player_name_is_escaped(self, groups_client):
        with patch('httpx.AsyncClient') as mock_client:
            get = AsyncMock(return_value=_response(200, {"groups": []}))
            mock_client.return_value.__aenter__.return_value.get = get

            await groups_client.resolve_groups("../admin")

            get.assert_awaited_once_with("http://localhost:8020/permissions/groups/..%2Fadmin")


class TestStaticGroupResolver:
    """Test cases for StaticGroupResolver."""

    @pytest.mark.asyncio
    async def test_lookup_case_insensitive(self):
        resolver = StaticGroupResolver({"Alice": ["vip", "staff"]})

        assert await resolver.resolve_groups("ALICE") == ["vip", "staff"]
        assert await resolver.resolve_groups("bob") == []
