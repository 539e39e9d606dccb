"""
Limits service: enforces per-player protection limits.
"""

from typing import Dict, List, Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.logging import set_player_context

from .limits.admission import AdmissionCheck, GroupResolver, ProtectionCounter
from .limits.catalog import MaterialCatalog, normalize_material
from .limits.loader import DEFAULTS_SECTION
from .limits.models import (
    AdmissionVerdict, PolicyIndex, Rule,
    LimitCheckRequest, LimitCheckResponse, EffectiveLimitResponse,
    ReloadResponse, LimitStatsResponse
)
from .limits.resolver import LimitResolver
from .limits.sources import YamlConfigSource
from .groups.client import GroupsClient
from .persistence.postgres import ProtectionStore


EXCEEDED_MESSAGE_KEY = "protection.exceeded"


class LimitsService(BaseService):
    """Limits service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        store: Optional[ProtectionCounter] = None,
        group_resolver: Optional[GroupResolver] = None,
        catalog: Optional[MaterialCatalog] = None
    ):
        super().__init__("limits", 8013, config or get_config("limits", 8013))

        self.catalog = (catalog or MaterialCatalog()).extend(self.config.extra_materials)
        self.resolver = LimitResolver(
            self.catalog,
            strict=self.config.unknown_material_policy == "abort"
        )

        self._owns_store = store is None
        self.store = store if store is not None else ProtectionStore(self.config.postgres_dsn)
        self.group_resolver = group_resolver or GroupsClient(
            self.config.permissions_service_url,
            timeout=self.config.groups_timeout_seconds
        )
        self.admission = AdmissionCheck(
            self.resolver,
            self.store,
            group_resolver=self.group_resolver,
            count_timeout=self.config.count_timeout_seconds
        )

        # No previous snapshot exists yet, so a broken limits file fails startup
        self.reload_limits()

        self._setup_limits_routes()

    def reload_limits(self) -> PolicyIndex:
        """Re-read the limits file and publish a new snapshot."""
        try:
            source = YamlConfigSource(self.config.limits_file)
            index = self.resolver.reload(source)
        except Exception:
            self.metrics.increment_counter("limit_reloads_total", status="error")
            raise

        self.metrics.increment_counter("limit_reloads_total", status="ok")
        self.metrics.set_gauge("limit_rules_loaded", len(index.defaults), bucket="defaults")
        self.metrics.set_gauge(
            "limit_rules_loaded", sum(len(rs) for rs in index.players.values()), bucket="players"
        )
        self.metrics.set_gauge(
            "limit_rules_loaded", sum(len(rs) for rs in index.groups.values()), bucket="groups"
        )
        return index

    def _setup_limits_routes(self):
        """Set up limits-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "limits",
                "message": "Protection limits service",
                "version": "1.0.0",
                "capabilities": ["limit_resolution", "admission_check", "hot_reload"]
            }

        @self.app.post("/limits/check", response_model=LimitCheckResponse)
        async def check_limit(request: LimitCheckRequest):
            """Check whether a player may register another protection."""
            set_player_context(request.player)

            with self.metrics.time_operation("limit_check_duration_seconds"):
                verdict = await self.admission.check_for_player(
                    request.player,
                    request.material,
                    groups=request.groups
                )

            decision = "allow" if verdict.allowed else "deny"
            self.metrics.increment_counter("limit_checks_total", decision=decision)

            if verdict.over_limit:
                self.logger.info(
                    "Protection limit reached",
                    player=request.player,
                    material=request.material,
                    source=verdict.source,
                    ceiling=str(verdict.ceiling),
                    count=verdict.observed_count
                )

            return _verdict_response(verdict)

        @self.app.get("/limits/effective", response_model=EffectiveLimitResponse)
        async def effective_limit(
            player: str = Query(..., min_length=1, description="Player name"),
            material: str = Query(..., min_length=1, description="Material being protected"),
            groups: Optional[str] = Query(None, description="Comma separated groups, in priority order")
        ):
            """Resolve the effective limit without counting protections."""
            if groups is None:
                group_list: List[str] = await self.admission.resolve_groups(player)
            else:
                group_list = [g.strip() for g in groups.split(",") if g.strip()]

            resolved = self.resolver.resolve(player, group_list, material)
            if resolved is None:
                return EffectiveLimitResponse(
                    player=player, material=normalize_material(material), found=False
                )

            return EffectiveLimitResponse(
                player=player,
                material=normalize_material(material),
                found=True,
                ceiling=resolved.rule.ceiling.render(),
                scope=resolved.rule.scope,
                rule_material=resolved.rule.material,
                source=resolved.source
            )

        @self.app.post("/limits/reload", response_model=ReloadResponse)
        def reload():
            """Reload the limits file; the previous snapshot stays on failure.

            Plain ``def`` so the file read and the writer lock run in the
            threadpool, off the event loop.
            """
            index = self.reload_limits()
            return ReloadResponse(
                success=True,
                generation=index.generation,
                rules=index.rule_count,
                players=len(index.players),
                groups=len(index.groups),
                skipped=list(index.skipped),
                loaded_at=index.loaded_at
            )

        @self.app.get("/limits/stats", response_model=LimitStatsResponse)
        async def get_stats():
            """Statistics for the published snapshot."""
            index = self.resolver.snapshot()
            return LimitStatsResponse(
                generation=index.generation,
                loaded_at=index.loaded_at,
                rules={
                    DEFAULTS_SECTION: len(index.defaults),
                    "players": sum(len(rs) for rs in index.players.values()),
                    "groups": sum(len(rs) for rs in index.groups.values()),
                },
                players=sorted(index.players),
                groups=sorted(index.groups),
                skipped=list(index.skipped)
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check limits service dependencies."""
        dependencies = {}

        if isinstance(self.store, ProtectionStore):
            dependencies["postgres"] = "ok" if await self.store.health_check() else "error"

        return dependencies

    async def start(self):
        """Start limits service components."""
        if self._owns_store:
            await self.store.start()

        index = self.resolver.snapshot()
        self.logger.info(
            "Limits service started",
            generation=index.generation,
            rules=index.rule_count
        )

    async def stop(self):
        """Stop limits service components."""
        if self._owns_store:
            await self.store.stop()

        self.logger.info("Limits service stopped")


def _verdict_response(verdict: AdmissionVerdict) -> LimitCheckResponse:
    rule: Optional[Rule] = verdict.rule

    if rule is None:
        reason = "No limit configured"
    elif rule.ceiling.is_unlimited:
        reason = "Unlimited protections"
    elif verdict.over_limit:
        reason = "Protection limit reached"
    else:
        reason = "Below protection limit"

    return LimitCheckResponse(
        allowed=verdict.allowed,
        over_limit=verdict.over_limit,
        reason=reason,
        message_key=EXCEEDED_MESSAGE_KEY if verdict.over_limit else None,
        ceiling=rule.ceiling.render() if rule else None,
        protection_count=verdict.observed_count,
        scope=rule.scope if rule else None,
        material=rule.material if rule else None,
        source=verdict.source
    )


def create_app():
    """Create limits service application."""
    service = LimitsService()
    return service.app


if __name__ == "__main__":
    service = LimitsService()
    service.run()
