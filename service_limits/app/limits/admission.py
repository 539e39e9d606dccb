"""
Admission check: effective limit against the live protection count.
"""

import asyncio
from typing import Optional, Protocol, Sequence

from shared.logging import get_logger
from shared.errors import AccessLayerException, BackingStoreError
from .models import AdmissionVerdict, RuleScope
from .resolver import LimitResolver


class ProtectionCounter(Protocol):
    """Backing store of protection ownership."""

    async def count_owned(self, player: str, material: Optional[str] = None) -> int:
        ...


class GroupResolver(Protocol):
    """Source of a player's ordered group memberships."""

    async def resolve_groups(self, player: str) -> Sequence[str]:
        ...


class AdmissionCheck:
    """Decides whether a player may register another protection."""

    def __init__(
        self,
        resolver: LimitResolver,
        store: ProtectionCounter,
        group_resolver: Optional[GroupResolver] = None,
        count_timeout: float = 5.0
    ):
        self.logger = get_logger("limits.admission")
        self.resolver = resolver
        self.store = store
        self.group_resolver = group_resolver
        self.count_timeout = count_timeout

    async def check(self, player: str, groups: Sequence[str], material: str) -> AdmissionVerdict:
        """Resolve the effective limit and compare it with the player's count.

        Raises BackingStoreError when the count cannot be fetched; the
        verdict is never guessed.
        """
        resolved = self.resolver.resolve(player, groups, material)

        if resolved is None:
            # No limit configured anywhere: unconstrained
            return AdmissionVerdict(allowed=True)

        rule = resolved.rule
        if rule.ceiling.is_unlimited:
            return AdmissionVerdict(allowed=True, rule=rule, source=resolved.source)

        if rule.scope is RuleScope.MATERIAL:
            count = await self._count(player, rule.material)
        else:
            count = await self._count(player, None)

        allowed = not rule.ceiling.is_reached_by(count)

        self.logger.debug(
            "Limit check evaluated",
            player=player,
            material=material,
            source=resolved.source,
            ceiling=str(rule.ceiling),
            count=count,
            allowed=allowed
        )

        return AdmissionVerdict(
            allowed=allowed,
            rule=rule,
            source=resolved.source,
            observed_count=count
        )

    async def is_over_limit(self, player: str, groups: Sequence[str], material: str) -> bool:
        """True when the player has reached the effective limit for ``material``."""
        verdict = await self.check(player, groups, material)
        return verdict.over_limit

    async def check_for_player(
        self,
        player: str,
        material: str,
        groups: Optional[Sequence[str]] = None
    ) -> AdmissionVerdict:
        """Like :meth:`check`, fetching group memberships when not supplied."""
        if groups is None:
            groups = await self.resolve_groups(player)
        return await self.check(player, groups, material)

    async def resolve_groups(self, player: str) -> Sequence[str]:
        if self.group_resolver is None:
            return []
        return list(await self.group_resolver.resolve_groups(player))

    async def _count(self, player: str, material: Optional[str]) -> int:
        try:
            return await asyncio.wait_for(
                self.store.count_owned(player, material),
                timeout=self.count_timeout
            )
        except asyncio.TimeoutError as e:
            self.logger.error(
                "Protection count timed out",
                player=player,
                material=material,
                timeout=self.count_timeout
            )
            raise BackingStoreError(
                "Protection count timed out",
                details={"player": player, "material": material, "timeout_seconds": self.count_timeout}
            ) from e
        except AccessLayerException:
            raise
        except Exception as e:
            self.logger.error("Protection count failed", player=player, material=material, error=str(e))
            raise BackingStoreError(
                f"Protection count failed: {e}",
                details={"player": player, "material": material}
            ) from e
