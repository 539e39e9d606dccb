"""
Effective limit resolution for the Limits Service.
"""

import threading
from typing import Iterable, Optional

from shared.logging import get_logger
from .catalog import MaterialCatalog, normalize_material
from .loader import load_policy, DEFAULTS_SECTION, PLAYERS_SECTION, GROUPS_SECTION
from .models import Rule, RuleScope, RuleSet, PolicyIndex, ResolvedLimit
from .sources import ConfigSource


def find_effective(rule_set: Optional[RuleSet], material: str) -> Optional[Rule]:
    """Pick the rule of one bucket that applies to ``material``.

    The first rule for exactly this material wins. Otherwise the last
    default rule seen applies. None means the bucket has nothing to say
    and resolution moves on to the next bucket.
    """
    if rule_set is None:
        return None

    default_rule: Optional[Rule] = None

    for rule in rule_set:
        if rule.scope is RuleScope.MATERIAL:
            if rule.material == material:
                return rule
        elif rule.scope is RuleScope.DEFAULT:
            default_rule = rule

    return default_rule


class LimitResolver:
    """Walks player, group and default buckets of the published snapshot.

    The snapshot is replaced wholesale by :meth:`reload`; every resolution
    reads the reference once, so a concurrent reload is never observed
    half way through a lookup.
    """

    def __init__(self, catalog: MaterialCatalog, strict: bool = False, index: Optional[PolicyIndex] = None):
        self.logger = get_logger("limits.resolver")
        self.catalog = catalog
        self.strict = strict
        self._index = index or PolicyIndex()
        self._reload_lock = threading.Lock()

    def snapshot(self) -> PolicyIndex:
        """Currently published snapshot."""
        return self._index

    def reload(self, source: ConfigSource) -> PolicyIndex:
        """Build a new snapshot from ``source`` and publish it.

        ConfigError and UnknownSubtypeError propagate and leave the
        previous snapshot in place.
        """
        with self._reload_lock:
            current = self._index
            try:
                index = load_policy(
                    source,
                    self.catalog,
                    strict=self.strict,
                    generation=current.generation + 1
                )
            except Exception as e:
                self.logger.error(
                    "Limits reload failed, keeping previous snapshot",
                    generation=current.generation,
                    error=str(e)
                )
                raise

            self._index = index

        self.logger.info("Limits snapshot published", generation=index.generation)
        return index

    def resolve(
        self,
        player: str,
        groups: Iterable[str],
        material: str,
        index: Optional[PolicyIndex] = None
    ) -> Optional[ResolvedLimit]:
        """Effective rule and the bucket it came from, or None when unconstrained."""
        if index is None:
            index = self._index
        material = normalize_material(material)

        rule = find_effective(index.player_rules(player), material)
        if rule is not None:
            return ResolvedLimit(rule=rule, source=f"{PLAYERS_SECTION}.{player.lower()}")

        for group in groups:
            rule = find_effective(index.group_rules(group), material)
            if rule is not None:
                return ResolvedLimit(rule=rule, source=f"{GROUPS_SECTION}.{group.lower()}")

        rule = find_effective(index.defaults, material)
        if rule is not None:
            return ResolvedLimit(rule=rule, source=DEFAULTS_SECTION)

        return None

    def effective_limit(self, player: str, groups: Iterable[str], material: str) -> Optional[Rule]:
        """Effective rule for ``player`` protecting ``material``."""
        resolved = self.resolve(player, groups, material)
        return resolved.rule if resolved else None
