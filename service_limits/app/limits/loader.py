"""
Builds a PolicyIndex from a limits configuration source.
"""

import re
from datetime import datetime
from types import MappingProxyType
from typing import Dict, List

from shared.logging import get_logger
from shared.errors import ConfigError, UnknownSubtypeError
from .catalog import MaterialCatalog
from .models import Ceiling, Rule, RuleSet, PolicyIndex, UNLIMITED_TOKEN
from .sources import ConfigSource


DEFAULTS_SECTION = "defaults"
PLAYERS_SECTION = "players"
GROUPS_SECTION = "groups"
DEFAULT_KEY = "default"

_DIGITS = re.compile(r"[0-9]+")

logger = get_logger("limits.loader")


def parse_ceiling(value, path: str) -> Ceiling:
    """Parse a configured limit value into a Ceiling."""
    if value is None:
        raise ConfigError(f"Missing limit value at '{path}'", details={"path": path})

    text = str(value).strip()
    if text.lower() == UNLIMITED_TOKEN:
        return Ceiling.unlimited()
    if not _DIGITS.fullmatch(text):
        raise ConfigError(
            f"Invalid limit value '{value}' at '{path}': expected a non-negative integer or '{UNLIMITED_TOKEN}'",
            details={"path": path, "value": str(value)}
        )
    return Ceiling.bounded(int(text))


class PolicyLoader:
    """Reads the defaults, players and groups sections into a PolicyIndex.

    With ``strict`` set, an unknown material aborts the load with
    UnknownSubtypeError; otherwise the entry is skipped and recorded in
    ``PolicyIndex.skipped``.
    """

    def __init__(self, catalog: MaterialCatalog, strict: bool = False):
        self.catalog = catalog
        self.strict = strict

    def load(self, source: ConfigSource, generation: int = 0) -> PolicyIndex:
        skipped: List[str] = []

        defaults = self._load_section(source, DEFAULTS_SECTION, skipped)
        players = self._load_buckets(source, PLAYERS_SECTION, skipped)
        groups = self._load_buckets(source, GROUPS_SECTION, skipped)

        index = PolicyIndex(
            defaults=defaults,
            players=MappingProxyType(players),
            groups=MappingProxyType(groups),
            generation=generation,
            loaded_at=datetime.now(),
            skipped=tuple(skipped),
        )

        logger.info(
            "Limits loaded",
            generation=generation,
            rules=index.rule_count,
            players=len(players),
            groups=len(groups),
            skipped=len(skipped)
        )
        return index

    def _load_buckets(self, source: ConfigSource, section: str, skipped: List[str]) -> Dict[str, RuleSet]:
        self._require_section(source, section)

        buckets: Dict[str, RuleSet] = {}
        for name in source.get_keys(section):
            key = name.lower()
            if key in buckets:
                # Names differing only in case collapse; the first one declared wins
                logger.warning("Duplicate limits bucket ignored", section=section, name=name)
                continue
            buckets[key] = self._load_section(source, f"{section}.{name}", skipped)
        return buckets

    def _load_section(self, source: ConfigSource, path: str, skipped: List[str]) -> RuleSet:
        self._require_section(source, path)

        rules: List[Rule] = []
        for key in source.get_keys(path):
            node = f"{path}.{key}"
            ceiling = parse_ceiling(source.get_string(node), node)

            if key.lower() == DEFAULT_KEY:
                rules.append(Rule.default(ceiling))
                logger.debug("Default limit loaded", path=node, ceiling=str(ceiling))
                continue

            material = self.catalog.lookup(key)
            if material is None:
                if self.strict:
                    raise UnknownSubtypeError(key, path=node)
                logger.warning("Unknown material in limits, entry skipped", path=node, material=key)
                skipped.append(node)
                continue

            rules.append(Rule.for_material(material, ceiling))
            logger.debug("Material limit loaded", path=node, material=material, ceiling=str(ceiling))

        return RuleSet(tuple(rules))

    @staticmethod
    def _require_section(source: ConfigSource, path: str) -> None:
        if source.exists(path) and not source.is_section(path):
            raise ConfigError(f"Section '{path}' must be a mapping", details={"path": path})


def load_policy(
    source: ConfigSource,
    catalog: MaterialCatalog,
    strict: bool = False,
    generation: int = 0
) -> PolicyIndex:
    """Build a PolicyIndex from ``source``."""
    return PolicyLoader(catalog, strict=strict).load(source, generation=generation)
