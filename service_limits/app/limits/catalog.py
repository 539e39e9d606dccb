"""
Material catalog used to validate limits configuration keys.
"""

from typing import Iterable, Optional, FrozenSet


# Block materials that can carry a protection.
DEFAULT_MATERIALS = (
    "ANVIL",
    "BEACON",
    "BREWING_STAND",
    "BURNING_FURNACE",
    "CHEST",
    "DISPENSER",
    "DROPPER",
    "ENCHANTMENT_TABLE",
    "ENDER_CHEST",
    "FENCE_GATE",
    "FURNACE",
    "HOPPER",
    "IRON_DOOR_BLOCK",
    "JUKEBOX",
    "LEVER",
    "NOTE_BLOCK",
    "SIGN_POST",
    "STONE_BUTTON",
    "TRAP_DOOR",
    "TRAPPED_CHEST",
    "WALL_SIGN",
    "WOOD_BUTTON",
    "WOODEN_DOOR",
    "WORKBENCH",
)


def normalize_material(name: str) -> str:
    """Canonical material id: upper case, spaces and dashes as underscores."""
    return name.strip().upper().replace("-", "_").replace(" ", "_")


class MaterialCatalog:
    """Set of known materials keyed by canonical id."""

    def __init__(self, names: Iterable[str] = DEFAULT_MATERIALS):
        self._materials: FrozenSet[str] = frozenset(normalize_material(n) for n in names if n.strip())

    def lookup(self, name: str) -> Optional[str]:
        """Return the canonical material id, or None when unknown."""
        material = normalize_material(name)
        return material if material in self._materials else None

    def extend(self, names: Iterable[str]) -> "MaterialCatalog":
        """New catalog with additional materials."""
        return MaterialCatalog(list(self._materials) + list(names))

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None

    def __len__(self) -> int:
        return len(self._materials)
