"""
Limit data models for the Limits Service.
"""

from typing import Dict, Optional, List, Mapping, Tuple, Union
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType

from pydantic import BaseModel, Field


UNLIMITED_TOKEN = "unlimited"


class RuleScope(str, Enum):
    """Which protections a rule counts against."""
    DEFAULT = "default"
    MATERIAL = "material"


@dataclass(frozen=True)
class Ceiling:
    """Maximum number of protections a rule permits.

    ``maximum`` is None for an unlimited ceiling. Never compare counts
    against ``maximum`` directly; use :meth:`is_reached_by`.
    """
    maximum: Optional[int] = None

    def __post_init__(self):
        if self.maximum is not None and self.maximum < 0:
            raise ValueError(f"ceiling must be >= 0, got {self.maximum}")

    @classmethod
    def bounded(cls, maximum: int) -> "Ceiling":
        return cls(maximum=maximum)

    @classmethod
    def unlimited(cls) -> "Ceiling":
        return cls(maximum=None)

    @property
    def is_unlimited(self) -> bool:
        return self.maximum is None

    def is_reached_by(self, count: int) -> bool:
        """True when ``count`` protections already use up the ceiling."""
        if self.maximum is None:
            return False
        return count >= self.maximum

    def render(self) -> Union[int, str]:
        return UNLIMITED_TOKEN if self.maximum is None else self.maximum

    def __str__(self) -> str:
        return str(self.render())


@dataclass(frozen=True)
class Rule:
    """A single protection limit."""
    ceiling: Ceiling
    scope: RuleScope = RuleScope.DEFAULT
    material: Optional[str] = None

    def __post_init__(self):
        if self.scope is RuleScope.MATERIAL and not self.material:
            raise ValueError("material rules require a material")
        if self.scope is RuleScope.DEFAULT and self.material is not None:
            raise ValueError("default rules cannot target a material")

    @classmethod
    def default(cls, ceiling: Ceiling) -> "Rule":
        return cls(ceiling=ceiling, scope=RuleScope.DEFAULT)

    @classmethod
    def for_material(cls, material: str, ceiling: Ceiling) -> "Rule":
        return cls(ceiling=ceiling, scope=RuleScope.MATERIAL, material=material)


@dataclass(frozen=True)
class RuleSet:
    """Rules of one bucket, in configuration order."""
    rules: Tuple[Rule, ...] = ()

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


EMPTY_RULE_SET = RuleSet()


@dataclass(frozen=True)
class PolicyIndex:
    """Published, read-only snapshot of the limits configuration.

    Player and group keys are lower-cased at build time; use the
    ``player_rules``/``group_rules`` accessors so lookups are
    case-insensitive.
    """
    defaults: RuleSet = EMPTY_RULE_SET
    players: Mapping[str, RuleSet] = field(default_factory=lambda: MappingProxyType({}))
    groups: Mapping[str, RuleSet] = field(default_factory=lambda: MappingProxyType({}))
    generation: int = 0
    loaded_at: datetime = field(default_factory=datetime.now)
    skipped: Tuple[str, ...] = ()

    def player_rules(self, player: str) -> Optional[RuleSet]:
        return self.players.get(player.lower())

    def group_rules(self, group: str) -> Optional[RuleSet]:
        return self.groups.get(group.lower())

    @property
    def rule_count(self) -> int:
        return (
            len(self.defaults)
            + sum(len(rs) for rs in self.players.values())
            + sum(len(rs) for rs in self.groups.values())
        )


@dataclass(frozen=True)
class ResolvedLimit:
    """Effective rule together with the bucket that supplied it."""
    rule: Rule
    source: str


@dataclass
class AdmissionVerdict:
    """Outcome of a protection limit check."""
    allowed: bool
    rule: Optional[Rule] = None
    source: Optional[str] = None
    observed_count: Optional[int] = None

    @property
    def over_limit(self) -> bool:
        return not self.allowed

    @property
    def ceiling(self) -> Optional[Ceiling]:
        return self.rule.ceiling if self.rule else None


class LimitCheckRequest(BaseModel):
    """Request model for a protection limit check."""
    player: str = Field(..., min_length=1, description="Player name")
    material: str = Field(..., min_length=1, description="Material of the block being protected")
    groups: Optional[List[str]] = Field(
        None, description="Ordered group memberships; resolved from the permissions service when omitted"
    )


class LimitCheckResponse(BaseModel):
    """Response model for a protection limit check."""
    allowed: bool = Field(..., description="Whether the protection may be created")
    over_limit: bool = Field(..., description="Whether the player has reached the limit")
    reason: str = Field(..., description="Reason for the decision")
    message_key: Optional[str] = Field(None, description="Locale key to show the player when denied")
    ceiling: Optional[Union[int, str]] = Field(None, description="Effective ceiling or 'unlimited'")
    protection_count: Optional[int] = Field(None, description="Protections counted against the ceiling")
    scope: Optional[RuleScope] = Field(None, description="Scope of the effective rule")
    material: Optional[str] = Field(None, description="Material of a material-scoped rule")
    source: Optional[str] = Field(None, description="Configuration bucket of the effective rule")


class EffectiveLimitResponse(BaseModel):
    """Response model for an effective limit lookup."""
    player: str
    material: str
    found: bool
    ceiling: Optional[Union[int, str]] = None
    scope: Optional[RuleScope] = None
    rule_material: Optional[str] = None
    source: Optional[str] = None


class ReloadResponse(BaseModel):
    """Response model for a limits reload."""
    success: bool
    generation: int
    rules: int
    players: int
    groups: int
    skipped: List[str] = Field(default_factory=list)
    loaded_at: datetime


class LimitStatsResponse(BaseModel):
    """Response model for snapshot statistics."""
    generation: int
    loaded_at: datetime
    rules: Dict[str, int]
    players: List[str]
    groups: List[str]
    skipped: List[str]
