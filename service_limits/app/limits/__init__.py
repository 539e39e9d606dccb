"""
Protection limits package.

Loads per-player, per-group and default protection limits from
configuration and resolves the single effective limit for a player
protecting a given material. Resolution walks buckets in precedence
order (player, then groups in membership order, then defaults); within
a bucket an exact material rule beats the bucket's default.

Modules of interest:
- models: Ceiling, Rule, RuleSet, PolicyIndex and API models.
- loader: Builds a PolicyIndex from a configuration source.
- resolver: Precedence walk and atomic snapshot reloads.
- admission: Compares the effective limit with the live protection count.
"""

from .admission import AdmissionCheck
from .catalog import MaterialCatalog
from .loader import load_policy
from .models import AdmissionVerdict, Ceiling, PolicyIndex, Rule, RuleScope, RuleSet
from .resolver import LimitResolver, find_effective
from .sources import MappingConfigSource, YamlConfigSource

__all__ = [
    "AdmissionCheck",
    "AdmissionVerdict",
    "Ceiling",
    "LimitResolver",
    "MappingConfigSource",
    "MaterialCatalog",
    "PolicyIndex",
    "Rule",
    "RuleScope",
    "RuleSet",
    "YamlConfigSource",
    "find_effective",
    "load_policy",
]
