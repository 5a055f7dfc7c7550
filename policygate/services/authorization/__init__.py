"""
Policy-based authorization engine for PolicyGate.

Resolves whether a user may perform an action on a resource by combining
the policies attached to the user, to the user's teams and their
ancestors, and to the user's organization.
"""

from .aggregator import PolicyAggregator
from .authorization import AuthorizationService
from .cache import (
    CacheLookup,
    EffectiveSetCache,
    MemoryEffectiveSetCache,
    NullEffectiveSetCache,
    RedisEffectiveSetCache,
    build_cache,
)
from .decision import decide, filter_matching, statement_matches
from .hierarchy import HierarchyResolver
from .patterns import matches, matches_any

__all__ = [
    # Core services
    "AuthorizationService",
    "PolicyAggregator",
    "HierarchyResolver",

    # Matching and decisions
    "matches",
    "matches_any",
    "statement_matches",
    "filter_matching",
    "decide",

    # Caching
    "CacheLookup",
    "EffectiveSetCache",
    "NullEffectiveSetCache",
    "MemoryEffectiveSetCache",
    "RedisEffectiveSetCache",
    "build_cache",
]
