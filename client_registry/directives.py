"""
Built-in GraphQL Directives
Names of the directives every schema knows about.
"""
from enum import Enum
from typing import FrozenSet, Tuple


class WellKnownDirective(str, Enum):
    SKIP = "skip"
    INCLUDE = "include"
    DEPRECATED = "deprecated"


BUILT_IN_DIRECTIVES: FrozenSet[str] = frozenset(d.value for d in WellKnownDirective)

# Registered on every schema by default; @deprecated is bound by the type system
DEFAULT_DIRECTIVES: Tuple[WellKnownDirective, ...] = (
    WellKnownDirective.SKIP,
    WellKnownDirective.INCLUDE,
)


def is_built_in(name: str) -> bool:
    """True if ``name`` is a built-in directive (names are case-sensitive)"""
    return name in BUILT_IN_DIRECTIVES
