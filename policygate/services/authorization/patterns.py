"""
Segment wildcard matching for action and resource identifiers.

Identifiers are colon separated segments (``documents:read``,
``org:42:reports:7``). In a pattern:

- ``*`` on its own matches any value;
- a trailing ``*`` segment matches the remaining segments, zero or more
  (``a:b:*`` matches ``a:b``, ``a:b:c`` and ``a:b:c:d``);
- any other ``*`` segment matches exactly one segment;
- every other segment matches literally and case-sensitively.
"""
from functools import lru_cache
from typing import Iterable, Tuple

SEGMENT_SEPARATOR = ":"
WILDCARD = "*"


@lru_cache(maxsize=4096)
def _compile(pattern: str) -> Tuple[Tuple[str, ...], bool]:
    """Split a pattern into its fixed segments and whether it ends in a glob."""
    segments = tuple(pattern.split(SEGMENT_SEPARATOR))
    if segments[-1] == WILDCARD:
        return segments[:-1], True
    return segments, False


def _segment_matches(pattern_segment: str, value_segment: str) -> bool:
    return pattern_segment == WILDCARD or pattern_segment == value_segment


def matches(pattern: str, value: str) -> bool:
    """
    Check whether a concrete value matches a wildcard pattern.

    Args:
        pattern: Pattern such as ``docs:*`` or ``org:*:reports``
        value: Concrete action or resource

    Returns:
        True if the value matches
    """
    if pattern == WILDCARD:
        return True

    fixed, trailing_glob = _compile(pattern)
    segments = value.split(SEGMENT_SEPARATOR)

    if trailing_glob:
        if len(segments) < len(fixed):
            return False
    elif len(segments) != len(fixed):
        return False

    return all(_segment_matches(p, v) for p, v in zip(fixed, segments))


def matches_any(patterns: Iterable[str], value: str) -> bool:
    """True if at least one pattern matches. An empty pattern set never matches."""
    return any(matches(pattern, value) for pattern in patterns)
