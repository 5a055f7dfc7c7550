"""
Deny-overrides, default-deny combination of matching statements.
"""
from typing import Iterable, List

from policygate.domain.schemas import Decision, Effect, EffectiveStatement, Statement

from .patterns import matches_any


def statement_matches(statement: Statement, action: str, resource: str) -> bool:
    """A statement applies when one action pattern and one resource pattern match."""
    return matches_any(statement.actions, action) and matches_any(statement.resources, resource)


def filter_matching(
    statements: Iterable[EffectiveStatement],
    action: str,
    resource: str,
) -> List[EffectiveStatement]:
    """Keep the statements relevant to (action, resource), preserving order."""
    return [s for s in statements if statement_matches(s.statement, action, resource)]


def decide(matching: Iterable[Statement]) -> Decision:
    """
    Combine matching statements into a decision.

    Any Deny wins; otherwise any Allow grants; no statement at all denies.
    The result does not depend on the order of ``matching``.
    """
    allowed = False
    for statement in matching:
        if statement.effect is Effect.DENY:
            return Decision.DENY
        if statement.effect is Effect.ALLOW:
            allowed = True
    return Decision.ALLOW if allowed else Decision.DENY
