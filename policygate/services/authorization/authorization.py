"""
Main authorization service.

Composes the aggregator, the pattern matcher and the decision engine
behind one interface. Every public query goes through
``effective_statements`` and ``_evaluate``, so single checks, batch checks
and the reverse "which actions" query can never disagree.
"""
from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from policygate.core.exceptions import PolicyGateException
from policygate.core.logging import log_decision_details, log_error_details
from policygate.domain.interfaces.store import PolicyStore
from policygate.domain.schemas import (
    AuthorizationResult,
    Decision,
    EffectiveStatement,
)

from .aggregator import PolicyAggregator
from .cache import EffectiveSetCache, NullEffectiveSetCache
from .decision import decide, filter_matching

logger = structlog.get_logger(__name__)


def _evaluate(
    statements: Sequence[EffectiveStatement],
    action: str,
    resource: str,
) -> Tuple[Decision, List[EffectiveStatement]]:
    matched = filter_matching(statements, action, resource)
    return decide(s.statement for s in matched), matched


def _reason(decision: Decision, matched: List[EffectiveStatement]) -> str:
    if not matched:
        return "No statement matches"
    if decision is Decision.DENY:
        return "Explicit deny"
    return "Allowed by matching statement"


class AuthorizationService:
    """
    Authorization facade.

    A service is cheap to build: create one per unit of work around the
    request's store and share a single cache between all of them.
    """

    def __init__(
        self,
        store: PolicyStore,
        cache: Optional[EffectiveSetCache] = None,
        aggregator: Optional[PolicyAggregator] = None,
    ):
        self.store = store
        self.cache = cache if cache is not None else NullEffectiveSetCache()
        self.aggregator = aggregator if aggregator is not None else PolicyAggregator(store)

    async def effective_statements(
        self,
        user_id: str,
        organization_id: str,
    ) -> List[EffectiveStatement]:
        """
        Get the effective statement set, through the cache when configured.

        Args:
            user_id: Principal
            organization_id: Organization of the request

        Returns:
            Effective statements in aggregation order
        """
        cached = await self.cache.lookup(user_id, organization_id)
        if cached.hit:
            logger.debug("effective_set_cache_hit", user_id=user_id, organization_id=organization_id)
            return list(cached.statements)

        statements = await self.aggregator.effective_statements(user_id, organization_id)
        if cached.token is not None:
            logger.debug("effective_set_cache_miss", user_id=user_id, organization_id=organization_id)
            await self.cache.put(user_id, organization_id, cached.token, statements)
        return statements

    async def explain(
        self,
        user_id: str,
        organization_id: str,
        action: str,
        resource: str,
    ) -> AuthorizationResult:
        """
        Decide a request and report which statements took part.

        Raises:
            NotFoundError: If the user does not exist in the organization
            CorruptStateError: On inconsistent policy or hierarchy data
            StoreUnavailableError: If the store cannot answer
        """
        statements = await self.effective_statements(user_id, organization_id)
        decision, matched = _evaluate(statements, action, resource)

        result = AuthorizationResult(
            decision=decision,
            user_id=user_id,
            organization_id=organization_id,
            action=action,
            resource=resource,
            matched=matched,
            reason=_reason(decision, matched),
        )
        logger.info("authorization_decision", **log_decision_details(result))
        return result

    async def authorize(
        self,
        user_id: str,
        organization_id: str,
        action: str,
        resource: str,
    ) -> Decision:
        """
        Decide whether a user may perform an action on a resource.

        Errors propagate; use ``check`` for a fail-closed answer.
        """
        result = await self.explain(user_id, organization_id, action, resource)
        return result.decision

    async def check(
        self,
        user_id: str,
        organization_id: str,
        action: str,
        resource: str,
    ) -> AuthorizationResult:
        """
        Fail-closed variant of ``explain``.

        Any engine error becomes a Deny carrying the error code, so a
        request-blocking caller never has to handle exceptions to stay safe.
        """
        try:
            return await self.explain(user_id, organization_id, action, resource)
        except PolicyGateException as e:
            logger.warning(
                "authorization_failed_closed",
                **log_error_details(
                    e,
                    user_id=user_id,
                    organization_id=organization_id,
                    action=action,
                    resource=resource,
                ),
            )
            return AuthorizationResult(
                decision=Decision.DENY,
                user_id=user_id,
                organization_id=organization_id,
                action=action,
                resource=resource,
                reason=e.message,
                error_code=e.error_code,
            )

    async def authorize_many(
        self,
        user_id: str,
        organization_id: str,
        requests: Iterable[Tuple[str, str]],
    ) -> List[Decision]:
        """
        Decide several (action, resource) pairs against one effective set.

        Returns:
            Decisions in request order
        """
        statements = await self.effective_statements(user_id, organization_id)
        return [
            _evaluate(statements, action, resource)[0]
            for action, resource in requests
        ]

    async def list_granted_actions(
        self,
        user_id: str,
        organization_id: str,
        resource: str,
        candidate_actions: Optional[Iterable[str]] = None,
    ) -> List[str]:
        """
        Get the candidate actions the user may perform on a resource.

        Args:
            user_id: Principal
            organization_id: Organization of the request
            resource: Resource to check
            candidate_actions: Action catalog; the store's reference
                catalog when None

        Returns:
            Allowed actions, deduplicated, in catalog order

        Raises:
            Same errors as ``explain``. A partial list is never returned.
        """
        statements = await self.effective_statements(user_id, organization_id)
        if candidate_actions is None:
            candidate_actions = await self.store.list_reference_actions(organization_id)

        granted = []
        seen = set()
        for action in candidate_actions:
            if action in seen:
                continue
            seen.add(action)
            decision, _ = _evaluate(statements, action, resource)
            if decision is Decision.ALLOW:
                granted.append(action)

        logger.debug(
            "granted_actions_listed",
            user_id=user_id,
            organization_id=organization_id,
            resource=resource,
            candidates=len(seen),
            granted=len(granted),
        )
        return granted

    async def invalidate(self, user_id: str) -> None:
        """Evict the cached effective sets of a user. Call after any write affecting them."""
        await self.cache.invalidate_user(user_id)
        logger.info("effective_set_invalidated", user_id=user_id)

    async def invalidate_organization(self, organization_id: str) -> None:
        """Evict the cached effective sets of every user of an organization."""
        await self.cache.invalidate_organization(organization_id)
        logger.info("effective_set_invalidated", organization_id=organization_id)
