"""
Collects the effective statement set of a user.

Statements come from three attachment levels, in this order:
policies attached to the user, to each team the user belongs to and every
ancestor of those teams, and to the user's organization. Within a level
the order is the store's (policy id), so the sequence is stable for audit
output; the decision itself does not depend on it.
"""
from typing import Dict, List

import structlog

from policygate.core.exceptions import (
    CorruptStateError,
    DanglingAttachmentError,
    NotFoundError,
)
from policygate.domain.interfaces.store import PolicyStore
from policygate.domain.schemas import (
    AttachmentTarget,
    EffectiveStatement,
    Team,
)

from .hierarchy import HierarchyResolver

logger = structlog.get_logger(__name__)


class PolicyAggregator:
    """Flattens every policy reachable by a user into one statement list."""

    def __init__(
        self,
        store: PolicyStore,
        resolver: HierarchyResolver | None = None,
    ):
        self.store = store
        self.resolver = resolver or HierarchyResolver(store)

    async def attachment_targets(
        self,
        user_id: str,
        organization_id: str,
    ) -> List[AttachmentTarget]:
        """
        Get every entity whose policies apply to the user.

        Args:
            user_id: Principal
            organization_id: Organization of the request

        Returns:
            The user, then each reachable team once, then the organization

        Raises:
            NotFoundError: If the user does not exist in the organization
            CorruptStateError: If membership or hierarchy data is inconsistent
        """
        user = await self.store.get_user(user_id)
        if user.organization_id != organization_id:
            # Organizations cannot see each other's users
            raise NotFoundError("User", user_id)

        targets = [AttachmentTarget.user(user.id)]

        memberships = await self.store.get_team_memberships(user.id)
        known: Dict[str, Team] = {}
        visited = set()
        for team in sorted(memberships, key=lambda t: t.id):
            if team.organization_id != organization_id:
                raise CorruptStateError(
                    f"User {user.id} is a member of team {team.id} from another organization",
                    details={"user_id": user.id, "team_id": team.id},
                )
            for team_id in await self.resolver.ancestors_of(team, known):
                if team_id in visited:
                    continue
                visited.add(team_id)
                targets.append(AttachmentTarget.team(team_id))

        targets.append(AttachmentTarget.organization(organization_id))
        return targets

    async def effective_statements(
        self,
        user_id: str,
        organization_id: str,
    ) -> List[EffectiveStatement]:
        """
        Get the effective statement set of a user.

        Args:
            user_id: Principal
            organization_id: Organization of the request

        Returns:
            Statements tagged with their attachment level and source

        Raises:
            NotFoundError: If the user does not exist in the organization
            CorruptStateError: On dangling attachments or a corrupt hierarchy.
                Nothing partial is ever returned.
            StoreUnavailableError: If the store cannot answer
        """
        targets = await self.attachment_targets(user_id, organization_id)

        statements: List[EffectiveStatement] = []
        policy_count = 0
        for target in targets:
            for policy in await self.store.get_attached_policies(target):
                if policy.organization_id != organization_id:
                    raise DanglingAttachmentError(
                        target.level.value, target.entity_id, policy.id, reason="foreign"
                    )
                policy_count += 1
                statements.extend(
                    EffectiveStatement(
                        statement=statement,
                        level=target.level,
                        entity_id=target.entity_id,
                        policy_id=policy.id,
                        policy_version=policy.version,
                    )
                    for statement in policy.statements
                )

        logger.debug(
            "effective_statements_aggregated",
            user_id=user_id,
            organization_id=organization_id,
            targets=len(targets),
            policies=policy_count,
            statements=len(statements),
        )
        return statements
