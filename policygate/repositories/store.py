"""
SQLAlchemy-backed PolicyStore.

Maps rows to domain schemas and translates driver failures into
StoreUnavailableError so the engine sees one failure vocabulary.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Sequence

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from policygate.core.exceptions import (
    CorruptStateError,
    DanglingAttachmentError,
    NotFoundError,
    StoreUnavailableError,
)
from policygate.domain.interfaces.store import PolicyStore
from policygate.domain.schemas import AttachmentTarget, Policy, Team, User
from policygate.infrastructure.database.models import PolicyModel, TeamModel, UserModel
from policygate.repositories.policy import PolicyRepository
from policygate.repositories.team import TeamRepository
from policygate.repositories.user import UserRepository

logger = structlog.get_logger(__name__)


def _to_user(row: UserModel) -> User:
    return User(id=row.id, name=row.name, organization_id=row.org_id)


def _to_team(row: TeamModel) -> Team:
    return Team(
        id=row.id,
        name=row.name,
        description=row.description,
        organization_id=row.org_id,
        parent_id=row.team_parent_id,
        path=row.path,
    )


def _to_policy(row: PolicyModel) -> Policy:
    try:
        return Policy(
            id=row.id,
            name=row.name,
            version=row.version,
            organization_id=row.org_id,
            statements=row.statements,
        )
    except ValidationError as e:
        raise CorruptStateError(
            f"Policy {row.id} has malformed statements",
            details={"policy_id": row.id, "errors": e.error_count()},
        ) from e


class SQLAlchemyPolicyStore(PolicyStore):
    """PolicyStore reading through one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)
        self.teams = TeamRepository(db)
        self.policies = PolicyRepository(db)

    @asynccontextmanager
    async def _reading(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.error(
                "policy_store_unavailable",
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise StoreUnavailableError("database", f"{operation} failed") from e

    async def get_user(self, user_id: str) -> User:
        async with self._reading("get_user"):
            row = await self.users.get(user_id)
        if row is None:
            raise NotFoundError("User", user_id)
        return _to_user(row)

    async def get_team_memberships(self, user_id: str) -> List[Team]:
        async with self._reading("get_team_memberships"):
            rows = await self.teams.get_for_user(user_id)
        return [_to_team(row) for row in rows]

    async def get_team(self, team_id: str) -> Team:
        async with self._reading("get_team"):
            row = await self.teams.get(team_id)
        if row is None:
            raise NotFoundError("Team", team_id)
        return _to_team(row)

    async def get_attached_policies(self, target: AttachmentTarget) -> List[Policy]:
        async with self._reading("get_attached_policies"):
            rows = await self.policies.get_attached(target)

        policies = []
        for policy_id, row in rows:
            if row is None:
                raise DanglingAttachmentError(target.level.value, target.entity_id, policy_id)
            policies.append(_to_policy(row))
        return policies

    async def get_policy(self, policy_id: str) -> Policy:
        async with self._reading("get_policy"):
            row = await self.policies.get(policy_id)
        if row is None:
            raise NotFoundError("Policy", policy_id)
        return _to_policy(row)

    async def list_reference_actions(self, organization_id: str) -> Sequence[str]:
        # The catalog is shared by all organizations
        async with self._reading("list_reference_actions"):
            return await self.policies.list_reference_actions()
