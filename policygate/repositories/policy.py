"""
Policy repository.
"""
from typing import Dict, List, Optional, Tuple

from sqlalchemy import Table, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from policygate.domain.schemas import AttachmentLevel, AttachmentTarget
from policygate.infrastructure.database.models import (
    PolicyModel,
    ReferenceActionModel,
    organization_policies,
    team_policies,
    user_policies,
)
from policygate.repositories.base import BaseRepository

# Join table and entity column per attachment level
ATTACHMENT_TABLES: Dict[AttachmentLevel, Tuple[Table, str]] = {
    AttachmentLevel.ORGANIZATION: (organization_policies, "org_id"),
    AttachmentLevel.TEAM: (team_policies, "team_id"),
    AttachmentLevel.USER: (user_policies, "user_id"),
}


class PolicyRepository(BaseRepository[PolicyModel]):
    """Policy repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(PolicyModel, db)

    async def get_attached(
        self,
        target: AttachmentTarget,
    ) -> List[Tuple[str, Optional[PolicyModel]]]:
        """
        Get the policies attached to an entity.

        Args:
            target: Attachment level and entity ID

        Returns:
            (policy_id, policy) pairs ordered by policy ID; policy is None
            when the attachment references a missing row
        """
        table, column = ATTACHMENT_TABLES[target.level]
        stmt = (
            select(table.c.policy_id, PolicyModel)
            .select_from(table)
            .outerjoin(PolicyModel, PolicyModel.id == table.c.policy_id)
            .where(table.c[column] == target.entity_id)
            .order_by(table.c.policy_id)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def attach(
        self,
        target: AttachmentTarget,
        policy_id: str,
    ) -> None:
        """
        Attach a policy to an organization, team or user.

        Args:
            target: Attachment level and entity ID
            policy_id: Policy ID
        """
        table, column = ATTACHMENT_TABLES[target.level]
        await self.db.execute(
            insert(table).values({column: target.entity_id, "policy_id": policy_id})
        )
        await self.db.commit()

    async def list_reference_actions(self) -> List[str]:
        """
        Get the reference action catalog.

        Returns:
            Action strings in alphabetical order
        """
        stmt = select(ReferenceActionModel.action).order_by(ReferenceActionModel.action)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
