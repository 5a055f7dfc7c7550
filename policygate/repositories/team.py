"""
Team repository.
"""
from typing import List, Optional

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from policygate.domain.schemas import PATH_SEPARATOR
from policygate.infrastructure.database.models import TeamModel, team_members
from policygate.repositories.base import BaseRepository


class TeamRepository(BaseRepository[TeamModel]):
    """Team repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(TeamModel, db)

    async def create_team(
        self,
        id: str,
        name: str,
        org_id: str,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> TeamModel:
        """
        Create a team, deriving its path from the parent's.

        Args:
            id: Team ID
            name: Team name
            org_id: Owning organization
            parent_id: Parent team, None for a root team
            description: Optional description

        Returns:
            Created team

        Raises:
            ValueError: If the parent is unknown or in another organization
        """
        path = id
        if parent_id is not None:
            parent = await self.get(parent_id)
            if parent is None or parent.org_id != org_id:
                raise ValueError(f"Parent team {parent_id} not found in organization {org_id}")
            path = f"{parent.path}{PATH_SEPARATOR}{id}"

        return await self.create({
            "id": id,
            "name": name,
            "org_id": org_id,
            "team_parent_id": parent_id,
            "description": description,
            "path": path,
        })

    async def get_for_user(
        self,
        user_id: str,
    ) -> List[TeamModel]:
        """
        Get the teams a user is a direct member of.

        Args:
            user_id: User ID

        Returns:
            Teams ordered by ID
        """
        stmt = (
            select(TeamModel)
            .join(team_members, team_members.c.team_id == TeamModel.id)
            .where(team_members.c.user_id == user_id)
            .order_by(TeamModel.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def add_member(
        self,
        team_id: str,
        user_id: str,
    ) -> None:
        """
        Add a user to a team.

        Args:
            team_id: Team ID
            user_id: User ID
        """
        await self.db.execute(
            insert(team_members).values(team_id=team_id, user_id=user_id)
        )
        await self.db.commit()
