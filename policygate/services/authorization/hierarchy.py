"""
Team ancestor resolution from the materialized path.

Ancestors are read straight off ``Team.path``; each ancestor row is only
fetched to verify the path is sound. Parentage is validated acyclic on
write, so nothing here follows parent pointers.
"""
from typing import Dict, List, Optional, Union

import structlog

from policygate.core.exceptions import CorruptHierarchyError, NotFoundError
from policygate.domain.interfaces.store import PolicyStore
from policygate.domain.schemas import Team

logger = structlog.get_logger(__name__)


class HierarchyResolver:
    """Computes the ancestor chain of a team."""

    def __init__(self, store: PolicyStore):
        self.store = store

    async def ancestors_of(
        self,
        team: Union[Team, str],
        known: Optional[Dict[str, Team]] = None,
    ) -> List[str]:
        """
        Get the ids of a team and all of its ancestors.

        Args:
            team: Team or team ID
            known: Teams already loaded during this request, keyed by ID.
                Filled in with every ancestor fetched here.

        Returns:
            Team IDs from the team itself up to the organization root

        Raises:
            NotFoundError: If the team does not exist
            CorruptHierarchyError: If the team's path is malformed
        """
        if known is None:
            known = {}
        if isinstance(team, str):
            team = known.get(team) or await self.store.get_team(team)
        known[team.id] = team

        try:
            await self._validate(team, known)
        except CorruptHierarchyError as e:
            logger.error(
                "corrupt_hierarchy_detected",
                team_id=team.id,
                organization_id=team.organization_id,
                reason=e.reason,
                path=list(team.path),
            )
            raise

        return list(reversed(team.path))

    async def _validate(self, team: Team, known: Dict[str, Team]) -> None:
        path = team.path
        if not path:
            raise CorruptHierarchyError(team.id, "empty path")
        if path[-1] != team.id:
            raise CorruptHierarchyError(team.id, f"path ends in {path[-1]!r}")
        if len(set(path)) != len(path):
            raise CorruptHierarchyError(team.id, "path repeats a team")

        if team.parent_id is None:
            if len(path) != 1:
                raise CorruptHierarchyError(team.id, "root team has ancestors in its path")
        elif len(path) < 2 or path[-2] != team.parent_id:
            raise CorruptHierarchyError(team.id, f"path disagrees with parent {team.parent_id!r}")

        for depth, ancestor_id in enumerate(path[:-1]):
            ancestor = known.get(ancestor_id)
            if ancestor is None:
                try:
                    ancestor = await self.store.get_team(ancestor_id)
                except NotFoundError as e:
                    raise CorruptHierarchyError(team.id, f"ancestor {ancestor_id!r} does not exist") from e
                known[ancestor_id] = ancestor

            if ancestor.organization_id != team.organization_id:
                raise CorruptHierarchyError(
                    team.id, f"ancestor {ancestor_id!r} belongs to another organization"
                )
            if ancestor.path != path[:depth + 1]:
                raise CorruptHierarchyError(
                    team.id, f"path of ancestor {ancestor_id!r} is not a prefix"
                )
