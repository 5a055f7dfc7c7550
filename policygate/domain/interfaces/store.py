"""
Persistence collaborator consumed by the authorization engine.

The engine only ever reads through this interface. Implementations raise
NotFoundError for missing entities, DanglingAttachmentError when an
attachment points at a policy row that does not exist, and
StoreUnavailableError when the backing store cannot answer.
"""
from abc import ABC, abstractmethod
from typing import List, Sequence

from policygate.domain.schemas import AttachmentTarget, Policy, Team, User


class PolicyStore(ABC):
    """Read-only view of organizations, teams, users and policies."""

    @abstractmethod
    async def get_user(self, user_id: str) -> User:
        """Get a user by ID."""
        pass

    @abstractmethod
    async def get_team_memberships(self, user_id: str) -> List[Team]:
        """Get the teams a user directly belongs to."""
        pass

    @abstractmethod
    async def get_team(self, team_id: str) -> Team:
        """Get a team by ID, including its path."""
        pass

    @abstractmethod
    async def get_attached_policies(self, target: AttachmentTarget) -> List[Policy]:
        """Get the policies attached to an organization, team or user."""
        pass

    @abstractmethod
    async def get_policy(self, policy_id: str) -> Policy:
        """Get a policy by ID."""
        pass

    @abstractmethod
    async def list_reference_actions(self, organization_id: str) -> Sequence[str]:
        """Get the catalog of known action strings."""
        pass
