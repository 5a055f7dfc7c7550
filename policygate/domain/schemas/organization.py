"""
Organization, team and user schemas.
"""
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Separator of the materialized team path as stored (ltree label style)
PATH_SEPARATOR = "."


class Organization(BaseModel):
    """Root of isolation: every team, user and policy belongs to one."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None


class Team(BaseModel):
    """
    Team with its materialized ancestor path.

    ``path`` runs from the organization's root team down to this team and
    always ends with the team's own id.
    """
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    organization_id: str
    parent_id: Optional[str] = None
    path: Tuple[str, ...] = Field(default=())

    @field_validator("path", mode="before")
    @classmethod
    def split_stored_path(cls, v):
        if isinstance(v, str):
            return tuple(v.split(PATH_SEPARATOR)) if v else ()
        return v


class User(BaseModel):
    """User schema."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    organization_id: str


def child_path(parent: Optional[Team], team_id: str) -> Tuple[str, ...]:
    """Path for a team created (or re-parented) under ``parent``."""
    if parent is None:
        return (team_id,)
    return parent.path + (team_id,)
