"""
Policy schemas.

Statements are stored as JSON in the shape
``{"Effect": "Allow", "Action": [...], "Resource": [...]}``; both the
capitalised keys and the python field names are accepted on input.
"""
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Effect(str, Enum):
    """Statement effect - whether it grants or denies."""
    ALLOW = "Allow"
    DENY = "Deny"


class AttachmentLevel(str, Enum):
    """Entity kinds a policy can be attached to."""
    ORGANIZATION = "organization"
    TEAM = "team"
    USER = "user"


class Statement(BaseModel):
    """An effect plus the action and resource patterns it applies to."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    effect: Effect = Field(alias="Effect")
    actions: Tuple[str, ...] = Field(default=(), alias="Action")
    resources: Tuple[str, ...] = Field(default=(), alias="Resource")

    @field_validator("actions", "resources", mode="before")
    @classmethod
    def wrap_single_pattern(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v


class Policy(BaseModel):
    """A versioned, named, ordered set of statements owned by one organization."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    version: Optional[str] = None
    organization_id: str
    statements: Tuple[Statement, ...] = ()

    @field_validator("statements", mode="before")
    @classmethod
    def unwrap_statement_document(cls, v: Any) -> Any:
        # Stored documents may be wrapped as {"Statement": [...]}
        if isinstance(v, dict) and "Statement" in v:
            return v["Statement"]
        if v is None:
            return ()
        return v


class AttachmentTarget(BaseModel):
    """The entity a policy is attached to: one level plus that entity's id."""
    model_config = ConfigDict(frozen=True)

    level: AttachmentLevel
    entity_id: str

    @classmethod
    def organization(cls, organization_id: str) -> "AttachmentTarget":
        return cls(level=AttachmentLevel.ORGANIZATION, entity_id=organization_id)

    @classmethod
    def team(cls, team_id: str) -> "AttachmentTarget":
        return cls(level=AttachmentLevel.TEAM, entity_id=team_id)

    @classmethod
    def user(cls, user_id: str) -> "AttachmentTarget":
        return cls(level=AttachmentLevel.USER, entity_id=user_id)

    def __str__(self) -> str:
        return f"{self.level.value}:{self.entity_id}"

