"""
Authorization schemas: effective statements, decisions and results.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .policy import AttachmentLevel, Statement


class Decision(str, Enum):
    """Final outcome of an authorization check."""
    ALLOW = "Allow"
    DENY = "Deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


class EffectiveStatement(BaseModel):
    """A statement together with where it was attached."""
    model_config = ConfigDict(frozen=True)

    statement: Statement
    level: AttachmentLevel
    entity_id: str
    policy_id: str
    policy_version: Optional[str] = None


class AuthorizationResult(BaseModel):
    """Result of an authorization check, with audit detail."""
    decision: Decision
    user_id: str
    organization_id: str
    action: str
    resource: str
    matched: List[EffectiveStatement] = Field(default_factory=list)
    reason: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.decision.allowed

    @property
    def denied(self) -> bool:
        return not self.allowed


class AccessCheck(BaseModel):
    """One (action, resource) pair."""
    action: str = Field(..., min_length=1)
    resource: str = Field(..., min_length=1)


class CheckResponse(BaseModel):
    """Response body of the check endpoint."""
    access: bool
    decision: Decision
    error_code: Optional[str] = None


class GrantedActionsRequest(BaseModel):
    """Request body of the list endpoint. ``actions`` defaults to the reference catalog."""
    resource: str = Field(..., min_length=1)
    actions: Optional[List[str]] = None


class GrantedActionsResponse(BaseModel):
    """Response body of the list endpoint."""
    resource: str
    actions: List[str]
