"""
Domain schemas for PolicyGate.
"""

from .authorization import *
from .organization import *
from .policy import *

__all__ = [
    # Organization schemas
    "Organization",
    "Team",
    "User",
    "PATH_SEPARATOR",
    "child_path",

    # Policy schemas
    "Effect",
    "Statement",
    "Policy",
    "AttachmentLevel",
    "AttachmentTarget",

    # Authorization schemas
    "Decision",
    "EffectiveStatement",
    "AuthorizationResult",
    "AccessCheck",
    "CheckResponse",
    "GrantedActionsRequest",
    "GrantedActionsResponse",
]
