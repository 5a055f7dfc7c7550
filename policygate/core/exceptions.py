"""
Custom exceptions for the authorization engine.

Every failure the engine can surface is one of three kinds: a referenced
entity is missing (NotFoundError), stored data violates an integrity rule
(CorruptStateError and subclasses), or the persistence collaborator could
not answer (StoreUnavailableError). None of them is ever turned into an
allow.
"""
from typing import Any, Dict, Optional


class PolicyGateException(Exception):
    """Base exception for all PolicyGate exceptions."""

    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(PolicyGateException):
    """Referenced organization, team, user or policy does not exist."""

    error_code = "not_found"

    def __init__(self, resource: str, resource_id: Any):
        message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message,
            status_code=404,
            details={"resource": resource, "resource_id": str(resource_id)},
        )
        self.resource = resource
        self.resource_id = resource_id


class CorruptStateError(PolicyGateException):
    """Stored data is inconsistent. Fatal to the request."""

    error_code = "corrupt_state"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=500, details=details)


class DanglingAttachmentError(CorruptStateError):
    """A policy attachment points at a missing or foreign policy."""

    error_code = "dangling_attachment"

    def __init__(self, level: str, entity_id: Any, policy_id: Any, reason: str = "missing"):
        super().__init__(
            f"{level} {entity_id} has a {reason} policy attachment {policy_id}",
            details={
                "level": level,
                "entity_id": str(entity_id),
                "policy_id": str(policy_id),
                "reason": reason,
            },
        )


class CorruptHierarchyError(CorruptStateError):
    """A team Path is malformed."""

    error_code = "corrupt_hierarchy"

    def __init__(self, team_id: Any, reason: str):
        super().__init__(
            f"Team {team_id} has a malformed hierarchy path: {reason}",
            details={"team_id": str(team_id), "reason": reason},
        )
        self.team_id = team_id
        self.reason = reason


class StoreUnavailableError(PolicyGateException):
    """Persistence collaborator failed or timed out. Retryable."""

    error_code = "store_unavailable"

    def __init__(self, store: str, message: str):
        full_message = f"Store unavailable ({store}): {message}"
        super().__init__(full_message, status_code=503, details={"store": store})


class CacheUnavailableError(StoreUnavailableError):
    """The effective set cache could not apply an invalidation."""

    error_code = "cache_unavailable"

    def __init__(self, message: str):
        super().__init__("cache", message)
