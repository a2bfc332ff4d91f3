"""
Shared error types for core services.
"""

from typing import Optional


class ValidationIssue(ValueError):
    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
        error_code: str | None = None,
        data: dict | None = None,
    ):
        super().__init__(message)
        self.field = field
        self.error_type = error_type
        self.error_code = error_code
        self.data = data


class Unauthenticated(PermissionError):
    """Raised when no caller identity can be resolved for a request."""


class StoreUnavailable(RuntimeError):
    """Raised when the remote memory store cannot be reached or fails."""

    def __init__(self, message: str, operation: str = "unknown", status_code: Optional[int] = None):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code


class StoreTimeout(StoreUnavailable):
    """Raised when a remote store call exceeds its timeout."""


class MemoryNotFound(LookupError):
    def __init__(self, memory_id: str):
        super().__init__(f"memory {memory_id} not found")
        self.memory_id = memory_id


class UpdateFailed(RuntimeError):
    """Base for update workflow failures; `step` names the failing state transition."""

    step = "unknown"
    data_lost = False

    def __init__(self, message: str, memory_id: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.memory_id = memory_id
        self.cause = cause


class DeleteFailed(UpdateFailed):
    """The delete step failed; `verified` is False when the original's state is unknown."""

    step = "delete"

    def __init__(
        self,
        message: str,
        memory_id: str,
        cause: Optional[BaseException] = None,
        verified: bool = True,
    ):
        super().__init__(message, memory_id, cause)
        self.verified = verified


class RecreateFailed(UpdateFailed):
    """The original was deleted but the replacement could not be written."""

    step = "recreate"
    data_lost = True

    def __init__(
        self,
        message: str,
        memory_id: str,
        lost_text: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, memory_id, cause)
        self.lost_text = lost_text
