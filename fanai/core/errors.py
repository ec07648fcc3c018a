"""
Error Taxonomy
Exceptions raised by the generation core and mapped to HTTP codes by the API layer.
"""

from typing import Optional


class FanAIError(Exception):
    """Base exception for core errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(FanAIError):
    """Bad input. Never retried."""


class InsufficientCreditsError(ValidationError):
    """User holds no credit for a new generation."""

    def __init__(self, user_id: str, remaining: int = 0):
        super().__init__("Insufficient credits", {"user_id": user_id, "remaining": remaining})


class NotFoundError(FanAIError):
    """Missing reference data or artifact."""


class ArtifactNotFound(NotFoundError):
    """Artifact is not recoverable through the date-partitioned path scheme."""


class UpstreamUnavailable(FanAIError):
    """External AI service or blob store failing transiently."""


class SynthesisError(FanAIError):
    """A pipeline step failed. Terminal for the job."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class InvalidTransitionError(FanAIError):
    """Job status change that is not allowed by the state machine."""


# ---- Blob store errors ----

class BlobStoreError(FanAIError):
    """Base class for blob store failures."""

    def __init__(self, message: str, path: str = "", status_code: Optional[int] = None):
        super().__init__(message, {"path": path, "status_code": status_code})
        self.path = path
        self.status_code = status_code


class BlobNotFound(BlobStoreError, NotFoundError):
    """Blob does not exist. A normal outcome when probing."""


class BlobConflict(BlobStoreError):
    """Expected revision does not match the current one."""


class RotationRequired(BlobStoreError):
    """The backing repository refuses writes; switch to a new one."""


class BlobForbidden(RotationRequired):
    """Write forbidden (typically repository size limit)."""


class BlobValidationFailed(RotationRequired):
    """Write rejected by validation (typically file or repository size)."""


class StorageFallbackUsed(UserWarning):
    """Soft warning: a local reference replaced the remote artifact location."""


__all__ = [
    "FanAIError",
    "ValidationError",
    "InsufficientCreditsError",
    "NotFoundError",
    "ArtifactNotFound",
    "UpstreamUnavailable",
    "SynthesisError",
    "InvalidTransitionError",
    "BlobStoreError",
    "BlobNotFound",
    "BlobConflict",
    "RotationRequired",
    "BlobForbidden",
    "BlobValidationFailed",
    "StorageFallbackUsed",
]
