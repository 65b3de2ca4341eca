"""Error taxonomy for the moderation engine.

Every error raised out of the engine derives from ``ModerationError`` and
carries the HTTP status the web layer should answer with.
"""

from __future__ import annotations

from typing import Any, Optional


class ModerationError(Exception):
    """Base class for engine errors."""

    status_code: int = 500
    default_error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.message, "code": self.error_code}
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(ModerationError):
    """Malformed or missing input. Never retried automatically."""

    status_code = 400
    default_error_code = "VALIDATION_ERROR"


class NotFoundError(ModerationError):
    """Unknown queue entry or content id."""

    status_code = 404
    default_error_code = "NOT_FOUND"


class ConflictError(ModerationError):
    """Lost a race on a queue entry, or the entry is already resolved."""

    status_code = 409
    default_error_code = "CONFLICT"


class InternalError(ModerationError):
    status_code = 500
    default_error_code = "INTERNAL_ERROR"


class DetectorFault(ModerationError):
    """A single detector failed.

    Caught by the analysis pipeline and recorded on the detector result;
    it never propagates to callers.
    """

    default_error_code = "DETECTOR_FAULT"

    def __init__(self, category: str, message: str) -> None:
        super().__init__(message, details={"category": category})
        self.category = category
