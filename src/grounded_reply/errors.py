"""Error hierarchy for the suggestion-grounding core.

Every failure the core surfaces is a :class:`GroundedReplyError` carrying
a machine-readable ``error_code`` and a ``context`` dict (document id,
suggestion id, stage, …) so that a failed request can be resumed by hand.
"""

from __future__ import annotations

from typing import Any


class GroundedReplyError(Exception):
    """Base class for all application errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code (e.g., "NOT_FOUND")
        context: Additional context dict for debugging
    """

    default_code = "INTERNAL"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.context = dict(context) if context is not None else {}
        if kwargs:
            self.context.update(kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/reporting."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": dict(self.context),
        }


class InvalidInput(GroundedReplyError):
    """Bad request shape (empty text, missing ids, mismatched vectors)."""

    default_code = "INVALID_INPUT"


class UnsupportedMedia(GroundedReplyError):
    """Upload media type is not in the allow-list."""

    default_code = "UNSUPPORTED_MEDIA"


class PayloadTooLarge(GroundedReplyError):
    """Upload exceeds the size ceiling."""

    default_code = "PAYLOAD_TOO_LARGE"


class ExtractionError(GroundedReplyError):
    """Text could not be extracted from an uploaded file."""

    default_code = "EXTRACTION_FAILED"


class EmbeddingUnavailable(GroundedReplyError):
    """Embedding provider failed, timed out or returned a malformed vector."""

    default_code = "EMBEDDING_UNAVAILABLE"


class GenerationUnavailable(GroundedReplyError):
    """Generation provider failed, timed out or returned nothing."""

    default_code = "GENERATION_UNAVAILABLE"


class NotFound(GroundedReplyError):
    """Requested record does not exist for this user."""

    default_code = "NOT_FOUND"


class StoreReadError(GroundedReplyError):
    """A store could not be read; nothing was changed."""

    default_code = "STORE_READ_FAILED"


class StoreWriteError(GroundedReplyError):
    """Persistence failed; always terminal for the current request."""

    default_code = "STORE_WRITE_FAILED"


class EnhancementCancelled(GroundedReplyError):
    """The caller abandoned the enhancement before anything was persisted."""

    default_code = "CANCELLED"
