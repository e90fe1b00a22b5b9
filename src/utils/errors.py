"""Error taxonomy for the menu pipeline.

Every service raises one of these; the API layer maps them to HTTP responses
with a ``{"error": ..., "details": ...}`` body.
"""

from typing import Optional


class MenuServiceError(Exception):
    """Base class for errors with an HTTP mapping."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(MenuServiceError, ValueError):
    """Malformed or missing caller input. Message is safe to return verbatim."""

    status_code = 400


class UnauthorizedError(MenuServiceError):
    """Caller has no identity for an identity-bound operation."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[str] = None) -> None:
        super().__init__(message, details)


class RateLimitExceeded(MenuServiceError):
    """Admission control rejected the request.

    Carries the limiter decision so the response can include limit,
    remaining and reset information.
    """

    status_code = 429

    def __init__(self, result) -> None:
        super().__init__("Too many requests. Please try again later.")
        self.result = result


class UpstreamError(MenuServiceError):
    """The language model call failed or returned unusable content.

    ``details`` holds the underlying cause for server logs and non-production callers.
    """

    status_code = 500


class StorageError(MenuServiceError):
    """Writing an uploaded file failed."""

    status_code = 500
