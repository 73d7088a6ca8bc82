"""
Domain errors raised by adapters and services.

Commands translate these into HTTP responses; nothing below the command
layer knows about status codes except where the provider supplied one.
"""

from __future__ import annotations

from typing import Optional


class MetaInboxError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(MetaInboxError):
    """Bad or missing webhook signature, verify token or shared token."""


class PayloadValidationError(MetaInboxError):
    """Malformed JSON or missing required fields."""


class ConfigurationError(MetaInboxError):
    """A setting required by the invoked feature is not configured."""


class UpstreamProviderError(MetaInboxError):
    """The messaging provider answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code or 502

    def __str__(self) -> str:
        return f"{self.message} (HTTP {self.status_code})"


class StorageUnavailableError(MetaInboxError):
    """The database could not be reached."""


class MediaResolutionError(MetaInboxError):
    """Media metadata lookup failed, or both download attempts failed."""

    def __init__(
        self, message: str, status_code: Optional[int] = None, body: str = ""
    ) -> None:
        super().__init__(message)
        self.status_code = status_code or 502
        self.body = body


class TranscodeError(MetaInboxError):
    """ffmpeg failed or timed out. Callers fall back to the original bytes."""
