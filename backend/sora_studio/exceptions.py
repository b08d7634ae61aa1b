"""Domain exceptions shared by services, background tasks and the API layer."""

from __future__ import annotations


class SoraStudioError(Exception):
    """Base exception for Sora Studio."""


class DatabaseTimeoutError(SoraStudioError):
    """A database operation did not finish within the configured timeout."""


class DatabaseConnectionError(SoraStudioError):
    """The database could not be reached (or dropped the connection)."""


class ProviderError(SoraStudioError):
    """Base class for video-provider failures.

    `status_code` mirrors the provider's HTTP status so the API can relay it.
    """

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ProviderRequestError(ProviderError):
    """The provider rejected a request or answered with a non-2xx status."""


class ProviderContentError(ProviderError):
    """A finished job's video content could not be located or downloaded."""


class StorageError(SoraStudioError):
    """Uploading to or deleting from object storage failed."""
