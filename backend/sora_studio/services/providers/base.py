from __future__ import annotations
"""Shared provider plumbing: HTTP client ownership, error extraction, job-status helpers."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from sora_studio.config import Settings, get_settings
from sora_studio.exceptions import ProviderContentError, ProviderRequestError

logger = logging.getLogger(__name__)

SUCCEEDED_STATUSES = frozenset({"succeeded", "completed"})
FAILED_STATUSES = frozenset({"failed", "error"})


@dataclass(frozen=True)
class InputReference:
    """Reference image uploaded alongside a prompt."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


def is_succeeded(status: str | None) -> bool:
    return (status or "").lower() in SUCCEEDED_STATUSES


def is_failed(status: str | None) -> bool:
    return (status or "").lower() in FAILED_STATUSES


def format_job_error(status_data: dict[str, Any]) -> str:
    """Render a failed job's error payload as a single storable string."""
    details = status_data.get("error") or status_data.get("failure_reason")
    if not details:
        return "No error details provided"
    if isinstance(details, dict):
        code = details.get("code") or "unknown_error"
        message = details.get("message") or "Unknown error occurred"
        return f"{code}: {message}"
    return str(details)


def extract_error_message(response: httpx.Response) -> str:
    """Best-effort error text from a provider error response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase or "Unknown error"
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if payload.get("message"):
            return str(payload["message"])
    return "Unknown error"


class VideoProvider(ABC):
    """Maps the logical provider onto concrete URLs, headers and payloads.

    Use as an async context manager. A caller-supplied `http_client` is left
    open; otherwise the provider creates one and closes it on exit.
    """

    name: str = "unknown"
    supports_remix: bool = False

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = http_client
        self._own_client = http_client is None

    async def __aenter__(self) -> "VideoProvider":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.PROVIDER_TIMEOUT)
            self._own_client = True
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._own_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(f"{self.name} provider used outside of 'async with'")
        return self._client

    # --- Provider-specific shape ---

    @property
    @abstractmethod
    def headers(self) -> dict[str, str]:
        """Auth headers sent with every request."""

    @abstractmethod
    def generate_url(self) -> str: ...

    @abstractmethod
    def status_url(self, job_id: str) -> str: ...

    @abstractmethod
    async def create_job(
        self,
        *,
        prompt: str,
        model: str,
        seconds: str,
        size: str,
        input_reference: InputReference | None = None,
    ) -> dict[str, Any]:
        """Submit a generation job; returns the provider's job payload (with `id`)."""

    @abstractmethod
    async def resolve_content_url(self, job_id: str, status_data: dict[str, Any]) -> str:
        """URL of the finished video's bytes."""

    async def remix_job(self, job_id: str, prompt: str) -> dict[str, Any]:
        raise ProviderRequestError(
            f"Remix is not supported by the {self.name} provider", status_code=400
        )

    # --- Common operations ---

    async def get_status(self, job_id: str) -> dict[str, Any]:
        """Query the job-status endpoint. Non-2xx raises ProviderRequestError."""
        response = await self.client.get(self.status_url(job_id), headers=self.headers)
        if not response.is_success:
            raise ProviderRequestError(
                extract_error_message(response),
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            logger.warning(
                "%s returned a non-JSON status for job %s: %.100s",
                self.name, job_id, response.text,
            )
            raise ProviderRequestError(
                "Invalid status response from provider", status_code=502
            ) from exc

    async def download_content(self, job_id: str, status_data: dict[str, Any]) -> bytes:
        """Download the finished video's bytes."""
        url = await self.resolve_content_url(job_id, status_data)
        logger.info("Downloading video content for job %s", job_id)
        response = await self.client.get(
            url,
            headers=self.headers,
            timeout=self.settings.DOWNLOAD_TIMEOUT,
            follow_redirects=True,
        )
        if not response.is_success:
            raise ProviderContentError(
                f"Failed to download video content: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        content = response.content
        logger.info(
            "Downloaded video for job %s (%.2f MB)", job_id, len(content) / (1024 * 1024)
        )
        return content

    def _job_from_response(self, response: httpx.Response, action: str) -> dict[str, Any]:
        """Validate a job-creation response and return its payload."""
        if not response.is_success:
            message = extract_error_message(response)
            logger.error(
                "%s %s failed: HTTP %d %s", self.name, action, response.status_code, message
            )
            raise ProviderRequestError(
                f"Failed to {action} video: {message}", status_code=response.status_code
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderRequestError(
                f"Failed to {action} video: invalid response from provider", status_code=502
            ) from exc
        if not data.get("id"):
            raise ProviderRequestError("No job ID in response", status_code=500)
        logger.info(
            "%s %s job created: %s (status=%s)",
            self.name, action, data["id"], data.get("status", "unknown"),
        )
        return data
