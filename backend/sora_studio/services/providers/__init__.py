"""Video provider implementations.

Each provider implements the async job pattern:
  POST create job → poll status → download content

The active provider is chosen statically by `AI_PROVIDER`.
"""

from __future__ import annotations

import httpx

from sora_studio.config import Settings, get_settings
from sora_studio.services.providers.azure_video import AzureVideoProvider
from sora_studio.services.providers.base import (
    InputReference,
    VideoProvider,
    format_job_error,
    is_failed,
    is_succeeded,
)
from sora_studio.services.providers.openai_video import OpenAIVideoProvider

PROVIDERS: dict[str, type[VideoProvider]] = {
    "openai": OpenAIVideoProvider,
    "azure": AzureVideoProvider,
}


def get_provider(
    http_client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
) -> VideoProvider:
    """Instantiate the configured provider (falls back to OpenAI for unknown names)."""
    settings = settings or get_settings()
    provider_cls = PROVIDERS.get(settings.AI_PROVIDER.lower(), OpenAIVideoProvider)
    return provider_cls(settings=settings, http_client=http_client)


__all__ = [
    "AzureVideoProvider",
    "InputReference",
    "OpenAIVideoProvider",
    "PROVIDERS",
    "VideoProvider",
    "format_job_error",
    "get_provider",
    "is_failed",
    "is_succeeded",
]
