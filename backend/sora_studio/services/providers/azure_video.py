"""Azure OpenAI Sora video provider.

Azure wraps jobs in a "generations" resource: the finished asset lives under
the first generation's id, not the job id.

  POST {endpoint}/video/generations/jobs?api-version=V            → create job (JSON only)
  GET  {endpoint}/video/generations/jobs/{id}?api-version=V       → job status
  GET  {endpoint}/video/generations/{gen_id}/content/video?...    → finished MP4
"""

from __future__ import annotations

import logging
from typing import Any

from sora_studio.exceptions import ProviderContentError, ProviderRequestError
from sora_studio.services.providers.base import InputReference, VideoProvider

logger = logging.getLogger(__name__)


def parse_size(size: str) -> tuple[int, int]:
    """'1280x720' → (1280, 720)."""
    try:
        width, height = (int(part) for part in size.lower().split("x", 1))
    except ValueError as exc:
        raise ProviderRequestError(
            f"Invalid size {size!r}, expected WIDTHxHEIGHT", status_code=400
        ) from exc
    return width, height


class AzureVideoProvider(VideoProvider):
    name = "azure"

    @property
    def endpoint(self) -> str:
        if not self.settings.AZURE_ENDPOINT:
            raise ProviderRequestError("AZURE_ENDPOINT is not configured", status_code=500)
        return self.settings.AZURE_ENDPOINT.rstrip("/")

    @property
    def api_version(self) -> str:
        return self.settings.AZURE_API_VERSION

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "api-key": self.settings.AZURE_API_KEY,
        }

    def generate_url(self) -> str:
        return f"{self.endpoint}/video/generations/jobs?api-version={self.api_version}"

    def status_url(self, job_id: str) -> str:
        return f"{self.endpoint}/video/generations/jobs/{job_id}?api-version={self.api_version}"

    def generation_content_url(self, generation_id: str) -> str:
        return (
            f"{self.endpoint}/video/generations/{generation_id}"
            f"/content/video?api-version={self.api_version}"
        )

    async def create_job(
        self,
        *,
        prompt: str,
        model: str,
        seconds: str,
        size: str,
        input_reference: InputReference | None = None,
    ) -> dict[str, Any]:
        if input_reference is not None:
            logger.warning(
                "Azure provider ignores input reference %s", input_reference.filename
            )

        width, height = parse_size(size)
        try:
            n_seconds = int(seconds)
        except ValueError as exc:
            raise ProviderRequestError(
                f"Invalid seconds {seconds!r}", status_code=400
            ) from exc

        body = {
            "prompt": prompt,
            "n_variants": 1,
            "n_seconds": n_seconds,
            "height": height,
            "width": width,
            "model": model,
        }
        response = await self.client.post(self.generate_url(), headers=self.headers, json=body)
        return self._job_from_response(response, "generate")

    async def resolve_content_url(self, job_id: str, status_data: dict[str, Any]) -> str:
        generations = status_data.get("generations") or []
        if not generations or not generations[0].get("id"):
            raise ProviderContentError(
                "No generations found in video response", status_code=400
            )
        generation_id = generations[0]["id"]
        logger.info("Job %s resolved to generation %s", job_id, generation_id)
        return self.generation_content_url(generation_id)
