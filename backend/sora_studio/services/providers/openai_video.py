"""OpenAI Sora video provider.

Endpoints:
  POST {base}/videos                 → create job (JSON, or multipart with a reference image)
  GET  {base}/videos/{id}            → job status
  GET  {base}/videos/{id}/content    → finished MP4
  POST {base}/videos/{id}/remix      → derive a new job from a finished one
"""

from __future__ import annotations

import logging
from typing import Any

from sora_studio.services.providers.base import InputReference, VideoProvider

logger = logging.getLogger(__name__)


class OpenAIVideoProvider(VideoProvider):
    name = "openai"
    supports_remix = True

    @property
    def base_url(self) -> str:
        return self.settings.OPENAI_BASE_URL.rstrip("/")

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.OPENAI_API_KEY}"}

    def generate_url(self) -> str:
        return f"{self.base_url}/videos"

    def status_url(self, job_id: str) -> str:
        return f"{self.base_url}/videos/{job_id}"

    def content_url(self, job_id: str) -> str:
        return f"{self.base_url}/videos/{job_id}/content"

    async def create_job(
        self,
        *,
        prompt: str,
        model: str,
        seconds: str,
        size: str,
        input_reference: InputReference | None = None,
    ) -> dict[str, Any]:
        fields = {"model": model, "prompt": prompt, "seconds": seconds, "size": size}

        if input_reference is not None:
            # httpx sets the multipart boundary itself
            files = {
                "input_reference": (
                    input_reference.filename,
                    input_reference.content,
                    input_reference.content_type,
                )
            }
            response = await self.client.post(
                self.generate_url(), headers=self.headers, data=fields, files=files
            )
        else:
            response = await self.client.post(
                self.generate_url(), headers=self.headers, json=fields
            )
        return self._job_from_response(response, "generate")

    async def remix_job(self, job_id: str, prompt: str) -> dict[str, Any]:
        response = await self.client.post(
            f"{self.base_url}/videos/{job_id}/remix",
            headers=self.headers,
            json={"prompt": prompt},
        )
        return self._job_from_response(response, "remix")

    async def resolve_content_url(self, job_id: str, status_data: dict[str, Any]) -> str:
        return self.content_url(job_id)
