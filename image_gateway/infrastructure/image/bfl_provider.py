"""Black Forest Labs (FLUX) Image Provider - Infrastructure Layer"""

import base64
import logging
from typing import Any, Dict, Optional

from ...domain.entity.image import (
    ImageGenerationRequest,
    ImageGenerationResponse,
    ImageToImageRequest,
    VirtualTryOnRequest,
)
from .base import HttpImageProvider
from .polling import submit_then_poll

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "flux-pro": "/v1/flux-pro",
    "flux-1.1-pro": "/v1/flux-pro-1.1",
    "flux-1.1-pro-ultra": "/v1/flux-pro-1.1-ultra",
    "flux-kontext": "/v1/flux-kontext-pro",
    "flux-kontext-max": "/v1/flux-kontext-max",
}

KONTEXT_MODELS = ("flux-kontext", "flux-kontext-max")

FAILED_STATUSES = ("Error", "Content Moderated", "Request Moderated", "Task not found")


class BlackForestLabsProvider(HttpImageProvider):
    """Black Forest Labs 提供商实现 (submit, then poll get_result)"""

    name = "bfl"
    default_base_url = "https://api.bfl.ml"
    supports_image_to_image = True

    def __init__(
        self,
        api_key: str,
        poll_interval: float = 1.0,
        max_poll_attempts: int = 30,
        **kwargs,
    ):
        super().__init__(api_key, **kwargs)
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts

    def _headers(self) -> Dict[str, str]:
        return {"X-Key": self._api_key}

    def _payload(self, request: ImageGenerationRequest) -> Dict[str, Any]:
        width, height = request.size
        payload: Dict[str, Any] = {"prompt": request.prompt}

        if request.model in KONTEXT_MODELS:
            if isinstance(request, ImageToImageRequest):
                payload["input_image"] = base64.b64encode(request.input_image).decode("utf-8")
            elif isinstance(request, VirtualTryOnRequest):
                logger.warning(f"{request.model} does not do virtual try-on, generating from the prompt only")
        else:
            if isinstance(request, (ImageToImageRequest, VirtualTryOnRequest)):
                logger.warning(f"{request.model} has no image input, generating from the prompt only")
            payload["width"] = width
            payload["height"] = height
        return payload

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        endpoint = ENDPOINTS.get(request.model, ENDPOINTS["flux-pro"])
        payload = self._payload(request)

        result_id: Optional[str] = None

        async def submit() -> str:
            nonlocal result_id
            data = await self._post_json(endpoint, payload)
            result_id = self._require(data, "id")
            return result_id

        async def poll(job_id: str) -> Any:
            return await self._get_json("/v1/get_result", params={"id": job_id})

        data = await submit_then_poll(
            submit,
            poll,
            lambda d: d.get("status") == "Ready",
            provider=self.name,
            interval=self._poll_interval,
            max_attempts=self._max_poll_attempts,
            is_failed=lambda d: d.get("status") if d.get("status") in FAILED_STATUSES else None,
        )

        return ImageGenerationResponse(
            image_url=self._require(data, "result", "sample"),
            metadata={"id": result_id},
        )
