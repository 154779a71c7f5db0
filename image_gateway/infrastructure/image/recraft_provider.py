"""Recraft Image Provider - Infrastructure Layer"""

from ...domain.entity.image import ImageGenerationRequest, ImageGenerationResponse
from .base import HttpImageProvider

DEFAULT_STYLE = "realistic_image"


class RecraftProvider(HttpImageProvider):
    """Recraft 提供商实现"""

    name = "recraft"
    default_base_url = "https://external.api.recraft.ai/v1"

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        width, height = request.size
        payload = {
            "prompt": request.prompt,
            "style": request.style or DEFAULT_STYLE,
            "size": f"{width}x{height}",
        }
        data = await self._post_json("/images/generations", payload)
        return ImageGenerationResponse(
            image_url=self._require(data, "data", 0, "url"),
            metadata={"style": payload["style"]},
        )
