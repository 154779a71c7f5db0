"""Ideogram Image Provider - Infrastructure Layer"""

import logging
from typing import Dict, Optional

from ...domain.entity.image import ImageGenerationRequest, ImageGenerationResponse
from .base import HttpImageProvider

logger = logging.getLogger(__name__)


def get_aspect_ratio(width: Optional[int] = None, height: Optional[int] = None) -> str:
    """Bucket a width/height ratio into one of Ideogram's aspect presets."""
    if not width or not height:
        return "ASPECT_1_1"

    ratio = width / height
    if ratio > 1.5:
        return "ASPECT_16_9"
    if ratio > 1.2:
        return "ASPECT_3_2"
    if ratio < 0.7:
        return "ASPECT_9_16"
    if ratio < 0.9:
        return "ASPECT_2_3"
    return "ASPECT_1_1"


def to_ideogram_model(model: str) -> str:
    """``ideogram-v2a-turbo`` -> ``IDEOGRAM_V2A_TURBO``"""
    return model.upper().replace("-", "_")


class IdeogramProvider(HttpImageProvider):
    """Ideogram 提供商实现 (synchronous JSON)"""

    name = "ideogram"
    default_base_url = "https://api.ideogram.ai"

    def _headers(self) -> Dict[str, str]:
        return {"Api-Key": self._api_key}

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        image_request = {
            "prompt": request.prompt,
            "model": to_ideogram_model(request.model),
            "aspect_ratio": get_aspect_ratio(request.width, request.height),
            "magic_prompt_option": "AUTO",
        }
        if request.negative_prompt:
            image_request["negative_prompt"] = request.negative_prompt
        if request.style:
            image_request["style_type"] = request.style.upper()

        data = await self._post_json("/generate", {"image_request": image_request})

        image = self._require(data, "data", 0)
        return ImageGenerationResponse(
            image_url=self._require(image, "url"),
            revised_prompt=image.get("prompt"),
            metadata={
                "aspect_ratio": image_request["aspect_ratio"],
                "seed": image.get("seed"),
            },
        )
