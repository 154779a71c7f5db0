"""OpenAI Image Provider - Infrastructure Layer"""

import logging
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from ...domain.entity.image import (
    ImageGenerationRequest,
    ImageGenerationResponse,
    ImageToImageRequest,
    TextToImageRequest,
    VirtualTryOnRequest,
)
from ...domain.exceptions import MalformedProviderResponseError, ProviderError
from ...domain.repository.image_provider import ImageProvider
from .preprocessing import prepare_png_with_alpha

logger = logging.getLogger(__name__)


MODEL_MAPPING = {
    "gpt-image-1": "dall-e-3",
    "gpt-image-1-mini": "dall-e-3",
    "dall-e-3": "dall-e-3",
}

VALID_SIZES = ("1024x1024", "1792x1024", "1024x1792")


def get_valid_size(width: Optional[int] = None, height: Optional[int] = None) -> str:
    """Map a requested size onto the three sizes DALL-E 3 accepts.

    Landscape or portrait is only chosen when the long side reaches 1792;
    everything else is square.
    """
    w = width or 1024
    h = height or 1024

    if w > h and w >= 1792:
        return "1792x1024"
    if h > w and h >= 1792:
        return "1024x1792"
    return "1024x1024"


def map_model(model: str) -> str:
    return MODEL_MAPPING.get(model, "dall-e-3")


class OpenAIImageProvider(ImageProvider):
    """OpenAI 图像生成提供商实现"""

    name = "openai"
    supports_image_to_image = True

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        """初始化 OpenAI 图像提供商"""
        if client is None and not api_key:
            raise ValueError("openai API key cannot be empty")
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
        )

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        """生成图像"""
        if isinstance(request, VirtualTryOnRequest):
            logger.info("Using image edit mode with the garment image as mask")
            return await self._edit_image(request, request.person_image, request.garment_image)

        if isinstance(request, ImageToImageRequest):
            logger.info("Using image edit mode (img2img)")
            return await self._edit_image(request, request.input_image, request.mask_image)

        if isinstance(request, TextToImageRequest):
            logger.info("Using text-to-image mode")
            return await self._generate(request)

        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    async def _generate(self, request: TextToImageRequest) -> ImageGenerationResponse:
        size = get_valid_size(request.width, request.height)
        try:
            response = await self._client.images.generate(
                model=map_model(request.model),
                prompt=request.prompt,
                n=1,
                size=size,
                quality="standard",
            )
        except openai.APIStatusError as e:
            raise ProviderError(self.name, e.message, status_code=e.status_code, body=str(e.body)) from e
        except openai.APIError as e:
            raise ProviderError(self.name, str(e)) from e

        return self._to_response(response, size)

    async def _edit_image(
        self,
        request: ImageGenerationRequest,
        image: bytes,
        mask: Optional[bytes],
    ) -> ImageGenerationResponse:
        size = get_valid_size(request.width, request.height)

        processed_image = prepare_png_with_alpha(image)
        logger.info(f"Image preprocessed, size: {len(processed_image)} bytes")

        kwargs: dict = {
            "image": ("image.png", processed_image, "image/png"),
            "prompt": request.prompt,
            "n": 1,
            "size": size,
        }
        if mask:
            kwargs["mask"] = ("mask.png", prepare_png_with_alpha(mask), "image/png")

        try:
            response = await self._client.images.edit(**kwargs)
        except openai.APIStatusError as e:
            raise ProviderError(self.name, e.message, status_code=e.status_code, body=str(e.body)) from e
        except openai.APIError as e:
            raise ProviderError(self.name, str(e)) from e

        return self._to_response(response, size)

    def _to_response(self, response: Any, size: str) -> ImageGenerationResponse:
        data = getattr(response, "data", None)
        if not data:
            raise MalformedProviderResponseError(self.name, "OpenAI did not return an image.")

        image = data[0]
        if getattr(image, "url", None):
            image_url = image.url
        elif getattr(image, "b64_json", None):
            image_url = f"data:image/png;base64,{image.b64_json}"
        else:
            raise MalformedProviderResponseError(self.name, "OpenAI did not return an image URL.")

        return ImageGenerationResponse(
            image_url=image_url,
            revised_prompt=getattr(image, "revised_prompt", None) or None,
            metadata={"size": size},
        )
