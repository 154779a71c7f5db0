"""Replicate Image Provider - Infrastructure Layer

Runs hosted models through the predictions API. The request variant picks
the mode: virtual try-on, image-to-image or text-to-image.
"""

import logging
import random
from typing import Any, Dict

from ...domain.entity.image import (
    ImageGenerationRequest,
    ImageGenerationResponse,
    ImageToImageRequest,
    TextToImageRequest,
    VirtualTryOnRequest,
    data_uri,
)
from ...domain.exceptions import MalformedProviderResponseError
from .base import HttpImageProvider
from .polling import submit_then_poll

logger = logging.getLogger(__name__)

IDM_VTON = "yisol/idm-vton:c871bb9b046607b680449ecbae55fd8c6d945e0a1948644bf2361b3d021d3ff4"
SDXL = "stability-ai/sdxl:39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b"

MODEL_VERSIONS = {
    "viton-hd": IDM_VTON,
    "idm-vton": IDM_VTON,
    "oot-diffusion": "cuuupid/idm-vton:c6a5c7fdced7e41072e7267930e65c2d6f4e9a4e2b5c9e0eda3f5b7d7f2d1e1a",
    "sdxl": SDXL,
    "replicate-default": SDXL,
}

TERMINAL_FAILURES = ("failed", "canceled")


def map_model(model: str) -> str:
    return MODEL_VERSIONS.get(model, IDM_VTON)


def extract_output_url(output: Any) -> str:
    """Replicate models return a list of URLs, a single URL or {"output": url}."""
    if isinstance(output, list) and output:
        return extract_output_url(output[0])
    if isinstance(output, str) and output:
        return output
    if isinstance(output, dict) and output.get("output"):
        return extract_output_url(output["output"])
    raise MalformedProviderResponseError("replicate", f"Unexpected output format from Replicate: {output!r}")


class ReplicateProvider(HttpImageProvider):
    """Replicate 提供商实现 (virtual try-on / img2img / text2img)"""

    name = "replicate"
    default_base_url = "https://api.replicate.com/v1"
    supports_image_to_image = True

    def __init__(
        self,
        api_key: str,
        poll_interval: float = 1.0,
        max_poll_attempts: int = 60,
        **kwargs,
    ):
        super().__init__(api_key, **kwargs)
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        model = map_model(request.model)

        if isinstance(request, VirtualTryOnRequest):
            logger.info(f"Using virtual try-on mode with {model}")
            model_input = self._virtual_try_on_input(request, model)
        elif isinstance(request, ImageToImageRequest):
            logger.info(f"Using image-to-image mode with {model}")
            model_input = self._image_to_image_input(request)
        elif isinstance(request, TextToImageRequest):
            logger.info(f"Using text-to-image mode with {model}")
            model_input = self._text_to_image_input(request)
        else:
            raise TypeError(f"Unsupported request type: {type(request).__name__}")

        prediction = await self._run(model, model_input)
        return ImageGenerationResponse(
            image_url=extract_output_url(prediction.get("output")),
            revised_prompt=request.prompt,
            metadata={"prediction_id": prediction.get("id"), "model": model},
        )

    def _virtual_try_on_input(self, request: VirtualTryOnRequest, model: str) -> Dict[str, Any]:
        model_input: Dict[str, Any] = {
            "human_img": data_uri(request.person_image),
            "garm_img": data_uri(request.garment_image),
            "garment_des": request.prompt or "a garment",
        }
        if "idm-vton" in model:
            model_input.update(
                category="upper_body",
                n_samples=1,
                n_steps=20,
                image_scale=1.0,
                seed=random.randint(0, 999999),
            )
        return model_input

    def _image_to_image_input(self, request: ImageToImageRequest) -> Dict[str, Any]:
        model_input: Dict[str, Any] = {
            "prompt": request.prompt,
            "image": data_uri(request.input_image),
            "num_outputs": 1,
        }
        if request.strength is not None:
            model_input["prompt_strength"] = request.strength
        if request.mask_image:
            model_input["mask"] = data_uri(request.mask_image)
        return model_input

    def _text_to_image_input(self, request: TextToImageRequest) -> Dict[str, Any]:
        width, height = request.size
        model_input: Dict[str, Any] = {
            "prompt": request.prompt,
            "num_outputs": 1,
            "width": width,
            "height": height,
        }
        if request.negative_prompt:
            model_input["negative_prompt"] = request.negative_prompt
        return model_input

    async def _run(self, model: str, model_input: Dict[str, Any]) -> Dict[str, Any]:
        """Create a prediction for ``owner/name:version`` and wait for it."""
        version = model.split(":", 1)[1] if ":" in model else model

        async def submit() -> str:
            data = await self._post_json("/predictions", {"version": version, "input": model_input})
            return self._require(data, "id")

        async def poll(prediction_id: str) -> Any:
            return await self._get_json(f"/predictions/{prediction_id}")

        def failure(data: Any) -> Any:
            if data.get("status") in TERMINAL_FAILURES:
                return data.get("error") or data.get("status")
            return None

        return await submit_then_poll(
            submit,
            poll,
            lambda d: d.get("status") == "succeeded",
            provider=self.name,
            interval=self._poll_interval,
            max_attempts=self._max_poll_attempts,
            is_failed=failure,
        )
