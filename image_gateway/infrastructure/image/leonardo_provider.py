"""Leonardo.Ai Image Provider - Infrastructure Layer"""

from typing import Any

from ...domain.entity.image import ImageGenerationRequest, ImageGenerationResponse
from .base import HttpImageProvider
from .polling import submit_then_poll

MODEL_IDS = {
    "leonardo-phoenix": "6bef9f1b-29cb-40c7-b9df-32b51c1f67d3",
    "leonardo-photoreal-v2": "ac614f96-1082-45bf-be9d-757f2d31c174",
    "leonardo-transparency": "aa77f04e-3eec-4034-9c07-d0f619684628",
}


def get_model_id(model: str) -> str:
    return MODEL_IDS.get(model, MODEL_IDS["leonardo-phoenix"])


class LeonardoProvider(HttpImageProvider):
    """Leonardo 提供商实现 (submit, then poll the generation)"""

    name = "leonardo"
    default_base_url = "https://cloud.leonardo.ai/api/rest/v1"

    def __init__(
        self,
        api_key: str,
        poll_interval: float = 2.0,
        max_poll_attempts: int = 30,
        **kwargs,
    ):
        super().__init__(api_key, **kwargs)
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        width, height = request.size
        payload = {
            "prompt": request.prompt,
            "modelId": get_model_id(request.model),
            "width": width,
            "height": height,
            "num_images": 1,
        }
        if request.negative_prompt:
            payload["negative_prompt"] = request.negative_prompt

        async def submit() -> str:
            data = await self._post_json("/generations", payload)
            return self._require(data, "sdGenerationJob", "generationId")

        async def poll(generation_id: str) -> Any:
            return await self._get_json(f"/generations/{generation_id}")

        def status(data: Any) -> str:
            generation = data.get("generations_by_pk")
            return generation.get("status", "") if isinstance(generation, dict) else ""

        data = await submit_then_poll(
            submit,
            poll,
            lambda d: status(d) == "COMPLETE",
            provider=self.name,
            interval=self._poll_interval,
            max_attempts=self._max_poll_attempts,
            is_failed=lambda d: "FAILED" if status(d) == "FAILED" else None,
        )

        generation = data["generations_by_pk"]
        image = self._require(generation, "generated_images", 0)
        return ImageGenerationResponse(
            image_url=self._require(image, "url"),
            metadata={"generationId": generation.get("id")},
        )
