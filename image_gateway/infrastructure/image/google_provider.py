"""Google Vertex AI Image Provider - Infrastructure Layer"""

from typing import Optional

from ...domain.entity.image import ImageGenerationRequest, ImageGenerationResponse
from .base import HttpImageProvider

MODEL_MAPPING = {
    "gemini-nano-banana": "imagegeneration",
    "wan-2.5": "imagegeneration",
    "wan-v2.2": "imagegeneration",
    "imagen-3": "imagen-3.0-generate-001",
    "imagen-4": "imagen-4.0-generate-001",
}


def map_model(model: str) -> str:
    return MODEL_MAPPING.get(model, "imagegeneration")


def aspect_ratio_for(width: int, height: int) -> str:
    """Closest Imagen aspect ratio string."""
    ratio = width / height
    candidates = {"1:1": 1.0, "4:3": 4 / 3, "3:4": 3 / 4, "16:9": 16 / 9, "9:16": 9 / 16}
    return min(candidates, key=lambda name: abs(candidates[name] - ratio))


class GoogleProvider(HttpImageProvider):
    """Google Imagen 提供商实现 (Vertex AI predict endpoint)"""

    name = "google"

    def __init__(
        self,
        api_key: str,
        project: str = "",
        location: str = "us-central1",
        base_url: Optional[str] = None,
        **kwargs,
    ):
        """
        Args:
            api_key: OAuth access token used as bearer credential
            project: Google Cloud project id
            location: Vertex AI region
        """
        if not project:
            raise ValueError("google provider needs a project id")
        self._project = project
        self._location = location
        super().__init__(
            api_key,
            base_url=base_url or f"https://{location}-aiplatform.googleapis.com/v1",
            **kwargs,
        )

    def _predict_path(self, model: str) -> str:
        return (
            f"/projects/{self._project}/locations/{self._location}"
            f"/publishers/google/models/{model}:predict"
        )

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        model = map_model(request.model)
        width, height = request.size
        parameters = {
            "sampleCount": 1,
            "aspectRatio": aspect_ratio_for(width, height),
        }
        if request.negative_prompt:
            parameters["negativePrompt"] = request.negative_prompt

        data = await self._post_json(
            self._predict_path(model),
            {"instances": [{"prompt": request.prompt}], "parameters": parameters},
        )

        prediction = self._require(data, "predictions", 0)
        encoded = self._require(prediction, "bytesBase64Encoded")
        mime_type = prediction.get("mimeType", "image/png")
        return ImageGenerationResponse(
            image_url=f"data:{mime_type};base64,{encoded}",
            metadata={"model": model},
        )
