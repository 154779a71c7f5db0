"""Image Entities - Domain Layer"""

import base64
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union
from uuid import uuid4


@dataclass
class ImageRequestBase:
    """Fields shared by every image generation request variant."""

    prompt: str
    model: str
    width: Optional[int] = None
    height: Optional[int] = None
    style: Optional[str] = None
    negative_prompt: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if not self.prompt:
            raise ValueError("Prompt cannot be empty")

        if not self.model:
            raise ValueError("Model cannot be empty")

        if self.width is not None and self.width <= 0:
            raise ValueError("Width must be positive")

        if self.height is not None and self.height <= 0:
            raise ValueError("Height must be positive")

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) with the 1024 default applied."""
        return (self.width or 1024, self.height or 1024)


@dataclass
class TextToImageRequest(ImageRequestBase):
    """Generation from the prompt alone."""


@dataclass
class ImageToImageRequest(ImageRequestBase):
    """Generation conditioned on an input image.

    ``mask_image`` is only set by callers that construct an edit request
    explicitly; the structural classifier never produces it.
    """

    input_image: bytes = b""
    strength: Optional[float] = None
    mask_image: Optional[bytes] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.input_image:
            raise ValueError("Input image cannot be empty")

        if self.strength is not None and not (0.0 <= self.strength <= 1.0):
            raise ValueError("Strength must be between 0.0 and 1.0")


@dataclass
class VirtualTryOnRequest(ImageRequestBase):
    """Person image plus garment image, producing a composite."""

    person_image: bytes = b""
    garment_image: bytes = b""

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.person_image:
            raise ValueError("Person image cannot be empty")

        if not self.garment_image:
            raise ValueError("Garment image cannot be empty")


ImageGenerationRequest = Union[TextToImageRequest, ImageToImageRequest, VirtualTryOnRequest]


def build_image_request(
    prompt: str,
    model: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
    style: Optional[str] = None,
    negative_prompt: Optional[str] = None,
    input_image: Optional[bytes] = None,
    mask_image: Optional[bytes] = None,
    strength: Optional[float] = None,
) -> ImageGenerationRequest:
    """Pick the request variant from which images are present.

    Both images -> virtual try-on (input is the person, mask the garment),
    only the input image -> image-to-image, otherwise text-to-image.
    """
    common = dict(
        prompt=prompt,
        model=model,
        width=width,
        height=height,
        style=style,
        negative_prompt=negative_prompt,
    )
    if input_image and mask_image:
        return VirtualTryOnRequest(person_image=input_image, garment_image=mask_image, **common)
    if input_image:
        return ImageToImageRequest(input_image=input_image, strength=strength, **common)
    return TextToImageRequest(**common)


def describe_mode(request: ImageGenerationRequest) -> str:
    if isinstance(request, VirtualTryOnRequest):
        return "virtual-try-on"
    if isinstance(request, ImageToImageRequest):
        return "image-to-image"
    return "text-to-image"


def data_uri(image_bytes: bytes, mime_type: str = "image/png") -> str:
    """Encode raw image bytes as a ``data:`` URI."""
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


@dataclass
class ImageGenerationResponse:
    """图像生成响应实体"""

    image_url: str
    revised_prompt: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.image_url:
            raise ValueError("Image URL cannot be empty")

    @property
    def is_inline(self) -> bool:
        """True when the image is embedded as a data URI."""
        return self.image_url.startswith("data:")
