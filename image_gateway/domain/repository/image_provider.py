"""Image Provider Repository Interface - Domain Layer"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union

from ..entity.image import ImageGenerationRequest, ImageGenerationResponse


class ImageProvider(ABC):
    """图像生成提供商接口

    One implementation per vendor. Credentials are fixed at construction and
    instances are shared across concurrent requests.
    """

    name: str = ""
    supports_image_to_image: bool = False

    @abstractmethod
    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        """生成图像

        Args:
            request: 图像生成请求 (one of the request variants)

        Returns:
            图像生成响应

        Raises:
            ImageGenerationError: the most specific subclass for the failure
        """
        pass


@dataclass(frozen=True)
class PendingIntegration:
    """A registered vendor whose integration has not been built yet.

    Listing and selection can show its models, but the dispatcher refuses to
    invoke it.
    """

    provider: str
    reason: str


ProviderSlot = Union[ImageProvider, PendingIntegration]
