"""Image Dispatcher Domain Service - Domain Layer"""

import logging
from typing import Dict, List, Optional

from ..entity.image import (
    ImageGenerationRequest,
    ImageGenerationResponse,
    ImageToImageRequest,
    VirtualTryOnRequest,
    describe_mode,
)
from ..exceptions import (
    ImageGenerationError,
    ProviderNotConfiguredError,
    ProviderNotImplementedError,
    UnknownModelError,
)
from ..repository.image_provider import PendingIntegration, ProviderSlot
from .model_registry import ModelRegistry

logger = logging.getLogger(__name__)


class ImageDispatcher:
    """图像分发服务

    Resolves the provider of a model key and forwards the request to it.
    Holds no mutable state after construction, so one instance serves all
    concurrent requests.
    """

    def __init__(
        self,
        providers: Dict[str, ProviderSlot],
        registry: Optional[ModelRegistry] = None,
    ):
        """
        Args:
            providers: {provider_name: provider or pending placeholder}; only
                providers with a configured credential are present.
            registry: model key table, the built-in one by default.
        """
        self._providers = dict(providers)
        self._registry = registry or ModelRegistry()

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        """生成图像

        Raises:
            UnknownModelError: model key not in the registry
            ProviderNotConfiguredError: provider has no credential
            ProviderNotImplementedError: provider integration is pending
            ImageGenerationError: the adapter failed; the model key is attached
        """
        provider_name = self._registry.resolve_provider(request.model)
        if provider_name is None:
            raise UnknownModelError(request.model)

        slot = self._providers.get(provider_name)
        if slot is None:
            raise ProviderNotConfiguredError(provider_name, model=request.model)

        if isinstance(slot, PendingIntegration):
            raise ProviderNotImplementedError(slot.provider, slot.reason).for_model(request.model)

        logger.info(
            f"Using provider {provider_name} for model {request.model} "
            f"(mode={describe_mode(request)}, img2img={slot.supports_image_to_image})"
        )
        if isinstance(request, ImageToImageRequest):
            logger.debug(f"Input image size: {len(request.input_image)} bytes")
        elif isinstance(request, VirtualTryOnRequest):
            logger.debug(
                f"Person image: {len(request.person_image)} bytes, "
                f"garment image: {len(request.garment_image)} bytes"
            )

        try:
            return await slot.generate_image(request)
        except ImageGenerationError as e:
            raise e.for_model(request.model) from e
        except Exception as e:
            logger.error(f"Unexpected error from {provider_name}: {e}", exc_info=True)
            raise ImageGenerationError(
                str(e), provider=provider_name
            ).for_model(request.model) from e

    def get_provider_for_model(self, model_key: str) -> Optional[str]:
        return self._registry.resolve_provider(model_key)

    def is_model_supported(self, model_key: str) -> bool:
        """Mapped in the registry and its provider is configured."""
        provider_name = self._registry.resolve_provider(model_key)
        return provider_name is not None and provider_name in self._providers

    def get_supported_models(self) -> List[str]:
        return [m for m in self._registry.model_keys() if self.is_model_supported(m)]

    def get_models_by_provider(self, provider_name: str) -> List[str]:
        if provider_name not in self._providers:
            return []
        return self._registry.models_for_provider(provider_name)

    def provider_status(self) -> Dict[str, str]:
        """{provider_name: "ready" | "pending"} for configured providers."""
        return {
            name: "pending" if isinstance(slot, PendingIntegration) else "ready"
            for name, slot in self._providers.items()
        }
