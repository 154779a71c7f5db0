"""Image provider factory - Infrastructure Layer

Builds provider slots from a credentials map. A provider without a key is
left out, so its models become unsupported instead of failing startup.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from ...domain.repository.image_provider import ImageProvider, ProviderSlot
from ...domain.service.dispatcher import ImageDispatcher
from ...domain.service.model_registry import ModelRegistry
from .bfl_provider import BlackForestLabsProvider
from .google_provider import GoogleProvider
from .ideogram_provider import IdeogramProvider
from .leonardo_provider import LeonardoProvider
from .openai_image_provider import OpenAIImageProvider
from .pending import PENDING_INTEGRATIONS
from .recraft_provider import RecraftProvider
from .replicate_provider import ReplicateProvider
from .stability_provider import StabilityAIProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[..., ImageProvider]

PROVIDER_FACTORIES: Dict[str, ProviderFactory] = {
    "openai": OpenAIImageProvider,
    "stability": StabilityAIProvider,
    "google": GoogleProvider,
    "bfl": BlackForestLabsProvider,
    "leonardo": LeonardoProvider,
    "ideogram": IdeogramProvider,
    "recraft": RecraftProvider,
    "replicate": ReplicateProvider,
}


def create_image_providers(
    credentials: Mapping[str, str],
    options: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[str, ProviderSlot]:
    """创建图像提供商实例

    Args:
        credentials: {provider_name: api_key}
        options: {provider_name: constructor keyword arguments}

    Returns:
        {provider_name: provider or pending placeholder}
    """
    options = options or {}
    providers: Dict[str, ProviderSlot] = {}

    for name, api_key in credentials.items():
        if not api_key:
            logger.info(f"No API key for {name}, its models are unavailable")
            continue

        if name in PENDING_INTEGRATIONS:
            providers[name] = PENDING_INTEGRATIONS[name]
            logger.info(f"Registered {name} as pending integration")
            continue

        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            logger.warning(f"Ignoring credentials for unknown image provider '{name}'")
            continue

        kwargs = {k: v for k, v in (options.get(name) or {}).items() if v not in (None, "")}
        try:
            providers[name] = factory(api_key=api_key, **kwargs)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to initialize {name} image provider: {e}")
            continue
        logger.info(f"Initialized {name} image provider")

    return providers


def build_dispatcher(
    credentials: Mapping[str, str],
    options: Optional[Mapping[str, Mapping[str, Any]]] = None,
    registry: Optional[ModelRegistry] = None,
) -> ImageDispatcher:
    """Construct the dispatcher for a process from its credentials."""
    providers = create_image_providers(credentials, options)
    dispatcher = ImageDispatcher(providers=providers, registry=registry)
    logger.info(
        f"Image dispatcher initialized with {len(providers)} provider(s), "
        f"{len(dispatcher.get_supported_models())} supported model(s)"
    )
    return dispatcher
