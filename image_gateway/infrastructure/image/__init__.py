"""Image Provider Adapters"""

from .factory import PROVIDER_FACTORIES, build_dispatcher, create_image_providers

__all__ = ["PROVIDER_FACTORIES", "build_dispatcher", "create_image_providers"]
