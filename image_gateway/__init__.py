"""Image Gateway: multi-provider image generation with credit accounting."""

__version__ = "0.1.0"
