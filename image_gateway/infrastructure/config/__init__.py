"""Configuration Infrastructure"""

from .settings import (
    BillingConfig,
    LoggingConfig,
    ProviderConfig,
    ServerConfig,
    Settings,
    load_settings,
)

__all__ = [
    "Settings",
    "ServerConfig",
    "ProviderConfig",
    "LoggingConfig",
    "BillingConfig",
    "load_settings",
]
