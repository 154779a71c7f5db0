"""Configuration Management - Infrastructure Layer

YAML file first, environment variables on top. Every vendor key has its own
variable; a missing or empty key disables the vendor without failing startup.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from dataclasses import dataclass, field
import yaml


API_KEY_ENV_VARS: Dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "stability": "STABILITY_API_KEY",
    "google": "GOOGLE_API_KEY",
    "bfl": "BFL_API_KEY",
    "leonardo": "LEONARDO_API_KEY",
    "ideogram": "IDEOGRAM_API_KEY",
    "bytedance": "BYTEDANCE_API_KEY",
    "midjourney": "MIDJOURNEY_API_KEY",
    "runway": "RUNWAY_API_KEY",
    "tencent": "TENCENT_API_KEY",
    "xai": "XAI_API_KEY",
    "luma": "LUMA_API_KEY",
    "recraft": "RECRAFT_API_KEY",
    "replicate": "REPLICATE_API_TOKEN",
}

CONFIG_ENV_VAR = "IMAGE_GATEWAY_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config" / "config.yaml"


@dataclass
class ServerConfig:
    """服务器配置"""
    host: str = "0.0.0.0"
    grpc_port: int = 50051
    environment: str = "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ServerConfig":
        return cls(
            host=data.get("host", cls.host),
            grpc_port=int(data.get("grpc_port", cls.grpc_port)),
            environment=os.getenv("APP_ENV") or data.get("environment", cls.environment),
        )


@dataclass
class ProviderConfig:
    """图像提供商配置"""
    api_key: str = ""
    base_url: str = ""
    enabled: bool = True
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "ProviderConfig":
        # 环境变量优先于配置文件
        env_var = API_KEY_ENV_VARS.get(name, f"{name.upper()}_API_KEY")
        return cls(
            api_key=os.getenv(env_var) or data.get("api_key") or "",
            base_url=data.get("base_url") or "",
            enabled=bool(data.get("enabled", True)),
            options=dict(data.get("options") or {}),
        )


@dataclass
class LoggingConfig:
    """日志配置"""
    level: str = "INFO"
    format: str = "json"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LoggingConfig":
        return cls(
            level=os.getenv("LOG_LEVEL") or data.get("level", cls.level),
            format=data.get("format", cls.format),
        )


@dataclass
class BillingConfig:
    """积分配置"""
    default_credits: int = 100

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BillingConfig":
        return cls(default_credits=int(data.get("default_credits", cls.default_credits)))


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@dataclass
class Settings:
    """应用配置"""
    server: ServerConfig = field(default_factory=ServerConfig)
    providers: Dict[str, ProviderConfig] = field(default_factory=dict)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    billing: BillingConfig = field(default_factory=BillingConfig)
    models: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """加载配置

        Args:
            config_path: 配置文件路径（默认读取 IMAGE_GATEWAY_CONFIG 或 config/config.yaml）

        Returns:
            配置对象
        """
        if config_path is None:
            env_path = os.getenv(CONFIG_ENV_VAR)
            config_path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

        data = _read_yaml(config_path)
        providers_data = data.get("providers") or {}

        # vendors known only through their env var still get an entry
        names = dict.fromkeys([*API_KEY_ENV_VARS, *providers_data])

        return cls(
            server=ServerConfig.from_dict(data.get("server") or {}),
            providers={
                name: ProviderConfig.from_dict(name, providers_data.get(name) or {})
                for name in names
            },
            logging=LoggingConfig.from_dict(data.get("logging") or {}),
            billing=BillingConfig.from_dict(data.get("billing") or {}),
            models=list(data.get("models") or []),
        )

    def credentials(self) -> Dict[str, str]:
        """{provider_name: api_key} for enabled providers (keys may be empty)."""
        return {
            name: provider.api_key
            for name, provider in self.providers.items()
            if provider.enabled
        }

    def provider_options(self) -> Dict[str, Dict[str, Any]]:
        """Constructor keyword arguments per provider."""
        options = {}
        for name, provider in self.providers.items():
            kwargs = dict(provider.options)
            if provider.base_url:
                kwargs["base_url"] = provider.base_url
            options[name] = kwargs
        return options


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """加载配置的便捷函数"""
    return Settings.load(config_path)
