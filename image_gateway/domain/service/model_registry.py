"""Model Registry Domain Service - Domain Layer"""

from typing import Dict, Iterable, List, Mapping, Optional


DEFAULT_MODEL_TABLE: Dict[str, List[str]] = {
    "openai": [
        "gpt-image-1",
        "gpt-image-1-mini",
        "dall-e-3",
    ],
    "stability": [
        "stable-diffusion-xl",
        "stable-diffusion-3",
        "stable-diffusion-3.5-large",
        "stable-diffusion-3.5-large-turbo",
    ],
    "google": [
        "gemini-nano-banana",
        "wan-2.5",
        "wan-v2.2",
        "imagen-3",
        "imagen-4",
    ],
    "bfl": [
        "flux-pro",
        "flux-1.1-pro",
        "flux-1.1-pro-ultra",
        "flux-kontext",
        "flux-kontext-max",
    ],
    "leonardo": [
        "leonardo-phoenix",
        "leonardo-photoreal-v2",
        "leonardo-transparency",
    ],
    "ideogram": [
        "ideogram-v2",
        "ideogram-v2a",
        "ideogram-v2-turbo",
        "ideogram-v2a-turbo",
        "ideogram-v3",
    ],
    "bytedance": [
        "seedream-v3",
        "seedream-v4",
        "dreamina-v3.1",
    ],
    "midjourney": ["midjourney"],
    "runway": ["runway-gen-4"],
    "tencent": ["hunyuan-3.0"],
    "xai": ["grok-2-image"],
    "luma": ["luma-photon", "luma-photon-flash"],
    "recraft": ["recraft-v3"],
    # Virtual try-on models
    "replicate": [
        "viton-hd",
        "idm-vton",
        "oot-diffusion",
    ],
}


class ModelRegistry:
    """模型注册表

    Static model key -> provider name table. Unknown keys mean the model
    catalog and this table have drifted apart.
    """

    def __init__(self, table: Optional[Mapping[str, Iterable[str]]] = None):
        """
        Args:
            table: {provider_name: [model_key, ...]}; defaults to the
                built-in table.
        """
        self._model_to_provider: Dict[str, str] = {}
        for provider, models in (table if table is not None else DEFAULT_MODEL_TABLE).items():
            for model in models:
                if model in self._model_to_provider:
                    raise ValueError(
                        f"Model '{model}' registered for both "
                        f"'{self._model_to_provider[model]}' and '{provider}'"
                    )
                self._model_to_provider[model] = provider

    def resolve_provider(self, model_key: str) -> Optional[str]:
        return self._model_to_provider.get(model_key)

    def models_for_provider(self, provider_name: str) -> List[str]:
        return [
            model
            for model, provider in self._model_to_provider.items()
            if provider == provider_name
        ]

    def model_keys(self) -> List[str]:
        return list(self._model_to_provider.keys())

    def provider_names(self) -> List[str]:
        return list(dict.fromkeys(self._model_to_provider.values()))

    def __contains__(self, model_key: str) -> bool:
        return model_key in self._model_to_provider

    def __len__(self) -> int:
        return len(self._model_to_provider)
