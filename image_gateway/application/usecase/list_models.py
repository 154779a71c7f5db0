"""List Models Use Case - Application Layer"""

from typing import List

from ...domain.repository.model_catalog import ModelCatalog
from ...domain.service.dispatcher import ImageDispatcher


class ListModelsUseCase:
    """列出可选模型"""

    def __init__(self, catalog: ModelCatalog, dispatcher: ImageDispatcher):
        self._catalog = catalog
        self._dispatcher = dispatcher

    async def execute(self) -> List[dict]:
        """Active catalog rows with ``available`` and ``provider_status``.

        ``provider_status`` is "ready", "pending" or "unconfigured".
        """
        status = self._dispatcher.provider_status()
        models = []
        for row in await self._catalog.list_active():
            provider = self._dispatcher.get_provider_for_model(row.api_model) or row.provider
            models.append({
                "id": row.id,
                "name": row.name,
                "provider": provider,
                "api_model": row.api_model,
                "cost_per_use": row.cost_per_use,
                "model_type": row.model_type,
                "available": self._dispatcher.is_model_supported(row.api_model),
                "provider_status": status.get(provider, "unconfigured"),
            })
        return models
