"""Model Catalog Repository Interface - Domain Layer"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..entity.generation import ModelRow


class ModelCatalog(ABC):
    """模型目录接口"""

    @abstractmethod
    async def get_model(self, model_id: str) -> Optional[ModelRow]:
        """Look up a catalog row by its id."""
        pass

    @abstractmethod
    async def list_active(self) -> List[ModelRow]:
        """All rows with ``is_active`` set."""
        pass
