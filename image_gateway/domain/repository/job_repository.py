"""Generation Job Repository Interface - Domain Layer"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..entity.generation import GenerationJob


class JobRepository(ABC):
    """生成记录存储接口"""

    @abstractmethod
    async def save(self, job: GenerationJob) -> GenerationJob:
        """Persist one job record and return it."""
        pass

    @abstractmethod
    async def get(self, job_id: str) -> Optional[GenerationJob]:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str, limit: int = 50) -> List[GenerationJob]:
        """Jobs of the user, newest first, at most ``limit`` entries."""
        pass
