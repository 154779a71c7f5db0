"""In-Memory Repositories - Infrastructure Layer"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from ...domain.entity.generation import GenerationJob, ModelRow
from ...domain.repository.credit_ledger import CreditLedger
from ...domain.repository.job_repository import JobRepository
from ...domain.repository.model_catalog import ModelCatalog

logger = logging.getLogger(__name__)


class InMemoryCreditLedger(CreditLedger):
    """内存积分账本

    Users seen for the first time start with ``default_credits``.
    """

    def __init__(self, default_credits: int = 100, balances: Optional[Dict[str, int]] = None):
        self._default_credits = default_credits
        self._balances: Dict[str, int] = dict(balances or {})
        self._lock = asyncio.Lock()

    async def get_balance(self, user_id: str) -> int:
        async with self._lock:
            return self._balances.setdefault(user_id, self._default_credits)

    async def deduct(self, user_id: str, amount: int) -> int:
        if amount < 0:
            raise ValueError("Deduction amount cannot be negative")

        async with self._lock:
            balance = self._balances.setdefault(user_id, self._default_credits) - amount
            self._balances[user_id] = balance

        if balance < 0:
            logger.warning(f"Credit balance of user {user_id} went negative: {balance}")
        return balance

    async def grant(self, user_id: str, amount: int) -> int:
        if amount < 0:
            raise ValueError("Grant amount cannot be negative")

        async with self._lock:
            balance = self._balances.setdefault(user_id, self._default_credits) + amount
            self._balances[user_id] = balance
        return balance


class InMemoryJobRepository(JobRepository):
    """内存生成记录存储"""

    def __init__(self):
        self._jobs: Dict[str, GenerationJob] = {}
        self._lock = asyncio.Lock()

    async def save(self, job: GenerationJob) -> GenerationJob:
        async with self._lock:
            self._jobs[job.id] = job
        return job

    async def get(self, job_id: str) -> Optional[GenerationJob]:
        return self._jobs.get(job_id)

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[GenerationJob]:
        jobs = [job for job in self._jobs.values() if job.user_id == user_id]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs[:limit]


class InMemoryModelCatalog(ModelCatalog):
    """内存模型目录"""

    def __init__(self, rows: Optional[Iterable[ModelRow]] = None):
        self._rows: Dict[str, ModelRow] = {}
        for row in rows or []:
            self.add(row)

    def add(self, row: ModelRow) -> None:
        """注册目录条目"""
        self._rows[row.id] = row

    async def get_model(self, model_id: str) -> Optional[ModelRow]:
        return self._rows.get(model_id)

    async def list_active(self) -> List[ModelRow]:
        return [row for row in self._rows.values() if row.is_active]

    @classmethod
    def from_config(cls, entries: Iterable[dict]) -> "InMemoryModelCatalog":
        """Build a catalog from the ``models`` section of the config file.

        Each entry needs ``id``, ``provider`` and ``api_model``; ``name``
        falls back to the id.
        """
        rows = []
        for entry in entries:
            rows.append(ModelRow(
                id=str(entry["id"]),
                name=entry.get("name") or str(entry["id"]),
                provider=entry["provider"],
                api_model=entry["api_model"],
                cost_per_use=int(entry.get("cost_per_use", 1)),
                model_type=entry.get("model_type", "image"),
                is_active=bool(entry.get("is_active", True)),
            ))
        return cls(rows)

    @classmethod
    def from_registry(cls, registry, cost_per_use: int = 1) -> "InMemoryModelCatalog":
        """One active row per registry model key, used when no catalog is configured."""
        rows = [
            ModelRow(
                id=model_key,
                name=model_key,
                provider=registry.resolve_provider(model_key),
                api_model=model_key,
                cost_per_use=cost_per_use,
            )
            for model_key in registry.model_keys()
        ]
        return cls(rows)
