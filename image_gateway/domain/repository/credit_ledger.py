"""Credit Ledger Repository Interface - Domain Layer"""

from abc import ABC, abstractmethod


class CreditLedger(ABC):
    """用户积分账本接口"""

    @abstractmethod
    async def get_balance(self, user_id: str) -> int:
        """Current credit balance of the user."""
        pass

    @abstractmethod
    async def deduct(self, user_id: str, amount: int) -> int:
        """Atomically decrement the balance.

        Implementations must not read, compute and write back in separate
        steps; concurrent generations by one user race on this field.

        Returns:
            The balance after the deduction.
        """
        pass

    @abstractmethod
    async def grant(self, user_id: str, amount: int) -> int:
        """Atomically increment the balance and return the new value."""
        pass
