from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ladyluck.models.wallet import Wallet


class PointLedger(Protocol):
    """External point-currency ledger. Lady Luck never credits, only reads and debits."""

    async def get_balance(self, user_id: str) -> int: ...

    async def debit(self, user_id: str, amount: int) -> bool: ...


class WalletLedger:
    """
    Ledger over the ``wallet`` table, sharing the request's session.

    Because the debit runs inside the same transaction as the pending-batch
    write, a failed roll rolls the debit back with it.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _wallet(self, user_id: str) -> Wallet | None:
        return await self.session.get(Wallet, user_id)

    async def get_balance(self, user_id: str) -> int:
        w = await self._wallet(user_id)
        return int(getattr(w, "echo_points", 0) or 0)

    async def get_gold(self, user_id: str) -> int:
        w = await self._wallet(user_id)
        return int(getattr(w, "gold", 0) or 0)

    async def debit(self, user_id: str, amount: int) -> bool:
        w = (
            await self.session.execute(
                select(Wallet)
                .where(Wallet.user_id == user_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        # re-checked under the row lock: never drives the balance negative
        if not w or int(w.echo_points or 0) < amount:
            return False
        w.echo_points = int(w.echo_points or 0) - amount
        await self.session.flush()
        return True
