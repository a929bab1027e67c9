# src/pm_market/domain/repository.py
"""Repository Protocol: the ledger only needs to know a market exists.

Market metadata CRUD (create, set outcome, list) lives outside this service.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession


class MarketRepositoryProtocol(Protocol):
    async def market_exists(self, db: AsyncSession, market_id: str) -> bool:
        """True if the market exists; keeps it from being deleted until the transaction ends."""
        ...
