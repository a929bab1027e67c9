"""Repository Protocols: dependency inversion for testability.

Unit tests inject in-memory implementations that conform to these Protocols.
Infrastructure layer provides the real implementation.

Every method takes the caller's session explicitly; mutations are only valid
inside a transaction the caller has opened.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.models import Account, LedgerEntry, Position


class AccountRepositoryProtocol(Protocol):
    async def get_account(
        self, db: AsyncSession, user_id: str, for_update: bool = False
    ) -> Account | None: ...

    async def get_balance(self, db: AsyncSession, user_id: str) -> int: ...

    async def adjust_balance(
        self,
        db: AsyncSession,
        user_id: str,
        delta: int,
        expected_version: int | None = None,
    ) -> Account: ...

    async def append_ledger_entry(
        self,
        db: AsyncSession,
        user_id: str,
        entry_type: str,
        amount: int,
        balance_after: int,
        reference_type: str,
        reference_id: str,
        description: str,
    ) -> LedgerEntry: ...

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[LedgerEntry]: ...


class PositionRepositoryProtocol(Protocol):
    async def get_position(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        for_update: bool = False,
    ) -> Position | None: ...

    async def upsert_position(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        delta_yes: int,
        delta_no: int,
    ) -> Position: ...

    async def list_by_user(self, db: AsyncSession, user_id: str) -> list[Position]: ...
