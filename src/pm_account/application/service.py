"""AccountApplicationService: read-only views over balances, positions and history.

All mutations go through the ledger engine; nothing here opens a write
transaction. Reads run on the request session without an explicit transaction.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.application.schemas import (
    BalanceResponse,
    LedgerEntryItem,
    LedgerResponse,
    PositionListResponse,
    PositionResponse,
    cursor_decode,
    cursor_encode,
)
from src.pm_account.domain.repository import (
    AccountRepositoryProtocol,
    PositionRepositoryProtocol,
)
from src.pm_account.infrastructure.persistence import AccountRepository
from src.pm_account.infrastructure.positions_repository import PositionRepository
from src.pm_common.datetime_utils import to_iso
from src.pm_common.errors import PositionNotFoundError


class AccountApplicationService:
    def __init__(
        self,
        repo: AccountRepositoryProtocol | None = None,
        positions: PositionRepositoryProtocol | None = None,
    ) -> None:
        self._repo: AccountRepositoryProtocol = repo or AccountRepository()
        self._positions: PositionRepositoryProtocol = positions or PositionRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        balance = await self._repo.get_balance(db, user_id)
        return BalanceResponse(user_id=user_id, balance=balance)

    async def list_positions(self, db: AsyncSession, user_id: str) -> PositionListResponse:
        positions = await self._positions.list_by_user(db, user_id)
        items = [PositionResponse.from_domain(p) for p in positions if not p.is_empty]
        return PositionListResponse(
            items=items,
            total=len(items),
            locked_collateral=sum(p.matched for p in items),
        )

    async def get_position(
        self, db: AsyncSession, user_id: str, market_id: str
    ) -> PositionResponse:
        position = await self._positions.get_position(db, user_id, market_id)
        if position is None or position.is_empty:
            raise PositionNotFoundError(user_id, market_id)
        return PositionResponse.from_domain(position)

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_ledger_entries(db, user_id, cursor_id, limit + 1)
        has_more = len(entries) > limit
        page = entries[:limit]

        items = [
            LedgerEntryItem(
                id=e.id,
                entry_type=e.entry_type,
                amount=e.amount,
                balance_after=e.balance_after,
                reference_type=e.reference_type,
                reference_id=e.reference_id,
                description=e.description,
                created_at=to_iso(e.created_at),
            )
            for e in page
        ]

        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(items=items, next_cursor=next_cursor, has_more=has_more)
