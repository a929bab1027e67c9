"""AccountRepository: concrete implementation of AccountRepositoryProtocol.

Balance writes are a single conditional PostgreSQL UPDATE ... RETURNING.
A result of 0 rows means the write was refused; the repository re-reads the
row to report why (missing account, insufficient funds, or a version race).

Transaction ownership: The CALLER (ledger engine) is responsible for
starting and committing the transaction via `async with db.begin()`.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.models import Account, LedgerEntry
from src.pm_common.errors import (
    ConcurrencyConflictError,
    InsufficientBalanceError,
    InternalError,
    UserNotFoundError,
)

# ---------------------------------------------------------------------------
# SQL: accounts
# ---------------------------------------------------------------------------

_GET_ACCOUNT_SQL = text("""
    SELECT user_id, balance, version, created_at, updated_at
    FROM accounts
    WHERE user_id = :user_id
""")

_GET_ACCOUNT_FOR_UPDATE_SQL = text("""
    SELECT user_id, balance, version, created_at, updated_at
    FROM accounts
    WHERE user_id = :user_id
    FOR UPDATE
""")

_ADJUST_BALANCE_SQL = text("""
    UPDATE accounts
    SET balance = balance + :delta,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
      AND balance + :delta >= 0
      AND (CAST(:expected_version AS BIGINT) IS NULL
           OR version = CAST(:expected_version AS BIGINT))
    RETURNING user_id, balance, version, created_at, updated_at
""")

# ---------------------------------------------------------------------------
# SQL: ledger history
# ---------------------------------------------------------------------------

_INSERT_LEDGER_SQL = text("""
    INSERT INTO ledger_entries
        (user_id, entry_type, amount, balance_after,
         reference_type, reference_id, description)
    VALUES
        (:user_id, :entry_type, :amount, :balance_after,
         :reference_type, :reference_id, :description)
    RETURNING id, user_id, entry_type, amount, balance_after,
              reference_type, reference_id, description, created_at
""")

_LIST_LEDGER_SQL = text("""
    SELECT id, user_id, entry_type, amount, balance_after,
           reference_type, reference_id, description, created_at
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_account(row: object) -> Account:
    return Account(
        user_id=row.user_id,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        reference_type=row.reference_type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class AccountRepository:
    """Account Balance Manager backed by the accounts table."""

    async def get_account(
        self, db: AsyncSession, user_id: str, for_update: bool = False
    ) -> Account | None:
        sql = _GET_ACCOUNT_FOR_UPDATE_SQL if for_update else _GET_ACCOUNT_SQL
        result = await db.execute(sql, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def get_balance(self, db: AsyncSession, user_id: str) -> int:
        account = await self.get_account(db, user_id)
        if account is None:
            raise UserNotFoundError(user_id)
        return account.balance

    async def adjust_balance(
        self,
        db: AsyncSession,
        user_id: str,
        delta: int,
        expected_version: int | None = None,
    ) -> Account:
        """Apply `delta` to the balance within the caller's transaction.

        With `expected_version` set the write only lands if nobody else has
        written the row since it was read; otherwise ConcurrencyConflictError.
        """
        result = await db.execute(
            _ADJUST_BALANCE_SQL,
            {"user_id": user_id, "delta": delta, "expected_version": expected_version},
        )
        row = result.fetchone()
        if row is not None:
            return _row_to_account(row)

        current = await self.get_account(db, user_id)
        if current is None:
            raise UserNotFoundError(user_id)
        if current.balance + delta < 0:
            raise InsufficientBalanceError(-delta, current.balance)
        raise ConcurrencyConflictError(
            f"account {user_id} version {current.version} != expected {expected_version}"
        )

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
    ) -> LedgerEntry:
        result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "user_id": user_id,
                "entry_type": entry_type,
                "amount": amount,
                "balance_after": balance_after,
                "reference_type": reference_type,
                "reference_id": reference_id,
                "description": description,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return _row_to_ledger(row)

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {"user_id": user_id, "cursor_id": cursor_id, "limit": limit},
        )
        rows = result.fetchall()
        return [_row_to_ledger(row) for row in rows]
