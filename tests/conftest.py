"""Shared test fixtures.

InMemoryLedgerStore stands in for PostgreSQL behind the repository
Protocols. Transactions on it overlap the way they do on the real store:
  - a read with for_update=True and every write take a per-row lock that is
    held until the transaction ends, like FOR UPDATE and UPDATE row locks
  - a transaction that raises is rolled back through its undo log, without
    touching rows written by other transactions
  - uncommitted writes are visible to other transactions (one shared copy
    of each row); row locks are what keep the ledger correct
InMemoryLedgerStore(row_locks=False) drops the row locks, so overlapping
transactions are kept apart only by the version-conditioned balance write.
Every fake repository call yields to the event loop once, so concurrent
callers genuinely interleave between statements.
"""

import asyncio
import copy
from collections.abc import AsyncGenerator, Callable
from dataclasses import replace
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.pm_account.api.router import get_account_service
from src.pm_account.application.service import AccountApplicationService
from src.pm_account.domain.models import Account, LedgerEntry, Position
from src.pm_common.database import get_db_session
from src.pm_common.errors import (
    ConcurrencyConflictError,
    InsufficientBalanceError,
    NegativeHoldingError,
    UserNotFoundError,
)
from src.pm_ledger.api.router import get_ledger_engine
from src.pm_ledger.application.engine import LedgerEngine

_MISSING = object()


class InMemoryLedgerStore:
    def __init__(self, row_locks: bool = True) -> None:
        self.accounts: dict[str, Account] = {}
        self.positions: dict[tuple[str, str], Position] = {}
        self.markets: set[str] = set()
        self.ledger: list[LedgerEntry] = []
        self.row_locks = row_locks
        self._locks: dict[tuple[str, ...], asyncio.Lock] = {}
        self._ledger_seq = 0
        self.commits = 0
        self.rollbacks = 0
        self.conflicts = 0

    def add_account(self, user_id: str, balance: int) -> None:
        self.accounts[user_id] = Account(user_id=user_id, balance=balance, version=0)

    def add_market(self, market_id: str) -> None:
        self.markets.add(market_id)

    def balance(self, user_id: str) -> int:
        return self.accounts[user_id].balance

    def holdings(self, user_id: str, market_id: str) -> tuple[int, int]:
        pos = self.positions.get((user_id, market_id))
        return (pos.yes_holding, pos.no_holding) if pos else (0, 0)

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(
            {
                "accounts": self.accounts,
                "positions": self.positions,
                "markets": self.markets,
                "ledger": self.ledger,
            }
        )

    def row_lock(self, key: tuple[str, ...]) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    def next_ledger_id(self) -> int:
        self._ledger_seq += 1
        return self._ledger_seq

    def session(self) -> "FakeSession":
        return FakeSession(self)


class _FakeTransaction:
    def __init__(self, store: InMemoryLedgerStore) -> None:
        self._store = store
        self._undo: list[Callable[[], None]] = []
        self._held: list[asyncio.Lock] = []

    async def lock(self, key: tuple[str, ...]) -> None:
        if not self._store.row_locks:
            return
        row_lock = self._store.row_lock(key)
        if row_lock in self._held:
            return
        await row_lock.acquire()
        self._held.append(row_lock)

    def record(self, table: dict[Any, Any], key: Any) -> None:
        previous = table.get(key, _MISSING)

        def undo() -> None:
            if previous is _MISSING:
                table.pop(key, None)
            else:
                table[key] = previous

        self._undo.append(undo)

    def record_append(self, rows: list[Any], row: Any) -> None:
        self._undo.append(lambda: rows.remove(row))

    async def __aenter__(self) -> "_FakeTransaction":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        try:
            if exc_type is not None:
                for undo in reversed(self._undo):
                    undo()
                self._store.rollbacks += 1
            else:
                self._store.commits += 1
        finally:
            for row_lock in reversed(self._held):
                row_lock.release()
            self._held.clear()
            self._undo.clear()
        return False


class FakeSession:
    """Quacks like AsyncSession for `async with factory() as db, db.begin()`."""

    def __init__(self, store: InMemoryLedgerStore) -> None:
        self.store = store
        self.tx: _FakeTransaction | None = None

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    def begin(self) -> _FakeTransaction:
        self.tx = _FakeTransaction(self.store)
        return self.tx


class FakeAccountRepository:
    async def get_account(
        self, db: FakeSession, user_id: str, for_update: bool = False
    ) -> Account | None:
        await asyncio.sleep(0)
        if for_update and db.tx is not None:
            await db.tx.lock(("account", user_id))
        account = db.store.accounts.get(user_id)
        return replace(account) if account else None

    async def get_balance(self, db: FakeSession, user_id: str) -> int:
        account = await self.get_account(db, user_id)
        if account is None:
            raise UserNotFoundError(user_id)
        return account.balance

    async def adjust_balance(
        self,
        db: FakeSession,
        user_id: str,
        delta: int,
        expected_version: int | None = None,
    ) -> Account:
        await asyncio.sleep(0)
        assert db.tx is not None, "balance writes run inside a transaction"
        await db.tx.lock(("account", user_id))
        account = db.store.accounts.get(user_id)
        if account is None:
            raise UserNotFoundError(user_id)
        if account.balance + delta < 0:
            raise InsufficientBalanceError(-delta, account.balance)
        if expected_version is not None and account.version != expected_version:
            db.store.conflicts += 1
            raise ConcurrencyConflictError(f"account {user_id}")
        db.tx.record(db.store.accounts, user_id)
        updated = replace(account, balance=account.balance + delta, version=account.version + 1)
        db.store.accounts[user_id] = updated
        return replace(updated)

    async def append_ledger_entry(
        self,
        db: FakeSession,
        user_id: str,
        entry_type: str,
        amount: int,
        balance_after: int,
        reference_type: str,
        reference_id: str,
        description: str,
    ) -> LedgerEntry:
        await asyncio.sleep(0)
        assert db.tx is not None, "ledger writes run inside a transaction"
        entry = LedgerEntry(
            id=db.store.next_ledger_id(),
            user_id=user_id,
            entry_type=entry_type,
            amount=amount,
            balance_after=balance_after,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
        )
        db.store.ledger.append(entry)
        db.tx.record_append(db.store.ledger, entry)
        return entry

    async def list_ledger_entries(
        self,
        db: FakeSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[LedgerEntry]:
        entries = [
            e for e in reversed(db.store.ledger)
            if e.user_id == user_id and (cursor_id is None or e.id < cursor_id)
        ]
        return entries[:limit]


class FakePositionRepository:
    async def get_position(
        self,
        db: FakeSession,
        user_id: str,
        market_id: str,
        for_update: bool = False,
    ) -> Position | None:
        await asyncio.sleep(0)
        if for_update and db.tx is not None:
            await db.tx.lock(("position", user_id, market_id))
        position = db.store.positions.get((user_id, market_id))
        return replace(position) if position else None

    async def upsert_position(
        self,
        db: FakeSession,
        user_id: str,
        market_id: str,
        delta_yes: int,
        delta_no: int,
    ) -> Position:
        await asyncio.sleep(0)
        assert db.tx is not None, "position writes run inside a transaction"
        await db.tx.lock(("position", user_id, market_id))
        key = (user_id, market_id)
        current = db.store.positions.get(key)
        if current is None:
            if delta_yes < 0 or delta_no < 0:
                raise NegativeHoldingError(f"no position for {key}")
            current = Position(user_id=user_id, market_id=market_id, version=-1)
        yes = current.yes_holding + delta_yes
        no = current.no_holding + delta_no
        if yes < 0 or no < 0:
            raise NegativeHoldingError(f"{key} yes={yes} no={no}")
        db.tx.record(db.store.positions, key)
        updated = replace(current, yes_holding=yes, no_holding=no, version=current.version + 1)
        db.store.positions[key] = updated
        return replace(updated)

    async def list_by_user(self, db: FakeSession, user_id: str) -> list[Position]:
        return [
            replace(p)
            for (uid, _), p in sorted(db.store.positions.items())
            if uid == user_id and not p.is_empty
        ]


class FakeMarketRepository:
    async def market_exists(self, db: FakeSession, market_id: str) -> bool:
        await asyncio.sleep(0)
        return market_id in db.store.markets


@pytest.fixture
def store() -> InMemoryLedgerStore:
    s = InMemoryLedgerStore()
    s.add_account("user-1", 100)
    s.add_market("mkt-1")
    return s


@pytest.fixture
def accounts() -> FakeAccountRepository:
    return FakeAccountRepository()


@pytest.fixture
def positions() -> FakePositionRepository:
    return FakePositionRepository()


@pytest.fixture
def markets() -> FakeMarketRepository:
    return FakeMarketRepository()


@pytest.fixture
def ledger_engine(
    store: InMemoryLedgerStore,
    accounts: FakeAccountRepository,
    positions: FakePositionRepository,
    markets: FakeMarketRepository,
) -> LedgerEngine:
    return LedgerEngine(
        store.session,
        accounts=accounts,
        positions=positions,
        markets=markets,
        max_retries=3,
    )


@pytest.fixture
def lockless_store() -> InMemoryLedgerStore:
    s = InMemoryLedgerStore(row_locks=False)
    s.add_account("user-1", 100)
    s.add_market("mkt-1")
    return s


@pytest.fixture
def lockless_engine(
    lockless_store: InMemoryLedgerStore,
    accounts: FakeAccountRepository,
    positions: FakePositionRepository,
    markets: FakeMarketRepository,
) -> LedgerEngine:
    """Engine over a store without row locks: only version checks separate writers."""
    return LedgerEngine(
        lockless_store.session,
        accounts=accounts,
        positions=positions,
        markets=markets,
        max_retries=3,
    )


@pytest.fixture
async def client(
    store: InMemoryLedgerStore,
    ledger_engine: LedgerEngine,
    accounts: FakeAccountRepository,
    positions: FakePositionRepository,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client with the ledger and read services wired to the in-memory store."""
    async def _fake_db_session() -> AsyncGenerator[FakeSession, None]:
        yield store.session()

    service = AccountApplicationService(repo=accounts, positions=positions)
    app.dependency_overrides[get_ledger_engine] = lambda: ledger_engine
    app.dependency_overrides[get_account_service] = lambda: service
    app.dependency_overrides[get_db_session] = _fake_db_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
