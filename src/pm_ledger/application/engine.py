"""LedgerEngine: owns the transaction boundary for split and merge.

Each call:
  1. validates the amount before touching the store
  2. opens a session and `async with db.begin()`
  3. runs the split/merge service against the session
  4. commits, or rolls back on any exception
  5. publishes ledger events for the committed state

Conflicts (a version-conditioned write that lost a race, or a PostgreSQL
serialization failure / deadlock) are retried as a whole new transaction,
at most `max_retries` times. Every other failure is surfaced unchanged;
driver and socket errors (including timeouts) become StoreFailureError.
"""
import logging
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_account.domain.repository import (
    AccountRepositoryProtocol,
    PositionRepositoryProtocol,
)
from src.pm_account.infrastructure.persistence import AccountRepository
from src.pm_account.infrastructure.positions_repository import PositionRepository
from src.pm_common.enums import LedgerOperation
from src.pm_common.errors import (
    AppError,
    ConcurrencyConflictError,
    InvalidAmountError,
    StoreFailureError,
)
from src.pm_ledger.domain.merge_service import execute_merge
from src.pm_ledger.domain.models import LedgerResult
from src.pm_ledger.domain.split_service import execute_split
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available (lock_timeout)
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})

SessionFactory = Callable[[], AbstractAsyncContextManager[Any]]


class LedgerEventPublisherProtocol(Protocol):
    async def publish(self, result: LedgerResult) -> None: ...


def validate_amount(amount: object) -> int:
    # bool is an int subclass; True must not split one unit
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)
    return amount


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class LedgerEngine:
    def __init__(
        self,
        session_factory: SessionFactory,
        accounts: AccountRepositoryProtocol | None = None,
        positions: PositionRepositoryProtocol | None = None,
        markets: MarketRepositoryProtocol | None = None,
        publisher: LedgerEventPublisherProtocol | None = None,
        max_retries: int = settings.LEDGER_MAX_RETRIES,
    ) -> None:
        self._session_factory = session_factory
        self._accounts: AccountRepositoryProtocol = accounts or AccountRepository()
        self._positions: PositionRepositoryProtocol = positions or PositionRepository()
        self._markets: MarketRepositoryProtocol = markets or MarketRepository()
        self._publisher = publisher
        self._max_retries = max(0, max_retries)

    async def split(self, user_id: str, market_id: str, amount: int) -> LedgerResult:
        """Lock `amount` collateral and mint `amount` YES + `amount` NO shares."""
        amount = validate_amount(amount)

        async def work(db: AsyncSession) -> LedgerResult:
            return await execute_split(
                user_id, market_id, amount, db,
                accounts=self._accounts,
                positions=self._positions,
                markets=self._markets,
            )

        return await self._run(LedgerOperation.SPLIT, user_id, market_id, work)

    async def merge(self, user_id: str, market_id: str) -> LedgerResult:
        """Burn every matched YES/NO pair in the position and release the collateral."""

        async def work(db: AsyncSession) -> LedgerResult:
            return await execute_merge(
                user_id, market_id, db,
                accounts=self._accounts,
                positions=self._positions,
            )

        return await self._run(LedgerOperation.MERGE, user_id, market_id, work)

    async def _run(
        self,
        operation: LedgerOperation,
        user_id: str,
        market_id: str,
        work: Callable[[AsyncSession], Awaitable[LedgerResult]],
    ) -> LedgerResult:
        attempt = 0
        while True:
            try:
                result = await self._attempt(work)
                break
            except ConcurrencyConflictError as exc:
                if attempt >= self._max_retries:
                    logger.error(
                        "%s gave up after %d retries: user=%s market=%s (%s)",
                        operation.value, attempt, user_id, market_id, exc.message,
                    )
                    raise
                attempt += 1
                logger.warning(
                    "%s conflict, retrying (%d/%d): user=%s market=%s (%s)",
                    operation.value, attempt, self._max_retries,
                    user_id, market_id, exc.message,
                )
            except StoreFailureError:
                logger.exception(
                    "%s aborted by store: user=%s market=%s",
                    operation.value, user_id, market_id,
                )
                raise

        logger.info(
            "%s committed: user=%s market=%s qty=%d balance=%d yes=%d no=%d",
            operation.value, user_id, market_id, result.quantity,
            result.balance, result.yes_holding, result.no_holding,
        )
        await self._publish(result)
        return result

    async def _attempt(
        self, work: Callable[[AsyncSession], Awaitable[LedgerResult]]
    ) -> LedgerResult:
        """One transaction. Rolls back on any exception raised inside `begin()`."""
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    return await work(db)
        except AppError:
            raise
        except DBAPIError as exc:
            state = _sqlstate(exc)
            if state in _RETRYABLE_SQLSTATES:
                raise ConcurrencyConflictError(f"sqlstate {state}") from exc
            raise StoreFailureError(f"Database error: {exc.__class__.__name__}") from exc
        except SQLAlchemyError as exc:
            raise StoreFailureError(f"Database error: {exc.__class__.__name__}") from exc
        except TimeoutError as exc:
            raise StoreFailureError("Store operation timed out") from exc
        except OSError as exc:
            # asyncpg raises connect-time socket errors unwrapped
            raise StoreFailureError(f"Store unreachable: {exc.__class__.__name__}") from exc

    async def _publish(self, result: LedgerResult) -> None:
        if self._publisher is None:
            return
        try:
            await self._publisher.publish(result)
        except Exception:  # noqa: BLE001
            # already committed: a lost event never changes the result
            logger.warning(
                "Ledger event publish failed: op=%s user=%s market=%s",
                result.operation.value, result.user_id, result.market_id,
                exc_info=True,
            )
