"""Split: lock collateral and mint a matched YES/NO pair.

One unit of collateral becomes one YES share plus one NO share:
- Validates the market exists and share-locks it for the rest of the transaction
- Locks the account row (FOR UPDATE) and re-checks the balance
- Debits `amount`, conditioned on the version just read
- Adds `amount` to both holdings, creating the position on first split
- Writes a SPLIT_COST ledger entry

Runs inside the caller's transaction; raises AppError subclasses and lets the
caller roll back.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.repository import (
    AccountRepositoryProtocol,
    PositionRepositoryProtocol,
)
from src.pm_common.enums import LedgerEntryType, LedgerOperation
from src.pm_common.errors import (
    InsufficientBalanceError,
    MarketNotFoundError,
    UserNotFoundError,
)
from src.pm_ledger.domain.models import LedgerResult
from src.pm_market.domain.repository import MarketRepositoryProtocol

logger = logging.getLogger(__name__)


async def execute_split(
    user_id: str,
    market_id: str,
    amount: int,
    db: AsyncSession,
    accounts: AccountRepositoryProtocol,
    positions: PositionRepositoryProtocol,
    markets: MarketRepositoryProtocol,
) -> LedgerResult:
    """Execute a split within the caller's transaction. `amount` is already validated > 0."""
    # Step 1: Market must exist (row held FOR SHARE until commit)
    if not await markets.market_exists(db, market_id):
        raise MarketNotFoundError(market_id)

    # Step 2: Lock the account and re-validate the balance under the lock
    account = await accounts.get_account(db, user_id, for_update=True)
    if account is None:
        raise UserNotFoundError(user_id)
    if account.balance < amount:
        raise InsufficientBalanceError(amount, account.balance)

    # Step 3: Debit collateral
    account = await accounts.adjust_balance(
        db, user_id, -amount, expected_version=account.version
    )

    # Step 4: Mint the pair
    position = await positions.upsert_position(db, user_id, market_id, amount, amount)

    # Step 5: Audit trail
    entry = await accounts.append_ledger_entry(
        db,
        user_id=user_id,
        entry_type=LedgerEntryType.SPLIT_COST.value,
        amount=-amount,
        balance_after=account.balance,
        reference_type="MARKET",
        reference_id=market_id,
        description=f"Split {amount} into YES/NO pairs",
    )

    logger.debug(
        "Split staged: user=%s market=%s amount=%d balance=%d yes=%d no=%d",
        user_id, market_id, amount, account.balance,
        position.yes_holding, position.no_holding,
    )
    return LedgerResult.from_state(
        LedgerOperation.SPLIT, amount, account, position, ledger_entry_id=entry.id
    )
