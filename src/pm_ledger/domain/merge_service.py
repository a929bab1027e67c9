"""Merge: burn matched YES/NO pairs and release the collateral behind them.

The burned quantity is q = min(yes_holding, no_holding). Anything above the
matched quantity on one side stays in the position as unmatched exposure.

Lock order matches split (account, then position) so a concurrent split and
merge for the same user cannot deadlock each other.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.repository import (
    AccountRepositoryProtocol,
    PositionRepositoryProtocol,
)
from src.pm_common.enums import LedgerEntryType, LedgerOperation
from src.pm_common.errors import (
    NothingToMergeError,
    PositionNotFoundError,
    UserNotFoundError,
)
from src.pm_ledger.domain.models import LedgerResult

logger = logging.getLogger(__name__)


async def execute_merge(
    user_id: str,
    market_id: str,
    db: AsyncSession,
    accounts: AccountRepositoryProtocol,
    positions: PositionRepositoryProtocol,
) -> LedgerResult:
    """Execute a merge within the caller's transaction."""
    account = await accounts.get_account(db, user_id, for_update=True)
    if account is None:
        raise UserNotFoundError(user_id)

    position = await positions.get_position(db, user_id, market_id, for_update=True)
    if position is None or position.is_empty:
        raise PositionNotFoundError(user_id, market_id)

    quantity = position.matched
    if quantity == 0:
        raise NothingToMergeError(position.yes_holding, position.no_holding)

    # Credit first, then burn: a failure in between must roll both back
    account = await accounts.adjust_balance(
        db, user_id, quantity, expected_version=account.version
    )
    position = await positions.upsert_position(
        db, user_id, market_id, -quantity, -quantity
    )

    entry = await accounts.append_ledger_entry(
        db,
        user_id=user_id,
        entry_type=LedgerEntryType.MERGE_REVENUE.value,
        amount=quantity,
        balance_after=account.balance,
        reference_type="MARKET",
        reference_id=market_id,
        description=f"Merge {quantity} YES/NO pairs",
    )

    if position.unmatched_yes or position.unmatched_no:
        logger.info(
            "Partial merge left unmatched exposure: user=%s market=%s yes=%d no=%d",
            user_id, market_id, position.yes_holding, position.no_holding,
        )
    return LedgerResult.from_state(
        LedgerOperation.MERGE, quantity, account, position, ledger_entry_id=entry.id
    )
