"""Domain models for pm_ledger: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass

from src.pm_account.domain.models import Account, Position
from src.pm_common.enums import LedgerOperation


@dataclass(frozen=True)
class LedgerResult:
    """Post-commit snapshot of one split or merge."""

    operation: LedgerOperation
    user_id: str
    market_id: str
    quantity: int          # pairs minted (split) or burned (merge)
    balance: int
    yes_holding: int
    no_holding: int
    ledger_entry_id: int | None = None

    @classmethod
    def from_state(
        cls,
        operation: LedgerOperation,
        quantity: int,
        account: Account,
        position: Position,
        ledger_entry_id: int | None = None,
    ) -> "LedgerResult":
        return cls(
            operation=operation,
            user_id=account.user_id,
            market_id=position.market_id,
            quantity=quantity,
            balance=account.balance,
            yes_holding=position.yes_holding,
            no_holding=position.no_holding,
            ledger_entry_id=ledger_entry_id,
        )

    @property
    def matched(self) -> int:
        return min(self.yes_holding, self.no_holding)
