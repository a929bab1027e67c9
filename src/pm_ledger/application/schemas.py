"""Request/response schemas for the split and merge APIs."""
from pydantic import BaseModel, Field

from src.pm_ledger.domain.models import LedgerResult


class SplitRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    market_id: str = Field(min_length=1, max_length=64)
    amount: int = Field(gt=0, description="Collateral to convert into YES+NO pairs")


class MergeRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    market_id: str = Field(min_length=1, max_length=64)


class LedgerOperationResponse(BaseModel):
    operation: str
    user_id: str
    market_id: str
    quantity: int
    balance: int
    yes_holding: int
    no_holding: int
    matched: int
    ledger_entry_id: int | None

    @classmethod
    def from_result(cls, result: LedgerResult) -> "LedgerOperationResponse":
        return cls(
            operation=result.operation.value,
            user_id=result.user_id,
            market_id=result.market_id,
            quantity=result.quantity,
            balance=result.balance,
            yes_holding=result.yes_holding,
            no_holding=result.no_holding,
            matched=result.matched,
            ledger_entry_id=result.ledger_entry_id,
        )
