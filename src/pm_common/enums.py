"""Global enums: values stored in the DB must match CHECK constraints exactly."""

from enum import Enum


class LedgerOperation(str, Enum):
    SPLIT = "SPLIT"
    MERGE = "MERGE"


class LedgerEntryType(str, Enum):
    # Split: collateral locked into a YES/NO pair (user side, negative amount)
    SPLIT_COST = "SPLIT_COST"
    # Merge: matched pair burned back into collateral (user side, positive amount)
    MERGE_REVENUE = "MERGE_REVENUE"


class LedgerEventType(str, Enum):
    """Event types written to the ledger Redis stream after commit."""
    BALANCE_UPDATED = "BALANCE_UPDATED"
    POSITION_UPDATED = "POSITION_UPDATED"


class LedgerErrorKind(str, Enum):
    """Closed set of failure kinds the ledger can report."""
    INVALID_AMOUNT = "INVALID_AMOUNT"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    MARKET_NOT_FOUND = "MARKET_NOT_FOUND"
    POSITION_NOT_FOUND = "POSITION_NOT_FOUND"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    NEGATIVE_HOLDING = "NEGATIVE_HOLDING"
    NOTHING_TO_MERGE = "NOTHING_TO_MERGE"
    STORE_FAILURE = "STORE_FAILURE"
