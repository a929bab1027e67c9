"""Unified error codes and custom exceptions.

Every ledger failure is one of the kinds in LedgerErrorKind. The request layer
maps exceptions to HTTP through AppError.http_status; callers that need to
branch use `kind`, never the message text.

Error code ranges:
  2xxx: Account / amount
  3xxx: Market
  5xxx: Position
  9xxx: System / store
"""

from src.pm_common.enums import LedgerErrorKind


class AppError(Exception):
    """Base application error."""

    kind: LedgerErrorKind | None = None
    retryable: bool = False

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 2xxx: Account ---

class InsufficientBalanceError(AppError):
    kind = LedgerErrorKind.INSUFFICIENT_BALANCE

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            2001,
            f"Insufficient balance: required {required}, available {available}",
            422,
        )


class UserNotFoundError(AppError):
    kind = LedgerErrorKind.USER_NOT_FOUND

    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Account not found for user {user_id}", 404)


class InvalidAmountError(AppError):
    kind = LedgerErrorKind.INVALID_AMOUNT

    def __init__(self, amount: object) -> None:
        super().__init__(2003, f"Amount must be a positive integer, got {amount!r}", 422)


# --- 3xxx: Market ---

class MarketNotFoundError(AppError):
    kind = LedgerErrorKind.MARKET_NOT_FOUND

    def __init__(self, market_id: str) -> None:
        super().__init__(3001, f"Market not found: {market_id}", 404)


# --- 5xxx: Position ---

class PositionNotFoundError(AppError):
    kind = LedgerErrorKind.POSITION_NOT_FOUND

    def __init__(self, user_id: str, market_id: str) -> None:
        super().__init__(
            5001, f"No position for user {user_id} in market {market_id}", 404
        )


class NegativeHoldingError(AppError):
    kind = LedgerErrorKind.NEGATIVE_HOLDING

    def __init__(self, detail: str) -> None:
        super().__init__(5002, f"Holding would go negative: {detail}", 422)


class NothingToMergeError(AppError):
    kind = LedgerErrorKind.NOTHING_TO_MERGE

    def __init__(self, yes_holding: int, no_holding: int) -> None:
        super().__init__(
            5003,
            f"No matched YES/NO pair to merge (yes={yes_holding}, no={no_holding})",
            422,
        )


# --- 9xxx: System ---

class StoreFailureError(AppError):
    """Transaction aborted by the store: driver error, timeout, or conflict."""

    kind = LedgerErrorKind.STORE_FAILURE

    def __init__(self, detail: str = "Transaction aborted by the store") -> None:
        super().__init__(9003, detail, 503)


class ConcurrencyConflictError(StoreFailureError):
    """A conditional write lost a race. Safe to retry the whole transaction."""

    retryable = True

    def __init__(self, detail: str) -> None:
        super().__init__(f"Concurrent update conflict: {detail}")
        self.code = 9004


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
