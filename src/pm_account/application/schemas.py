"""Pydantic schemas and cursor utilities for pm_account API."""

import base64
import binascii
import json

from pydantic import BaseModel

from src.pm_account.domain.models import Position

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on a malformed cursor."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode(), validate=True).decode())
        return int(payload["id"])
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError, KeyError):
        return None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    balance: int


class PositionResponse(BaseModel):
    market_id: str
    yes_holding: int
    no_holding: int
    matched: int
    unmatched_yes: int
    unmatched_no: int

    @classmethod
    def from_domain(cls, position: Position) -> "PositionResponse":
        return cls(
            market_id=position.market_id,
            yes_holding=position.yes_holding,
            no_holding=position.no_holding,
            matched=position.matched,
            unmatched_yes=position.unmatched_yes,
            unmatched_no=position.unmatched_no,
        )


class PositionListResponse(BaseModel):
    items: list[PositionResponse]
    total: int
    locked_collateral: int  # sum of matched quantities across markets


class LedgerEntryItem(BaseModel):
    id: int
    entry_type: str
    amount: int
    balance_after: int
    reference_type: str | None
    reference_id: str | None
    description: str | None
    created_at: str  # ISO8601 string


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
