"""Split / merge endpoints.

Mounted at /api/v1/ledger in main.py. Authentication is handled upstream;
the caller passes the user it is acting for.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from config.settings import settings
from src.pm_common.database import async_session_factory
from src.pm_common.response import ApiResponse, success_response
from src.pm_ledger.application.engine import LedgerEngine
from src.pm_ledger.application.schemas import (
    LedgerOperationResponse,
    MergeRequest,
    SplitRequest,
)
from src.pm_ledger.infrastructure.events import LedgerEventPublisher

router = APIRouter(prefix="/ledger", tags=["ledger"])

_engine: LedgerEngine | None = None


def get_ledger_engine() -> LedgerEngine:
    """FastAPI dependency: process-wide engine bound to the shared session factory."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        publisher = LedgerEventPublisher() if settings.LEDGER_EVENTS_ENABLED else None
        _engine = LedgerEngine(async_session_factory, publisher=publisher)
    return _engine


@router.post("/split", status_code=201)
async def split(
    body: SplitRequest,
    engine: Annotated[LedgerEngine, Depends(get_ledger_engine)],
    request: Request,
) -> ApiResponse:
    """Convert collateral into an equal number of YES and NO shares."""
    result = await engine.split(body.user_id, body.market_id, body.amount)
    resp = success_response(
        LedgerOperationResponse.from_result(result).model_dump(),
        message="Split successful",
    )
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/merge")
async def merge(
    body: MergeRequest,
    engine: Annotated[LedgerEngine, Depends(get_ledger_engine)],
    request: Request,
) -> ApiResponse:
    """Convert every matched YES/NO pair back into collateral."""
    result = await engine.merge(body.user_id, body.market_id)
    resp = success_response(
        LedgerOperationResponse.from_result(result).model_dump(),
        message="Merge successful",
    )
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
