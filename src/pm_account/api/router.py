"""pm_account REST API: read-only balance, position and ledger history views."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.application.service import AccountApplicationService
from src.pm_common.database import get_db_session
from src.pm_common.response import ApiResponse, success_response

router = APIRouter(prefix="/accounts", tags=["accounts"])

_service = AccountApplicationService()


def get_account_service() -> AccountApplicationService:
    return _service


@router.get("/{user_id}/balance")
async def get_balance(
    user_id: str,
    service: Annotated[AccountApplicationService, Depends(get_account_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await service.get_balance(db, user_id)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{user_id}/positions")
async def list_positions(
    user_id: str,
    service: Annotated[AccountApplicationService, Depends(get_account_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await service.list_positions(db, user_id)
    return success_response(data.model_dump())


@router.get("/{user_id}/positions/{market_id}")
async def get_position(
    user_id: str,
    market_id: str,
    service: Annotated[AccountApplicationService, Depends(get_account_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await service.get_position(db, user_id, market_id)
    return success_response(data.model_dump())


@router.get("/{user_id}/ledger")
async def list_ledger(
    user_id: str,
    service: Annotated[AccountApplicationService, Depends(get_account_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await service.list_ledger(db, user_id, cursor, limit)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
