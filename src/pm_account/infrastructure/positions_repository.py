# src/pm_account/infrastructure/positions_repository.py
"""PositionRepository: per-market YES/NO holdings.

Credits (both deltas >= 0) go through INSERT ... ON CONFLICT DO UPDATE so the
first split for a (user, market) pair creates the row. Anything with a
negative delta is a guarded UPDATE: the row must already exist and neither
holding may drop below zero, otherwise 0 rows come back.
"""
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.models import Position
from src.pm_common.errors import NegativeHoldingError

_POSITION_COLUMNS = "user_id, market_id, yes_holding, no_holding, version, created_at, updated_at"

_GET_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE user_id = :user_id AND market_id = :market_id
""")

_GET_FOR_UPDATE_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE user_id = :user_id AND market_id = :market_id
    FOR UPDATE
""")

_CREDIT_SQL = text(f"""
    INSERT INTO positions (user_id, market_id, yes_holding, no_holding)
    VALUES (:user_id, :market_id, :delta_yes, :delta_no)
    ON CONFLICT (user_id, market_id) DO UPDATE
    SET yes_holding = positions.yes_holding + :delta_yes,
        no_holding  = positions.no_holding  + :delta_no,
        version = positions.version + 1,
        updated_at = NOW()
    RETURNING {_POSITION_COLUMNS}
""")

_ADJUST_SQL = text(f"""
    UPDATE positions
    SET yes_holding = yes_holding + :delta_yes,
        no_holding  = no_holding  + :delta_no,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
      AND market_id = :market_id
      AND yes_holding + :delta_yes >= 0
      AND no_holding  + :delta_no  >= 0
    RETURNING {_POSITION_COLUMNS}
""")

_LIST_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE user_id = :user_id
      AND (yes_holding > 0 OR no_holding > 0)
    ORDER BY market_id
""")


def _row_to_position(row: object) -> Position:
    return Position(
        user_id=row.user_id,  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        yes_holding=row.yes_holding,  # type: ignore[attr-defined]
        no_holding=row.no_holding,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class PositionRepository:
    """Position Manager backed by the positions table."""

    async def get_position(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        for_update: bool = False,
    ) -> Position | None:
        sql = _GET_FOR_UPDATE_SQL if for_update else _GET_SQL
        row = (
            await db.execute(sql, {"user_id": user_id, "market_id": market_id})
        ).fetchone()
        return _row_to_position(row) if row else None

    async def upsert_position(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        delta_yes: int,
        delta_no: int,
    ) -> Position:
        params = {
            "user_id": user_id,
            "market_id": market_id,
            "delta_yes": delta_yes,
            "delta_no": delta_no,
        }
        sql = _CREDIT_SQL if delta_yes >= 0 and delta_no >= 0 else _ADJUST_SQL
        row = (await db.execute(sql, params)).fetchone()
        if row is None:
            raise NegativeHoldingError(
                f"user {user_id} market {market_id} "
                f"delta_yes={delta_yes} delta_no={delta_no}"
            )
        return _row_to_position(row)

    async def list_by_user(self, db: AsyncSession, user_id: str) -> list[Position]:
        rows = (await db.execute(_LIST_SQL, {"user_id": user_id})).fetchall()
        return [_row_to_position(r) for r in rows]
