"""MarketRepository: read-only existence check against the markets table."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

# FOR SHARE holds the row until the caller's transaction ends, so the market
# cannot be deleted between this check and the positions insert (FK).
_MARKET_EXISTS_SQL = text("""
    SELECT 1 FROM markets WHERE id = :market_id FOR SHARE
""")


class MarketRepository:
    async def market_exists(self, db: AsyncSession, market_id: str) -> bool:
        result = await db.execute(_MARKET_EXISTS_SQL, {"market_id": market_id})
        return result.first() is not None
