"""Ledger events: BALANCE_UPDATED / POSITION_UPDATED on a Redis stream.

Published after the transaction commits, so consumers (notifications,
read models) only ever see committed state. The stream is capped with
XADD MAXLEN ~ to bound memory.

Stream entry fields:
    event_type, user_id, timestamp, plus
    balance                                   (BALANCE_UPDATED)
    market_id, yes_holding, no_holding        (POSITION_UPDATED)
"""
import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis

from config.settings import settings
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import LedgerEventType
from src.pm_common.redis_client import get_redis
from src.pm_ledger.domain.models import LedgerResult

logger = logging.getLogger(__name__)


def build_events(result: LedgerResult) -> list[dict[str, str | int]]:
    """Stream payloads for one committed split/merge, balance event first."""
    timestamp = utc_now().isoformat()
    return [
        {
            "event_type": LedgerEventType.BALANCE_UPDATED.value,
            "operation": result.operation.value,
            "user_id": result.user_id,
            "balance": result.balance,
            "timestamp": timestamp,
        },
        {
            "event_type": LedgerEventType.POSITION_UPDATED.value,
            "operation": result.operation.value,
            "user_id": result.user_id,
            "market_id": result.market_id,
            "yes_holding": result.yes_holding,
            "no_holding": result.no_holding,
            "timestamp": timestamp,
        },
    ]


class LedgerEventPublisher:
    def __init__(
        self,
        redis_getter: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        stream: str = settings.LEDGER_EVENTS_STREAM,
        maxlen: int = settings.LEDGER_EVENTS_MAXLEN,
    ) -> None:
        self._redis_getter = redis_getter
        self._stream = stream
        self._maxlen = maxlen

    async def publish(self, result: LedgerResult) -> None:
        """XADD both events in one round trip. Raises redis errors to the caller."""
        redis = await self._redis_getter()
        async with redis.pipeline(transaction=False) as pipe:
            for fields in build_events(result):
                pipe.xadd(self._stream, fields, maxlen=self._maxlen, approximate=True)
            await pipe.execute()
        logger.debug(
            "Published ledger events: stream=%s user=%s market=%s",
            self._stream, result.user_id, result.market_id,
        )
