"""Tests for ledger event payloads and the Redis stream publisher."""
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.pm_common.enums import LedgerOperation
from src.pm_ledger.domain.models import LedgerResult
from src.pm_ledger.infrastructure.events import LedgerEventPublisher, build_events


def _result() -> LedgerResult:
    return LedgerResult(
        operation=LedgerOperation.SPLIT,
        user_id="user-1",
        market_id="mkt-1",
        quantity=40,
        balance=60,
        yes_holding=40,
        no_holding=40,
        ledger_entry_id=1,
    )


def _redis() -> tuple[MagicMock, MagicMock]:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=["1-0", "1-1"])
    redis = MagicMock()
    redis.pipeline.return_value.__aenter__.return_value = pipe
    redis.pipeline.return_value.__aexit__.return_value = False
    return redis, pipe


class TestBuildEvents:
    def test_balance_event_first(self) -> None:
        balance, position = build_events(_result())
        assert balance["event_type"] == "BALANCE_UPDATED"
        assert balance["balance"] == 60
        assert balance["operation"] == "SPLIT"
        assert position["event_type"] == "POSITION_UPDATED"
        assert position["market_id"] == "mkt-1"
        assert (position["yes_holding"], position["no_holding"]) == (40, 40)

    def test_shared_timestamp(self) -> None:
        balance, position = build_events(_result())
        assert balance["timestamp"] == position["timestamp"]


class TestLedgerEventPublisher:
    async def test_xadds_both_events_capped(self) -> None:
        redis, pipe = _redis()
        publisher = LedgerEventPublisher(
            redis_getter=AsyncMock(return_value=redis), stream="test:events", maxlen=500
        )
        await publisher.publish(_result())

        redis.pipeline.assert_called_once_with(transaction=False)
        assert pipe.xadd.call_count == 2
        first = pipe.xadd.call_args_list[0]
        assert first.args[0] == "test:events"
        assert first.args[1]["event_type"] == "BALANCE_UPDATED"
        assert first.kwargs == {"maxlen": 500, "approximate": True}
        pipe.execute.assert_awaited_once()

    async def test_redis_error_propagates(self) -> None:
        redis, pipe = _redis()
        pipe.execute.side_effect = RedisConnectionError("down")
        publisher = LedgerEventPublisher(redis_getter=AsyncMock(return_value=redis))
        with pytest.raises(RedisConnectionError):
            await publisher.publish(_result())
