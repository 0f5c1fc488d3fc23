"""
Unit tests for the logging helpers: context binding, JSON output and the
non-blocking queue handler.
"""

import asyncio
import json
import logging
import queue

from rewardwatch.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    WatchQueueHandler,
)


def make_record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("rewardwatch.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:

    def test_fields_reach_the_record(self):
        record = make_record()
        with LogContext(user_id=42, operation="update_sweep", correlation_id="abc123"):
            ContextFilter().filter(record)

        assert record.user_id == "42"
        assert record.operation == "update_sweep"
        assert record.correlation_id == "abc123"
        assert record.component == "rewardwatch"

    def test_nested_context_is_restored(self):
        outer, inner, after = make_record(), make_record(), make_record()
        with LogContext(user_id=1):
            with LogContext(user_id=2):
                ContextFilter().filter(inner)
            ContextFilter().filter(outer)
        ContextFilter().filter(after)

        assert (inner.user_id, outer.user_id, after.user_id) == ("2", "1", "N/A")

    async def test_concurrent_tasks_keep_their_own_context(self):
        seen = {}

        async def sweep(user_id: int) -> None:
            async with LogContext(user_id=user_id):
                await asyncio.sleep(0)
                record = make_record()
                ContextFilter().filter(record)
                seen[user_id] = record.user_id

        await asyncio.gather(sweep(1), sweep(2), sweep(3))

        assert seen == {1: "1", 2: "2", 3: "3"}


class TestJSONFormatter:

    def test_extra_fields_are_nested(self):
        record = make_record("Fetching reward", reward_id=7)
        ContextFilter().filter(record)

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "Fetching reward"
        assert payload["extra"] == {"reward_id": 7}
        assert "user_id" not in payload
        assert payload["component"] == "rewardwatch"

    def test_unserializable_values_are_stringified(self):
        record = make_record(path=queue.Queue)

        payload = json.loads(JSONFormatter().format(record))

        assert payload["extra"]["path"] == str(queue.Queue)


class TestQueueHandler:

    def test_full_queue_drops_instead_of_blocking(self, capsys):
        handler = WatchQueueHandler(queue.Queue(maxsize=1))

        handler.enqueue(make_record("first"))
        handler.enqueue(make_record("second"))

        assert handler.dropped == 1
        assert handler.queue.get_nowait().msg == "first"
        assert "dropping log record" in capsys.readouterr().err
