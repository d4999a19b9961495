"""
Tests for the WebSocket connection manager.

Async code is driven with asyncio.run so no pytest plugin is needed.
"""
from __future__ import annotations

import asyncio

from sileme.services.delivery import ConnectionManager


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send_json(self, message):
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(message)


class TestConnectionManager:
    def test_publish_on_loop_holds_task_until_sent(self):
        ws = FakeSocket()

        async def scenario():
            manager = ConnectionManager(send_timeout=1)
            manager.bind(asyncio.get_running_loop())
            manager.join("user_1", ws)
            manager.publish("user_1", "new_notification", {"title": "hi"})
            pending = len(manager._tasks)
            await asyncio.gather(*list(manager._tasks))
            await asyncio.sleep(0)
            return pending, len(manager._tasks)

        pending, left = asyncio.run(scenario())
        assert pending == 1
        assert left == 0
        assert ws.sent == [{"event": "new_notification", "data": {"title": "hi"}}]

    def test_failed_send_drops_socket(self):
        ws = FakeSocket(fail=True)

        async def scenario():
            manager = ConnectionManager(send_timeout=1)
            manager.bind(asyncio.get_running_loop())
            manager.join("user_1", ws)
            manager.publish("user_1", "ping", {})
            await asyncio.gather(*list(manager._tasks))
            return manager.room_size("user_1")

        assert asyncio.run(scenario()) == 0
