"""
Delivery sinks, the fan-out targets for notifications and live events.

A sink owns one channel name ("realtime", "push", …) and exposes a single
fire-and-forget call:

    sink.publish(channel_key, event, payload)

channel_key is the per-user room, built with channel_key_for(user_id).
Sinks give no delivery guarantee and no backpressure. A sink may raise
DeliveryFailedError when it cannot even accept the message; callers that
process batches catch it per item.

Implementations
---------------
RecordingSink      in-memory list of published messages (tests, no transport)
ConnectionManager  WebSocket rooms; sends are scheduled on the event loop
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from fastapi import WebSocket

from sileme.core.errors import DeliveryFailedError

logger = logging.getLogger(__name__)

Sinks = Mapping[str, "DeliverySink"]


def channel_key_for(user_id: int) -> str:
    return f"user_{user_id}"


def serialize_payload(payload: Mapping[str, Any]) -> dict:
    """Convert datetimes to ISO strings so payloads are JSON-safe."""
    result = {}
    for key, value in payload.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Mapping):
            value = serialize_payload(value)
        result[key] = value
    return result


class DeliverySink(ABC):
    channel: str = "realtime"

    @abstractmethod
    def publish(self, channel_key: str, event: str, payload: Mapping[str, Any]) -> None:
        ...


@dataclass
class PublishedMessage:
    channel_key: str
    event: str
    payload: dict


class RecordingSink(DeliverySink):
    """Keeps every published message in memory."""

    def __init__(self, channel: str = "realtime"):
        self.channel = channel
        self.messages: list[PublishedMessage] = []

    def publish(self, channel_key: str, event: str, payload: Mapping[str, Any]) -> None:
        self.messages.append(PublishedMessage(channel_key, event, serialize_payload(payload)))

    def events(self, event: Optional[str] = None) -> list[PublishedMessage]:
        if event is None:
            return list(self.messages)
        return [m for m in self.messages if m.event == event]

    def clear(self) -> None:
        self.messages.clear()


class ConnectionManager(DeliverySink):
    """
    WebSocket rooms keyed by channel_key.

    publish() may be called from request handlers or from the scheduler's
    worker threads; sends are handed to the event loop captured by bind()
    and never awaited by the caller. Sockets that fail or time out are
    dropped from their room.
    """

    channel = "realtime"

    def __init__(self, send_timeout: float = 5.0):
        self.send_timeout = send_timeout
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: set[asyncio.Task] = set()

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def join(self, channel_key: str, websocket: WebSocket) -> None:
        self._rooms[channel_key].add(websocket)
        logger.info("websocket joined %s (%d in room)", channel_key, len(self._rooms[channel_key]))

    def leave(self, channel_key: str, websocket: WebSocket) -> None:
        room = self._rooms.get(channel_key)
        if room is None:
            return
        room.discard(websocket)
        if not room:
            del self._rooms[channel_key]
        logger.info("websocket left %s", channel_key)

    def room_size(self, channel_key: str) -> int:
        return len(self._rooms.get(channel_key, ()))

    def publish(self, channel_key: str, event: str, payload: Mapping[str, Any]) -> None:
        sockets = list(self._rooms.get(channel_key, ()))
        if not sockets:
            return
        if self._loop is None or self._loop.is_closed():
            raise DeliveryFailedError(self.channel, channel_key, "event loop not available")

        message = {"event": event, "data": serialize_payload(payload)}
        for ws in sockets:
            coro = self._send(channel_key, ws, message)
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is self._loop:
                task = self._loop.create_task(coro)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            else:
                asyncio.run_coroutine_threadsafe(coro, self._loop)

    async def _send(self, channel_key: str, ws: WebSocket, message: dict) -> None:
        try:
            await asyncio.wait_for(ws.send_json(message), timeout=self.send_timeout)
        except Exception as exc:
            logger.warning("dropping websocket in %s after failed send: %s", channel_key, exc)
            self.leave(channel_key, ws)
