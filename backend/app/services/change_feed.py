from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Awaitable, Callable
import logging

from anyio import from_thread
from fastapi import WebSocket

from app.schemas.change import ChangeEvent

logger = logging.getLogger(__name__)

ChangeListener = Callable[[ChangeEvent], Awaitable[None]]


def change_event_payload(event: ChangeEvent) -> dict:
    return event.model_dump(mode="json", exclude_none=True)


class ChangeFeedHub:
    """Fans lesson changes out to websocket subscribers and in-process listeners, per timetable."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)
        self._listeners: dict[str, list[ChangeListener]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def connect(self, timetable_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[timetable_id].add(websocket)

    async def disconnect(self, timetable_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._connections.get(timetable_id)
            if not sockets:
                return
            sockets.discard(websocket)
            if not sockets:
                self._connections.pop(timetable_id, None)

    async def add_listener(self, timetable_id: str, listener: ChangeListener) -> None:
        async with self._lock:
            self._listeners[timetable_id].append(listener)

    async def remove_listener(self, timetable_id: str, listener: ChangeListener) -> None:
        async with self._lock:
            listeners = self._listeners.get(timetable_id)
            if not listeners or listener not in listeners:
                return
            listeners.remove(listener)
            if not listeners:
                self._listeners.pop(timetable_id, None)

    async def subscriber_count(self, timetable_id: str) -> int:
        async with self._lock:
            return len(self._connections.get(timetable_id, ())) + len(self._listeners.get(timetable_id, ()))

    async def publish(self, event: ChangeEvent) -> None:
        timetable_id = event.timetable_id
        async with self._lock:
            sockets = list(self._connections.get(timetable_id, set()))
            listeners = list(self._listeners.get(timetable_id, []))

        for listener in listeners:
            await listener(event)

        if not sockets:
            return

        payload = change_event_payload(event)
        stale: list[WebSocket] = []
        for websocket in sockets:
            try:
                await websocket.send_json(payload)
            except Exception:  # pragma: no cover - network/runtime dependent
                stale.append(websocket)

        if stale:
            async with self._lock:
                active = self._connections.get(timetable_id, set())
                for socket in stale:
                    active.discard(socket)
                if not active:
                    self._connections.pop(timetable_id, None)
            logger.debug("Removed %d stale change-feed websocket(s) for timetable %s", len(stale), timetable_id)


change_feed_hub = ChangeFeedHub()


def publish_lesson_change(event: ChangeEvent) -> None:
    """Push a change from a synchronous route handler onto the event loop."""
    try:
        from_thread.run(change_feed_hub.publish, event)
    except Exception:  # pragma: no cover - runtime environment dependent
        logger.debug(
            "Unable to push %s for lesson %s in timetable %s",
            event.event.value,
            event.lesson_id,
            event.timetable_id,
            exc_info=True,
        )
