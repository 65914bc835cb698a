"""Local timetable view kept in sync by push notifications and periodic polling.

Change notifications patch the view optimistically and arm a debounced full
refresh; a periodic tick refreshes as well. Both producers feed one inbox and a
single consumer task owns the view, so no locking is needed around it. A full
refresh replaces the lesson set wholesale, and a refresh that was superseded
while in flight is dropped.

This is the client-side half of the change feed; nothing in the HTTP app
starts one. A consumer in the same process (a worker, a cache warmer, a
test) wires it to the store and to the hub like so::

    async with ReconciliationLoop(
        "tt-1", RepositoryTimetableSource(), feed=change_feed_hub
    ) as loop:
        await loop.wait_until_idle(timeout=5)
        view = loop.current_view()

A remote client feeds ``on_change_notification`` with the JSON frames from
``/api/timetables/{id}/changes/ws`` instead of passing ``feed``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import contextlib
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any

from anyio import to_thread
from pydantic import ValidationError

from app.core.config import get_settings
from app.core.exceptions import ResourceNotFoundError, TransientUnavailableError
from app.db.session import SessionLocal
from app.schemas.change import ChangeEvent, ChangeKind
from app.schemas.timetable import LessonOut, TimetableOut
from app.services.change_feed import ChangeFeedHub
from app.services.repository import TimetableRepository

logger = logging.getLogger(__name__)

TimetableFetcher = Callable[[str], Awaitable[TimetableOut]]


class SyncState(str, Enum):
    idle = "idle"
    awaiting_refresh = "awaiting_refresh"


@dataclass(frozen=True)
class _Notification:
    payload: ChangeEvent | dict[str, Any]


@dataclass(frozen=True)
class _Tick:
    pass


@dataclass(frozen=True)
class _RefreshDue:
    # Set when posted by the debounce timer; a re-armed timer makes older ones stale.
    debounce_token: int | None = None


@dataclass(frozen=True)
class _RefreshResult:
    generation: int
    view: TimetableOut | None = None
    error: Exception | None = None


class ReconciliationLoop:
    def __init__(
        self,
        timetable_id: str,
        fetch_timetable: TimetableFetcher,
        *,
        debounce_seconds: float | None = None,
        refresh_interval_seconds: float | None = None,
        feed: ChangeFeedHub | None = None,
    ) -> None:
        settings = get_settings()
        self.timetable_id = timetable_id
        self.fetch_timetable = fetch_timetable
        self.debounce_seconds = debounce_seconds if debounce_seconds is not None else settings.sync_debounce_seconds
        self.refresh_interval_seconds = (
            refresh_interval_seconds
            if refresh_interval_seconds is not None
            else settings.sync_refresh_interval_seconds
        )
        self.feed = feed

        self._name = ""
        self._timing_id: str | None = None
        self._lessons: dict[str, LessonOut] = {}
        self._state = SyncState.idle
        self._generation = 0
        self._inbox: asyncio.Queue | None = None
        self._consumer: asyncio.Task | None = None
        self._ticker: asyncio.Task | None = None
        self._refresh_task: asyncio.Task | None = None
        self._debounce: asyncio.TimerHandle | None = None
        self._debounce_token = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def current_view(self) -> TimetableOut:
        # Refreshed lessons keep the store's order; patched-in lessons follow them.
        lessons = list(self._lessons.values())
        return TimetableOut(id=self.timetable_id, name=self._name, timing_id=self._timing_id, lessons=lessons)

    # Lifecycle

    async def start(self, *, initial_refresh: bool = True) -> None:
        if self.running:
            return
        self._inbox = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume(), name=f"reconcile-{self.timetable_id}")
        self._ticker = asyncio.create_task(self._tick_forever(), name=f"reconcile-tick-{self.timetable_id}")
        if self.feed is not None:
            await self.feed.add_listener(self.timetable_id, self.on_change_notification)
        if initial_refresh:
            self._set_state(SyncState.awaiting_refresh)
            self._inbox.put_nowait(_RefreshDue())
        logger.debug("Reconciliation loop started for timetable %s", self.timetable_id)

    async def stop(self) -> None:
        if self.feed is not None:
            await self.feed.remove_listener(self.timetable_id, self.on_change_notification)
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        for task in (self._ticker, self._refresh_task, self._consumer):
            if task is None or task.done():
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._ticker = self._refresh_task = self._consumer = None
        logger.debug("Reconciliation loop stopped for timetable %s", self.timetable_id)

    async def __aenter__(self) -> "ReconciliationLoop":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def drain(self) -> None:
        """Wait until every queued message has been handled."""
        if self._inbox is not None:
            await self._inbox.join()

    async def wait_until_idle(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._idle.wait(), timeout)

    # Producers

    async def on_change_notification(self, payload: ChangeEvent | dict[str, Any]) -> None:
        self._post(_Notification(payload))

    async def on_periodic_tick(self) -> None:
        self._post(_Tick())

    def _post(self, message: object) -> None:
        if self._inbox is None:
            raise RuntimeError("Reconciliation loop is not running")
        self._inbox.put_nowait(message)

    async def _tick_forever(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval_seconds)
            await self.on_periodic_tick()

    # Consumer

    async def _consume(self) -> None:
        while True:
            message = await self._inbox.get()
            try:
                self._handle(message)
            except Exception:
                logger.exception("Reconciliation loop for timetable %s failed to handle %r", self.timetable_id, message)
            finally:
                self._inbox.task_done()

    def _handle(self, message: object) -> None:
        if isinstance(message, _Notification):
            self._handle_notification(message.payload)
        elif isinstance(message, _Tick):
            if self._refresh_in_flight():
                logger.debug("Skipping periodic refresh of %s; one is already in flight", self.timetable_id)
                return
            self._start_refresh()
        elif isinstance(message, _RefreshDue):
            if message.debounce_token is not None:
                if message.debounce_token != self._debounce_token:
                    return
                self._debounce = None
            self._start_refresh()
        elif isinstance(message, _RefreshResult):
            self._handle_refresh_result(message)

    def _handle_notification(self, payload: ChangeEvent | dict[str, Any]) -> None:
        if isinstance(payload, ChangeEvent):
            event = payload
        else:
            try:
                event = ChangeEvent.model_validate(payload)
            except ValidationError:
                logger.warning("Unreadable change notification for timetable %s; refreshing", self.timetable_id)
                self._mark_stale()
                return

        if event.timetable_id != self.timetable_id:
            return

        if event.event == ChangeKind.delete:
            self._lessons.pop(event.lesson_id, None)
        else:
            previous = self._lessons.get(event.lesson.id)
            self._lessons[event.lesson.id] = LessonOut(
                **event.lesson.model_dump(),
                badge=previous.badge if previous is not None else "",
            )
        self._mark_stale()

    def _mark_stale(self) -> None:
        # Anything fetched before this change is out of date.
        self._generation += 1
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = None
        self._set_state(SyncState.awaiting_refresh)

        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce_token += 1
        loop = asyncio.get_running_loop()
        self._debounce = loop.call_later(
            self.debounce_seconds, self._inbox.put_nowait, _RefreshDue(debounce_token=self._debounce_token)
        )

    def _refresh_in_flight(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def _start_refresh(self) -> None:
        if self._refresh_in_flight():
            self._refresh_task.cancel()
        self._generation += 1
        self._refresh_task = asyncio.create_task(self._fetch(self._generation))

    async def _fetch(self, generation: int) -> None:
        try:
            view = await self.fetch_timetable(self.timetable_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._inbox.put_nowait(_RefreshResult(generation=generation, error=exc))
            return
        self._inbox.put_nowait(_RefreshResult(generation=generation, view=view))

    def _handle_refresh_result(self, result: _RefreshResult) -> None:
        if result.generation != self._generation:
            logger.debug("Discarding superseded refresh of timetable %s", self.timetable_id)
            return
        self._refresh_task = None

        if result.error is None:
            self._name = result.view.name
            self._timing_id = result.view.timing_id
            self._lessons = {lesson.id: lesson for lesson in result.view.lessons}
            if self._debounce is None:
                self._set_state(SyncState.idle)
            return

        if isinstance(result.error, ResourceNotFoundError):
            logger.warning("Timetable %s no longer exists; clearing its lessons", self.timetable_id)
            self._lessons = {}
            self._set_state(SyncState.idle)
        elif isinstance(result.error, TransientUnavailableError):
            logger.warning("Refresh of timetable %s failed; retrying on the next tick", self.timetable_id)
        else:
            logger.error(
                "Refresh of timetable %s failed",
                self.timetable_id,
                exc_info=(type(result.error), result.error, result.error.__traceback__),
            )

    def _set_state(self, state: SyncState) -> None:
        self._state = state
        if state == SyncState.idle:
            self._idle.set()
        else:
            self._idle.clear()


class RepositoryTimetableSource:
    """Async fetch for ``ReconciliationLoop`` backed by the SQL repository."""

    def __init__(self, session_factory=SessionLocal) -> None:
        self.session_factory = session_factory

    def _load(self, timetable_id: str) -> TimetableOut:
        with self.session_factory() as db:
            return TimetableRepository(db).fetch_timetable_view(timetable_id)

    async def __call__(self, timetable_id: str) -> TimetableOut:
        return await to_thread.run_sync(self._load, timetable_id)
