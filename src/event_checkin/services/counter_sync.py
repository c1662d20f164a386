from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from event_checkin.models import AttendanceCount, EventDay
from event_checkin.utils.dispatch import Dispatcher, TimerHandle

logger = logging.getLogger(__name__)

CountListener = Callable[[AttendanceCount], None]


class CountSource(Protocol):
    def fetch_count(self, day: EventDay) -> int: ...


class AttendanceCounterSync:
    """Cached, eventually consistent attendance count for the bound day.

    The cached value is display-only. Refresh results are rebound on the
    dispatcher thread and dropped when they belong to a day that is no longer
    bound, so a slow response for an earlier day never overwrites the count
    shown for the current one.
    """

    def __init__(self, source: CountSource, dispatcher: Dispatcher) -> None:
        self._source = source
        self._dispatcher = dispatcher
        self._current: Optional[AttendanceCount] = None
        self._listeners: list[CountListener] = []
        self._poll_handle: Optional[TimerHandle] = None
        self._poll_interval: float = 0.0
        self._in_flight: set[str] = set()
        self._pending: set[str] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def bound_day(self) -> Optional[EventDay]:
        return self._current.day if self._current is not None else None

    def snapshot(self) -> Optional[AttendanceCount]:
        return self._current

    def bind(self, day: Optional[EventDay]) -> None:
        if day is None:
            self._current = None
            return
        if self._current is not None and self._current.day == day:
            return
        self._current = AttendanceCount(day=day)
        self._notify()

    def refresh(self, day: EventDay) -> AttendanceCount:
        """Fetch the count for ``day``; raises ``TransportError`` on failure."""
        value = self._source.fetch_count(day)
        return AttendanceCount(day=day, value=value, stale=False, refreshed_at=datetime.now(timezone.utc))

    def request_refresh(self, day: Optional[EventDay] = None) -> None:
        target = day or self.bound_day
        if target is None:
            return
        # One fetch per day on the wire; a trigger arriving meanwhile re-issues after it lands.
        if target.key in self._in_flight:
            self._pending.add(target.key)
            return
        self._in_flight.add(target.key)

        def _work() -> None:
            try:
                fresh = self.refresh(target)
            except Exception as exc:
                logger.warning("Attendance count refresh for %s failed: %s", target.key, exc)
                self._dispatcher.call_soon(lambda: self._settle(target))
                return
            self._dispatcher.call_soon(lambda: self._apply(fresh))

        self._dispatcher.run_in_background(_work)

    def start_polling(self, interval: float) -> None:
        self.stop_polling()
        if interval <= 0:
            return
        self._poll_interval = interval
        self._poll_handle = self._dispatcher.call_later(interval, self._poll)

    def stop_polling(self) -> None:
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None

    @property
    def is_polling(self) -> bool:
        return self._poll_handle is not None

    def subscribe(self, listener: CountListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _poll(self) -> None:
        if self._poll_handle is None:
            return
        self.request_refresh()
        self._poll_handle = self._dispatcher.call_later(self._poll_interval, self._poll)

    def _apply(self, fresh: AttendanceCount) -> None:
        if self._current is None or self._current.day != fresh.day:
            logger.debug("Dropping count for %s; %s is bound", fresh.day.key, self.bound_day)
        else:
            self._current = fresh
            self._notify()
        self._settle(fresh.day)

    def _settle(self, day: EventDay) -> None:
        self._in_flight.discard(day.key)
        if day.key in self._pending:
            self._pending.discard(day.key)
            if self.bound_day == day:
                self.request_refresh(day)

    def _notify(self) -> None:
        if self._current is None:
            return
        for listener in list(self._listeners):
            try:
                listener(self._current)
            except Exception:
                logger.exception("Count listener failed")
