from __future__ import annotations

import logging
from typing import Callable, Optional

from event_checkin.models import EventDay, EventDayCatalog

logger = logging.getLogger(__name__)

DayListener = Callable[[Optional[EventDay]], None]


class DayNotSelected(RuntimeError):
    """Raised when an operation needs an event day but none is selected."""


class DayContext:
    def __init__(self, catalog: EventDayCatalog) -> None:
        self._catalog = catalog
        self._active: Optional[EventDay] = None
        self._listeners: list[DayListener] = []

    @property
    def catalog(self) -> EventDayCatalog:
        return self._catalog

    @property
    def active(self) -> Optional[EventDay]:
        return self._active

    def require(self) -> EventDay:
        if self._active is None:
            raise DayNotSelected("Select an event day before scanning.")
        return self._active

    def select(self, day: EventDay | str) -> bool:
        """Select ``day``; returns ``True`` when the selection changed."""
        resolved = self._catalog.get(day)
        if resolved == self._active:
            return False
        self._active = resolved
        logger.info("Event day selected: %s", resolved.key)
        self._notify()
        return True

    def clear(self) -> None:
        if self._active is None:
            return
        self._active = None
        self._notify()

    def subscribe(self, listener: DayListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._active)
            except Exception:
                logger.exception("Day listener failed")
