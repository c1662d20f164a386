from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Iterator, NewType, Optional

RegistrationToken = NewType("RegistrationToken", str)

DEFAULT_EVENT_DAY_KEYS: tuple[str, ...] = ("day1", "day2", "day3")


class UnknownEventDay(ValueError):
    """Raised when a day key is not part of the configured event."""


@dataclass(frozen=True, slots=True)
class EventDay:
    key: str
    label: str = ""

    @property
    def display_label(self) -> str:
        return self.label or self.key.upper()

    def __str__(self) -> str:
        return self.key


class EventDayCatalog:
    """Fixed, ordered set of days an event runs on."""

    def __init__(self, days: Iterable[EventDay | str] = DEFAULT_EVENT_DAY_KEYS) -> None:
        ordered: dict[str, EventDay] = {}
        for entry in days:
            day = entry if isinstance(entry, EventDay) else EventDay(key=str(entry).strip())
            if not day.key:
                continue
            ordered.setdefault(day.key, day)
        if not ordered:
            raise ValueError("An event needs at least one day.")
        self._days = ordered

    @classmethod
    def from_keys(cls, raw: str) -> "EventDayCatalog":
        return cls(part.strip() for part in raw.split(",") if part.strip())

    def get(self, key: str | EventDay) -> EventDay:
        lookup = key.key if isinstance(key, EventDay) else str(key).strip()
        try:
            return self._days[lookup]
        except KeyError as exc:
            raise UnknownEventDay(f"Unknown event day: {lookup!r}") from exc

    def __contains__(self, key: object) -> bool:
        if isinstance(key, EventDay):
            return key.key in self._days
        return key in self._days

    def __iter__(self) -> Iterator[EventDay]:
        return iter(self._days.values())

    def __len__(self) -> int:
        return len(self._days)


class ScanState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    SCANNING = "scanning"
    PROCESSING = "processing"


class ScanMode(str, Enum):
    CONTINUOUS = "continuous"
    SINGLE_SHOT = "single"

    @classmethod
    def parse(cls, raw: str | None) -> "ScanMode":
        value = (raw or "").strip().lower()
        if value in ("single", "single_shot", "single-shot"):
            return cls.SINGLE_SHOT
        return cls.CONTINUOUS


class OutcomeKind(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"
    CAMERA_UNAVAILABLE = "camera_unavailable"


@dataclass(frozen=True, slots=True)
class ScanOutcome:
    """Result of a single check-in attempt, routed to the feedback emitter."""

    kind: OutcomeKind
    message: str
    token: Optional[RegistrationToken] = None
    day: Optional[EventDay] = None
    status_code: Optional[int] = None

    @classmethod
    def accepted(cls, message: str, *, token=None, day=None, status_code=None) -> "ScanOutcome":
        return cls(OutcomeKind.ACCEPTED, message, token, day, status_code)

    @classmethod
    def rejected(cls, reason: str, *, token=None, day=None, status_code=None) -> "ScanOutcome":
        return cls(OutcomeKind.REJECTED, reason, token, day, status_code)

    @classmethod
    def transport_error(cls, detail: str, *, token=None, day=None, status_code=None) -> "ScanOutcome":
        return cls(OutcomeKind.TRANSPORT_ERROR, detail, token, day, status_code)

    @classmethod
    def camera_unavailable(cls, detail: str, *, day=None) -> "ScanOutcome":
        return cls(OutcomeKind.CAMERA_UNAVAILABLE, detail, None, day, None)

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.ACCEPTED

    def with_context(self, *, token: RegistrationToken, day: EventDay) -> "ScanOutcome":
        return ScanOutcome(self.kind, self.message, token, day, self.status_code)


@dataclass(frozen=True, slots=True)
class AttendanceCount:
    day: EventDay
    value: int = 0
    stale: bool = True
    refreshed_at: Optional[datetime] = field(default=None, compare=False)
