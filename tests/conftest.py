from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

import pytest

from event_checkin.models import EventDay, EventDayCatalog, RegistrationToken, ScanMode, ScanOutcome
from event_checkin.services import (
    AttendanceCounterSync,
    CameraUnavailable,
    CheckinCoordinator,
    DayContext,
    FeedbackEmitter,
)


class ManualTimer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualDispatcher:
    """Deterministic dispatcher: nothing runs until the test says so."""

    def __init__(self) -> None:
        self.ready: deque[Callable[[], None]] = deque()
        self.background: deque[Callable[[], None]] = deque()
        self.timers: list[ManualTimer] = []

    def call_soon(self, callback: Callable[[], None]) -> None:
        self.ready.append(callback)

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def run_in_background(self, work: Callable[[], None]) -> None:
        self.background.append(work)

    def run_ready(self) -> None:
        while self.ready:
            self.ready.popleft()()

    def run_background(self) -> None:
        while self.background:
            self.background.popleft()()

    def drain(self) -> None:
        while self.ready or self.background:
            self.run_ready()
            self.run_background()

    @property
    def active_timers(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def fire_timers(self) -> None:
        due = self.active_timers
        self.timers = []
        for timer in due:
            timer.callback()


class FakeDecoder:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.on_payload: Optional[Callable[[RegistrationToken], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.running = False
        self.stop_calls = 0

    def start(self, on_payload, *, on_frame=None, on_error=None) -> None:
        if self.fail:
            raise CameraUnavailable("Camera permission denied")
        self.on_payload = on_payload
        self.on_error = on_error
        self.running = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.running = False

    @property
    def is_running(self) -> bool:
        return self.running

    def read(self, token: str) -> None:
        if self.running and self.on_payload is not None:
            self.on_payload(RegistrationToken(token))

    def lose_camera(self, message: str = "Camera disconnected") -> None:
        if self.running and self.on_error is not None:
            self.running = False
            self.on_error(message)


class DecoderFactory:
    def __init__(self) -> None:
        self.created: list[FakeDecoder] = []
        self.fail_next = False

    def __call__(self) -> FakeDecoder:
        decoder = FakeDecoder(fail=self.fail_next)
        self.fail_next = False
        self.created.append(decoder)
        return decoder

    @property
    def current(self) -> FakeDecoder:
        return self.created[-1]

    @property
    def running(self) -> list[FakeDecoder]:
        return [decoder for decoder in self.created if decoder.running]


class FakeCheckinServer:
    """In-memory stand-in for the mark-present and count endpoints."""

    def __init__(self) -> None:
        self.checked_in: dict[str, set[str]] = {}
        self.calls: list[tuple[str, str]] = []
        self.count_calls: list[str] = []
        self.failures: deque[Exception] = deque()
        self.count_failures: deque[Exception] = deque()
        self.events: list[str] = []

    def mark_present(self, day: EventDay, token: RegistrationToken) -> ScanOutcome:
        self.calls.append((day.key, token))
        if self.failures:
            raise self.failures.popleft()
        seen = self.checked_in.setdefault(day.key, set())
        if token in seen:
            return ScanOutcome.rejected("Already checked in", token=token, day=day, status_code=409)
        seen.add(token)
        return ScanOutcome.accepted(f"Welcome {token}", token=token, day=day, status_code=200)

    def fetch_count(self, day: EventDay) -> int:
        self.count_calls.append(day.key)
        self.events.append("count")
        if self.count_failures:
            raise self.count_failures.popleft()
        return len(self.checked_in.get(day.key, set()))

    def calls_for(self, token: str) -> int:
        return sum(1 for _, called in self.calls if called == token)


@dataclass
class FeedbackRecorder:
    tones: list[bool] = field(default_factory=list)
    haptics: list[tuple[int, ...]] = field(default_factory=list)
    signals: list = field(default_factory=list)
    events: Optional[list[str]] = None

    def tone(self, success: bool) -> None:
        self.tones.append(success)
        if self.events is not None:
            self.events.append("feedback")

    def haptic(self, pattern: tuple[int, ...]) -> None:
        self.haptics.append(pattern)

    def visual(self, signal) -> None:
        self.signals.append(signal)

    @property
    def kinds(self) -> list[str]:
        return [signal.outcome.kind.value for signal in self.signals]


@dataclass
class ScanHarness:
    coordinator: CheckinCoordinator
    dispatcher: ManualDispatcher
    server: FakeCheckinServer
    decoders: DecoderFactory
    feedback: FeedbackRecorder
    counter: AttendanceCounterSync

    def read(self, token: str) -> None:
        """Simulate the camera decoding ``token`` and let everything settle."""
        self.decoders.current.read(token)
        self.dispatcher.drain()


@pytest.fixture
def catalog() -> EventDayCatalog:
    return EventDayCatalog(("day1", "day2", "day3"))


@pytest.fixture
def dispatcher() -> ManualDispatcher:
    return ManualDispatcher()


@pytest.fixture
def make_harness(catalog, dispatcher):
    def _make(*, scan_mode: ScanMode = ScanMode.CONTINUOUS, poll_interval: float = 0.0) -> ScanHarness:
        server = FakeCheckinServer()
        recorder = FeedbackRecorder(events=server.events)
        feedback = FeedbackEmitter(recorder.tone, recorder.haptic, visual_listeners=[recorder.visual])
        counter = AttendanceCounterSync(server, dispatcher)
        decoders = DecoderFactory()
        coordinator = CheckinCoordinator(
            DayContext(catalog),
            server,
            counter,
            feedback,
            decoders,
            dispatcher,
            scan_mode=scan_mode,
            poll_interval=poll_interval,
        )
        return ScanHarness(coordinator, dispatcher, server, decoders, recorder, counter)

    return _make


@pytest.fixture
def harness(make_harness) -> ScanHarness:
    return make_harness()

