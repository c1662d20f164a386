"""Check-in state machine tying camera, dedupe, remote marking and feedback together.

All public methods and every callback the coordinator schedules run on the
dispatcher thread. The camera thread only ever posts payloads onto the
dispatcher, and the mark-present call runs as background work whose result is
posted back, so the coordinator itself needs no locks.

States::

    IDLE --select_day--> ARMED --start--> SCANNING --payload--> PROCESSING
                           ^                  ^                     |
                           |                  +---- continuous -----+
                           +------ stop / single-shot outcome ------+
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from event_checkin.models import (
    EventDay,
    OutcomeKind,
    RegistrationToken,
    ScanMode,
    ScanOutcome,
    ScanState,
)
from event_checkin.services.checkin_client import DEFAULT_FAILURE_MESSAGE, TransportError
from event_checkin.services.counter_sync import AttendanceCounterSync
from event_checkin.services.day_context import DayContext
from event_checkin.services.dedup import DedupFilter
from event_checkin.services.feedback import FeedbackEmitter
from event_checkin.services.qr_scanner import CameraUnavailable, DecoderAdapter, FrameCallback
from event_checkin.utils.dispatch import Dispatcher

logger = logging.getLogger(__name__)

StateListener = Callable[[ScanState], None]
DecoderFactory = Callable[[], DecoderAdapter]

NO_SESSION = 0


@dataclass(frozen=True, slots=True)
class _PendingCheckin:
    epoch: int
    session_id: int
    day: EventDay
    token: RegistrationToken


class MarkPresentClient(Protocol):
    def mark_present(self, day: EventDay, token: RegistrationToken) -> ScanOutcome: ...


class CheckinCoordinator:
    def __init__(
        self,
        day_context: DayContext,
        client: MarkPresentClient,
        counter: AttendanceCounterSync,
        feedback: FeedbackEmitter,
        decoder_factory: DecoderFactory,
        dispatcher: Dispatcher,
        *,
        scan_mode: ScanMode = ScanMode.CONTINUOUS,
        poll_interval: float = 0.0,
    ) -> None:
        self._day_context = day_context
        self._client = client
        self._counter = counter
        self._feedback = feedback
        self._decoder_factory = decoder_factory
        self._dispatcher = dispatcher
        self._scan_mode = scan_mode
        self._poll_interval = poll_interval

        self._dedup = DedupFilter()
        self._decoder: Optional[DecoderAdapter] = None
        self._frame_listener: Optional[FrameCallback] = None
        self._session_ids = itertools.count(1)
        self._session_id = NO_SESSION
        self._day_epoch = 0
        self._in_flight: Optional[_PendingCheckin] = None
        self._listeners: list[StateListener] = []
        self._state = ScanState.ARMED if day_context.active is not None else ScanState.IDLE

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def active_day(self) -> Optional[EventDay]:
        return self._day_context.active

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def scan_mode(self) -> ScanMode:
        return self._scan_mode

    @property
    def dedup(self) -> DedupFilter:
        return self._dedup

    @property
    def in_flight_token(self) -> Optional[RegistrationToken]:
        return self._in_flight.token if self._in_flight is not None else None

    def set_scan_mode(self, mode: ScanMode) -> None:
        """Takes effect for the next outcome; a running camera is left alone."""
        self._scan_mode = mode

    def set_frame_listener(self, listener: Optional[FrameCallback]) -> None:
        self._frame_listener = listener

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Operator gestures
    # ------------------------------------------------------------------
    def select_day(self, day: EventDay | str) -> EventDay:
        resolved = self._day_context.catalog.get(day)
        self._end_session()
        self._counter.stop_polling()
        self._day_epoch += 1

        self._day_context.select(resolved)
        self._counter.bind(resolved)
        self._counter.request_refresh(resolved)
        self._set_state(ScanState.ARMED)
        return resolved

    def start(self) -> bool:
        day = self._day_context.require()
        if self._state is ScanState.SCANNING:
            return True
        if self._state is ScanState.PROCESSING:
            logger.debug("Start ignored while a check-in is processing")
            return False

        self._release_decoder()
        if self._session_id == NO_SESSION:
            self._session_id = next(self._session_ids)
            self._dedup.clear()
        session_id = self._session_id

        def _on_payload(token: RegistrationToken) -> None:
            # Camera thread: hand over to the dispatcher with the session the payload belongs to.
            self._dispatcher.call_soon(lambda: self.on_payload_decoded(token, session_id=session_id))

        def _on_error(message: str) -> None:
            self._dispatcher.call_soon(lambda: self.on_decoder_lost(message, session_id=session_id))

        decoder = self._decoder_factory()
        try:
            decoder.start(_on_payload, on_frame=self._frame_listener, on_error=_on_error)
        except CameraUnavailable as exc:
            logger.warning("Camera unavailable for %s: %s", day.key, exc)
            self._set_state(ScanState.ARMED)
            self._feedback.emit(ScanOutcome.camera_unavailable(str(exc) or "Camera permission denied", day=day))
            return False

        self._decoder = decoder
        self._set_state(ScanState.SCANNING)
        if self._poll_interval > 0:
            self._counter.start_polling(self._poll_interval)
        logger.info("Scanning started for %s (session %s)", day.key, session_id)
        return True

    def stop(self) -> None:
        if self._state is ScanState.IDLE:
            return
        self._end_session()
        self._counter.stop_polling()
        self._set_state(ScanState.ARMED)

    def close(self) -> None:
        """Tear the scanning surface down; pending results are discarded."""
        self._end_session()
        self._counter.stop_polling()
        self._day_epoch += 1
        self._in_flight = None
        self._day_context.clear()
        self._counter.bind(None)
        self._set_state(ScanState.IDLE)

    # ------------------------------------------------------------------
    # Decoder events
    # ------------------------------------------------------------------
    def on_payload_decoded(self, token: str, *, session_id: Optional[int] = None) -> None:
        if session_id is not None and session_id != self._session_id:
            logger.debug("Dropping payload from ended session %s", session_id)
            return
        if self._state is not ScanState.SCANNING:
            logger.debug("Dropping payload while %s", self._state.value)
            return

        normalized = RegistrationToken(str(token).strip())
        if not normalized:
            return
        if self._dedup.seen(normalized):
            logger.debug("Duplicate read of %s ignored", normalized)
            return

        day = self._day_context.require()
        self._dedup.remember(normalized)
        self._set_state(ScanState.PROCESSING)
        if self._scan_mode is ScanMode.SINGLE_SHOT:
            self._release_decoder()
            self._counter.stop_polling()

        pending = _PendingCheckin(
            epoch=self._day_epoch,
            session_id=self._session_id,
            day=day,
            token=normalized,
        )
        self._in_flight = pending
        self._dispatcher.run_in_background(lambda: self._submit(pending))

    def on_decoder_lost(self, message: str, *, session_id: Optional[int] = None) -> None:
        """The camera died mid-session; fall back to ARMED and tell the operator.

        A check-in already in flight still completes and reports its own
        outcome, but with no decoder left it settles in ARMED.
        """
        if session_id is not None and session_id != self._session_id:
            logger.debug("Ignoring camera loss from ended session %s", session_id)
            return
        if self._state not in (ScanState.SCANNING, ScanState.PROCESSING) or self._decoder is None:
            return

        day = self._day_context.require()
        logger.warning("Camera lost while scanning %s: %s", day.key, message)
        self._release_decoder()
        self._counter.stop_polling()
        if self._state is ScanState.SCANNING:
            self._set_state(ScanState.ARMED)
        self._feedback.emit(ScanOutcome.camera_unavailable(message, day=day))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _submit(self, pending: _PendingCheckin) -> None:
        try:
            outcome = self._client.mark_present(pending.day, pending.token)
        except TransportError as exc:
            outcome = ScanOutcome.transport_error(str(exc) or DEFAULT_FAILURE_MESSAGE, status_code=exc.status_code)
        except Exception as exc:
            logger.exception("Mark-present call failed for %s", pending.token)
            outcome = ScanOutcome.transport_error(str(exc) or DEFAULT_FAILURE_MESSAGE)

        outcome = outcome.with_context(token=pending.token, day=pending.day)
        self._dispatcher.call_soon(lambda: self._complete(pending, outcome))

    def _complete(self, pending: _PendingCheckin, outcome: ScanOutcome) -> None:
        if self._in_flight is pending:
            self._in_flight = None
        if pending.epoch != self._day_epoch:
            logger.info("Discarding %s result for %s; day changed", outcome.kind.value, pending.token)
            return

        same_session = pending.session_id == self._session_id
        if same_session and outcome.kind is not OutcomeKind.ACCEPTED:
            self._dedup.forget(pending.token)

        self._feedback.emit(outcome)
        if outcome.kind in (OutcomeKind.ACCEPTED, OutcomeKind.REJECTED):
            self._counter.request_refresh(pending.day)

        if not same_session or self._state is not ScanState.PROCESSING:
            return

        decoder_alive = self._decoder is not None and self._decoder.is_running
        if self._scan_mode is ScanMode.CONTINUOUS and decoder_alive:
            self._set_state(ScanState.SCANNING)
            return

        self._release_decoder()
        self._counter.stop_polling()
        self._set_state(ScanState.ARMED)

    def _end_session(self) -> None:
        self._release_decoder()
        self._dedup.clear()
        if self._session_id != NO_SESSION:
            logger.info("Scan session %s ended", self._session_id)
        self._session_id = NO_SESSION

    def _release_decoder(self) -> None:
        decoder, self._decoder = self._decoder, None
        if decoder is None:
            return
        try:
            decoder.stop()
        except Exception:
            logger.warning("Decoder did not stop cleanly", exc_info=True)

    def _set_state(self, state: ScanState) -> None:
        if state is self._state:
            return
        logger.debug("Scan state %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener failed")
