from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from event_checkin.models import ScanOutcome

logger = logging.getLogger(__name__)

SUCCESS_HAPTIC_PATTERN: tuple[int, ...] = (120,)
ERROR_HAPTIC_PATTERN: tuple[int, ...] = (80, 40, 80)


class VisualTone(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class VisualSignal:
    tone: VisualTone
    message: str
    outcome: ScanOutcome


TonePlayer = Callable[[bool], None]
HapticSink = Callable[[tuple[int, ...]], None]
VisualListener = Callable[[VisualSignal], None]


def play_outcome_tone(success: bool) -> None:
    from event_checkin.ui.utils.audio import play_error_tone, play_success_tone

    if success:
        play_success_tone()
    else:
        play_error_tone()


def log_haptic_pulse(pattern: tuple[int, ...]) -> None:
    # Desktop hosts have no vibration motor.
    logger.debug("Haptic pulse %s", pattern)


class FeedbackEmitter:
    """Turn scan outcomes into tone, haptic and visual signals.

    Exactly one success or one error signal is emitted per outcome. Each
    channel is isolated: a failing channel is logged and the others still
    fire, and nothing is raised back to the caller.
    """

    def __init__(
        self,
        tone_player: Optional[TonePlayer] = play_outcome_tone,
        haptic: Optional[HapticSink] = log_haptic_pulse,
        *,
        visual_listeners: Iterable[VisualListener] = (),
    ) -> None:
        self._tone_player = tone_player
        self._haptic = haptic
        self._visual_listeners: list[VisualListener] = list(visual_listeners)

    def add_visual_listener(self, listener: VisualListener) -> None:
        self._visual_listeners.append(listener)

    def remove_visual_listener(self, listener: VisualListener) -> None:
        if listener in self._visual_listeners:
            self._visual_listeners.remove(listener)

    def emit(self, outcome: ScanOutcome) -> None:
        success = outcome.is_success
        if success:
            logger.info("Check-in accepted: %s", outcome.message)
        else:
            logger.info("Check-in %s: %s", outcome.kind.value, outcome.message)

        if self._tone_player is not None:
            self._guard("tone", self._tone_player, success)
        if self._haptic is not None:
            self._guard("haptic", self._haptic, SUCCESS_HAPTIC_PATTERN if success else ERROR_HAPTIC_PATTERN)

        signal = VisualSignal(
            tone=VisualTone.SUCCESS if success else VisualTone.ERROR,
            message=outcome.message,
            outcome=outcome,
        )
        for listener in list(self._visual_listeners):
            self._guard("visual", listener, signal)

    @staticmethod
    def _guard(channel: str, func, argument) -> None:
        try:
            func(argument)
        except Exception:
            logger.warning("Feedback %s channel failed", channel, exc_info=True)
