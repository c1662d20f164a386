from event_checkin.models import ScanOutcome
from event_checkin.services import FeedbackEmitter, VisualTone
from event_checkin.services.feedback import ERROR_HAPTIC_PATTERN, SUCCESS_HAPTIC_PATTERN


def test_success_outcome_emits_success_signals():
    tones, haptics, visuals = [], [], []
    emitter = FeedbackEmitter(tones.append, haptics.append, visual_listeners=[visuals.append])

    emitter.emit(ScanOutcome.accepted("Welcome Ada"))

    assert tones == [True]
    assert haptics == [SUCCESS_HAPTIC_PATTERN]
    assert [(signal.tone, signal.message) for signal in visuals] == [(VisualTone.SUCCESS, "Welcome Ada")]


def test_every_failure_kind_emits_error_signals():
    tones, haptics, visuals = [], [], []
    emitter = FeedbackEmitter(tones.append, haptics.append, visual_listeners=[visuals.append])

    emitter.emit(ScanOutcome.rejected("Already checked in"))
    emitter.emit(ScanOutcome.transport_error("Network error"))
    emitter.emit(ScanOutcome.camera_unavailable("Camera permission denied"))

    assert tones == [False, False, False]
    assert haptics == [ERROR_HAPTIC_PATTERN] * 3
    assert {signal.tone for signal in visuals} == {VisualTone.ERROR}


def test_failing_channel_is_swallowed_and_others_still_fire():
    visuals = []

    def broken_tone(_success):
        raise OSError("audio device unavailable")

    def broken_haptic(_pattern):
        raise RuntimeError("no vibrator")

    def broken_listener(_signal):
        raise ValueError("widget destroyed")

    emitter = FeedbackEmitter(broken_tone, broken_haptic, visual_listeners=[broken_listener, visuals.append])
    emitter.emit(ScanOutcome.accepted("Welcome"))

    assert len(visuals) == 1


def test_channels_can_be_disabled():
    visuals = []
    emitter = FeedbackEmitter(None, None)
    emitter.add_visual_listener(visuals.append)
    emitter.emit(ScanOutcome.rejected("Unknown registration"))
    emitter.remove_visual_listener(visuals.append)
    emitter.emit(ScanOutcome.rejected("Unknown registration"))

    assert len(visuals) == 1
