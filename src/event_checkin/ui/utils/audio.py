from __future__ import annotations

import logging
import math
import threading
from io import BytesIO

try:
    import winsound  # type: ignore[import-not-found]
except Exception:  # pragma: no cover - non-Windows fallback
    winsound = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

SUCCESS_TONE_HZ = 880
ERROR_TONE_HZ = 220
TONE_DURATION_MS = 150
TONE_AMPLITUDE = 0.15

_WAV_CACHE: dict[int, bytes] = {}


def build_wave_bytes(
    *,
    frequency_hz: int = SUCCESS_TONE_HZ,
    duration_ms: int = TONE_DURATION_MS,
    sample_rate: int = 44100,
    amplitude: float = TONE_AMPLITUDE,
) -> bytes:
    import wave

    frame_count = int(sample_rate * (duration_ms / 1000.0))
    sine_wave = bytearray()
    for index in range(frame_count):
        value = int(32767 * amplitude * math.sin(2 * math.pi * frequency_hz * index / sample_rate))
        sine_wave.extend(value.to_bytes(2, byteorder="little", signed=True))

    buffer = BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(sine_wave)
    return buffer.getvalue()


def _get_wave_bytes(frequency_hz: int) -> bytes | None:
    if frequency_hz not in _WAV_CACHE:
        try:
            _WAV_CACHE[frequency_hz] = build_wave_bytes(frequency_hz=frequency_hz)
        except Exception:
            logger.debug("Tone synthesis failed", exc_info=True)
            _WAV_CACHE[frequency_hz] = b""
    return _WAV_CACHE[frequency_hz] or None


def _play_with_winsound(frequency_hz: int) -> None:
    wave_bytes = _get_wave_bytes(frequency_hz)
    if wave_bytes is None:
        return

    try:
        winsound.PlaySound(wave_bytes, winsound.SND_MEMORY)
    except Exception:
        try:
            winsound.Beep(frequency_hz, TONE_DURATION_MS)
        except Exception:
            logger.debug("Audio device unavailable", exc_info=True)


def _play_fallback() -> None:
    try:
        print("\a", end="", flush=True)
    except Exception:
        pass


def play_tone_async(frequency_hz: int) -> None:
    def _runner() -> None:
        if winsound is not None:
            _play_with_winsound(frequency_hz)
        else:
            _play_fallback()

    threading.Thread(target=_runner, daemon=True).start()


def play_success_tone() -> None:
    play_tone_async(SUCCESS_TONE_HZ)


def play_error_tone() -> None:
    play_tone_async(ERROR_TONE_HZ)
