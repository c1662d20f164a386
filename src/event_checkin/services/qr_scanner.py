from __future__ import annotations

import logging
import threading
import time
import unicodedata
from contextlib import suppress
from typing import Any, Callable, Optional, Protocol

from event_checkin.models import RegistrationToken

logger = logging.getLogger(__name__)

SCAN_INTERVAL_SECONDS = 0.08
DEDUP_INTERVAL_SECONDS = 0.8
PREVIEW_INTERVAL_SECONDS = 0.07
PREVIEW_MAX_WIDTH = 480
STOP_JOIN_TIMEOUT_SECONDS = 1.5
MAX_FAILED_READS = 25
CAMERA_LOST_MESSAGE = "Camera disconnected. Check the connection and start scanning again."

PayloadCallback = Callable[[RegistrationToken], None]
FrameCallback = Callable[[Any], None]
ErrorCallback = Callable[[str], None]


class CameraUnavailable(RuntimeError):
    """Raised when the camera cannot be acquired (no device, permission, missing libs)."""


class DecoderAdapter(Protocol):
    def start(
        self,
        on_payload: PayloadCallback,
        *,
        on_frame: Optional[FrameCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None: ...

    def stop(self) -> None: ...

    @property
    def is_running(self) -> bool: ...


def decode_symbol_data(raw: bytes | str) -> str:
    if not raw:
        return ""

    if isinstance(raw, str):
        decoded = raw
    else:
        try:
            decoded = raw.decode("utf-8")
        except UnicodeDecodeError:
            decoded = raw.decode("utf-8", errors="ignore")

    normalized = unicodedata.normalize("NFC", decoded)
    return normalized.strip()


def _load_capture_modules():
    try:
        import cv2  # type: ignore[import-not-found]
        import zxingcpp  # type: ignore[import-not-found]
    except ImportError as exc:
        raise CameraUnavailable(
            "Missing QR scanner dependencies. Install OpenCV (cv2) and zxing-cpp to enable scanning."
        ) from exc
    return cv2, zxingcpp


class QRScanner:
    """Camera capture loop that reports decoded QR payloads.

    ``start`` acquires the camera on the calling thread so failures surface
    immediately as ``CameraUnavailable``. Frames are read and decoded on a
    daemon thread. ``stop`` bumps the delivery generation under the same lock
    that guards payload delivery, so once it returns the old loop can no
    longer reach ``on_payload`` or ``on_error``. Both callbacks run under that
    lock and must only hand the value off, never block on another thread.

    If the camera goes away mid-session (``read`` raises, or keeps failing)
    the loop reports it once through ``on_error`` and exits.
    """

    def __init__(self, camera_index: int = 0, *, modules_loader=_load_capture_modules) -> None:
        self._camera_index = camera_index
        self._modules_loader = modules_loader
        self._running = False
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._lock = threading.RLock()
        self._generation = 0

    def start(
        self,
        on_payload: PayloadCallback,
        *,
        on_frame: Optional[FrameCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        with self._lock:
            if self._running:
                return

            cv2_module, zxing_module = self._modules_loader()
            capture = self._open_capture(cv2_module)

            self._generation += 1
            generation = self._generation
            self._stop_event = threading.Event()
            stop_event = self._stop_event

            def _runner() -> None:
                self._run_loop(
                    capture, generation, stop_event, on_payload, on_error, on_frame, cv2_module, zxing_module
                )

            self._thread = threading.Thread(target=_runner, name="qr-scanner", daemon=True)
            self._running = True
            self._thread.start()
            logger.info("QR scanner started on camera %s", self._camera_index)

    def stop(self) -> None:
        with self._lock:
            # Invalidate before releasing the lock; late frames see a stale generation.
            self._generation += 1
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            thread = self._thread
            self._thread = None

        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=STOP_JOIN_TIMEOUT_SECONDS)
        logger.info("QR scanner stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _deliver(self, generation: int, on_payload: PayloadCallback, payload: str) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            try:
                on_payload(RegistrationToken(payload))
            except Exception:  # pragma: no cover - guard callback faults
                logger.exception("QR payload callback failed")
            return True

    def _report_lost(self, generation: int, on_error: Optional[ErrorCallback], message: str) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._running = False
            if on_error is None:
                return
            try:
                on_error(message)
            except Exception:  # pragma: no cover - guard callback faults
                logger.exception("QR error callback failed")

    def _run_loop(
        self,
        capture,
        generation: int,
        stop_event: threading.Event,
        on_payload: PayloadCallback,
        on_error: Optional[ErrorCallback],
        on_frame: Optional[FrameCallback],
        cv2_module,
        zxing_module,
    ) -> None:
        last_payload: Optional[str] = None
        last_timestamp: float = 0.0
        last_preview: float = 0.0
        failed_reads = 0

        try:
            while not stop_event.is_set():
                try:
                    ok, frame = capture.read()
                except Exception:
                    logger.warning("Camera read failed on camera %s", self._camera_index, exc_info=True)
                    self._report_lost(generation, on_error, CAMERA_LOST_MESSAGE)
                    return
                if not ok:
                    failed_reads += 1
                    if failed_reads >= MAX_FAILED_READS:
                        logger.warning("Camera %s stopped returning frames", self._camera_index)
                        self._report_lost(generation, on_error, CAMERA_LOST_MESSAGE)
                        return
                    time.sleep(SCAN_INTERVAL_SECONDS)
                    continue
                failed_reads = 0

                now = time.time()

                if on_frame and (now - last_preview) >= PREVIEW_INTERVAL_SECONDS:
                    self._emit_preview(frame, on_frame, cv2_module)
                    last_preview = now

                for payload in self._decode_frame(frame, zxing_module):
                    if last_payload == payload and (now - last_timestamp) < DEDUP_INTERVAL_SECONDS:
                        continue

                    last_payload = payload
                    last_timestamp = now

                    if not self._deliver(generation, on_payload, payload):
                        return

                time.sleep(SCAN_INTERVAL_SECONDS)
        finally:
            with suppress(Exception):
                capture.release()
            with self._lock:
                if generation == self._generation:
                    self._running = False

    @staticmethod
    def _emit_preview(frame, on_frame: FrameCallback, cv2_module) -> None:
        preview_frame = frame
        try:
            preview_frame = cv2_module.flip(frame, 1)
            if PREVIEW_MAX_WIDTH and preview_frame.shape[1] > PREVIEW_MAX_WIDTH:
                scale = PREVIEW_MAX_WIDTH / float(preview_frame.shape[1])
                height = int(preview_frame.shape[0] * scale)
                preview_frame = cv2_module.resize(preview_frame, (PREVIEW_MAX_WIDTH, height))
            on_frame(preview_frame.copy())
        except Exception:
            logger.debug("Preview frame dropped", exc_info=True)

    @staticmethod
    def _decode_frame(frame, zxing_module) -> list[str]:
        try:
            decoded = zxing_module.read_barcodes(
                frame,
                formats=zxing_module.BarcodeFormat.QRCode,
                try_rotate=True,
                try_downscale=True,
                text_mode=zxing_module.TextMode.HRI,
            )
        except Exception:
            logger.debug("QR decode failed for frame", exc_info=True)
            return []

        payloads: list[str] = []
        for obj in decoded or []:
            if hasattr(obj, "valid") and not obj.valid:
                continue
            if getattr(obj, "error", None):
                continue

            payload = decode_symbol_data(getattr(obj, "text", ""))
            if not payload:
                payload_bytes = getattr(obj, "bytes", b"") or b""
                if not isinstance(payload_bytes, (bytes, bytearray)):
                    payload_bytes = bytes(payload_bytes)
                payload = decode_symbol_data(bytes(payload_bytes))
            if payload:
                payloads.append(payload)
        return payloads

    def _open_capture(self, cv2_module):
        backend_preferences = [getattr(cv2_module, "CAP_DSHOW", None), getattr(cv2_module, "CAP_ANY", None)]

        for backend in backend_preferences:
            if backend is None:
                capture = cv2_module.VideoCapture(self._camera_index)
            else:
                capture = cv2_module.VideoCapture(self._camera_index, backend)

            if capture.isOpened():
                return capture

            capture.release()

        raise CameraUnavailable(
            "Unable to access the camera. Check that it is connected, permitted and not used by another app."
        )
