from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]

TK_POLL_MS = 15


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Dispatcher(Protocol):
    """Single-threaded callback scheduling plus a place to run blocking work.

    Every callback passed to ``call_soon``/``call_later`` runs on the same
    thread, in submission order. ``run_in_background`` work runs elsewhere and
    must hand its result back through ``call_soon``.
    """

    def call_soon(self, callback: Callback) -> None: ...

    def call_later(self, delay: float, callback: Callback) -> TimerHandle: ...

    def run_in_background(self, work: Callback) -> None: ...


def _run_guarded(callback: Callback) -> None:
    try:
        callback()
    except Exception:  # pragma: no cover - keep the loop alive
        logger.exception("Dispatched callback failed")


class EventLoop:
    """Queue-backed dispatcher with one consumer thread."""

    def __init__(self, name: str = "checkin-loop") -> None:
        self._queue: "queue.Queue[Optional[Callback]]" = queue.Queue()
        self._name = name
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._timers: set[threading.Timer] = set()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        if thread is None:
            return
        self._queue.put(None)
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)

    @property
    def in_loop_thread(self) -> bool:
        return self._thread is threading.current_thread()

    def call_soon(self, callback: Callback) -> None:
        self._queue.put(callback)

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        timer: threading.Timer

        def _fire() -> None:
            with self._lock:
                self._timers.discard(timer)
            self.call_soon(callback)

        timer = threading.Timer(max(0.0, delay), _fire)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()
        return timer

    def run_in_background(self, work: Callback) -> None:
        threading.Thread(target=_run_guarded, args=(work,), daemon=True).start()

    def _run(self) -> None:
        while True:
            callback = self._queue.get()
            if callback is None:
                break
            _run_guarded(callback)


class _AfterHandle:
    def __init__(self, widget: Any, job: str) -> None:
        self._widget = widget
        self._job = job

    def cancel(self) -> None:
        try:
            self._widget.after_cancel(self._job)
        except Exception:
            logger.debug("Could not cancel Tk job %s", self._job, exc_info=True)


class TkDispatcher:
    """Dispatch onto a Tk main loop.

    ``call_soon`` may be called from any thread: it only enqueues, and an
    ``after`` poll drains the queue on the Tk thread. A foreign thread calling
    ``after`` itself would block until the main loop serviced it.
    ``call_later`` must be called from the Tk thread.
    """

    def __init__(self, widget: Any, *, poll_ms: int = TK_POLL_MS) -> None:
        self._widget = widget
        self._poll_ms = poll_ms
        self._queue: "queue.SimpleQueue[Callback]" = queue.SimpleQueue()
        self._poll_job: Optional[str] = self._widget.after(self._poll_ms, self._drain)

    def call_soon(self, callback: Callback) -> None:
        self._queue.put(callback)

    def close(self) -> None:
        job, self._poll_job = self._poll_job, None
        if job is not None:
            _AfterHandle(self._widget, job).cancel()

    def _drain(self) -> None:
        if self._poll_job is None:
            return
        while True:
            try:
                callback = self._queue.get_nowait()
            except queue.Empty:
                break
            _run_guarded(callback)
        if self._poll_job is not None:
            self._poll_job = self._widget.after(self._poll_ms, self._drain)

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        job = self._widget.after(int(delay * 1000), lambda: _run_guarded(callback))
        return _AfterHandle(self._widget, job)

    def run_in_background(self, work: Callback) -> None:
        threading.Thread(target=_run_guarded, args=(work,), daemon=True).start()
