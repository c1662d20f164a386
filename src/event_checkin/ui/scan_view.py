from __future__ import annotations

import logging
from typing import Any, Optional

import customtkinter as ctk
from PIL import Image, ImageOps

from event_checkin.models import AttendanceCount, EventDay, ScanState
from event_checkin.services import AttendanceCounterSync, CheckinCoordinator, DayNotSelected, FeedbackEmitter
from event_checkin.services.feedback import VisualSignal, VisualTone
from event_checkin.ui.theme import (
    CHECKIN_ERROR,
    CHECKIN_ERROR_HOVER,
    CHECKIN_SUCCESS,
    VS_ACCENT,
    VS_ACCENT_HOVER,
    VS_BORDER,
    VS_CARD,
    VS_SURFACE,
    VS_SURFACE_ALT,
    VS_TEXT,
    VS_TEXT_MUTED,
)

logger = logging.getLogger(__name__)

PREVIEW_POLL_MS = 40


class ScanView(ctk.CTkFrame):
    """Day picker, live count, result banner and camera preview for check-in."""

    def __init__(
        self,
        master: Any,
        coordinator: CheckinCoordinator,
        counter: AttendanceCounterSync,
        feedback: FeedbackEmitter,
        days: list[EventDay],
    ) -> None:
        super().__init__(master, fg_color=VS_SURFACE, corner_radius=14)
        self._coordinator = coordinator
        self._counter = counter
        self._feedback = feedback
        self._days = days

        self._day_buttons: dict[str, ctk.CTkButton] = {}
        self._control_button: ctk.CTkButton | None = None
        self._result_label: ctk.CTkLabel | None = None
        self._preview_label: ctk.CTkLabel | None = None
        self._preview_image: ctk.CTkImage | None = None
        self._preview_busy = False
        self._pending_frame: Any = None
        self._preview_job: Optional[str] = None
        self._preview_size: tuple[int, int] = (360, 360)
        placeholder_source = Image.new("RGB", self._preview_size, color=(24, 24, 24))
        self._preview_placeholder = ctk.CTkImage(
            light_image=placeholder_source,
            dark_image=placeholder_source.copy(),
            size=self._preview_size,
        )
        self._count_text: dict[str, str] = {}

        self._build_widgets()

        self._unsubscribers = [
            coordinator.subscribe(self._handle_state_changed),
            counter.subscribe(self._handle_count_changed),
        ]
        feedback.add_visual_listener(self._handle_visual_signal)
        coordinator.set_frame_listener(self._on_camera_frame)
        self._handle_state_changed(coordinator.state)
        self._preview_job = self.after(PREVIEW_POLL_MS, self._poll_preview)

    # ------------------------------------------------------------------
    # Layout construction
    # ------------------------------------------------------------------
    def _build_widgets(self) -> None:
        self.grid_columnconfigure(0, weight=1)
        header_font = ctk.CTkFont(size=20, weight="bold")

        ctk.CTkLabel(self, text="Check-in scanner", font=header_font, text_color=VS_TEXT).grid(
            row=0, column=0, padx=20, pady=(20, 12)
        )

        day_row = ctk.CTkFrame(self, fg_color="transparent")
        day_row.grid(row=1, column=0, padx=20, pady=(0, 12))
        for index, day in enumerate(self._days):
            button = ctk.CTkButton(
                day_row,
                text=day.display_label,
                width=120,
                fg_color=VS_SURFACE_ALT,
                hover_color=VS_ACCENT_HOVER,
                border_color=VS_BORDER,
                border_width=1,
                text_color=VS_TEXT,
                command=lambda key=day.key: self._handle_select_day(key),
            )
            button.grid(row=0, column=index, padx=6)
            self._day_buttons[day.key] = button

        self._result_label = ctk.CTkLabel(
            self,
            text="",
            corner_radius=10,
            fg_color="transparent",
            text_color=VS_TEXT,
            font=ctk.CTkFont(size=16, weight="bold"),
            wraplength=self._preview_size[0],
        )
        self._result_label.grid(row=2, column=0, padx=20, pady=(0, 12), sticky="ew")

        preview_frame = ctk.CTkFrame(self, corner_radius=16, fg_color=VS_CARD, border_width=2, border_color=VS_BORDER)
        preview_frame.grid(row=3, column=0, padx=20, pady=(0, 12))
        self._preview_label = ctk.CTkLabel(
            preview_frame,
            text="Select a day to begin",
            text_color=VS_TEXT_MUTED,
            image=self._preview_placeholder,
            compound="center",
        )
        self._preview_label.pack(expand=True, fill="both", padx=10, pady=10)

        self._control_button = ctk.CTkButton(
            self,
            text="Start Scan",
            width=self._preview_size[0],
            fg_color=VS_ACCENT,
            hover_color=VS_ACCENT_HOVER,
            text_color=VS_TEXT,
            command=self._handle_toggle_scan,
        )
        self._control_button.grid(row=4, column=0, padx=20, pady=(0, 20))

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------
    def _handle_select_day(self, key: str) -> None:
        self._set_result(None)
        self._coordinator.select_day(key)
        self._refresh_day_buttons()

    def _handle_toggle_scan(self) -> None:
        if self._coordinator.state in (ScanState.SCANNING, ScanState.PROCESSING):
            self._coordinator.stop()
            return
        self._set_result(None)
        try:
            self._coordinator.start()
        except DayNotSelected as exc:
            self._set_result(str(exc), tone=VisualTone.ERROR)

    # ------------------------------------------------------------------
    # Coordinator notifications
    # ------------------------------------------------------------------
    def _handle_state_changed(self, state: ScanState) -> None:
        if self._control_button is None:
            return
        scanning = state in (ScanState.SCANNING, ScanState.PROCESSING)
        self._control_button.configure(
            text="Stop Scan" if scanning else "Start Scan",
            state="disabled" if state is ScanState.IDLE else "normal",
            fg_color=CHECKIN_ERROR if scanning else VS_ACCENT,
            hover_color=CHECKIN_ERROR_HOVER if scanning else VS_ACCENT_HOVER,
        )
        self._refresh_day_buttons()
        if not scanning and self._preview_label is not None:
            text = "Camera preview inactive" if state is ScanState.ARMED else "Select a day to begin"
            self._preview_label.configure(image=self._preview_placeholder, text=text)
            self._preview_image = None

    def _handle_count_changed(self, count: AttendanceCount) -> None:
        self._count_text = {count.day.key: "…" if count.stale else str(count.value)}
        self._refresh_day_buttons()

    def _handle_visual_signal(self, signal: VisualSignal) -> None:
        self._set_result(signal.message, tone=signal.tone)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _refresh_day_buttons(self) -> None:
        active = self._coordinator.active_day
        for day in self._days:
            button = self._day_buttons[day.key]
            is_active = active is not None and active.key == day.key
            label = day.display_label
            if is_active and day.key in self._count_text:
                label = f"{label}  ({self._count_text[day.key]})"
            button.configure(text=label, fg_color=VS_ACCENT if is_active else VS_SURFACE_ALT)

    def _set_result(self, message: Optional[str], *, tone: VisualTone = VisualTone.SUCCESS) -> None:
        if self._result_label is None:
            return
        if not message:
            self._result_label.configure(text="", fg_color="transparent")
            return
        color = CHECKIN_SUCCESS if tone is VisualTone.SUCCESS else CHECKIN_ERROR
        prefix = "✔" if tone is VisualTone.SUCCESS else "✖"
        self._result_label.configure(text=f"{prefix}  {message}", fg_color=color)

    def _on_camera_frame(self, frame: Any) -> None:
        # Camera thread: only the latest frame is kept, _poll_preview picks it up.
        self._pending_frame = frame

    def _poll_preview(self) -> None:
        frame, self._pending_frame = self._pending_frame, None
        if frame is not None:
            self._show_frame(frame)
        self._preview_job = self.after(PREVIEW_POLL_MS, self._poll_preview)

    def _show_frame(self, frame: Any) -> None:
        if not self.winfo_exists() or self._preview_label is None or self._preview_busy:
            return
        if self._coordinator.state not in (ScanState.SCANNING, ScanState.PROCESSING):
            return

        self._preview_busy = True
        try:
            import cv2  # type: ignore[import-not-found]

            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            square_image = ImageOps.fit(
                Image.fromarray(rgb_frame),
                self._preview_size,
                method=Image.Resampling.LANCZOS,
                centering=(0.5, 0.5),
            )
            self._preview_image = ctk.CTkImage(
                light_image=square_image,
                dark_image=square_image,
                size=self._preview_size,
            )
            self._preview_label.configure(image=self._preview_image, text="")
        except Exception:
            logger.debug("Preview frame dropped", exc_info=True)
        finally:
            self._preview_busy = False

    def destroy(self) -> None:
        job, self._preview_job = self._preview_job, None
        if job is not None:
            self.after_cancel(job)
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._feedback.remove_visual_listener(self._handle_visual_signal)
        self._coordinator.set_frame_listener(None)
        super().destroy()
