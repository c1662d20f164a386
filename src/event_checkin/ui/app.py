from __future__ import annotations

import logging

import customtkinter as ctk

from event_checkin.config.settings import settings, user_settings_store
from event_checkin.services import (
    AttendanceCounterSync,
    CheckinClient,
    CheckinCoordinator,
    DayContext,
    FeedbackEmitter,
    QRScanner,
)
from event_checkin.ui.scan_view import ScanView
from event_checkin.ui.theme import VS_BG
from event_checkin.utils.dispatch import TkDispatcher

logger = logging.getLogger(__name__)


class CheckinApp:
    def __init__(self) -> None:
        try:
            from ctypes import windll
            windll.shcore.SetProcessDpiAwareness(1)
        except (ImportError, AttributeError):
            pass

        ctk.set_appearance_mode("dark")

        self._root = ctk.CTk()
        self._root.title(settings.app_name)
        self._root.geometry("640x720")
        self._root.minsize(480, 640)
        self._root.configure(fg_color=VS_BG)
        self._root.grid_rowconfigure(0, weight=1)
        self._root.grid_columnconfigure(0, weight=1)

        catalog = settings.day_catalog()
        dispatcher = TkDispatcher(self._root)
        self._dispatcher = dispatcher

        self._client = CheckinClient(
            settings.api_base_url,
            path_template=settings.checkin_path_template,
            token_field=settings.checkin_token_field,
            timeout=settings.http_timeout_seconds,
            headers=settings.extra_headers,
        )
        self._counter = AttendanceCounterSync(self._client, dispatcher)
        self._feedback = FeedbackEmitter()
        self._coordinator = CheckinCoordinator(
            DayContext(catalog),
            self._client,
            self._counter,
            self._feedback,
            lambda: QRScanner(camera_index=settings.qr_camera_index),
            dispatcher,
            scan_mode=settings.scan_mode,
            poll_interval=settings.count_poll_seconds,
        )

        self._scan_view = ScanView(
            self._root,
            self._coordinator,
            self._counter,
            self._feedback,
            list(catalog),
        )
        self._scan_view.grid(row=0, column=0, padx=24, pady=24, sticky="nsew")

        last_day = user_settings_store.get("last_day")
        if last_day and last_day in catalog:
            self._root.after(0, lambda: self._coordinator.select_day(last_day))

        self._root.protocol("WM_DELETE_WINDOW", self._on_close)

    def _on_close(self) -> None:
        active = self._coordinator.active_day
        try:
            user_settings_store.update(last_day=active.key if active else None)
        except OSError:
            logger.warning("Could not save the last selected day", exc_info=True)
        self._coordinator.close()
        self._client.close()
        self._dispatcher.close()
        self._root.destroy()

    def run(self) -> None:
        logger.info("Starting %r", settings)
        self._root.mainloop()
