from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from event_checkin.config.user_settings_store import UserSettingsStore
from event_checkin.models import EventDayCatalog, ScanMode

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parents[3]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(ENV_PATH)

APP_NAME = os.getenv("APP_NAME", "Event Check-in Scanner")
user_settings_store = UserSettingsStore()


def _env_or_store(env_key: str, store_key: str, default):
    raw = os.getenv(env_key)
    if raw is not None and raw.strip():
        return raw.strip()
    return user_settings_store.get(store_key, default)


@dataclass(frozen=True)
class Settings:
    app_name: str = APP_NAME
    api_base_url: str = "http://localhost:3000"
    checkin_path_template: str = "/api/registers/{day}"
    checkin_token_field: str = "regNum"
    event_days: tuple[str, ...] = ("day1", "day2", "day3")
    qr_camera_index: int = 0
    http_timeout_seconds: float = 10.0
    count_poll_seconds: float = 15.0
    scan_mode: ScanMode = ScanMode.CONTINUOUS
    log_level: str = "INFO"
    extra_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "Settings":
        days_raw = str(_env_or_store("EVENT_DAYS", "event_days", "day1,day2,day3"))
        headers: dict[str, str] = {}
        if api_key := os.getenv("CHECKIN_API_KEY"):
            headers["X-API-Key"] = api_key
        return cls(
            app_name=APP_NAME,
            api_base_url=str(_env_or_store("CHECKIN_API_URL", "api_base_url", "http://localhost:3000")).rstrip("/"),
            checkin_path_template=os.getenv("CHECKIN_PATH_TEMPLATE", "/api/registers/{day}"),
            checkin_token_field=os.getenv("CHECKIN_TOKEN_FIELD", "regNum"),
            event_days=tuple(day.key for day in EventDayCatalog.from_keys(days_raw)),
            qr_camera_index=int(_env_or_store("QR_CAMERA_INDEX", "camera_index", 0)),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "10")),
            count_poll_seconds=float(_env_or_store("COUNT_POLL_SECONDS", "count_poll_seconds", 15.0)),
            scan_mode=ScanMode.parse(str(_env_or_store("SCAN_MODE", "scan_mode", "continuous"))),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            extra_headers=headers,
        )

    def day_catalog(self) -> EventDayCatalog:
        return EventDayCatalog(self.event_days)

    def __repr__(self) -> str:
        return (
            f"Settings(app_name={self.app_name}, "
            f"api_base_url={self.api_base_url}, "
            f"checkin_path_template={self.checkin_path_template}, "
            f"event_days={','.join(self.event_days)}, "
            f"qr_camera_index={self.qr_camera_index}, "
            f"count_poll_seconds={self.count_poll_seconds}, "
            f"scan_mode={self.scan_mode.value})"
        )


settings = Settings.from_env()


def refresh_settings_from_store() -> Settings:
    """Rebuild the settings object from the current user store values."""

    global settings  # noqa: PLW0603 - module-level singleton

    user_settings_store.reload()
    settings = Settings.from_env()
    logger.debug("Settings refreshed: %r", settings)
    return settings
