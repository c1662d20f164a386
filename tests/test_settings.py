import dataclasses
import json

from event_checkin.config import settings as settings_module
from event_checkin.config.settings import Settings
from event_checkin.config.user_settings_store import UserSettingsStore
from event_checkin.models import ScanMode


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setattr(settings_module, "user_settings_store", UserSettingsStore(settings_dir=tmp_path))
    monkeypatch.setenv("CHECKIN_API_URL", "https://checkin.example.com/")
    monkeypatch.setenv("EVENT_DAYS", "fri, sat,sun")
    monkeypatch.setenv("SCAN_MODE", "single")
    monkeypatch.setenv("QR_CAMERA_INDEX", "1")
    monkeypatch.setenv("COUNT_POLL_SECONDS", "30")
    monkeypatch.setenv("CHECKIN_API_KEY", "secret")

    loaded = Settings.from_env()

    assert loaded.api_base_url == "https://checkin.example.com"
    assert loaded.event_days == ("fri", "sat", "sun")
    assert [day.key for day in loaded.day_catalog()] == ["fri", "sat", "sun"]
    assert loaded.scan_mode is ScanMode.SINGLE_SHOT
    assert loaded.qr_camera_index == 1
    assert loaded.count_poll_seconds == 30.0
    assert loaded.extra_headers == {"X-API-Key": "secret"}


def test_settings_fall_back_to_user_store(monkeypatch, tmp_path):
    store = UserSettingsStore(settings_dir=tmp_path)
    store.update(api_base_url="http://kiosk.local:3000", scan_mode="single", camera_index=3)
    monkeypatch.setattr(settings_module, "user_settings_store", store)
    for key in ("CHECKIN_API_URL", "SCAN_MODE", "QR_CAMERA_INDEX", "EVENT_DAYS", "COUNT_POLL_SECONDS"):
        monkeypatch.delenv(key, raising=False)

    loaded = Settings.from_env()

    assert loaded.api_base_url == "http://kiosk.local:3000"
    assert loaded.scan_mode is ScanMode.SINGLE_SHOT
    assert loaded.qr_camera_index == 3
    assert loaded.event_days == ("day1", "day2", "day3")


def test_user_settings_store_round_trip(tmp_path):
    store = UserSettingsStore(settings_dir=tmp_path / "prefs")
    assert store.get("scan_mode") == "continuous"
    assert not store.settings_file.exists()

    store.update(last_day="day2", not_a_setting=True)

    on_disk = json.loads(store.settings_file.read_text(encoding="utf-8"))
    assert on_disk["last_day"] == "day2"
    assert "not_a_setting" not in on_disk

    reloaded = UserSettingsStore(settings_dir=tmp_path / "prefs")
    assert reloaded.get("last_day") == "day2"


def test_user_settings_store_ignores_corrupt_file(tmp_path):
    (tmp_path / "user_settings.json").write_text("{not json", encoding="utf-8")
    store = UserSettingsStore(settings_dir=tmp_path)
    assert store.get("event_days") == "day1,day2,day3"


def test_settings_have_no_registration_path():
    # The registration endpoint is a RegistrationClient argument, not a setting.
    names = {field.name for field in dataclasses.fields(Settings)}
    assert "registration_path" not in names
