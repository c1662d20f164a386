from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = os.getenv("APP_NAME", "Event Check-in Scanner")
DOCUMENTS_PATH = Path(os.path.expanduser("~")) / "Documents"
DEFAULT_SETTINGS_DIR = DOCUMENTS_PATH / DEFAULT_APP_NAME
DEFAULT_SETTINGS_FILENAME = "user_settings.json"

DEFAULT_SETTINGS: Dict[str, Any] = {
	"api_base_url": None,
	"scan_mode": "continuous",
	"camera_index": 0,
	"event_days": "day1,day2,day3",
	"count_poll_seconds": 15.0,
	"last_day": None,
}


@dataclass
class UserSettingsStore:
	"""Load and persist operator preferences in a JSON file."""

	settings_dir: Path = field(default_factory=lambda: DEFAULT_SETTINGS_DIR)
	settings_filename: str = DEFAULT_SETTINGS_FILENAME
	_data: Dict[str, Any] = field(init=False, default_factory=dict)

	def __post_init__(self) -> None:
		self.settings_dir = Path(self.settings_dir).expanduser()
		self.reload()

	# ------------------------------------------------------------------
	# Public API
	# ------------------------------------------------------------------
	@property
	def settings_file(self) -> Path:
		return self.settings_dir / self.settings_filename

	@property
	def data(self) -> Dict[str, Any]:
		return dict(self._data)

	def get(self, key: str, default: Any = None) -> Any:
		value = self._data.get(key)
		return default if value is None else value

	def reload(self) -> None:
		combined = dict(DEFAULT_SETTINGS)
		combined.update(
			{key: value for key, value in self._load_json(self.settings_file).items() if key in DEFAULT_SETTINGS}
		)
		self._data = combined

	def update(self, **kwargs: Any) -> Dict[str, Any]:
		new_data = dict(self._data)
		for key, value in kwargs.items():
			if key in DEFAULT_SETTINGS:
				new_data[key] = value
			else:
				logger.debug("Ignoring unknown user setting %r", key)

		self._data = new_data
		self._persist()
		return dict(self._data)

	# ------------------------------------------------------------------
	# Internal helpers
	# ------------------------------------------------------------------
	def _persist(self) -> None:
		self.settings_dir.mkdir(parents=True, exist_ok=True)
		with self.settings_file.open("w", encoding="utf-8") as handle:
			json.dump(self._data, handle, indent=2)

	@staticmethod
	def _load_json(path: Path) -> Dict[str, Any]:
		try:
			if path.exists():
				with path.open("r", encoding="utf-8") as handle:
					loaded = json.load(handle)
					return loaded if isinstance(loaded, dict) else {}
		except (OSError, ValueError):
			logger.warning("Could not read user settings from %s", path)
		return {}
