"""String key/value preference stores."""
import logging
import sys
from pathlib import Path
from threading import Lock
from typing import Optional

from PySide6.QtCore import QSettings

logger = logging.getLogger(__name__)

ALL_CONNECTIONS_KEY = "allConnections"
SETTINGS_KEY = "settings"


def _default_store_path() -> Path:
    """Return platform-appropriate config file."""
    if sys.platform == "win32":
        base = Path.home() / "AppData" / "Local" / "S3Box"
    else:
        base = Path.home() / ".config" / "s3box"
    base.mkdir(parents=True, exist_ok=True)
    return base / "preferences.ini"


class QtPreferences:
    """Preferences persisted in an INI file through QSettings."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path or _default_store_path()
        self._settings = QSettings(str(self.path), QSettings.Format.IniFormat)
        self._lock = Lock()

    def string(self, key: str) -> str:
        with self._lock:
            value = self._settings.value(key, "", type=str)
        return "" if value is None else str(value)

    def set_string(self, key: str, value: str):
        with self._lock:
            self._settings.setValue(key, value)
            self._settings.sync()
            status = self._settings.status()
        if status != QSettings.Status.NoError:
            raise OSError(f"cannot write preferences to {self.path}: {status.name}")
        logger.debug(f"Stored preference {key} in {self.path}")


class InMemoryPreferences:
    """Volatile preferences, used headless and in tests."""

    def __init__(self, values: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(values or {})
        self._lock = Lock()

    def string(self, key: str) -> str:
        with self._lock:
            return self._values.get(key, "")

    def set_string(self, key: str, value: str):
        with self._lock:
            self._values[key] = value
