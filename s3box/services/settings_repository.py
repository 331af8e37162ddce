"""Settings storage in the preference store."""
import json
import logging
from typing import Optional

from s3box.services.preferences import SETTINGS_KEY
from s3box.shared.errors import InvalidSettingsError, TechnicalError
from s3box.shared.models import Settings

logger = logging.getLogger(__name__)


class SettingsRepository:
    """Round-trip Settings as JSON under the ``settings`` key."""

    def __init__(self, preferences, logger: Optional[logging.Logger] = None):
        self.preferences = preferences
        self.logger = logger or logging.getLogger(__name__)

    def get(self) -> Settings:
        """Stored settings, or the defaults when absent or invalid."""
        content = self.preferences.string(SETTINGS_KEY)
        if content in ("", "null"):
            return Settings.default()
        try:
            return Settings.from_dict(json.loads(content))
        except (ValueError, InvalidSettingsError) as exc:
            self.logger.error(f"Invalid stored settings, using defaults: {exc}")
            return Settings.default()

    def save(self, settings: Settings):
        """
        Raises:
            TechnicalError: If the settings cannot be stored
        """
        try:
            self.preferences.set_string(SETTINGS_KEY, json.dumps(settings.to_dict()))
        except OSError as exc:
            raise TechnicalError(f"cannot save settings: {exc}") from exc
        self.logger.info(f"Saved settings {settings.to_dict()}")
