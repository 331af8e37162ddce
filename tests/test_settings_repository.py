"""Tests for settings persistence."""
import json

import pytest

from s3box.services.preferences import SETTINGS_KEY, InMemoryPreferences
from s3box.services.settings_repository import SettingsRepository
from s3box.shared.errors import TechnicalError
from s3box.shared.models import ColorTheme, Settings


def test_defaults_when_absent(preferences):
    assert SettingsRepository(preferences).get() == Settings.default()


def test_round_trip(preferences):
    repo = SettingsRepository(preferences)
    settings = Settings.new(45, 2048, ColorTheme.LIGHT)
    repo.save(settings)
    assert json.loads(preferences.string(SETTINGS_KEY))["timeoutInSeconds"] == 45
    assert repo.get() == settings


@pytest.mark.parametrize("stored", [
    "{broken",
    '{"timeoutInSeconds": -1}',
    '{"colorTheme": "neon"}',
])
def test_invalid_stored_settings_fall_back(stored):
    prefs = InMemoryPreferences({SETTINGS_KEY: stored})
    assert SettingsRepository(prefs).get() == Settings.default()


def test_write_failure():
    class Broken(InMemoryPreferences):
        def set_string(self, key, value):
            raise OSError("read-only file system")

    with pytest.raises(TechnicalError):
        SettingsRepository(Broken()).save(Settings.default())
