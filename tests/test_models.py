"""Tests for settings, notification levels and size formatting."""
import pytest

from s3box.shared.errors import (
    ErrorCode,
    InvalidSettingsError,
    InvalidTimeoutError,
    NotFoundError,
    S3BoxError,
)
from s3box.shared.models import (
    MEGA,
    ColorTheme,
    Level,
    Notification,
    Settings,
    bytes_to_mb,
    format_size_bytes,
    mb_to_bytes,
)


class TestErrors:
    def test_code_prefixes_message(self):
        err = NotFoundError("bucket b1 not found")
        assert isinstance(err, S3BoxError)
        assert err.code == ErrorCode.NOT_FOUND
        assert err.message == "bucket b1 not found"
        assert str(err) == "[NOT_FOUND] bucket b1 not found"

    def test_invalid_timeout_is_a_settings_error(self):
        assert isinstance(InvalidTimeoutError(), InvalidSettingsError)


class TestSettings:
    def test_defaults(self):
        s = Settings.default()
        assert s.timeout_in_seconds == 30
        assert s.max_file_preview_size_bytes == MEGA
        assert s.color_theme == ColorTheme.SYSTEM

    @pytest.mark.parametrize("timeout", [0, -5])
    def test_non_positive_timeout_rejected(self, timeout):
        with pytest.raises(InvalidTimeoutError):
            Settings.new(timeout, MEGA)

    def test_non_positive_preview_size_rejected(self):
        with pytest.raises(InvalidSettingsError):
            Settings.new(10, 0)

    def test_dict_form_uses_camel_case(self):
        s = Settings.new(12, 2048, ColorTheme.DARK)
        assert s.to_dict() == {
            "timeoutInSeconds": 12,
            "maxFilePreviewSizeBytes": 2048,
            "colorTheme": "dark",
        }
        assert Settings.from_dict(s.to_dict()) == s

    def test_missing_fields_take_defaults(self):
        assert Settings.from_dict({"timeoutInSeconds": 5}) == Settings.new(5, MEGA)

    def test_bad_values_rejected(self):
        with pytest.raises(InvalidSettingsError):
            Settings.from_dict({"timeoutInSeconds": "soon"})
        with pytest.raises(InvalidSettingsError):
            Settings.from_dict({"colorTheme": "purple"})
        with pytest.raises(InvalidSettingsError):
            Settings.from_dict([1, 2])


class TestLevel:
    def test_ordering(self):
        assert Level.ERROR.at_least(Level.INFO)
        assert Level.INFO.at_least(Level.INFO)
        assert not Level.DEBUG.at_least(Level.INFO)

    def test_notification_str(self):
        assert str(Notification(Level.INFO, "saved")) == "Info: saved"
        assert str(Notification(Level.ERROR, NotFoundError("gone"))) == "Error: [NOT_FOUND] gone"


class TestSizes:
    @pytest.mark.parametrize("size,expected", [
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1.00 KB"),
        (1536, "1.50 KB"),
        (MEGA, "1.00 MB"),
        (1_567_000_000, "1.46 GB"),
    ])
    def test_format_size_bytes(self, size, expected):
        assert format_size_bytes(size) == expected

    def test_mb_conversion(self):
        assert mb_to_bytes(3) == 3 * MEGA
        assert bytes_to_mb(3 * MEGA) == 3
        assert bytes_to_mb(3 * MEGA + 10) == 4
        assert bytes_to_mb(500000) == 1
        assert bytes_to_mb(0) == 0
