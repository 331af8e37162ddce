"""Data models for s3box."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union

from s3box.shared.errors import InvalidSettingsError, InvalidTimeoutError

KILO = 1024
MEGA = KILO * KILO
GIGA = MEGA * KILO
TERA = GIGA * KILO
PETA = TERA * KILO

DEFAULT_TIMEOUT_IN_SECONDS = 30
DEFAULT_MAX_FILE_PREVIEW_SIZE_BYTES = MEGA


class ColorTheme(Enum):
    """Host colour scheme preference."""

    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"

    @classmethod
    def from_string(cls, value: str) -> "ColorTheme":
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidSettingsError(f"invalid color theme: {value!r}") from exc


@dataclass(frozen=True)
class Settings:
    """User configuration."""

    timeout_in_seconds: int = DEFAULT_TIMEOUT_IN_SECONDS
    max_file_preview_size_bytes: int = DEFAULT_MAX_FILE_PREVIEW_SIZE_BYTES
    color_theme: ColorTheme = ColorTheme.SYSTEM

    def __post_init__(self):
        """Validate settings."""
        if self.timeout_in_seconds <= 0:
            raise InvalidTimeoutError(f"timeout must be positive, got {self.timeout_in_seconds}")
        if self.max_file_preview_size_bytes <= 0:
            raise InvalidSettingsError(
                f"max file preview size must be positive, got {self.max_file_preview_size_bytes}"
            )

    @classmethod
    def new(
        cls,
        timeout_in_seconds: int,
        max_file_preview_size_bytes: int,
        color_theme: ColorTheme = ColorTheme.SYSTEM,
    ) -> "Settings":
        return cls(timeout_in_seconds, max_file_preview_size_bytes, color_theme)

    @classmethod
    def default(cls) -> "Settings":
        return cls()

    def to_dict(self) -> dict:
        return {
            "timeoutInSeconds": self.timeout_in_seconds,
            "maxFilePreviewSizeBytes": self.max_file_preview_size_bytes,
            "colorTheme": self.color_theme.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """
        Build settings from their persisted JSON form.

        Missing fields take their defaults.

        Raises:
            InvalidSettingsError: If a value is rejected
        """
        if not isinstance(data, dict):
            raise InvalidSettingsError(f"settings must be an object, got {type(data).__name__}")
        try:
            timeout = int(data.get("timeoutInSeconds", DEFAULT_TIMEOUT_IN_SECONDS))
            max_preview = int(data.get("maxFilePreviewSizeBytes", DEFAULT_MAX_FILE_PREVIEW_SIZE_BYTES))
        except (TypeError, ValueError) as exc:
            raise InvalidSettingsError(f"invalid numeric setting: {exc}") from exc
        theme = ColorTheme.from_string(data.get("colorTheme", ColorTheme.SYSTEM.value))
        return cls(timeout, max_preview, theme)


class Level(Enum):
    """Notification severity, ordered DEBUG < INFO < ERROR."""

    DEBUG = 0
    INFO = 1
    ERROR = 2

    def at_least(self, other: "Level") -> bool:
        return self.value >= other.value

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass
class Notification:
    """A severity-tagged user-visible message."""

    level: Level
    payload: Union[str, BaseException]
    time: datetime = field(default_factory=datetime.now)

    @property
    def message(self) -> str:
        return str(self.payload)

    def __str__(self) -> str:
        return f"{self.level.label}: {self.message}"


def format_size_bytes(size: int) -> str:
    """Human readable size with binary units (1.46 GB)."""
    if size < KILO:
        return f"{size} B"
    for unit, factor, limit in (
        ("KB", KILO, MEGA),
        ("MB", MEGA, GIGA),
        ("GB", GIGA, TERA),
        ("TB", TERA, PETA),
    ):
        if size < limit:
            return f"{size / factor:.2f} {unit}"
    return f"{size / PETA:.2f} PB"


def bytes_to_mb(size: int) -> int:
    """Whole megabytes, rounded up so a positive size never shows as 0."""
    return -(-size // MEGA)


def mb_to_bytes(mb: int) -> int:
    return mb * MEGA
