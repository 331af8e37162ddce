"""Settings view-model."""
import logging
from typing import Callable, Optional

from s3box.shared.errors import InvalidSettingsError, S3BoxError
from s3box.shared.models import ColorTheme, Settings, bytes_to_mb, mb_to_bytes
from s3box.ui.bindings import ObservableValue
from s3box.ui.theme import apply_color_theme

logger = logging.getLogger(__name__)


class SettingsViewModel:
    """
    Editable settings form.

    The observables hold the values being edited (timeout in seconds,
    preview limit in megabytes, theme name); ``current_*`` accessors return
    the last saved settings.
    """

    def __init__(
        self,
        repository,
        notifier,
        apply_theme: Callable[[ColorTheme], bool] = apply_color_theme,
        logger: Optional[logging.Logger] = None
    ):
        self.repository = repository
        self.notifier = notifier
        self.apply_theme = apply_theme
        self.logger = logger or logging.getLogger(__name__)

        self.timeout_in_seconds = ObservableValue(0)
        self.max_file_preview_size_mb = ObservableValue(0)
        self.color_theme = ObservableValue("")

        self._settings = repository.get()
        self._synchronize(self._settings)
        self.apply_theme(self._settings.color_theme)

    @property
    def settings(self) -> Settings:
        return self._settings

    def current_timeout(self) -> float:
        """Operation timeout in seconds."""
        return float(self._settings.timeout_in_seconds)

    def current_max_file_preview_size_bytes(self) -> int:
        return self._settings.max_file_preview_size_bytes

    def current_color_theme(self) -> ColorTheme:
        return self._settings.color_theme

    def save(self) -> Settings:
        """
        Validate the edited values, persist them and apply the theme.

        Raises:
            InvalidSettingsError: If a value is rejected (nothing is saved)
            TechnicalError: If the settings cannot be stored
        """
        try:
            settings = self._build()
            self.repository.save(settings)
        except S3BoxError as exc:
            self.notifier.notify_error(exc)
            raise

        self._settings = settings
        self._synchronize(settings)
        self.apply_theme(settings.color_theme)
        self.logger.info(f"Settings saved: {settings.to_dict()}")
        return settings

    def reset(self):
        """Discard unsaved edits."""
        self._synchronize(self._settings)

    def _build(self) -> Settings:
        try:
            timeout = int(self.timeout_in_seconds.get())
            max_preview_mb = int(self.max_file_preview_size_mb.get())
        except (TypeError, ValueError) as exc:
            raise InvalidSettingsError(f"invalid numeric setting: {exc}") from exc
        theme = ColorTheme.from_string(self.color_theme.get())
        max_preview_bytes = self._settings.max_file_preview_size_bytes
        # Untouched field keeps the exact stored byte value
        if max_preview_mb != bytes_to_mb(max_preview_bytes):
            max_preview_bytes = mb_to_bytes(max_preview_mb)
        return Settings.new(timeout, max_preview_bytes, theme)

    def _synchronize(self, settings: Settings):
        self.timeout_in_seconds.set(settings.timeout_in_seconds)
        self.max_file_preview_size_mb.set(bytes_to_mb(settings.max_file_preview_size_bytes))
        self.color_theme.set(settings.color_theme.value)
