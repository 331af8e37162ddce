"""Apply the configured colour theme to the running Qt application."""
import logging

from PySide6.QtCore import Qt
from PySide6.QtGui import QGuiApplication

from s3box.shared.models import ColorTheme

logger = logging.getLogger(__name__)

_COLOR_SCHEMES = {
    ColorTheme.LIGHT: Qt.ColorScheme.Light,
    ColorTheme.DARK: Qt.ColorScheme.Dark,
    ColorTheme.SYSTEM: Qt.ColorScheme.Unknown,
}


def apply_color_theme(theme: ColorTheme) -> bool:
    """
    Switch the application's colour scheme.

    ``SYSTEM`` hands the choice back to the platform.

    Returns:
        False when no Qt application is running (headless use)
    """
    app = QGuiApplication.instance()
    if app is None:
        logger.debug(f"No application running, theme {theme.value} not applied")
        return False
    app.styleHints().setColorScheme(_COLOR_SCHEMES[theme])
    logger.info(f"Applied {theme.value} color theme")
    return True
