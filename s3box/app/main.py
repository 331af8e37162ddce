"""Main application entry point and dependency wiring."""
import logging
import sys
import threading
from pathlib import Path
from typing import Optional

from PySide6.QtWidgets import QApplication

from s3box.core.events import DEFAULT_PUBLICATION_WORKERS, DEFAULT_QUEUE_SIZE, EventBus
from s3box.engines.s3_engine import S3DirectoryRepository
from s3box.engines.s3_session import ClientFactory, boto3_client_factory
from s3box.services.deck_repository import DeckRepository
from s3box.services.notification_repository import NotificationPublisher
from s3box.services.preferences import QtPreferences, _default_store_path
from s3box.services.settings_repository import SettingsRepository
from s3box.shared.logging_ import setup_logger
from s3box.shared.models import Level
from s3box.ui.main_window import MainWindow
from s3box.ui.viewmodels.connection import ConnectionViewModel
from s3box.ui.viewmodels.editor import EditorViewModel
from s3box.ui.viewmodels.explorer import ExplorerViewModel
from s3box.ui.viewmodels.notification import NotificationViewModel
from s3box.ui.viewmodels.settings import SettingsViewModel

logger = logging.getLogger(__name__)


class AppContext:
    """
    Owns the process-wide bus, the repositories and the view-models.

    Subscribers are created before the connection view-model announces
    the persisted selection, so every component sees the first
    ``deck.select.success``.
    """

    def __init__(
        self,
        preferences=None,
        client_factory: Optional[ClientFactory] = None,
        notification_level: Level = Level.INFO,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        workers: int = DEFAULT_PUBLICATION_WORKERS,
        logger: Optional[logging.Logger] = None
    ):
        """
        Build and wire every component.

        Args:
            preferences: Key/value store; an INI file in the user config dir by default
            client_factory: Builds S3 clients; boto3 by default
            notification_level: Least severe notification shown to the user
            queue_size: Capacity of the bus queues
            workers: Number of bus publication workers
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)
        self.done = threading.Event()
        self._shutdown_lock = threading.Lock()

        self.bus = EventBus(self.done, queue_size=queue_size, workers=workers)
        self.preferences = preferences if preferences is not None else QtPreferences()
        self.notifier = NotificationPublisher(notification_level)

        self.settings_repository = SettingsRepository(self.preferences)
        self.settings_vm = SettingsViewModel(self.settings_repository, self.notifier)

        self.deck_repository = DeckRepository(self.preferences, self.bus)
        self.directory_repository = S3DirectoryRepository(
            self.deck_repository.get_connection,
            bus=self.bus,
            notifier=self.notifier,
            client_factory=client_factory or boto3_client_factory(self.settings_vm.current_timeout),
            timeout_in_seconds=self.settings_vm.current_timeout,
        )

        self.notification_vm = NotificationViewModel(self.notifier, self.done)
        self.explorer_vm = ExplorerViewModel(self.bus, self.notifier)
        self.editor_vm = EditorViewModel(self.bus, self.notifier, self.settings_vm)
        self.connection_vm = ConnectionViewModel(self.deck_repository, self.bus, self.notifier)
        self.logger.info("Application context ready")

    def shutdown(self):
        """Close editors and stop the bus. Idempotent."""
        with self._shutdown_lock:
            if self.done.is_set():
                return
            self.editor_vm.close_all()
            self.notification_vm.close()
            self.bus.close()
        self.logger.info("Application context shut down")


def _log_file() -> Path:
    return _default_store_path().parent / "s3box.log"


def main():
    """Run the application."""
    setup_logger(level=logging.INFO, log_file=_log_file())

    app = QApplication(sys.argv)
    app.setApplicationName("S3Box")
    app.setOrganizationName("S3Box")

    context = AppContext()
    app.aboutToQuit.connect(context.shutdown)

    window = MainWindow(context)
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
