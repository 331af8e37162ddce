"""Connection editor dialog for creating and editing bucket connections."""
from typing import Optional

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QGroupBox,
    QLineEdit,
    QMessageBox,
    QVBoxLayout,
)

from s3box.core.deck import DEFAULT_AWS_REGION, Connection, Provider


class ConnectionEditorDialog(QDialog):
    """Dialog for editing a connection's settings."""

    # Keyword arguments for ConnectionViewModel.create / update
    connection_saved = Signal(dict)

    def __init__(self, connection: Optional[Connection] = None, parent=None):
        """
        Initialize connection editor dialog.

        Args:
            connection: Existing connection to edit (None for a new one)
            parent: Parent widget
        """
        super().__init__(parent)
        self.connection = connection
        self.setWindowTitle("Edit Connection" if connection else "New Connection")
        self.setMinimumWidth(460)

        self._init_ui()

        if connection:
            self._load_connection(connection)

    def _init_ui(self):
        layout = QVBoxLayout(self)

        basic_group = QGroupBox("Bucket")
        basic_layout = QFormLayout()

        self.name_edit = QLineEdit()
        basic_layout.addRow("Name:", self.name_edit)

        self.bucket_edit = QLineEdit()
        basic_layout.addRow("Bucket:", self.bucket_edit)

        self.read_only_check = QCheckBox("Read-only")
        basic_layout.addRow("", self.read_only_check)

        basic_group.setLayout(basic_layout)
        layout.addWidget(basic_group)

        endpoint_group = QGroupBox("Endpoint")
        endpoint_layout = QFormLayout()

        self.provider_combo = QComboBox()
        self.provider_combo.addItems([p.value for p in Provider])
        self.provider_combo.currentTextChanged.connect(self._on_provider_changed)
        endpoint_layout.addRow("Provider:", self.provider_combo)

        self.region_edit = QLineEdit()
        self.region_edit.setPlaceholderText(DEFAULT_AWS_REGION)
        endpoint_layout.addRow("Region:", self.region_edit)

        self.server_edit = QLineEdit()
        self.server_edit.setPlaceholderText("localhost:9000")
        endpoint_layout.addRow("Server:", self.server_edit)

        self.tls_check = QCheckBox("Use TLS")
        self.tls_check.setChecked(True)
        endpoint_layout.addRow("", self.tls_check)

        endpoint_group.setLayout(endpoint_layout)
        layout.addWidget(endpoint_group)

        auth_group = QGroupBox("Credentials")
        auth_layout = QFormLayout()

        self.access_key_edit = QLineEdit()
        auth_layout.addRow("Access Key:", self.access_key_edit)

        self.secret_key_edit = QLineEdit()
        self.secret_key_edit.setEchoMode(QLineEdit.Password)
        auth_layout.addRow("Secret Key:", self.secret_key_edit)

        auth_group.setLayout(auth_layout)
        layout.addWidget(auth_group)

        button_box = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        button_box.accepted.connect(self._save_and_accept)
        button_box.rejected.connect(self.reject)
        layout.addWidget(button_box)

        self._on_provider_changed(Provider.AWS.value)

    def _on_provider_changed(self, value: str):
        is_aws = Provider.from_string(value) == Provider.AWS
        self.region_edit.setVisible(is_aws)
        self.server_edit.setVisible(not is_aws)
        self.tls_check.setVisible(not is_aws)

    def _load_connection(self, conn: Connection):
        self.name_edit.setText(conn.name)
        self.bucket_edit.setText(conn.bucket)
        self.read_only_check.setChecked(conn.read_only)
        self.provider_combo.setCurrentText(conn.provider.value)
        self.region_edit.setText(conn.region)
        self.server_edit.setText(conn.server)
        self.tls_check.setChecked(conn.use_tls)
        self.access_key_edit.setText(conn.access_key)
        self.secret_key_edit.setText(conn.secret_key)

    def values(self) -> dict:
        """Form content as keyword arguments for the connection view-model."""
        values = {
            "name": self.name_edit.text().strip(),
            "access_key": self.access_key_edit.text().strip(),
            "secret_key": self.secret_key_edit.text(),
            "bucket": self.bucket_edit.text().strip(),
            "read_only": self.read_only_check.isChecked(),
        }
        if Provider.from_string(self.provider_combo.currentText()) == Provider.AWS:
            values["aws_region"] = self.region_edit.text().strip() or DEFAULT_AWS_REGION
        else:
            values["s3_like_server"] = self.server_edit.text().strip()
            values["use_tls"] = self.tls_check.isChecked()
        return values

    def _save_and_accept(self):
        values = self.values()
        missing = []
        if not values["name"]:
            missing.append("Name")
        if not values["bucket"]:
            missing.append("Bucket")
        if "s3_like_server" in values and not values["s3_like_server"]:
            missing.append("Server")

        if missing:
            QMessageBox.warning(
                self,
                "Missing Required Fields",
                "Please fill in the following fields:\n• " + "\n• ".join(missing)
            )
            return

        self.connection_saved.emit(values)
        self.accept()
