"""Main application window."""
import os
from typing import Optional

from PySide6.QtCore import Qt, QUrl
from PySide6.QtWidgets import (
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSpinBox,
    QSplitter,
    QTextEdit,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from s3box.shared.errors import EditorAlreadyOpenedError, S3BoxError
from s3box.shared.models import ColorTheme
from s3box.ui.viewmodels.editor import OpenedEditor
from s3box.ui.viewmodels.tree_node import Node
from s3box.ui.widgets.connection_editor import ConnectionEditorDialog

NODE_ROLE = Qt.UserRole + 1


class EditorWindow(QDialog):
    """Plain-text editor bound to an OpenedEditor."""

    def __init__(self, editor: OpenedEditor, on_close, parent=None):
        super().__init__(parent)
        self.editor = editor
        self.on_close = on_close
        self.setWindowTitle(editor.file.name)
        self.resize(700, 500)

        layout = QVBoxLayout(self)
        self.status = QLabel("Loading...")
        layout.addWidget(self.status)
        self.text = QTextEdit()
        self.text.setReadOnly(True)
        layout.addWidget(self.text)

        btn_save = QPushButton("Save")
        btn_save.clicked.connect(self._save)
        layout.addWidget(btn_save)

        editor.content.changed.connect(self._on_content)
        editor.is_loaded.changed.connect(self._on_loaded)
        editor.focus_requested.connect(self._focus)
        editor.closed.connect(self.close)

    def _on_content(self, text: str):
        self.text.setPlainText(text)

    def _on_loaded(self, loaded: bool):
        error = self.editor.error_msg.get()
        self.status.setText(error or "")
        self.text.setReadOnly(bool(error) or not loaded)

    def _focus(self):
        self.raise_()
        self.activateWindow()

    def _save(self):
        try:
            self.editor.on_save(self.text.toPlainText())
        except S3BoxError as e:
            QMessageBox.critical(self, "Save Error", f"[{e.code.name}] {e.message}")
            return
        self.status.setText("Saved")

    def closeEvent(self, event):
        self.on_close(self.editor)
        super().closeEvent(event)


class SettingsDialog(QDialog):
    """Edits the SettingsViewModel observables and saves them."""

    def __init__(self, settings_vm, parent=None):
        super().__init__(parent)
        self.settings_vm = settings_vm
        self.setWindowTitle("Settings")

        layout = QFormLayout(self)
        self.timeout_spin = QSpinBox()
        self.timeout_spin.setRange(1, 3600)
        self.timeout_spin.setValue(settings_vm.timeout_in_seconds.get())
        layout.addRow("Timeout (s):", self.timeout_spin)

        self.preview_spin = QSpinBox()
        self.preview_spin.setRange(1, 1024)
        self.preview_spin.setValue(settings_vm.max_file_preview_size_mb.get())
        layout.addRow("Max preview (MB):", self.preview_spin)

        self.theme_combo = QComboBox()
        self.theme_combo.addItems([t.value for t in ColorTheme])
        self.theme_combo.setCurrentText(settings_vm.color_theme.get())
        layout.addRow("Theme:", self.theme_combo)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self._save_and_accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

    def _save_and_accept(self):
        self.settings_vm.timeout_in_seconds.set(self.timeout_spin.value())
        self.settings_vm.max_file_preview_size_mb.set(self.preview_spin.value())
        self.settings_vm.color_theme.set(self.theme_combo.currentText())
        try:
            self.settings_vm.save()
        except S3BoxError as e:
            self.settings_vm.reset()
            QMessageBox.critical(self, "Settings Error", f"[{e.code.name}] {e.message}")
            return
        self.accept()


class MainWindow(QMainWindow):
    def __init__(self, context):
        super().__init__()
        self.context = context
        self.connection_vm = context.connection_vm
        self.explorer_vm = context.explorer_vm
        self.editor_vm = context.editor_vm
        self._editor_windows: list[EditorWindow] = []

        self.setWindowTitle("S3Box - S3 Bucket Browser")
        self.resize(1200, 780)

        self._init_ui()
        self._bind()
        self._refresh_connections()
        self._refresh_tree()
        self._refresh_notifications()

    # ------------------------------------------------------------------
    # UI setup
    # ------------------------------------------------------------------

    def _init_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        root_layout = QHBoxLayout(central)
        splitter = QSplitter(Qt.Horizontal)
        root_layout.addWidget(splitter)

        # --- Left: connection list ---
        left = QWidget()
        left_lay = QVBoxLayout(left)
        left_lay.setContentsMargins(0, 0, 0, 0)
        left_lay.addWidget(QLabel("Connections"))
        self.connection_list = QListWidget()
        self.connection_list.itemClicked.connect(self._on_connection_clicked)
        left_lay.addWidget(self.connection_list)

        for label, slot in (
            ("Add Connection", self._add_connection),
            ("Edit Connection", self._edit_connection),
            ("Delete Connection", self._delete_connection),
            ("Export as JSON", self._export_connections),
            ("Settings", self._open_settings),
        ):
            btn = QPushButton(label)
            btn.clicked.connect(slot)
            left_lay.addWidget(btn)
        splitter.addWidget(left)

        # --- Center: bucket tree ---
        center = QWidget()
        center_lay = QVBoxLayout(center)
        center_lay.setContentsMargins(0, 0, 0, 0)
        self.banner = QLabel("No connection selected")
        center_lay.addWidget(self.banner)

        self.tree_widget = QTreeWidget()
        self.tree_widget.setHeaderLabels(["Name", "Size"])
        self.tree_widget.itemExpanded.connect(self._on_item_expanded)
        self.tree_widget.itemCollapsed.connect(self._on_item_collapsed)
        self.tree_widget.itemDoubleClicked.connect(self._on_item_double_clicked)
        center_lay.addWidget(self.tree_widget)

        actions = QHBoxLayout()
        for label, slot in (
            ("Refresh", self._refresh_selected),
            ("New Folder", self._new_folder),
            ("Upload", self._upload_file),
            ("Download", self._download_file),
            ("Delete", self._delete_selected),
        ):
            btn = QPushButton(label)
            btn.clicked.connect(slot)
            actions.addWidget(btn)
        center_lay.addLayout(actions)
        splitter.addWidget(center)

        # --- Right: notifications ---
        right = QWidget()
        right_lay = QVBoxLayout(right)
        right_lay.setContentsMargins(0, 0, 0, 0)
        right_lay.addWidget(QLabel("Notifications"))
        self.notification_list = QListWidget()
        right_lay.addWidget(self.notification_list)
        splitter.addWidget(right)

        splitter.setSizes([250, 650, 300])

    def _bind(self):
        self.connection_vm.connections.changed.connect(self._refresh_connections)
        self.connection_vm.selected_connection.changed.connect(lambda _: self._refresh_connections())
        self.explorer_vm.tree.changed.connect(self._refresh_tree)
        self.explorer_vm.display_no_connection_banner.changed.connect(self.banner.setVisible)
        self.context.notification_vm.notifications.changed.connect(self._refresh_notifications)

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def _refresh_connections(self):
        selected = self.connection_vm.selected_connection.get()
        self.connection_list.clear()
        for conn in self.connection_vm.connections.get():
            label = f"{conn.name} ({conn.bucket})" + (" [read-only]" if conn.read_only else "")
            item = QListWidgetItem(label)
            item.setData(Qt.UserRole, conn.id)
            self.connection_list.addItem(item)
            if selected is not None and conn.id == selected.id:
                item.setSelected(True)

    def _refresh_notifications(self):
        self.notification_list.clear()
        self.notification_list.addItems(self.context.notification_vm.notifications.get())

    def _make_item(self, node: Node) -> QTreeWidgetItem:
        item = QTreeWidgetItem([node.display_name, node.size_label])
        item.setData(0, NODE_ROLE, node)
        if node.is_directory:
            item.setChildIndicatorPolicy(QTreeWidgetItem.ShowIndicator)
        return item

    def _populate(self, parent_item: QTreeWidgetItem, node: Node):
        tree = self.explorer_vm.tree
        for child in tree.children(node.id):
            item = self._make_item(child)
            parent_item.addChild(item)
            self._populate(item, child)
        if node.directory is not None and node.directory.is_opened:
            parent_item.setExpanded(True)

    def _refresh_tree(self):
        self.banner.setVisible(self.explorer_vm.display_no_connection_banner.get())
        self.tree_widget.blockSignals(True)
        try:
            self.tree_widget.clear()
            for root in self.explorer_vm.tree.roots():
                item = self._make_item(root)
                self.tree_widget.addTopLevelItem(item)
                self._populate(item, root)
        finally:
            self.tree_widget.blockSignals(False)

    def _selected_node(self) -> Optional[Node]:
        items = self.tree_widget.selectedItems()
        return items[0].data(0, NODE_ROLE) if items else None

    def _run(self, title: str, action, *args):
        try:
            return action(*args)
        except S3BoxError as e:
            QMessageBox.critical(self, title, f"[{e.code.name}] {e.message}")
        return None

    # ------------------------------------------------------------------
    # Connection actions
    # ------------------------------------------------------------------

    def _on_connection_clicked(self, item: QListWidgetItem):
        self._run("Select Error", self.connection_vm.select, item.data(Qt.UserRole))

    def _add_connection(self):
        dlg = ConnectionEditorDialog(parent=self)
        dlg.connection_saved.connect(lambda values: self._run("Create Error", self._create, values))
        dlg.exec()

    def _create(self, values: dict):
        self.connection_vm.create(**values)

    def _edit_connection(self):
        item = self.connection_list.currentItem()
        if item is None:
            QMessageBox.warning(self, "No Connection", "Select a connection first.")
            return
        connection_id = item.data(Qt.UserRole)
        conn = self.connection_vm.deck.get_by_id(connection_id)
        dlg = ConnectionEditorDialog(conn, parent=self)
        dlg.connection_saved.connect(
            lambda values: self._run("Update Error", self._update, connection_id, values)
        )
        dlg.exec()

    def _update(self, connection_id, values: dict):
        self.connection_vm.update(connection_id, **values)

    def _delete_connection(self):
        item = self.connection_list.currentItem()
        if item is None:
            return
        reply = QMessageBox.question(self, "Delete Connection", f"Delete {item.text()}?")
        if reply == QMessageBox.Yes:
            self._run("Delete Error", self.connection_vm.delete, item.data(Qt.UserRole))

    def _export_connections(self):
        path, _ = QFileDialog.getSaveFileName(self, "Export connections", "connections.json", "JSON (*.json)")
        if not path:
            return
        with open(path, "w", encoding="utf-8") as writer:
            self._run("Export Error", self.connection_vm.export_as_json, writer)

    def _open_settings(self):
        SettingsDialog(self.context.settings_vm, parent=self).exec()

    # ------------------------------------------------------------------
    # Explorer actions
    # ------------------------------------------------------------------

    def _on_item_expanded(self, item: QTreeWidgetItem):
        node: Node = item.data(0, NODE_ROLE)
        if node.directory is not None:
            self._run("Load Error", self.explorer_vm.open_directory, node.directory)

    def _on_item_collapsed(self, item: QTreeWidgetItem):
        node: Node = item.data(0, NODE_ROLE)
        if node.directory is not None:
            self.explorer_vm.close_directory(node.directory)

    def _on_item_double_clicked(self, item: QTreeWidgetItem, column: int):
        node: Node = item.data(0, NODE_ROLE)
        if node.file is None:
            return
        try:
            editor = self.editor_vm.open(node.file)
        except EditorAlreadyOpenedError:
            return
        except S3BoxError as e:
            QMessageBox.warning(self, "Open Error", f"[{e.code.name}] {e.message}")
            return
        window = EditorWindow(editor, self._on_editor_closed, parent=self)
        self._editor_windows.append(window)
        window.show()

    def _on_editor_closed(self, editor: OpenedEditor):
        self.editor_vm.close(editor)
        self._editor_windows = [w for w in self._editor_windows if w.editor is not editor]

    def _current_directory(self):
        node = self._selected_node()
        if node is None:
            return self.explorer_vm.root()
        if node.directory is not None:
            return node.directory
        return self.explorer_vm.get_directory(node.file.directory_path)

    def _refresh_selected(self):
        directory = self._current_directory()
        if directory is not None:
            self._run("Refresh Error", self.explorer_vm.refresh_directory, directory)

    def _new_folder(self):
        directory = self._current_directory()
        if directory is None:
            return
        name, ok = QInputDialog.getText(self, "New Folder", "Folder name:")
        if ok and name:
            self._run("Create Error", self.explorer_vm.create_empty_directory, directory, name)

    def _upload_file(self):
        directory = self._current_directory()
        if directory is None:
            return
        start = self.explorer_vm.last_upload_location.get()
        path, _ = QFileDialog.getOpenFileName(self, "Select file to upload", _local_dir(start))
        if path:
            self._run("Upload Error", self.explorer_vm.upload_file, path, directory)

    def _download_file(self):
        node = self._selected_node()
        if node is None or node.file is None:
            QMessageBox.warning(self, "No File", "Select a file first.")
            return
        start = os.path.join(_local_dir(self.explorer_vm.last_download_location.get()), node.file.name)
        path, _ = QFileDialog.getSaveFileName(self, "Save file", start)
        if path:
            self._run("Download Error", self.explorer_vm.download_file, node.file, path)

    def _delete_selected(self):
        node = self._selected_node()
        if node is None or node.is_directory and node.directory.is_root:
            return
        reply = QMessageBox.question(self, "Delete", f"Delete {node.display_name}?")
        if reply != QMessageBox.Yes:
            return
        if node.file is not None:
            self._run("Delete Error", self.explorer_vm.delete_file, node.file)
        else:
            parent = self.explorer_vm.get_directory(node.directory.parent_path)
            if parent is not None:
                self._run("Delete Error", self.explorer_vm.delete_directory, parent, node.directory.name)

    def closeEvent(self, event):
        self.context.shutdown()
        super().closeEvent(event)


def _local_dir(uri: str) -> str:
    return QUrl(uri).toLocalFile() if uri else ""
