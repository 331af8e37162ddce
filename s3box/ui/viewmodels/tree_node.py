"""Explorer tree nodes."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from s3box.core.directory import Directory, File
from s3box.shared.models import format_size_bytes


class NodeKind(Enum):
    ROOT = "root"
    DIRECTORY = "directory"
    FILE = "file"


@dataclass
class Node:
    """
    A row of the explorer tree.

    Directory nodes are keyed by directory path ("/a/b/"), file nodes by
    the file's full path ("/a/b/c.txt").
    """

    id: str
    display_name: str
    kind: NodeKind
    directory: Optional[Directory] = None
    file: Optional[File] = None

    @classmethod
    def root(cls, directory: Directory, display_name: str) -> "Node":
        return cls(str(directory.path), display_name, NodeKind.ROOT, directory=directory)

    @classmethod
    def for_directory(cls, directory: Directory) -> "Node":
        return cls(str(directory.path), directory.name, NodeKind.DIRECTORY, directory=directory)

    @classmethod
    def for_file(cls, file: File) -> "Node":
        return cls(file.full_path, file.name, NodeKind.FILE, file=file)

    @property
    def is_directory(self) -> bool:
        return self.kind in (NodeKind.ROOT, NodeKind.DIRECTORY)

    @property
    def is_loaded(self) -> bool:
        return self.directory is not None and self.directory.is_loaded

    @property
    def size_label(self) -> str:
        if self.file is None:
            return ""
        return format_size_bytes(self.file.size_bytes)
