"""Remote path algebra and S3 key mapping for s3box."""
import posixpath

from .errors import ValidationError


class RemotePath(str):
    """
    A normalized directory path inside a bucket.

    Always of the form ``/`` or ``/a/b/`` (leading and trailing slash).
    The empty string is the nil parent path, which is distinct from root.
    """

    __slots__ = ()

    @classmethod
    def new(cls, path: str) -> "RemotePath":
        """
        Coerce a raw string into a directory path.

        Args:
            path: Raw path, with or without leading/trailing slashes

        Returns:
            NIL_PARENT_PATH for "", ROOT_PATH for "/", otherwise the
            slash-wrapped form with duplicate slashes collapsed
        """
        if path == "":
            return NIL_PARENT_PATH
        segments = [s for s in path.split("/") if s]
        if not segments:
            return ROOT_PATH
        return cls("/" + "/".join(segments) + "/")

    @property
    def is_root(self) -> bool:
        return self == "/"

    @property
    def is_nil(self) -> bool:
        return self == ""

    def directory_name(self) -> str:
        """Return the last non-empty segment; root and nil yield ""."""
        segments = [s for s in self.split("/") if s]
        return segments[-1] if segments else ""

    def parent_path(self) -> "RemotePath":
        """Return the parent directory, or NIL_PARENT_PATH for root/nil."""
        if self.is_root or self.is_nil:
            return NIL_PARENT_PATH
        segments = [s for s in self.split("/") if s]
        return RemotePath.new("/".join(segments[:-1]) or "/")

    def new_sub_path(self, name: str) -> "RemotePath":
        """Append *name* to this path with normalization."""
        return RemotePath.new(posixpath.join(str(self) or "/", name))

    def __repr__(self) -> str:
        return f"RemotePath({str(self)!r})"


NIL_PARENT_PATH = RemotePath("")
ROOT_PATH = RemotePath("/")


def validate_name(name: str, kind: str = "file") -> str:
    """
    Validate a file or directory name.

    Raises:
        ValidationError: If the name is empty or contains a slash
    """
    if not name:
        raise ValidationError(f"{kind} name is empty")
    if "/" in name:
        raise ValidationError(f"{kind} name is not valid: should not be '/' or contain '/': {name!r}")
    return name


# S3 key mapping

def path_to_search_key(path: str) -> str:
    """Listing prefix for a directory: "" for root, else "a/b/"."""
    if path in ("", "/"):
        return ""
    key = path.lstrip("/")
    if not key.endswith("/"):
        key += "/"
    return key


def directory_to_marker_key(path: str) -> str:
    """Key of the empty marker object materializing a directory."""
    return path_to_search_key(path)


def file_to_key(full_path: str) -> str:
    """Object key of a file: its full path without the leading slash."""
    return full_path.lstrip("/")


def key_to_object_name(key: str) -> str:
    """Last non-empty segment of an object key."""
    segments = [s for s in key.split("/") if s]
    return segments[-1] if segments else ""
