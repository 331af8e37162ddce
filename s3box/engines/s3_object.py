"""Random-access byte stream over a single S3 object."""
import io
import logging
import os
from typing import Any, Optional

from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from s3box.core.context import Context
from s3box.core.directory import File
from s3box.engines.s3_session import is_not_found, map_s3_error
from s3box.shared.errors import NotFoundError, S3BoxError, TechnicalError
from s3box.shared.paths import file_to_key

logger = logging.getLogger(__name__)

# Multipart kicks in above 8 MiB, like the SDK default
TRANSFER_CONFIG = TransferConfig(multipart_threshold=8 * 1024 * 1024, use_threads=False)


class _NotExistsState:
    name = "not_exists"

    def __init__(self, obj: "S3Object"):
        self.obj = obj

    def read(self, size: int) -> bytes:
        raise NotFoundError(f"object does not exist: {self.obj.file.name}")

    def write(self, data: bytes) -> int:
        buffer = bytes(data)
        self.obj._upload(buffer)
        self.obj._state = _ExistsState(self.obj, buffer, len(buffer))
        return len(buffer)

    def seek(self, offset: int, whence: int) -> int:
        raise NotFoundError(f"cannot seek on non-existent object: {self.obj.file.name}")

    def tell(self) -> int:
        return 0


class _ExistsState:
    name = "exists"

    def __init__(self, obj: "S3Object", content: bytes, position: int):
        self.obj = obj
        self.content = content
        self.position = position

    def read(self, size: int) -> bytes:
        if self.position >= len(self.content):
            return b""
        end = len(self.content) if size is None or size < 0 else self.position + size
        chunk = self.content[self.position:end]
        self.position += len(chunk)
        return chunk

    def write(self, data: bytes) -> int:
        previous_content, previous_position = self.content, self.position
        # Bytes after the written range are dropped
        self.content = self.content[:self.position] + bytes(data)
        try:
            self.obj._upload(self.content)
        except Exception:
            self.content, self.position = previous_content, previous_position
            raise
        self.position = len(self.content)
        return len(data)

    def seek(self, offset: int, whence: int) -> int:
        if whence == os.SEEK_SET:
            target = offset
        elif whence == os.SEEK_CUR:
            target = self.position + offset
        elif whence == os.SEEK_END:
            target = len(self.content) + offset
        else:
            raise ValueError(f"invalid whence: {whence}")

        if target < 0:
            raise ValueError(f"cannot seek before beginning of object (target {target})")
        if target > len(self.content):
            self.position = len(self.content)
            raise EOFError(f"seek past end of object, cursor clamped to {self.position}")
        self.position = target
        return self.position

    def tell(self) -> int:
        return self.position


class S3Object:
    """
    File-like view of one S3 object for the text editor.

    The object is downloaded on construction. While it exists, reads
    stream from memory and every write re-uploads the full content; a
    failed upload leaves content and cursor exactly as they were.
    """

    def __init__(
        self,
        client: Any,
        bucket: str,
        file: File,
        ctx: Optional[Context] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Download the object and pick the initial state.

        Args:
            client: boto3 S3 client
            bucket: Bucket holding the object
            file: File the object backs
            ctx: Context checked before every upload
            logger: Optional logger instance

        Raises:
            TechnicalError: If the download fails for any reason other than
                the object being absent
        """
        self.client = client
        self.bucket = bucket
        self.file = file
        self.key = file_to_key(file.full_path)
        self.ctx = ctx or Context.background()
        self.logger = logger or logging.getLogger(__name__)
        self.closed = False

        buffer = io.BytesIO()
        try:
            self.client.download_fileobj(self.bucket, self.key, buffer, Config=TRANSFER_CONFIG)
        except (ClientError, BotoCoreError) as exc:
            if not is_not_found(exc):
                raise map_s3_error(exc, self.key, self.bucket) from exc
            self.logger.debug(f"Object {self.key} not found in {self.bucket}, starting empty")
            self._state = _NotExistsState(self)
        else:
            content = buffer.getvalue()
            self._state = _ExistsState(self, content, len(content))

    @property
    def exists(self) -> bool:
        return isinstance(self._state, _ExistsState)

    def _upload(self, content: bytes):
        self.ctx.raise_if_done()
        try:
            self.client.upload_fileobj(io.BytesIO(content), self.bucket, self.key, Config=TRANSFER_CONFIG)
        except (ClientError, BotoCoreError) as exc:
            raise map_s3_error(exc, self.key, self.bucket) from exc
        except S3BoxError:
            raise
        except OSError as exc:
            raise TechnicalError(f"failed to upload {self.key} to {self.bucket}: {exc}") from exc
        self.logger.debug(f"Uploaded {len(content)} bytes to {self.bucket}/{self.key}")

    def read(self, size: int = -1) -> bytes:
        """Read up to *size* bytes from the cursor; b"" at end of object."""
        return self._state.read(size)

    def readall(self) -> bytes:
        return self._state.read(-1)

    def write(self, data: bytes) -> int:
        """Write at the cursor and upload the whole object."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        return self._state.write(data)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """
        Move the cursor.

        Raises:
            ValueError: If the target is negative or whence is unknown
            EOFError: If the target is past the end; the cursor is left at the end
            NotFoundError: If the object does not exist
        """
        return self._state.seek(offset, whence)

    def tell(self) -> int:
        return self._state.tell()

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return self.exists

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self) -> str:
        return f"S3Object({self.bucket}/{self.key}, {self._state.name})"
