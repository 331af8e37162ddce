"""boto3 client construction, per-connection session cache and error mapping."""
import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from s3box.core.deck import DEFAULT_AWS_REGION, Connection, ConnectionID, Provider
from s3box.shared.errors import NotFoundError, S3BoxError, TechnicalError
from s3box.shared.models import DEFAULT_TIMEOUT_IN_SECONDS

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "NotFound", "404"}
INVALID_STATE_CODES = {"InvalidObjectState"}

ClientFactory = Callable[[Connection], Any]


def client_error_code(exc: BaseException) -> Optional[str]:
    """Return the S3 error code carried by a ClientError, if any."""
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


def is_not_found(exc: BaseException) -> bool:
    return client_error_code(exc) in NOT_FOUND_CODES


def map_s3_error(exc: BaseException, key: str, bucket: str) -> S3BoxError:
    """
    Translate an SDK error into the matching domain error.

    The caller raises the result ``from exc`` so the cause stays attached.
    """
    if isinstance(exc, S3BoxError):
        return exc
    code = client_error_code(exc)
    if code in NOT_FOUND_CODES:
        if code == "NoSuchBucket":
            return NotFoundError(f"bucket {bucket} not found")
        return NotFoundError(f"object {key} not found in bucket {bucket}")
    if code in INVALID_STATE_CODES:
        return TechnicalError(f"object {key} is in an invalid state in bucket {bucket}")
    if isinstance(exc, (ClientError, BotoCoreError)):
        return TechnicalError(f"S3 request failed for {key} in bucket {bucket}: {exc}")
    return TechnicalError(f"unexpected error for {key} in bucket {bucket}: {exc}")


def boto3_client_factory(timeout_in_seconds: Callable[[], float] = lambda: DEFAULT_TIMEOUT_IN_SECONDS) -> ClientFactory:
    """
    Return a factory building an S3 client for a connection.

    Args:
        timeout_in_seconds: Callable returning the current per-call timeout
    """

    def factory(connection: Connection):
        timeout = timeout_in_seconds()
        config = Config(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 3, "mode": "standard"},
            s3={"addressing_style": "path"} if connection.provider == Provider.S3_LIKE else None,
        )
        session = boto3.session.Session(
            aws_access_key_id=connection.access_key,
            aws_secret_access_key=connection.secret_key,
        )
        if connection.provider == Provider.S3_LIKE:
            scheme = "https" if connection.use_tls else "http"
            server = connection.server
            if "://" not in server:
                server = f"{scheme}://{server}"
            return session.client(
                "s3",
                region_name=DEFAULT_AWS_REGION,
                endpoint_url=server,
                use_ssl=connection.use_tls,
                config=config,
            )
        return session.client(
            "s3",
            region_name=connection.region or DEFAULT_AWS_REGION,
            config=config,
        )

    return factory


@dataclass
class S3Session:
    client: Any
    connection: Connection


class SessionCache:
    """Per-connection cache of SDK clients, rebuilt when the revision changes."""

    def __init__(self, client_factory: Optional[ClientFactory] = None):
        self._factory = client_factory or boto3_client_factory()
        self._sessions: dict[ConnectionID, S3Session] = {}
        self._lock = Lock()

    def get(self, connection: Connection) -> S3Session:
        with self._lock:
            cached = self._sessions.get(connection.id)
            if cached is not None and cached.connection.is_same(connection):
                return cached
            logger.info(f"Creating S3 client for connection {connection.name!r} (rev {connection.revision})")
            try:
                client = self._factory(connection)
            except (ValueError, BotoCoreError) as exc:
                raise TechnicalError(
                    f"cannot build S3 client for connection {connection.name!r}: {exc}"
                ) from exc
            session = S3Session(client, connection.copy())
            self._sessions[connection.id] = session
            return session

    def invalidate(self, connection_id: ConnectionID):
        with self._lock:
            self._sessions.pop(connection_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
