"""Structured logging for s3box."""
import logging
import re
import sys
from pathlib import Path
from typing import Optional

from s3box.shared.errors import ErrorCode


class SanitizingFormatter(logging.Formatter):
    """
    Formatter that sanitizes credentials from log messages.

    Connection secrets travel through the deck repository as camelCase JSON
    and through boto3 as snake_case keyword arguments; both forms are masked.
    """

    SENSITIVE_KEYS = [
        'secretKey',
        'secret_key',
        'aws_secret_access_key',
        'accessKey',
        'access_key',
        'aws_access_key_id',
        'password',
        'token',
    ]

    _PATTERN = re.compile(
        r"""(?P<key>["']?(?:%s)["']?\s*[:=]\s*)(?P<quote>["']?)(?P<value>[^"',\s|}]+)"""
        % "|".join(re.escape(k) for k in SENSITIVE_KEYS),
        re.IGNORECASE,
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format and sanitize log record."""
        formatted = super().format(record)
        return self._PATTERN.sub(r"\g<key>\g<quote>***", formatted)


SDK_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def setup_logger(
    name: str = "s3box",
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    sdk_level: int = logging.WARNING
) -> logging.Logger:
    """
    Set up application logger with sanitization.

    Args:
        name: Logger name
        level: Logging level
        log_file: Optional file path for file handler
        sdk_level: Level applied to the boto3, botocore and s3transfer loggers

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(SanitizingFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(SanitizingFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    for sdk in SDK_LOGGERS:
        logging.getLogger(sdk).setLevel(sdk_level)

    return logger


def log_event(
    logger: logging.Logger,
    event_type: str,
    status: str,
    connection_id: Optional[object] = None,
    bucket: Optional[str] = None,
    path: Optional[str] = None,
    error_code: Optional[ErrorCode] = None,
    message: Optional[str] = None
):
    """
    Log a structured bus outcome.

    Args:
        logger: Logger instance
        event_type: Event type string (deck.select, event.file.load, ...)
        status: "request", "success" or "failure"
        connection_id: Connection the event relates to (optional)
        bucket: Bucket name (optional)
        path: Directory path or object key (optional)
        error_code: Error code if failed (optional)
        message: Additional message (optional)
    """
    parts = [
        f"event={event_type}",
        f"status={status}",
    ]

    if connection_id is not None:
        parts.append(f"connection={str(connection_id)[:8]}")
    if bucket:
        parts.append(f"bucket={bucket}")
    if path:
        parts.append(f"path={path}")
    if error_code:
        parts.append(f"error={error_code.name}")
    if message:
        parts.append(f"msg={message}")

    log_msg = " | ".join(parts)

    if status == "failure" or error_code:
        logger.error(log_msg)
    elif status == "success":
        logger.info(log_msg)
    else:
        logger.debug(log_msg)
