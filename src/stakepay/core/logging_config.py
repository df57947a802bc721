"""
Structured JSON logging for stakepay.

Every record is one JSON object. On top of the message and whatever the
caller passed in ``extra`` (``event``, addresses, costs), each object
carries the service name, network, chain id, lowercase level and the
source location that emitted it.

Example:
    from stakepay.core.logging_config import setup_logging

    log = setup_logging("stakepay.paymaster", log_file="/var/log/stakepay/paymaster.json")
    log.info("Settled", extra={"event": "paymaster.settled", "token_cost": 10})
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pythonjsonlogger import jsonlogger

from stakepay.core import config

DEFAULT_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"
MAX_LOG_BYTES = 50 * 1024 * 1024
LOG_BACKUPS = 5


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping records with service and network context."""

    def __init__(
        self,
        fmt: str = DEFAULT_FORMAT,
        timestamp: bool = True,
        environment: Optional[str] = None,
        service_name: str = "stakepay",
        chain_id: Optional[int] = None,
    ):
        super().__init__(fmt=fmt)
        self.timestamp = timestamp
        self.service_name = service_name
        self.environment = environment or config.NETWORK
        self.chain_id = config.CHAIN_ID if chain_id is None else chain_id

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if self.timestamp and not log_record.get("timestamp"):
            created = datetime.fromtimestamp(record.created, tz=timezone.utc)
            log_record["timestamp"] = created.isoformat()
        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record.update(
            service=self.service_name,
            environment=self.environment,
            chain_id=self.chain_id,
            source={
                "function": record.funcName,
                "module": record.module,
                "line": record.lineno,
            },
        )


def _file_handler(log_file: str, max_bytes: int, backup_count: int) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
    )


def setup_logging(
    name: str = "stakepay",
    log_file: Optional[str] = None,
    level: Optional[str] = None,
    environment: Optional[str] = None,
    enable_console: bool = True,
    enable_file: bool = True,
    max_bytes: int = MAX_LOG_BYTES,
    backup_count: int = LOG_BACKUPS,
) -> logging.Logger:
    """
    Attach JSON handlers to the ``name`` logger, replacing any it had.

    Args:
        name: Logger name; its first dotted part becomes the service name
        log_file: JSON log path, defaults to ``STAKEPAY_LOG_FILE``
        level: Level name, defaults to ``STAKEPAY_LOG_LEVEL``
        environment: Network label, defaults to ``STAKEPAY_NETWORK``
        enable_console: Log to stdout
        enable_file: Log to ``log_file`` when one is configured
        max_bytes: Rotate the file past this size
        backup_count: Rotated files to keep

    Returns:
        The configured logger
    """
    numeric_level = getattr(logging, (level or config.LOG_LEVEL).upper())
    log_file = log_file or config.LOG_FILE or None

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    logger.handlers = []

    formatter = CustomJsonFormatter(environment=environment, service_name=name.split(".")[0])
    handlers: List[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stdout))

    file_error = None
    if enable_file and log_file:
        try:
            handlers.append(_file_handler(log_file, max_bytes, backup_count))
        except OSError as e:
            file_error = e

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if file_error is not None:
        logger.warning(
            "Could not open log file, continuing without it",
            extra={"event": "logging.file_handler_failed", "log_file": log_file, "error": str(file_error)},
        )
    return logger


def get_logger(name: str, log_file: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """Return ``name``'s logger, running ``setup_logging`` only on first use."""
    logger = logging.getLogger(name)
    return logger if logger.handlers else setup_logging(name=name, log_file=log_file, level=level)
