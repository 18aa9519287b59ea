#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import logging
import logging.handlers
import os
import re
import sys
import time
from logging import LogRecord
from typing import Any, MutableMapping, Optional, Tuple

LOGGER_NAME_RE = re.compile(r"task_metrics_publisher(?:\..+)?")
# keyword arguments understood by Logger._log itself, everything else goes to "extra"
_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})


def get_logger_adapter(logger_name: str) -> logging.LoggerAdapter:
    # Validate the name starts with the root logger name, so logging parent logger propagation will work.
    assert LOGGER_NAME_RE.match(logger_name) is not None, "logger name must start with 'task_metrics_publisher'"
    return PublisherExtraAdapter(logging.getLogger(logger_name), {})


class PublisherExtraAdapter(logging.LoggerAdapter):
    """
    Allows passing structured fields as keyword arguments, e.g. logger.debug("Sent", namespace=ns, count=3).
    The fields are stored on the record under "extra".
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _LOGGING_KWARGS}
        extra = dict(kwargs.pop("extra", None) or {})
        extra["extra"] = {**(self.extra or {}), **fields}
        kwargs["extra"] = extra
        return msg, kwargs


class _ExtraFormatter(logging.Formatter):
    def format(self, record: LogRecord) -> str:
        formatted = super().format(record)

        formatted_extra = ", ".join(f"{k}={v}" for k, v in record.__dict__.get("extra", {}).items())
        if formatted_extra:
            formatted = f"{formatted} ({formatted_extra})"

        return formatted


class _UTCFormatter(logging.Formatter):
    # Patch formatTime to be GMT (UTC) for all formatters,
    # see https://docs.python.org/3/library/logging.html?highlight=formattime#logging.Formatter.formatTime
    converter = time.gmtime


class PublisherFormatter(_ExtraFormatter, _UTCFormatter):
    pass


def initial_root_logger_setup(
    stream_level: int,
    log_file_path: Optional[str] = None,
    rotate_max_bytes: int = 10 * 1024 * 1024,
    rotate_backup_count: int = 1,
) -> logging.LoggerAdapter:
    logger_adapter = get_logger_adapter("task_metrics_publisher")
    logger_adapter.setLevel(logging.DEBUG)

    stream_handler = logging.StreamHandler(stream=sys.stdout)
    stream_handler.setLevel(stream_level)
    if stream_level < logging.INFO:
        stream_handler.setFormatter(PublisherFormatter("[%(asctime)s] %(levelname)s: %(name)s: %(message)s"))
    else:
        stream_handler.setFormatter(PublisherFormatter("[%(asctime)s] %(message)s", "%H:%M:%S"))
    logger_adapter.logger.addHandler(stream_handler)

    if log_file_path is not None:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path,
            maxBytes=rotate_max_bytes,
            backupCount=rotate_backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(PublisherFormatter("[%(asctime)s] %(levelname)s: %(name)s: %(message)s"))
        logger_adapter.logger.addHandler(file_handler)

    return logger_adapter
