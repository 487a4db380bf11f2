import logging
import json
import contextvars
from contextlib import contextmanager
from typing import Optional

_cluster_ctx = contextvars.ContextVar("cluster", default=None)


class ClusterContextFilter(logging.Filter):
    """Injects the current cluster name from contextvar into the log record."""
    def filter(self, record):
        if getattr(record, "cluster", None) is None:
            record.cluster = _cluster_ctx.get()
        return True


@contextmanager
def cluster_context(cluster_name: str):
    """Context manager to tag every log record in the current context with a cluster.

    asyncio tasks copy the context when created, so tasks spawned inside the
    block inherit the cluster name.
    """
    token = _cluster_ctx.set(cluster_name)
    try:
        yield
    finally:
        _cluster_ctx.reset(token)


def current_cluster() -> Optional[str]:
    return _cluster_ctx.get()


class JsonFormatter(logging.Formatter):
    """Formatter that outputs JSON strings after parsing the LogRecord."""

    def format(self, record: logging.LogRecord) -> str:
        """Formats the log record as a JSON string.

        Args:
           record (logging.LogRecord): The log record to format.

        Returns:
            str: The JSON-formatted log string.
        """
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        if getattr(record, "cluster", None):
            log_record["cluster"] = record.cluster

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        # Standard LogRecord attributes to ignore
        standard_attrs = {
            "args", "asctime", "created", "exc_info", "exc_text", "filename",
            "funcName", "levelname", "levelno", "lineno", "module",
            "msecs", "message", "msg", "name", "pathname", "process",
            "processName", "relativeCreated", "stack_info", "thread", "threadName",
            "taskName", "cluster"
        }

        for key, value in record.__dict__.items():
            if key not in standard_attrs and not key.startswith("_"):
                log_record[key] = value

        return json.dumps(log_record, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False):
    """Configures the root logger.

    Args:
        level (str): The logging level (default: INFO).
        json_format (bool): Whether to use JSON formatting (default: False).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.addFilter(ClusterContextFilter())

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        formatter = logging.Formatter(
            "%(asctime)s - [%(cluster)s] - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)

    root_logger.addHandler(handler)

    # Silence noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Gets a named logger.

    Args:
        name (str): The name of the logger.

    Returns:
        logging.Logger: The logger instance.
    """
    return logging.getLogger(name)
