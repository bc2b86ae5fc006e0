"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module. Services and the relay pool
log event-style messages with keyword context::

    publish_partial_failure event_id=5c83... relays_ok=4 relays_failed=2

Plain ``logging.getLogger(__name__)`` calls in the models, nips and utils
layers go through the same [StructuredFormatter][dvmkit.core.logger.StructuredFormatter]
once it is installed on the root handler (see
[configure_logging()][dvmkit.core.logger.configure_logging]).

Private keys and shared secrets are never passed to a logger.

Examples:
    ```python
    from dvmkit.core.logger import Logger

    logger = Logger("relay_pool")
    logger.info("query_completed", relays_ok=3, events=42)
    # Output: info relay_pool query_completed relays_ok=3 events=42

    json_logger = Logger("job_protocol", json_output=True)
    json_logger.info("job_published", request_id="5c83...")
    # Output: {"timestamp": "...", "level": "info", ...}
    ```
"""

import datetime
import json
import logging
from typing import Any, ClassVar


_TRUNCATED = "...<truncated {} chars>"


def _truncate(value: str, max_length: int | None) -> str:
    if max_length and len(value) > max_length:
        return value[:max_length] + _TRUNCATED.format(len(value) - max_length)
    return value


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values longer than ``max_value_length`` are truncated. Values that are
    empty or contain whitespace, ``=`` or quotes are escaped and wrapped in
    double quotes so the line stays machine-splittable.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value; ``None`` disables
            truncation.
        prefix: String prepended to a non-empty result.

    Returns:
        e.g. ``' relay=wss://a.example error="timed out"'``, or ``""`` when
        *kwargs* is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for key, value in kwargs.items():
        s = _truncate(str(value), max_value_length)
        if not s or any(c in s for c in " \t\n=\"'"):
            escaped = s.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={s}")
    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Render every record as ``level logger message key=value...``.

    Reads the ``structured_kv`` extra attached by
    [Logger][dvmkit.core.logger.Logger]; records from plain stdlib loggers
    are emitted with the same prefix and no pairs.
    """

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that appends keyword arguments as extra fields.

    Mirrors the standard logging API with an added ``**kwargs`` parameter
    rendered as key=value pairs or, with ``json_output=True``, as a single
    JSON object per line.
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length

    @property
    def name(self) -> str:
        return self._logger.name

    def is_enabled_for(self, level: int) -> bool:
        """Whether a record at *level* would be emitted."""
        return self._logger.isEnabledFor(level)

    def _format_json(self, msg: str, level: str, kwargs: dict[str, Any]) -> str:
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "logger": self._logger.name,
            "message": msg,
            **{k: _truncate(str(v), self._max_value_length) for k, v in kwargs.items()},
        }
        return json.dumps(record, default=str)

    def _make_extra(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        if not kwargs:
            return {}
        # Pre-truncate so the formatter receives clean data
        truncated: dict[str, Any] = {}
        for k, v in kwargs.items():
            s = str(v)
            if self._max_value_length and len(s) > self._max_value_length:
                truncated[k] = _truncate(s, self._max_value_length)
            else:
                truncated[k] = v
        return {"structured_kv": truncated}

    def _log(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if self._json_output:
            name = "error" if exc_info else logging.getLevelName(level).lower()
            self._logger.log(level, self._format_json(msg, name, kwargs), exc_info=exc_info)
        else:
            self._logger.log(level, msg, extra=self._make_extra(kwargs), exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log a DEBUG level message with optional key=value pairs."""
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an INFO level message with optional key=value pairs."""
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log a WARNING level message with optional key=value pairs."""
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with optional key=value pairs."""
        self._log(logging.ERROR, msg, kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        """Log a CRITICAL level message with optional key=value pairs."""
        self._log(logging.CRITICAL, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with the active exception traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)


def configure_logging(level: int | str = logging.INFO) -> None:
    """Install [StructuredFormatter][dvmkit.core.logger.StructuredFormatter] on the root logger.

    Intended for applications embedding dvmkit; the library itself never
    configures handlers on import.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
