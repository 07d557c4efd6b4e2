"""Logging configuration and service."""
import json
import logging
import logging.config
from typing import Any, Dict, Optional

from .settings import Settings

REDACTED = "***"

# Attributes every LogRecord carries, anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class BaseFormatter(logging.Formatter):
    """Collects the record payload shared by every output format.

    Values stored under credential-like keys are replaced with ``***``
    before any formatter sees them, at any nesting depth.
    """

    SENSITIVE_KEYS = frozenset(
        {
            "authorization",
            "api_key",
            "apikey",
            "token",
            "credentials",
            "straico_api_key",
            "proxy_api_keys",
            "password",
        }
    )

    def __init__(self, settings_instance: Settings) -> None:
        super().__init__()
        self.settings = settings_instance

    @classmethod
    def redact(cls, value: Any) -> Any:
        """Return a copy of ``value`` with sensitive entries masked."""
        if isinstance(value, dict):
            return {
                key: REDACTED if str(key).lower() in cls.SENSITIVE_KEYS else cls.redact(item)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [cls.redact(item) for item in value]
        return value

    def get_extra_fields(self, record: logging.LogRecord) -> Dict[str, Any]:
        """Fields passed through ``extra=`` plus configured LOG_EXTRA_FIELDS."""
        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
        }
        for name in self.settings.LOG_EXTRA_FIELDS:
            if hasattr(record, name):
                extra[name] = getattr(record, name)
        return self.redact(extra)

    def payload(self, record: logging.LogRecord) -> Dict[str, Any]:
        """Ordered fields of one log line, exception text last."""
        fields: Dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        fields.update(self.get_extra_fields(record))
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)
        return fields


class JsonFormatter(BaseFormatter):
    """One JSON object per line."""

    @staticmethod
    def _serializable(value: Any) -> Any:
        try:
            json.dumps(value)
        except (TypeError, ValueError, OverflowError):
            return f"<non-serializable: {type(value).__name__}>"
        return value

    def format(self, record: logging.LogRecord) -> str:
        fields = {
            key: self._serializable(value) for key, value in self.payload(record).items()
        }
        return json.dumps(fields, ensure_ascii=False)


class TextFormatter(BaseFormatter):
    """Human-readable lines for local runs."""

    def format(self, record: logging.LogRecord) -> str:
        fields = self.payload(record)
        exception = fields.pop("exception", None)
        head = " - ".join(
            str(fields.pop(key)) for key in ("time", "level", "name", "message")
        )
        line = f"{head} - extra={fields}" if fields else head
        return f"{line}\n{exception}" if exception else line


class StructuredFormatter(BaseFormatter):
    """``key=value`` pairs separated by spaces."""

    def format(self, record: logging.LogRecord) -> str:
        return " ".join(f"{key}={value}" for key, value in self.payload(record).items())


FORMATTERS = {
    "json": JsonFormatter,
    "text": TextFormatter,
    "structured": StructuredFormatter,
}


class LoggerService:
    """Builds configured loggers for the application modules."""

    def __init__(
        self,
        settings_instance: Settings,
        config: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize logging configuration.

        Args:
            settings_instance: Settings instance to use
            config: Optional ``logging.config.dictConfig`` dictionary

        Raises:
            ValueError: If LOG_FORMAT names no known formatter
        """
        if settings_instance.LOG_FORMAT not in FORMATTERS:
            raise ValueError(
                f"Unknown LOG_FORMAT {settings_instance.LOG_FORMAT!r}, "
                f"expected one of {sorted(FORMATTERS)}"
            )
        self.settings = settings_instance
        self.formatters: Dict[str, BaseFormatter] = {
            name: formatter_class(settings_instance)
            for name, formatter_class in FORMATTERS.items()
        }

        if config:
            logging.config.dictConfig(config)
        else:
            logging.getLogger().setLevel(settings_instance.LOG_LEVEL.upper())

    def get_logger(self, name: str, format: Optional[str] = None) -> logging.Logger:
        """Get logger instance.

        Args:
            name: Logger name, typically __name__
            format: Optional format override (json, text, structured)

        Returns:
            Logger with a single stream handler
        """
        logger = logging.getLogger(name)
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(self.formatters[format or self.settings.LOG_FORMAT])
            logger.addHandler(handler)
        return logger
