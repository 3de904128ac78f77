"""
Error reporting collaborator.

Failures caught at the command and route layers are reported here with a
category and a severity tag. The reporter is injected (see `get_error_reporter`)
so tests can swap in a capturing implementation.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
import logging
import traceback

from fastapi import Request

from teaminova.config import get_settings
from teaminova.logging_config import get_logger


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    AUTH = "auth"
    DATABASE = "database"
    API = "api"
    UI = "ui"
    NETWORK = "network"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass
class ErrorLog:
    """A single reported error."""
    timestamp: datetime
    severity: ErrorSeverity
    category: ErrorCategory
    message: str
    stack: Optional[str] = None
    user_id: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)
    resolved: bool = False


class ErrorReporter:
    """
    Writes error reports to the `teaminova.errors` logger and keeps the most
    recent ones in a bounded buffer for the admin error log.
    """

    def __init__(self, buffer_size: int = 200, logger: Optional[logging.Logger] = None):
        self._entries: deque[ErrorLog] = deque(maxlen=buffer_size)
        self._logger = logger or get_logger("errors")

    def log_error(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        exc: Optional[BaseException] = None,
        context: Optional[dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> ErrorLog:
        stack = None
        if exc is not None:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

        entry = ErrorLog(
            timestamp=datetime.now(timezone.utc),
            severity=severity,
            category=category,
            message=message,
            stack=stack,
            user_id=user_id,
            context=dict(context or {}),
        )
        self._entries.append(entry)

        detail = f"{message}: {exc}" if exc is not None else message
        self._logger.log(
            _LEVELS[severity],
            f"[{category.value}] {detail}",
            extra={"category": category.value, "severity": severity.value},
        )
        return entry

    # Helpers mirroring the categories the command layer reports under

    def log_auth_error(self, message: str, **kwargs) -> ErrorLog:
        return self.log_error(message, ErrorCategory.AUTH, ErrorSeverity.MEDIUM, **kwargs)

    def log_database_error(self, message: str, exc: Optional[BaseException] = None, **kwargs) -> ErrorLog:
        return self.log_error(message, ErrorCategory.DATABASE, ErrorSeverity.HIGH, exc=exc, **kwargs)

    def log_api_error(self, message: str, exc: Optional[BaseException] = None, **kwargs) -> ErrorLog:
        return self.log_error(message, ErrorCategory.API, ErrorSeverity.MEDIUM, exc=exc, **kwargs)

    def log_validation_error(self, message: str, **kwargs) -> ErrorLog:
        return self.log_error(message, ErrorCategory.VALIDATION, ErrorSeverity.LOW, **kwargs)

    def log_ui_error(self, message: str, exc: Optional[BaseException] = None, **kwargs) -> ErrorLog:
        return self.log_error(message, ErrorCategory.UI, ErrorSeverity.MEDIUM, exc=exc, **kwargs)

    def log_network_error(self, message: str, **kwargs) -> ErrorLog:
        return self.log_error(message, ErrorCategory.NETWORK, ErrorSeverity.MEDIUM, **kwargs)

    # Admin error log

    def recent(self) -> list[ErrorLog]:
        """Buffered entries, newest first."""
        return list(reversed(self._entries))

    def resolve(self, index: int) -> ErrorLog:
        """Mark the entry at `index` (newest-first position) resolved."""
        entries = self.recent()
        entry = entries[index]
        entry.resolved = True
        return entry

    def clear(self) -> None:
        self._entries.clear()


def build_error_reporter() -> ErrorReporter:
    return ErrorReporter(buffer_size=get_settings().error_log_buffer_size)


def get_error_reporter(request: Request) -> ErrorReporter:
    """FastAPI dependency returning the reporter attached to the app."""
    return request.app.state.error_reporter
