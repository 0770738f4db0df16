"""Utility functions for the PolyPact core.

Covers: Error Taxonomy, Stage Results, Logging, Text Utilities.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar('T')

logger = logging.getLogger("polypact")


# =============================================================================
# Error Taxonomy
# =============================================================================

class PolyPactError(Exception):
    """Base class for all PolyPact errors."""
    pass


class TransportError(PolyPactError):
    """Network/HTTP failure talking to a model or search endpoint."""
    pass


class ModelError(TransportError):
    """A model invocation failed (transport, API error body, or empty output)."""
    pass


class ParseError(PolyPactError):
    """Structured output was requested but could not be parsed."""
    pass


class AuthorizationError(PolyPactError):
    """Requester does not own the case they are acting on."""
    pass


class NotFoundError(PolyPactError):
    """A case or chat session does not exist."""
    pass


class AuthError(PolyPactError):
    """Bearer token missing, malformed, or invalid."""
    pass


# =============================================================================
# Stage Results
# =============================================================================

class FailureKind(Enum):
    """Why a stage could not produce its value."""
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    PARSE = "parse"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"


_KIND_TO_ERROR: dict[FailureKind, type[PolyPactError]] = {
    FailureKind.TRANSPORT: ModelError,
    FailureKind.TIMEOUT: TransportError,
    FailureKind.PARSE: ParseError,
    FailureKind.AUTHORIZATION: AuthorizationError,
    FailureKind.NOT_FOUND: NotFoundError,
}


@dataclass
class Result(Generic[T]):
    """Explicit success/failure value returned across stage boundaries.

    Callers branch on ``kind`` to pick a fallback instead of relying on
    exceptions unwinding through the pipeline.
    """
    value: Optional[T] = None
    kind: Optional[FailureKind] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: FailureKind, detail: str = "") -> "Result[T]":
        return cls(kind=kind, detail=detail)

    def to_error(self) -> PolyPactError:
        error_cls = _KIND_TO_ERROR.get(self.kind, PolyPactError)
        return error_cls(self.detail or (self.kind.value if self.kind else "unknown failure"))

    def unwrap(self) -> T:
        """Return the value or raise the matching taxonomy error."""
        if not self.ok:
            raise self.to_error()
        return self.value


# =============================================================================
# Logging
# =============================================================================

class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record):
        return json.dumps({
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        })


def setup_logging(level: str = "INFO", log_format: str = "text", log_file: Optional[str] = None):
    """Configure logging for the system."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    if log_format == "json":
        for handler in handlers:
            handler.setFormatter(JsonFormatter())
        logging.root.handlers = handlers
        logging.root.setLevel(log_level)
        return

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


# =============================================================================
# Text Utilities
# =============================================================================

_HTML_TAG = re.compile(r"<[^>]*>?")


def strip_html(text: str) -> str:
    """Replace HTML tags with spaces."""
    return _HTML_TAG.sub(" ", text or "")


def clip(text: Optional[str], limit: int) -> str:
    """Hard prefix cut, no suffix. None becomes empty string."""
    return (text or "")[:limit]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def parse_iso_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
