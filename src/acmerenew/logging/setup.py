"""Structured logging configuration for ACMERENEW.

Provides JSON and text formatters, a context filter that injects the
certificate currently being converged into every log record, and a
one-call ``configure_logging`` function driven by config settings.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from acmerenew.config.settings import LoggingSettings

# Common name of the certificate being processed by the current task.
certificate_context: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "certificate_context",
    default=None,
)

# Attributes that are part of the standard LogRecord; everything
# else is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        # Handled explicitly
        "certificate",
    }
)


@contextlib.contextmanager
def bind_certificate(common_name: str) -> Iterator[None]:
    """Attach *common_name* to every record logged inside the block."""
    token = certificate_context.set(common_name)
    try:
        yield
    finally:
        certificate_context.reset(token)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for log shipping.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        certificate = getattr(record, "certificate", None)
        if certificate is not None:
            data["certificate"] = certificate

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(certificate)s] %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class CertificateContextFilter(logging.Filter):
    """Inject the bound certificate common name into every record.

    Falls back to ``"-"`` outside :func:`bind_certificate` so the text
    formatter always has the attribute.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "certificate"):
            record.certificate = certificate_context.get() or "-"  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``acmerenew`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output and
    adds a rotating file handler when ``settings.file`` is set.

    Returns the root ``acmerenew`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("acmerenew")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    ctx_filter = CertificateContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ctx_filter)
    root.addHandler(console)

    if settings.file:
        try:
            fh = RotatingFileHandler(
                settings.file,
                maxBytes=settings.max_file_size_bytes,
                backupCount=settings.backup_count,
            )
        except OSError as exc:
            root.warning("Could not open log file %s: %s", settings.file, exc)
        else:
            # File logs are always structured JSON
            fh.setFormatter(StructuredFormatter())
            fh.addFilter(ctx_filter)
            root.addHandler(fh)

    return root
