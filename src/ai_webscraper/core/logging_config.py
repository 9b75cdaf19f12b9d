"""structlog setup shared by the library and the ``ai-webscraper`` CLI.

Fetchers, the pipeline and the extractors log through the stdlib API with a
short component prefix::

    logger = logging.getLogger(__name__)
    logger.warning("scraper: HTTP %d for %s", status, url)

The batch runner logs structured events instead::

    logger = structlog.get_logger(__name__)
    logger.info("batch_started", total=12, concurrency=3)

Both paths end in the same renderer once :func:`configure_logging` has run.
Records written while a batch is active carry its ``batch_id``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

batch_id_var: ContextVar[str | None] = ContextVar("batch_id", default=None)
"""ID of the batch the current task belongs to, or ``None`` outside a batch."""

REDACTED = "[REDACTED]"

#: Key fragments marking a value as a credential. Provider keys travel in
#: ``Authorization`` (OpenAI) and ``x-goog-api-key`` (Gemini) headers.
_SECRET_FRAGMENTS: tuple[str, ...] = (
    "api_key",
    "apikey",
    "api-key",
    "authorization",
    "bearer",
    "credential",
    "password",
    "secret",
    "token",
)

#: Third-party loggers held at WARNING unless running at DEBUG.
_QUIET_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "asyncio", "playwright")


def _is_secret(key: object) -> bool:
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in _SECRET_FRAGMENTS)


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Mask credential values at the top level and inside mapping values.

    Nested mappings such as ``headers=`` are copied before masking so the
    caller's object is left untouched.
    """
    for key, value in list(event_dict.items()):
        if _is_secret(key):
            event_dict[key] = REDACTED
        elif isinstance(value, Mapping):
            event_dict[key] = {
                inner: REDACTED if _is_secret(inner) else inner_value
                for inner, inner_value in value.items()
            }
    return event_dict


def _add_batch_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    # Covers tasks that set batch_id_var without binding structlog contextvars.
    batch_id = batch_id_var.get()
    if batch_id is not None:
        event_dict.setdefault("batch_id", batch_id)
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        _add_batch_id,
        _redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _stderr_handler(renderer: Processor, pre_chain: list[Processor]) -> logging.Handler:
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    # stdout is reserved for CLI results.
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    return handler


def configure_logging(log_level: str = "INFO") -> None:
    """Install one stderr handler on the root logger and configure structlog.

    ``DEBUG`` selects the coloured console renderer; any other level renders
    one JSON object per line with ``event``, ``level``, ``logger`` and
    ``timestamp`` keys, plus ``batch_id`` inside a batch. Unknown level names
    fall back to ``INFO``. Repeated calls replace the previous handler.

    Args:
        log_level: Level name, case-insensitive.
    """
    level_name = log_level.upper()
    level: Any = getattr(logging, level_name, logging.INFO)
    debug = level_name == "DEBUG"

    pre_chain = _shared_processors()
    renderer: Processor = (
        structlog.dev.ConsoleRenderer(colors=True)
        if debug
        else structlog.processors.JSONRenderer()
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_stderr_handler(renderer, pre_chain))
    root.setLevel(level)

    quiet_level = logging.DEBUG if debug else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
