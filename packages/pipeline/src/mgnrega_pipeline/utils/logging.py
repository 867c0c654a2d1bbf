"""
utils/logging.py — structlog configuration for the sync engine.

Log lines go to stderr so stdout stays free for command output (the JSON
printed by `mgnrega-pipeline sync`). Output is JSON or console-rendered
according to settings.log_format. configure_logging() is called once by the
CLI; library callers may skip it and get structlog's defaults.

Every sync invocation runs under a run context: a short `run_id` and the
sync `mode` are bound to contextvars, so lines emitted by the API client
and the store during that invocation can be grouped together.

Secrets never reach the renderer: values under keys such as `api_key` or
`api-key` are masked, including one level down (e.g. request params).

Usage:
    from mgnrega_pipeline.utils.logging import configure_logging, get_logger, sync_run_context

    configure_logging(log_level="DEBUG")
    log = get_logger(__name__, pipeline="sync")

    @sync_run_context("historical")
    async def backfill(...):
        log.info("backfill_period_synced", period="4/2024", records_synced=22)
        # -> {..., "run_id": "3f9c2a1b", "mode": "historical", "pipeline": "sync"}
"""

from __future__ import annotations

import functools
import logging
import sys
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from mgnrega_shared.config import settings

T = TypeVar("T")

SECRET_KEYS = frozenset({"api_key", "api-key", "supabase_service_key", "service_key"})
MASK = "***"


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: (MASK if k in SECRET_KEYS else v) for k, v in value.items()}
    return value


def redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor masking credentials before rendering."""
    return {
        key: (MASK if key in SECRET_KEYS else _mask(value))
        for key, value in event_dict.items()
    }


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """
    Configure structlog for a CLI or worker process.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", …).
        log_format: Override settings.log_format ("json" | "console").
    """
    level = log_level or settings.log_level
    fmt = log_format or settings.log_format
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            redact_secrets,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """Module logger with `initial_values` bound to every line."""
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger  # type: ignore[return-value]


def new_run_id() -> str:
    return uuid.uuid4().hex[:8]


def sync_run_context(
    mode: str,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorate a sync coroutine so its log lines carry `run_id` and `mode`.

    The context is unbound when the coroutine returns or raises. A call
    nested inside an existing run keeps the outer run_id.
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            run_id = structlog.contextvars.get_contextvars().get("run_id") or new_run_id()
            with structlog.contextvars.bound_contextvars(run_id=run_id, mode=mode):
                return await fn(*args, **kwargs)

        return wrapper

    return decorator
