"""Request-scoped logging context and duration diagnostics."""

import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Iterator, MutableMapping

base_logger = logging.getLogger("image_trust_webhook")


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that appends bound fields to every message."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        if not self.extra:
            return msg, kwargs
        fields = " ".join(f"{key}={value}" for key, value in self.extra.items())
        return f"{msg} [{fields}]", kwargs

    def bind(self, **fields: Any) -> "ContextLogger":
        """Return a new adapter carrying the current fields plus the given ones."""
        return ContextLogger(self.logger, {**(self.extra or {}), **fields})


_context_logger: ContextVar[ContextLogger | None] = ContextVar("context_logger", default=None)


def logger_from_context() -> ContextLogger:
    """Return the logger bound to the current context, or an unbound one."""
    logger = _context_logger.get()
    if logger is None:
        return ContextLogger(base_logger, {})
    return logger


def logger_to_context(logger: ContextLogger) -> None:
    """Bind a logger to the current context.

    Tasks created afterwards with asyncio.create_task inherit it.
    """
    _context_logger.set(logger)


@contextmanager
def bound_logger(**fields: Any) -> Iterator[ContextLogger]:
    """Bind extra fields to the context logger for the duration of the block."""
    logger = logger_from_context().bind(**fields)
    token = _context_logger.set(logger)
    try:
        yield logger
    finally:
        _context_logger.reset(token)


def log_end_time(message: str, start_time: float) -> None:
    """Log elapsed wall-clock time since start_time."""
    elapsed = time.monotonic() - start_time
    logger_from_context().info(f"{message} (took {elapsed:.3f}s)")


def log_start_time(message: str) -> Callable[[], None]:
    """Log the start of an operation and return a closer that logs its end."""
    logger_from_context().debug(f"{message} started")
    start_time = time.monotonic()

    def close() -> None:
        log_end_time(f"{message} finished", start_time)

    return close


def configure_logging(level: str = "INFO", fmt: str | None = None) -> None:
    """Configure root logging once at process start."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt or "%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
