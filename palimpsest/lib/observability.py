"""Observability facade wrapping Pydantic Logfire.

Ledger operations are traced as spans carrying the content item and actor.
Everything no-ops when logfire is not installed or not enabled, in which case
the stdlib loggers remain the only sink.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from palimpsest.config import Settings
    from palimpsest.lib.errors import LedgerError

_logfire = None
_configured = False


def is_available() -> bool:
    return _logfire is not None and _configured


def configure(settings: Settings) -> None:
    """Initialize logfire from LogfireConfig settings.

    No-ops if logfire is not installed or not enabled.
    """
    global _logfire, _configured

    if not settings.logfire.enabled:
        return

    try:
        import logfire as lf
    except ImportError:
        return

    kwargs: dict[str, Any] = {
        "service_name": settings.logfire.service_name,
        "send_to_logfire": "if-token-present",
    }
    if settings.logfire.environment:
        kwargs["environment"] = settings.logfire.environment
    if settings.logfire.console:
        kwargs["console"] = lf.ConsoleOptions()

    lf.configure(**kwargs)
    _logfire = lf
    _configured = True


def instrument_app(app):
    """Wrap an ASGI app with logfire instrumentation. Returns the app unchanged if unavailable."""
    if not is_available():
        return app
    return _logfire.instrument_asgi(app)


def instrument_sqlalchemy(engine) -> None:
    if is_available():
        _logfire.instrument_sqlalchemy(engine=engine)


def instrument_httpx() -> None:
    if is_available():
        _logfire.instrument_httpx()


@contextmanager
def span(name: str, **attrs: Any):
    """Context manager that yields a logfire span, or None if unavailable."""
    if is_available():
        with _logfire.span(name, **attrs) as s:
            yield s
    else:
        yield None


def exception(msg: str, **kwargs: Any) -> bool:
    """Log an exception with traceback via logfire. Returns True if logged, False if unavailable."""
    if is_available():
        _logfire.exception(msg, **kwargs)
        return True
    return False


def report_ledger_error(logger: logging.Logger, exc: LedgerError) -> None:
    """Send a ledger error to logfire when configured, else to ``logger``.

    Retryable errors are warnings, everything else is informational since
    conflicts and missing records are expected outcomes for callers.
    """
    ctx = exc.context()
    if is_available():
        if exc.retryable:
            _logfire.warn("Ledger {operation} failed: {message}", message=exc.message, **ctx)
        else:
            _logfire.info("Ledger {operation} refused: {message}", message=exc.message, **ctx)
        return

    level = logging.WARNING if exc.retryable else logging.INFO
    logger.log(
        level,
        "Ledger %s failed: %s [content_item_id=%s actor_id=%s error=%s]",
        exc.operation,
        exc.message,
        ctx["content_item_id"],
        exc.actor_id,
        ctx["error"],
    )
