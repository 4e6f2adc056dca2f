"""Litestar application factory for the revision ledger."""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from advanced_alchemy.config import EngineConfig
from advanced_alchemy.extensions.litestar import (
    AsyncSessionConfig,
    SQLAlchemyAsyncConfig,
    SQLAlchemyPlugin,
)
from litestar import Litestar
from litestar.exceptions import HTTPException
from litestar.middleware.session.client_side import CookieBackendConfig
from litestar.types import ASGIApp

from palimpsest.config import Settings, get_settings
from palimpsest.controllers.admin import AdminController
from palimpsest.controllers.content import ContentController
from palimpsest.db.base import Base
from palimpsest.lib import observability
from palimpsest.lib.errors import LedgerError
from palimpsest.lib.exceptions import (
    http_exception_handler,
    internal_server_error_handler,
    ledger_error_handler,
)
from palimpsest.lib.validator import ContentValidator, HttpContentValidator

logger = logging.getLogger(__name__)

EXCEPTION_HANDLERS: dict[type[Exception], Any] = {
    LedgerError: ledger_error_handler,
    HTTPException: http_exception_handler,
    Exception: internal_server_error_handler,
}


def create_session_config(
    secret_key: str,
    max_age: int = 86400,
    secure: bool = False,
    cookie_name: str = "session",
) -> CookieBackendConfig:
    """Create the cookie session config shared with the identity layer."""
    session_secret = hashlib.sha256(secret_key.encode()).digest()
    return CookieBackendConfig(
        secret=session_secret,
        key=cookie_name,
        max_age=max_age,
        httponly=True,
        secure=secure,
        samesite="lax",
    )


def create_db_config(settings: Settings) -> SQLAlchemyAsyncConfig:
    if "sqlite" in settings.db.url:
        engine_config = EngineConfig(echo=settings.db.echo)
    else:
        engine_config = EngineConfig(
            pool_size=settings.db.pool_size,
            max_overflow=settings.db.pool_overflow,
            pool_timeout=settings.db.pool_timeout,
            pool_pre_ping=True,
            echo=settings.db.echo,
        )

    return SQLAlchemyAsyncConfig(
        connection_string=settings.db.url,
        metadata=Base.metadata,
        create_all=False,
        session_config=AsyncSessionConfig(expire_on_commit=False),
        engine_config=engine_config,
    )


def create_app(settings: Settings | None = None, validator: ContentValidator | None = None) -> ASGIApp:
    """Create and configure the Litestar application.

    Args:
        settings: Application settings; loaded from .env and app.yaml if omitted
        validator: Content validator; an HTTP client built from settings if omitted
    """
    settings = settings or get_settings()

    observability.configure(settings)
    observability.instrument_httpx()

    db_config = create_db_config(settings)
    session_config = create_session_config(settings.secret_key, secure=not settings.debug)

    async def on_startup(app: Litestar) -> None:
        observability.instrument_sqlalchemy(db_config.get_engine())
        logger.info(
            "Revision ledger ready (drift policy: %s, stale retries: %d)",
            settings.ledger.rollback_drift.value,
            settings.ledger.stale_retries,
        )

    app = Litestar(
        route_handlers=[ContentController, AdminController],
        plugins=[SQLAlchemyPlugin(config=db_config)],
        middleware=[session_config.middleware],
        on_startup=[on_startup],
        exception_handlers=EXCEPTION_HANDLERS,
        debug=settings.debug,
    )
    app.state.validator = validator or HttpContentValidator.from_settings(settings)
    app.state.ledger = settings.ledger

    return observability.instrument_app(app)
