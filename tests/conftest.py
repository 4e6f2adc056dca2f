"""Shared pytest fixtures."""

import asyncio
from unittest.mock import MagicMock

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import palimpsest.db.models  # noqa: F401 - register all models on Base
from palimpsest.db.base import Base
from palimpsest.db.models import ContentItem
from palimpsest.lib.hooks import hooks
from palimpsest.lib.validator import ValidationRequest, ValidationResult

ORIGINAL_CONTENT = "Line one.\nLine two.\n"


# ---------------------------------------------------------------------------
# Database (a fresh SQLite file per test)
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def content_item(session_maker):
    async with session_maker() as session:
        item = ContentItem(title="Getting started", current_content=ORIGINAL_CONTENT)
        session.add(item)
        await session.commit()
        await session.refresh(item)
        return item


# ---------------------------------------------------------------------------
# Content validators
# ---------------------------------------------------------------------------

class AppendingValidator:
    """Accepts every suggestion by appending a marker line to the content."""

    def __init__(self, marker: str = "Line three.") -> None:
        self.marker = marker
        self.requests: list[ValidationRequest] = []

    async def validate(self, request: ValidationRequest) -> ValidationResult:
        self.requests.append(request)
        updated = request.current_content + self.marker + "\n"
        return ValidationResult(
            is_valid=True,
            updated_content=updated,
            diff=f"+{self.marker}\n",
            description=f"Added {self.marker}",
        )


class StaticValidator:
    """Returns the same verdict for every request."""

    def __init__(self, result: ValidationResult) -> None:
        self.result = result
        self.requests: list[ValidationRequest] = []

    async def validate(self, request: ValidationRequest) -> ValidationResult:
        self.requests.append(request)
        return self.result


class FailingValidator:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc
        self.calls = 0

    async def validate(self, request: ValidationRequest) -> ValidationResult:
        self.calls += 1
        raise self.exc


class BarrierValidator:
    """Holds the first ``parties`` requests until all of them have read the content.

    Every accepted suggestion appends ``+<requester_id>`` to whatever content
    it was validated against.
    """

    def __init__(self, parties: int = 2) -> None:
        self.barrier = asyncio.Barrier(parties)
        self.parties = parties
        self.requests: list[ValidationRequest] = []

    async def validate(self, request: ValidationRequest) -> ValidationResult:
        self.requests.append(request)
        if len(self.requests) <= self.parties:
            await asyncio.wait_for(self.barrier.wait(), timeout=5)
        updated = f"{request.current_content}+{request.requester_id}\n"
        return ValidationResult(
            is_valid=True,
            updated_content=updated,
            diff=f"+{request.requester_id}\n",
            description=f"Change by {request.requester_id}",
        )


@pytest.fixture
def appending_validator():
    return AppendingValidator()


@pytest.fixture
def static_validator():
    """Factory for a validator that always returns the given verdict."""
    def _make(**fields):
        return StaticValidator(ValidationResult(**fields))

    return _make


@pytest.fixture
def failing_validator():
    return FailingValidator


@pytest.fixture
def barrier_validator():
    return BarrierValidator()


@pytest.fixture
def read_content(session_maker):
    """Read stored content through a separate session."""
    async def _read(content_item_id) -> str:
        async with session_maker() as session:
            item = await session.get(ContentItem, content_item_id)
            return item.current_content

    return _read


# ---------------------------------------------------------------------------
# Hooks and requests
# ---------------------------------------------------------------------------

@pytest.fixture
def clean_hooks():
    """Save and restore hooks state around a test."""
    original_filters = {k: list(v) for k, v in hooks._filters.items()}
    original_actions = {k: list(v) for k, v in hooks._actions.items()}
    hooks.clear()
    yield hooks
    hooks.clear()
    hooks._filters.update(original_filters)
    hooks._actions.update(original_actions)


@pytest.fixture
def mock_request_factory():
    """Factory fixture that returns mock requests with a session dict."""
    def _make(session=None, validator=None, ledger=None):
        from palimpsest.config import LedgerConfig

        request = MagicMock()
        request.session = session if session is not None else {}
        request.app.state.validator = validator
        request.app.state.ledger = ledger or LedgerConfig()
        return request

    return _make
