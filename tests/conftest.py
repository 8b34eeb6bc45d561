"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of coinbot.api.deps, which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import BigInteger, Engine, create_engine  # noqa: E402
from sqlalchemy.ext.compiler import compiles  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from coinbot.database.models import Base  # noqa: E402
from coinbot.engine.catalog import (  # noqa: E402
    ActionEntry,
    Catalog,
    RewardEntry,
    default_catalog,
)


# ---------------------------------------------------------------------------
# SQLite only autoincrements INTEGER PRIMARY KEY, so render BigInteger as
# INTEGER there.  Postgres keeps BIGINT.
# ---------------------------------------------------------------------------
@compiles(BigInteger, "sqlite")
def _compile_bigint_as_integer(type_, compiler, **kw):
    return "INTEGER"


def run_async(coro):
    """Run an async coroutine in a new event loop (no pytest-asyncio)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Coinbot tables.

    Uses StaticPool so every thread shares the same in-memory database
    (``run_db`` hops to a worker thread via ``asyncio.to_thread``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def catalog() -> Catalog:
    """The built-in catalog."""
    return default_catalog()


@pytest.fixture
def tier_catalog() -> Catalog:
    """Small catalog with a Moon → Planet → Galaxy style unlock chain."""
    return Catalog(
        actions=(
            ActionEntry("post", "Post your idea", 3, max_claims=1),
            ActionEntry("comment", "Comment on a game", 1),
            ActionEntry("help", "Help someone", None),
            ActionEntry("share", "Share it", 2, max_claims=2),
        ),
        rewards=(
            RewardEntry("moon", "Moon", 5),
            RewardEntry("planet", "Planet", 10),
            RewardEntry("galaxy", "Galaxy", 20, prerequisite="planet"),
        ),
    )


@pytest.fixture
def admin_token():
    """Generate a valid admin JWT for use in API integration tests."""
    return make_admin_token()


def make_admin_token(sub: str = "99999", username: str = "FixtureAdmin") -> str:
    """Create an admin JWT.  Usable as both a fixture and a factory function."""
    import jwt

    from coinbot.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "username": username, "is_admin": True},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def add_request(
    engine: Engine,
    user_id: int,
    action: str,
    *,
    status=None,
    coins: int | None = None,
    processed: bool = False,
    display_name: str = "tester",
    created_at=None,
) -> int:
    """Insert a CoinRequest row directly and return its id."""
    from datetime import UTC, datetime

    from coinbot.database.models import CoinRequest, RequestStatus

    now = datetime.now(UTC)
    with Session(engine) as session:
        row = CoinRequest(
            user_id=user_id,
            display_name=display_name,
            action=action,
            status=status or RequestStatus.PENDING,
            coins_given=coins,
            processed=processed,
            submitted_at=(created_at or now).date(),
            created_at=created_at or now,
        )
        session.add(row)
        session.commit()
        return row.id
