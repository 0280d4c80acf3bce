"""
Shared fixtures for the swap tests.

Each test gets its own file-backed SQLite database. Tables and seed users are
written through a plain synchronous engine; the code under test talks to the
same file through ``sqlite+aiosqlite`` with ``NullPool`` so no connection is
shared between event loops.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from skillswap.api.auth import router as auth_router
from skillswap.api.health import router as health_router
from skillswap.api.swaps import router as swaps_router
from skillswap.auth.jwt import create_access_token
from skillswap.database import get_db
from skillswap.errors import install_error_handlers
from skillswap.models import Base, User
from skillswap.services.notifier import get_emitter


# ============ Sample Users ============

ALICE = {
    "email": "alice@example.com",
    "name": "Alice",
    "skills": ["Logo Design", "Illustration"],
    "learning": ["Web Development"],
}
BOB = {
    "email": "bob@example.com",
    "name": "Bob",
    "skills": ["Web Development", "Python"],
    "learning": ["Logo Design"],
}
CAROL = {
    "email": "carol@example.com",
    "name": "Carol",
    "skills": ["Photography"],
    "learning": ["Python"],
}


# ============ Recording Emitter ============

@dataclass
class RecordingEmitter:
    """Captures every emitted event; optionally fails to simulate an outage."""

    events: list[tuple[str, int, dict[str, Any]]] = field(default_factory=list)
    fail: bool = False

    async def emit(self, event: str, target_user_id: int, payload: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("notification backend down")
        self.events.append((event, target_user_id, payload))

    def names(self) -> list[str]:
        return [e[0] for e in self.events]

    def for_user(self, user_id: int) -> list[str]:
        return [e[0] for e in self.events if e[1] == user_id]


# ============ Database ============

@dataclass
class SwapDatabase:
    sync_url: str
    async_url: str

    def add_user(self, email: str, name: str | None = None, skills=None, learning=None, **_: Any) -> int:
        engine = create_engine(self.sync_url)
        try:
            with Session(engine) as s:
                user = User(
                    email=email,
                    hashed_password="!",
                    name=name,
                    skills=list(skills or []),
                    learning=list(learning or []),
                )
                s.add(user)
                s.commit()
                return user.id
        finally:
            engine.dispose()


@pytest.fixture
def database(tmp_path) -> SwapDatabase:
    path = tmp_path / "skillswap.db"
    db = SwapDatabase(sync_url=f"sqlite:///{path}", async_url=f"sqlite+aiosqlite:///{path}")
    engine = create_engine(db.sync_url)
    Base.metadata.create_all(engine)
    engine.dispose()
    return db


@pytest.fixture
def users(database) -> dict[str, int]:
    return {
        "alice": database.add_user(**ALICE),
        "bob": database.add_user(**BOB),
        "carol": database.add_user(**CAROL),
    }


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest_asyncio.fixture
async def session_factory(database):
    engine = create_async_engine(database.async_url, poolclass=NullPool)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    yield factory
    await engine.dispose()


# ============ Test App Factory ============

def _create_test_app(database: SwapDatabase, emitter: RecordingEmitter) -> FastAPI:
    """The production routers and error handlers, wired to the per-test database and emitter."""
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(health_router, prefix="/api")
    app.include_router(auth_router, prefix="/api")
    app.include_router(swaps_router, prefix="/api")

    engine = create_async_engine(database.async_url, poolclass=NullPool)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_emitter():
        return emitter

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_emitter] = override_get_emitter
    return app


@pytest.fixture
def client(database, emitter):
    with TestClient(_create_test_app(database, emitter)) as test_client:
        yield test_client


def _auth_header(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def auth():
    """auth(user_id) -> Authorization header for that user."""
    return _auth_header
