############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# conftest.py: Pytest configuration and shared test fixtures
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Pytest configuration and shared fixtures for VideoRelay tests."""

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.app.core.canonical_schemas import RelayContext
from backend.app.db import crud
from backend.app.db.base import Base
from backend.app.db.models import User
from backend.app.settings import Settings

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]


@pytest.fixture
def settings() -> Settings:
    """Real settings with deterministic billing values, isolated from .env files."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        quota_per_unit=500000.0,
        video_unit_price_per_ratio=0.0025,
        model_ratios={
            "wanx2.1-t2v-turbo": 16.0,
            "wanx2.1-t2v-plus": 56.0,
            "wanx2.1-i2v-turbo": 16.0,
            "wanx2.1-i2v-plus": 56.0,
        },
        model_prices={},
        model_mapping={},
        relay_api_type="generic",
        relay_base_url="http://upstream.test",
        relay_api_key="sk-upstream",
        status_code_mapping="",
        task_insert_max_attempts=5,
        task_insert_retry_delay=0.0,
        log_consume_enabled=True,
    )


@pytest.fixture
def relay_ctx() -> RelayContext:
    """Relay context for user 1 on the default group."""
    return RelayContext(
        request_id="video-test",
        user_id=1,
        api_type="generic",
        api_key_id=None,
        group="default",
        group_ratio=1.0,
        base_url="http://upstream.test",
        upstream_key="sk-upstream",
    )


@pytest.fixture
def i2v_request():
    """Valid image-to-video request body."""
    return {
        "model": "wanx2.1-i2v-turbo",
        "prompt": "a cat surfing a wave",
        "image_url": "https://example.com/cat.png",
        "duration": 4,
    }


@pytest.fixture
def t2v_request():
    """Valid text-to-video request body."""
    return {
        "model": "wanx2.1-t2v-plus",
        "prompt": "a city skyline at dusk",
        "size": "",
    }


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """In-memory SQLite session with the full schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def funded_user(db_session: AsyncSession) -> User:
    """A user in the default group holding a $10 balance."""
    group = await crud.create_group(db_session, name="default", display_name="Default", ratio=1.0)
    user = await crud.create_user(
        db_session, username="alice", email="alice@example.com", group_id=group.id, quota=5_000_000
    )
    await db_session.commit()
    return user


def _canned_transport(status_code: int = 200, json_body=None, text: str = ""):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if json_body is not None:
            return httpx.Response(status_code, json=json_body)
        return httpx.Response(status_code, text=text)

    transport = httpx.MockTransport(handler)
    transport.seen = seen
    return transport


@pytest.fixture
def mock_upstream():
    """Factory for an httpx.MockTransport answering every request with one canned response."""
    return _canned_transport
