# =============================================================================
# ADAPTIVE AUTH - TEST CONFIGURATION
# =============================================================================
# File: tests/conftest.py
# Description: Pytest fixtures for file-backed SQLite engines and fakeredis
# =============================================================================

import os

# Cheap hashing parameters; must be set before the package reads settings.
os.environ.setdefault("AUTH_ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("AUTH_ARGON2_TIME_COST", "1")
os.environ.setdefault("AUTH_ARGON2_PARALLELISM", "1")
os.environ.setdefault("AUTH_BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_DB_ECHO", "false")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
import fakeredis.aioredis

from adaptive_auth.auth.schemas import TableFieldMapping
from adaptive_auth.auth.service import AuthenticationEngine
from adaptive_auth.db.adapters.redis_adapter import RedisAdapter
from adaptive_auth.db.adapters.sqlite_adapter import SQLiteAdapter
from adaptive_auth.db.models import ConnectionDescriptor
from adaptive_auth.session.storage import MemorySessionStore


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def sqlite_descriptor(tmp_path) -> ConnectionDescriptor:
    """Descriptor for a fresh SQLite file per test."""
    return ConnectionDescriptor(engine="sqlite", database=str(tmp_path / "auth.db"))


@pytest_asyncio.fixture
async def sqlite_adapter(sqlite_descriptor) -> AsyncGenerator[SQLiteAdapter, None]:
    """Connected adapter on an empty database."""
    adapter = SQLiteAdapter(sqlite_descriptor, echo=False)
    await adapter.connect()

    yield adapter

    await adapter.disconnect()


@pytest.fixture
def field_mapping(tmp_path) -> TableFieldMapping:
    """Default French mapping with the attempt log inside tmp_path."""
    return TableFieldMapping(log_file_path=str(tmp_path / "auth_erreurs.log"))


@pytest.fixture
def session_store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest_asyncio.fixture
async def engine(
    sqlite_descriptor,
    field_mapping,
    session_store,
) -> AsyncGenerator[AuthenticationEngine, None]:
    """Initialized engine that created its own ``utilisateur`` table."""
    auth = await AuthenticationEngine.create(
        sqlite_descriptor,
        field_mapping,
        store=session_store,
        client_id="client-test-1",
        client_ip="10.0.0.1",
    )

    yield auth

    await auth.close()


@pytest.fixture
def users_table(sqlite_adapter):
    """
    Factory creating a pre-existing ``utilisateur`` table.

    Usage:
        await users_table('"email" VARCHAR(100) NOT NULL')
    """
    async def _create(extra_columns: str = "") -> None:
        columns = (
            '"id" INTEGER PRIMARY KEY AUTOINCREMENT, '
            '"login" VARCHAR(255) NOT NULL UNIQUE, '
            '"mot_de_passe" VARCHAR(255) NOT NULL'
        )
        if extra_columns:
            columns += ", " + extra_columns
        await sqlite_adapter.execute(f'CREATE TABLE "utilisateur" ({columns})')

    return _create


# =============================================================================
# REDIS FIXTURES
# =============================================================================

@pytest_asyncio.fixture
async def redis_mock():
    """
    Create fake Redis for testing.

    Uses fakeredis to simulate Redis operations.
    """
    fake_redis = fakeredis.aioredis.FakeRedis(decode_responses=True)

    yield fake_redis

    await fake_redis.aclose()


@pytest_asyncio.fixture
async def redis_adapter(redis_mock) -> RedisAdapter:
    adapter = RedisAdapter(client=redis_mock)
    await adapter.connect()
    return adapter


# =============================================================================
# USER FIXTURES
# =============================================================================

@pytest.fixture
def sample_user_data():
    """Sample registration data."""
    return {
        "login": "alice",
        "password": "s3cret-pass",
    }
