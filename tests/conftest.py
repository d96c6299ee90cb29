"""
Pytest configuration and fixtures for secure store tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator

import asyncpg
import pytest
from dotenv import load_dotenv

from secure_store import (
    EnvelopeCodec,
    InMemoryObjectStore,
    KeyRing,
    PostgresObjectStore,
    SecureStore,
)

KEY_V1 = bytes(range(32))


@pytest.fixture
def key_ring() -> KeyRing:
    """Single-key ring with primary "v1"."""
    return KeyRing({"v1": KEY_V1}, "v1")


@pytest.fixture
def codec(key_ring: KeyRing) -> EnvelopeCodec:
    return EnvelopeCodec(key_ring)


@pytest.fixture
def memory_storage() -> InMemoryObjectStore:
    """Create an in-memory storage instance for testing."""
    return InMemoryObjectStore()


@pytest.fixture
def secure_store(codec: EnvelopeCodec, memory_storage: InMemoryObjectStore) -> SecureStore:
    return SecureStore(codec, memory_storage)


@pytest.fixture
async def pg_pool() -> AsyncGenerator[asyncpg.Pool, None]:
    """Create a PostgreSQL connection pool for testing."""
    # Load environment from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(env_path)

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set, skipping PostgreSQL tests")

    pool = await asyncpg.create_pool(database_url)
    if pool is None:
        pytest.skip("Failed to create PostgreSQL connection pool")

    yield pool

    await pool.close()


@pytest.fixture
async def postgres_storage(pg_pool: asyncpg.Pool) -> PostgresObjectStore:
    """Create a PostgreSQL storage instance with an empty objects table."""
    store = PostgresObjectStore(pg_pool, page_size=2)
    await store.ensure_schema()
    await pg_pool.execute("TRUNCATE TABLE secure_objects")
    return store
