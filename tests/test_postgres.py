"""
Tests for the PostgreSQL backend.

Tests using the postgres_storage fixture are skipped unless DATABASE_URL is
set (in the environment or the project .env).
"""

from __future__ import annotations

import asyncpg
import pytest

from secure_store import EnvelopeCodec, PostgresObjectStore, SecureStore, StorageError


async def test_put_get_overwrite_delete(postgres_storage):
    await postgres_storage.put("bucket", "a.enc", b"first")
    await postgres_storage.put("bucket", "a.enc", b"second")

    assert await postgres_storage.get("bucket", "a.enc") == b"second"

    await postgres_storage.delete("bucket", "a.enc")
    assert await postgres_storage.get("bucket", "a.enc") is None


async def test_containers_are_isolated(postgres_storage):
    await postgres_storage.put("one", "k", b"1")

    assert await postgres_storage.get("two", "k") is None
    assert await postgres_storage.list("two") == []


async def test_list_pages_and_filters(postgres_storage):
    # page_size is 2 in the fixture, so five rows take three round trips
    for i in range(5):
        await postgres_storage.put("bucket", f"f/{i}.enc", b"x")
    await postgres_storage.put("bucket", "f/sub/deep.enc", b"x")
    await postgres_storage.put("bucket", "g/other.enc", b"x")

    assert await postgres_storage.list("bucket", "f/", recursive=False) == [
        f"f/{i}.enc" for i in range(5)
    ]
    assert "f/sub/deep.enc" in await postgres_storage.list("bucket", "f/")
    assert len(await postgres_storage.list("bucket")) == 7


async def test_secure_store_over_postgres(key_ring, postgres_storage):
    store = SecureStore(EnvelopeCodec(key_ring), postgres_storage)

    await store.put("bucket/doc", b"stored in postgres")

    raw = await postgres_storage.get("bucket", "doc.enc")
    assert b"postgres" not in raw
    assert await store.get("bucket/doc") == b"stored in postgres"


async def test_replace_if_unchanged(postgres_storage):
    await postgres_storage.put("bucket", "a.enc", b"first")

    assert await postgres_storage.replace_if_unchanged("bucket", "a.enc", b"stale", b"x") is False
    assert await postgres_storage.replace_if_unchanged("bucket", "a.enc", b"first", b"second") is True
    assert await postgres_storage.get("bucket", "a.enc") == b"second"
    assert await postgres_storage.replace_if_unchanged("bucket", "gone.enc", b"first", b"x") is False


class SchemaFailingPool:
    def __init__(self) -> None:
        self.closed = False

    async def execute(self, query: str, *args) -> str:
        raise asyncpg.PostgresError("permission denied for schema public")

    async def close(self) -> None:
        self.closed = True


async def test_connect_closes_pool_when_schema_fails(monkeypatch):
    pool = SchemaFailingPool()

    async def create_pool(database_url):
        return pool

    monkeypatch.setattr(asyncpg, "create_pool", create_pool)

    with pytest.raises(StorageError, match="Failed to create schema"):
        await PostgresObjectStore.connect("postgresql://localhost/secure_store")
    assert pool.closed
