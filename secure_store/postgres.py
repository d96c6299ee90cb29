"""
PostgreSQL-backed object storage.

This module provides:
- PostgresObjectStore: ObjectStore backed by a single table in PostgreSQL

Schema:

    CREATE TABLE secure_objects (
        container  TEXT NOT NULL,
        object_id  TEXT NOT NULL,
        body       BYTEA NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        PRIMARY KEY (container, object_id)
    );

Bodies are envelope bytes; the database never sees plaintext.
"""

from __future__ import annotations

from typing import List, Optional

import asyncpg

from .errors import StorageError
from .storage import ObjectStore, filter_listing

SCHEMA = """
    CREATE TABLE IF NOT EXISTS secure_objects (
        container  TEXT NOT NULL,
        object_id  TEXT NOT NULL,
        body       BYTEA NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        PRIMARY KEY (container, object_id)
    )
"""

LIST_PAGE_SIZE = 1000


class PostgresObjectStore(ObjectStore):
    """
    PostgreSQL object store.

    Driver errors are wrapped in StorageError.
    """

    def __init__(self, pool: asyncpg.Pool, page_size: int = LIST_PAGE_SIZE) -> None:
        """
        Initialize PostgreSQL storage.

        Args:
            pool: asyncpg connection pool
            page_size: Rows fetched per round trip when listing
        """
        self._pool = pool
        self._page_size = page_size

    @classmethod
    async def connect(cls, database_url: str) -> PostgresObjectStore:
        """
        Create a pool, make sure the table exists and return the store.

        Raises:
            StorageError: If the database cannot be reached
        """
        try:
            pool = await asyncpg.create_pool(database_url)
        except (OSError, asyncpg.PostgresError) as e:
            raise StorageError(f"Failed to connect to PostgreSQL: {e}")
        if pool is None:
            raise StorageError("Failed to create PostgreSQL connection pool")
        store = cls(pool)
        try:
            await store.ensure_schema()
        except StorageError:
            await pool.close()
            raise
        return store

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool."""
        return self._pool

    async def ensure_schema(self) -> None:
        """Create the objects table if it does not exist."""
        try:
            await self._pool.execute(SCHEMA)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to create schema: {e}")

    async def put(self, container: str, object_id: str, data: bytes) -> None:
        query = """
            INSERT INTO secure_objects (container, object_id, body, updated_at)
            VALUES ($1, $2, $3, now())
            ON CONFLICT (container, object_id)
            DO UPDATE SET body = EXCLUDED.body, updated_at = EXCLUDED.updated_at
        """
        try:
            await self._pool.execute(query, container, object_id, bytes(data))
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to store object: {e}")

    async def get(self, container: str, object_id: str) -> Optional[bytes]:
        query = """
            SELECT body FROM secure_objects
            WHERE container = $1 AND object_id = $2
        """
        try:
            row = await self._pool.fetchrow(query, container, object_id)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to get object: {e}")
        if row is None:
            return None
        return bytes(row["body"])

    async def replace_if_unchanged(
        self, container: str, object_id: str, expected: bytes, data: bytes
    ) -> bool:
        query = """
            UPDATE secure_objects SET body = $4, updated_at = now()
            WHERE container = $1 AND object_id = $2 AND body = $3
        """
        try:
            status = await self._pool.execute(
                query, container, object_id, bytes(expected), bytes(data)
            )
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to replace object: {e}")
        # Command tag is "UPDATE <rows>"
        return status == "UPDATE 1"

    async def delete(self, container: str, object_id: str) -> None:
        query = "DELETE FROM secure_objects WHERE container = $1 AND object_id = $2"
        try:
            await self._pool.execute(query, container, object_id)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to delete object: {e}")

    async def list(
        self, container: str, prefix: str = "", recursive: bool = True
    ) -> List[str]:
        """List object ids, paging through the table by primary key."""
        query = """
            SELECT object_id FROM secure_objects
            WHERE container = $1
              AND left(object_id, length($2)) = $2
              AND object_id > $3
            ORDER BY object_id
            LIMIT $4
        """
        ids: List[str] = []
        after = ""
        try:
            while True:
                rows = await self._pool.fetch(
                    query, container, prefix, after, self._page_size
                )
                ids.extend(row["object_id"] for row in rows)
                if len(rows) < self._page_size:
                    break
                after = rows[-1]["object_id"]
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to list objects: {e}")
        return filter_listing(ids, prefix, recursive)

    async def close(self) -> None:
        await self._pool.close()
