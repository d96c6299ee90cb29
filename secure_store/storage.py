"""
Object storage abstractions.

This module provides:
- ObjectStore: Abstract protocol for object storage backends
- InMemoryObjectStore: In-memory implementation for testing

Backends store envelope bytes verbatim; they never see plaintext or keys.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple


def filter_listing(ids: List[str], prefix: str, recursive: bool) -> List[str]:
    """
    Apply prefix and delimiter semantics to a list of object ids.

    Non-recursive listings keep only ids with no "/" after the prefix,
    like an S3 listing with Delimiter="/".
    """
    matched = [i for i in ids if i.startswith(prefix)]
    if not recursive:
        matched = [i for i in matched if "/" not in i[len(prefix):]]
    return sorted(matched)


class ObjectStore(ABC):
    """
    Abstract storage interface for encrypted objects.

    All methods are async to support in-memory, database and S3 backends.
    """

    @abstractmethod
    async def put(self, container: str, object_id: str, data: bytes) -> None:
        """Store an object, replacing any existing one."""
        ...

    @abstractmethod
    async def get(self, container: str, object_id: str) -> Optional[bytes]:
        """Get an object's bytes, or None if it does not exist."""
        ...

    @abstractmethod
    async def replace_if_unchanged(
        self, container: str, object_id: str, expected: bytes, data: bytes
    ) -> bool:
        """
        Overwrite an object only if it still holds the expected bytes.

        Returns:
            True if replaced, False if the object changed or was deleted
        """
        ...

    @abstractmethod
    async def delete(self, container: str, object_id: str) -> None:
        """Delete an object. Deleting a missing object is not an error."""
        ...

    @abstractmethod
    async def list(
        self, container: str, prefix: str = "", recursive: bool = True
    ) -> List[str]:
        """List object ids under a prefix, across all pages."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        return None


class InMemoryObjectStore(ObjectStore):
    """
    In-memory object store for testing.

    Uses asyncio.Lock for safe concurrent access.
    """

    def __init__(self) -> None:
        self._objects: Dict[Tuple[str, str], bytes] = {}
        self._lock = asyncio.Lock()

    async def put(self, container: str, object_id: str, data: bytes) -> None:
        async with self._lock:
            self._objects[(container, object_id)] = bytes(data)

    async def get(self, container: str, object_id: str) -> Optional[bytes]:
        async with self._lock:
            return self._objects.get((container, object_id))

    async def replace_if_unchanged(
        self, container: str, object_id: str, expected: bytes, data: bytes
    ) -> bool:
        async with self._lock:
            if self._objects.get((container, object_id)) != expected:
                return False
            self._objects[(container, object_id)] = bytes(data)
            return True

    async def delete(self, container: str, object_id: str) -> None:
        async with self._lock:
            self._objects.pop((container, object_id), None)

    async def list(
        self, container: str, prefix: str = "", recursive: bool = True
    ) -> List[str]:
        async with self._lock:
            ids = [oid for (c, oid) in self._objects if c == container]
        return filter_listing(ids, prefix, recursive)

    def __len__(self) -> int:
        return len(self._objects)
