"""
Path-based encrypted object store.

This module provides:
- SecureStore: File-system-like put/get/delete/list over any ObjectStore,
  encrypting with an EnvelopeCodec on the way out and verifying on the way in
- RotationResult: Result of re-encrypting a prefix under the primary key
- parse_path: Split "container/object/id" into its two parts

Paths look like "bucket-name/folder/file.ext". The first segment is the
container; the rest is the object id. Objects are stored with an ".enc"
suffix, and listings only return ".enc" objects (suffix stripped).

Key rotation:
1. Build a KeyRing with the new key as primary and the old keys retained
2. New writes use the new key immediately; old objects stay readable
3. Optionally call rotate_prefix() to re-encrypt old objects in place
4. Once nothing references an old key id, drop it from the ring
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .config import SecureStoreConfig
from .envelope import EnvelopeCodec
from .errors import DecryptionError, NotFoundError, StorageError, ValidationError
from .storage import ObjectStore

OBJECT_SUFFIX = ".enc"
DEFAULT_LIST_LIMIT = 1000


def parse_path(path: str, allow_empty_key: bool = False) -> Tuple[str, str]:
    """
    Split a path into (container, object_id).

    With allow_empty_key, "container/" is accepted and yields an empty
    object id (a listing of the whole container).

    Raises:
        ValidationError: If the path is empty or either part is empty
    """
    if not path or not isinstance(path, str):
        raise ValidationError("Path must be a non-empty string.")

    container, sep, object_id = path.partition("/")
    if not sep:
        raise ValidationError("Invalid path format. Must be `container/key`.")
    if not container or (not object_id and not allow_empty_key):
        raise ValidationError(
            "Invalid path format. Container and key must not be empty."
        )
    return container, object_id


@dataclass
class RotationResult:
    """Result of re-encrypting every object under a prefix."""

    primary_id: str
    objects_scanned: int
    objects_rewritten: int

    def __str__(self) -> str:
        return (
            f"{self.objects_rewritten}/{self.objects_scanned} objects "
            f"re-encrypted under {self.primary_id}"
        )


class SecureStore:
    """
    Encrypted object store addressed by path.

    StorageError wraps backend failures. DecryptionError, ValidationError
    and NotFoundError propagate unchanged.
    """

    def __init__(
        self,
        codec: EnvelopeCodec,
        object_store: ObjectStore,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            codec: Envelope codec holding the key ring
            object_store: Backend that stores envelope bytes verbatim
            logger: Logger for operation records (defaults to this module's logger)
        """
        self._codec = codec
        self._objects = object_store
        self._logger = logger or logging.getLogger(__name__)
        self._logger.info("SecureStore initialized.")

    @classmethod
    def from_config(
        cls,
        config: SecureStoreConfig,
        object_store: ObjectStore,
        logger: Optional[logging.Logger] = None,
    ) -> SecureStore:
        """Build a store from validated configuration."""
        codec = EnvelopeCodec(
            config.key_ring(),
            max_plaintext_size=config.max_file_size,
            logger=logger,
        )
        return cls(codec, object_store, logger=logger)

    @property
    def codec(self) -> EnvelopeCodec:
        return self._codec

    async def put(self, path: str, data: Union[bytes, str]) -> None:
        """
        Encrypt and store data at a path.

        Args:
            path: "container/object/id"
            data: Bytes, or a str which is stored as UTF-8

        Raises:
            ValidationError: If the path is invalid or data is empty/too large
            StorageError: If the backend write fails
        """
        self._logger.info("Attempting to put object at path: %s", path)
        container, object_id = parse_path(path)
        payload = data.encode("utf-8") if isinstance(data, str) else data

        envelope = self._codec.encode(payload)
        await self._write(path, container, object_id, envelope)
        self._logger.info("Successfully put object at path: %s", path)

    async def get(self, path: str) -> bytes:
        """
        Fetch and decrypt the object at a path.

        Raises:
            NotFoundError: If no object exists at the path
            DecryptionError: If the object cannot be authenticated
            ValidationError: If the path or stored envelope is malformed
            StorageError: If the backend read fails
        """
        self._logger.info("Attempting to get object from path: %s", path)
        container, object_id = parse_path(path)

        envelope = await self._read(path, container, object_id)
        try:
            plaintext = self._codec.decode(envelope)
        except (ValidationError, DecryptionError) as e:
            self._logger.error("Decryption failed for path: %s (%s)", path, e)
            raise

        self._logger.info("Successfully got object from path: %s", path)
        return plaintext

    async def delete(self, path: str) -> None:
        """
        Delete the object at a path.

        Raises:
            ValidationError: If the path is invalid
            StorageError: If the backend delete fails
        """
        self._logger.info("Attempting to delete object at path: %s", path)
        container, object_id = parse_path(path)
        try:
            await self._objects.delete(container, object_id + OBJECT_SUFFIX)
        except StorageError as e:
            self._logger.error("Delete failed for path: %s (%s)", path, e)
            raise
        self._logger.info("Successfully deleted object at path: %s", path)

    async def list(
        self,
        path: str,
        offset: int = 0,
        limit: int = DEFAULT_LIST_LIMIT,
        recursive: bool = False,
    ) -> List[str]:
        """
        List object ids under a container and prefix.

        Args:
            path: "container/prefix" (prefix may end with "/")
            offset: Number of ids to skip
            limit: Maximum number of ids to return
            recursive: Include objects in nested "folders"

        Returns:
            Object ids without the ".enc" suffix

        Raises:
            ValidationError: If the path is invalid or offset/limit are negative
            StorageError: If the backend listing fails
        """
        self._logger.info("Attempting to list objects at path: %s", path)
        if offset < 0 or limit < 0:
            raise ValidationError("Offset and limit must not be negative.")

        keys = await self._list_keys(path, recursive)
        self._logger.info(
            "Successfully listed %d objects at path: %s", len(keys), path
        )
        return keys[offset : offset + limit]

    async def reencrypt(self, path: str) -> bool:
        """
        Re-encrypt one object under the primary key if it uses an older key.

        The write only lands if the stored bytes are still the ones that were
        read, so a concurrent put is never overwritten with stale content.

        Returns:
            True if the object was rewritten, False if already current or
            changed by another writer in the meantime

        Raises:
            NotFoundError: If no object exists at the path
            DecryptionError: If the object's key is not in the ring
        """
        container, object_id = parse_path(path)
        envelope = await self._read(path, container, object_id)

        if not self._codec.needs_rotation(envelope):
            return False

        old_key_id = self._codec.key_id_of(envelope)
        plaintext = self._codec.decode(envelope)
        try:
            replaced = await self._objects.replace_if_unchanged(
                container,
                object_id + OBJECT_SUFFIX,
                envelope,
                self._codec.encode(plaintext),
            )
        except StorageError as e:
            self._logger.error("Put failed for path: %s (%s)", path, e)
            raise
        if not replaced:
            self._logger.warning(
                "Object changed during re-encryption, skipped path: %s", path
            )
            return False
        self._logger.info(
            "Re-encrypted object at path: %s (%s -> %s)",
            path,
            old_key_id,
            self._codec.key_ring.primary_id,
        )
        return True

    async def rotate_prefix(self, path: str, recursive: bool = True) -> RotationResult:
        """
        Re-encrypt every object under a prefix that uses a non-primary key.

        Objects deleted after the listing are skipped. Any other failure stops
        the run; objects already rewritten stay rewritten and remain readable
        with the current ring.
        """
        container, _ = parse_path(path, allow_empty_key=True)
        ids = await self._list_keys(path, recursive)

        scanned = 0
        rewritten = 0
        for object_id in ids:
            scanned += 1
            try:
                if await self.reencrypt(f"{container}/{object_id}"):
                    rewritten += 1
            except NotFoundError:
                continue

        result = RotationResult(
            primary_id=self._codec.key_ring.primary_id,
            objects_scanned=scanned,
            objects_rewritten=rewritten,
        )
        self._logger.info("Rotation complete at path: %s (%s)", path, result)
        return result

    async def close(self) -> None:
        await self._objects.close()

    async def _list_keys(self, path: str, recursive: bool) -> List[str]:
        container, prefix = parse_path(path, allow_empty_key=True)
        try:
            ids = await self._objects.list(container, prefix, recursive=recursive)
        except StorageError as e:
            self._logger.error("List failed for path: %s (%s)", path, e)
            raise
        return [i[: -len(OBJECT_SUFFIX)] for i in ids if i.endswith(OBJECT_SUFFIX)]

    async def _read(self, path: str, container: str, object_id: str) -> bytes:
        try:
            envelope = await self._objects.get(container, object_id + OBJECT_SUFFIX)
        except StorageError as e:
            self._logger.error("Get failed for path: %s (%s)", path, e)
            raise
        if envelope is None:
            self._logger.error("Object not found at path: %s", path)
            raise NotFoundError(f"Object not found at path: {path}")
        return envelope

    async def _write(
        self, path: str, container: str, object_id: str, envelope: bytes
    ) -> None:
        try:
            await self._objects.put(container, object_id + OBJECT_SUFFIX, envelope)
        except StorageError as e:
            self._logger.error("Put failed for path: %s (%s)", path, e)
            raise
