"""
S3 and S3-compatible object storage.

boto3 is synchronous, so every call is pushed onto a worker thread with
asyncio.to_thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import StorageError
from .storage import ObjectStore, filter_listing

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
# Lost an IfMatch race
_PRECONDITION_CODES = frozenset({"PreconditionFailed", "412", "ConditionalRequestConflict", "409"})


class S3ObjectStore(ObjectStore):
    """Object store backed by an S3 bucket per container."""

    def __init__(self, client: Any) -> None:
        """
        Args:
            client: A boto3 S3 client (or anything with the same methods)
        """
        self._client = client

    @classmethod
    def from_settings(
        cls,
        endpoint_url: Optional[str] = None,
        region_name: Optional[str] = None,
    ) -> S3ObjectStore:
        """Build a store from endpoint/region; credentials come from the usual AWS chain."""
        client = boto3.client("s3", endpoint_url=endpoint_url, region_name=region_name)
        return cls(client)

    async def put(self, container: str, object_id: str, data: bytes) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object, Bucket=container, Key=object_id, Body=bytes(data)
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 PutObject failed: {e}")

    async def get(self, container: str, object_id: str) -> Optional[bytes]:
        try:
            return await asyncio.to_thread(self._get_sync, container, object_id)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                return None
            raise StorageError(f"S3 GetObject failed: {e}")
        except BotoCoreError as e:
            raise StorageError(f"S3 GetObject failed: {e}")

    def _get_sync(self, container: str, object_id: str) -> bytes:
        response = self._client.get_object(Bucket=container, Key=object_id)
        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()

    async def replace_if_unchanged(
        self, container: str, object_id: str, expected: bytes, data: bytes
    ) -> bool:
        """Compare the current body, then write with IfMatch on its ETag."""
        try:
            return await asyncio.to_thread(
                self._replace_sync, container, object_id, bytes(expected), bytes(data)
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in _NOT_FOUND_CODES or code in _PRECONDITION_CODES:
                return False
            raise StorageError(f"S3 PutObject failed: {e}")
        except BotoCoreError as e:
            raise StorageError(f"S3 PutObject failed: {e}")

    def _replace_sync(
        self, container: str, object_id: str, expected: bytes, data: bytes
    ) -> bool:
        response = self._client.get_object(Bucket=container, Key=object_id)
        body = response["Body"]
        try:
            current = body.read()
        finally:
            body.close()
        if current != expected:
            return False
        self._client.put_object(
            Bucket=container, Key=object_id, Body=data, IfMatch=response["ETag"]
        )
        return True

    async def delete(self, container: str, object_id: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.delete_object, Bucket=container, Key=object_id
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 DeleteObject failed: {e}")

    async def list(
        self, container: str, prefix: str = "", recursive: bool = True
    ) -> List[str]:
        try:
            ids = await asyncio.to_thread(self._list_sync, container, prefix, recursive)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 ListObjectsV2 failed: {e}")
        return filter_listing(ids, prefix, recursive)

    def _list_sync(self, container: str, prefix: str, recursive: bool) -> List[str]:
        params = {"Bucket": container, "Prefix": prefix}
        if not recursive:
            params["Delimiter"] = "/"

        ids: List[str] = []
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(**params):
            ids.extend(obj["Key"] for obj in page.get("Contents", []) if obj.get("Key"))
        return ids
