"""
Tests for the S3 backend against a fake boto3 client.
"""

from __future__ import annotations

import hashlib
import io
from typing import Callable, Dict, List, Optional

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from secure_store import EnvelopeCodec, S3ObjectStore, SecureStore, StorageError


def _etag(body: bytes) -> str:
    return '"' + hashlib.md5(body).hexdigest() + '"'


class FakePaginator:
    def __init__(self, client: FakeS3Client, page_size: int) -> None:
        self._client = client
        self._page_size = page_size

    def paginate(self, Bucket: str, Prefix: str = "", Delimiter: Optional[str] = None):
        self._client.list_calls.append({"Prefix": Prefix, "Delimiter": Delimiter})
        keys = sorted(
            k for (b, k) in self._client.objects if b == Bucket and k.startswith(Prefix)
        )
        if Delimiter:
            keys = [k for k in keys if Delimiter not in k[len(Prefix):]]
        for start in range(0, max(len(keys), 1), self._page_size):
            page = keys[start : start + self._page_size]
            yield {"Contents": [{"Key": k} for k in page]} if page else {}


class FakeS3Client:
    """Just enough of the boto3 S3 client surface."""

    def __init__(self, page_size: int = 2) -> None:
        self.objects: Dict[tuple, bytes] = {}
        self.list_calls: List[dict] = []
        self.fail_with: Optional[Exception] = None
        self.after_get: Optional[Callable[[], None]] = None
        self._page_size = page_size

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def put_object(
        self, Bucket: str, Key: str, Body: bytes, IfMatch: Optional[str] = None
    ) -> dict:
        self._maybe_fail()
        current = self.objects.get((Bucket, Key))
        if IfMatch is not None and (current is None or _etag(current) != IfMatch):
            raise ClientError(
                {"Error": {"Code": "PreconditionFailed", "Message": "Precondition failed"}},
                "PutObject",
            )
        self.objects[(Bucket, Key)] = Body
        return {"ETag": _etag(Body)}

    def get_object(self, Bucket: str, Key: str) -> dict:
        self._maybe_fail()
        if (Bucket, Key) not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        body = self.objects[(Bucket, Key)]
        response = {"Body": io.BytesIO(body), "ETag": _etag(body)}
        if self.after_get is not None:
            self.after_get()
        return response

    def delete_object(self, Bucket: str, Key: str) -> dict:
        self._maybe_fail()
        self.objects.pop((Bucket, Key), None)
        return {}

    def get_paginator(self, name: str) -> FakePaginator:
        assert name == "list_objects_v2"
        self._maybe_fail()
        return FakePaginator(self, self._page_size)


@pytest.fixture
def fake_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def s3_store(fake_client) -> S3ObjectStore:
    return S3ObjectStore(fake_client)


async def test_put_get_delete(s3_store, fake_client):
    await s3_store.put("bucket", "a.enc", b"envelope")

    assert fake_client.objects[("bucket", "a.enc")] == b"envelope"
    assert await s3_store.get("bucket", "a.enc") == b"envelope"

    await s3_store.delete("bucket", "a.enc")
    assert await s3_store.get("bucket", "a.enc") is None


async def test_missing_key_is_none(s3_store):
    assert await s3_store.get("bucket", "nope") is None


async def test_list_follows_all_pages(s3_store, fake_client):
    for i in range(5):
        await s3_store.put("bucket", f"f/{i}.enc", b"x")

    assert await s3_store.list("bucket", "f/") == [f"f/{i}.enc" for i in range(5)]


async def test_non_recursive_list_uses_delimiter(s3_store, fake_client):
    await s3_store.put("bucket", "f/top.enc", b"x")
    await s3_store.put("bucket", "f/sub/deep.enc", b"x")

    assert await s3_store.list("bucket", "f/", recursive=False) == ["f/top.enc"]
    assert fake_client.list_calls[-1]["Delimiter"] == "/"


@pytest.mark.parametrize("method, args, message", [
    ("put", ("bucket", "k", b"x"), "PutObject"),
    ("get", ("bucket", "k"), "GetObject"),
    ("delete", ("bucket", "k"), "DeleteObject"),
    ("list", ("bucket", "f/"), "ListObjectsV2"),
])
async def test_client_errors_become_storage_error(s3_store, fake_client, method, args, message):
    fake_client.fail_with = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "Operation"
    )

    with pytest.raises(StorageError, match=message):
        await getattr(s3_store, method)(*args)


async def test_connection_errors_become_storage_error(s3_store, fake_client):
    fake_client.fail_with = EndpointConnectionError(endpoint_url="http://localhost:9000")

    with pytest.raises(StorageError, match="GetObject"):
        await s3_store.get("bucket", "k")


async def test_secure_store_over_s3(codec, s3_store, fake_client):
    store = SecureStore(codec, s3_store)

    await store.put("my-bucket/reports/q1.txt", b"quarterly numbers")

    stored = fake_client.objects[("my-bucket", "reports/q1.txt.enc")]
    assert b"quarterly" not in stored
    assert await store.get("my-bucket/reports/q1.txt") == b"quarterly numbers"
    assert await store.list("my-bucket/reports/") == ["reports/q1.txt"]


async def test_replace_if_unchanged(s3_store, fake_client):
    await s3_store.put("bucket", "a.enc", b"first")

    assert await s3_store.replace_if_unchanged("bucket", "a.enc", b"stale", b"x") is False
    assert await s3_store.replace_if_unchanged("bucket", "a.enc", b"first", b"second") is True
    assert fake_client.objects[("bucket", "a.enc")] == b"second"
    assert await s3_store.replace_if_unchanged("bucket", "gone.enc", b"first", b"x") is False


async def test_replace_loses_to_write_after_its_read(s3_store, fake_client):
    await s3_store.put("bucket", "a.enc", b"first")

    def concurrent_put():
        fake_client.after_get = None
        fake_client.objects[("bucket", "a.enc")] = b"concurrent"

    fake_client.after_get = concurrent_put

    assert await s3_store.replace_if_unchanged("bucket", "a.enc", b"first", b"second") is False
    assert fake_client.objects[("bucket", "a.enc")] == b"concurrent"


async def test_replace_access_denied_is_storage_error(s3_store, fake_client):
    fake_client.fail_with = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "Operation"
    )

    with pytest.raises(StorageError, match="PutObject"):
        await s3_store.replace_if_unchanged("bucket", "a.enc", b"first", b"second")
