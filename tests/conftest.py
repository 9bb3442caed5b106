"""Shared pytest fixtures for s3append tests.

Appends run against a fresh MemoryObjectStore per test. Multipart paths
need existing objects of at least MIN_PART_BYTES, so the size helpers
below build payloads relative to that floor.
"""

import asyncio

import pytest

from s3append.appender import ObjectAppender
from s3append.errors import S3Error
from s3append.planner import MIN_PART_BYTES
from s3append.storage.memory import MemoryObjectStore

BUCKET = "test-bucket"
KEY = "logs/app.log"

# Smallest part size the planner accepts as a maximum.
SMALL_PART_MAX = 2 * MIN_PART_BYTES


class InternalError(S3Error):
    """A server-side failure, for scripting store errors."""

    def __init__(self, message: str = "Internal Error") -> None:
        super().__init__(code="InternalError", message=message, http_status=500)


def pattern(size: int, seed: int = 0) -> bytes:
    """Deterministic, non-repeating-looking bytes of the given size."""
    block = bytes((seed + i) % 251 for i in range(251))
    return (block * (size // len(block) + 1))[:size]


@pytest.fixture
async def store() -> MemoryObjectStore:
    """A fresh in-memory object store."""
    memory = MemoryObjectStore()
    await memory.init()
    yield memory
    await memory.close()


@pytest.fixture
def appender(store: MemoryObjectStore) -> ObjectAppender:
    """An appender with the smallest allowed part size, so multipart tests stay small."""
    return ObjectAppender(store, part_max_bytes=SMALL_PART_MAX)


class FaultyStore(MemoryObjectStore):
    """MemoryObjectStore with scripted failures and gated part operations.

    ``fail(operation, exc, part_number)`` makes the named operation raise
    ``exc`` (only for that part number, when given). When ``gate`` is set,
    part operations that are not scripted to fail wait for it before doing
    their work; ``finished`` and ``cancelled`` record what happened to them.
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failures: dict[tuple[str, int | None], BaseException] = {}
        self.gate = None
        self.finished: list[int] = []
        self.cancelled: list[int] = []
        self.completed_parts: list[tuple[int, str]] | None = None
        self.after_head = None

    def fail(self, operation: str, exc: BaseException, part_number: int | None = None) -> None:
        self.failures[(operation, part_number)] = exc

    def _scripted(self, operation: str, part_number: int | None = None) -> BaseException | None:
        return self.failures.get((operation, part_number)) or self.failures.get((operation, None))

    async def _gated_part(self, operation: str, part_number: int, do_work):
        exc = self._scripted(operation, part_number)
        if exc is not None:
            self.calls.append(operation)
            raise exc
        try:
            if self.gate is not None:
                await self.gate.wait()
            etag = await do_work()
        except asyncio.CancelledError:
            self.cancelled.append(part_number)
            raise
        self.finished.append(part_number)
        return etag

    async def head_object(self, bucket, key, version_id=None, attributes=None):
        exc = self._scripted("head_object")
        if exc is not None:
            self.calls.append("head_object")
            raise exc
        resp = await super().head_object(bucket, key, version_id, attributes)
        if self.after_head is not None:
            self.after_head()
        return resp

    async def get_object(self, bucket, key, version_id=None, attributes=None):
        exc = self._scripted("get_object")
        if exc is not None:
            self.calls.append("get_object")
            raise exc
        return await super().get_object(bucket, key, version_id, attributes)

    async def upload_part_copy(self, bucket, key, upload_id, part_number, *args, **kwargs):
        parent = super()

        async def work():
            return await parent.upload_part_copy(bucket, key, upload_id, part_number, *args, **kwargs)

        return await self._gated_part("upload_part_copy", part_number, work)

    async def upload_part(self, bucket, key, upload_id, part_number, data, attributes=None):
        parent = super()

        async def work():
            return await parent.upload_part(bucket, key, upload_id, part_number, data, attributes)

        return await self._gated_part("upload_part", part_number, work)

    async def complete_multipart_upload(self, bucket, key, upload_id, parts, attributes=None):
        self.completed_parts = list(parts)
        exc = self._scripted("complete_multipart_upload")
        if exc is not None:
            self.calls.append("complete_multipart_upload")
            raise exc
        return await super().complete_multipart_upload(bucket, key, upload_id, parts, attributes)

    async def abort_multipart_upload(self, bucket, key, upload_id, attributes=None):
        exc = self._scripted("abort_multipart_upload")
        if exc is not None:
            self.calls.append("abort_multipart_upload")
            raise exc
        return await super().abort_multipart_upload(bucket, key, upload_id, attributes)


@pytest.fixture
def faulty_store() -> FaultyStore:
    """A MemoryObjectStore with scripted failures."""
    return FaultyStore()
