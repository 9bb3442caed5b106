"""In-memory object store for s3append.

Implements the ObjectStore protocol using Python dictionaries, emulating
the S3 behaviour an append depends on: object versions, multipart
sessions, server-side range copies and the part-size rules enforced on
completion. Intended for local runs and tests.
"""

import asyncio
import binascii
import hashlib
import logging
import uuid
from dataclasses import dataclass, field

from s3append.errors import (
    EntityTooSmall,
    InvalidPart,
    InvalidPartOrder,
    InvalidRange,
    NoSuchKey,
    NoSuchUpload,
)
from s3append.models import ObjectAttributes, StoreResponse
from s3append.planner import MIN_PART_BYTES

logger = logging.getLogger(__name__)


def _etag(data: bytes) -> str:
    return f'"{hashlib.md5(data).hexdigest()}"'


def _composite_etag(part_etags: list[str]) -> str:
    """Compute the S3 composite ETag from individual part ETags.

    The binary MD5 digests of each part are concatenated and hashed, and
    the part count is appended after a dash.
    """
    binary_md5s = b""
    for etag in part_etags:
        binary_md5s += binascii.unhexlify(etag.strip('"'))
    final_md5 = hashlib.md5(binary_md5s).hexdigest()
    return f'"{final_md5}-{len(part_etags)}"'


@dataclass
class StoredObject:
    """A single version of an object held in memory."""

    data: bytes
    etag: str
    version_id: str
    attributes: ObjectAttributes = field(default_factory=ObjectAttributes)


@dataclass
class PendingUpload:
    """An open multipart upload and the parts stored for it so far."""

    bucket: str
    key: str
    attributes: ObjectAttributes
    # part_number -> (data, etag)
    parts: dict[int, tuple[bytes, str]] = field(default_factory=dict)


class MemoryObjectStore:
    """Object store that holds every object and multipart part in memory.

    Current objects are keyed by (bucket, key); every version ever written
    stays addressable by (bucket, key, version_id) so range copies and
    fetches can pin a source version.

    Attributes:
        min_part_size: Smallest size allowed for every part but the last
            on completion.
        calls: Ordered log of the operations invoked on the store.
    """

    def __init__(self, min_part_size: int = MIN_PART_BYTES) -> None:
        self.min_part_size = min_part_size
        self.calls: list[str] = []
        self._objects: dict[tuple[str, str], StoredObject] = {}
        self._versions: dict[tuple[str, str, str], StoredObject] = {}
        self._uploads: dict[str, PendingUpload] = {}

    async def init(self) -> None:
        logger.info("Memory object store initialized (objects=%d)", len(self._objects))

    async def close(self) -> None:
        pass

    # -- helpers -----------------------------------------------------------

    def _store(self, bucket: str, key: str, data: bytes, etag: str, attributes: ObjectAttributes) -> StoredObject:
        obj = StoredObject(
            data=data,
            etag=etag,
            version_id=uuid.uuid4().hex,
            attributes=attributes,
        )
        self._objects[(bucket, key)] = obj
        self._versions[(bucket, key, obj.version_id)] = obj
        return obj

    def _lookup(self, bucket: str, key: str, version_id: str | None = None) -> StoredObject:
        if version_id:
            obj = self._versions.get((bucket, key, version_id))
        else:
            obj = self._objects.get((bucket, key))
        if obj is None:
            raise NoSuchKey(key)
        return obj

    def _upload(self, bucket: str, key: str, upload_id: str) -> PendingUpload:
        upload = self._uploads.get(upload_id)
        if upload is None or (upload.bucket, upload.key) != (bucket, key):
            raise NoSuchUpload(upload_id)
        return upload

    def put_raw(self, bucket: str, key: str, data: bytes) -> str:
        """Seed an object directly, bypassing the call log.

        Returns:
            The version id of the stored object.
        """
        return self._store(bucket, key, data, _etag(data), ObjectAttributes()).version_id

    def read_raw(self, bucket: str, key: str) -> bytes:
        """Return the current content of an object, bypassing the call log.

        Raises:
            NoSuchKey: If the object does not exist.
        """
        return self._lookup(bucket, key).data

    def pending_uploads(self) -> list[str]:
        """Return the ids of multipart uploads neither completed nor aborted."""
        return list(self._uploads)

    # -- ObjectStore -------------------------------------------------------

    async def head_object(
        self,
        bucket: str,
        key: str,
        version_id: str | None = None,
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        self.calls.append("head_object")
        obj = self._lookup(bucket, key, version_id)
        return StoreResponse(
            operation="head_object",
            content_length=len(obj.data),
            etag=obj.etag,
            version_id=obj.version_id,
        )

    async def get_object(
        self,
        bucket: str,
        key: str,
        version_id: str | None = None,
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        self.calls.append("get_object")
        obj = self._lookup(bucket, key, version_id)
        return StoreResponse(
            operation="get_object",
            content_length=len(obj.data),
            etag=obj.etag,
            version_id=obj.version_id,
            body=obj.data,
        )

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        self.calls.append("put_object")
        obj = self._store(bucket, key, bytes(data), _etag(data), attributes or ObjectAttributes())
        return StoreResponse(
            operation="put_object",
            content_length=len(obj.data),
            etag=obj.etag,
            version_id=obj.version_id,
        )

    async def create_multipart_upload(
        self, bucket: str, key: str, attributes: ObjectAttributes | None = None
    ) -> StoreResponse:
        self.calls.append("create_multipart_upload")
        upload_id = uuid.uuid4().hex
        self._uploads[upload_id] = PendingUpload(
            bucket=bucket, key=key, attributes=attributes or ObjectAttributes()
        )
        return StoreResponse(operation="create_multipart_upload", upload_id=upload_id)

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
        attributes: ObjectAttributes | None = None,
    ) -> str:
        self.calls.append("upload_part")
        # Yield so concurrently dispatched parts interleave.
        await asyncio.sleep(0)
        upload = self._upload(bucket, key, upload_id)
        etag = _etag(data)
        upload.parts[part_number] = (bytes(data), etag)
        return etag

    async def upload_part_copy(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        source_bucket: str,
        source_key: str,
        first_byte: int,
        last_byte: int,
        source_version_id: str | None = None,
        attributes: ObjectAttributes | None = None,
    ) -> str:
        self.calls.append("upload_part_copy")
        await asyncio.sleep(0)
        upload = self._upload(bucket, key, upload_id)
        source = self._lookup(source_bucket, source_key, source_version_id)
        if first_byte < 0 or last_byte < first_byte or last_byte >= len(source.data):
            raise InvalidRange(
                f"Range bytes={first_byte}-{last_byte} is outside "
                f"{source_bucket}/{source_key} ({len(source.data)} bytes)"
            )
        data = source.data[first_byte:last_byte + 1]
        etag = _etag(data)
        upload.parts[part_number] = (data, etag)
        return etag

    async def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: list[tuple[int, str]],
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        """Assemble parts, validating order, ETags and part sizes.

        Raises:
            NoSuchUpload: If the upload is unknown.
            InvalidPartOrder: If part numbers are not strictly ascending.
            InvalidPart: If a part is missing or its ETag does not match.
            EntityTooSmall: If a part other than the last is below
                ``min_part_size``.
        """
        self.calls.append("complete_multipart_upload")
        upload = self._upload(bucket, key, upload_id)
        if not parts:
            raise InvalidPart("No parts specified")

        prev_pn = 0
        for pn, _ in parts:
            if pn <= prev_pn:
                raise InvalidPartOrder()
            prev_pn = pn

        chunks: list[bytes] = []
        for pn, etag in parts:
            stored = upload.parts.get(pn)
            if stored is None or stored[1].strip('"') != etag.strip('"'):
                raise InvalidPart(
                    f"Part {pn} was not uploaded or its entity tag did not match."
                )
            chunks.append(stored[0])

        for (pn, _), chunk in zip(parts[:-1], chunks[:-1]):
            if len(chunk) < self.min_part_size:
                raise EntityTooSmall(
                    f"Your proposed upload is smaller than the minimum allowed size. "
                    f"Part {pn} has size {len(chunk)} bytes."
                )

        data = b"".join(chunks)
        etag = _composite_etag([upload.parts[pn][1] for pn, _ in parts])
        obj = self._store(bucket, key, data, etag, upload.attributes)
        del self._uploads[upload_id]
        return StoreResponse(
            operation="complete_multipart_upload",
            content_length=len(data),
            etag=etag,
            version_id=obj.version_id,
            upload_id=upload_id,
        )

    async def abort_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        attributes: ObjectAttributes | None = None,
    ) -> None:
        self.calls.append("abort_multipart_upload")
        self._upload(bucket, key, upload_id)
        del self._uploads[upload_id]
        logger.debug("Memory object store: aborted upload %s", upload_id)
