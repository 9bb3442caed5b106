"""Data model types for s3append.

These dataclasses describe an append request, the opaque object
attributes passed through to the object store, the responses the store
returns, and the composite result of an append.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

from s3append.errors import InvalidInput


class AppendStrategy(str, enum.Enum):
    """How an append was carried out."""

    CREATE = "create"
    IN_MEMORY = "in_memory"
    MULTIPART = "multipart"


class FanoutPolicy(str, enum.Enum):
    """What happens to sibling part operations when one of them fails.

    DRAIN waits for every dispatched operation to settle before aborting.
    CANCEL cancels the operations still running (also when the caller's
    cancellation signal fires) and awaits them before aborting.
    """

    DRAIN = "drain"
    CANCEL = "cancel"


@dataclass(frozen=True)
class ObjectAttributes:
    """Attributes passed through to the object store untouched.

    Attributes:
        content_type: MIME type of the resulting object.
        acl: Canned ACL (e.g. 'private', 'bucket-owner-full-control').
        grants: Explicit grant headers keyed by S3 parameter name
            (e.g. {'GrantRead': 'id=...'}).
        storage_class: S3 storage class.
        tagging: URL-encoded tag set ('k1=v1&k2=v2').
        metadata: User metadata.
        website_redirect_location: Redirect target for website buckets.
        server_side_encryption: 'AES256', 'aws:kms', ...
        sse_kms_key_id: KMS key id for 'aws:kms'.
        sse_kms_encryption_context: Base64 JSON KMS encryption context.
        bucket_key_enabled: Use an S3 bucket key for SSE-KMS.
        sse_customer_algorithm: SSE-C algorithm for the target object.
        sse_customer_key: SSE-C key for the target object.
        sse_customer_key_md5: MD5 of the SSE-C key.
        copy_source_sse_customer_algorithm: SSE-C algorithm of the copy source.
        copy_source_sse_customer_key: SSE-C key of the copy source.
        copy_source_sse_customer_key_md5: MD5 of the copy-source SSE-C key.
        expected_bucket_owner: Account id the bucket must belong to.
        request_payer: 'requester' for requester-pays buckets.
    """

    content_type: str | None = None
    acl: str | None = None
    grants: dict[str, str] = field(default_factory=dict)
    storage_class: str | None = None
    tagging: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    website_redirect_location: str | None = None
    server_side_encryption: str | None = None
    sse_kms_key_id: str | None = None
    sse_kms_encryption_context: str | None = None
    bucket_key_enabled: bool | None = None
    sse_customer_algorithm: str | None = None
    sse_customer_key: str | None = None
    sse_customer_key_md5: str | None = None
    copy_source_sse_customer_algorithm: str | None = None
    copy_source_sse_customer_key: str | None = None
    copy_source_sse_customer_key_md5: str | None = None
    expected_bucket_owner: str | None = None
    request_payer: str | None = None


@dataclass(frozen=True)
class AppendRequest:
    """A request to append a payload to an object.

    Exactly one of ``data``, ``stream`` and ``file_path`` carries the
    payload. The request is never modified; the appender derives every
    store call from it.

    Attributes:
        bucket: The bucket holding the target object.
        key: The target object key.
        data: Payload bytes (a str is encoded as UTF-8).
        stream: Binary file-like payload.
        file_path: Path of a file whose contents are the payload.
        part_max_bytes: Largest copy part for this request, overriding the
            appender default.
        source_version_id: Version of the existing object to read from.
        attributes: Passthrough attributes for the resulting object.
        reset_stream_position: Rewind a seekable ``stream`` before reading.
    """

    bucket: str
    key: str
    data: bytes | str | None = None
    stream: BinaryIO | None = None
    file_path: str | Path | None = None
    part_max_bytes: int | None = None
    source_version_id: str | None = None
    attributes: ObjectAttributes = field(default_factory=ObjectAttributes)
    reset_stream_position: bool = True

    def __post_init__(self) -> None:
        if not self.bucket or not self.key:
            raise InvalidInput("bucket and key are required")
        sources = [s for s in (self.data, self.stream, self.file_path) if s is not None]
        if len(sources) != 1:
            raise InvalidInput(
                "Exactly one of data, stream or file_path must be set, "
                f"got {len(sources)}"
            )

    def read_payload(self) -> bytes:
        """Return the payload as bytes.

        Reading a stream consumes it; seekable streams are rewound first
        when ``reset_stream_position`` is set.
        """
        if self.data is not None:
            if isinstance(self.data, str):
                return self.data.encode("utf-8")
            return bytes(self.data)
        if self.stream is not None:
            if self.reset_stream_position and self.stream.seekable():
                self.stream.seek(0)
            return self.stream.read()
        with open(self.file_path, "rb") as fh:
            return fh.read()


@dataclass(frozen=True)
class StoreResponse:
    """The outcome of a single object-store call.

    Attributes:
        operation: Store operation name (e.g. 'head_object').
        status_code: HTTP status reported by the store.
        content_length: Size reported by the call, if any. For head/get this
            is the object size, for put the number of bytes written.
        etag: ETag of the object or part, if any.
        version_id: Version id of the object, if any.
        upload_id: Multipart upload id, for initiate calls.
        body: Object content, for fetches only.
        raw: The store's native response, for diagnostics.
    """

    operation: str
    status_code: int = 200
    content_length: int | None = None
    etag: str | None = None
    version_id: str | None = None
    upload_id: str | None = None
    body: bytes | None = field(default=None, repr=False)
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class AppendResult:
    """Composite outcome of an append.

    ``response`` is the final, authoritative store response (the overwrite
    or multipart completion); ``history`` lists the responses that led up
    to it, in call order. Individual part results are not retained.
    """

    strategy: AppendStrategy
    response: StoreResponse
    history: tuple[StoreResponse, ...] = ()

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def content_length(self) -> int | None:
        return self.response.content_length

    @property
    def etag(self) -> str | None:
        return self.response.etag

    @property
    def responses(self) -> tuple[StoreResponse, ...]:
        return (*self.history, self.response)
