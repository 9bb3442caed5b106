"""Abstract object-store protocol for s3append."""

from typing import Protocol

from s3append.models import ObjectAttributes, StoreResponse


class ObjectStore(Protocol):
    """Protocol defining the object-store operations an append relies on.

    All stores (AWS S3, in-memory) implement this interface. Errors are
    raised, never returned: a missing object surfaces as
    ``s3append.errors.NoSuchKey`` and any other failure propagates in the
    store's native exception type.
    """

    async def init(self) -> None:
        """Initialize the store (connect, verify access, etc.)."""
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        ...

    async def head_object(
        self,
        bucket: str,
        key: str,
        version_id: str | None = None,
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        """Fetch an object's metadata.

        Args:
            bucket: The bucket name.
            key: The object key.
            version_id: Specific version to describe, or None for the latest.
            attributes: Passthrough attributes (SSE-C keys, request payer).

        Returns:
            A response whose ``content_length`` is the object size.

        Raises:
            NoSuchKey: If the object does not exist.
        """
        ...

    async def get_object(
        self,
        bucket: str,
        key: str,
        version_id: str | None = None,
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        """Fetch an object's full content.

        Args:
            bucket: The bucket name.
            key: The object key.
            version_id: Specific version to read, or None for the latest.
            attributes: Passthrough attributes (SSE-C keys, request payer).

        Returns:
            A response carrying the content in ``body``.

        Raises:
            NoSuchKey: If the object (or version) does not exist.
        """
        ...

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        """Create or overwrite an object.

        Args:
            bucket: The bucket name.
            key: The object key.
            data: The complete object content.
            attributes: Passthrough attributes of the new object.
        """
        ...

    async def create_multipart_upload(
        self, bucket: str, key: str, attributes: ObjectAttributes | None = None
    ) -> StoreResponse:
        """Open a multipart upload session.

        Returns:
            A response carrying the session id in ``upload_id``.
        """
        ...

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
        attributes: ObjectAttributes | None = None,
    ) -> str:
        """Upload one part of a multipart upload.

        Returns:
            The part's ETag, as required by ``complete_multipart_upload``.
        """
        ...

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
        """Populate one part by copying an inclusive byte range server-side.

        Returns:
            The part's ETag, as required by ``complete_multipart_upload``.
        """
        ...

    async def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: list[tuple[int, str]],
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        """Assemble the uploaded parts into the final object.

        Args:
            parts: ``(part_number, etag)`` pairs in ascending part order.
        """
        ...

    async def abort_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        attributes: ObjectAttributes | None = None,
    ) -> None:
        """Discard a multipart upload and every part stored for it."""
        ...
