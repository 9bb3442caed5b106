"""Scoped multipart upload session.

An ``UploadSession`` exists only after the object store accepted a
multipart initiate. Used as an async context manager it guarantees that
the upload is released exactly once: by a successful ``complete()``, or
by an abort when the block exits with any exception (including task
cancellation). The abort is shielded from cancellation, and its own
failure is logged and attached to the original exception rather than
raised in its place.
"""

from __future__ import annotations

import asyncio
import logging

from s3append import metrics
from s3append.errors import CleanupFailure
from s3append.models import ObjectAttributes, StoreResponse
from s3append.storage.backend import ObjectStore

logger = logging.getLogger(__name__)

_OPEN = "open"
_COMPLETED = "completed"
_ABORTED = "aborted"


class UploadSession:
    """An open multipart upload owned by a single append call.

    Attributes:
        upload_id: The store-assigned multipart upload id.
        bucket: The target bucket.
        key: The target key.
    """

    def __init__(
        self,
        store: ObjectStore,
        bucket: str,
        key: str,
        upload_id: str,
        attributes: ObjectAttributes | None = None,
    ) -> None:
        self.store = store
        self.bucket = bucket
        self.key = key
        self.upload_id = upload_id
        self.attributes = attributes or ObjectAttributes()
        self._etags: dict[int, str] = {}
        self._state = _OPEN

    @classmethod
    async def initiate(
        cls,
        store: ObjectStore,
        bucket: str,
        key: str,
        attributes: ObjectAttributes | None = None,
    ) -> tuple[UploadSession, StoreResponse]:
        """Open a multipart upload and wrap it in a session.

        Returns:
            The session and the store's initiate response.
        """
        response = await store.create_multipart_upload(bucket, key, attributes)
        logger.info(
            "Opened multipart upload %s for %s/%s",
            response.upload_id,
            bucket,
            key,
            extra={"bucket": bucket, "key": key, "upload_id": response.upload_id},
        )
        return cls(store, bucket, key, response.upload_id, attributes), response

    @property
    def is_open(self) -> bool:
        return self._state == _OPEN

    @property
    def parts(self) -> list[tuple[int, str]]:
        """Recorded ``(part_number, etag)`` pairs in ascending part order."""
        return sorted(self._etags.items())

    def record_part(self, part_number: int, etag: str) -> None:
        """Record the ETag of a finished part.

        Raises:
            ValueError: If the part number was already recorded.
        """
        if part_number in self._etags:
            raise ValueError(f"Part {part_number} of upload {self.upload_id} recorded twice")
        self._etags[part_number] = etag

    async def complete(self, expected_parts: int | None = None) -> StoreResponse:
        """Assemble the recorded parts into the final object.

        Args:
            expected_parts: When given, the number of parts that must have
                been recorded.

        Raises:
            RuntimeError: If the session is no longer open.
            ValueError: If fewer or more parts than expected were recorded.
        """
        if not self.is_open:
            raise RuntimeError(f"Multipart upload {self.upload_id} is already {self._state}")
        if expected_parts is not None and len(self._etags) != expected_parts:
            raise ValueError(
                f"Expected {expected_parts} parts for upload {self.upload_id}, "
                f"recorded {len(self._etags)}"
            )
        response = await self.store.complete_multipart_upload(
            self.bucket, self.key, self.upload_id, self.parts, self.attributes
        )
        self._state = _COMPLETED
        return response

    async def abort(self) -> None:
        """Abort the upload. Only the first call reaches the store."""
        if not self.is_open:
            return
        self._state = _ABORTED
        await self.store.abort_multipart_upload(
            self.bucket, self.key, self.upload_id, self.attributes
        )

    async def __aenter__(self) -> UploadSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is not None and self.is_open:
            await self._abort_after(exc)
        return False

    async def _abort_after(self, exc: BaseException) -> None:
        logger.info(
            "Aborting multipart upload %s for %s/%s after %s",
            self.upload_id,
            self.bucket,
            self.key,
            type(exc).__name__,
            extra={"bucket": self.bucket, "key": self.key, "upload_id": self.upload_id},
        )
        task = asyncio.ensure_future(self.abort())
        task.add_done_callback(self._report_abort)
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            # The abort keeps running; _report_abort logs its outcome.
            raise
        except Exception as abort_exc:
            failure = CleanupFailure(self.upload_id, abort_exc)
            exc.add_note(str(failure))
            exc.__cleanup_failure__ = failure

    def _report_abort(self, task: asyncio.Future) -> None:
        if task.cancelled():
            metrics.observe_abort("failure")
            logger.warning("Abort of multipart upload %s was cancelled", self.upload_id)
            return
        abort_exc = task.exception()
        if abort_exc is None:
            metrics.observe_abort("success")
            return
        metrics.observe_abort("failure")
        logger.warning(
            "Failed to abort multipart upload %s for %s/%s: %s",
            self.upload_id,
            self.bucket,
            self.key,
            abort_exc,
            extra={"bucket": self.bucket, "key": self.key, "upload_id": self.upload_id},
        )
