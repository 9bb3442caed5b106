"""Append orchestration for S3 objects.

S3 has no append primitive, so an append is one of three strategies,
chosen after probing the target object's size:

    create     the object does not exist; the payload is written as a new
               object.
    in_memory  the object is smaller than the minimum multipart part size;
               it is downloaded, the payload is concatenated after it, and
               the result overwrites the object.
    multipart  a multipart upload is opened against the target key; the
               existing object is copied into parts 1..N server-side
               (byte ranges from the planner), the payload is uploaded as
               part N+1 concurrently, and the upload is completed. Any
               failure after the upload was opened aborts it.
"""

import asyncio
import logging

from s3append import metrics
from s3append.errors import AppendCancelled, NoSuchKey
from s3append.models import (
    AppendRequest,
    AppendResult,
    AppendStrategy,
    FanoutPolicy,
    StoreResponse,
)
from s3append.planner import (
    DEFAULT_PART_MAX_BYTES,
    MIN_PART_BYTES,
    PartRange,
    plan_part_ranges,
    validate_part_max_bytes,
)
from s3append.session import UploadSession
from s3append.storage.backend import ObjectStore

logger = logging.getLogger(__name__)


def _check_cancelled(cancel_event: asyncio.Event | None, stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise AppendCancelled(f"Append cancelled {stage}")


class ObjectAppender:
    """Appends payloads to objects held by an ObjectStore.

    Attributes:
        store: The object store to operate on.
        part_max_bytes: Default largest copy part, used when a request
            does not override it.
        fanout_policy: What happens to sibling part operations when one
            of them fails.
    """

    def __init__(
        self,
        store: ObjectStore,
        part_max_bytes: int = DEFAULT_PART_MAX_BYTES,
        fanout_policy: FanoutPolicy | str = FanoutPolicy.DRAIN,
    ) -> None:
        self.store = store
        self.part_max_bytes = validate_part_max_bytes(part_max_bytes)
        self.fanout_policy = FanoutPolicy(fanout_policy)

    @classmethod
    def from_config(cls, store: ObjectStore, config) -> "ObjectAppender":
        """Build an appender from an ``AppendConfig``."""
        return cls(
            store,
            part_max_bytes=config.part_max_bytes,
            fanout_policy=config.fanout_policy,
        )

    async def append(
        self, request: AppendRequest, cancel_event: asyncio.Event | None = None
    ) -> AppendResult:
        """Append the request's payload to its target object.

        Args:
            request: What to append where.
            cancel_event: Optional cancellation signal. Checked before the
                probe and before a multipart upload is opened; during the
                part fan-out it is honoured only by the ``cancel`` policy.

        Returns:
            The composite result; ``response`` is the final write.

        Raises:
            InvalidInput: If the request's part size override is out of
                bounds, or the existing object needs too many parts.
            AppendCancelled: If the cancellation signal was observed.
            Exception: Whatever the object store raised, unchanged.
        """
        part_max_bytes = self.part_max_bytes
        if request.part_max_bytes is not None:
            part_max_bytes = validate_part_max_bytes(request.part_max_bytes)

        _check_cancelled(cancel_event, "before probing the target object")
        log_extra = {"bucket": request.bucket, "key": request.key}
        strategy: AppendStrategy | None = None
        try:
            try:
                metadata = await self.store.head_object(
                    request.bucket,
                    request.key,
                    request.source_version_id,
                    request.attributes,
                )
            except NoSuchKey:
                # A missing pinned version is an error, not a new object.
                if request.source_version_id:
                    raise
                metadata = None

            if metadata is None:
                strategy = AppendStrategy.CREATE
                logger.info(
                    "%s/%s does not exist, creating it",
                    request.bucket,
                    request.key,
                    extra={**log_extra, "strategy": strategy.value},
                )
                result = await self._create(request)
            elif metadata.content_length < MIN_PART_BYTES:
                strategy = AppendStrategy.IN_MEMORY
                logger.info(
                    "Appending in memory to %s/%s (%d bytes)",
                    request.bucket,
                    request.key,
                    metadata.content_length,
                    extra={**log_extra, "strategy": strategy.value},
                )
                result = await self._append_in_memory(request, metadata)
            else:
                strategy = AppendStrategy.MULTIPART
                logger.info(
                    "Appending via multipart copy to %s/%s (%d bytes)",
                    request.bucket,
                    request.key,
                    metadata.content_length,
                    extra={**log_extra, "strategy": strategy.value},
                )
                result = await self._append_multipart(
                    request, metadata, part_max_bytes, cancel_event
                )
        except BaseException:
            if strategy is not None:
                metrics.observe_append(strategy.value, "failure")
            raise

        metrics.observe_append(strategy.value, "success", self._appended_bytes(result))
        return result

    @staticmethod
    def _appended_bytes(result: AppendResult) -> int:
        before = result.history[0].content_length if result.history else 0
        after = result.content_length
        if after is None or before is None:
            return 0
        return max(after - before, 0)

    async def _create(self, request: AppendRequest) -> AppendResult:
        response = await self.store.put_object(
            request.bucket, request.key, request.read_payload(), request.attributes
        )
        return AppendResult(strategy=AppendStrategy.CREATE, response=response)

    async def _append_in_memory(
        self, request: AppendRequest, metadata: StoreResponse
    ) -> AppendResult:
        fetched = await self.store.get_object(
            request.bucket,
            request.key,
            request.source_version_id,
            request.attributes,
        )
        composed = (fetched.body or b"") + request.read_payload()
        written = await self.store.put_object(
            request.bucket, request.key, composed, request.attributes
        )
        return AppendResult(
            strategy=AppendStrategy.IN_MEMORY,
            response=written,
            history=(metadata, fetched),
        )

    async def _append_multipart(
        self,
        request: AppendRequest,
        metadata: StoreResponse,
        part_max_bytes: int,
        cancel_event: asyncio.Event | None,
    ) -> AppendResult:
        # Planning and reading the payload cannot leave an upload behind.
        ranges = plan_part_ranges(metadata.content_length, part_max_bytes)
        payload = request.read_payload()

        _check_cancelled(cancel_event, "before opening a multipart upload")
        session, initiated = await UploadSession.initiate(
            self.store, request.bucket, request.key, request.attributes
        )
        async with session:
            await self._fan_out(session, request, ranges, payload, cancel_event)
            completed = await session.complete(expected_parts=len(ranges) + 1)

        logger.info(
            "Completed multipart append to %s/%s: %d copied parts + 1 uploaded part",
            request.bucket,
            request.key,
            len(ranges),
            extra={
                "bucket": request.bucket,
                "key": request.key,
                "upload_id": session.upload_id,
                "strategy": AppendStrategy.MULTIPART.value,
            },
        )
        return AppendResult(
            strategy=AppendStrategy.MULTIPART,
            response=completed,
            history=(metadata, initiated),
        )

    async def _fan_out(
        self,
        session: UploadSession,
        request: AppendRequest,
        ranges: list[PartRange],
        payload: bytes,
        cancel_event: asyncio.Event | None,
    ) -> None:
        """Run every copy part and the payload upload concurrently.

        Returns only once every dispatched operation has settled. Raises
        the first failure to occur, unchanged.
        """
        operations = [
            self._copy_part(session, request, part_number, part_range)
            for part_number, part_range in enumerate(ranges, start=1)
        ]
        operations.append(self._upload_part(session, request, len(ranges) + 1, payload))

        failures: list[BaseException] = []

        def _collect(task: asyncio.Task) -> None:
            if not task.cancelled() and task.exception() is not None:
                failures.append(task.exception())

        tasks = [asyncio.ensure_future(op) for op in operations]
        for task in tasks:
            task.add_done_callback(_collect)

        cancelled_by_signal = False
        try:
            if self.fanout_policy is FanoutPolicy.CANCEL:
                cancelled_by_signal = await self._wait_or_cancel(tasks, cancel_event)
            else:
                await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            # Never leave part operations running behind the session.
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)

        if failures:
            raise failures[0]
        if cancelled_by_signal or any(task.cancelled() for task in tasks):
            raise AppendCancelled(
                f"Append cancelled while writing parts of upload {session.upload_id}"
            )

    @staticmethod
    async def _wait_or_cancel(
        tasks: list[asyncio.Task], cancel_event: asyncio.Event | None
    ) -> bool:
        """Wait for ``tasks``, stopping at the first failure or signal.

        Returns:
            True if the cancellation signal stopped the wait.
        """
        pending = set(tasks)
        watcher = asyncio.ensure_future(cancel_event.wait()) if cancel_event else None
        try:
            while pending:
                waiting = pending | {watcher} if watcher is not None else pending
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                pending -= done
                if watcher is not None and watcher in done:
                    return True
                if any(not t.cancelled() and t.exception() is not None for t in done):
                    return False
            return False
        finally:
            if watcher is not None and not watcher.done():
                watcher.cancel()

    async def _copy_part(
        self,
        session: UploadSession,
        request: AppendRequest,
        part_number: int,
        part_range: PartRange,
    ) -> None:
        logger.debug(
            "Copying %s of %s/%s into part %d",
            part_range.as_http_range(),
            request.bucket,
            request.key,
            part_number,
            extra={"upload_id": session.upload_id, "part_number": part_number},
        )
        etag = await self.store.upload_part_copy(
            request.bucket,
            request.key,
            session.upload_id,
            part_number,
            request.bucket,
            request.key,
            part_range.first,
            part_range.last,
            request.source_version_id,
            request.attributes,
        )
        session.record_part(part_number, etag)
        metrics.observe_part("copy")

    async def _upload_part(
        self,
        session: UploadSession,
        request: AppendRequest,
        part_number: int,
        payload: bytes,
    ) -> None:
        logger.debug(
            "Uploading %d payload bytes as part %d",
            len(payload),
            part_number,
            extra={"upload_id": session.upload_id, "part_number": part_number},
        )
        etag = await self.store.upload_part(
            request.bucket,
            request.key,
            session.upload_id,
            part_number,
            payload,
            request.attributes,
        )
        session.record_part(part_number, etag)
        metrics.observe_part("upload")
