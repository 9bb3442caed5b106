"""Tests for the scoped multipart upload session."""

from unittest.mock import AsyncMock

import pytest
from conftest import BUCKET, KEY

from s3append.errors import CleanupFailure
from s3append.models import StoreResponse
from s3append.session import UploadSession


def _mock_store(upload_id: str = "uid-1") -> AsyncMock:
    store = AsyncMock()
    store.create_multipart_upload = AsyncMock(
        return_value=StoreResponse(operation="create_multipart_upload", upload_id=upload_id)
    )
    store.complete_multipart_upload = AsyncMock(
        return_value=StoreResponse(operation="complete_multipart_upload", etag='"x-2"')
    )
    return store


class TestInitiate:
    """Tests for UploadSession.initiate()."""

    async def test_returns_session_and_response(self):
        store = _mock_store("uid-42")

        session, response = await UploadSession.initiate(store, BUCKET, KEY)

        assert session.upload_id == "uid-42"
        assert session.is_open
        assert response.upload_id == "uid-42"
        store.create_multipart_upload.assert_awaited_once()

    async def test_initiate_failure_opens_nothing(self):
        store = _mock_store()
        store.create_multipart_upload.side_effect = RuntimeError("denied")

        with pytest.raises(RuntimeError):
            await UploadSession.initiate(store, BUCKET, KEY)

        store.abort_multipart_upload.assert_not_awaited()


class TestParts:
    """Tests for part bookkeeping."""

    def test_parts_sorted_by_number(self):
        session = UploadSession(AsyncMock(), BUCKET, KEY, "uid")
        session.record_part(3, '"c"')
        session.record_part(1, '"a"')
        session.record_part(2, '"b"')
        assert session.parts == [(1, '"a"'), (2, '"b"'), (3, '"c"')]

    def test_duplicate_part_rejected(self):
        session = UploadSession(AsyncMock(), BUCKET, KEY, "uid")
        session.record_part(1, '"a"')
        with pytest.raises(ValueError, match="recorded twice"):
            session.record_part(1, '"b"')


class TestRelease:
    """The upload is released by exactly one of complete or abort."""

    async def test_complete_passes_ordered_parts(self):
        store = _mock_store()
        session = UploadSession(store, BUCKET, KEY, "uid")
        session.record_part(2, '"b"')
        session.record_part(1, '"a"')

        async with session:
            response = await session.complete(expected_parts=2)

        assert response.etag == '"x-2"'
        assert not session.is_open
        store.complete_multipart_upload.assert_awaited_once()
        args = store.complete_multipart_upload.await_args.args
        assert args[:4] == (BUCKET, KEY, "uid", [(1, '"a"'), (2, '"b"')])
        store.abort_multipart_upload.assert_not_awaited()

    async def test_complete_checks_expected_count(self):
        store = _mock_store()
        session = UploadSession(store, BUCKET, KEY, "uid")
        session.record_part(1, '"a"')

        with pytest.raises(ValueError, match="Expected 2 parts"):
            async with session:
                await session.complete(expected_parts=2)

        store.complete_multipart_upload.assert_not_awaited()
        store.abort_multipart_upload.assert_awaited_once()

    async def test_error_in_block_aborts_once(self):
        store = _mock_store()
        session = UploadSession(store, BUCKET, KEY, "uid")

        with pytest.raises(KeyError):
            async with session:
                raise KeyError("boom")

        store.abort_multipart_upload.assert_awaited_once()
        assert store.abort_multipart_upload.await_args.args[:3] == (BUCKET, KEY, "uid")
        assert not session.is_open

    async def test_clean_exit_without_complete_does_not_abort(self):
        store = _mock_store()
        session = UploadSession(store, BUCKET, KEY, "uid")

        async with session:
            pass

        store.abort_multipart_upload.assert_not_awaited()
        assert session.is_open

    async def test_abort_is_idempotent(self):
        store = _mock_store()
        session = UploadSession(store, BUCKET, KEY, "uid")

        await session.abort()
        await session.abort()

        store.abort_multipart_upload.assert_awaited_once()

    async def test_complete_after_abort_rejected(self):
        store = _mock_store()
        session = UploadSession(store, BUCKET, KEY, "uid")
        await session.abort()

        with pytest.raises(RuntimeError, match="already aborted"):
            await session.complete()

    async def test_no_abort_after_complete(self):
        store = _mock_store()
        session = UploadSession(store, BUCKET, KEY, "uid")

        with pytest.raises(RuntimeError):
            async with session:
                await session.complete()
                raise RuntimeError("after complete")

        store.abort_multipart_upload.assert_not_awaited()

    async def test_abort_failure_is_attached_not_raised(self, caplog):
        store = _mock_store()
        store.abort_multipart_upload.side_effect = TimeoutError("slow")
        session = UploadSession(store, BUCKET, KEY, "uid")
        original = KeyError("boom")

        with pytest.raises(KeyError) as exc_info:
            async with session:
                raise original

        assert exc_info.value is original
        failure = original.__cleanup_failure__
        assert isinstance(failure, CleanupFailure)
        assert failure.upload_id == "uid"
        assert isinstance(failure.cause, TimeoutError)
        assert "Failed to abort multipart upload uid" in caplog.text
