"""Tests for s3append data model types."""

import io

import pytest

from s3append.errors import InvalidInput
from s3append.models import (
    AppendRequest,
    AppendResult,
    AppendStrategy,
    ObjectAttributes,
    StoreResponse,
)


class TestAppendRequestPayload:
    """Tests for payload source validation and reading."""

    def test_requires_exactly_one_source(self):
        with pytest.raises(InvalidInput, match="Exactly one"):
            AppendRequest(bucket="b", key="k")

    def test_rejects_two_sources(self):
        with pytest.raises(InvalidInput, match="got 2"):
            AppendRequest(bucket="b", key="k", data=b"x", stream=io.BytesIO(b"y"))

    def test_requires_bucket_and_key(self):
        with pytest.raises(InvalidInput):
            AppendRequest(bucket="", key="k", data=b"x")

    def test_invalid_input_is_value_error(self):
        with pytest.raises(ValueError):
            AppendRequest(bucket="b", key="k")

    def test_bytes_payload(self):
        assert AppendRequest(bucket="b", key="k", data=b"abc").read_payload() == b"abc"

    def test_empty_bytes_payload_is_a_source(self):
        assert AppendRequest(bucket="b", key="k", data=b"").read_payload() == b""

    def test_str_payload_is_utf8(self):
        request = AppendRequest(bucket="b", key="k", data="zaž")
        assert request.read_payload() == "zaž".encode("utf-8")

    def test_stream_payload_is_rewound(self):
        stream = io.BytesIO(b"stream-data")
        stream.read()
        request = AppendRequest(bucket="b", key="k", stream=stream)
        assert request.read_payload() == b"stream-data"
        # Reading twice yields the same bytes for a seekable stream
        assert request.read_payload() == b"stream-data"

    def test_stream_payload_without_reset(self):
        stream = io.BytesIO(b"0123456789")
        stream.seek(4)
        request = AppendRequest(bucket="b", key="k", stream=stream, reset_stream_position=False)
        assert request.read_payload() == b"456789"

    def test_file_payload(self, tmp_path):
        path = tmp_path / "chunk.bin"
        path.write_bytes(b"file-data")
        request = AppendRequest(bucket="b", key="k", file_path=path)
        assert request.read_payload() == b"file-data"

    def test_request_is_immutable(self):
        request = AppendRequest(bucket="b", key="k", data=b"x")
        with pytest.raises(AttributeError):
            request.key = "other"

    def test_default_attributes(self):
        request = AppendRequest(bucket="b", key="k", data=b"x")
        assert request.attributes == ObjectAttributes()


class TestAppendResult:
    """Tests for the composite AppendResult."""

    def test_final_response_is_authoritative(self):
        head = StoreResponse(operation="head_object", content_length=10)
        fetched = StoreResponse(operation="get_object", content_length=10, body=b"0" * 10)
        written = StoreResponse(operation="put_object", status_code=200, content_length=15, etag='"e"')
        result = AppendResult(
            strategy=AppendStrategy.IN_MEMORY, response=written, history=(head, fetched)
        )
        assert result.status_code == 200
        assert result.content_length == 15
        assert result.etag == '"e"'
        assert result.responses == (head, fetched, written)

    def test_history_defaults_to_empty(self):
        written = StoreResponse(operation="put_object", content_length=3)
        result = AppendResult(strategy=AppendStrategy.CREATE, response=written)
        assert result.history == ()
        assert result.responses == (written,)

    def test_strategy_values(self):
        assert AppendStrategy("multipart") is AppendStrategy.MULTIPART
        assert AppendStrategy.IN_MEMORY.value == "in_memory"
