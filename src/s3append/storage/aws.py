"""AWS S3 object store for s3append.

Talks to an S3 (or S3-compatible) endpoint via aiobotocore and translates
``ObjectAttributes`` into the request parameters each S3 operation
accepts. Only a 404 on probe/fetch is translated (into ``NoSuchKey``);
every other ``ClientError`` propagates unchanged.

Credentials are resolved via the standard AWS credential chain
(env vars, ~/.aws/credentials, IAM role, etc.) unless given explicitly.
"""

import logging
from typing import Any

from aiobotocore.session import AioSession
from botocore.exceptions import ClientError

from s3append.errors import NoSuchKey
from s3append.models import ObjectAttributes, StoreResponse

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def _drop_none(params: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None}


def _request_params(attrs: ObjectAttributes) -> dict[str, Any]:
    """Parameters accepted by every object-level S3 operation."""
    return _drop_none({
        "ExpectedBucketOwner": attrs.expected_bucket_owner,
        "RequestPayer": attrs.request_payer,
    })


def _sse_customer_params(attrs: ObjectAttributes) -> dict[str, Any]:
    """SSE-C parameters for reading or writing the target object."""
    return _drop_none({
        "SSECustomerAlgorithm": attrs.sse_customer_algorithm,
        "SSECustomerKey": attrs.sse_customer_key,
        "SSECustomerKeyMD5": attrs.sse_customer_key_md5,
    })


def _copy_source_sse_params(attrs: ObjectAttributes) -> dict[str, Any]:
    return _drop_none({
        "CopySourceSSECustomerAlgorithm": attrs.copy_source_sse_customer_algorithm,
        "CopySourceSSECustomerKey": attrs.copy_source_sse_customer_key,
        "CopySourceSSECustomerKeyMD5": attrs.copy_source_sse_customer_key_md5,
    })


def _object_params(attrs: ObjectAttributes) -> dict[str, Any]:
    """Parameters describing a newly written object (PutObject, CreateMultipartUpload)."""
    params = _drop_none({
        "ContentType": attrs.content_type,
        "ACL": attrs.acl,
        "StorageClass": attrs.storage_class,
        "Tagging": attrs.tagging,
        "WebsiteRedirectLocation": attrs.website_redirect_location,
        "ServerSideEncryption": attrs.server_side_encryption,
        "SSEKMSKeyId": attrs.sse_kms_key_id,
        "SSEKMSEncryptionContext": attrs.sse_kms_encryption_context,
        "BucketKeyEnabled": attrs.bucket_key_enabled,
    })
    if attrs.metadata:
        params["Metadata"] = dict(attrs.metadata)
    params.update(attrs.grants)
    params.update(_sse_customer_params(attrs))
    params.update(_request_params(attrs))
    return params


def _status(resp: dict[str, Any]) -> int:
    return resp.get("ResponseMetadata", {}).get("HTTPStatusCode", 200)


def _is_not_found(exc: ClientError) -> bool:
    code = exc.response.get("Error", {}).get("Code", "")
    return code in _NOT_FOUND_CODES


class AWSObjectStore:
    """Object store backed by a real S3 endpoint.

    Attributes:
        region: The AWS region for the client.
        endpoint_url: Custom endpoint for S3-compatible services.
        use_path_style: Force path-style addressing.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        endpoint_url: str = "",
        use_path_style: bool = False,
        access_key_id: str = "",
        secret_access_key: str = "",
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self.use_path_style = use_path_style
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self._session = AioSession()
        self._client = None
        self._client_ctx = None

    async def init(self) -> None:
        """Create the aiobotocore S3 client."""
        client_kwargs: dict = {"region_name": self.region}
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url
        if self.use_path_style:
            from botocore.config import Config as BotoConfig
            client_kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})

        # Use explicit credentials if provided, otherwise fall back to chain
        if self.access_key_id and self.secret_access_key:
            session = AioSession()
            session.set_credentials(self.access_key_id, self.secret_access_key)
            self._session = session
        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()

        logger.info(
            "AWS object store initialized: region=%s endpoint=%s",
            self.region,
            self.endpoint_url or "default",
        )

    async def close(self) -> None:
        """Close the aiobotocore client session."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    async def __aenter__(self) -> "AWSObjectStore":
        await self.init()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def head_object(
        self,
        bucket: str,
        key: str,
        version_id: str | None = None,
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        """Fetch object metadata.

        Raises:
            NoSuchKey: If the object (or the requested version) does not exist.
        """
        attrs = attributes or ObjectAttributes()
        kwargs: dict = {"Bucket": bucket, "Key": key}
        if version_id:
            kwargs["VersionId"] = version_id
        kwargs.update(_sse_customer_params(attrs))
        kwargs.update(_request_params(attrs))

        try:
            resp = await self._client.head_object(**kwargs)
        except ClientError as e:
            if _is_not_found(e):
                raise NoSuchKey(key) from e
            raise

        return StoreResponse(
            operation="head_object",
            status_code=_status(resp),
            content_length=resp.get("ContentLength", 0),
            etag=resp.get("ETag"),
            version_id=resp.get("VersionId"),
            raw=resp,
        )

    async def get_object(
        self,
        bucket: str,
        key: str,
        version_id: str | None = None,
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        """Download an object's full content.

        Raises:
            NoSuchKey: If the object does not exist.
        """
        attrs = attributes or ObjectAttributes()
        kwargs: dict = {"Bucket": bucket, "Key": key}
        if version_id:
            kwargs["VersionId"] = version_id
        kwargs.update(_sse_customer_params(attrs))
        kwargs.update(_request_params(attrs))

        try:
            resp = await self._client.get_object(**kwargs)
        except ClientError as e:
            if _is_not_found(e):
                raise NoSuchKey(key) from e
            raise

        async with resp["Body"] as stream:
            data = await stream.read()

        return StoreResponse(
            operation="get_object",
            status_code=_status(resp),
            content_length=len(data),
            etag=resp.get("ETag"),
            version_id=resp.get("VersionId"),
            body=data,
            raw={k: v for k, v in resp.items() if k != "Body"},
        )

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        """Upload a complete object."""
        attrs = attributes or ObjectAttributes()
        resp = await self._client.put_object(
            Bucket=bucket, Key=key, Body=data, **_object_params(attrs)
        )
        return StoreResponse(
            operation="put_object",
            status_code=_status(resp),
            content_length=len(data),
            etag=resp.get("ETag"),
            version_id=resp.get("VersionId"),
            raw=resp,
        )

    async def create_multipart_upload(
        self, bucket: str, key: str, attributes: ObjectAttributes | None = None
    ) -> StoreResponse:
        """Start a native S3 multipart upload."""
        attrs = attributes or ObjectAttributes()
        resp = await self._client.create_multipart_upload(
            Bucket=bucket, Key=key, **_object_params(attrs)
        )
        return StoreResponse(
            operation="create_multipart_upload",
            status_code=_status(resp),
            upload_id=resp["UploadId"],
            raw=resp,
        )

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
        attributes: ObjectAttributes | None = None,
    ) -> str:
        """Upload one part and return its ETag."""
        attrs = attributes or ObjectAttributes()
        resp = await self._client.upload_part(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=data,
            **_sse_customer_params(attrs),
            **_request_params(attrs),
        )
        return resp["ETag"]

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
        """Copy a byte range of the source object into one part (server-side)."""
        attrs = attributes or ObjectAttributes()
        copy_source = {"Bucket": source_bucket, "Key": source_key}
        if source_version_id:
            copy_source["VersionId"] = source_version_id

        kwargs: dict = {
            "Bucket": bucket,
            "Key": key,
            "UploadId": upload_id,
            "PartNumber": part_number,
            "CopySource": copy_source,
            "CopySourceRange": f"bytes={first_byte}-{last_byte}",
        }
        kwargs.update(_copy_source_sse_params(attrs))
        kwargs.update(_sse_customer_params(attrs))
        kwargs.update(_request_params(attrs))
        if attrs.expected_bucket_owner:
            kwargs["ExpectedSourceBucketOwner"] = attrs.expected_bucket_owner

        resp = await self._client.upload_part_copy(**kwargs)
        return resp["CopyPartResult"]["ETag"]

    async def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: list[tuple[int, str]],
        attributes: ObjectAttributes | None = None,
    ) -> StoreResponse:
        """Assemble the parts into the final object."""
        attrs = attributes or ObjectAttributes()
        resp = await self._client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={
                "Parts": [{"ETag": etag, "PartNumber": pn} for pn, etag in parts]
            },
            **_request_params(attrs),
        )
        return StoreResponse(
            operation="complete_multipart_upload",
            status_code=_status(resp),
            etag=resp.get("ETag"),
            version_id=resp.get("VersionId"),
            upload_id=upload_id,
            raw=resp,
        )

    async def abort_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        attributes: ObjectAttributes | None = None,
    ) -> None:
        """Abort the multipart upload, discarding its parts."""
        attrs = attributes or ObjectAttributes()
        await self._client.abort_multipart_upload(
            Bucket=bucket, Key=key, UploadId=upload_id, **_request_params(attrs)
        )
