"""Error definitions for s3append."""


class S3AppendError(Exception):
    """Base class for every error raised by s3append itself."""


class InvalidInput(S3AppendError, ValueError):
    """A caller-supplied value violates a precondition.

    Raised before any request reaches the object store, so nothing needs
    to be cleaned up.
    """


class AppendCancelled(S3AppendError):
    """The caller's cancellation signal stopped the append."""


class CleanupFailure(S3AppendError):
    """Aborting an open multipart upload failed.

    Never raised in place of the error that triggered the abort; it is
    logged and attached to that error instead.

    Attributes:
        upload_id: The multipart upload that could not be aborted.
        cause: The exception raised by the abort call.
    """

    def __init__(self, upload_id: str, cause: BaseException) -> None:
        super().__init__(f"Failed to abort multipart upload {upload_id}: {cause!r}")
        self.upload_id = upload_id
        self.cause = cause


class S3Error(S3AppendError):
    """An S3-compatible error with code, message, and HTTP status.

    Attributes:
        code: The S3 error code string (e.g. "NoSuchKey", "EntityTooSmall").
        message: Human-readable error description.
        http_status: The HTTP status code the service would answer with.
        extra_fields: Additional key-value pairs describing the error.
    """

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 400,
        extra_fields: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra_fields = extra_fields or {}


# -- Common pre-defined errors ------------------------------------------------


class NoSuchKey(S3Error):
    """The specified key does not exist."""

    def __init__(self, key: str = "") -> None:
        super().__init__(
            code="NoSuchKey",
            message="The specified key does not exist.",
            http_status=404,
            extra_fields={"Key": key} if key else {},
        )


class NoSuchUpload(S3Error):
    """The specified multipart upload does not exist."""

    def __init__(self, upload_id: str = "") -> None:
        super().__init__(
            code="NoSuchUpload",
            message="The specified multipart upload does not exist.",
            http_status=404,
            extra_fields={"UploadId": upload_id} if upload_id else {},
        )


class InvalidPart(S3Error):
    """One or more of the specified parts could not be found."""

    def __init__(self, message: str = "One or more of the specified parts could not be found.") -> None:
        super().__init__(code="InvalidPart", message=message, http_status=400)


class InvalidPartOrder(S3Error):
    """The list of parts was not in ascending order."""

    def __init__(self) -> None:
        super().__init__(
            code="InvalidPartOrder",
            message="The list of parts was not in ascending order.",
            http_status=400,
        )


class EntityTooSmall(S3Error):
    """A non-final part is smaller than the minimum allowed size."""

    def __init__(self, message: str = "Your proposed upload is smaller than the minimum allowed size.") -> None:
        super().__init__(code="EntityTooSmall", message=message, http_status=400)


class InvalidRange(S3Error):
    """The requested range cannot be satisfied."""

    def __init__(self, message: str = "The requested range is not satisfiable.") -> None:
        super().__init__(code="InvalidRange", message=message, http_status=416)

