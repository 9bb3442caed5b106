"""Append data to objects in S3 and S3-compatible object stores."""

from s3append.appender import ObjectAppender
from s3append.errors import (
    AppendCancelled,
    CleanupFailure,
    InvalidInput,
    S3AppendError,
    S3Error,
)
from s3append.models import (
    AppendRequest,
    AppendResult,
    AppendStrategy,
    FanoutPolicy,
    ObjectAttributes,
    StoreResponse,
)
from s3append.planner import (
    ABSOLUTE_MAX_PART_BYTES,
    DEFAULT_PART_MAX_BYTES,
    MIN_PART_BYTES,
    PartRange,
    plan_part_ranges,
)

__all__ = [
    "ABSOLUTE_MAX_PART_BYTES",
    "AppendCancelled",
    "AppendRequest",
    "AppendResult",
    "AppendStrategy",
    "CleanupFailure",
    "DEFAULT_PART_MAX_BYTES",
    "FanoutPolicy",
    "InvalidInput",
    "MIN_PART_BYTES",
    "ObjectAppender",
    "ObjectAttributes",
    "PartRange",
    "plan_part_ranges",
    "S3AppendError",
    "S3Error",
    "StoreResponse",
]
