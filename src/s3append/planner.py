"""Byte-range planning for server-side multipart copies.

S3 rejects multipart parts smaller than 5 MiB (except the last one) and
larger than 5 GiB, and allows at most 10000 parts per upload. The planner
splits an existing object into copy ranges that respect those limits so
the appended payload can follow as the final part.

See https://docs.aws.amazon.com/AmazonS3/latest/userguide/qfacts.html
"""

from __future__ import annotations

from dataclasses import dataclass

from s3append.errors import InvalidInput

MIN_PART_BYTES = 5 * 1024 * 1024  # 5 MiB
ABSOLUTE_MAX_PART_BYTES = 5 * 1024 * 1024 * 1024  # 5 GiB
DEFAULT_PART_MAX_BYTES = 1024 * 1024 * 1024  # 1 GiB
MAX_PART_NUMBER = 10000


@dataclass(frozen=True)
class PartRange:
    """An inclusive byte interval ``[first, last]`` of the source object."""

    first: int
    last: int

    @property
    def length(self) -> int:
        return self.last - self.first + 1

    def as_http_range(self) -> str:
        """Format the range as an HTTP ``Range``/``x-amz-copy-source-range`` value."""
        return f"bytes={self.first}-{self.last}"


def validate_part_max_bytes(part_max_bytes: int) -> int:
    """Check a maximum part size against the service limits.

    The lower bound of twice the minimum part size guarantees that a
    rebalanced tail never leaves a part below the minimum.

    Raises:
        InvalidInput: If the value lies outside
            ``[2 * MIN_PART_BYTES, ABSOLUTE_MAX_PART_BYTES]``.
    """
    if not 2 * MIN_PART_BYTES <= part_max_bytes <= ABSOLUTE_MAX_PART_BYTES:
        raise InvalidInput(
            f"part_max_bytes must lie in [{2 * MIN_PART_BYTES}, "
            f"{ABSOLUTE_MAX_PART_BYTES}], got {part_max_bytes}"
        )
    return part_max_bytes


def plan_part_ranges(
    total_bytes: int,
    part_max_bytes: int = DEFAULT_PART_MAX_BYTES,
    enforce_min_size: bool = True,
) -> list[PartRange]:
    """Divide ``total_bytes`` into contiguous copy ranges.

    Ranges of ``part_max_bytes`` are emitted greedily from byte 0; the
    remainder becomes the final range. When ``enforce_min_size`` is set and
    that final range is shorter than ``MIN_PART_BYTES``, the penultimate
    range gives up exactly ``MIN_PART_BYTES`` bytes from its end to the
    final range. Both resulting lengths stay within
    ``[MIN_PART_BYTES, part_max_bytes]``.

    Args:
        total_bytes: Size of the object being copied.
        part_max_bytes: Largest range to emit.
        enforce_min_size: Rebalance a too-short final range.

    Returns:
        Ranges ordered by offset, starting at 0 and ending at
        ``total_bytes - 1``.

    Raises:
        InvalidInput: If ``total_bytes`` is below ``MIN_PART_BYTES``, if
            ``part_max_bytes`` is out of bounds, or if the plan would need
            more parts than a multipart upload allows.
    """
    if total_bytes < MIN_PART_BYTES:
        raise InvalidInput(
            "Multipart copy cannot be used for objects smaller than "
            f"{MIN_PART_BYTES} bytes, got {total_bytes}"
        )
    validate_part_max_bytes(part_max_bytes)

    # One part number is reserved for the appended payload.
    part_count = -(-total_bytes // part_max_bytes)
    if part_count > MAX_PART_NUMBER - 1:
        raise InvalidInput(
            f"{total_bytes} bytes need {part_count} parts of at most "
            f"{part_max_bytes} bytes; at most {MAX_PART_NUMBER - 1} are allowed"
        )

    ranges: list[PartRange] = []
    first = 0
    while first < total_bytes:
        last = min(first + part_max_bytes, total_bytes) - 1
        ranges.append(PartRange(first, last))
        first = last + 1

    tail = ranges[-1]
    if enforce_min_size and tail.length < MIN_PART_BYTES:
        penultimate = ranges[-2]
        split = penultimate.last - MIN_PART_BYTES
        ranges[-2] = PartRange(penultimate.first, split)
        ranges[-1] = PartRange(split + 1, tail.last)

    return ranges
