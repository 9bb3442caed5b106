"""Object store backends for s3append."""

from typing import TYPE_CHECKING

from s3append.storage.backend import ObjectStore

if TYPE_CHECKING:
    from s3append.config import StorageConfig

__all__ = [
    "create_object_store",
    "ObjectStore",
]


def create_object_store(config: "StorageConfig") -> ObjectStore:
    """Create an object store instance based on configuration.

    Args:
        config: The storage configuration.

    Returns:
        An object store implementing the ObjectStore protocol.

    Raises:
        ValueError: If the backend is unknown.
    """
    backend = config.backend

    if backend == "aws":
        from s3append.storage.aws import AWSObjectStore

        return AWSObjectStore(
            region=config.aws_region,
            endpoint_url=config.aws_endpoint_url,
            use_path_style=config.aws_use_path_style,
            access_key_id=config.aws_access_key_id,
            secret_access_key=config.aws_secret_access_key,
        )

    elif backend == "memory":
        from s3append.storage.memory import MemoryObjectStore

        return MemoryObjectStore()

    else:
        raise ValueError(f"Unknown storage backend: {backend}")
