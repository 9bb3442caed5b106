"""Configuration loading and Pydantic models for s3append."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from s3append.models import FanoutPolicy
from s3append.planner import DEFAULT_PART_MAX_BYTES, validate_part_max_bytes


class StorageConfig(BaseModel):
    """Object store configuration."""

    backend: str = "aws"
    aws_region: str = "us-east-1"
    aws_endpoint_url: str = ""
    aws_use_path_style: bool = False
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""


class AppendConfig(BaseModel):
    """Append orchestration defaults."""

    part_max_bytes: int = DEFAULT_PART_MAX_BYTES
    fanout_policy: FanoutPolicy = FanoutPolicy.DRAIN

    @field_validator("part_max_bytes")
    @classmethod
    def _check_part_max_bytes(cls, value: int) -> int:
        return validate_part_max_bytes(value)


class LoggingConfig(BaseModel):
    """Log output configuration."""

    level: str = "INFO"
    format: str = "text"


class ObservabilityConfig(BaseModel):
    """Metrics configuration.

    The CLI pushes its counters to ``pushgateway_url`` before exiting;
    library users expose ``prometheus_client.REGISTRY`` themselves.
    """

    metrics: bool = False
    pushgateway_url: str = ""
    job: str = "s3append"


class S3AppendConfig(BaseModel):
    """Top-level s3append configuration."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    append: AppendConfig = Field(default_factory=AppendConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_storage(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the storage section from YAML data.

    Handles nested structure: storage.aws.endpoint_url -> aws_endpoint_url, etc.
    """
    if data is None:
        return {}

    result: dict[str, Any] = {"backend": data.get("backend", "aws")}

    aws_section = data.get("aws")
    if isinstance(aws_section, dict):
        result["aws_region"] = aws_section.get("region", "us-east-1")
        result["aws_endpoint_url"] = aws_section.get("endpoint_url", "")
        result["aws_use_path_style"] = aws_section.get("use_path_style", False)
        result["aws_access_key_id"] = aws_section.get("access_key_id", "")
        result["aws_secret_access_key"] = aws_section.get("secret_access_key", "")

    return result


def _parse_append(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the append section from YAML data.

    Accepts ``part_max_mib`` as a convenience alternative to ``part_max_bytes``.
    """
    if data is None:
        return {}
    result: dict[str, Any] = {"fanout_policy": data.get("fanout_policy", "drain")}
    if "part_max_bytes" in data:
        result["part_max_bytes"] = data["part_max_bytes"]
    elif "part_max_mib" in data:
        result["part_max_bytes"] = int(data["part_max_mib"]) * 1024 * 1024
    return result


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the logging section from YAML data."""
    if data is None:
        return {}
    return {
        "level": data.get("level", "INFO"),
        "format": data.get("format", "text"),
    }


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {
        "metrics": data.get("metrics", False),
        "pushgateway_url": data.get("pushgateway_url", ""),
        "job": data.get("job", "s3append"),
    }


def load_config(path: Path) -> S3AppendConfig:
    """Load an S3AppendConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated S3AppendConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        pydantic.ValidationError: If a value is out of range.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return S3AppendConfig(
        storage=StorageConfig(**_parse_storage(raw.get("storage"))),
        append=AppendConfig(**_parse_append(raw.get("append"))),
        logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )
