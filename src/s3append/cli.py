"""CLI entry point for s3append."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from s3append import metrics
from s3append.appender import ObjectAppender
from s3append.config import S3AppendConfig, load_config
from s3append.logging_config import configure_logging
from s3append.models import AppendRequest
from s3append.planner import validate_part_max_bytes
from s3append.storage import create_object_store

logger = logging.getLogger("s3append")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="s3append",
        description="Append a file to an object in S3",
    )
    parser.add_argument("bucket", help="Bucket holding the target object")
    parser.add_argument("key", help="Key of the target object")
    parser.add_argument("file", help="File whose contents are appended ('-' for stdin)")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: built-in defaults)",
    )
    parser.add_argument(
        "--endpoint-url",
        type=str,
        default=None,
        help="S3 endpoint URL (overrides config)",
    )
    parser.add_argument(
        "--part-max-bytes",
        type=int,
        default=None,
        help="Largest multipart copy part in bytes (overrides config)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    return parser.parse_args(argv)


async def run(config: S3AppendConfig, request: AppendRequest) -> int:
    """Append using the configured store and print the outcome."""
    store = create_object_store(config.storage)
    await store.init()
    try:
        appender = ObjectAppender.from_config(store, config.append)
        result = await appender.append(request)
    finally:
        await store.close()

    print(
        f"{result.strategy.value}: status={result.status_code} "
        f"etag={result.etag or '-'}"
    )
    return 0


def _push_metrics(config: S3AppendConfig) -> None:
    gateway = config.observability.pushgateway_url
    try:
        metrics.push_metrics(gateway, job=config.observability.job)
    except OSError as exc:
        logger.warning("Failed to push metrics to %s: %s", gateway, exc)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the s3append CLI.

    Loads configuration, applies CLI overrides, and appends the given file
    (or stdin) to the target object.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    # Use a basic stderr logger for config-loading errors
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    try:
        config = load_config(args.config) if args.config else S3AppendConfig()
        if args.part_max_bytes is not None:
            config.append.part_max_bytes = validate_part_max_bytes(args.part_max_bytes)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)

    if config.observability.metrics and not config.observability.pushgateway_url:
        logger.error("observability.metrics requires observability.pushgateway_url")
        sys.exit(1)

    # Apply CLI overrides
    if args.endpoint_url is not None:
        config.storage.aws_endpoint_url = args.endpoint_url
    if args.log_level is not None:
        config.logging.level = args.log_level
    if args.log_format is not None:
        config.logging.format = args.log_format

    configure_logging(level=config.logging.level, fmt=config.logging.format)

    if config.observability.metrics:
        metrics.init_metrics()

    if args.file == "-":
        request = AppendRequest(bucket=args.bucket, key=args.key, stream=sys.stdin.buffer)
    else:
        request = AppendRequest(bucket=args.bucket, key=args.key, file_path=args.file)

    try:
        code = asyncio.run(run(config, request))
    except Exception as exc:
        logger.error("Append to %s/%s failed: %s", args.bucket, args.key, exc)
        code = 1
    finally:
        if config.observability.metrics:
            _push_metrics(config)
    sys.exit(code)


if __name__ == "__main__":
    main()
