"""CLI entry point for r2call."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import httpx
from prometheus_client import generate_latest

from r2call import metrics
from r2call.addressing import UrlStyle
from r2call.body import BodyOptions, PreparedBody, load_body
from r2call.client import R2Client, R2Endpoint
from r2call.config import R2CallConfig, load_config, resolve_profile
from r2call.credentials import CallContext, credentials_from_api_token, verify_token
from r2call.errors import ConfigurationError, R2CallError
from r2call.logging_config import configure_logging
from r2call.validation import validate_bucket_name, validate_object_key

logger = logging.getLogger("r2call")

DEFAULT_CONFIG_PATH = Path("r2call.yaml")


def surround_with_double_quotes(value: str | None) -> str | None:
    """Quote an ETag for a conditional header unless already quoted."""
    if value is None:
        return value
    if not value.startswith('"'):
        value = '"' + value
    if not value.endswith('"'):
        value += '"'
    return value


def _add_conditionals(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--if-match", help="Only if the ETag matches")
    parser.add_argument("--if-none-match", help="Only if the ETag does not match")
    parser.add_argument("--if-modified-since", help="Only if modified since (HTTP date)")
    parser.add_argument("--if-unmodified-since", help="Only if not modified since (HTTP date)")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="r2call",
        description="Manage R2 storage using the S3 compatibility API",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to YAML configuration file (default: r2call.yaml)",
    )
    parser.add_argument("--profile", default=None, help="Profile name from the config file")
    parser.add_argument(
        "--unsigned-payload",
        action="store_true",
        default=None,
        help="Skip request body signing (and thus verification)",
    )
    parser.add_argument(
        "--url-style",
        choices=[s.value for s in UrlStyle],
        default=None,
        help="Bucket addressing style (overrides config)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: WARNING)",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Log request and response headers"
    )
    parser.add_argument(
        "--metrics", action="store_true", help="Print Prometheus metrics to stderr on exit"
    )

    sub = parser.add_subparsers(dest="command", required=True, metavar="subcommand")

    sub.add_parser("list-buckets", help="List all buckets")
    for name, text in (
        ("head-bucket", "Check that a bucket exists"),
        ("create-bucket", "Create a bucket"),
        ("delete-bucket", "Delete an empty bucket"),
    ):
        sub.add_parser(name, help=text).add_argument("bucket")

    for name, text in (
        ("list-objects", "List objects within a bucket"),
        ("list-objects-v1", "List objects within a bucket (v1 API)"),
    ):
        p = sub.add_parser(name, help=text)
        p.add_argument("bucket")
        p.add_argument("--prefix")
        p.add_argument("--delimiter")
        p.add_argument("--max-keys", type=int)
        if name == "list-objects":
            p.add_argument("--continuation-token")
            p.add_argument("--start-after")
        else:
            p.add_argument("--marker")

    for name, text in (
        ("get-object", "Get an object for a given key"),
        ("head-object", "Get object metadata for a given key"),
    ):
        p = sub.add_parser(name, help=text)
        p.add_argument("bucket")
        p.add_argument("key")
        _add_conditionals(p)
        p.add_argument("--range", help="Byte range to fetch (e.g. bytes=0-99)")
        p.add_argument("--part-number", type=int)
        if name == "get-object":
            p.add_argument("--output", type=Path, help="Write the body here instead of stdout")

    p = sub.add_parser("put-object", help="Upload an object")
    p.add_argument("bucket")
    p.add_argument("key")
    p.add_argument("--file", type=Path, help="Path to the contents")
    p.add_argument("--filestream", type=Path, help="Path to the contents (streaming upload)")
    p.add_argument(
        "--bytes", dest="bytes_range", help="Range of local file to upload (e.g. 0-100)"
    )
    p.add_argument("--content-md5", help="Precomputed Content-MD5 of the contents (base64)")
    p.add_argument(
        "--compute-content-md5",
        action="store_true",
        help="Automatically compute Content-MD5 of the contents",
    )
    p.add_argument("--content-type")
    p.add_argument("--cache-control")
    p.add_argument("--content-disposition")
    p.add_argument("--content-encoding")
    p.add_argument("--content-language")
    p.add_argument("--expires")
    p.add_argument(
        "--metadata",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Custom x-amz-meta-* header (repeatable)",
    )
    p.add_argument("--if-match", help="Only overwrite if the ETag matches")
    p.add_argument("--if-none-match", help="Only write if the ETag does not match ('*')")

    p = sub.add_parser("delete-object", help="Delete an object")
    p.add_argument("bucket")
    p.add_argument("key")

    p = sub.add_parser("delete-objects", help="Delete several objects")
    p.add_argument("bucket")
    p.add_argument("keys", nargs="+")
    p.add_argument("--quiet", action="store_true", help="Only report failures")

    p = sub.add_parser("copy-object", help="Copy an object server-side")
    p.add_argument("bucket")
    p.add_argument("key")
    p.add_argument("--source-bucket", required=True)
    p.add_argument("--source-key", required=True)
    _add_conditionals(p)

    return parser.parse_args(argv)


# -- Subcommands ----------------------------------------------------------------


def _print_response(response: httpx.Response) -> None:
    print(f"{response.status_code} {response.reason_phrase}")
    for name, value in response.headers.items():
        print(f"{name}: {value}")


async def _list_buckets(client: R2Client, args: argparse.Namespace) -> int:
    for bucket in await client.list_buckets():
        print(f"{bucket.creation_date}  {bucket.name}")
    return 0


async def _head_bucket(client: R2Client, args: argparse.Namespace) -> int:
    response = await client.head_bucket(args.bucket)
    if response is None:
        print(f"Bucket not found: {args.bucket}", file=sys.stderr)
        return 1
    _print_response(response)
    return 0


async def _create_bucket(client: R2Client, args: argparse.Namespace) -> int:
    response = await client.create_bucket(args.bucket)
    print(response.headers.get("location", args.bucket))
    return 0


async def _delete_bucket(client: R2Client, args: argparse.Namespace) -> int:
    await client.delete_bucket(args.bucket)
    return 0


async def _list_objects(client: R2Client, args: argparse.Namespace) -> int:
    if args.command == "list-objects":
        result = await client.list_objects(
            args.bucket,
            prefix=args.prefix,
            delimiter=args.delimiter,
            max_keys=args.max_keys,
            continuation_token=args.continuation_token,
            start_after=args.start_after,
        )
    else:
        result = await client.list_objects_v1(
            args.bucket,
            prefix=args.prefix,
            delimiter=args.delimiter,
            max_keys=args.max_keys,
            marker=args.marker,
        )
    for prefix in result.common_prefixes:
        print(f"{'PRE':>12}  {prefix}")
    for obj in result.contents:
        print(f"{obj.size:>12}  {obj.last_modified}  {obj.key}")
    if result.is_truncated:
        token = result.next_continuation_token or result.next_marker
        print(f"(truncated, next: {token})", file=sys.stderr)
    return 0


async def _get_or_head_object(client: R2Client, args: argparse.Namespace) -> int:
    kwargs = dict(
        if_match=surround_with_double_quotes(args.if_match),
        if_none_match=surround_with_double_quotes(args.if_none_match),
        if_modified_since=args.if_modified_since,
        if_unmodified_since=args.if_unmodified_since,
        part_number=args.part_number,
        range=args.range,
    )
    if args.command == "head-object":
        response = await client.head_object(args.bucket, args.key, **kwargs)
        if response is None:
            print(f"Object not found: {args.bucket}/{args.key}", file=sys.stderr)
            return 1
        _print_response(response)
        return 0

    response = await client.get_object(args.bucket, args.key, **kwargs)
    if response is None:
        print(f"Object not found: {args.bucket}/{args.key}", file=sys.stderr)
        return 1
    try:
        if response.status_code == 304:
            print("304 Not Modified", file=sys.stderr)
            return 0
        if args.output is not None:
            with open(args.output, "wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)
        else:
            async for chunk in response.aiter_bytes():
                sys.stdout.buffer.write(chunk)
            sys.stdout.buffer.flush()
    finally:
        await response.aclose()
    return 0


def _prepare_upload(
    args: argparse.Namespace, unsigned_payload: bool
) -> tuple[PreparedBody, dict[str, str]]:
    """Resolve the put-object body and metadata before any network call."""
    metadata = {}
    for item in args.metadata:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise ConfigurationError(f"Bad metadata (expected NAME=VALUE): {item}")
        metadata[name] = value

    prepared = load_body(
        BodyOptions(
            file=args.file,
            filestream=args.filestream,
            bytes_range=args.bytes_range,
            content_md5=args.content_md5,
            compute_content_md5=args.compute_content_md5,
        ),
        unsigned_payload=unsigned_payload,
    )
    return prepared, metadata


async def _put_object(client: R2Client, args: argparse.Namespace) -> int:
    prepared, metadata = args.upload

    response = await client.put_object(
        args.bucket,
        args.key,
        prepared.body,
        content_md5=prepared.content_md5,
        content_type=args.content_type,
        cache_control=args.cache_control,
        content_disposition=args.content_disposition,
        content_encoding=args.content_encoding,
        content_language=args.content_language,
        expires=args.expires,
        metadata=metadata,
        if_match=surround_with_double_quotes(args.if_match),
        if_none_match=args.if_none_match,
    )
    print(f"prep took {prepared.prep_millis}ms", file=sys.stderr)
    print(response.headers.get("etag", ""))
    return 0


async def _delete_object(client: R2Client, args: argparse.Namespace) -> int:
    await client.delete_object(args.bucket, args.key)
    return 0


async def _delete_objects(client: R2Client, args: argparse.Namespace) -> int:
    result = await client.delete_objects(args.bucket, args.keys, quiet=args.quiet)
    for key in result.deleted:
        print(f"deleted: {key}")
    for error in result.errors:
        print(f"error: {error.key}: {error.code} {error.message}", file=sys.stderr)
    return 1 if result.errors else 0


async def _copy_object(client: R2Client, args: argparse.Namespace) -> int:
    result = await client.copy_object(
        args.bucket,
        args.key,
        args.source_bucket,
        args.source_key,
        if_match=surround_with_double_quotes(args.if_match),
        if_none_match=surround_with_double_quotes(args.if_none_match),
        if_modified_since=args.if_modified_since,
        if_unmodified_since=args.if_unmodified_since,
    )
    print(f"{result.etag}  {result.last_modified}")
    return 0


COMMANDS = {
    "list-buckets": _list_buckets,
    "head-bucket": _head_bucket,
    "create-bucket": _create_bucket,
    "delete-bucket": _delete_bucket,
    "list-objects": _list_objects,
    "list-objects-v1": _list_objects,
    "get-object": _get_or_head_object,
    "head-object": _get_or_head_object,
    "put-object": _put_object,
    "delete-object": _delete_object,
    "delete-objects": _delete_objects,
    "copy-object": _copy_object,
}


# -- Entry point ------------------------------------------------------------------


def load_cli_config(path: Path) -> R2CallConfig:
    """Load the config file; a missing default file means an empty config."""
    if path == DEFAULT_CONFIG_PATH and not path.exists():
        return R2CallConfig()
    return load_config(path)


async def run(
    args: argparse.Namespace,
    config: R2CallConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    """Resolve credentials, build a client and run one subcommand."""
    profile = resolve_profile(config, args.profile)
    unsigned_payload = (
        args.unsigned_payload
        if args.unsigned_payload is not None
        else config.client.unsigned_payload
    )
    url_style = UrlStyle(args.url_style or config.client.url_style)

    # Everything local is checked before the token verification call.
    for bucket in (getattr(args, "bucket", None), getattr(args, "source_bucket", None)):
        if bucket is not None:
            validate_bucket_name(bucket)
    keys = [getattr(args, "key", None), getattr(args, "source_key", None)]
    for key in keys + list(getattr(args, "keys", None) or []):
        if key is not None:
            validate_object_key(key)
    if args.command == "put-object":
        args.upload = _prepare_upload(args, unsigned_payload)

    async with httpx.AsyncClient(timeout=config.client.timeout, transport=transport) as http:
        token_id = await verify_token(profile.api_token, http)
        context = CallContext(
            credentials=credentials_from_api_token(token_id, profile.api_token),
            user_agent=config.client.user_agent,
            unsigned_payload=unsigned_payload,
            verbose=args.verbose,
        )
        endpoint = R2Endpoint.for_account(profile.account_id, url_style=url_style)
        async with R2Client(endpoint, context, http_client=http) as client:
            return await COMMANDS[args.command](client, args)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the r2call CLI.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)

    try:
        config = load_cli_config(args.config)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)

    level = args.log_level or config.logging.level
    if args.verbose and getattr(logging, level.upper(), logging.WARNING) > logging.INFO:
        level = "INFO"
    configure_logging(level=level, fmt=args.log_format or config.logging.format)

    if args.metrics or config.metrics.enabled:
        metrics.init_metrics()

    try:
        status = asyncio.run(run(args, config))
    except R2CallError as exc:
        logger.error("%s", exc)
        status = 1
    except FileNotFoundError as exc:
        logger.error("File not found: %s", exc.filename)
        status = 1
    except OSError as exc:
        logger.error("Cannot read %s: %s", exc.filename, exc.strerror)
        status = 1
    finally:
        if args.metrics or config.metrics.enabled:
            sys.stderr.write(generate_latest().decode("utf-8"))

    sys.exit(status)


if __name__ == "__main__":
    main()
