"""Command line interface for bucketcache."""

import argparse
import os
import signal
import sys
from collections.abc import Sequence
from types import FrameType

from bucketcache._errors import BucketCacheError, SaveError
from bucketcache.archive import CompressionMethod
from bucketcache.config import PROVIDERS, load_config
from bucketcache.request import CacheHitKind, CacheSaveRequest


def _exit_on_sigterm(signum: int, frame: FrameType | None) -> None:
    # SystemExit unwinds finally blocks: temp archives are removed and
    # pending multipart uploads aborted.
    raise SystemExit(128 + signum)


def _env_default(name: str, default: str | None = None) -> str | None:
    return os.environ.get(f"BUCKETCACHE_{name}", default)


def _handle_save(args: argparse.Namespace) -> None:
    """Handle the 'save' command."""
    from bucketcache.save import save_cache

    missing = [
        f"--{flag}"
        for flag, value in (
            ("bucket", args.bucket),
            ("target", args.target),
            ("path", args.path),
        )
        if not value
    ]
    if missing:
        print(f"Error: Missing required parameter(s): {', '.join(missing)}")
        sys.exit(1)

    try:
        request = CacheSaveRequest(
            bucket=args.bucket,
            key_file_name=args.key_file or "",
            target_file_name=args.target,
            path=args.path,
            cache_hit_kind=CacheHitKind(args.cache_hit),
        )
    except ValueError as e:
        print(f"Error: Invalid request: {e}")
        sys.exit(1)

    try:
        config = load_config()
    except BucketCacheError as e:
        print(f"Error: Failed to load configuration: {e}")
        sys.exit(1)

    if args.provider:
        config.store.provider = args.provider
    if args.compression:
        config.archive.compression_method = args.compression

    try:
        outcome = save_cache(request, config, workspace=args.workspace)
    except SaveError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except BucketCacheError as e:
        print(f"Error: Failed to set up the object store: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"Error: Unexpected error: {e}")
        sys.exit(1)

    print(f"{outcome.status.value}: {outcome.target_file_name}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bucketcache",
        description="bucketcache - save CI build caches to object storage buckets",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    save_parser = subparsers.add_parser(
        "save", help="Archive cache paths and upload them unless already cached"
    )
    save_parser.add_argument(
        "--bucket", default=_env_default("BUCKET"), help="Bucket name"
    )
    save_parser.add_argument(
        "--key-file",
        default=_env_default("KEY_FILE", ""),
        help="Credentials key file for the store",
    )
    save_parser.add_argument(
        "--target",
        default=_env_default("TARGET"),
        help="Object name to store the archive under",
    )
    save_parser.add_argument(
        "--path",
        default=_env_default("PATH"),
        help="Glob pattern(s) of files to cache, newline separated",
    )
    save_parser.add_argument(
        "--cache-hit",
        choices=[kind.value for kind in CacheHitKind],
        default=_env_default("CACHE_HIT", CacheHitKind.NONE.value),
        help="Cache hit kind from the restore step (default: none)",
    )
    save_parser.add_argument(
        "--workspace",
        default=None,
        help="Workspace root (default: GITHUB_WORKSPACE or current directory)",
    )
    save_parser.add_argument(
        "--provider", choices=PROVIDERS, default=None, help="Object store provider"
    )
    save_parser.add_argument(
        "--compression",
        choices=[method.value for method in CompressionMethod],
        default=None,
        help="Archive compression method",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for bucketcache."""
    parser = build_parser()
    args = parser.parse_args(argv)

    signal.signal(signal.SIGTERM, _exit_on_sigterm)

    if args.command == "save":
        _handle_save(args)
    else:
        parser.print_help()
        sys.exit(1)
