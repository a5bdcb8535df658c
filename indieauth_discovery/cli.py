# indieauth_discovery/cli.py
# Defines the command-line interface using argparse.

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import IO, Sequence

from indieauth_discovery import __version__
from indieauth_discovery.api import discover_endpoints
from indieauth_discovery.cache import CacheConfig, FileDiscoveryCache
from indieauth_discovery.config import cache_config, load_config
from indieauth_discovery.ui import (
    render_discover_header,
    render_discovery_result,
    render_redirect_chain,
    render_validation,
)
from indieauth_discovery.urls import canonicalize, validate_profile_url

log = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _human_bytes(n: int) -> str:
    # Compact human-readable bytes
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    v = float(n)
    while v >= 1024 and i < len(units) - 1:
        v /= 1024.0
        i += 1
    s = f"{v:.2f}".rstrip("0").rstrip(".")
    return f"{s} {units[i]}"


def _init_file_cache(
    base: CacheConfig, cache_dir: str | None, os_default: bool
) -> FileDiscoveryCache:
    cfg = CacheConfig(
        enabled=True,
        backend="file",
        directory=base.directory,
        expire_seconds=base.expire_seconds,
        max_entries=base.max_entries,
    )
    if os_default:
        cfg.directory = "os-default"
    if cache_dir:
        cfg.directory = cache_dir
    return FileDiscoveryCache(cfg)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="IndieAuth endpoint discovery and profile URL checks.",
        prog="indieauth-discovery",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging output to stderr.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- discover ---
    discover_parser = subparsers.add_parser(
        "discover", help="Discover the authorization and token endpoints for a profile URL."
    )
    discover_parser.add_argument("url", help="The profile URL, e.g. example.com")
    discover_parser.add_argument(
        "--head",
        action="store_true",
        help="Try a HEAD request first and only GET when it finds nothing.",
    )
    discover_parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Ignore any cached result for this URL.",
    )
    discover_parser.add_argument(
        "--json",
        dest="json_output",
        metavar="FILEPATH",
        help="Also write the full result as JSON to this path.",
    )

    # --- validate ---
    validate_parser = subparsers.add_parser(
        "validate", help="Check a URL against the IndieAuth profile URL rules."
    )
    validate_parser.add_argument("url")

    # --- canonicalize ---
    canon_parser = subparsers.add_parser(
        "canonicalize", help="Print the canonical form of a profile URL."
    )
    canon_parser.add_argument("url")

    # --- cache ---
    cache_parser = subparsers.add_parser(
        "cache", help="Manage the on-disk discovery cache."
    )
    cache_parser.add_argument(
        "--dir",
        dest="cache_dir",
        metavar="PATH",
        default=None,
        help="Cache directory to operate on (defaults to the configured one).",
    )
    cache_parser.add_argument(
        "--os-default",
        dest="cache_os_default",
        action="store_true",
        help="Use the OS-specific default cache directory.",
    )
    cache_sub = cache_parser.add_subparsers(dest="cache_cmd", required=True)
    cache_sub.add_parser("clear", help="Remove every cached discovery result.")
    cache_sub.add_parser("stats", help="Show total items and size on disk.")
    cache_inspect = cache_sub.add_parser(
        "inspect", help="Dump the cached discovery result for a profile URL."
    )
    cache_inspect.add_argument("url", help="The profile URL to look up.")

    return parser


def _run_cache_command(args: argparse.Namespace, config: dict, stdout: IO[str]) -> int:
    fc = _init_file_cache(cache_config(config), args.cache_dir, args.cache_os_default)
    try:
        if args.cache_cmd == "clear":
            fc.clear()
            print(f"Cache cleared at: {fc.directory or '(disabled)'}", file=stdout)
            return 0

        if args.cache_cmd == "stats":
            st = fc.stats()
            bytes_on_disk = int(st.get("bytes", 0))
            out = {
                "directory": st.get("directory", ""),
                "items": int(st.get("items", 0)),
                "bytes": bytes_on_disk,
                "human_bytes": _human_bytes(bytes_on_disk),
            }
            print(json.dumps(out, indent=2), file=stdout)
            return 0

        # inspect
        data = fc.raw(canonicalize(args.url) or args.url)
        if data is None:
            print("Cache miss", file=stdout)
            return 2
        print(json.dumps(data, indent=2), file=stdout)
        return 0
    finally:
        fc.close()


async def async_main(
    argv: Sequence[str] | None = None, stdout: IO[str] | None = None
) -> int:
    """Async entry point for the command-line interface."""
    stdout = stdout or sys.stdout

    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    if args.command == "canonicalize":
        print(canonicalize(args.url), file=stdout)
        return 0

    if args.command == "validate":
        result = validate_profile_url(args.url)
        render_validation(args.url, result, file=stdout)
        return 0 if result.valid else 1

    config = load_config()

    if args.command == "cache":
        return _run_cache_command(args, config, stdout)

    # args.command == "discover"
    render_discover_header(args.url, file=stdout)
    result = await discover_endpoints(
        args.url,
        use_head_request=True if args.head else None,
        bypass_cache=args.no_cache,
        config=config,
    )
    render_discovery_result(result, file=stdout)
    render_redirect_chain(result, file=stdout)

    if args.json_output:
        out_path = Path(args.json_output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2)
        print(f"Result written to {args.json_output}", file=stdout)

    return 0 if result.success else 1


def main(argv: Sequence[str] | None = None) -> int:
    """Synchronous wrapper for the CLI entry point."""
    return asyncio.run(async_main(argv))


if __name__ == "__main__":
    sys.exit(main())
