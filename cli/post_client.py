"""CLI client for posting one message to Nostr, Bluesky and Mastodon at once."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from multipost.config import Settings
from multipost.crosspost.base import ErrorKind, PlatformKind, PublishFailure, PublishSuccess
from multipost.crosspost.limits import measure, remaining
from multipost.crosspost.nostr_keys import generate_keypair
from multipost.crosspost.registry import build_publishers
from multipost.filesystem.credentials_file import load_credentials
from multipost.services.credential_service import validate, validate_all
from multipost.services.dispatch_service import ComposedPost, dispatch
from multipost.services.report_service import (
    OverallStatus,
    report_to_dict,
    summary_message,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from multipost.crosspost.base import PublishOutcome, Publisher
    from multipost.schemas.credentials import Credential
    from multipost.services.report_service import DispatchAttemptResult

logger = logging.getLogger("multipost.cli")

EXIT_CODES = {
    OverallStatus.ALL_SUCCEEDED: 0,
    OverallStatus.ALL_FAILED: 1,
    OverallStatus.PARTIAL_SUCCESS: 2,
}


def _configure_logging(debug: bool) -> None:
    """Configure CLI logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stderr,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.DEBUG if debug else logging.WARNING)


def parse_targets(raw: str) -> frozenset[PlatformKind]:
    """Parse a comma-separated platform list such as ``nostr,mastodon``."""
    names = [name for name in raw.split(",") if name.strip()]
    if not names:
        msg = "No platforms selected"
        raise ValueError(msg)
    return frozenset(PlatformKind.from_id(name) for name in names)


def _read_text(value: str) -> str:
    """Return the post text; ``-`` reads it from stdin."""
    if value == "-":
        return sys.stdin.read()
    return value


def _print_result(result: DispatchAttemptResult) -> None:
    marker = "+" if result.succeeded else "!"
    print(f"  {marker} {result.describe()}", flush=True)


def _cmd_post(
    args: argparse.Namespace,
    settings: Settings,
    credentials: Mapping[PlatformKind, Credential],
) -> int:
    try:
        post = ComposedPost(text=_read_text(args.text), targets=parse_targets(args.to))
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1

    timeouts = settings.timeouts()
    if args.timeout is not None:
        timeouts = dict.fromkeys(PlatformKind, args.timeout)

    on_result = None if args.json else _print_result
    report = asyncio.run(
        dispatch(
            post,
            credentials,
            publishers=build_publishers(settings),
            timeouts=timeouts,
            on_result=on_result,
        )
    )

    if args.json:
        print(json.dumps(report_to_dict(report), indent=2))
    else:
        print(summary_message(report))
    return EXIT_CODES[report.status]


def _cmd_count(args: argparse.Namespace) -> int:
    text = _read_text(args.text)
    for kind in PlatformKind:
        left = remaining(kind, text)
        marker = "" if left >= 0 else "  (over limit)"
        print(
            f"{kind.display_name:<9} {measure(kind, text):>5} / {kind.char_limit:<4}"
            f" {left:>5} left{marker}"
        )
    return 0


def _cmd_validate(credentials: Mapping[PlatformKind, Credential]) -> int:
    if not credentials:
        print("No credentials configured")
        return 1
    failures = 0
    for kind, result in validate_all(credentials).items():
        if result.valid:
            print(f"{kind.display_name}: ok")
        else:
            failures += 1
            print(f"{kind.display_name}: {result.reason}")
    return 1 if failures else 0


async def _verify_one(
    kind: PlatformKind, publisher: Publisher, credential: Credential
) -> PublishOutcome:
    result = validate(kind, credential)
    if not result.valid:
        return PublishFailure(ErrorKind.INVALID_CREDENTIAL, result.reason or "Invalid credential")
    try:
        async with asyncio.timeout(publisher.default_timeout):
            return await publisher.verify(credential)
    except TimeoutError:
        msg = f"timed out after {publisher.default_timeout:g}s"
        return PublishFailure(ErrorKind.NETWORK, msg)
    except Exception as exc:
        logger.exception("Unexpected error verifying %s", kind.id)
        return PublishFailure(ErrorKind.UNKNOWN, str(exc) or type(exc).__name__)


async def _verify_all(
    credentials: Mapping[PlatformKind, Credential],
    publishers: Mapping[PlatformKind, Publisher],
) -> dict[PlatformKind, PublishOutcome]:
    kinds = [kind for kind in PlatformKind if kind in credentials]
    async with asyncio.TaskGroup() as tg:
        tasks = {
            kind: tg.create_task(_verify_one(kind, publishers[kind], credentials[kind]))
            for kind in kinds
        }
    return {kind: task.result() for kind, task in tasks.items()}


def _cmd_verify(settings: Settings, credentials: Mapping[PlatformKind, Credential]) -> int:
    if not credentials:
        print("No credentials configured")
        return 1
    outcomes = asyncio.run(_verify_all(credentials, build_publishers(settings)))
    failures = 0
    for kind, outcome in outcomes.items():
        if isinstance(outcome, PublishSuccess):
            print(f"{kind.display_name}: ok ({outcome.remote_id})")
        else:
            failures += 1
            print(f"{kind.display_name}: {outcome.message}")
    return 1 if failures else 0


def _cmd_keygen() -> int:
    keypair = generate_keypair()
    print(f"nsec:        {keypair.nsec}")
    print(f"npub:        {keypair.npub}")
    print(f"private hex: {keypair.private_key_hex}")
    print(f"public hex:  {keypair.public_key_hex}")
    print("Keep the nsec secret; anyone holding it can post as you.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multipost",
        description="Publish one message to Nostr, Bluesky and Mastodon concurrently",
    )
    parser.add_argument(
        "--credentials",
        "-c",
        help="Credentials TOML file (default: ~/.config/multipost/credentials.toml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    post = subparsers.add_parser("post", help="Publish a message")
    post.add_argument("text", help="Message text, or '-' to read from stdin")
    post.add_argument(
        "--to",
        "-t",
        default=",".join(kind.id for kind in PlatformKind),
        help="Comma-separated platforms (default: all)",
    )
    post.add_argument(
        "--timeout", type=float, help="Per-platform timeout in seconds (overrides settings)"
    )
    post.add_argument("--json", action="store_true", help="Print the report as JSON")

    count = subparsers.add_parser("count", help="Show per-platform length and remaining room")
    count.add_argument("text", help="Message text, or '-' to read from stdin")

    subparsers.add_parser("validate", help="Check configured credentials offline")
    subparsers.add_parser("verify", help="Check configured credentials against each platform")
    subparsers.add_parser("keygen", help="Generate a new Nostr keypair")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    settings = Settings()
    _configure_logging(args.debug or settings.debug)

    if args.command == "keygen":
        sys.exit(_cmd_keygen())
    if args.command == "count":
        sys.exit(_cmd_count(args))

    if getattr(args, "timeout", None) is not None and args.timeout <= 0:
        print("Error: --timeout must be positive")
        sys.exit(1)

    credentials_path = (
        Path(args.credentials).expanduser() if args.credentials else settings.credentials_file
    )
    try:
        credentials = load_credentials(credentials_path, settings.bluesky_service_url)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)
    logger.debug("Loaded credentials for %s", ", ".join(k.id for k in credentials) or "nothing")

    if args.command == "post":
        sys.exit(_cmd_post(args, settings, credentials))
    if args.command == "validate":
        sys.exit(_cmd_validate(credentials))
    sys.exit(_cmd_verify(settings, credentials))


if __name__ == "__main__":
    main()
