"""Read-only loader for the TOML credentials file.

Example::

    [nostr]
    private_key = "nsec1..."
    relays = ["wss://relay.damus.io"]

    [bluesky]
    identifier = "alice.bsky.social"
    app_password = "xxxx-xxxx-xxxx-xxxx"

    [mastodon]
    instance_url = "https://mastodon.social"
    account = "alice"
    access_token = "..."
"""

from __future__ import annotations

import logging
import tomllib
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from multipost.crosspost.base import PlatformKind
from multipost.schemas.credentials import credential_adapter

if TYPE_CHECKING:
    from pathlib import Path

    from multipost.schemas.credentials import Credential

logger = logging.getLogger(__name__)


def parse_credentials(
    data: dict[str, Any],
    bluesky_service_url: str | None = None,
) -> dict[PlatformKind, Credential]:
    """Build credentials from already-parsed TOML tables.

    Raises ValueError naming the platform when a table does not match its schema.
    """
    credentials: dict[PlatformKind, Credential] = {}
    for table_name, table in data.items():
        try:
            kind = PlatformKind.from_id(table_name)
        except ValueError:
            logger.warning("Ignoring unknown credentials table [%s]", table_name)
            continue
        if not isinstance(table, dict):
            msg = f"[{kind.id}] must be a table"
            raise ValueError(msg)

        fields = {**table, "platform": kind.id}
        if kind is PlatformKind.BLUESKY and bluesky_service_url and "service_url" not in table:
            fields["service_url"] = bluesky_service_url
        try:
            credentials[kind] = credential_adapter.validate_python(fields)
        except ValidationError as exc:
            problems = ", ".join(
                f"{'.'.join(str(p) for p in err['loc'][1:]) or err['loc'][0]}: {err['msg']}"
                for err in exc.errors()
            )
            msg = f"Invalid [{kind.id}] credentials: {problems}"
            raise ValueError(msg) from exc
    return credentials


def load_credentials(
    path: Path,
    bluesky_service_url: str | None = None,
) -> dict[PlatformKind, Credential]:
    """Load credentials keyed by platform. A missing file means no credentials."""
    if not path.exists():
        logger.info("No credentials file at %s", path)
        return {}
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Cannot parse credentials file {path}: {exc}"
        raise ValueError(msg) from exc
    return parse_credentials(data, bluesky_service_url)
