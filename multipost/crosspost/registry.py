"""Platform registry for publishing."""

from __future__ import annotations

from typing import TYPE_CHECKING

from multipost.crosspost.base import PlatformKind
from multipost.crosspost.bluesky import BlueskyPublisher
from multipost.crosspost.mastodon import MastodonPublisher
from multipost.crosspost.nostr import NostrPublisher

if TYPE_CHECKING:
    from multipost.config import Settings
    from multipost.crosspost.base import Publisher

PLATFORMS: dict[
    PlatformKind,
    type[NostrPublisher] | type[BlueskyPublisher] | type[MastodonPublisher],
] = {
    PlatformKind.NOSTR: NostrPublisher,
    PlatformKind.BLUESKY: BlueskyPublisher,
    PlatformKind.MASTODON: MastodonPublisher,
}


def build_publishers(settings: Settings) -> dict[PlatformKind, Publisher]:
    """Create one publisher per supported platform from application settings."""
    return {
        PlatformKind.NOSTR: NostrPublisher(
            relays=settings.nostr_relays,
            default_timeout=settings.nostr_timeout,
            relay_timeout=settings.nostr_relay_timeout,
        ),
        PlatformKind.BLUESKY: BlueskyPublisher(default_timeout=settings.bluesky_timeout),
        PlatformKind.MASTODON: MastodonPublisher(default_timeout=settings.mastodon_timeout),
    }


def list_platforms() -> list[str]:
    """Return the list of supported platform identifiers."""
    return [kind.id for kind in PLATFORMS]
