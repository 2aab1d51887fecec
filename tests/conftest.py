"""Shared test fixtures for multipost."""

from __future__ import annotations

import pytest

from multipost.config import Settings
from multipost.crosspost.base import PlatformKind
from multipost.schemas.credentials import (
    BlueskyCredential,
    MastodonCredential,
    NostrCredential,
)

# NIP-19 reference key pair.
TEST_NOSTR_HEX = "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"
TEST_NOSTR_NSEC = "nsec1vl029mgpspedva04g90vltkh6fvh240zqtv9k0t9af8935ke9laqsnlfe5"


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def nostr_credential() -> NostrCredential:
    return NostrCredential(private_key=TEST_NOSTR_HEX)


@pytest.fixture
def bluesky_credential() -> BlueskyCredential:
    return BlueskyCredential(identifier="alice.bsky.social", app_password="abcd-efgh-ijkl-mnop")


@pytest.fixture
def mastodon_credential() -> MastodonCredential:
    return MastodonCredential(
        instance_url="https://mastodon.example",
        account="alice",
        access_token="token-123",
    )


@pytest.fixture
def credentials(
    nostr_credential: NostrCredential,
    bluesky_credential: BlueskyCredential,
    mastodon_credential: MastodonCredential,
) -> dict[PlatformKind, NostrCredential | BlueskyCredential | MastodonCredential]:
    return {
        PlatformKind.NOSTR: nostr_credential,
        PlatformKind.BLUESKY: bluesky_credential,
        PlatformKind.MASTODON: mastodon_credential,
    }
