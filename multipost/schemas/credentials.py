"""Credential schemas, one frozen model per platform."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

DEFAULT_BLUESKY_SERVICE_URL = "https://bsky.social"


class NostrCredential(BaseModel):
    """Nostr signing key plus optional account-specific relays."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    platform: Literal["nostr"] = "nostr"
    private_key: str = Field(description="64 hex characters or a bech32 'nsec1...' key")
    relays: tuple[str, ...] = Field(
        default=(), description="Relay URLs; empty means the configured defaults"
    )

    def __repr__(self) -> str:
        return f"NostrCredential(private_key='***', relays={self.relays!r})"


class BlueskyCredential(BaseModel):
    """Bluesky handle (or email) and app password."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    platform: Literal["bluesky"] = "bluesky"
    identifier: str = Field(description="Handle, DID or account email")
    app_password: str
    service_url: str = DEFAULT_BLUESKY_SERVICE_URL

    def __repr__(self) -> str:
        return (
            f"BlueskyCredential(identifier={self.identifier!r}, "
            f"app_password='***', service_url={self.service_url!r})"
        )


class MastodonCredential(BaseModel):
    """Mastodon access token bound to one federated instance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    platform: Literal["mastodon"] = "mastodon"
    instance_url: str = Field(description="Base URL, e.g. 'https://mastodon.social'")
    account: str = Field(description="Account handle on the instance")
    access_token: str

    def __repr__(self) -> str:
        return (
            f"MastodonCredential(instance_url={self.instance_url!r}, "
            f"account={self.account!r}, access_token='***')"
        )


Credential = Annotated[
    NostrCredential | BlueskyCredential | MastodonCredential,
    Field(discriminator="platform"),
]

credential_adapter: TypeAdapter[Credential] = TypeAdapter(Credential)
