"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from multipost.crosspost.base import PlatformKind
from multipost.crosspost.nostr import DEFAULT_RELAYS
from multipost.schemas.credentials import DEFAULT_BLUESKY_SERVICE_URL
from multipost.services.credential_service import is_valid_base_url


class Settings(BaseSettings):
    """multipost settings. Every field can be set with a ``MULTIPOST_`` env var."""

    model_config = SettingsConfigDict(
        env_prefix="MULTIPOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # Credentials are owned by the user's config directory; multipost only reads them.
    credentials_file: Path = Field(
        default=Path("~/.config/multipost/credentials.toml"), validate_default=True
    )

    # Nostr
    nostr_relays: list[str] = Field(default_factory=lambda: list(DEFAULT_RELAYS))
    nostr_timeout: float = Field(default=10.0, gt=0)
    nostr_relay_timeout: float = Field(default=8.0, gt=0)

    # Bluesky
    bluesky_service_url: str = DEFAULT_BLUESKY_SERVICE_URL
    bluesky_timeout: float = Field(default=15.0, gt=0)

    # Mastodon
    mastodon_timeout: float = Field(default=15.0, gt=0)

    @field_validator("nostr_relays")
    @classmethod
    def _relays_not_empty(cls, value: list[str]) -> list[str]:
        relays = [relay.strip() for relay in value if relay.strip()]
        for relay in relays:
            if not is_valid_base_url(relay, schemes=("wss", "ws")):
                msg = f"Invalid relay URL: {relay!r} (expected ws:// or wss://)"
                raise ValueError(msg)
        return relays or list(DEFAULT_RELAYS)

    @field_validator("bluesky_service_url")
    @classmethod
    def _service_url_is_base_url(cls, value: str) -> str:
        if not is_valid_base_url(value):
            msg = f"Invalid Bluesky service URL: {value!r}"
            raise ValueError(msg)
        return value

    @field_validator("credentials_file")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return value.expanduser()

    def timeouts(self) -> dict[PlatformKind, float]:
        """Per-platform attempt timeouts in seconds."""
        return {
            PlatformKind.NOSTR: self.nostr_timeout,
            PlatformKind.BLUESKY: self.bluesky_timeout,
            PlatformKind.MASTODON: self.mastodon_timeout,
        }
