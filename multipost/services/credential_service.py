"""Credential validation: offline checks run before any adapter is invoked."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from multipost.crosspost.base import PlatformKind
from multipost.crosspost.nostr_keys import decode_private_key
from multipost.exceptions import CredentialValidationError
from multipost.schemas.credentials import (
    BlueskyCredential,
    MastodonCredential,
    NostrCredential,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from multipost.schemas.credentials import Credential

logger = logging.getLogger(__name__)

_CREDENTIAL_TYPES: dict[PlatformKind, type] = {
    PlatformKind.NOSTR: NostrCredential,
    PlatformKind.BLUESKY: BlueskyCredential,
    PlatformKind.MASTODON: MastodonCredential,
}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one credential."""

    valid: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def invalid(cls, reason: str) -> ValidationResult:
        return cls(valid=False, reason=reason)


def is_valid_base_url(raw_url: str, schemes: tuple[str, ...] = ("https", "http")) -> bool:
    """Return True for a bare base URL such as ``https://mastodon.social``."""
    if not raw_url or raw_url != raw_url.strip():
        return False
    try:
        parsed = urlparse(raw_url)
        port = parsed.port
    except ValueError:
        return False
    if parsed.scheme.lower() not in schemes or not parsed.hostname:
        return False
    if parsed.username is not None or parsed.password is not None:
        return False
    if parsed.query or parsed.fragment or parsed.params:
        return False
    return port is None or port > 0


def _validate_nostr(credential: NostrCredential) -> ValidationResult:
    try:
        decode_private_key(credential.private_key)
    except CredentialValidationError as exc:
        return ValidationResult.invalid(str(exc))
    for relay in credential.relays:
        if not is_valid_base_url(relay, schemes=("wss", "ws")):
            return ValidationResult.invalid(f"Invalid relay URL: {relay!r}")
    return ValidationResult.ok()


def _validate_bluesky(credential: BlueskyCredential) -> ValidationResult:
    if not credential.identifier.strip():
        return ValidationResult.invalid("Bluesky identifier is empty")
    if not credential.app_password.strip():
        return ValidationResult.invalid("Bluesky app password is empty")
    if not is_valid_base_url(credential.service_url):
        return ValidationResult.invalid(f"Invalid Bluesky service URL: {credential.service_url!r}")
    return ValidationResult.ok()


def _validate_mastodon(credential: MastodonCredential) -> ValidationResult:
    if not credential.account.strip():
        return ValidationResult.invalid("Mastodon account is empty")
    if not credential.access_token.strip():
        return ValidationResult.invalid("Mastodon access token is empty")
    if not is_valid_base_url(credential.instance_url):
        return ValidationResult.invalid(
            f"Invalid Mastodon instance URL: {credential.instance_url!r}"
        )
    return ValidationResult.ok()


def validate(kind: PlatformKind, credential: Credential | None) -> ValidationResult:
    """Validate a credential for the given platform. Never raises."""
    if credential is None:
        return ValidationResult.invalid(f"No {kind.display_name} credential configured")

    expected = _CREDENTIAL_TYPES[kind]
    if not isinstance(credential, expected):
        actual = getattr(credential, "platform", type(credential).__name__)
        return ValidationResult.invalid(
            f"Credential for {actual!r} cannot be used with {kind.id!r}"
        )

    if isinstance(credential, NostrCredential):
        result = _validate_nostr(credential)
    elif isinstance(credential, BlueskyCredential):
        result = _validate_bluesky(credential)
    else:
        result = _validate_mastodon(credential)

    if not result.valid:
        logger.info("Rejected %s credential: %s", kind.id, result.reason)
    return result


def validate_all(
    credentials: Mapping[PlatformKind, Credential],
) -> dict[PlatformKind, ValidationResult]:
    """Validate every configured credential, keyed by platform."""
    return {kind: validate(kind, credentials[kind]) for kind in PlatformKind if kind in credentials}
