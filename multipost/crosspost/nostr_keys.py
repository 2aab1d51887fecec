"""Nostr key handling and NIP-01 event signing.

Private keys are accepted in exactly two encodings: 64 hexadecimal characters
or a bech32 ``nsec1...`` string. Anything else is rejected; input is never
trimmed, filtered, padded or truncated into something that looks valid.
"""

from __future__ import annotations

import hashlib
import json
import re
import secrets
import time
from dataclasses import dataclass
from typing import Any

from bech32 import bech32_decode, bech32_encode, convertbits
from coincurve import PrivateKey, PublicKeyXOnly

from multipost.exceptions import CredentialValidationError

KEY_LENGTH = 32
SECP256K1_ORDER = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)
TEXT_NOTE_KIND = 1

_HEX_KEY_RE = re.compile(r"[0-9a-fA-F]{64}")


@dataclass(frozen=True)
class NostrKeyPair:
    """A freshly generated keypair in both hex and bech32 forms."""

    private_key_hex: str
    public_key_hex: str
    nsec: str
    npub: str


def _decode_bech32(value: str, expected_hrp: str) -> bytes:
    hrp, data = bech32_decode(value)
    if hrp is None or data is None:
        msg = f"Invalid {expected_hrp} encoding: bad bech32 checksum or characters"
        raise CredentialValidationError(msg)
    if hrp != expected_hrp:
        msg = f"Invalid {expected_hrp} encoding: unexpected prefix {hrp!r}"
        raise CredentialValidationError(msg)
    decoded = convertbits(data, 5, 8, False)
    if decoded is None:
        msg = f"Invalid {expected_hrp} encoding: bad padding"
        raise CredentialValidationError(msg)
    if len(decoded) != KEY_LENGTH:
        msg = f"Invalid {expected_hrp} encoding: decodes to {len(decoded)} bytes, expected 32"
        raise CredentialValidationError(msg)
    return bytes(decoded)


def _encode_bech32(hrp: str, key: bytes) -> str:
    data = convertbits(list(key), 8, 5, True)
    if data is None:
        msg = f"Cannot encode {len(key)}-byte key as {hrp}"
        raise ValueError(msg)
    return bech32_encode(hrp, data)


def decode_private_key(raw: str) -> bytes:
    """Decode a private key to its 32 raw bytes.

    Raises CredentialValidationError for any input that is not exactly a
    canonical hex or nsec key for a scalar in [1, n-1].
    """
    if not raw:
        msg = "Private key is empty"
        raise CredentialValidationError(msg)

    if raw[:4].lower() == "nsec":
        key = _decode_bech32(raw, "nsec")
    elif _HEX_KEY_RE.fullmatch(raw):
        key = bytes.fromhex(raw)
    else:
        msg = (
            f"Private key must be 64 hex characters or an nsec1 key "
            f"(got {len(raw)} characters)"
        )
        raise CredentialValidationError(msg)

    scalar = int.from_bytes(key, "big")
    if not 0 < scalar < SECP256K1_ORDER:
        msg = "Private key is outside the secp256k1 range"
        raise CredentialValidationError(msg)
    return key


def public_key_hex(private_key: bytes) -> str:
    """Return the BIP-340 x-only public key for a private key, as hex."""
    return PublicKeyXOnly.from_secret(private_key).format().hex()


def encode_nsec(private_key: bytes) -> str:
    return _encode_bech32("nsec", private_key)


def encode_npub(public_key: bytes) -> str:
    return _encode_bech32("npub", public_key)


def decode_npub(value: str) -> bytes:
    """Decode an npub1 public key to its 32 raw bytes."""
    return _decode_bech32(value, "npub")


def generate_keypair() -> NostrKeyPair:
    """Generate a new random Nostr keypair."""
    while True:
        private_key = secrets.token_bytes(KEY_LENGTH)
        if 0 < int.from_bytes(private_key, "big") < SECP256K1_ORDER:
            break
    pubkey_hex = public_key_hex(private_key)
    return NostrKeyPair(
        private_key_hex=private_key.hex(),
        public_key_hex=pubkey_hex,
        nsec=encode_nsec(private_key),
        npub=encode_npub(bytes.fromhex(pubkey_hex)),
    )


def compute_event_id(
    pubkey: str,
    created_at: int,
    kind: int,
    tags: list[list[str]],
    content: str,
) -> str:
    """Compute the NIP-01 event id: sha256 of the compact JSON serialization."""
    serialized = json.dumps(
        [0, pubkey, created_at, kind, tags, content],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def build_text_note(
    private_key: bytes,
    content: str,
    *,
    created_at: int | None = None,
    tags: list[list[str]] | None = None,
) -> dict[str, Any]:
    """Build and sign a kind-1 text note event."""
    pubkey = public_key_hex(private_key)
    timestamp = int(time.time()) if created_at is None else created_at
    event_tags = [list(tag) for tag in tags] if tags else []
    event_id = compute_event_id(pubkey, timestamp, TEXT_NOTE_KIND, event_tags, content)
    signature = PrivateKey(private_key).sign_schnorr(
        bytes.fromhex(event_id), secrets.token_bytes(32)
    )
    return {
        "id": event_id,
        "pubkey": pubkey,
        "created_at": timestamp,
        "kind": TEXT_NOTE_KIND,
        "tags": event_tags,
        "content": content,
        "sig": signature.hex(),
    }


def verify_event(event: dict[str, Any]) -> bool:
    """Check an event's id and Schnorr signature."""
    expected_id = compute_event_id(
        event["pubkey"], event["created_at"], event["kind"], event["tags"], event["content"]
    )
    if expected_id != event["id"]:
        return False
    pubkey = PublicKeyXOnly(bytes.fromhex(event["pubkey"]))
    return pubkey.verify(bytes.fromhex(event["sig"]), bytes.fromhex(event["id"]))
