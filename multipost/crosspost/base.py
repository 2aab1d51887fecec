"""Base protocol and data classes for multi-platform posting."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from multipost.schemas.credentials import Credential


class CountUnit(Enum):
    """How a platform measures the length of a post."""

    CODEPOINTS = "codepoints"
    GRAPHEMES = "graphemes"


class PlatformKind(Enum):
    """Supported platforms with their display name, length limit and counting unit."""

    NOSTR = ("nostr", "Nostr", 800, CountUnit.CODEPOINTS)
    BLUESKY = ("bluesky", "Bluesky", 300, CountUnit.GRAPHEMES)
    MASTODON = ("mastodon", "Mastodon", 500, CountUnit.CODEPOINTS)

    def __init__(self, id_: str, display_name: str, char_limit: int, count_unit: CountUnit) -> None:
        self.id = id_
        self.display_name = display_name
        self.char_limit = char_limit
        self.count_unit = count_unit

    @classmethod
    def from_id(cls, platform_id: str) -> PlatformKind:
        """Look up a platform by its identifier. Raises ValueError if unknown."""
        candidate = platform_id.strip().lower()
        for kind in cls:
            if kind.id == candidate:
                return kind
        msg = f"Unknown platform: {platform_id!r}. Available: {[k.id for k in cls]}"
        raise ValueError(msg)


class ErrorKind(Enum):
    """Why a platform attempt failed."""

    EXCEEDS_LIMIT = "exceeds_limit"
    INVALID_CREDENTIAL = "invalid_credential"
    AUTHENTICATION = "authentication"
    RATE_LIMITED = "rate_limited"
    MALFORMED_REQUEST = "malformed_request"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PublishSuccess:
    """The platform accepted the post."""

    remote_id: str
    url: str = ""


@dataclass(frozen=True)
class PublishFailure:
    """The platform attempt failed (or was never made)."""

    error_kind: ErrorKind
    message: str


@dataclass(frozen=True)
class TimedOut:
    """The attempt exceeded its time bound and was cancelled."""

    timeout: float


PublishOutcome = PublishSuccess | PublishFailure
AttemptOutcome = PublishSuccess | PublishFailure | TimedOut


def status_error_kind(status_code: int) -> ErrorKind:
    """Map a non-success HTTP status to the error taxonomy."""
    if status_code in (401, 403):
        return ErrorKind.AUTHENTICATION
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code in (400, 413, 422):
        return ErrorKind.MALFORMED_REQUEST
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNKNOWN


@runtime_checkable
class Publisher(Protocol):
    """Protocol for platform-specific publishing implementations."""

    platform: PlatformKind
    default_timeout: float

    async def publish(self, credential: Credential, text: str) -> PublishOutcome:
        """Publish text to the platform using an already validated credential."""
        ...

    async def verify(self, credential: Credential) -> PublishOutcome:
        """Check the credential against the live platform without posting."""
        ...
