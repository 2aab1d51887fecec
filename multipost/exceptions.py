"""Dispatch error taxonomy.

Convention:
- These exceptions are raised *inside* a single platform's path (key decoding,
  adapter internals) and are converted to data before they can reach the
  dispatch caller. ``dispatch()`` itself only ever lets cancellation escape.
- ``ValueError`` is used for caller mistakes that are safe to show to the user
  as-is (blank post text, unknown platform id, unreadable credentials file).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from multipost.crosspost.base import ErrorKind, PlatformKind


class DispatchError(Exception):
    """Base class for errors raised on one platform's dispatch path."""


class CredentialValidationError(DispatchError):
    """A credential is malformed. It is rejected, never auto-corrected."""


class ConstraintError(DispatchError):
    """Content exceeds a platform limit. It is rejected, never truncated."""

    def __init__(self, platform: PlatformKind, limit: int, actual: int) -> None:
        self.platform = platform
        self.limit = limit
        self.actual = actual
        super().__init__(
            f"{platform.display_name}: text exceeds {limit} characters ({actual})"
        )


class PlatformNetworkError(DispatchError):
    """Connection, auth or rate-limit failure reported by a specific platform."""

    def __init__(self, platform: PlatformKind, error_kind: ErrorKind, message: str) -> None:
        self.platform = platform
        self.error_kind = error_kind
        super().__init__(f"{platform.display_name}: {message}")


class AttemptTimeoutError(DispatchError):
    """A platform attempt exceeded its bound and was cancelled."""

    def __init__(self, platform: PlatformKind, timeout: float) -> None:
        self.platform = platform
        self.timeout = timeout
        super().__init__(f"{platform.display_name}: timed out after {timeout:g}s")
