"""Mastodon publishing via the Mastodon HTTP API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from multipost.crosspost.base import (
    ErrorKind,
    PlatformKind,
    PublishFailure,
    PublishSuccess,
    status_error_kind,
)
from multipost.exceptions import PlatformNetworkError

if TYPE_CHECKING:
    from multipost.crosspost.base import PublishOutcome
    from multipost.schemas.credentials import MastodonCredential

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


def _normalize_instance_url(raw_url: str) -> str:
    """Return the instance base URL without a trailing slash."""
    return raw_url.strip().rstrip("/")


def _raise_for_status(resp: httpx.Response, action: str) -> None:
    if resp.status_code in (200, 201, 202):
        return
    error_kind = status_error_kind(resp.status_code)
    detail = resp.text[:200]
    msg = f"{action} failed: {resp.status_code} {detail}".rstrip()
    raise PlatformNetworkError(PlatformKind.MASTODON, error_kind, msg)


def _json_object(resp: httpx.Response) -> dict[str, Any]:
    data = resp.json()
    if not isinstance(data, dict):
        msg = "unexpected response (expected a JSON object)"
        raise PlatformNetworkError(PlatformKind.MASTODON, ErrorKind.UNKNOWN, msg)
    return data


class MastodonPublisher:
    """Publisher for Mastodon-compatible instances."""

    platform: PlatformKind = PlatformKind.MASTODON

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        self.default_timeout = default_timeout

    def _headers(self, credential: MastodonCredential) -> dict[str, str]:
        return {"Authorization": f"Bearer {credential.access_token}"}

    async def publish(self, credential: MastodonCredential, text: str) -> PublishOutcome:
        """Create a public status on the credential's instance."""
        instance_url = _normalize_instance_url(credential.instance_url)
        async with httpx.AsyncClient() as client:
            try:
                resp = await client.post(
                    f"{instance_url}/api/v1/statuses",
                    json={"status": text},
                    headers=self._headers(credential),
                    timeout=self.default_timeout,
                )
                _raise_for_status(resp, "Mastodon post")
                data = _json_object(resp)
            except PlatformNetworkError as exc:
                logger.warning("Mastodon post to %s rejected: %s", instance_url, exc)
                return PublishFailure(exc.error_kind, str(exc))
            except httpx.HTTPError as exc:
                logger.warning("Mastodon post HTTP error for %s: %s", instance_url, exc)
                return PublishFailure(ErrorKind.NETWORK, f"HTTP error: {exc}")
            except ValueError:
                return PublishFailure(ErrorKind.UNKNOWN, "Mastodon returned malformed JSON")

        status_id = str(data.get("id", ""))
        if not status_id:
            return PublishFailure(ErrorKind.UNKNOWN, "Mastodon response missing status id")
        return PublishSuccess(remote_id=status_id, url=data.get("url") or "")

    async def verify(self, credential: MastodonCredential) -> PublishOutcome:
        """Check that the access token is still accepted by the instance."""
        instance_url = _normalize_instance_url(credential.instance_url)
        async with httpx.AsyncClient() as client:
            try:
                resp = await client.get(
                    f"{instance_url}/api/v1/accounts/verify_credentials",
                    headers=self._headers(credential),
                    timeout=self.default_timeout,
                )
                _raise_for_status(resp, "Mastodon credential check")
                data = _json_object(resp)
            except PlatformNetworkError as exc:
                logger.warning("Mastodon credential check for %s failed: %s", instance_url, exc)
                return PublishFailure(exc.error_kind, str(exc))
            except httpx.HTTPError as exc:
                return PublishFailure(ErrorKind.NETWORK, f"HTTP error: {exc}")
            except ValueError:
                return PublishFailure(ErrorKind.UNKNOWN, "Mastodon returned malformed JSON")

        return PublishSuccess(remote_id=str(data.get("id", "")), url=data.get("url") or "")
