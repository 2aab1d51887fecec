"""Bluesky publishing via AT Protocol XRPC with an app password session."""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
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
    from multipost.schemas.credentials import BlueskyCredential

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
POST_COLLECTION = "app.bsky.feed.post"

_URL_RE = re.compile(r"https?://[^\s<>\"]+")
_TAG_RE = re.compile(r"(?:^|(?<=\s))#([^\s#]+)")
_TRAILING_PUNCTUATION = ".,;:!?)]}'\""


def _byte_index(text: str, start: int, end: int) -> dict[str, int]:
    byte_start = len(text[:start].encode("utf-8"))
    return {
        "byteStart": byte_start,
        "byteEnd": byte_start + len(text[start:end].encode("utf-8")),
    }


def _find_facets(text: str) -> list[dict[str, Any]]:
    """Build rich text facets for links and hashtags, with UTF-8 byte offsets."""
    facets: list[dict[str, Any]] = []

    for match in _URL_RE.finditer(text):
        url = match.group(0).rstrip(_TRAILING_PUNCTUATION)
        end = match.start() + len(url)
        facets.append(
            {
                "index": _byte_index(text, match.start(), end),
                "features": [{"$type": "app.bsky.richtext.facet#link", "uri": url}],
            }
        )

    for match in _TAG_RE.finditer(text):
        tag = match.group(1).rstrip(_TRAILING_PUNCTUATION)
        if not tag or tag.isdigit():
            continue
        start = match.start(1) - 1
        facets.append(
            {
                "index": _byte_index(text, start, start + 1 + len(tag)),
                "features": [{"$type": "app.bsky.richtext.facet#tag", "tag": tag}],
            }
        )

    return facets


def _post_url(handle: str, uri: str) -> str:
    rkey = uri.rsplit("/", 1)[-1] if uri else ""
    return f"https://bsky.app/profile/{handle}/post/{rkey}" if rkey else ""


def _raise_for_status(resp: httpx.Response, action: str) -> None:
    if resp.status_code == 200:
        return
    try:
        body = resp.json()
    except ValueError:
        body = None
    error = ""
    if isinstance(body, dict):
        error = str(body.get("error") or "")
        detail = " ".join(part for part in (error, str(body.get("message") or "")) if part)
    else:
        detail = resp.text[:200]
    error_kind = status_error_kind(resp.status_code)
    if resp.status_code == 400 and error in ("ExpiredToken", "InvalidToken"):
        error_kind = ErrorKind.AUTHENTICATION
    msg = f"{action} failed: {resp.status_code} {detail}".rstrip()
    raise PlatformNetworkError(PlatformKind.BLUESKY, error_kind, msg)


def _json_object(resp: httpx.Response) -> dict[str, Any]:
    data = resp.json()
    if not isinstance(data, dict):
        msg = "unexpected response (expected a JSON object)"
        raise PlatformNetworkError(PlatformKind.BLUESKY, ErrorKind.UNKNOWN, msg)
    return data


class BlueskyPublisher:
    """Publisher for Bluesky using com.atproto.server.createSession."""

    platform: PlatformKind = PlatformKind.BLUESKY

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        self.default_timeout = default_timeout

    async def _create_session(
        self, client: httpx.AsyncClient, credential: BlueskyCredential
    ) -> dict[str, Any]:
        service_url = credential.service_url.rstrip("/")
        resp = await client.post(
            f"{service_url}/xrpc/com.atproto.server.createSession",
            json={"identifier": credential.identifier, "password": credential.app_password},
            timeout=self.default_timeout,
        )
        _raise_for_status(resp, "Bluesky login")
        session = _json_object(resp)
        if not session.get("accessJwt") or not session.get("did"):
            msg = "Bluesky login response missing accessJwt or did"
            raise PlatformNetworkError(PlatformKind.BLUESKY, ErrorKind.UNKNOWN, msg)
        return session

    async def publish(self, credential: BlueskyCredential, text: str) -> PublishOutcome:
        """Create an app.bsky.feed.post record for the session's account."""
        service_url = credential.service_url.rstrip("/")
        record: dict[str, Any] = {
            "$type": POST_COLLECTION,
            "text": text,
            "createdAt": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        }
        facets = _find_facets(text)
        if facets:
            record["facets"] = facets

        async with httpx.AsyncClient() as client:
            try:
                session = await self._create_session(client, credential)
                resp = await client.post(
                    f"{service_url}/xrpc/com.atproto.repo.createRecord",
                    json={"repo": session["did"], "collection": POST_COLLECTION, "record": record},
                    headers={"Authorization": f"Bearer {session['accessJwt']}"},
                    timeout=self.default_timeout,
                )
                _raise_for_status(resp, "Bluesky post")
                data = _json_object(resp)
            except PlatformNetworkError as exc:
                logger.warning("Bluesky post rejected: %s", exc)
                return PublishFailure(exc.error_kind, str(exc))
            except httpx.HTTPError as exc:
                logger.warning("Bluesky post HTTP error: %s", exc)
                return PublishFailure(ErrorKind.NETWORK, f"HTTP error: {exc}")
            except ValueError:
                return PublishFailure(ErrorKind.UNKNOWN, "Bluesky returned malformed JSON")

        uri = data.get("uri", "")
        if not uri:
            return PublishFailure(ErrorKind.UNKNOWN, "Bluesky response missing record uri")
        handle = session.get("handle") or credential.identifier
        return PublishSuccess(remote_id=uri, url=_post_url(handle, uri))

    async def verify(self, credential: BlueskyCredential) -> PublishOutcome:
        """Log in without posting to confirm the app password works."""
        async with httpx.AsyncClient() as client:
            try:
                session = await self._create_session(client, credential)
            except PlatformNetworkError as exc:
                return PublishFailure(exc.error_kind, str(exc))
            except httpx.HTTPError as exc:
                return PublishFailure(ErrorKind.NETWORK, f"HTTP error: {exc}")
            except ValueError:
                return PublishFailure(ErrorKind.UNKNOWN, "Bluesky returned malformed JSON")
        return PublishSuccess(remote_id=session["did"], url="")
