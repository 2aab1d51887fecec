"""Dispatch service: fans one composed post out to every selected platform.

Each platform is gated by the length check and credential validation before
any network I/O. Eligible platforms are then published concurrently, each
attempt bounded by its own timeout. Every outcome, including timeouts and
unexpected adapter errors, is captured as data, so the caller always gets a
report covering every targeted platform.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from multipost.crosspost.base import ErrorKind, PlatformKind, PublishFailure, TimedOut
from multipost.crosspost.limits import enforce, measure
from multipost.exceptions import AttemptTimeoutError, ConstraintError
from multipost.services.credential_service import validate
from multipost.services.report_service import DispatchAttemptResult, DispatchReport

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from multipost.crosspost.base import AttemptOutcome, Publisher
    from multipost.schemas.credentials import Credential

logger = logging.getLogger(__name__)

ResultCallback = Callable[[DispatchAttemptResult], None]


@dataclass(frozen=True)
class ComposedPost:
    """One message and the platforms it should go to."""

    text: str
    targets: frozenset[PlatformKind]

    def __post_init__(self) -> None:
        if not self.text.strip():
            msg = "Post text is empty"
            raise ValueError(msg)
        object.__setattr__(self, "targets", frozenset(self.targets))
        if not self.targets:
            msg = "No platforms selected"
            raise ValueError(msg)
        unknown = [target for target in self.targets if not isinstance(target, PlatformKind)]
        if unknown:
            msg = f"Unknown platform target(s): {', '.join(sorted(map(repr, unknown)))}"
            raise ValueError(msg)

    def length(self, kind: PlatformKind) -> int:
        """Length of the text as the given platform counts it."""
        return measure(kind, self.text)


@dataclass(frozen=True)
class _Attempt:
    platform: PlatformKind
    publisher: Publisher
    credential: Credential
    timeout: float


def _ordered(targets: Iterable[PlatformKind]) -> list[PlatformKind]:
    selected = set(targets)
    return [kind for kind in PlatformKind if kind in selected]


def _notify(on_result: ResultCallback | None, result: DispatchAttemptResult) -> None:
    if on_result is None:
        return
    try:
        on_result(result)
    except Exception:
        logger.exception("Result callback failed for %s", result.platform.id)


async def _run_attempt(
    attempt: _Attempt,
    text: str,
    clock: Callable[[], float],
    on_result: ResultCallback | None = None,
) -> DispatchAttemptResult:
    """Run one publish call under its timeout and turn every ending into data."""
    kind = attempt.platform
    started = clock()
    outcome: AttemptOutcome
    try:
        async with asyncio.timeout(attempt.timeout) as scope:
            outcome = await attempt.publisher.publish(attempt.credential, text)
    except TimeoutError:
        if scope.expired():
            logger.warning("%s", AttemptTimeoutError(kind, attempt.timeout))
            outcome = TimedOut(attempt.timeout)
        else:
            logger.warning("%s adapter raised a timeout of its own", kind.display_name)
            outcome = PublishFailure(ErrorKind.NETWORK, "Connection timed out")
    except Exception as exc:
        logger.exception("Unexpected error publishing to %s", kind.id)
        outcome = PublishFailure(ErrorKind.UNKNOWN, str(exc) or type(exc).__name__)
    elapsed = clock() - started
    logger.info("%s attempt finished in %.2fs: %s", kind.id, elapsed, type(outcome).__name__)
    result = DispatchAttemptResult(kind, outcome, elapsed)
    _notify(on_result, result)
    return result


def _precheck(
    kind: PlatformKind,
    text: str,
    credentials: Mapping[PlatformKind, Credential],
    publishers: Mapping[PlatformKind, Publisher],
) -> PublishFailure | None:
    """Return the failure that rules a platform out before any I/O, or None."""
    try:
        enforce(kind, text)
    except ConstraintError as exc:
        logger.info("Skipping %s: %s", kind.id, exc)
        return PublishFailure(ErrorKind.EXCEEDS_LIMIT, str(exc))

    validation = validate(kind, credentials.get(kind))
    if not validation.valid:
        reason = validation.reason or "Invalid credential"
        return PublishFailure(ErrorKind.INVALID_CREDENTIAL, reason)

    if kind not in publishers:
        return PublishFailure(ErrorKind.UNKNOWN, f"No publisher registered for {kind.id}")
    return None


async def dispatch(
    post: ComposedPost,
    credentials: Mapping[PlatformKind, Credential],
    *,
    publishers: Mapping[PlatformKind, Publisher],
    timeouts: Mapping[PlatformKind, float] | None = None,
    clock: Callable[[], float] = time.monotonic,
    on_result: ResultCallback | None = None,
) -> DispatchReport:
    """Publish a post to each of its target platforms and report every outcome.

    ``timeouts`` overrides a publisher's ``default_timeout`` per platform.
    ``on_result`` is called with each platform's result as soon as it is
    known, before the report is returned.
    Nothing is retried. Cancelling the call cancels every pending attempt,
    closes their connections, and propagates ``CancelledError``.
    """
    overrides = timeouts or {}
    results: dict[PlatformKind, DispatchAttemptResult] = {}
    attempts: list[_Attempt] = []

    for kind in _ordered(post.targets):
        failure = _precheck(kind, post.text, credentials, publishers)
        if failure is not None:
            results[kind] = DispatchAttemptResult(kind, failure)
            _notify(on_result, results[kind])
            continue
        publisher = publishers[kind]
        attempts.append(
            _Attempt(
                platform=kind,
                publisher=publisher,
                credential=credentials[kind],
                timeout=overrides.get(kind, publisher.default_timeout),
            )
        )

    if attempts:
        logger.info("Dispatching to %s", ", ".join(a.platform.id for a in attempts))
        async with asyncio.TaskGroup() as tg:
            tasks = [
                tg.create_task(_run_attempt(a, post.text, clock, on_result)) for a in attempts
            ]
        for task in tasks:
            result = task.result()
            results[result.platform] = result

    return DispatchReport(tuple(results[kind] for kind in _ordered(post.targets)))
