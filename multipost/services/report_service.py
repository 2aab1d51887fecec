"""Dispatch results and their aggregation into one overall outcome."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from multipost.crosspost.base import PublishFailure, PublishSuccess, TimedOut
from multipost.exceptions import AttemptTimeoutError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from multipost.crosspost.base import AttemptOutcome, PlatformKind


class OverallStatus(Enum):
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL_SUCCESS = "partial_success"
    ALL_FAILED = "all_failed"


@dataclass(frozen=True)
class DispatchAttemptResult:
    """Outcome of one platform's attempt within a dispatch."""

    platform: PlatformKind
    outcome: AttemptOutcome
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, PublishSuccess)

    def describe(self) -> str:
        """One-line human readable description of the outcome."""
        name = self.platform.display_name
        outcome = self.outcome
        if isinstance(outcome, PublishSuccess):
            return f"{name}: posted ({outcome.url or outcome.remote_id})"
        if isinstance(outcome, TimedOut):
            return str(AttemptTimeoutError(self.platform, outcome.timeout))
        prefix = f"{name}: "
        if outcome.message.startswith(prefix):
            return outcome.message
        return prefix + outcome.message


def summarize(results: Iterable[DispatchAttemptResult]) -> OverallStatus:
    """ALL_SUCCEEDED iff every attempt succeeded, ALL_FAILED iff none did."""
    flags = [result.succeeded for result in results]
    if flags and all(flags):
        return OverallStatus.ALL_SUCCEEDED
    if not any(flags):
        return OverallStatus.ALL_FAILED
    return OverallStatus.PARTIAL_SUCCESS


@dataclass(frozen=True)
class DispatchReport:
    """Every targeted platform's result for one composed post."""

    results: tuple[DispatchAttemptResult, ...]

    @property
    def status(self) -> OverallStatus:
        return summarize(self.results)

    @property
    def succeeded(self) -> list[DispatchAttemptResult]:
        return [r for r in self.results if r.succeeded]

    @property
    def failed(self) -> list[DispatchAttemptResult]:
        return [r for r in self.results if not r.succeeded]

    def result_for(self, platform: PlatformKind) -> DispatchAttemptResult | None:
        return next((r for r in self.results if r.platform is platform), None)


def summary_message(report: DispatchReport) -> str:
    total = len(report.results)
    plural = "" if total == 1 else "s"
    status = report.status
    if status is OverallStatus.ALL_SUCCEEDED:
        return f"Successfully posted to all {total} platform{plural}"
    if status is OverallStatus.ALL_FAILED:
        return f"Failed to post to all {total} platform{plural}"
    return f"Posted to {len(report.succeeded)} of {total} platforms successfully"


def detailed_errors(report: DispatchReport) -> list[str]:
    """Per-platform error lines for every attempt that did not succeed."""
    return [result.describe() for result in report.failed]


def _outcome_to_dict(outcome: AttemptOutcome) -> dict[str, Any]:
    if isinstance(outcome, PublishSuccess):
        return {"result": "success", "remote_id": outcome.remote_id, "url": outcome.url}
    if isinstance(outcome, PublishFailure):
        return {
            "result": "failure",
            "error_kind": outcome.error_kind.value,
            "message": outcome.message,
        }
    return {"result": "timed_out", "timeout": outcome.timeout}


def report_to_dict(report: DispatchReport) -> dict[str, Any]:
    """JSON-ready representation of a report."""
    return {
        "status": report.status.value,
        "summary": summary_message(report),
        "results": [
            {
                "platform": result.platform.id,
                "elapsed": round(result.elapsed, 3),
                **_outcome_to_dict(result.outcome),
            }
            for result in report.results
        ],
    }
