"""Tests for dispatch report aggregation."""

from __future__ import annotations

import json

from multipost.crosspost.base import (
    ErrorKind,
    PlatformKind,
    PublishFailure,
    PublishSuccess,
    TimedOut,
)
from multipost.services.report_service import (
    DispatchAttemptResult,
    DispatchReport,
    OverallStatus,
    detailed_errors,
    report_to_dict,
    summarize,
    summary_message,
)

NOSTR_OK = DispatchAttemptResult(PlatformKind.NOSTR, PublishSuccess("abc123"), 0.4)
BLUESKY_TOO_LONG = DispatchAttemptResult(
    PlatformKind.BLUESKY,
    PublishFailure(ErrorKind.EXCEEDS_LIMIT, "Bluesky: text exceeds 300 characters (750)"),
)
MASTODON_TIMEOUT = DispatchAttemptResult(PlatformKind.MASTODON, TimedOut(15.0), 15.0)


class TestSummarize:
    def test_all_succeeded(self) -> None:
        assert summarize([NOSTR_OK]) is OverallStatus.ALL_SUCCEEDED

    def test_all_failed(self) -> None:
        assert summarize([BLUESKY_TOO_LONG, MASTODON_TIMEOUT]) is OverallStatus.ALL_FAILED

    def test_partial(self) -> None:
        assert summarize([NOSTR_OK, MASTODON_TIMEOUT]) is OverallStatus.PARTIAL_SUCCESS

    def test_timeout_counts_as_failure(self) -> None:
        assert not MASTODON_TIMEOUT.succeeded


class TestMessages:
    def test_summary_singular(self) -> None:
        report = DispatchReport((NOSTR_OK,))
        assert summary_message(report) == "Successfully posted to all 1 platform"

    def test_summary_all_failed(self) -> None:
        report = DispatchReport((BLUESKY_TOO_LONG, MASTODON_TIMEOUT))
        assert summary_message(report) == "Failed to post to all 2 platforms"

    def test_summary_partial(self) -> None:
        report = DispatchReport((NOSTR_OK, BLUESKY_TOO_LONG, MASTODON_TIMEOUT))
        assert summary_message(report) == "Posted to 1 of 3 platforms successfully"

    def test_detailed_errors_name_each_platform_once(self) -> None:
        report = DispatchReport((NOSTR_OK, BLUESKY_TOO_LONG, MASTODON_TIMEOUT))
        assert detailed_errors(report) == [
            "Bluesky: text exceeds 300 characters (750)",
            "Mastodon: timed out after 15s",
        ]

    def test_describe_prefixes_bare_messages(self) -> None:
        result = DispatchAttemptResult(
            PlatformKind.MASTODON, PublishFailure(ErrorKind.NETWORK, "connection reset")
        )
        assert result.describe() == "Mastodon: connection reset"

    def test_describe_success_prefers_url(self) -> None:
        result = DispatchAttemptResult(
            PlatformKind.MASTODON, PublishSuccess("1", "https://mastodon.example/@a/1")
        )
        assert result.describe() == "Mastodon: posted (https://mastodon.example/@a/1)"


class TestReport:
    def test_accessors(self) -> None:
        report = DispatchReport((NOSTR_OK, BLUESKY_TOO_LONG, MASTODON_TIMEOUT))
        assert report.succeeded == [NOSTR_OK]
        assert report.failed == [BLUESKY_TOO_LONG, MASTODON_TIMEOUT]
        assert report.result_for(PlatformKind.MASTODON) is MASTODON_TIMEOUT

    def test_result_for_untargeted_platform(self) -> None:
        assert DispatchReport((NOSTR_OK,)).result_for(PlatformKind.BLUESKY) is None

    def test_report_to_dict_is_json_ready(self) -> None:
        report = DispatchReport((NOSTR_OK, BLUESKY_TOO_LONG, MASTODON_TIMEOUT))
        data = json.loads(json.dumps(report_to_dict(report)))
        assert data["status"] == "partial_success"
        assert data["summary"] == "Posted to 1 of 3 platforms successfully"
        assert data["results"] == [
            {
                "platform": "nostr",
                "elapsed": 0.4,
                "result": "success",
                "remote_id": "abc123",
                "url": "",
            },
            {
                "platform": "bluesky",
                "elapsed": 0.0,
                "result": "failure",
                "error_kind": "exceeds_limit",
                "message": "Bluesky: text exceeds 300 characters (750)",
            },
            {"platform": "mastodon", "elapsed": 15.0, "result": "timed_out", "timeout": 15.0},
        ]
