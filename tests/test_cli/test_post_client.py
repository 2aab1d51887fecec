"""Tests for the multipost CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from cli.post_client import main, parse_targets
from multipost.crosspost.base import ErrorKind, PlatformKind, PublishFailure, PublishSuccess
from multipost.crosspost.nostr_keys import decode_npub, decode_private_key

if TYPE_CHECKING:
    from pathlib import Path

CREDENTIALS_TOML = """
[nostr]
private_key = "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"

[mastodon]
instance_url = "https://mastodon.example"
account = "alice"
access_token = "token-123"
"""


class StubPublisher:
    def __init__(self, platform: PlatformKind, outcome: Any = None) -> None:
        self.platform = platform
        self.default_timeout = 5.0
        self.outcome = outcome or PublishSuccess(remote_id=f"{platform.id}-1")
        self.texts: list[str] = []

    async def publish(self, credential: Any, text: str) -> Any:
        self.texts.append(text)
        return self.outcome

    async def verify(self, credential: Any) -> Any:
        return self.outcome


@pytest.fixture(autouse=True)
def _keep_test_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Leave pytest's log handlers alone; main() would otherwise reconfigure the root logger."""
    monkeypatch.setattr("cli.post_client._configure_logging", lambda debug: None)


@pytest.fixture
def credentials_path(tmp_path: Path) -> Path:
    path = tmp_path / "credentials.toml"
    path.write_text(CREDENTIALS_TOML)
    return path


@pytest.fixture
def stub_publishers(monkeypatch: pytest.MonkeyPatch) -> dict[PlatformKind, StubPublisher]:
    publishers = {kind: StubPublisher(kind) for kind in PlatformKind}
    monkeypatch.setattr("cli.post_client.build_publishers", lambda settings: publishers)
    return publishers


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return int(exc_info.value.code or 0)


class TestParseTargets:
    def test_parses_comma_list(self) -> None:
        assert parse_targets("nostr, mastodon") == frozenset(
            {PlatformKind.NOSTR, PlatformKind.MASTODON}
        )

    def test_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown platform"):
            parse_targets("nostr,myspace")

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValueError, match="No platforms"):
            parse_targets(" , ")


class TestPostCommand:
    def test_all_succeeded_exits_zero(
        self,
        credentials_path: Path,
        stub_publishers: dict[PlatformKind, StubPublisher],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = _run(
            ["--credentials", str(credentials_path), "post", "hello", "--to", "nostr,mastodon"]
        )

        assert code == 0
        out = capsys.readouterr().out
        assert "Successfully posted to all 2 platforms" in out
        assert stub_publishers[PlatformKind.NOSTR].texts == ["hello"]
        assert stub_publishers[PlatformKind.BLUESKY].texts == []

    def test_partial_success_exits_two_with_json(
        self,
        credentials_path: Path,
        stub_publishers: dict[PlatformKind, StubPublisher],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = _run(["--credentials", str(credentials_path), "post", "hello", "--json"])

        assert code == 2
        data = json.loads(capsys.readouterr().out)
        assert data["status"] == "partial_success"
        bluesky = next(r for r in data["results"] if r["platform"] == "bluesky")
        assert bluesky["error_kind"] == "invalid_credential"

    def test_all_failed_exits_one(
        self,
        credentials_path: Path,
        stub_publishers: dict[PlatformKind, StubPublisher],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        stub_publishers[PlatformKind.MASTODON].outcome = PublishFailure(
            ErrorKind.AUTHENTICATION, "Mastodon: Mastodon post failed: 401"
        )

        code = _run(["--credentials", str(credentials_path), "post", "hi", "--to", "mastodon"])

        assert code == 1
        out = capsys.readouterr().out
        assert "Failed to post to all 1 platform" in out
        assert "Mastodon: Mastodon post failed: 401" in out

    def test_over_limit_text_is_reported(
        self,
        credentials_path: Path,
        stub_publishers: dict[PlatformKind, StubPublisher],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = _run(
            [
                "--credentials",
                str(credentials_path),
                "post",
                "x" * 750,
                "--to",
                "nostr,mastodon",
            ]
        )

        assert code == 2
        assert "Mastodon: text exceeds 500 characters (750)" in capsys.readouterr().out
        assert stub_publishers[PlatformKind.MASTODON].texts == []

    def test_results_are_printed_before_summary(
        self,
        credentials_path: Path,
        stub_publishers: dict[PlatformKind, StubPublisher],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = _run(
            ["--credentials", str(credentials_path), "post", "hello", "--to", "nostr,bluesky"]
        )

        assert code == 2
        lines = capsys.readouterr().out.splitlines()
        assert sorted(lines[:2]) == [
            "  ! Bluesky: No Bluesky credential configured",
            "  + Nostr: posted (nostr-1)",
        ]
        assert lines[2] == "Posted to 1 of 2 platforms successfully"

    def test_unknown_platform_exits_one(
        self,
        credentials_path: Path,
        stub_publishers: dict[PlatformKind, StubPublisher],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = _run(["--credentials", str(credentials_path), "post", "hi", "--to", "friendster"])

        assert code == 1
        assert "Unknown platform" in capsys.readouterr().out

    def test_timeout_must_be_positive(
        self, credentials_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run(["--credentials", str(credentials_path), "post", "hi", "--timeout", "0"])

        assert code == 1
        assert "--timeout must be positive" in capsys.readouterr().out

    def test_broken_credentials_file_exits_one(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "credentials.toml"
        path.write_text("[mastodon]\naccount = 'a'\n")

        code = _run(["--credentials", str(path), "post", "hi"])

        assert code == 1
        assert "Invalid [mastodon] credentials" in capsys.readouterr().out


class TestOtherCommands:
    def test_count(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run(["count", "x" * 400])

        assert code == 0
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("Nostr") and "400 left" in lines[0]
        assert lines[1].startswith("Bluesky") and "over limit" in lines[1]
        assert lines[2].startswith("Mastodon") and "100 left" in lines[2]

    def test_validate(
        self, credentials_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run(["--credentials", str(credentials_path), "validate"])

        assert code == 0
        out = capsys.readouterr().out
        assert "Nostr: ok" in out
        assert "Mastodon: ok" in out

    def test_validate_reports_bad_key(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "credentials.toml"
        path.write_text('[nostr]\nprivate_key = "abc"\n')

        code = _run(["--credentials", str(path), "validate"])

        assert code == 1
        assert "Nostr: Private key must be 64 hex characters" in capsys.readouterr().out

    def test_validate_without_credentials(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run(["--credentials", str(tmp_path / "none.toml"), "validate"])

        assert code == 1
        assert "No credentials configured" in capsys.readouterr().out

    def test_verify(
        self,
        credentials_path: Path,
        stub_publishers: dict[PlatformKind, StubPublisher],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = _run(["--credentials", str(credentials_path), "verify"])

        assert code == 0
        out = capsys.readouterr().out
        assert "Nostr: ok (nostr-1)" in out
        assert "Mastodon: ok (mastodon-1)" in out
        assert "Bluesky" not in out

    def test_keygen(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run(["keygen"])

        assert code == 0
        fields = dict(
            line.split(":", 1) for line in capsys.readouterr().out.splitlines() if ":" in line
        )
        nsec = fields["nsec"].strip()
        npub = fields["npub"].strip()
        assert decode_private_key(nsec).hex() == fields["private hex"].strip()
        assert decode_npub(npub).hex() == fields["public hex"].strip()

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run([])

        assert code == 1
        assert "usage: multipost" in capsys.readouterr().out

    def test_verify_survives_adapter_crash(
        self,
        credentials_path: Path,
        stub_publishers: dict[PlatformKind, StubPublisher],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        async def broken_verify(credential: Any) -> Any:
            raise AttributeError("'list' object has no attribute 'get'")

        stub_publishers[PlatformKind.MASTODON].verify = broken_verify  # type: ignore[method-assign]

        code = _run(["--credentials", str(credentials_path), "verify"])

        assert code == 1
        out = capsys.readouterr().out
        assert "Nostr: ok (nostr-1)" in out
        assert "Mastodon: 'list' object has no attribute 'get'" in out
