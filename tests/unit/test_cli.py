"""Unit tests for the agentforge command line."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import pytest
import structlog

from agentforge import cli
from agentforge.cli import main
from agentforge.fingerprint import compute_project_fingerprint

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from agentforge.config import Settings


@pytest.fixture(autouse=True)
def cache_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    path = tmp_path / "cli-cache"
    monkeypatch.setenv("AGENTFORGE__CACHE__DIR", str(path))
    monkeypatch.setenv("AGENTFORGE__LOGGING__LEVEL", "ERROR")
    # Keep module loggers uncached so later tests can still capture their events
    original = cli.setup_logging

    def setup_uncached(settings: Settings) -> None:
        original(settings)
        structlog.configure(cache_logger_on_first_use=False)

    monkeypatch.setattr(cli, "setup_logging", setup_uncached)
    yield path
    structlog.reset_defaults()


def _last_error(err: str) -> dict:
    return json.loads(err.strip().splitlines()[-1])


class TestEstimate:
    def test_prints_cost_preview(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["estimate", "--agent", "architect", "--skill", "git", "--model", "high"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["api_call_count"] == 3
        assert output["item_tiers"] == {
            "agent:architect": "high",
            "skill:git": "low",
            "overview-document:overview": "high",
        }
        assert output["total_cost"] > 0

    def test_no_overview(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["estimate", "--hook", "lint", "--no-overview"]) == 0
        assert json.loads(capsys.readouterr().out)["api_call_count"] == 1

    def test_blank_item_name(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["estimate", "--skill", " "]) == 1
        error = _last_error(capsys.readouterr().err)
        assert error["error"]["code"] == "INVALID_INPUT"


class TestCache:
    def test_stats_on_empty_cache(
        self, cache_dir: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["cache", "stats"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["cache_dir"] == str(cache_dir)
        assert output["analysis_count"] == 0
        assert output["generation_count"] == 0

    def test_clear(self, cache_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        cache_dir.mkdir(parents=True)
        (cache_dir / "gen-abc.txt").write_text("stale")
        assert main(["cache", "clear"]) == 0
        assert json.loads(capsys.readouterr().out)["generation_count"] == 0
        assert not (cache_dir / "gen-abc.txt").exists()


class TestFingerprint:
    def test_matches_library(
        self, project_root: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        expected = asyncio.run(compute_project_fingerprint(project_root))
        capsys.readouterr()
        assert main(["fingerprint", str(project_root)]) == 0
        assert json.loads(capsys.readouterr().out)["fingerprint"] == expected


class TestConfigErrors:
    def test_invalid_concurrency(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("AGENTFORGE__GENERATION__CONCURRENCY", "0")
        assert main(["cache", "stats"]) == 1
        error = _last_error(capsys.readouterr().err)
        assert error["error"]["code"] == "INVALID_CONFIG"
        assert error["error"]["recoverable"] is False
