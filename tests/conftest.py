"""Shared test fixtures for the agentforge test suite."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from agentforge.cache import CacheConfig, CacheStore
from agentforge.config import Settings
from agentforge.models.analysis import Dependency, ProjectAnalysis

if TYPE_CHECKING:
    from pathlib import Path

    from agentforge.models.generation import GenerationRequest


class FakeClock:
    """Settable clock injected into CacheConfig."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class ScriptedGenerator:
    """In-memory GeneratorProtocol with scripted failures and delays.

    Tracks the peak number of concurrent ``generate`` calls.
    """

    def __init__(
        self,
        *,
        fail: set[str] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.fail = fail or set()
        self.delays = delays or {}
        self.requests: list[GenerationRequest] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(request.task.name, 0))
            if request.task.name in self.fail:
                raise RuntimeError(f"model refused {request.task.name}")
            return f"# {request.task.name}\n\ngenerated at {request.tier}"
        finally:
            self.in_flight -= 1

    @property
    def generated_names(self) -> list[str]:
        return [r.task.name for r in self.requests]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture()
def cache_config(tmp_path: Path, clock: FakeClock) -> CacheConfig:
    return CacheConfig(directory=tmp_path / "cache", clock=clock)


@pytest.fixture()
async def cache(cache_config: CacheConfig) -> CacheStore:
    store = CacheStore(cache_config)
    await store.init()
    return store


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(cache={"dir": str(tmp_path / "cache")})


@pytest.fixture()
def project_root(tmp_path: Path) -> Path:
    """A small Node-style project with a lock file and a src/ tree."""
    root = tmp_path / "project"
    (root / "src" / "components").mkdir(parents=True)
    (root / "package.json").write_text('{"name": "demo", "dependencies": {"react": "18"}}')
    (root / "package-lock.json").write_text('{"lockfileVersion": 3}')
    (root / "src" / "index.ts").write_text("export const x = 1;\n")
    (root / "src" / "components" / "Button.tsx").write_text("export function Button() {}\n")
    return root


@pytest.fixture()
def sample_analysis(project_root: Path) -> ProjectAnalysis:
    return ProjectAnalysis(
        project_root=str(project_root),
        project_type="react",
        language="typescript",
        framework="react",
        dependencies=[Dependency(name="react", version="18", category="framework")],
        suggested_agents=["frontend-engineer"],
        suggested_skills=["react"],
        total_files=2,
        analyzed_at=datetime(2026, 1, 1, tzinfo=UTC),
    )
