"""Protocol interfaces for swappable components.

The orchestrator references these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory fakes and scripted generators
- The project detector and the model client to be replaced without
  touching dispatch or caching code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pathlib import Path

    from agentforge.models.analysis import ProjectAnalysis
    from agentforge.models.cache import CacheStats
    from agentforge.models.generation import GenerationKey, GenerationRequest


class CacheProtocol(Protocol):
    """Interface for the artifact cache backend."""

    async def get_analysis(
        self, root: Path | str, *, fingerprint: str | None = None
    ) -> ProjectAnalysis | None: ...

    async def put_analysis(
        self, root: Path | str, analysis: ProjectAnalysis, *, fingerprint: str | None = None
    ) -> None: ...

    async def get_generation(self, key: GenerationKey) -> str | None: ...

    async def put_generation(self, key: GenerationKey, content: str) -> None: ...

    async def clear(self) -> None: ...

    async def stats(self) -> CacheStats: ...


class GeneratorProtocol(Protocol):
    """Interface for the external language-model call.

    Implementations enforce their own timeout and raise on failure.
    """

    async def generate(self, request: GenerationRequest) -> str: ...


class AnalyzerProtocol(Protocol):
    """Interface for the heuristic project detector."""

    async def analyze(self, root: Path) -> ProjectAnalysis: ...
