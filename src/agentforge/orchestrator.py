"""End-to-end driver for a generation batch.

Per item:
  pending --cache hit--> DONE (from cache)
  pending --cache miss--> in flight --success--> DONE (fresh, written back)
                                    --failure--> FAILED
Every item's cache lookup completes before any dispatch is scheduled, and a
fresh result is persisted before the item is reported DONE. In the default
collecting mode one item's failure never affects its siblings; in strict mode
the first failure stops further dispatch and is re-raised.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from agentforge.cache import validate_project_root
from agentforge.concurrency import (
    ProgressCallback,
    run_bounded,
    run_bounded_collecting_errors,
)
from agentforge.errors import AgentForgeError, ErrorCode
from agentforge.estimator import estimate_cost
from agentforge.fingerprint import compute_project_fingerprint, fingerprint_text
from agentforge.models.generation import (
    BatchResult,
    BatchSelection,
    GenerationKey,
    GenerationRequest,
    ItemResult,
    ItemState,
    ModelTier,
)
from agentforge.tiers import plan_tasks, tier_for_task

if TYPE_CHECKING:
    from pathlib import Path

    from agentforge.config import Settings
    from agentforge.models.analysis import ProjectAnalysis
    from agentforge.models.cache import CacheStats
    from agentforge.models.generation import CostEstimate, GenerationTask
    from agentforge.protocols import AnalyzerProtocol, CacheProtocol, GeneratorProtocol

log = structlog.get_logger()


def _invalid_input(message: str, suggestion: str) -> AgentForgeError:
    return AgentForgeError(
        code=ErrorCode.INVALID_INPUT,
        message=message,
        suggestion=suggestion,
        recoverable=False,
    )


class GenerationOrchestrator:
    """Composes cache, tier selection, estimation and bounded dispatch."""

    def __init__(
        self,
        cache: CacheProtocol,
        settings: Settings,
        generator: GeneratorProtocol | None = None,
    ) -> None:
        self._cache = cache
        self._settings = settings
        self._generator = generator

    def _tier(self, task: GenerationTask, user_choice: ModelTier | None) -> ModelTier:
        gen = self._settings.generation
        return tier_for_task(
            task, user_choice, pinned=gen.pinned_tiers, default=gen.default_tier
        )

    # ------------------------------------------------------------------
    # Dry run
    # ------------------------------------------------------------------

    def estimate(
        self, selection: BatchSelection, model: ModelTier | None = None
    ) -> CostEstimate:
        """Cost preview for ``selection``. ``model`` overrides the configured choice."""
        gen = self._settings.generation
        return estimate_cost(
            selection,
            model if model is not None else gen.model,
            prices=self._settings.pricing.tiers,
            pinned=gen.pinned_tiers,
            default=gen.default_tier,
        )

    # ------------------------------------------------------------------
    # Analysis namespace
    # ------------------------------------------------------------------

    async def load_analysis(
        self, root: Path | str, analyzer: AnalyzerProtocol
    ) -> ProjectAnalysis:
        """Return the cached analysis for ``root``, running ``analyzer`` on a miss."""
        root_path = validate_project_root(root)
        try:
            fingerprint: str | None = await compute_project_fingerprint(root_path)
        except OSError:
            log.warning("analysis_fingerprint_error", root=str(root_path), exc_info=True)
            fingerprint = None

        cached = await self._cache.get_analysis(root_path, fingerprint=fingerprint)
        if cached is not None:
            log.info("analysis_cache_hit", root=str(root_path))
            return cached

        log.info("analysis_cache_miss", root=str(root_path))
        analysis = await analyzer.analyze(root_path)
        await self._cache.put_analysis(root_path, analysis, fingerprint=fingerprint)
        return analysis

    # ------------------------------------------------------------------
    # Generation batch
    # ------------------------------------------------------------------

    async def run_generation_batch(
        self,
        goal: str,
        codebase_fingerprint: str,
        selection: BatchSelection,
        *,
        model: ModelTier | None = None,
        analysis: ProjectAnalysis | None = None,
        strict: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Generate every selected item, serving what it can from cache.

        Raises AgentForgeError(INVALID_INPUT) for an empty goal, fingerprint
        or selection, and INVALID_CONFIG when no generator is configured.
        In strict mode the first generation failure is re-raised.
        """
        if not goal or not goal.strip():
            raise _invalid_input("goal cannot be empty", "Describe what the project should do.")
        if not codebase_fingerprint or not codebase_fingerprint.strip():
            raise _invalid_input(
                "codebase fingerprint cannot be empty",
                "Compute it with compute_project_fingerprint(project_root).",
            )
        if selection.is_empty:
            raise _invalid_input(
                "nothing selected to generate",
                "Select at least one agent, skill, hook or the overview document.",
            )
        if self._generator is None:
            raise AgentForgeError(
                code=ErrorCode.INVALID_CONFIG,
                message="No generator configured for this orchestrator.",
                suggestion="Construct GenerationOrchestrator with a ModelClient.",
                recoverable=False,
            )
        generator = self._generator

        user_choice = model if model is not None else self._settings.generation.model
        goal_fingerprint = fingerprint_text(goal)
        tasks = plan_tasks(selection)
        total = len(tasks)
        tiers = {task: self._tier(task, user_choice) for task in tasks}
        keys = {
            task: GenerationKey(
                goal_fingerprint=goal_fingerprint,
                codebase_fingerprint=codebase_fingerprint,
                item_kind=task.kind,
                item_name=task.name,
                model_tier=tiers[task],
            )
            for task in tasks
        }
        bound_log = log.bind(batch_size=total, strict=strict)
        bound_log.info("batch_started")

        # Cache pass: every lookup finishes before any dispatch starts
        cached = await asyncio.gather(*(self._cache.get_generation(keys[t]) for t in tasks))

        outcomes: dict[GenerationTask, ItemResult] = {}
        misses: list[GenerationTask] = []
        completed = 0
        for task, content in zip(tasks, cached, strict=True):
            if content is None:
                misses.append(task)
                continue
            outcomes[task] = ItemResult(
                task=task,
                tier=tiers[task],
                state=ItemState.DONE,
                content=content,
                from_cache=True,
            )
            completed += 1
            if on_progress is not None:
                on_progress(completed, total, task.label)
        hits = completed

        async def dispatch(task: GenerationTask) -> ItemResult:
            request = GenerationRequest(task=task, tier=tiers[task], goal=goal, analysis=analysis)
            try:
                content = await generator.generate(request)
            except AgentForgeError:
                raise
            except Exception as exc:
                raise AgentForgeError(
                    code=ErrorCode.GENERATION_FAILED,
                    message=f"Generation failed for {task.label}: {exc}",
                    suggestion="See the logs for the underlying error.",
                    recoverable=True,
                ) from exc
            await self._cache.put_generation(keys[task], content)
            return ItemResult(task=task, tier=tiers[task], state=ItemState.DONE, content=content)

        limit = self._settings.generation.concurrency

        if strict:

            def strict_progress(done: int, _total: int, label: str) -> None:
                if on_progress is not None:
                    on_progress(hits + done, total, label)

            try:
                fresh = await run_bounded(misses, dispatch, strict_progress, limit=limit)
            except AgentForgeError as exc:
                bound_log.warning("batch_aborted", code=exc.code, error=exc.message)
                raise
            for item in fresh:
                outcomes[item.task] = item
        else:

            def record_success(task: GenerationTask, item: ItemResult) -> None:
                nonlocal completed
                outcomes[task] = item
                completed += 1
                if on_progress is not None:
                    on_progress(completed, total, task.label)

            def record_failure(task: GenerationTask, exc: Exception) -> None:
                nonlocal completed
                code = exc.code if isinstance(exc, AgentForgeError) else ErrorCode.GENERATION_FAILED
                outcomes[task] = ItemResult(
                    task=task,
                    tier=tiers[task],
                    state=ItemState.FAILED,
                    error=str(exc),
                    error_code=code,
                )
                completed += 1
                bound_log.warning("generation_failed", item=task.label, code=code, error=str(exc))
                if on_progress is not None:
                    on_progress(completed, total, task.label)

            await run_bounded_collecting_errors(
                misses, dispatch, record_success, record_failure, limit=limit
            )

        result = BatchResult(cache_hit_count=hits, cache_miss_count=len(misses))
        for task in tasks:
            item = outcomes[task]
            if item.state is ItemState.DONE:
                result.completed_items.append(item)
            else:
                result.failed_items.append(item)

        bound_log.info(
            "batch_complete",
            completed=len(result.completed_items),
            failed=len(result.failed_items),
            cache_hits=result.cache_hit_count,
            cache_misses=result.cache_miss_count,
        )
        return result

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def clear_cache(self) -> None:
        await self._cache.clear()

    async def cache_stats(self) -> CacheStats:
        return await self._cache.stats()
