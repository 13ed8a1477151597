"""Bounded-concurrency dispatch for independent async work items.

Both entry points run a fixed pool of at most ``limit`` worker coroutines
that pull items in input order. The number of in-flight items can never
exceed the pool size, whatever the total item count. In-flight items are
never cancelled: once a worker starts an item it runs to completion or
failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import structlog

from agentforge.errors import AgentForgeError, ErrorCode

log = structlog.get_logger()

DEFAULT_CONCURRENCY = 3

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback = Callable[[int, int, str], None]


@dataclass(frozen=True, slots=True)
class ItemError(Generic[T]):
    item: T
    error: Exception


@dataclass(slots=True)
class CollectedResults(Generic[T, R]):
    """Outcome of a collecting run. ``results`` keeps input order, minus failures."""

    results: list[R] = field(default_factory=list)
    errors: list[ItemError[T]] = field(default_factory=list)


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise AgentForgeError(
            code=ErrorCode.INVALID_CONFIG,
            message=f"concurrency limit must be at least 1, got {limit}",
            suggestion="Set generation.concurrency to a positive integer.",
        )


def _label(item: object) -> str:
    return getattr(item, "label", None) or str(item)


async def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    on_progress: ProgressCallback | None = None,
    *,
    limit: int = DEFAULT_CONCURRENCY,
) -> list[R]:
    """Run ``worker`` over ``items`` and return outputs in input order.

    The first failure stops the scheduling of further items. Items already
    in flight finish, then the first exception is re-raised.
    ``on_progress(completed, total, label)`` fires after each success.
    """
    _check_limit(limit)
    total = len(items)
    if total == 0:
        return []

    results: list[R | None] = [None] * total
    queue = iter(enumerate(items))
    completed = 0
    first_error: BaseException | None = None

    async def run_worker() -> None:
        nonlocal completed, first_error
        for index, item in queue:
            if first_error is not None:
                return
            try:
                results[index] = await worker(item)
            except Exception as exc:
                if first_error is None:
                    first_error = exc
                    log.debug("dispatch_aborting", item=_label(item), error=str(exc))
                return
            completed += 1
            if on_progress is not None:
                on_progress(completed, total, _label(item))

    await asyncio.gather(*(run_worker() for _ in range(min(limit, total))))

    if first_error is not None:
        raise first_error
    return results  # type: ignore[return-value]


async def run_bounded_collecting_errors(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    on_success: Callable[[T, R], None] | None = None,
    on_error: Callable[[T, Exception], None] | None = None,
    *,
    limit: int = DEFAULT_CONCURRENCY,
) -> CollectedResults[T, R]:
    """Run ``worker`` over every item regardless of sibling failures.

    Failures are returned as ``ItemError(item, error)`` and left out of
    ``results``.
    """
    _check_limit(limit)
    total = len(items)
    if total == 0:
        return CollectedResults()

    outcomes: list[tuple[bool, R | Exception] | None] = [None] * total
    queue = iter(enumerate(items))

    async def run_worker() -> None:
        for index, item in queue:
            try:
                result = await worker(item)
            except Exception as exc:
                outcomes[index] = (False, exc)
                if on_error is not None:
                    on_error(item, exc)
                continue
            outcomes[index] = (True, result)
            if on_success is not None:
                on_success(item, result)

    await asyncio.gather(*(run_worker() for _ in range(min(limit, total))))

    collected: CollectedResults[T, R] = CollectedResults()
    for item, outcome in zip(items, outcomes, strict=True):
        assert outcome is not None
        ok, value = outcome
        if ok:
            collected.results.append(value)  # type: ignore[arg-type]
        else:
            collected.errors.append(ItemError(item=item, error=value))  # type: ignore[arg-type]
    return collected
