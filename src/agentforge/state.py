"""Application state container.

AppState is created once per process by ``open_state`` and handed to the CLI
commands. It owns the cache store, and when generation is requested the
shared httpx client and the model client built on it.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from agentforge.cache import CacheConfig, CacheStore
from agentforge.client import ModelClient, build_http_client
from agentforge.orchestrator import GenerationOrchestrator

if TYPE_CHECKING:
    import httpx

    from agentforge.config import Settings


@dataclass
class AppState:
    """Holds all shared runtime state."""

    settings: Settings
    cache: CacheStore
    orchestrator: GenerationOrchestrator
    http_client: httpx.AsyncClient | None = None


@asynccontextmanager
async def open_state(
    settings: Settings, *, with_generator: bool = False
) -> AsyncGenerator[AppState, None]:
    """Create and tear down shared resources.

    The model client is only built when ``with_generator`` is set, so cache
    maintenance and estimates work without an API key.
    """
    cache = CacheStore(CacheConfig.from_settings(settings.cache))
    await cache.init()

    http_client = None
    generator = None
    if with_generator:
        http_client = build_http_client(settings.api)
        try:
            generator = ModelClient(http_client, settings.api)
        except Exception:
            await http_client.aclose()
            raise

    state = AppState(
        settings=settings,
        cache=cache,
        orchestrator=GenerationOrchestrator(cache, settings, generator),
        http_client=http_client,
    )
    try:
        yield state
    finally:
        if http_client is not None:
            await http_client.aclose()
