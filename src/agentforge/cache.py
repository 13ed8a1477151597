"""File-backed artifact cache with schema versioning and per-namespace TTLs.

Two namespaces share one directory:
  analysis-<fingerprint>.json      envelope + ProjectAnalysis payload
  gen-<key hash>.txt               generated text body
  gen-<key hash>.meta.json         envelope without payload

All cache operations catch ``OSError``/``ValueError`` internally and degrade
gracefully: read failures return ``None`` (treated as a miss by callers),
write failures are logged and ignored. Infrastructure errors never cross the
CacheStore boundary, so the system behaves identically with caching disabled.
Errors are still logged with ``exc_info=True`` so they remain observable.

The directory is shared, unlocked state. Writes go through a temp file and
``os.replace`` so a reader never sees a half-written entry; concurrent
writers race with last-write-wins.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from agentforge.errors import AgentForgeError, ErrorCode
from agentforge.fingerprint import compute_project_fingerprint
from agentforge.models.cache import (
    AnalysisCacheEntry,
    CacheStats,
    GenerationCacheMeta,
)
from agentforge.validation import Invalid, validate_entry

if TYPE_CHECKING:
    from agentforge.config import CacheSettings
    from agentforge.models.analysis import ProjectAnalysis
    from agentforge.models.generation import GenerationKey

log = structlog.get_logger()

ANALYSIS_PREFIX = "analysis-"
GENERATION_PREFIX = "gen-"
GENERATION_BODY_SUFFIX = ".txt"
GENERATION_META_SUFFIX = ".meta.json"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CacheConfig:
    """Everything a CacheStore needs; no module-level cache state exists."""

    directory: Path
    schema_version: str = "1"
    analysis_ttl: timedelta = timedelta(hours=24)
    generation_ttl: timedelta = timedelta(days=7)
    enabled: bool = True
    clock: Callable[[], datetime] = field(default=_utcnow, compare=False)

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> CacheConfig:
        return cls(
            directory=Path(settings.dir).expanduser(),
            schema_version=settings.schema_version,
            analysis_ttl=timedelta(hours=settings.analysis_ttl_hours),
            generation_ttl=timedelta(hours=settings.generation_ttl_hours),
            enabled=settings.enabled,
        )


def validate_project_root(root: Path | str) -> Path:
    if not str(root).strip():
        raise AgentForgeError(
            code=ErrorCode.INVALID_INPUT,
            message="project root cannot be empty",
            suggestion="Pass the absolute path of the project directory.",
        )
    path = Path(root)
    if not path.is_absolute():
        raise AgentForgeError(
            code=ErrorCode.INVALID_INPUT,
            message=f"project root must be an absolute path, got: {root}",
            suggestion="Resolve the path first, e.g. Path(root).resolve().",
        )
    return path


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=path.suffix)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        with suppress(OSError):
            os.unlink(tmp_name)
        raise


def _read_json(path: Path) -> object | None:
    if not path.is_file():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


def _read_text(path: Path) -> str | None:
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


class CacheStore:
    """Versioned, TTL-aware store for analysis results and generated text."""

    def __init__(self, config: CacheConfig) -> None:
        self._config = config

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def directory(self) -> Path:
        return self._config.directory

    async def init(self) -> None:
        """Create the cache directory. Non-fatal on failure."""
        if not self._config.enabled:
            log.debug("cache_disabled")
            return
        try:
            await asyncio.to_thread(self.directory.mkdir, parents=True, exist_ok=True)
            log.debug("cache_directory", path=str(self.directory))
        except OSError:
            log.warning("cache_init_error", path=str(self.directory), exc_info=True)

    # ------------------------------------------------------------------
    # Analysis namespace
    # ------------------------------------------------------------------

    def _analysis_path(self, fingerprint: str) -> Path:
        return self.directory / f"{ANALYSIS_PREFIX}{fingerprint}.json"

    async def _project_fingerprint(self, root: Path) -> str | None:
        try:
            return await compute_project_fingerprint(root)
        except OSError:
            log.warning("cache_fingerprint_error", root=str(root), exc_info=True)
            return None

    async def get_analysis(
        self, root: Path | str, *, fingerprint: str | None = None
    ) -> ProjectAnalysis | None:
        """Return the cached analysis for ``root`` or ``None`` on any miss.

        Raises AgentForgeError(INVALID_INPUT) only for an empty or relative root.
        """
        path_root = validate_project_root(root)
        if not self._config.enabled:
            return None

        fingerprint = fingerprint or await self._project_fingerprint(path_root)
        if fingerprint is None:
            return None
        key = f"analysis:{fingerprint}"

        try:
            raw = await asyncio.to_thread(_read_json, self._analysis_path(fingerprint))
        except (OSError, ValueError):
            log.warning("cache_read_error", key=key, exc_info=True)
            return None
        if raw is None:
            log.debug("cache_miss", key=key)
            return None

        result = validate_entry(
            raw,
            AnalysisCacheEntry,
            expected_hash=fingerprint,
            schema_version=self._config.schema_version,
            ttl=self._config.analysis_ttl,
            now=self._config.clock(),
        )
        if isinstance(result, Invalid):
            log.debug("cache_invalid", key=key, reason=result.reason)
            return None

        log.debug("cache_hit", key=key, written_at=result.value.timestamp.isoformat())
        return result.value.data

    async def put_analysis(
        self, root: Path | str, analysis: ProjectAnalysis, *, fingerprint: str | None = None
    ) -> None:
        """Write an analysis entry. Non-fatal on failure."""
        path_root = validate_project_root(root)
        if not self._config.enabled:
            return

        fingerprint = fingerprint or await self._project_fingerprint(path_root)
        if fingerprint is None:
            return
        key = f"analysis:{fingerprint}"

        entry = AnalysisCacheEntry(
            version=self._config.schema_version,
            hash=fingerprint,
            timestamp=self._config.clock(),
            data=analysis,
        )
        try:
            payload = entry.model_dump_json(indent=2)
            await asyncio.to_thread(_write_atomic, self._analysis_path(fingerprint), payload)
            log.debug("cache_stored", key=key)
        except (OSError, ValueError):
            log.warning("cache_write_error", key=key, exc_info=True)

    # ------------------------------------------------------------------
    # Generation namespace
    # ------------------------------------------------------------------

    def _generation_paths(self, digest: str) -> tuple[Path, Path]:
        stem = f"{GENERATION_PREFIX}{digest}"
        return (
            self.directory / f"{stem}{GENERATION_BODY_SUFFIX}",
            self.directory / f"{stem}{GENERATION_META_SUFFIX}",
        )

    async def get_generation(self, key: GenerationKey) -> str | None:
        """Return the cached text for ``key`` or ``None`` on any miss."""
        if not self._config.enabled:
            return None

        digest = key.digest()
        body_path, meta_path = self._generation_paths(digest)
        log_key = f"gen:{key.item_kind}:{key.item_name}"

        try:
            raw = await asyncio.to_thread(_read_json, meta_path)
        except (OSError, ValueError):
            log.warning("cache_read_error", key=log_key, exc_info=True)
            return None
        if raw is None:
            log.debug("cache_miss", key=log_key)
            return None

        result = validate_entry(
            raw,
            GenerationCacheMeta,
            expected_hash=digest,
            schema_version=self._config.schema_version,
            ttl=self._config.generation_ttl,
            now=self._config.clock(),
        )
        if isinstance(result, Invalid):
            log.debug("cache_invalid", key=log_key, reason=result.reason)
            return None

        try:
            content = await asyncio.to_thread(_read_text, body_path)
        except (OSError, ValueError):
            log.warning("cache_read_error", key=log_key, exc_info=True)
            return None
        if content is None:
            log.debug("cache_invalid", key=log_key, reason="body file missing")
            return None

        log.debug("cache_hit", key=log_key)
        return content

    async def put_generation(self, key: GenerationKey, content: str) -> None:
        """Write a generated body and its metadata. Non-fatal on failure.

        The body is written first; an entry only becomes visible once its
        metadata file lands.
        """
        if not self._config.enabled:
            return

        digest = key.digest()
        body_path, meta_path = self._generation_paths(digest)
        log_key = f"gen:{key.item_kind}:{key.item_name}"
        meta = GenerationCacheMeta(
            version=self._config.schema_version,
            hash=digest,
            timestamp=self._config.clock(),
        )
        try:
            await asyncio.to_thread(_write_atomic, body_path, content)
            await asyncio.to_thread(_write_atomic, meta_path, meta.model_dump_json(indent=2))
            log.debug("cache_stored", key=log_key)
        except (OSError, ValueError):
            log.warning("cache_write_error", key=log_key, exc_info=True)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def _clear_sync(self) -> int:
        removed = 0
        if not self.directory.is_dir():
            return removed
        for path in self.directory.iterdir():
            if path.is_file():
                path.unlink(missing_ok=True)
                removed += 1
        return removed

    async def clear(self) -> None:
        """Remove every cache file. Non-fatal on failure."""
        try:
            removed = await asyncio.to_thread(self._clear_sync)
            log.info("cache_cleared", path=str(self.directory), files_removed=removed)
        except OSError:
            log.warning("cache_clear_error", path=str(self.directory), exc_info=True)

    def _stats_sync(self) -> CacheStats:
        stats = CacheStats()
        if not self.directory.is_dir():
            return stats
        for path in self.directory.iterdir():
            if not path.is_file():
                continue
            stats.total_size_bytes += path.stat().st_size
            name = path.name
            if name.startswith(ANALYSIS_PREFIX):
                stats.analysis_count += 1
            elif name.startswith(GENERATION_PREFIX) and name.endswith(GENERATION_BODY_SUFFIX):
                stats.generation_count += 1
        return stats

    async def stats(self) -> CacheStats:
        """Entry counts per namespace and total bytes on disk."""
        try:
            return await asyncio.to_thread(self._stats_sync)
        except OSError:
            log.warning("cache_stats_error", path=str(self.directory), exc_info=True)
            return CacheStats()
