from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from agentforge.models.analysis import ProjectAnalysis


class CacheEntryMeta(BaseModel):
    """Envelope shared by both cache namespaces."""

    version: str
    hash: str
    timestamp: datetime


class AnalysisCacheEntry(CacheEntryMeta):
    """Analysis entry: envelope plus the analysis payload in one JSON file."""

    data: ProjectAnalysis


class GenerationCacheMeta(CacheEntryMeta):
    """Sidecar metadata for a generated text body stored in a sibling file."""

    data: None = None


class CacheStats(BaseModel):
    analysis_count: int = 0
    generation_count: int = 0
    total_size_bytes: int = 0
