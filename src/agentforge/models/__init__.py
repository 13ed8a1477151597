from __future__ import annotations

from agentforge.models.analysis import Dependency, DetectedPattern, ProjectAnalysis
from agentforge.models.cache import (
    AnalysisCacheEntry,
    CacheEntryMeta,
    CacheStats,
    GenerationCacheMeta,
)
from agentforge.models.generation import (
    OVERVIEW_DOCUMENT_NAME,
    BatchResult,
    BatchSelection,
    Complexity,
    CostEstimate,
    GenerationKey,
    GenerationRequest,
    GenerationTask,
    ItemKind,
    ItemResult,
    ItemState,
    ModelTier,
)

__all__ = [
    # analysis
    "Dependency",
    "DetectedPattern",
    "ProjectAnalysis",
    # cache
    "CacheEntryMeta",
    "AnalysisCacheEntry",
    "GenerationCacheMeta",
    "CacheStats",
    # generation
    "OVERVIEW_DOCUMENT_NAME",
    "ItemKind",
    "Complexity",
    "ModelTier",
    "ItemState",
    "GenerationTask",
    "GenerationKey",
    "GenerationRequest",
    "BatchSelection",
    "CostEstimate",
    "ItemResult",
    "BatchResult",
]
