from __future__ import annotations

import hashlib
import json
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agentforge.errors import AgentForgeError, ErrorCode
from agentforge.models.analysis import ProjectAnalysis

OVERVIEW_DOCUMENT_NAME = "overview"


class ItemKind(StrEnum):
    AGENT = "agent"
    SKILL = "skill"
    OVERVIEW = "overview-document"
    HOOK = "hook"


class Complexity(StrEnum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class ModelTier(StrEnum):
    """Quality/cost level of a generation call, ordered low < mid < high."""

    LOW = "low"
    MID = "mid"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return list(ModelTier).index(self)


class ItemState(StrEnum):
    """Final state of an item in a BatchResult."""

    DONE = "done"
    FAILED = "failed"


class GenerationTask(BaseModel):
    """One artifact to produce: an agent, a skill, a hook or the overview document."""

    model_config = ConfigDict(frozen=True)

    kind: ItemKind
    name: str
    complexity: Complexity = Complexity.MEDIUM

    @property
    def label(self) -> str:
        return f"{self.kind}:{self.name}"


class GenerationKey(BaseModel):
    """Identity of one generation result in the cache."""

    model_config = ConfigDict(frozen=True)

    goal_fingerprint: str
    codebase_fingerprint: str
    item_kind: ItemKind
    item_name: str
    model_tier: ModelTier

    def digest(self) -> str:
        """SHA-256 over the canonical JSON form. Same fields, same digest."""
        canonical = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class BatchSelection(BaseModel):
    """Items the user asked for. Names are stripped and de-duplicated in order."""

    agents: list[str] = []
    skills: list[str] = []
    hooks: list[str] = []
    overview: bool = True

    @field_validator("agents", "skills", "hooks")
    @classmethod
    def normalise_names(cls, v: list[str]) -> list[str]:
        seen: dict[str, None] = {}
        for raw in v:
            name = raw.strip()
            if not name:
                raise ValueError("item names must be non-empty")
            seen.setdefault(name, None)
        return list(seen)

    @property
    def is_empty(self) -> bool:
        return not (self.agents or self.skills or self.hooks or self.overview)


class CostEstimate(BaseModel):
    """Projected cost of a batch, computed without any external call."""

    api_call_count: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost: float = 0.0
    per_tier_call_counts: dict[ModelTier, int] = Field(
        default_factory=lambda: {tier: 0 for tier in ModelTier}
    )
    item_tiers: dict[str, ModelTier] = {}  # task label -> tier

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ItemResult(BaseModel):
    task: GenerationTask
    tier: ModelTier
    state: ItemState
    content: str | None = None
    from_cache: bool = False
    error: str | None = None
    error_code: ErrorCode | None = None


class BatchResult(BaseModel):
    completed_items: list[ItemResult] = []
    failed_items: list[ItemResult] = []
    cache_hit_count: int = 0
    cache_miss_count: int = 0

    @property
    def total(self) -> int:
        return len(self.completed_items) + len(self.failed_items)

    @property
    def item_tiers(self) -> dict[str, ModelTier]:
        return {
            item.task.label: item.tier for item in [*self.completed_items, *self.failed_items]
        }

    def content_for(self, kind: ItemKind, name: str) -> str | None:
        for item in self.completed_items:
            if item.task.kind == kind and item.task.name == name:
                return item.content
        return None

    def raise_for_systemic_failure(self, threshold: float) -> None:
        """Raise when more than ``threshold`` of one kind's items failed.

        A majority failure across a kind usually points to an API or
        authentication problem rather than to individual items.
        """
        for kind in ItemKind:
            failed = [i for i in self.failed_items if i.task.kind == kind]
            attempted = len(failed) + sum(1 for i in self.completed_items if i.task.kind == kind)
            if attempted == 0 or len(failed) <= attempted * threshold:
                continue
            summary = "; ".join(f"{i.task.name}: {i.error}" for i in failed[:3])
            raise AgentForgeError(
                code=ErrorCode.SYSTEMIC_FAILURE,
                message=f"Generation failed for {len(failed)}/{attempted} {kind} items. {summary}",
                suggestion="Check the API key, network access and rate limits, then retry.",
                recoverable=True,
            )


class GenerationRequest(BaseModel):
    """Everything the external generator receives for one item."""

    task: GenerationTask
    tier: ModelTier
    goal: str
    analysis: ProjectAnalysis | None = None
