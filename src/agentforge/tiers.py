"""Model tier selection.

Pure business logic: no I/O, no settings lookups, no side effects. Both the
dry-run estimator and the live orchestrator resolve tiers through
``tier_for_task``, which is the only caller of ``select_tier`` outside tests.

Tiering:
  low   hooks and simple skills
  mid   agents and most skills
  high  the overview document when the user chose it, and complex agents
        when the user chose high
A computed skill tier never exceeds the user's global choice; agents never
drop below mid.
"""

from __future__ import annotations

from collections.abc import Mapping

from agentforge.models.generation import (
    OVERVIEW_DOCUMENT_NAME,
    BatchSelection,
    Complexity,
    GenerationTask,
    ItemKind,
    ModelTier,
)

SIMPLE_SKILLS: tuple[str, ...] = (
    "markdown",
    "git",
    "npm",
    "eslint",
    "prettier",
    "yaml",
    "json",
    "dotenv",
    "editorconfig",
)

COMPLEX_SKILLS: tuple[str, ...] = (
    "nextjs",
    "react",
    "typescript",
    "graphql",
    "kubernetes",
    "docker",
    "aws",
    "terraform",
    "prisma",
    "drizzle",
    "trpc",
    "nestjs",
    "fastify",
    "express",
    "django",
    "fastapi",
)

COMPLEX_AGENTS: tuple[str, ...] = (
    "architect",
    "security",
    "performance",
    "database",
)


def skill_complexity(name: str) -> Complexity:
    """Classify a skill by substring match on its name; unknown skills are medium."""
    lowered = name.lower()
    if any(keyword in lowered for keyword in SIMPLE_SKILLS):
        return Complexity.SIMPLE
    if any(keyword in lowered for keyword in COMPLEX_SKILLS):
        return Complexity.COMPLEX
    return Complexity.MEDIUM


def agent_complexity(name: str) -> Complexity:
    lowered = name.lower()
    if any(keyword in lowered for keyword in COMPLEX_AGENTS):
        return Complexity.COMPLEX
    return Complexity.MEDIUM


def _cap(tier: ModelTier, ceiling: ModelTier | None) -> ModelTier:
    if ceiling is not None and tier.rank > ceiling.rank:
        return ceiling
    return tier


def select_tier(
    kind: ItemKind,
    complexity: Complexity = Complexity.MEDIUM,
    user_choice: ModelTier | None = None,
    *,
    pinned: Mapping[ItemKind, ModelTier] | None = None,
    default: ModelTier = ModelTier.MID,
) -> ModelTier:
    """Map (kind, complexity, user override) to a tier.

    Priority:
      1. A tier pinned for ``kind`` is returned verbatim. The overview
         document always honours the user's global choice.
      2. Classification by kind: hooks are low; skills are low when simple,
         otherwise mid, capped at ``user_choice``; agents are mid, or high
         when complex and the user chose high.
      3. ``default`` for anything left, i.e. the overview document with no
         user choice.
    """
    if pinned and kind in pinned:
        return pinned[kind]
    if kind is ItemKind.OVERVIEW and user_choice is not None:
        return user_choice

    if kind is ItemKind.HOOK:
        return ModelTier.LOW
    if kind is ItemKind.SKILL:
        tier = ModelTier.LOW if complexity is Complexity.SIMPLE else ModelTier.MID
        return _cap(tier, user_choice)
    if kind is ItemKind.AGENT:
        # Agents need longer reasoning: never below mid, high only on a high budget
        if complexity is Complexity.COMPLEX and user_choice is ModelTier.HIGH:
            return ModelTier.HIGH
        return ModelTier.MID

    return default


def plan_tasks(selection: BatchSelection) -> list[GenerationTask]:
    """Expand a selection into tasks in dispatch order: agents, skills, hooks, overview."""
    tasks = [
        GenerationTask(kind=ItemKind.AGENT, name=name, complexity=agent_complexity(name))
        for name in selection.agents
    ]
    tasks.extend(
        GenerationTask(kind=ItemKind.SKILL, name=name, complexity=skill_complexity(name))
        for name in selection.skills
    )
    tasks.extend(
        GenerationTask(kind=ItemKind.HOOK, name=name, complexity=Complexity.SIMPLE)
        for name in selection.hooks
    )
    if selection.overview:
        tasks.append(GenerationTask(kind=ItemKind.OVERVIEW, name=OVERVIEW_DOCUMENT_NAME))
    return tasks


def tier_for_task(
    task: GenerationTask,
    user_choice: ModelTier | None = None,
    *,
    pinned: Mapping[ItemKind, ModelTier] | None = None,
    default: ModelTier = ModelTier.MID,
) -> ModelTier:
    return select_tier(task.kind, task.complexity, user_choice, pinned=pinned, default=default)
