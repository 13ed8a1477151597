"""Dry-run cost estimation.

Makes no external calls. Tiers come from ``tier_for_task``, the same
function the orchestrator uses at dispatch time, so a preview and the real
run always agree on which tier each item gets.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from agentforge.models.generation import CostEstimate, ItemKind, ModelTier
from agentforge.tiers import plan_tasks, tier_for_task

if TYPE_CHECKING:
    from agentforge.config import TierPrice
    from agentforge.models.generation import BatchSelection


@dataclass(frozen=True, slots=True)
class TokenEstimate:
    input: int
    output: int


# Typical prompt/response sizes per artifact kind
TOKEN_ESTIMATES: Mapping[ItemKind, TokenEstimate] = {
    ItemKind.AGENT: TokenEstimate(input=2000, output=3000),
    ItemKind.SKILL: TokenEstimate(input=1500, output=2000),
    ItemKind.OVERVIEW: TokenEstimate(input=3000, output=4000),
    ItemKind.HOOK: TokenEstimate(input=200, output=300),
}


def call_cost(tokens: TokenEstimate, price: TierPrice) -> float:
    return (
        (tokens.input / 1_000_000) * price.input_per_1m
        + (tokens.output / 1_000_000) * price.output_per_1m
    )


def estimate_cost(
    selection: BatchSelection,
    user_choice: ModelTier | None,
    *,
    prices: Mapping[ModelTier, TierPrice],
    pinned: Mapping[ItemKind, ModelTier] | None = None,
    default: ModelTier = ModelTier.MID,
) -> CostEstimate:
    """Project call count, tokens and USD cost for ``selection``.

    One linear pass: resolve each item's tier, add its kind's token
    estimate and price it at that tier.
    """
    estimate = CostEstimate()
    for task in plan_tasks(selection):
        tier = tier_for_task(task, user_choice, pinned=pinned, default=default)
        tokens = TOKEN_ESTIMATES[task.kind]

        estimate.api_call_count += 1
        estimate.input_tokens += tokens.input
        estimate.output_tokens += tokens.output
        estimate.total_cost += call_cost(tokens, prices[tier])
        estimate.per_tier_call_counts[tier] += 1
        estimate.item_tiers[task.label] = tier
    return estimate
