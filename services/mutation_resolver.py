from __future__ import annotations

import logging

from models.mutation import MutationBase
from services.consensus import UnifiedGroup
from services.mutation_inference import infer_mutation
from services.run_context import RunContext


LOGGER = logging.getLogger(__name__)

INFERRED_SOURCE = "inferred"

# Interactive/specific passes outrank statistical or generic ones.
SOURCE_MUTATION_PRIORITY: dict[str, int] = {
    "strategic": 4,
    "theorycraft": 3,
    "synthesized": 2,
    INFERRED_SOURCE: 1,
    "divergence-analysis": 0,
    "theory-generator": 0,
}


def mutation_priority(source: str | None) -> int:
    return SOURCE_MUTATION_PRIORITY.get(str(source or ""), 0)


def select_existing_mutation(group: UnifiedGroup) -> tuple[MutationBase, str | None] | None:
    best: MutationBase | None = None
    best_source: str | None = None
    for member in group.members:
        if member.mutation is None:
            continue
        source = member.mutation_source or member.source
        if best is None or mutation_priority(source) > mutation_priority(best_source):
            best = member.mutation
            best_source = source
    if best is None:
        return None
    return best, best_source


def resolve_group_mutation(group: UnifiedGroup, context: RunContext) -> None:
    existing = select_existing_mutation(group)
    if existing is not None:
        group.mutation, group.mutation_source = existing
        group.inference_reason = None
        return

    result = infer_mutation(group.representative, context)
    if result.mutation is not None:
        group.mutation = result.mutation
        group.mutation_source = INFERRED_SOURCE
        group.inference_reason = None
        return

    group.mutation = None
    group.mutation_source = None
    group.inference_reason = result.reason
    LOGGER.debug("[resolver] %s has no mutation: %s", group.fingerprint, result.reason)
