from __future__ import annotations

import logging
from dataclasses import dataclass, field

from models.hypothesis import Hypothesis
from services.conflict_graph import ConflictGraph, build_conflict_graph
from services.run_context import RunContext


LOGGER = logging.getLogger(__name__)


@dataclass
class Batch:
    index: int
    indices: list[int] = field(default_factory=list)
    hypotheses: list[Hypothesis] = field(default_factory=list)

    @property
    def hypothesis_ids(self) -> list[str]:
        return [hypothesis.id for hypothesis in self.hypotheses]


def _effective_priority(hypothesis: Hypothesis) -> float:
    if hypothesis.priority is not None:
        return hypothesis.priority
    return hypothesis.base_priority


def partition_batches(
    hypotheses: list[Hypothesis],
    context: RunContext,
    graph: ConflictGraph | None = None,
) -> list[Batch]:
    """Greedy first-fit coloring of the conflict graph.

    Indices are visited by descending priority (stable on ties) and placed in
    the first batch holding no conflicting member. Members are reported in
    their original order.
    """
    if graph is None:
        graph = build_conflict_graph(hypotheses, context)

    order = sorted(range(len(hypotheses)), key=lambda i: -_effective_priority(hypotheses[i]))
    slots: list[list[int]] = []
    for index in order:
        for slot in slots:
            if not any(graph.conflicts(index, member) for member in slot):
                slot.append(index)
                break
        else:
            slots.append([index])

    batches: list[Batch] = []
    for number, slot in enumerate(slots):
        members = sorted(slot)
        batches.append(
            Batch(
                index=number,
                indices=members,
                hypotheses=[hypotheses[i] for i in members],
            )
        )
    LOGGER.info(
        "[batches] %d hypotheses -> %d batches (%d conflict edges)",
        len(hypotheses),
        len(batches),
        graph.edge_count,
    )
    return batches
