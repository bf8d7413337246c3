"""Unification run: dedupe, rank and schedule stored hypotheses.

Stages, in order: fingerprint grouping, namespace reconciliation, mutation
resolution, rejection decay, then conflict-free batching over the group
representatives. ``unify`` is pure; ``persist`` projects the result back onto
the store inside a single transaction; ``run`` wires both to a store.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from config import Settings, get_settings
from models.hypothesis import Hypothesis
from services.batch_partitioner import Batch, partition_batches
from services.consensus import (
    UnifiedGroup,
    consensus_multiplier,
    group_by_fingerprint,
    reconcile_namespaces,
)
from services.hypothesis_store import HypothesisStore, StoreUnavailableError
from services.mutation_resolver import INFERRED_SOURCE, resolve_group_mutation
from services.fingerprint import fingerprint_hypothesis, resolve_fingerprint
from services.rejection_memory import build_rejection_memory, group_rejection_count, rejection_decay
from services.run_context import RunContext


LOGGER = logging.getLogger(__name__)

ACTIVE_STATUSES = ("pending", "testing")


def _group_fingerprints(group: UnifiedGroup) -> set[str]:
    """The group identity plus every identity its members were filed under."""
    fingerprints = {group.fingerprint}
    for member in group.members:
        fingerprints.add(resolve_fingerprint(member))
        fingerprints.add(fingerprint_hypothesis(member))
    return fingerprints


@dataclass
class UnificationRun:
    groups: list[UnifiedGroup]
    batches: list[Batch]
    summary: dict[str, Any]
    persisted: dict[str, int] | None = None
    reset: int = 0
    context: RunContext | None = field(default=None, repr=False)


class HypothesisUnifier:
    def __init__(self, store: HypothesisStore | None = None, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    def context_for(self, script_text: str | None) -> RunContext:
        return RunContext.from_settings(self.settings, script_text)

    def score(self, group: UnifiedGroup, context: RunContext) -> float:
        base = group.representative.base_priority
        boosted = base * consensus_multiplier(group.consensus_count, context.consensus_boost)
        decay = rejection_decay(
            group.rejection_count,
            step=context.rejection_decay_step,
            floor=context.rejection_decay_floor,
        )
        return round(boosted * decay, 2)

    def unify(
        self,
        hypotheses: list[Hypothesis],
        rejected: list[Hypothesis],
        context: RunContext,
    ) -> list[UnifiedGroup]:
        active = [h for h in hypotheses if h.status in ACTIVE_STATUSES]
        groups = reconcile_namespaces(group_by_fingerprint(active))
        memory = build_rejection_memory(rejected)

        for group in groups:
            resolve_group_mutation(group, context)
            group.rejection_count = group_rejection_count(memory, _group_fingerprints(group))
            group.priority = self.score(group, context)

        ordered = sorted(groups, key=lambda g: (-g.priority, g.first_seen))
        LOGGER.info("[unify] %d hypotheses -> %d groups", len(active), len(ordered))
        return ordered

    def persist(self, groups: list[UnifiedGroup]) -> dict[str, int]:
        if self.store is None:
            raise RuntimeError("HypothesisUnifier.persist() needs a hypothesis store")

        updated = 0
        mutations_added = 0
        with self.store.transaction():
            for group in groups:
                representative = group.representative
                fields: dict[str, Any] = {
                    "fingerprint": group.fingerprint,
                    "consensus_count": group.consensus_count,
                    "consensus_sources": list(group.consensus_sources),
                    "priority": group.priority,
                }
                if group.mutation is not None:
                    if representative.mutation != group.mutation:
                        fields["mutation"] = group.mutation
                        mutations_added += 1
                    if representative.mutation_source != group.mutation_source:
                        fields["mutation_source"] = group.mutation_source
                self.store.update(representative.id, **fields)
                updated += 1

                for member in group.members:
                    if member is representative:
                        continue
                    member_fields: dict[str, Any] = {
                        "fingerprint": group.fingerprint,
                        "consensus_count": 0,
                    }
                    if member.status == "pending":
                        member_fields["status"] = "merged"
                    self.store.update(member.id, **member_fields)
                    updated += 1

        return {"updated": updated, "mutations_added": mutations_added, "groups": len(groups)}

    def batch_candidates(self, groups: list[UnifiedGroup]) -> list[Hypothesis]:
        return [
            group.representative.model_copy(
                update={"mutation": group.mutation, "priority": group.priority}
            )
            for group in groups
        ]

    def _load_rejected(self) -> list[Hypothesis]:
        try:
            return self.store.load(statuses=["rejected"])
        except StoreUnavailableError as err:
            LOGGER.warning("[unify] rejection memory unavailable, continuing without it: %s", err)
            return []

    def _load_active(self, persist: bool) -> tuple[list[Hypothesis], int]:
        if persist:
            reset = self.store.reset_merged()
            return self.store.load(statuses=list(ACTIVE_STATUSES), limit=self.settings.load_limit), reset

        loaded = self.store.load(statuses=[*ACTIVE_STATUSES, "merged"], limit=self.settings.load_limit)
        reset = sum(1 for h in loaded if h.status == "merged")
        return [
            h.model_copy(update={"status": "pending"}) if h.status == "merged" else h for h in loaded
        ], reset

    def run(self, script_text: str | None = None, persist: bool = True) -> UnificationRun:
        if self.store is None:
            raise RuntimeError("HypothesisUnifier.run() needs a hypothesis store")

        context = self.context_for(script_text)
        hypotheses, reset = self._load_active(persist)
        rejected = self._load_rejected()

        groups = self.unify(hypotheses, rejected, context)
        persisted = self.persist(groups) if persist else None
        batches = partition_batches(self.batch_candidates(groups), context)
        summary = self.summarize(groups)

        LOGGER.info(
            "[unify] %s: %d groups, %d%% mutation coverage, %d batches",
            self.store.spec_name,
            summary["unique_groups"],
            summary["mutation_coverage"],
            len(batches),
        )
        return UnificationRun(
            groups=groups,
            batches=batches,
            summary=summary,
            persisted=persisted,
            reset=reset,
            context=context,
        )

    @staticmethod
    def summarize(groups: list[UnifiedGroup]) -> dict[str, Any]:
        unique = len(groups)
        with_mutation = sum(1 for group in groups if group.mutation is not None)
        reasons = Counter(
            group.inference_reason
            for group in groups
            if group.mutation is None and group.inference_reason
        )
        return {
            "total_hypotheses": sum(len(group.members) for group in groups),
            "unique_groups": unique,
            "with_mutation": with_mutation,
            "mutation_coverage": int(round(100 * with_mutation / unique)) if unique else 0,
            "with_consensus": sum(1 for group in groups if group.consensus_count > 1),
            "with_rejection_memory": sum(1 for group in groups if group.rejection_count > 0),
            "inferred_mutations": sum(
                1 for group in groups if group.mutation_source == INFERRED_SOURCE
            ),
            "fallthrough_reasons": dict(reasons.most_common()),
        }
