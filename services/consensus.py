from __future__ import annotations

import logging
from dataclasses import dataclass, field

from models.hypothesis import Hypothesis
from models.mutation import MutationBase
from services.fingerprint import resolve_fingerprint


LOGGER = logging.getLogger(__name__)


@dataclass
class UnifiedGroup:
    fingerprint: str
    members: list[Hypothesis] = field(default_factory=list)
    consensus_count: int = 1
    consensus_sources: list[str] = field(default_factory=list)
    mutation: MutationBase | None = None
    mutation_source: str | None = None
    priority: float = 0.0
    rejection_count: int = 0
    inference_reason: str | None = None
    positions: list[int] = field(default_factory=list, repr=False)

    @property
    def first_seen(self) -> int:
        return min(self.positions) if self.positions else 0

    @property
    def representative(self) -> Hypothesis:
        best = self.members[0]
        for member in self.members[1:]:
            if member.base_priority > best.base_priority:
                best = member
        return best

    @property
    def member_ids(self) -> list[str]:
        return [member.id for member in self.members]

    def add(self, hypothesis: Hypothesis, position: int) -> None:
        self.members.append(hypothesis)
        self.positions.append(position)

    def absorb(self, other: UnifiedGroup) -> None:
        pairs = sorted(
            zip(self.positions + other.positions, self.members + other.members),
            key=lambda pair: pair[0],
        )
        self.positions = [position for position, _ in pairs]
        self.members = [member for _, member in pairs]
        refresh_consensus(self)


def refresh_consensus(group: UnifiedGroup) -> None:
    sources: list[str] = []
    prior = 0
    for member in group.members:
        source = str(member.source or "").strip()
        if source and source not in sources:
            sources.append(source)
        if member.consensus_count:
            prior = max(prior, member.consensus_count)
    group.consensus_sources = sources
    group.consensus_count = max(len(sources), prior, 1)


def group_by_fingerprint(hypotheses: list[Hypothesis]) -> list[UnifiedGroup]:
    groups: dict[str, UnifiedGroup] = {}
    for position, hypothesis in enumerate(hypotheses):
        fingerprint = resolve_fingerprint(hypothesis)
        group = groups.get(fingerprint)
        if group is None:
            group = UnifiedGroup(fingerprint=fingerprint)
            groups[fingerprint] = group
        group.add(hypothesis, position)

    ordered = sorted(groups.values(), key=lambda g: g.first_seen)
    for group in ordered:
        refresh_consensus(group)
    return ordered


def _split_swap(fingerprint: str) -> tuple[str, str, str] | None:
    parts = fingerprint.split(":")
    if len(parts) == 5 and parts[0] == "swap" and parts[2] == "over":
        return parts[1], parts[3], parts[4]
    return None


def _split_priority(fingerprint: str) -> tuple[str, str, str] | None:
    parts = fingerprint.split(":")
    if len(parts) == 5 and parts[0] == "priority" and parts[2] in {"up", "down"}:
        return parts[1], parts[2], parts[4]
    return None


def reconcile_namespaces(groups: list[UnifiedGroup]) -> list[UnifiedGroup]:
    """Fold move-up/move-down groups into the swap group making the same claim.

    ``priority:<opt>:up:*:<phase>`` and ``priority:<act>:down:*:<phase>`` are
    absorbed by ``swap:<opt>:over:<act>:<phase>``. Matching is on
    ``(element, phase)`` only, so the list segment is ignored.
    """
    groups = list(groups)
    changed = True
    while changed:
        changed = False
        up_index: dict[tuple[str, str], list[UnifiedGroup]] = {}
        down_index: dict[tuple[str, str], list[UnifiedGroup]] = {}
        for group in groups:
            parsed = _split_priority(group.fingerprint)
            if parsed is None:
                continue
            element, direction, phase = parsed
            index = up_index if direction == "up" else down_index
            index.setdefault((element, phase), []).append(group)

        absorbed: set[str] = set()
        for group in groups:
            if group.fingerprint in absorbed:
                continue
            parsed = _split_swap(group.fingerprint)
            if parsed is None:
                continue
            optimal, actual, phase = parsed
            candidates = up_index.get((optimal, phase), []) + down_index.get((actual, phase), [])
            for candidate in candidates:
                if candidate.fingerprint in absorbed:
                    continue
                LOGGER.debug(
                    "[consensus] merging %s into %s", candidate.fingerprint, group.fingerprint
                )
                group.absorb(candidate)
                absorbed.add(candidate.fingerprint)
                changed = True

        groups = [group for group in groups if group.fingerprint not in absorbed]

    return groups


def consensus_multiplier(consensus_count: int, boost: float) -> float:
    return 1.0 + boost * (max(consensus_count, 1) - 1)
