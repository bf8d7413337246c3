from __future__ import annotations

from collections import Counter
from typing import Iterable

from models.hypothesis import Hypothesis
from services.fingerprint import resolve_fingerprint


def build_rejection_memory(rejected: list[Hypothesis]) -> dict[str, int]:
    counts: Counter[str] = Counter()
    for hypothesis in rejected:
        if hypothesis.status != "rejected":
            continue
        counts[resolve_fingerprint(hypothesis)] += 1
    return dict(counts)


def rejection_decay(rejection_count: int, step: float = 0.2, floor: float = 0.3) -> float:
    if rejection_count <= 0:
        return 1.0
    return max(floor, 1.0 - step * rejection_count)


def group_rejection_count(memory: dict[str, int], fingerprints: Iterable[str]) -> int:
    return sum(memory.get(fingerprint, 0) for fingerprint in set(fingerprints))
