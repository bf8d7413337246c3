"""Canonical identities for hypotheses coming from heterogeneous analysis passes.

Two hypotheses that describe the same edit to the action script should map to
the same fingerprint no matter which pass produced them or how the claim was
worded. Resolution order, first hit wins: structured mutation, comparison
metadata, upstream normalized id, free-text patterns, normalized summary text.
"""

from __future__ import annotations

import re

from models.hypothesis import Hypothesis
from models.mutation import (
    AddCondition,
    DeleteAction,
    InsertAction,
    MoveDown,
    MoveUp,
    MutationBase,
    RelaxThreshold,
    RemoveCondition,
    TightenThreshold,
)
from services import text_patterns


DEFAULT_PHASE = "mid"

_BURST_TERMS = ("burst", "fiery_brand", "fiery brand")
_CONDITION_TARGET = re.compile(r"\b(?:buff|debuff|cooldown|talent|dot)\.(\w+)")
_SUFFIX = re.compile(r"_(?:damage|heal)$")


def normalize_element(name: str | None) -> str:
    """``"Soul Cleave Damage"`` and ``"soul_cleave"`` both become ``"soul_cleave"``."""
    value = str(name or "").strip().lower()
    value = re.sub(r"[\s_]+", "_", value).strip("_")
    return _SUFFIX.sub("", value)


def normalize_list(name: str | None) -> str:
    return str(name or "").strip().lower() or "default"


def extract_phase(hypothesis: Hypothesis) -> str:
    explicit = str(hypothesis.metadata.get("phase") or "").strip().lower()
    if explicit:
        return explicit
    text = hypothesis.text.lower()
    if "opener" in text:
        return "opener"
    if "execute" in text or "time_to_die" in text or "time to die" in text:
        return "execute"
    if any(term in text for term in _BURST_TERMS):
        return "burst"
    return DEFAULT_PHASE


def condition_target(condition: str | None) -> str:
    value = str(condition or "").strip().lower()
    match = _CONDITION_TARGET.search(value)
    if match:
        return normalize_element(match.group(1))
    return normalize_element(value)


def fingerprint_mutation(mutation: MutationBase, phase: str) -> str:
    element = normalize_element(mutation.element)
    list_name = normalize_list(mutation.list_name)

    if isinstance(mutation, (MoveUp, MoveDown)):
        direction = "up" if isinstance(mutation, MoveUp) else "down"
        return f"priority:{element}:{direction}:{list_name}:{phase}"
    if isinstance(mutation, AddCondition):
        return f"condition:{element}:{mutation.type}:{condition_target(mutation.condition)}"
    if isinstance(mutation, RemoveCondition):
        return f"condition:{element}:{mutation.type}:{condition_target(mutation.target_condition)}"
    if isinstance(mutation, (RelaxThreshold, TightenThreshold)):
        resource = str(mutation.resource or "").strip().lower()
        return f"threshold:{element}:{resource}:{mutation.type}"
    if isinstance(mutation, InsertAction):
        return f"insert:{element}:{list_name}"
    if isinstance(mutation, DeleteAction):
        return f"delete:{element}:{list_name}"
    return f"mutation:{mutation.type}:{element or 'unknown'}"


def _fingerprint_from_metadata(hypothesis: Hypothesis) -> str | None:
    pair = text_patterns.metadata_pair(hypothesis.metadata)
    if pair is None:
        return None
    optimal, actual = (normalize_element(name) for name in pair)
    if not optimal or not actual:
        return None
    return f"swap:{optimal}:over:{actual}:{extract_phase(hypothesis)}"


def _fingerprint_from_text(hypothesis: Hypothesis) -> str | None:
    text = hypothesis.text.lower()

    match = text_patterns.SWAP.search(text)
    if match:
        optimal, actual = normalize_element(match.group(1)), normalize_element(match.group(2))
        return f"swap:{optimal}:over:{actual}:{extract_phase(hypothesis)}"

    match = text_patterns.PRIORITIZE.search(text)
    if match:
        return f"priority:{normalize_element(match.group(1))}:up:default:{extract_phase(hypothesis)}"

    match = text_patterns.OVERFLOW.search(text)
    if match:
        return f"resource:{match.group(1)}:overflow"

    match = text_patterns.SYNC.search(text)
    if match:
        return f"sync:{normalize_element(match.group(1))}:with:{normalize_element(match.group(2))}"

    return None


def normalized_text_key(text: str) -> str:
    value = str(text or "").lower()
    value = re.sub(r"\d+(?:\.\d+)?%?", "n", value)
    value = re.sub(r"[^a-z0-9]+", "_", value).strip("_")
    return value[:80]


def fingerprint_hypothesis(hypothesis: Hypothesis) -> str:
    if hypothesis.mutation is not None:
        return fingerprint_mutation(hypothesis.mutation, extract_phase(hypothesis))

    from_metadata = _fingerprint_from_metadata(hypothesis)
    if from_metadata:
        return from_metadata

    normalized_id = str(
        hypothesis.metadata.get("normalized_id") or hypothesis.metadata.get("normalizedId") or ""
    ).strip()
    if normalized_id:
        return f"synth:{normalized_id}"

    from_text = _fingerprint_from_text(hypothesis)
    if from_text:
        return from_text

    return f"text:{normalized_text_key(hypothesis.text)}"


def resolve_fingerprint(hypothesis: Hypothesis) -> str:
    """Reuse a fingerprint persisted by an earlier run, else compute one."""
    cached = str(hypothesis.fingerprint or "").strip()
    return cached or fingerprint_hypothesis(hypothesis)
