"""Infer a structured mutation for hypotheses that only carry free text.

Each strategy pairs a matcher (metadata or a compiled text pattern) with a
builder that turns the matched names into candidate mutations against the
parsed action script. Strategies run in a fixed order; the first candidate the
validator accepts wins. When nothing validates, the result carries the reason
so coverage gaps can be reported.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from models.hypothesis import Hypothesis
from models.mutation import AddCondition, InsertAction, MoveUp, MutationBase, RelaxThreshold
from services import text_patterns
from services.action_script import Action, ActionLocation, ActionScript, lists_of, locate
from services.fingerprint import normalize_element
from services.mutation_validator import resource_gate_pattern, validate
from services.run_context import RunContext


LOGGER = logging.getLogger(__name__)

NO_PATTERN_REASON = "no text pattern matched"
NO_SCRIPT_REASON = "no action script available"

_LOWER_BOUND_GATE = re.compile(r"(?<![\w.])([a-z_]+)(?:\.(?:current|deficit|pct))?\s*(>=|>)\s*(\d+)")

Matcher = Callable[[Hypothesis, str], tuple[str, ...] | None]
Builder = Callable[[ActionScript, tuple[str, ...], RunContext], list[MutationBase]]


@dataclass(frozen=True)
class InferenceStrategy:
    name: str
    label: str
    match: Matcher
    build: Builder

    def describe(self, args: tuple[str, ...]) -> str:
        return f"{self.name}: {self.label.format(*args)}"


@dataclass
class InferenceResult:
    mutation: MutationBase | None
    reason: str | None = None
    strategy: str | None = None


def _action_hits(script: ActionScript, element: str) -> list[ActionLocation]:
    return [hit for hit in locate(script, element) if isinstance(hit.entry, Action)]


def _move_above(
    script: ActionScript,
    optimal: str,
    actual: str,
    prefer_list: str | None = None,
) -> list[MutationBase]:
    optimal_hits = _action_hits(script, optimal)
    actual_hits = _action_hits(script, actual)
    if prefer_list:
        optimal_hits = [h for h in optimal_hits if h.list_name == prefer_list] or optimal_hits
        actual_hits = [h for h in actual_hits if h.list_name == prefer_list] or actual_hits
    if not optimal_hits or not actual_hits:
        return []

    candidates: list[MutationBase] = []
    for optimal_hit in optimal_hits:
        for actual_hit in actual_hits:
            if optimal_hit.list_name == actual_hit.list_name and optimal_hit.index > actual_hit.index:
                candidates.append(
                    MoveUp(
                        list_name=optimal_hit.list_name,
                        element=optimal,
                        positions=optimal_hit.index - actual_hit.index,
                    )
                )

    optimal_hit, actual_hit = optimal_hits[0], actual_hits[0]
    if optimal_hit.list_name != actual_hit.list_name:
        candidates.append(
            InsertAction(
                list_name=actual_hit.list_name,
                element=optimal,
                before=actual,
                condition=optimal_hit.entry.condition or None,
            )
        )
    return candidates


def _move_up_one(script: ActionScript, element: str) -> list[MutationBase]:
    hits = _action_hits(script, element)
    if not hits or hits[0].index == 0:
        return []
    return [MoveUp(list_name=hits[0].list_name, element=element, positions=1)]


def _gate_on(script: ActionScript, element: str, prefix: str, condition: str) -> list[MutationBase]:
    hits = _action_hits(script, element)
    if not hits:
        return []
    hit = hits[0]
    if prefix in hit.entry.condition:
        return []
    return [AddCondition(list_name=hit.list_name, element=element, condition=condition)]


def _relax_first_consumer(script: ActionScript, resource: str, adjustment: int) -> list[MutationBase]:
    pattern = resource_gate_pattern(resource)
    candidates: list[MutationBase] = []
    for action_list in lists_of(script):
        for entry in action_list.entries:
            if not isinstance(entry, Action):
                continue
            gate = pattern.search(entry.condition)
            if gate and gate.group(1) in {">=", ">"}:
                candidates.append(
                    RelaxThreshold(
                        list_name=action_list.name,
                        element=entry.element,
                        resource=resource,
                        adjustment=adjustment,
                    )
                )
    return candidates


def _relax_named(script: ActionScript, name: str, adjustment: int) -> list[MutationBase]:
    candidates: list[MutationBase] = []
    for hit in _action_hits(script, name):
        gate = _LOWER_BOUND_GATE.search(hit.entry.condition)
        if gate:
            candidates.append(
                RelaxThreshold(
                    list_name=hit.list_name,
                    element=name,
                    resource=gate.group(1),
                    adjustment=adjustment,
                )
            )
    return candidates or _relax_first_consumer(script, name, adjustment)


def _branch_list(script: ActionScript, branch: str, context: RunContext) -> str | None:
    names = [action_list.name for action_list in lists_of(script)]
    prefix = context.branch_list_prefixes.get(branch)
    if prefix:
        for name in names:
            if name == prefix or name.startswith(f"{prefix}_"):
                return name
    for name in names:
        if branch in name or branch[:4] in name:
            return name
    if context.default_list in names:
        return context.default_list
    return None


def _branch_gated_insert(
    script: ActionScript, element: str, branch: str, context: RunContext
) -> list[MutationBase]:
    if _action_hits(script, element):
        return []
    list_name = _branch_list(script, branch, context)
    if list_name is None:
        return []
    return [
        InsertAction(
            list_name=list_name,
            element=element,
            condition=f"hero_tree.{branch}",
            position="top",
        )
    ]


def _text(pattern: re.Pattern[str]) -> Matcher:
    def match(hypothesis: Hypothesis, summary: str) -> tuple[str, ...] | None:
        found = pattern.search(summary)
        if not found:
            return None
        return tuple(found.groups())

    return match


def _comparison_metadata(hypothesis: Hypothesis, summary: str) -> tuple[str, ...] | None:
    return text_patterns.metadata_pair(hypothesis.metadata)


def _build_swap(script: ActionScript, args: tuple[str, ...], ctx: RunContext) -> list[MutationBase]:
    optimal, actual = (normalize_element(arg) for arg in args)
    return _move_above(script, optimal, actual)


def _build_buff_gate(script: ActionScript, args: tuple[str, ...], ctx: RunContext) -> list[MutationBase]:
    element, buff = (normalize_element(arg) for arg in args)
    return _gate_on(script, element, f"buff.{buff}", f"buff.{buff}.up")


def _build_overflow(script: ActionScript, args: tuple[str, ...], ctx: RunContext) -> list[MutationBase]:
    return _relax_first_consumer(script, args[0], ctx.relax_threshold_adjustment)


def _build_cd_sync(script: ActionScript, args: tuple[str, ...], ctx: RunContext) -> list[MutationBase]:
    element, target = (normalize_element(arg) for arg in args)
    return _gate_on(
        script,
        element,
        f"cooldown.{target}",
        f"cooldown.{target}.remains<{ctx.cooldown_sync_window}",
    )


def _build_prioritize(script: ActionScript, args: tuple[str, ...], ctx: RunContext) -> list[MutationBase]:
    return _move_up_one(script, normalize_element(args[0]))


def _build_list_swap(script: ActionScript, args: tuple[str, ...], ctx: RunContext) -> list[MutationBase]:
    list_name, adjusted, preferred = args
    return _move_above(
        script, normalize_element(preferred), normalize_element(adjusted), prefer_list=list_name
    )


def _build_adjust_priority(
    script: ActionScript, args: tuple[str, ...], ctx: RunContext
) -> list[MutationBase]:
    adjusted, preferred = (normalize_element(arg) for arg in args)
    return _move_above(script, preferred, adjusted)


def _build_relax(script: ActionScript, args: tuple[str, ...], ctx: RunContext) -> list[MutationBase]:
    return _relax_named(script, normalize_element(args[0]), ctx.relax_threshold_adjustment)


def _build_branch_gate(script: ActionScript, args: tuple[str, ...], ctx: RunContext) -> list[MutationBase]:
    element, branch = (normalize_element(arg) for arg in args)
    return _branch_gated_insert(script, element, branch, ctx)


STRATEGIES: tuple[InferenceStrategy, ...] = (
    InferenceStrategy("divergence", "{0} over {1}", _comparison_metadata, _build_swap),
    InferenceStrategy("text_swap", "{0} over {1}", _text(text_patterns.SWAP), _build_swap),
    InferenceStrategy("buff_gate", "{0} during {1}", _text(text_patterns.BUFF_WINDOW), _build_buff_gate),
    InferenceStrategy("overflow", "{0}", _text(text_patterns.OVERFLOW), _build_overflow),
    InferenceStrategy("cd_sync", "{0} with {1}", _text(text_patterns.SYNC), _build_cd_sync),
    InferenceStrategy("prioritize", "{0}", _text(text_patterns.PRIORITIZE), _build_prioritize),
    InferenceStrategy("list_swap", "{2} over {1} in {0}", _text(text_patterns.LIST_ADJUST), _build_list_swap),
    InferenceStrategy(
        "adjust_priority", "{1} over {0}", _text(text_patterns.ADJUST_PRIORITY), _build_adjust_priority
    ),
    InferenceStrategy("hold_for", "{0} for {1}", _text(text_patterns.HOLD_FOR), _build_cd_sync),
    InferenceStrategy("relax_threshold", "{0}", _text(text_patterns.LOWER_THRESHOLD), _build_relax),
    InferenceStrategy("branch_gate", "{0} for {1}", _text(text_patterns.BRANCH_GAP), _build_branch_gate),
)


def infer_mutation(hypothesis: Hypothesis, context: RunContext) -> InferenceResult:
    if context.script is None:
        return InferenceResult(mutation=None, reason=NO_SCRIPT_REASON)

    summary = hypothesis.text.lower()
    failed: list[str] = []

    for strategy in STRATEGIES:
        args = strategy.match(hypothesis, summary)
        if args is None:
            continue
        for candidate in strategy.build(context.script, args, context):
            verdict = validate(context.script, candidate)
            if verdict.valid:
                LOGGER.debug("[inference] %s -> %s via %s", hypothesis.id, candidate.type, strategy.name)
                return InferenceResult(mutation=candidate, strategy=strategy.name)
            LOGGER.debug("[inference] %s rejected %s: %s", hypothesis.id, strategy.name, verdict.reason)
        failed.append(strategy.describe(args))

    if failed:
        return InferenceResult(
            mutation=None,
            reason=f"pattern matched but validation failed: {', '.join(failed)}",
        )
    return InferenceResult(mutation=None, reason=NO_PATTERN_REASON)
