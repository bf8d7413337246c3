from __future__ import annotations

import re
from dataclasses import dataclass

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
from services.action_script import ActionScript, locate_in_list


_REQUIRES_EXISTING = (
    MoveUp,
    MoveDown,
    AddCondition,
    RemoveCondition,
    RelaxThreshold,
    TightenThreshold,
    DeleteAction,
)


@dataclass
class ValidationResult:
    valid: bool
    reason: str | None = None


def resource_gate_pattern(resource: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(resource)}(?:\.\w+)?\s*(>=|<=|>|<)\s*(\d+)")


def validate(script: ActionScript, mutation: MutationBase) -> ValidationResult:
    errors: list[str] = []

    action_list = script.get_list(mutation.list_name)
    if action_list is None:
        return ValidationResult(valid=False, reason=f"list '{mutation.list_name}' not found")

    hits = locate_in_list(script, mutation.list_name, mutation.element)
    if isinstance(mutation, _REQUIRES_EXISTING) and not hits:
        return ValidationResult(
            valid=False,
            reason=f"'{mutation.element}' not found in list '{mutation.list_name}'",
        )

    if isinstance(mutation, MoveUp):
        index = hits[0].index
        if index - mutation.positions < 0:
            errors.append(
                f"cannot move '{mutation.element}' up {mutation.positions} from index {index}"
            )

    elif isinstance(mutation, MoveDown):
        index = hits[0].index
        if index + mutation.positions >= len(action_list.entries):
            errors.append(
                f"cannot move '{mutation.element}' down {mutation.positions} from index {index}"
            )

    elif isinstance(mutation, AddCondition):
        condition = mutation.condition.strip()
        if not condition:
            errors.append("add_condition requires a condition")
        elif all(condition in hit.entry.condition for hit in hits):
            errors.append(f"'{condition}' already gates '{mutation.element}'")

    elif isinstance(mutation, RemoveCondition):
        target = mutation.target_condition.strip()
        if not target:
            errors.append("remove_condition requires a target condition")
        elif not any(target in hit.entry.condition for hit in hits):
            errors.append(f"'{mutation.element}' has no '{target}' condition to remove")

    elif isinstance(mutation, (RelaxThreshold, TightenThreshold)):
        pattern = resource_gate_pattern(mutation.resource)
        if not any(pattern.search(hit.entry.condition) for hit in hits):
            errors.append(f"'{mutation.element}' has no {mutation.resource} threshold")

    elif isinstance(mutation, InsertAction):
        if hits:
            errors.append(f"'{mutation.element}' already present in list '{mutation.list_name}'")
        for anchor in (mutation.before, mutation.after):
            if anchor and not locate_in_list(script, mutation.list_name, anchor):
                errors.append(f"anchor '{anchor}' not found in list '{mutation.list_name}'")
        if isinstance(mutation.position, int) and not 0 <= mutation.position <= len(action_list.entries):
            errors.append(f"position {mutation.position} out of range for '{mutation.list_name}'")

    if errors:
        return ValidationResult(valid=False, reason="; ".join(errors))
    return ValidationResult(valid=True)
