from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


MutationType = Literal[
    "move_up",
    "move_down",
    "add_condition",
    "remove_condition",
    "relax_threshold",
    "tighten_threshold",
    "insert_action",
    "delete_action",
]

REORDER_TYPES = frozenset({"move_up", "move_down"})
CONDITION_TYPES = frozenset({"add_condition", "remove_condition"})
THRESHOLD_TYPES = frozenset({"relax_threshold", "tighten_threshold"})


class MutationBase(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    type: str
    list_name: str = Field(validation_alias=AliasChoices("list_name", "list"))
    element: str = Field(validation_alias=AliasChoices("element", "ability"))


class MoveUp(MutationBase):
    type: Literal["move_up"] = "move_up"
    positions: int = Field(default=1, ge=1)


class MoveDown(MutationBase):
    type: Literal["move_down"] = "move_down"
    positions: int = Field(default=1, ge=1)


class AddCondition(MutationBase):
    type: Literal["add_condition"] = "add_condition"
    condition: str
    operator: Literal["&", "|"] = "&"


class RemoveCondition(MutationBase):
    type: Literal["remove_condition"] = "remove_condition"
    target_condition: str = Field(
        validation_alias=AliasChoices("target_condition", "targetBuff", "target_buff")
    )
    remove_negation: bool = Field(
        default=False,
        validation_alias=AliasChoices("remove_negation", "removeNegation"),
    )


class RelaxThreshold(MutationBase):
    type: Literal["relax_threshold"] = "relax_threshold"
    resource: str
    adjustment: int = -5


class TightenThreshold(MutationBase):
    type: Literal["tighten_threshold"] = "tighten_threshold"
    resource: str
    adjustment: int = 5


class InsertAction(MutationBase):
    type: Literal["insert_action"] = "insert_action"
    condition: str | None = Field(default=None, validation_alias=AliasChoices("condition", "if"))
    before: str | None = None
    after: str | None = None
    position: Literal["top", "bottom"] | int | None = None


class DeleteAction(MutationBase):
    type: Literal["delete_action"] = "delete_action"


Mutation = Annotated[
    Union[
        MoveUp,
        MoveDown,
        AddCondition,
        RemoveCondition,
        RelaxThreshold,
        TightenThreshold,
        InsertAction,
        DeleteAction,
    ],
    Field(discriminator="type"),
]

_MUTATION_ADAPTER: TypeAdapter[Mutation] = TypeAdapter(Mutation)


class MalformedMutationError(ValueError):
    pass


def parse_mutation(payload: Any) -> MutationBase:
    """Decode a stored mutation record (dict or JSON text) into a variant.

    Raises ``MalformedMutationError`` for anything that is not a complete,
    recognised mutation record.
    """
    if isinstance(payload, MutationBase):
        return payload
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as err:
            raise MalformedMutationError(f"mutation payload is not JSON: {err}") from err
    if not isinstance(payload, dict):
        raise MalformedMutationError(f"mutation payload must be an object, got {type(payload).__name__}")
    record = dict(payload)
    record["type"] = str(record.get("type") or "").strip().lower()
    try:
        return _MUTATION_ADAPTER.validate_python(record)
    except ValidationError as err:
        raise MalformedMutationError(str(err)) from err


def dump_mutation(mutation: MutationBase) -> dict[str, Any]:
    return mutation.model_dump(mode="json", exclude_none=True)


def describe_mutation(mutation: MutationBase) -> str:
    if isinstance(mutation, (MoveUp, MoveDown)):
        direction = "up" if isinstance(mutation, MoveUp) else "down"
        return f"move {mutation.element} {direction} {mutation.positions} in {mutation.list_name}"
    if isinstance(mutation, AddCondition):
        return f"add '{mutation.condition}' to {mutation.element} in {mutation.list_name}"
    if isinstance(mutation, RemoveCondition):
        return f"remove '{mutation.target_condition}' from {mutation.element} in {mutation.list_name}"
    if isinstance(mutation, (RelaxThreshold, TightenThreshold)):
        verb = "relax" if isinstance(mutation, RelaxThreshold) else "tighten"
        return (
            f"{verb} {mutation.resource} threshold on {mutation.element} "
            f"by {mutation.adjustment} in {mutation.list_name}"
        )
    if isinstance(mutation, InsertAction):
        anchor = f"before {mutation.before}" if mutation.before else f"at {mutation.position or 'bottom'}"
        return f"insert {mutation.element} {anchor} in {mutation.list_name}"
    if isinstance(mutation, DeleteAction):
        return f"delete {mutation.element} from {mutation.list_name}"
    return f"{mutation.type} {mutation.element} in {mutation.list_name}"
