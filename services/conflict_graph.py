"""Pairwise edit conflicts between hypotheses, for parallel-safe scheduling.

Every hypothesis is reduced to a ``ConflictDescriptor`` built from its
resolved mutation. Anything that cannot be resolved against the parsed script
gets the null descriptor, which is ``shared`` and therefore conflicts with
everything: when in doubt, hypotheses are tested serially.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from models.hypothesis import Hypothesis
from models.mutation import REORDER_TYPES, AddCondition, InsertAction, MutationBase
from services.action_script import Action, ActionScript, ControlFlow, Variable, lists_of, variable_references
from services.run_context import RunContext


SHARED_AFFINITY = "shared"


@dataclass(frozen=True)
class ConflictDescriptor:
    list_name: str | None = None
    element: str | None = None
    edit_type: str | None = None
    variable_name: str | None = None
    affinity: str = SHARED_AFFINITY
    condition_reads: frozenset[str] = frozenset()

    @property
    def is_null(self) -> bool:
        return self.list_name is None


NULL_DESCRIPTOR = ConflictDescriptor()


@dataclass
class ListDataflow:
    defines: dict[str, set[str]] = field(default_factory=dict)
    reads: dict[str, set[str]] = field(default_factory=dict)


def build_dataflow(script: ActionScript | None) -> ListDataflow:
    """Collect, per list, the variables it assigns and the ones it references."""
    dataflow = ListDataflow()
    if script is None:
        return dataflow
    for action_list in lists_of(script):
        defines = dataflow.defines.setdefault(action_list.name, set())
        reads = dataflow.reads.setdefault(action_list.name, set())
        for entry in action_list.entries:
            if not isinstance(entry, (Action, Variable, ControlFlow)):
                continue
            if isinstance(entry, Variable) and entry.name:
                defines.add(entry.name)
            for key, value in entry.modifiers.items():
                if key == "name":
                    continue
                reads.update(variable_references(value))
    return dataflow


def classify_affinity(list_name: str, branch_list_prefixes: dict[str, str]) -> str:
    name = str(list_name or "").strip().lower()
    for branch in sorted(branch_list_prefixes):
        prefix = branch_list_prefixes[branch]
        for token in (branch, prefix):
            if token and (name == token or name.startswith(f"{token}_")):
                return branch
    return SHARED_AFFINITY


def _mutation_reads(mutation: MutationBase) -> frozenset[str]:
    if isinstance(mutation, (AddCondition, InsertAction)):
        return frozenset(variable_references(mutation.condition or ""))
    return frozenset()


def describe(
    mutation: MutationBase | None,
    context: RunContext,
    dataflow: ListDataflow,
) -> ConflictDescriptor:
    if mutation is None or context.script is None:
        return NULL_DESCRIPTOR
    if context.script.get_list(mutation.list_name) is None:
        return NULL_DESCRIPTOR

    defined = dataflow.defines.get(mutation.list_name, set())
    return ConflictDescriptor(
        list_name=mutation.list_name,
        element=mutation.element,
        edit_type=mutation.type,
        variable_name=mutation.element if mutation.element in defined else None,
        affinity=classify_affinity(mutation.list_name, context.branch_list_prefixes),
        condition_reads=_mutation_reads(mutation),
    )


def _reads(descriptor: ConflictDescriptor, dataflow: ListDataflow) -> set[str]:
    return dataflow.reads.get(descriptor.list_name or "", set()) | descriptor.condition_reads


def has_conflict(a: ConflictDescriptor, b: ConflictDescriptor, dataflow: ListDataflow) -> bool:
    if a.affinity == SHARED_AFFINITY or b.affinity == SHARED_AFFINITY:
        return True
    if a.affinity != b.affinity:
        return False
    if a.list_name == b.list_name:
        if a.element == b.element:
            return True
        if a.edit_type in REORDER_TYPES or b.edit_type in REORDER_TYPES:
            return True
    if a.variable_name and a.variable_name in _reads(b, dataflow):
        return True
    if b.variable_name and b.variable_name in _reads(a, dataflow):
        return True
    return False


@dataclass
class ConflictGraph:
    descriptors: list[ConflictDescriptor]
    adjacency: dict[int, set[int]]

    def conflicts(self, a: int, b: int) -> bool:
        return b in self.adjacency.get(a, set())

    @property
    def edge_count(self) -> int:
        return sum(len(neighbours) for neighbours in self.adjacency.values()) // 2


def build_conflict_graph(hypotheses: list[Hypothesis], context: RunContext) -> ConflictGraph:
    dataflow = build_dataflow(context.script)
    descriptors = [describe(h.mutation, context, dataflow) for h in hypotheses]
    adjacency: dict[int, set[int]] = {index: set() for index in range(len(hypotheses))}
    for i in range(len(descriptors)):
        for j in range(i + 1, len(descriptors)):
            if has_conflict(descriptors[i], descriptors[j], dataflow):
                adjacency[i].add(j)
                adjacency[j].add(i)
    return ConflictGraph(descriptors=descriptors, adjacency=adjacency)
