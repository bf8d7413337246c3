from __future__ import annotations

from itertools import combinations

from models.hypothesis import Hypothesis
from models.mutation import AddCondition, MoveUp, MutationBase
from services.action_script import parse
from services.batch_partitioner import partition_batches
from services.conflict_graph import build_conflict_graph
from services.run_context import RunContext


APL = """\
actions.ar=fracture
actions.ar+=/soul_cleave
actions.ar+=/spirit_bomb
actions.anni=fracture
actions.anni+=/soul_cleave
"""


def _context() -> RunContext:
    return RunContext(
        script=parse(APL),
        branch_list_prefixes={"aldrachi_reaver": "ar", "annihilator": "anni"},
    )


def _hypothesis(hypothesis_id: str, mutation: MutationBase | None, priority: float) -> Hypothesis:
    return Hypothesis(id=hypothesis_id, source="theorycraft", mutation=mutation, priority=priority)


def _hypotheses() -> list[Hypothesis]:
    return [
        _hypothesis("C", AddCondition(list_name="ar", element="soul_cleave", condition="buff.x.up"), 7.0),
        _hypothesis("A", MoveUp(list_name="ar", element="soul_cleave"), 9.0),
        _hypothesis("B", MoveUp(list_name="anni", element="soul_cleave"), 8.0),
        _hypothesis("E", AddCondition(list_name="anni", element="fracture", condition="buff.x.up"), 6.0),
        _hypothesis("N", None, 5.0),
    ]


def test_scenario_d_batches() -> None:
    batches = partition_batches(_hypotheses(), _context())

    assert [batch.hypothesis_ids for batch in batches] == [["A", "B"], ["C", "E"], ["N"]]
    assert [batch.indices for batch in batches] == [[1, 2], [0, 3], [4]]


def test_batches_are_conflict_free_and_cover_every_hypothesis() -> None:
    hypotheses = _hypotheses()
    context = _context()
    graph = build_conflict_graph(hypotheses, context)

    batches = partition_batches(hypotheses, context, graph=graph)

    seen = sorted(index for batch in batches for index in batch.indices)
    assert seen == list(range(len(hypotheses)))
    for batch in batches:
        for i, j in combinations(batch.indices, 2):
            assert not graph.conflicts(i, j)


def test_partition_is_deterministic_and_stable_on_ties() -> None:
    hypotheses = [
        _hypothesis("X", MoveUp(list_name="ar", element="soul_cleave"), 5.0),
        _hypothesis("Y", MoveUp(list_name="ar", element="spirit_bomb"), 5.0),
    ]

    first = partition_batches(hypotheses, _context())
    second = partition_batches(hypotheses, _context())

    assert [batch.hypothesis_ids for batch in first] == [["X"], ["Y"]]
    assert [batch.hypothesis_ids for batch in first] == [batch.hypothesis_ids for batch in second]


def test_base_priority_orders_when_no_priority_computed() -> None:
    hypotheses = [
        Hypothesis(id="low", base_priority=2.0),
        Hypothesis(id="high", base_priority=9.0),
    ]

    batches = partition_batches(hypotheses, _context())

    assert [batch.hypothesis_ids for batch in batches] == [["high"], ["low"]]
