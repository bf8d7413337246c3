from __future__ import annotations

from models.hypothesis import Hypothesis
from models.mutation import AddCondition, InsertAction, MoveUp, RelaxThreshold
from services.action_script import parse
from services.mutation_inference import NO_PATTERN_REASON, NO_SCRIPT_REASON, infer_mutation
from services.run_context import RunContext


APL = """\
actions=run_action_list,name=ar,if=hero_tree.aldrachi_reaver
actions.ar=soul_carver
actions.ar+=/fracture,if=soul_fragments<=3
actions.ar+=/spirit_bomb,if=soul_fragments>=4
actions.ar+=/soul_cleave,if=soul_fragments>=2
actions.ar+=/felblade
"""

APL_CARVER_LOW = """\
actions.ar=fracture
actions.ar+=/spirit_bomb,if=soul_fragments>=4
actions.ar+=/soul_cleave
actions.ar+=/soul_carver
"""


def _context(text: str = APL) -> RunContext:
    return RunContext(
        script=parse(text),
        branch_list_prefixes={"aldrachi_reaver": "ar", "annihilator": "anni"},
    )


def _hypothesis(summary: str, **kwargs) -> Hypothesis:
    return Hypothesis(id="H0001", source="theorycraft", summary=summary, **kwargs)


def test_scenario_e_prioritize_at_top_has_no_mutation() -> None:
    result = infer_mutation(_hypothesis("Prioritize soul_carver"), _context())

    assert result.mutation is None
    assert result.reason == "pattern matched but validation failed: prioritize: soul_carver"


def test_scenario_e_prioritize_moves_one_step() -> None:
    result = infer_mutation(_hypothesis("Prioritize soul_carver"), _context(APL_CARVER_LOW))

    assert result.mutation == MoveUp(list_name="ar", element="soul_carver", positions=1)
    assert result.strategy == "prioritize"


def test_metadata_pair_moves_optimal_above_actual() -> None:
    hypothesis = _hypothesis(
        "divergence at 12s",
        metadata={"optimal_ability": "Spirit Bomb", "actual_ability": "Fracture"},
    )

    result = infer_mutation(hypothesis, _context())

    assert result.mutation == MoveUp(list_name="ar", element="spirit_bomb", positions=1)
    assert result.strategy == "divergence"


def test_worded_swap_uses_index_delta() -> None:
    result = infer_mutation(_hypothesis("soul_cleave preferred over fracture"), _context())

    assert result.mutation == MoveUp(list_name="ar", element="soul_cleave", positions=2)


def test_swap_across_lists_inserts_before_actual() -> None:
    text = APL + "actions.aoe=fracture\n"
    context = _context(text.replace("actions.ar+=/fracture,if=soul_fragments<=3\n", ""))

    result = infer_mutation(_hypothesis("spirit_bomb over fracture"), context)

    assert result.mutation == InsertAction(
        list_name="aoe", element="spirit_bomb", before="fracture", condition="soul_fragments>=4"
    )


def test_buff_window_adds_condition() -> None:
    result = infer_mutation(_hypothesis("Fracture during metamorphosis window"), _context())

    assert result.mutation == AddCondition(
        list_name="ar", element="fracture", condition="buff.metamorphosis.up"
    )


def test_overflow_relaxes_first_consumer() -> None:
    result = infer_mutation(_hypothesis("Avoid overflow of soul_fragments"), _context())

    assert result.mutation == RelaxThreshold(
        list_name="ar", element="spirit_bomb", resource="soul_fragments", adjustment=-5
    )


def test_cooldown_sync_gates_on_cooldown() -> None:
    result = infer_mutation(_hypothesis("Sync felblade with soul_carver"), _context())

    assert result.mutation == AddCondition(
        list_name="ar", element="felblade", condition="cooldown.soul_carver.remains<3"
    )


def test_branch_gap_inserts_gated_action() -> None:
    result = infer_mutation(_hypothesis("sigil_of_spite missing for aldrachi_reaver"), _context())

    assert result.mutation == InsertAction(
        list_name="ar",
        element="sigil_of_spite",
        condition="hero_tree.aldrachi_reaver",
        position="top",
    )


def test_unmatched_text_and_missing_script() -> None:
    unmatched = infer_mutation(_hypothesis("Something feels off in the rotation"), _context())
    no_script = infer_mutation(_hypothesis("Prioritize soul_carver"), RunContext())

    assert unmatched.mutation is None
    assert unmatched.reason == NO_PATTERN_REASON
    assert no_script.reason == NO_SCRIPT_REASON


def test_inference_is_idempotent() -> None:
    context = _context()
    for summary in ("Prioritize soul_carver", "soul_cleave preferred over fracture"):
        first = infer_mutation(_hypothesis(summary), context)
        second = infer_mutation(_hypothesis(summary), context)
        assert first == second


def test_spaced_ability_names_resolve_to_script_elements() -> None:
    result = infer_mutation(_hypothesis("Soul Cleave preferred over Fracture"), _context())

    assert result.mutation == MoveUp(list_name="ar", element="soul_cleave", positions=2)
    assert result.strategy == "text_swap"


def test_list_scoped_adjustment_moves_preferred_above_adjusted() -> None:
    result = infer_mutation(
        _hypothesis("In actions.ar: adjust fracture condition or add soul_cleave priority"), _context()
    )

    assert result.mutation == MoveUp(list_name="ar", element="soul_cleave", positions=2)
    assert result.strategy == "list_swap"


def test_adjust_priority_to_allow_moves_target_up() -> None:
    result = infer_mutation(_hypothesis("adjust fracture priority to allow spirit_bomb"), _context())

    assert result.mutation == MoveUp(list_name="ar", element="spirit_bomb", positions=1)
    assert result.strategy == "adjust_priority"


def test_hold_for_window_gates_on_cooldown() -> None:
    result = infer_mutation(_hypothesis("hold felblade for soul_carver window"), _context())

    assert result.mutation == AddCondition(
        list_name="ar", element="felblade", condition="cooldown.soul_carver.remains<3"
    )
    assert result.strategy == "hold_for"


def test_lower_threshold_relaxes_named_action_gate() -> None:
    result = infer_mutation(_hypothesis("lower spirit_bomb threshold"), _context())

    assert result.mutation == RelaxThreshold(
        list_name="ar", element="spirit_bomb", resource="soul_fragments", adjustment=-5
    )
    assert result.strategy == "relax_threshold"
