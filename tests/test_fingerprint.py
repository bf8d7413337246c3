from __future__ import annotations

from models.hypothesis import Hypothesis
from services.fingerprint import (
    extract_phase,
    fingerprint_hypothesis,
    normalize_element,
    resolve_fingerprint,
)


def _hypothesis(summary: str = "", **kwargs) -> Hypothesis:
    return Hypothesis(summary=summary, source=kwargs.pop("source", "theorycraft"), **kwargs)


def test_normalize_element_is_case_and_whitespace_insensitive() -> None:
    assert normalize_element("Soul Cleave") == "soul_cleave"
    assert normalize_element("  soul__cleave ") == "soul_cleave"
    assert normalize_element("Soul Cleave Damage") == "soul_cleave"
    assert normalize_element("spirit_bomb_heal") == "spirit_bomb"
    assert normalize_element(None) == ""


def test_mutation_fingerprints_by_kind() -> None:
    move = _hypothesis(mutation={"type": "move_up", "list_name": "ar", "element": "Soul Cleave"})
    condition = _hypothesis(
        mutation={
            "type": "add_condition",
            "list_name": "ar",
            "element": "fracture",
            "condition": "buff.metamorphosis.up&soul_fragments<=3",
        }
    )
    threshold = _hypothesis(
        mutation={
            "type": "relax_threshold",
            "list_name": "ar",
            "element": "fracture",
            "resource": "soul_fragments",
        }
    )
    insert = _hypothesis(mutation={"type": "insert_action", "list": "anni", "ability": "felblade"})
    delete = _hypothesis(mutation={"type": "delete_action", "list_name": "anni", "element": "throw_glaive"})

    assert fingerprint_hypothesis(move) == "priority:soul_cleave:up:ar:mid"
    assert fingerprint_hypothesis(condition) == "condition:fracture:add_condition:metamorphosis"
    assert fingerprint_hypothesis(threshold) == "threshold:fracture:soul_fragments:relax_threshold"
    assert fingerprint_hypothesis(insert) == "insert:felblade:anni"
    assert fingerprint_hypothesis(delete) == "delete:throw_glaive:anni"


def test_fingerprint_ignores_field_order_and_element_spelling() -> None:
    a = _hypothesis(mutation={"type": "move_up", "list_name": "ar", "element": "soul_cleave"})
    b = _hypothesis(mutation={"element": "Soul Cleave", "list_name": "ar", "type": "MOVE_UP"})

    assert fingerprint_hypothesis(a) == fingerprint_hypothesis(b)


def test_metadata_pair_produces_swap() -> None:
    hypothesis = _hypothesis(
        "Divergence at 42s",
        metadata={"optimal_ability": "Spirit Bomb", "actual_ability": "Fracture", "phase": "Opener"},
    )

    assert fingerprint_hypothesis(hypothesis) == "swap:spirit_bomb:over:fracture:opener"


def test_upstream_identity_wins_over_text() -> None:
    hypothesis = _hypothesis("prioritize fracture", metadata={"normalizedId": "fracture-first"})

    assert fingerprint_hypothesis(hypothesis) == "synth:fracture-first"


def test_text_patterns() -> None:
    assert fingerprint_hypothesis(_hypothesis("Soul_Cleave preferred over Fracture")) == (
        "swap:soul_cleave:over:fracture:mid"
    )
    assert fingerprint_hypothesis(_hypothesis("Prioritize soul_carver in execute")) == (
        "priority:soul_carver:up:default:execute"
    )
    assert fingerprint_hypothesis(_hypothesis("Avoid overflow of soul_fragments")) == (
        "resource:soul_fragments:overflow"
    )
    assert fingerprint_hypothesis(_hypothesis("Align fiery_brand with fel_devastation")) == (
        "sync:fiery_brand:with:fel_devastation"
    )


def test_text_fallback_collapses_numbers_and_punctuation() -> None:
    a = _hypothesis("Improve 2 things, quickly!")
    b = _hypothesis("improve 17 things -- quickly")

    assert fingerprint_hypothesis(a) == "text:improve_n_things_quickly"
    assert fingerprint_hypothesis(a) == fingerprint_hypothesis(b)


def test_phase_detection() -> None:
    assert extract_phase(_hypothesis("use it in the opener")) == "opener"
    assert extract_phase(_hypothesis("better when time to die is low")) == "execute"
    assert extract_phase(_hypothesis("hold for fiery brand")) == "burst"
    assert extract_phase(_hypothesis("generic claim")) == "mid"
    assert extract_phase(_hypothesis("generic claim", metadata={"phase": "Execute"})) == "execute"


def test_resolve_reuses_stored_fingerprint() -> None:
    hypothesis = _hypothesis("prioritize fracture", fingerprint="swap:fracture:over:soul_cleave:mid")

    assert resolve_fingerprint(hypothesis) == "swap:fracture:over:soul_cleave:mid"
    assert resolve_fingerprint(_hypothesis("prioritize fracture")) == "priority:fracture:up:default:mid"


def test_spaced_ability_names_share_identity_with_snake_case() -> None:
    spaced = _hypothesis("soul cleave preferred over fracture")
    snake = _hypothesis("soul_cleave preferred over fracture")

    assert fingerprint_hypothesis(spaced) == "swap:soul_cleave:over:fracture:mid"
    assert fingerprint_hypothesis(spaced) == fingerprint_hypothesis(snake)
    assert fingerprint_hypothesis(_hypothesis("Prioritize Soul Carver in execute")) == (
        "priority:soul_carver:up:default:execute"
    )
    assert fingerprint_hypothesis(_hypothesis("Align Fiery Brand with Soul Carver")) == (
        "sync:fiery_brand:with:soul_carver"
    )
