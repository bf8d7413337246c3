from __future__ import annotations

import re


# Single snake_case token, for the inference-only patterns below.
_EL = r"([a-z][\w]*)"

# Words that end a spaced element name ("soul cleave", "sigil of spite").
_STOP = (
    r"a|an|the|in|on|at|for|to|into|from|by|with|during|when|whenever|while|if|unless|until|"
    r"and|or|but|so|then|than|because|since|as|is|are|be|should|always|never|more|less|"
    r"instead|preferred|prefer|over|replaces?|use|cast|press|keep|before|after|below|above|"
    r"prioritize|raise|move|align|sync|hold"
)
_WORD = rf"(?!(?:{_STOP})\b)[a-z]\w*"
# Up to three words; callers pass the capture through normalize_element.
_PHRASE = rf"({_WORD}(?:\s+{_WORD}){{0,2}})"

SWAP = re.compile(rf"\b{_PHRASE}\s+(?:preferred over|instead of|replaces?|over)\s+{_PHRASE}")
BUFF_WINDOW = re.compile(rf"\b{_EL}\s+(?:during|within|in)\s+{_EL}\s+(?:window|buff|phase)\b")
OVERFLOW = re.compile(r"\b(?:overflow|waste|cap)\s+(?:for |of |on )?([a-z][\w]*)")
SYNC = re.compile(rf"\b(?:align|sync)\s+{_PHRASE}\s+(?:with|during)\s+{_PHRASE}")
PRIORITIZE = re.compile(rf"\b(?:prioritize|raise priority of|move up)\s+{_PHRASE}")
LIST_ADJUST = re.compile(
    rf"\bin (?:actions\.)?(\w+):\s*adjust\s+{_EL}\s+condition.*?\badd\s+{_EL}\s+priority"
)
ADJUST_PRIORITY = re.compile(rf"\badjust\s+{_EL}\s+priority.*?\b(?:to allow|for)\s+{_EL}")
HOLD_FOR = re.compile(rf"\bhold\s+{_EL}\s+for\s+{_EL}\s+window")
LOWER_THRESHOLD = re.compile(rf"\b(?:lower|reduce|relax)\s+{_EL}\s+(?:spending\s+)?threshold")
BRANCH_GAP = re.compile(
    rf"\b{_EL}\s+(?:underused|missing|absent)\s+(?:in|for)\s+(?:hero tree\s+)?{_EL}"
)

_OPTIMAL_KEYS = ("optimal_element", "optimal_ability", "opt_ability", "optAbility", "optimalAbility")
_ACTUAL_KEYS = ("actual_element", "actual_ability", "act_ability", "actAbility", "actualAbility")


def metadata_pair(metadata: dict) -> tuple[str, str] | None:
    """Return the (optimal, actual) element pair from comparison metadata."""
    optimal = next((str(metadata[k]) for k in _OPTIMAL_KEYS if metadata.get(k)), "")
    actual = next((str(metadata[k]) for k in _ACTUAL_KEYS if metadata.get(k)), "")
    if optimal.strip() and actual.strip():
        return optimal, actual
    return None
