from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()

DEFAULT_BRANCH_LIST_PREFIXES = "aldrachi_reaver=ar,annihilator=anni"


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def parse_branch_prefixes(raw: str) -> dict[str, str]:
    """Parse ``branch=prefix`` pairs separated by commas.

    A bare ``branch`` entry uses the branch identifier as its own list prefix.
    """
    branches: dict[str, str] = {}
    for item in str(raw or "").split(","):
        item = item.strip()
        if not item:
            continue
        branch, _, prefix = item.partition("=")
        branch = branch.strip().lower()
        prefix = prefix.strip().lower() or branch
        if branch:
            branches[branch] = prefix
    return branches


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    default_spec: str
    default_list: str
    log_level: str

    consensus_boost: float
    rejection_decay_step: float
    rejection_decay_floor: float

    relax_threshold_adjustment: int
    cooldown_sync_window: int
    load_limit: int

    branch_list_prefixes: dict[str, str] = field(default_factory=dict)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        data_dir=Path(os.getenv("DATA_DIR", "./data/specs")),
        default_spec=os.getenv("DEFAULT_SPEC", "vengeance"),
        default_list=os.getenv("DEFAULT_ACTION_LIST", "default") or "default",
        log_level=(os.getenv("LOG_LEVEL", "INFO") or "INFO").upper(),
        consensus_boost=_env_float("CONSENSUS_BOOST", 0.25),
        rejection_decay_step=_env_float("REJECTION_DECAY_STEP", 0.2),
        rejection_decay_floor=_env_float("REJECTION_DECAY_FLOOR", 0.3),
        relax_threshold_adjustment=_env_int("RELAX_THRESHOLD_ADJUSTMENT", -5),
        cooldown_sync_window=_env_int("COOLDOWN_SYNC_WINDOW", 3),
        load_limit=_env_int("HYPOTHESIS_LOAD_LIMIT", 500),
        branch_list_prefixes=parse_branch_prefixes(
            os.getenv("BRANCH_LIST_PREFIXES", DEFAULT_BRANCH_LIST_PREFIXES)
        ),
    )
