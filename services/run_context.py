from __future__ import annotations

import logging
from dataclasses import dataclass, field

from config import Settings
from services.action_script import ActionScript, parse


LOGGER = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Per-run snapshot of tunables and the parsed action script.

    ``script`` is ``None`` when no action script text was supplied; stages that
    need it degrade instead of failing.
    """

    script: ActionScript | None = None
    branch_list_prefixes: dict[str, str] = field(default_factory=dict)
    default_list: str = "default"
    consensus_boost: float = 0.25
    rejection_decay_step: float = 0.2
    rejection_decay_floor: float = 0.3
    relax_threshold_adjustment: int = -5
    cooldown_sync_window: int = 3

    @classmethod
    def from_settings(cls, settings: Settings, script_text: str | None = None) -> RunContext:
        script: ActionScript | None = None
        if script_text is not None and script_text.strip():
            script = parse(script_text)
        else:
            LOGGER.warning("[run_context] no action script supplied; inference and batching degrade")
        return cls(
            script=script,
            branch_list_prefixes=dict(settings.branch_list_prefixes),
            default_list=settings.default_list,
            consensus_boost=settings.consensus_boost,
            rejection_decay_step=settings.rejection_decay_step,
            rejection_decay_floor=settings.rejection_decay_floor,
            relax_threshold_adjustment=settings.relax_threshold_adjustment,
            cooldown_sync_window=settings.cooldown_sync_window,
        )
