from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from models.mutation import MalformedMutationError, MutationBase, dump_mutation, parse_mutation


LOGGER = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


HypothesisStatus = Literal["pending", "testing", "merged", "accepted", "rejected"]


class Hypothesis(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    source: str | None = None
    summary: str = ""
    category: str | None = None
    base_priority: float = 5.0
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    mutation: MutationBase | None = None
    mutation_source: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    status: HypothesisStatus = "pending"

    fingerprint: str | None = None
    consensus_count: int | None = None
    consensus_sources: list[str] = Field(default_factory=list)
    priority: float | None = None

    created_at: datetime = Field(default_factory=utc_now)
    tested_at: datetime | None = None

    @field_validator("mutation", mode="before")
    @classmethod
    def _coerce_mutation(cls, value: Any) -> MutationBase | None:
        if value is None or value == "" or value == {}:
            return None
        try:
            return parse_mutation(value)
        except MalformedMutationError as err:
            LOGGER.warning("[hypothesis] dropping malformed mutation payload: %s", err)
            return None

    @field_validator("metadata", mode="before")
    @classmethod
    def _coerce_metadata(cls, value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return {}
        if isinstance(value, dict):
            return value
        return {}

    @field_serializer("mutation")
    def _serialize_mutation(self, mutation: MutationBase | None) -> dict[str, Any] | None:
        if mutation is None:
            return None
        return dump_mutation(mutation)

    @property
    def text(self) -> str:
        return str(self.summary or self.metadata.get("hypothesis") or self.metadata.get("title") or "")
