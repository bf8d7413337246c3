from __future__ import annotations

import json
import logging
import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from models.hypothesis import Hypothesis, HypothesisStatus, utc_now


LOGGER = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^H(\d+)$")


class TransactionRequiredError(RuntimeError):
    pass


class HypothesisNotFoundError(KeyError):
    pass


class HypothesisAlreadyExistsError(ValueError):
    pass


class StoreUnavailableError(OSError):
    pass


class HypothesisStore:
    """JSON-file hypothesis store, one document per spec.

    Writes happen only through ``transaction()``: updates are staged on an
    in-memory copy and the document is replaced atomically when the block
    exits cleanly.
    """

    FILENAME = "hypotheses.json"

    def __init__(self, data_dir: Path, spec_name: str):
        self.data_dir = Path(data_dir)
        self.spec_name = spec_name
        self._staged: list[Hypothesis] | None = None

    def _spec_dir(self) -> Path:
        return self.data_dir / self.spec_name

    def _store_file(self) -> Path:
        return self._spec_dir() / self.FILENAME

    def exists(self) -> bool:
        return self._store_file().exists()

    @property
    def in_transaction(self) -> bool:
        return self._staged is not None

    def _read(self) -> list[Hypothesis]:
        store_file = self._store_file()
        if not store_file.exists():
            return []
        try:
            with store_file.open("r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as err:
            raise StoreUnavailableError(f"Hypothesis store '{store_file}' is unreadable: {err}") from err

        items = payload.get("hypotheses", []) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise StoreUnavailableError(f"Hypothesis store '{store_file}' has no hypothesis list")
        return [Hypothesis.model_validate(item) for item in items]

    def _write(self, records: list[Hypothesis]) -> None:
        self._spec_dir().mkdir(parents=True, exist_ok=True)
        store_file = self._store_file()
        tmp_file = store_file.with_name(f"{store_file.name}.tmp")
        payload = {
            "spec": self.spec_name,
            "hypotheses": [record.model_dump(mode="json") for record in records],
        }
        with tmp_file.open("w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_file, store_file)
        LOGGER.debug("[store] wrote %d hypotheses to %s", len(records), store_file)

    def _records(self) -> list[Hypothesis]:
        if self._staged is not None:
            return self._staged
        return self._read()

    @contextmanager
    def transaction(self) -> Iterator[HypothesisStore]:
        if self._staged is not None:
            yield self
            return

        self._staged = self._read()
        try:
            yield self
            self._write(self._staged)
        finally:
            self._staged = None

    def _next_id(self, records: list[Hypothesis]) -> str:
        highest = 0
        for record in records:
            match = _ID_PATTERN.match(record.id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"H{highest + 1:04d}"

    def add(self, hypothesis: Hypothesis) -> Hypothesis:
        with self.transaction():
            records = self._staged
            if not hypothesis.id:
                hypothesis = hypothesis.model_copy(update={"id": self._next_id(records)})
            elif any(record.id == hypothesis.id for record in records):
                raise HypothesisAlreadyExistsError(f"Hypothesis '{hypothesis.id}' already exists")
            records.append(hypothesis.model_copy(deep=True))
        return hypothesis

    def load(
        self,
        statuses: list[str] | None = None,
        source: str | None = None,
        limit: int | None = None,
    ) -> list[Hypothesis]:
        indexed = list(enumerate(self._records()))
        if statuses is not None:
            wanted = set(statuses)
            indexed = [(i, h) for i, h in indexed if h.status in wanted]
        if source is not None:
            indexed = [(i, h) for i, h in indexed if h.source == source]
        indexed.sort(key=lambda pair: (-pair[1].base_priority, pair[0]))
        if limit is not None:
            indexed = indexed[:limit]
        return [hypothesis.model_copy(deep=True) for _, hypothesis in indexed]

    def get(self, hypothesis_id: str) -> Hypothesis:
        for record in self._records():
            if record.id == hypothesis_id:
                return record.model_copy(deep=True)
        raise HypothesisNotFoundError(f"Hypothesis '{hypothesis_id}' not found")

    def update(self, hypothesis_id: str, **fields: Any) -> Hypothesis:
        if self._staged is None:
            raise TransactionRequiredError("HypothesisStore.update() must run inside transaction()")

        unknown = set(fields) - set(Hypothesis.model_fields)
        if unknown:
            raise ValueError(f"Unknown hypothesis fields: {', '.join(sorted(unknown))}")

        for index, record in enumerate(self._staged):
            if record.id != hypothesis_id:
                continue
            data = record.model_dump()
            data.update(fields)
            updated = Hypothesis.model_validate(data)
            self._staged[index] = updated
            return updated.model_copy(deep=True)
        raise HypothesisNotFoundError(f"Hypothesis '{hypothesis_id}' not found")

    def reset_merged(self) -> int:
        count = 0
        with self.transaction():
            for record in list(self._staged):
                if record.status == "merged":
                    self.update(record.id, status="pending")
                    count += 1
        if count:
            LOGGER.info("[store] reset %d merged hypotheses to pending", count)
        return count

    def pop_next(self) -> Hypothesis | None:
        with self.transaction():
            pending = self.load(statuses=["pending"], limit=1)
            if not pending:
                return None
            return self.update(pending[0].id, status="testing")

    def set_status(self, hypothesis_id: str, status: HypothesisStatus) -> Hypothesis:
        fields: dict[str, Any] = {"status": status}
        if status in {"accepted", "rejected"}:
            fields["tested_at"] = utc_now()
        with self.transaction():
            return self.update(hypothesis_id, **fields)

    def status_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for record in self._records():
            counts[record.status] = counts.get(record.status, 0) + 1
        return dict(sorted(counts.items()))
