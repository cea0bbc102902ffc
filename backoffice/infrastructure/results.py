"""Result Store shared by the batch runner and the webhook receiver."""
from __future__ import annotations

import threading
from dataclasses import replace
from typing import Iterable, Protocol

from backoffice.domain import ResultRecord


class ResultRepository(Protocol):
    """Persistence contract for partner results.

    ``upsert`` is the only write: two writers (gateway and webhook) may race on
    the same key, the last write wins and fields it leaves unset are kept.
    """

    def upsert(self, record: ResultRecord) -> ResultRecord: ...

    def get(self, key: str) -> ResultRecord | None: ...

    def get_many(self, keys: Iterable[str]) -> dict[str, ResultRecord]: ...

    def register_correlation(self, correlation_id: str, key: str) -> None: ...

    def resolve_correlation(self, correlation_id: str) -> str | None: ...

    def count(self) -> int: ...

    def reset(self) -> None: ...


def _copy(record: ResultRecord) -> ResultRecord:
    return replace(record, payload=dict(record.payload))


class InMemoryResultRepository:
    def __init__(self) -> None:
        self._records: dict[str, ResultRecord] = {}
        self._correlations: dict[str, str] = {}
        self._lock = threading.RLock()

    def upsert(self, record: ResultRecord) -> ResultRecord:
        with self._lock:
            current = self._records.get(record.key)
            if current is not None:
                record = replace(
                    record,
                    batch_id=record.batch_id or current.batch_id,
                    correlation_id=record.correlation_id or current.correlation_id,
                )
            stored = replace(record, payload=dict(record.payload))
            self._records[record.key] = stored
            if stored.correlation_id:
                self._correlations.setdefault(stored.correlation_id, stored.key)
            return _copy(stored)

    def get(self, key: str) -> ResultRecord | None:
        with self._lock:
            record = self._records.get(key)
            return _copy(record) if record else None

    def get_many(self, keys: Iterable[str]) -> dict[str, ResultRecord]:
        with self._lock:
            return {key: _copy(self._records[key]) for key in keys if key in self._records}

    def register_correlation(self, correlation_id: str, key: str) -> None:
        with self._lock:
            self._correlations[correlation_id] = key

    def resolve_correlation(self, correlation_id: str) -> str | None:
        with self._lock:
            return self._correlations.get(correlation_id)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def reset(self) -> None:
        with self._lock:
            self._records.clear()
            self._correlations.clear()
