from __future__ import annotations

import itertools
from collections import defaultdict
from collections.abc import Mapping, Sequence
from typing import Any

from .store import StoreError

"""In-memory Store used in mock mode (DISABLE_DB_CONNECT=1) and in tests."""

__all__ = [
    "InMemoryStore",
]


class InMemoryStore:
    """dict-of-lists Store.

    ``fail_on`` lets tests make specific calls fail: keys are
    ``(operation, table)`` or ``(operation, table, n)`` where ``n`` is the
    1-based call number of that operation on that table; values are the
    exception to raise.
    """

    def __init__(self, tables: Mapping[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for name, rows in (tables or {}).items():
            self.tables[name] = [dict(r) for r in rows]
        self.fail_on: dict[tuple[Any, ...], Exception] = {}
        self.calls: dict[tuple[str, str], int] = defaultdict(int)
        self._ids = itertools.count(1)

    def _maybe_fail(self, operation: str, table: str) -> None:
        self.calls[(operation, table)] += 1
        n = self.calls[(operation, table)]
        error = self.fail_on.get((operation, table, n)) or self.fail_on.get((operation, table))
        if error is not None:
            raise error

    @staticmethod
    def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
        return all(row.get(k) == v for k, v in filters.items())

    def fetch_all(
        self,
        table: str,
        columns: Sequence[str],
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        self._maybe_fail("fetch_all", table)
        filters = filters or {}
        return [
            {c: row.get(c) for c in columns}
            for row in self.tables[table]
            if self._matches(row, filters)
        ]

    def insert(self, table: str, values: Mapping[str, Any]) -> str:
        self._maybe_fail("insert", table)
        row = dict(values)
        row.setdefault("id", f"{table}-{next(self._ids)}")
        self.tables[table].append(row)
        return str(row["id"])

    def update(self, table: str, key: Mapping[str, Any], values: Mapping[str, Any]) -> None:
        self._maybe_fail("update", table)
        hits = [row for row in self.tables[table] if self._matches(row, key)]
        if not hits:
            raise StoreError(f"no row in {table} matches {dict(key)}")
        for row in hits:
            row.update(values)

    def close(self) -> None:  # Store 互換
        pass
