"""Client-side merge of change events keyed by primary id."""

from typing import Iterable, Optional

from .events import DELETE, ChangeEvent


class ChangeCache:
    """
    Local view of rows kept in sync from a change feed.

    Events can arrive out of order across channels, so an event is applied
    only when its version is newer than the cached row's version. Rows without
    a version fall back to arrival order.
    """

    def __init__(self, rows: Optional[Iterable[dict]] = None):
        self._rows: dict[str, dict] = {}
        # Highest version seen per id, kept after deletes so late updates stay dropped
        self._versions: dict[str, int] = {}
        for row in rows or []:
            self._store(row)

    def _store(self, row: dict) -> None:
        self._rows[row["id"]] = row
        if row.get("version") is not None:
            self._versions[row["id"]] = row["version"]

    def _is_stale(self, record_id: str, version: Optional[int]) -> bool:
        if version is None:
            return False
        seen = self._versions.get(record_id)
        return seen is not None and version <= seen

    def apply(self, event: ChangeEvent) -> bool:
        """Merge one event; returns False when it was stale and ignored"""
        record_id = event.record_id
        if record_id is None:
            return False

        if event.operation == DELETE:
            seen = self._versions.get(record_id)
            if event.version is not None and seen is not None and event.version < seen:
                return False
            self._rows.pop(record_id, None)
            if event.version is not None:
                self._versions[record_id] = max(event.version, seen or 0)
            return True

        if self._is_stale(record_id, event.version):
            return False
        row = {**self._rows.get(record_id, {}), **(event.new or {})}
        if event.version is not None:
            row["version"] = max(event.version, self._versions.get(record_id, 0))
        self._store(row)
        return True

    def get(self, record_id: str) -> Optional[dict]:
        return self._rows.get(record_id)

    def values(self) -> list[dict]:
        return list(self._rows.values())

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._rows
