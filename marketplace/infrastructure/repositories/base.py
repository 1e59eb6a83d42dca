from __future__ import annotations

from typing import Any, Iterable


class BaseRepository:
    @staticmethod
    def rows_to_dicts(rows: Iterable[Any]) -> list[dict]:
        return [dict(row) for row in rows]

    @staticmethod
    def affected(cursor) -> bool:
        return int(getattr(cursor, "rowcount", 0) or 0) > 0

    @staticmethod
    def scalar(row, key: str, default: int = 0) -> int:
        if not row:
            return default
        if isinstance(row, dict):
            return int(row.get(key) or default)
        return int(row[0] or default)
