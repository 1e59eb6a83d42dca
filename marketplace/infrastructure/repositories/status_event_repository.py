from __future__ import annotations

import uuid

from marketplace.infrastructure.repositories.base import BaseRepository


class StatusEventRepository(BaseRepository):
    def add_event(
        self,
        db,
        *,
        entity: str,
        entity_id: str,
        from_status: str | None,
        to_status: str,
        reason: str | None,
        actor_id: str | None,
        created_at: str,
    ) -> str:
        event_id = uuid.uuid4().hex
        row = db.execute(
            "SELECT COALESCE(MAX(sequence), 0) AS last_sequence FROM status_events WHERE entity = ? AND entity_id = ?",
            (entity, entity_id),
        ).fetchone()
        sequence = self.scalar(row, "last_sequence") + 1
        db.execute(
            """
            INSERT INTO status_events (
                id, entity, entity_id, from_status, to_status, reason, actor_id, sequence, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (event_id, entity, entity_id, from_status, to_status, reason, actor_id, sequence, created_at),
        )
        return event_id

    def list_for_entity(self, db, *, entity: str, entity_id: str, limit: int = 120) -> list[dict]:
        rows = db.execute(
            """
            SELECT id, entity, entity_id, from_status, to_status, reason, actor_id, sequence, created_at
            FROM status_events
            WHERE entity = ? AND entity_id = ?
            ORDER BY sequence ASC
            LIMIT ?
            """,
            (entity, entity_id, int(limit)),
        ).fetchall()
        return self.rows_to_dicts(rows)
