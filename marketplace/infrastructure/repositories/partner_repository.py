from __future__ import annotations

import uuid

from marketplace.domain.contracts import PartnerRecord
from marketplace.infrastructure.repositories.base import BaseRepository


class PartnerRepository(BaseRepository):
    def get_by_id(self, db, partner_id: str) -> PartnerRecord | None:
        row = db.execute(
            """
            SELECT id, user_id, type, business_name, verification_status, is_active
            FROM partners
            WHERE id = ?
            LIMIT 1
            """,
            (partner_id,),
        ).fetchone()
        return PartnerRecord.from_row(row) if row else None

    def create(
        self,
        db,
        *,
        user_id: str,
        partner_type: str,
        business_name: str,
        verification_status: str = "pending",
        is_active: bool = True,
        partner_id: str | None = None,
    ) -> str:
        new_id = partner_id or uuid.uuid4().hex
        db.execute(
            """
            INSERT INTO partners (id, user_id, type, business_name, verification_status, is_active)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (new_id, user_id, partner_type, business_name, verification_status, 1 if is_active else 0),
        )
        return new_id
