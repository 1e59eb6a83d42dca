from __future__ import annotations

from typing import Any, Dict, Iterable, Tuple

from marketplace.domain.contracts import ServiceRequest
from marketplace.infrastructure.repositories.base import BaseRepository


_INSERT_COLUMNS: Tuple[str, ...] = (
    "id",
    "requester_id",
    "kind",
    "material_id",
    "vehicle_id",
    "quantity",
    "duration",
    "duration_unit",
    "total_price",
    "status",
    "request_date",
    "required_by_date",
    "address",
    "contact_name",
    "contact_phone",
    "contact_email",
    "notes",
    "special_requirements",
    "order_number",
    "stock_reserved",
)


class ServiceRequestRepository(BaseRepository):
    def create(self, db, values: Dict[str, Any]) -> str:
        missing = [column for column in ("id", "requester_id", "kind", "order_number") if not values.get(column)]
        if missing:
            raise ValueError(f"missing service request columns: {', '.join(missing)}")
        placeholders = ", ".join("?" for _ in _INSERT_COLUMNS)
        db.execute(
            f"INSERT INTO service_requests ({', '.join(_INSERT_COLUMNS)}) VALUES ({placeholders})",
            tuple(values.get(column) for column in _INSERT_COLUMNS),
        )
        return str(values["id"])

    def get_by_id(self, db, service_request_id: str) -> ServiceRequest | None:
        row = db.execute(
            """
            SELECT *
            FROM service_requests
            WHERE id = ?
            LIMIT 1
            """,
            (service_request_id,),
        ).fetchone()
        return ServiceRequest.from_row(row) if row else None

    def order_number_exists(self, db, order_number: str) -> bool:
        row = db.execute(
            "SELECT 1 FROM service_requests WHERE order_number = ? LIMIT 1",
            (order_number,),
        ).fetchone()
        return row is not None

    def update_if_status(
        self,
        db,
        service_request_id: str,
        *,
        expected_status: str,
        fields: Dict[str, Any],
    ) -> bool:
        """Apply ``fields`` only while the row still has ``expected_status``.

        Returns False when another writer moved the request first.
        """
        if not fields:
            return False
        updates = [f"{key} = ?" for key in fields.keys()]
        params = list(fields.values())
        params.extend([service_request_id, expected_status])
        cursor = db.execute(
            f"""
            UPDATE service_requests
            SET {", ".join(updates)}, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = ?
            """,
            tuple(params),
        )
        return self.affected(cursor)

    def assign_partner(self, db, service_request_id: str, *, partner_id: str, expected_status: str) -> bool:
        cursor = db.execute(
            """
            UPDATE service_requests
            SET assigned_partner_id = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = ? AND assigned_partner_id IS NULL
            """,
            (partner_id, service_request_id, expected_status),
        )
        return self.affected(cursor)

    def set_feedback(
        self,
        db,
        service_request_id: str,
        *,
        rating: int,
        comment: str | None,
        feedback_date: str,
        expected_status: str,
    ) -> bool:
        cursor = db.execute(
            """
            UPDATE service_requests
            SET feedback_rating = ?, feedback_comment = ?, feedback_date = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = ? AND feedback_rating IS NULL
            """,
            (int(rating), comment, feedback_date, service_request_id, expected_status),
        )
        return self.affected(cursor)

    def mark_stock_released(self, db, service_request_id: str) -> bool:
        cursor = db.execute(
            """
            UPDATE service_requests
            SET stock_reserved = 0, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND stock_reserved = 1
            """,
            (service_request_id,),
        )
        return self.affected(cursor)

    def list_page(
        self,
        db,
        *,
        owner_column: str,
        owner_id: str,
        statuses: Iterable[str] | None = None,
        kind: str | None = None,
        limit: int,
        offset: int,
    ) -> tuple[list[ServiceRequest], int]:
        if owner_column not in {"requester_id", "assigned_partner_id"}:
            raise ValueError(f"unsupported owner column: {owner_column}")
        clauses = [f"{owner_column} = ?"]
        params: list[Any] = [owner_id]
        status_list = [status for status in (statuses or []) if status]
        if status_list:
            clauses.append(f"status IN ({', '.join('?' for _ in status_list)})")
            params.extend(status_list)
        if kind:
            clauses.append("kind = ?")
            params.append(kind)
        where_sql = " AND ".join(clauses)

        total_row = db.execute(
            f"SELECT COUNT(*) AS total FROM service_requests WHERE {where_sql}",
            tuple(params),
        ).fetchone()
        total = self.scalar(total_row, "total")

        rows = db.execute(
            f"""
            SELECT *
            FROM service_requests
            WHERE {where_sql}
            ORDER BY request_date DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (*params, int(limit), int(offset)),
        ).fetchall()
        return [ServiceRequest.from_row(row) for row in rows], total
