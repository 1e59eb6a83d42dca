from __future__ import annotations

import uuid
from decimal import Decimal

from marketplace.domain.contracts import MaterialRecord, VehicleRecord
from marketplace.infrastructure.repositories.base import BaseRepository


class CatalogRepository(BaseRepository):
    """Read access to materials and vehicles plus the material stock counter."""

    def get_material(self, db, material_id: str) -> MaterialRecord | None:
        row = db.execute(
            """
            SELECT id, supplier_id, name, unit, price_per_unit, minimum_order, available_quantity, is_available
            FROM materials
            WHERE id = ?
            LIMIT 1
            """,
            (material_id,),
        ).fetchone()
        return MaterialRecord.from_row(row) if row else None

    def get_vehicle(self, db, vehicle_id: str) -> VehicleRecord | None:
        row = db.execute(
            """
            SELECT id, owner_id, name, price_per_hour, price_per_day, is_available, status
            FROM vehicles
            WHERE id = ?
            LIMIT 1
            """,
            (vehicle_id,),
        ).fetchone()
        return VehicleRecord.from_row(row) if row else None

    def reserve_stock(self, db, material_id: str, quantity: int) -> bool:
        # Conditional decrement: concurrent reservations can never drive stock below zero.
        cursor = db.execute(
            """
            UPDATE materials
            SET available_quantity = available_quantity - ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND available_quantity >= ?
            """,
            (int(quantity), material_id, int(quantity)),
        )
        return self.affected(cursor)

    def release_stock(self, db, material_id: str, quantity: int) -> bool:
        cursor = db.execute(
            """
            UPDATE materials
            SET available_quantity = available_quantity + ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (int(quantity), material_id),
        )
        return self.affected(cursor)

    def create_material(
        self,
        db,
        *,
        supplier_id: str,
        name: str,
        unit: str,
        price_per_unit: Decimal | str,
        available_quantity: int,
        minimum_order: int = 1,
        category: str = "other",
        is_available: bool = True,
        material_id: str | None = None,
    ) -> str:
        new_id = material_id or uuid.uuid4().hex
        db.execute(
            """
            INSERT INTO materials (
                id, supplier_id, name, category, unit, price_per_unit,
                minimum_order, available_quantity, is_available
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                new_id,
                supplier_id,
                name,
                category,
                unit,
                str(price_per_unit),
                int(minimum_order),
                int(available_quantity),
                1 if is_available else 0,
            ),
        )
        return new_id

    def create_vehicle(
        self,
        db,
        *,
        owner_id: str,
        name: str,
        price_per_hour: Decimal | str,
        price_per_day: Decimal | str,
        category: str = "other",
        is_available: bool = True,
        status: str = "active",
        vehicle_id: str | None = None,
    ) -> str:
        new_id = vehicle_id or uuid.uuid4().hex
        db.execute(
            """
            INSERT INTO vehicles (id, owner_id, name, category, price_per_hour, price_per_day, is_available, status)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                new_id,
                owner_id,
                name,
                category,
                str(price_per_hour),
                str(price_per_day),
                1 if is_available else 0,
                status,
            ),
        )
        return new_id
