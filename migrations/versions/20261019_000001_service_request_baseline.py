"""Service request lifecycle baseline schema.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.Text(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.Text(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    op.create_table(
        "partners",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("business_name", sa.Text(), nullable=False),
        sa.Column("verification_status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("is_active", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("type IN ('vehicle_owner','material_supplier')", name="ck_partners_type"),
        sa.CheckConstraint(
            "verification_status IN ('pending','under_review','approved','rejected','suspended')",
            name="ck_partners_verification_status",
        ),
    )

    op.create_table(
        "materials",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("supplier_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False, server_default=sa.text("'other'")),
        sa.Column("unit", sa.Text(), nullable=False),
        sa.Column("price_per_unit", sa.Text(), nullable=False),
        sa.Column("minimum_order", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("available_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_available", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("minimum_order >= 1", name="ck_materials_minimum_order"),
        sa.CheckConstraint("available_quantity >= 0", name="ck_materials_available_quantity"),
    )

    op.create_table(
        "vehicles",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False, server_default=sa.text("'other'")),
        sa.Column("price_per_hour", sa.Text(), nullable=False),
        sa.Column("price_per_day", sa.Text(), nullable=False),
        sa.Column("is_available", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'active'")),
        *_timestamps(),
        sa.CheckConstraint("status IN ('active','inactive','maintenance')", name="ck_vehicles_status"),
    )

    op.create_table(
        "service_requests",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("requester_id", sa.Text(), nullable=False),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("material_id", sa.Text(), nullable=True),
        sa.Column("vehicle_id", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("duration_unit", sa.Text(), nullable=True),
        sa.Column("total_price", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("request_date", sa.Text(), nullable=False),
        sa.Column("required_by_date", sa.Text(), nullable=False),
        sa.Column("completed_date", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("contact_name", sa.Text(), nullable=False),
        sa.Column("contact_phone", sa.Text(), nullable=False),
        sa.Column("contact_email", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("special_requirements", sa.Text(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("assigned_partner_id", sa.Text(), nullable=True),
        sa.Column("order_number", sa.Text(), nullable=False),
        sa.Column("estimated_delivery", sa.Text(), nullable=True),
        sa.Column("actual_delivery", sa.Text(), nullable=True),
        sa.Column("delivery_status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_method", sa.Text(), nullable=True),
        sa.Column("payment_status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_transaction_id", sa.Text(), nullable=True),
        sa.Column("paid_amount", sa.Text(), nullable=False, server_default=sa.text("'0.00'")),
        sa.Column("paid_date", sa.Text(), nullable=True),
        sa.Column("feedback_rating", sa.Integer(), nullable=True),
        sa.Column("feedback_comment", sa.Text(), nullable=True),
        sa.Column("feedback_date", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by", sa.Text(), nullable=True),
        sa.Column("cancelled_date", sa.Text(), nullable=True),
        sa.Column("stock_reserved", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.CheckConstraint("kind IN ('material','vehicle')", name="ck_service_requests_kind"),
        sa.CheckConstraint(
            "status IN ('pending','confirmed','in_progress','completed','cancelled','rejected')",
            name="ck_service_requests_status",
        ),
        sa.CheckConstraint(
            "duration_unit IS NULL OR duration_unit IN ('hours','days')",
            name="ck_service_requests_duration_unit",
        ),
        sa.CheckConstraint(
            "feedback_rating IS NULL OR (feedback_rating BETWEEN 1 AND 5)",
            name="ck_service_requests_feedback_rating",
        ),
        sa.CheckConstraint(
            "(kind = 'material' AND material_id IS NOT NULL AND vehicle_id IS NULL"
            " AND quantity IS NOT NULL AND duration IS NULL AND duration_unit IS NULL)"
            " OR (kind = 'vehicle' AND vehicle_id IS NOT NULL AND material_id IS NULL"
            " AND quantity IS NULL AND duration IS NOT NULL AND duration_unit IS NOT NULL)",
            name="ck_service_requests_kind_refs",
        ),
    )
    op.create_index("ux_service_requests_order_number", "service_requests", ["order_number"], unique=True)
    op.create_index("ix_service_requests_requester_status", "service_requests", ["requester_id", "status"])
    op.create_index("ix_service_requests_partner_status", "service_requests", ["assigned_partner_id", "status"])
    op.create_index("ix_service_requests_request_date", "service_requests", ["request_date"])

    op.create_table(
        "status_events",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("entity", sa.Text(), nullable=False),
        sa.Column("entity_id", sa.Text(), nullable=False),
        sa.Column("from_status", sa.Text(), nullable=True),
        sa.Column("to_status", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("actor_id", sa.Text(), nullable=True),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_status_events_entity", "status_events", ["entity", "entity_id", "sequence"])


def downgrade() -> None:
    op.drop_index("ix_status_events_entity", table_name="status_events")
    op.drop_table("status_events")
    op.drop_index("ix_service_requests_request_date", table_name="service_requests")
    op.drop_index("ix_service_requests_partner_status", table_name="service_requests")
    op.drop_index("ix_service_requests_requester_status", table_name="service_requests")
    op.drop_index("ux_service_requests_order_number", table_name="service_requests")
    op.drop_table("service_requests")
    op.drop_table("vehicles")
    op.drop_table("materials")
    op.drop_table("partners")
