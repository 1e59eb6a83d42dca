from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from marketplace.domain.contracts import Actor
from marketplace.infrastructure.repositories import CatalogRepository, PartnerRepository


SUPPLIER_PARTNER_ID = "partner-supplier"
OTHER_SUPPLIER_PARTNER_ID = "partner-supplier-other"
PENDING_SUPPLIER_PARTNER_ID = "partner-supplier-pending"
OWNER_PARTNER_ID = "partner-owner"

MATERIAL_ID = "mat-sand"
LOW_STOCK_MATERIAL_ID = "mat-gravel"
BULK_MATERIAL_ID = "mat-cement"
HIDDEN_MATERIAL_ID = "mat-discontinued"
VEHICLE_ID = "veh-crane"
UNAVAILABLE_VEHICLE_ID = "veh-dumper"

CONSUMER = Actor(id="user-consumer", role="consumer")
OTHER_CONSUMER = Actor(id="user-stranger", role="consumer")
SUPPLIER = Actor(id="user-supplier", role="material_supplier", partner_id=SUPPLIER_PARTNER_ID)
OTHER_SUPPLIER = Actor(id="user-supplier-2", role="material_supplier", partner_id=OTHER_SUPPLIER_PARTNER_ID)
OWNER = Actor(id="user-owner", role="vehicle_owner", partner_id=OWNER_PARTNER_ID)
ADMIN = Actor(id="user-admin", role="admin")


def seed_catalog(db) -> None:
    partners = PartnerRepository()
    catalog = CatalogRepository()
    partners.create(
        db,
        partner_id=SUPPLIER_PARTNER_ID,
        user_id=SUPPLIER.id,
        partner_type="material_supplier",
        business_name="Quarry Supplies",
        verification_status="approved",
    )
    partners.create(
        db,
        partner_id=OTHER_SUPPLIER_PARTNER_ID,
        user_id=OTHER_SUPPLIER.id,
        partner_type="material_supplier",
        business_name="Other Supplies",
        verification_status="approved",
    )
    partners.create(
        db,
        partner_id=PENDING_SUPPLIER_PARTNER_ID,
        user_id="user-supplier-pending",
        partner_type="material_supplier",
        business_name="Pending Supplies",
        verification_status="pending",
    )
    partners.create(
        db,
        partner_id=OWNER_PARTNER_ID,
        user_id=OWNER.id,
        partner_type="vehicle_owner",
        business_name="Crane Hire",
        verification_status="approved",
    )
    catalog.create_material(
        db,
        material_id=MATERIAL_ID,
        supplier_id=SUPPLIER_PARTNER_ID,
        name="Washed sand",
        unit="tons",
        price_per_unit="25.00",
        available_quantity=10,
    )
    catalog.create_material(
        db,
        material_id=LOW_STOCK_MATERIAL_ID,
        supplier_id=SUPPLIER_PARTNER_ID,
        name="Gravel",
        unit="tons",
        price_per_unit="18.40",
        available_quantity=5,
    )
    catalog.create_material(
        db,
        material_id=BULK_MATERIAL_ID,
        supplier_id=SUPPLIER_PARTNER_ID,
        name="Cement",
        unit="bags",
        price_per_unit="9.99",
        available_quantity=200,
        minimum_order=5,
    )
    catalog.create_material(
        db,
        material_id=HIDDEN_MATERIAL_ID,
        supplier_id=SUPPLIER_PARTNER_ID,
        name="Old tiles",
        unit="boxes",
        price_per_unit="4.00",
        available_quantity=50,
        is_available=False,
    )
    catalog.create_vehicle(
        db,
        vehicle_id=VEHICLE_ID,
        owner_id=OWNER_PARTNER_ID,
        name="Mobile crane 40t",
        price_per_hour="120.00",
        price_per_day="850.00",
    )
    catalog.create_vehicle(
        db,
        vehicle_id=UNAVAILABLE_VEHICLE_ID,
        owner_id=OWNER_PARTNER_ID,
        name="Dumper",
        price_per_hour="60.00",
        price_per_day="400.00",
        is_available=False,
    )
    db.commit()


def future_date(days: int = 30, *, today: date | None = None) -> str:
    base = today or datetime.now(timezone.utc).date()
    return (base + timedelta(days=days)).isoformat()


def material_payload(required_by_date: str, **overrides) -> dict:
    payload = {
        "kind": "material",
        "material_id": MATERIAL_ID,
        "quantity": 2,
        "required_by_date": required_by_date,
        "address": "12 Quarry Road, Springfield",
        "contact": {"name": "Dana Builder", "phone": "+1 555 010 2030", "email": "dana@example.com"},
    }
    payload.update(overrides)
    return payload


def vehicle_payload(required_by_date: str, **overrides) -> dict:
    payload = {
        "kind": "vehicle",
        "vehicle_id": VEHICLE_ID,
        "duration": 3,
        "duration_unit": "days",
        "required_by_date": required_by_date,
        "address": "Plot 7, Riverside Industrial Park",
        "contact": {"name": "Sam Site", "phone": "0800-555-0199", "email": "sam@example.org"},
    }
    payload.update(overrides)
    return payload
