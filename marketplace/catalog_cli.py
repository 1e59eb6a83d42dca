from __future__ import annotations

import click
from flask import Flask

from marketplace.db import close_db, get_db
from marketplace.domain.contracts import ROLE_MATERIAL_SUPPLIER, ROLE_VEHICLE_OWNER
from marketplace.infrastructure.repositories import CatalogRepository, PartnerRepository


DEMO_SUPPLIER_ID = "demo-supplier"
DEMO_OWNER_ID = "demo-owner"
DEMO_MATERIAL_ID = "demo-cement"
DEMO_VEHICLE_ID = "demo-excavator"


def seed_demo_catalog(db) -> dict:
    """Insert one approved partner of each kind with a listing; safe to run twice."""
    partners = PartnerRepository()
    catalog = CatalogRepository()
    created: dict[str, bool] = {}

    if partners.get_by_id(db, DEMO_SUPPLIER_ID) is None:
        partners.create(
            db,
            partner_id=DEMO_SUPPLIER_ID,
            user_id="demo-supplier-user",
            partner_type=ROLE_MATERIAL_SUPPLIER,
            business_name="Demo Building Supplies",
            verification_status="approved",
        )
        created["supplier"] = True
    if partners.get_by_id(db, DEMO_OWNER_ID) is None:
        partners.create(
            db,
            partner_id=DEMO_OWNER_ID,
            user_id="demo-owner-user",
            partner_type=ROLE_VEHICLE_OWNER,
            business_name="Demo Heavy Machinery",
            verification_status="approved",
        )
        created["owner"] = True
    if catalog.get_material(db, DEMO_MATERIAL_ID) is None:
        catalog.create_material(
            db,
            material_id=DEMO_MATERIAL_ID,
            supplier_id=DEMO_SUPPLIER_ID,
            name="Portland cement 50kg",
            category="cement",
            unit="bags",
            price_per_unit="12.50",
            available_quantity=500,
            minimum_order=5,
        )
        created["material"] = True
    if catalog.get_vehicle(db, DEMO_VEHICLE_ID) is None:
        catalog.create_vehicle(
            db,
            vehicle_id=DEMO_VEHICLE_ID,
            owner_id=DEMO_OWNER_ID,
            name="Excavator 20t",
            category="excavator",
            price_per_hour="95.00",
            price_per_day="680.00",
        )
        created["vehicle"] = True
    db.commit()
    return created


def register_catalog_cli(app: Flask) -> None:
    @app.cli.group("catalog")
    def catalog_group() -> None:
        """Catalog maintenance commands."""

    @catalog_group.command("seed-demo")
    def catalog_seed_demo() -> None:
        try:
            created = seed_demo_catalog(get_db())
        finally:
            close_db()
        if created:
            click.echo(f"Seeded: {', '.join(sorted(created))}.")
        else:
            click.echo("Demo catalog already present.")
