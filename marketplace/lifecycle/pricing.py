from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from marketplace.domain.contracts import CENTS, MaterialRecord, VehicleRecord


def material_total(material: MaterialRecord, quantity: int) -> Decimal:
    return (material.price_per_unit * Decimal(int(quantity))).quantize(CENTS, rounding=ROUND_HALF_UP)


def vehicle_total(vehicle: VehicleRecord, duration: int, duration_unit: str) -> Decimal:
    rate = vehicle.price_per_day if duration_unit == "days" else vehicle.price_per_hour
    return (rate * Decimal(int(duration))).quantize(CENTS, rounding=ROUND_HALF_UP)
