from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping


ROLE_CONSUMER = "consumer"
ROLE_VEHICLE_OWNER = "vehicle_owner"
ROLE_MATERIAL_SUPPLIER = "material_supplier"
ROLE_ADMIN = "admin"

KIND_MATERIAL = "material"
KIND_VEHICLE = "vehicle"
REQUEST_KINDS = (KIND_MATERIAL, KIND_VEHICLE)

DURATION_UNITS = ("hours", "days")

CENTS = Decimal("0.01")


def to_iso(value: datetime | date | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    return value.isoformat()


def parse_iso_datetime(value: str | None) -> datetime | None:
    raw = str(value or "").strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_iso_date(value: str | None) -> date | None:
    raw = str(value or "").strip()
    if not raw:
        return None
    if len(raw) == 10:
        return date.fromisoformat(raw)
    return parse_iso_datetime(raw).date()


def money(value: Any) -> Decimal:
    return Decimal(str(value if value is not None else "0")).quantize(CENTS)


@dataclass(frozen=True)
class Actor:
    """Identity handed over by the authentication layer; trusted as-is."""

    id: str
    role: str
    partner_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_partner(self) -> bool:
        return self.role in {ROLE_VEHICLE_OWNER, ROLE_MATERIAL_SUPPLIER} and bool(self.partner_id)


@dataclass(frozen=True)
class ContactDetails:
    name: str
    phone: str
    email: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "phone": self.phone, "email": self.email}


@dataclass(frozen=True)
class Tracking:
    order_number: str
    estimated_delivery: datetime | None = None
    actual_delivery: datetime | None = None
    delivery_status: str = "pending"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_number": self.order_number,
            "estimated_delivery": to_iso(self.estimated_delivery),
            "actual_delivery": to_iso(self.actual_delivery),
            "delivery_status": self.delivery_status,
        }


@dataclass(frozen=True)
class Payment:
    method: str | None = None
    status: str = "pending"
    transaction_id: str | None = None
    paid_amount: Decimal = Decimal("0.00")
    paid_date: datetime | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "status": self.status,
            "transaction_id": self.transaction_id,
            "paid_amount": str(self.paid_amount),
            "paid_date": to_iso(self.paid_date),
        }


@dataclass(frozen=True)
class Feedback:
    rating: int
    comment: str | None
    date: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"rating": self.rating, "comment": self.comment, "date": to_iso(self.date)}


@dataclass(frozen=True)
class Cancellation:
    reason: str
    cancelled_by: str
    cancelled_date: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.reason,
            "cancelled_by": self.cancelled_by,
            "cancelled_date": to_iso(self.cancelled_date),
        }


@dataclass(frozen=True)
class ServiceRequestCreateInput:
    kind: str
    required_by_date: date
    address: str
    contact: ContactDetails
    material_id: str | None = None
    quantity: int | None = None
    vehicle_id: str | None = None
    duration: int | None = None
    duration_unit: str | None = None
    client_total_price: Decimal | None = None
    notes: str | None = None
    special_requirements: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class StatusUpdateInput:
    status: str
    notes: str | None = None


@dataclass(frozen=True)
class FeedbackInput:
    rating: int
    comment: str | None = None


@dataclass(frozen=True)
class MaterialRecord:
    id: str
    supplier_id: str
    name: str
    unit: str
    price_per_unit: Decimal
    minimum_order: int
    available_quantity: int
    is_available: bool

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "MaterialRecord":
        return cls(
            id=str(row["id"]),
            supplier_id=str(row["supplier_id"]),
            name=str(row["name"]),
            unit=str(row["unit"]),
            price_per_unit=money(row["price_per_unit"]),
            minimum_order=int(row["minimum_order"] or 1),
            available_quantity=int(row["available_quantity"] or 0),
            is_available=bool(row["is_available"]),
        )


@dataclass(frozen=True)
class VehicleRecord:
    id: str
    owner_id: str
    name: str
    price_per_hour: Decimal
    price_per_day: Decimal
    is_available: bool
    status: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "VehicleRecord":
        return cls(
            id=str(row["id"]),
            owner_id=str(row["owner_id"]),
            name=str(row["name"]),
            price_per_hour=money(row["price_per_hour"]),
            price_per_day=money(row["price_per_day"]),
            is_available=bool(row["is_available"]),
            status=str(row["status"]),
        )


@dataclass(frozen=True)
class PartnerRecord:
    id: str
    user_id: str
    type: str
    business_name: str
    verification_status: str
    is_active: bool

    @property
    def can_fulfil(self) -> bool:
        return self.verification_status == "approved" and self.is_active

    def serves_kind(self, kind: str) -> bool:
        expected = {KIND_MATERIAL: ROLE_MATERIAL_SUPPLIER, KIND_VEHICLE: ROLE_VEHICLE_OWNER}.get(kind)
        return self.type == expected

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PartnerRecord":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            type=str(row["type"]),
            business_name=str(row["business_name"]),
            verification_status=str(row["verification_status"]),
            is_active=bool(row["is_active"]),
        )


@dataclass(frozen=True)
class ServiceRequest:
    id: str
    requester_id: str
    kind: str
    status: str
    total_price: Decimal
    request_date: datetime
    required_by_date: date
    address: str
    contact: ContactDetails
    tracking: Tracking
    payment: Payment
    material_id: str | None = None
    vehicle_id: str | None = None
    quantity: int | None = None
    duration: int | None = None
    duration_unit: str | None = None
    notes: str | None = None
    special_requirements: List[str] = field(default_factory=list)
    assigned_partner_id: str | None = None
    feedback: Feedback | None = None
    cancellation: Cancellation | None = None
    completed_date: datetime | None = None
    stock_reserved: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ServiceRequest":
        feedback = None
        if row["feedback_rating"] is not None:
            feedback = Feedback(
                rating=int(row["feedback_rating"]),
                comment=row["feedback_comment"],
                date=parse_iso_datetime(row["feedback_date"]),
            )
        cancellation = None
        if row["cancelled_date"]:
            cancellation = Cancellation(
                reason=str(row["cancellation_reason"] or ""),
                cancelled_by=str(row["cancelled_by"] or ""),
                cancelled_date=parse_iso_datetime(row["cancelled_date"]),
            )
        return cls(
            id=str(row["id"]),
            requester_id=str(row["requester_id"]),
            kind=str(row["kind"]),
            status=str(row["status"]),
            total_price=money(row["total_price"]),
            request_date=parse_iso_datetime(row["request_date"]),
            required_by_date=parse_iso_date(row["required_by_date"]),
            address=str(row["address"]),
            contact=ContactDetails(
                name=str(row["contact_name"]),
                phone=str(row["contact_phone"]),
                email=str(row["contact_email"]),
            ),
            tracking=Tracking(
                order_number=str(row["order_number"]),
                estimated_delivery=parse_iso_datetime(row["estimated_delivery"]),
                actual_delivery=parse_iso_datetime(row["actual_delivery"]),
                delivery_status=str(row["delivery_status"] or "pending"),
            ),
            payment=Payment(
                method=row["payment_method"],
                status=str(row["payment_status"] or "pending"),
                transaction_id=row["payment_transaction_id"],
                paid_amount=money(row["paid_amount"]),
                paid_date=parse_iso_datetime(row["paid_date"]),
            ),
            material_id=row["material_id"],
            vehicle_id=row["vehicle_id"],
            quantity=int(row["quantity"]) if row["quantity"] is not None else None,
            duration=int(row["duration"]) if row["duration"] is not None else None,
            duration_unit=row["duration_unit"],
            notes=row["notes"],
            special_requirements=list(json.loads(row["special_requirements"] or "[]")),
            assigned_partner_id=row["assigned_partner_id"],
            feedback=feedback,
            cancellation=cancellation,
            completed_date=parse_iso_datetime(row["completed_date"]),
            stock_reserved=bool(row["stock_reserved"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "kind": self.kind,
            "material_id": self.material_id,
            "vehicle_id": self.vehicle_id,
            "quantity": self.quantity,
            "duration": self.duration,
            "duration_unit": self.duration_unit,
            "total_price": str(self.total_price),
            "status": self.status,
            "request_date": to_iso(self.request_date),
            "required_by_date": to_iso(self.required_by_date),
            "completed_date": to_iso(self.completed_date),
            "address": self.address,
            "contact": self.contact.to_dict(),
            "notes": self.notes,
            "special_requirements": list(self.special_requirements),
            "assigned_partner_id": self.assigned_partner_id,
            "tracking": self.tracking.to_dict(),
            "payment": self.payment.to_dict(),
            "feedback": self.feedback.to_dict() if self.feedback else None,
            "cancellation": self.cancellation.to_dict() if self.cancellation else None,
        }
