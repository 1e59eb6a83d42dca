from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping

from marketplace.domain.contracts import (
    DURATION_UNITS,
    KIND_MATERIAL,
    KIND_VEHICLE,
    REQUEST_KINDS,
    ContactDetails,
    FeedbackInput,
    ServiceRequestCreateInput,
    StatusUpdateInput,
    parse_iso_date,
)
from marketplace.errors import ValidationError
from marketplace.lifecycle.flow_policy import is_known_status


ADDRESS_MIN_LENGTH = 5
CONTACT_NAME_MIN_LENGTH = 2
FEEDBACK_COMMENT_MAX_LENGTH = 500
NOTES_MAX_LENGTH = 1000
SPECIAL_REQUIREMENTS_MAX_ITEMS = 20
# Largest value an INTEGER column holds on every supported backend.
INTEGER_FIELD_MAX = 2_147_483_647

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z0-9-]{2,}$")
_PHONE_PATTERN = re.compile(r"^\+?[0-9(][0-9\s\-().]*$")


class _Errors:
    def __init__(self) -> None:
        self.items: List[Dict[str, str]] = []

    def add(self, field: str, message: str) -> None:
        self.items.append({"field": field, "message": message})

    def raise_if_any(self) -> None:
        if self.items:
            raise ValidationError(errors=self.items)


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value >= 1 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value >= 1 else None
    raw = _text(value)
    if not raw.isdigit():
        return None
    parsed = int(raw)
    return parsed if parsed >= 1 else None


def _parse_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_PATTERN.match(value or ""))


def is_valid_phone(value: str) -> bool:
    if not _PHONE_PATTERN.match(value or ""):
        return False
    digits = re.sub(r"\D", "", value)
    return 7 <= len(digits) <= 15


def parse_create_payload(payload: Mapping[str, Any], *, today: date) -> ServiceRequestCreateInput:
    """Validate a create-request body; every problem is reported at once."""
    errors = _Errors()
    if not isinstance(payload, Mapping):
        raise ValidationError.for_field("body", "Request body must be a JSON object")

    kind = _text(payload.get("kind") or payload.get("type"))
    if kind not in REQUEST_KINDS:
        errors.add("kind", "Kind must be either material or vehicle")

    client_total_price = None
    if not _is_absent(payload.get("total_price")):
        client_total_price = _parse_decimal(payload.get("total_price"))
        if client_total_price is None or client_total_price < 0:
            errors.add("total_price", "Total price must be non-negative")
            client_total_price = None

    required_by_date = None
    raw_required = payload.get("required_by_date")
    if _is_absent(raw_required):
        errors.add("required_by_date", "Required date is required")
    else:
        try:
            required_by_date = parse_iso_date(str(raw_required))
        except ValueError:
            errors.add("required_by_date", "Required date must be a valid date")
        else:
            if required_by_date < today:
                errors.add("required_by_date", "Required date cannot be in the past")

    address = _text(payload.get("address"))
    if len(address) < ADDRESS_MIN_LENGTH:
        errors.add("address", f"Address must be at least {ADDRESS_MIN_LENGTH} characters")

    raw_contact = payload.get("contact")
    if not isinstance(raw_contact, Mapping):
        raw_contact = {}
    contact_name = _text(raw_contact.get("name"))
    contact_phone = _text(raw_contact.get("phone"))
    contact_email = _text(raw_contact.get("email")).lower()
    if len(contact_name) < CONTACT_NAME_MIN_LENGTH:
        errors.add("contact.name", "Contact name is required")
    if not is_valid_phone(contact_phone):
        errors.add("contact.phone", "Valid phone number is required")
    if not is_valid_email(contact_email):
        errors.add("contact.email", "Valid email is required")

    material_id = _text(payload.get("material_id")) or None
    vehicle_id = _text(payload.get("vehicle_id")) or None
    quantity = None
    duration = None
    duration_unit = None

    if kind == KIND_MATERIAL:
        quantity = parse_positive_int(payload.get("quantity"))
        if not material_id:
            errors.add("material_id", "Material is required for material requests")
        if quantity is None:
            errors.add("quantity", "Quantity must be an integer of at least 1")
        elif quantity > INTEGER_FIELD_MAX:
            errors.add("quantity", f"Quantity cannot exceed {INTEGER_FIELD_MAX}")
        for field_name in ("vehicle_id", "duration", "duration_unit"):
            if not _is_absent(payload.get(field_name)):
                errors.add(field_name, "Not allowed for material requests")
    elif kind == KIND_VEHICLE:
        duration = parse_positive_int(payload.get("duration"))
        duration_unit = _text(payload.get("duration_unit")) or None
        if not vehicle_id:
            errors.add("vehicle_id", "Vehicle is required for vehicle requests")
        if duration is None:
            errors.add("duration", "Duration must be an integer of at least 1")
        elif duration > INTEGER_FIELD_MAX:
            errors.add("duration", f"Duration cannot exceed {INTEGER_FIELD_MAX}")
        if duration_unit not in DURATION_UNITS:
            errors.add("duration_unit", "Duration unit must be hours or days")
        for field_name in ("material_id", "quantity"):
            if not _is_absent(payload.get(field_name)):
                errors.add(field_name, "Not allowed for vehicle requests")

    notes = _text(payload.get("notes")) or None
    if notes and len(notes) > NOTES_MAX_LENGTH:
        errors.add("notes", f"Notes cannot exceed {NOTES_MAX_LENGTH} characters")

    special_requirements: List[str] = []
    raw_requirements = payload.get("special_requirements")
    if raw_requirements is not None:
        if not isinstance(raw_requirements, list) or not all(isinstance(item, str) for item in raw_requirements):
            errors.add("special_requirements", "Special requirements must be a list of strings")
        elif len(raw_requirements) > SPECIAL_REQUIREMENTS_MAX_ITEMS:
            errors.add("special_requirements", f"At most {SPECIAL_REQUIREMENTS_MAX_ITEMS} special requirements")
        else:
            special_requirements = [item.strip() for item in raw_requirements if item.strip()]

    errors.raise_if_any()
    return ServiceRequestCreateInput(
        kind=kind,
        required_by_date=required_by_date,
        address=address,
        contact=ContactDetails(name=contact_name, phone=contact_phone, email=contact_email),
        material_id=material_id if kind == KIND_MATERIAL else None,
        quantity=quantity,
        vehicle_id=vehicle_id if kind == KIND_VEHICLE else None,
        duration=duration,
        duration_unit=duration_unit,
        client_total_price=client_total_price,
        notes=notes,
        special_requirements=special_requirements,
    )


def parse_status_payload(payload: Mapping[str, Any]) -> StatusUpdateInput:
    errors = _Errors()
    if not isinstance(payload, Mapping):
        raise ValidationError.for_field("body", "Request body must be a JSON object")
    status = _text(payload.get("status")).replace("-", "_")
    if not is_known_status(status):
        errors.add("status", "Status is not recognised")
    notes = _text(payload.get("notes")) or None
    if notes and len(notes) > NOTES_MAX_LENGTH:
        errors.add("notes", f"Notes cannot exceed {NOTES_MAX_LENGTH} characters")
    errors.raise_if_any()
    return StatusUpdateInput(status=status, notes=notes)


def parse_feedback_payload(payload: Mapping[str, Any]) -> FeedbackInput:
    errors = _Errors()
    if not isinstance(payload, Mapping):
        raise ValidationError.for_field("body", "Request body must be a JSON object")
    rating = parse_positive_int(payload.get("rating"))
    if rating is None or rating > 5:
        errors.add("rating", "Rating must be between 1 and 5")
    comment = _text(payload.get("comment")) or None
    if comment and len(comment) > FEEDBACK_COMMENT_MAX_LENGTH:
        errors.add("comment", f"Comment cannot exceed {FEEDBACK_COMMENT_MAX_LENGTH} characters")
    errors.raise_if_any()
    return FeedbackInput(rating=rating, comment=comment)
