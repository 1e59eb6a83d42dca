from __future__ import annotations

from typing import Dict, List


STATUS_ITEMS: List[Dict[str, str]] = [
    {
        "key": "pending",
        "label": "Pending",
        "description": "Request received and waiting for a partner.",
    },
    {
        "key": "confirmed",
        "label": "Confirmed",
        "description": "Partner accepted the request.",
    },
    {
        "key": "in_progress",
        "label": "In progress",
        "description": "Delivery or rental is under way.",
    },
    {
        "key": "completed",
        "label": "Completed",
        "description": "Request fulfilled.",
    },
    {
        "key": "cancelled",
        "label": "Cancelled",
        "description": "Request cancelled by the requester.",
    },
    {
        "key": "rejected",
        "label": "Rejected",
        "description": "Partner declined the request.",
    },
]


MESSAGES: Dict[str, Dict[str, str]] = {
    "success": {
        "service_request_created": "Service request created successfully.",
        "status_updated": "Service request status updated successfully.",
        "partner_assigned": "Partner assigned successfully.",
        "feedback_added": "Feedback added successfully.",
    },
    "error": {
        "auth_required": "Authentication required.",
        "validation_error": "Validation failed.",
        "permission_denied": "You are not allowed to perform this action.",
        "cancel_requires_requester": "Only the requester can cancel this request.",
        "partner_not_assigned": "A partner must be assigned before the request can progress.",
        "not_assigned_partner": "Not authorized to update this service request.",
        "partner_not_approved": "Partner access requires an approved, active partner profile.",
        "partner_type_mismatch": "Partner type does not match the request kind.",
        "partner_not_item_owner": "Partners can only claim requests for their own listings.",
        "feedback_requires_requester": "Not authorized to add feedback to this request.",
        "view_not_allowed": "Not authorized to view this service request.",
        "service_request_not_found": "Service request not found.",
        "material_not_found": "Material not found.",
        "vehicle_not_found": "Vehicle not found.",
        "partner_not_found": "Partner not found.",
        "material_unavailable": "Material is not available.",
        "vehicle_unavailable": "Vehicle is not available.",
        "insufficient_stock": "Requested quantity exceeds the available stock.",
        "invalid_transition": "The requested status is not reachable from the current status.",
        "feedback_requires_completed": "Only completed requests accept feedback.",
        "assignment_requires_pending": "Only pending requests can be assigned.",
        "feedback_already_provided": "Feedback already provided for this request.",
        "partner_already_assigned": "A partner is already assigned to this request.",
        "transition_conflict": "The request was updated concurrently. Reload and try again.",
        "order_number_exhausted": "Could not allocate an order number.",
        "unexpected_error": "The operation could not be completed. Please try again shortly.",
    },
}


def status_keys() -> List[str]:
    return [item["key"] for item in STATUS_ITEMS]


def status_label(status: str | None) -> str:
    for item in STATUS_ITEMS:
        if item["key"] == status:
            return item["label"]
    return str(status or "")


def get_message(category: str, key: str, default: str | None = None) -> str:
    value = MESSAGES.get(category, {}).get(key)
    if value:
        return value
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)
