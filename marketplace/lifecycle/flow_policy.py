from __future__ import annotations

from typing import Dict, FrozenSet, List

from marketplace.domain.contracts import Actor, ServiceRequest
from marketplace.messages import status_label


STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_REJECTED = "rejected"

ALL_STATUSES: tuple[str, ...] = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_REJECTED,
)

TERMINAL_STATUSES: FrozenSet[str] = frozenset({STATUS_COMPLETED, STATUS_CANCELLED, STATUS_REJECTED})

# Stock held by a reservation goes back to the catalog when a request ends in one of these.
STOCK_RELEASE_STATUSES: FrozenSet[str] = frozenset({STATUS_CANCELLED, STATUS_REJECTED})

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    STATUS_PENDING: frozenset({STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_REJECTED}),
    STATUS_CONFIRMED: frozenset({STATUS_IN_PROGRESS, STATUS_CANCELLED}),
    STATUS_IN_PROGRESS: frozenset({STATUS_COMPLETED, STATUS_CANCELLED}),
    STATUS_COMPLETED: frozenset(),
    STATUS_CANCELLED: frozenset(),
    STATUS_REJECTED: frozenset(),
}

ACTOR_REQUESTER = "requester"
ACTOR_ASSIGNED_PARTNER = "assigned_partner"


def is_known_status(status: str | None) -> bool:
    return str(status or "") in ALL_STATUSES


def is_terminal(status: str | None) -> bool:
    return str(status or "") in TERMINAL_STATUSES


def can_transition(from_status: str | None, to_status: str | None) -> bool:
    if is_terminal(from_status):
        return False
    return str(to_status or "") in ALLOWED_TRANSITIONS.get(str(from_status or ""), frozenset())


def next_statuses(status: str | None) -> List[str]:
    allowed = ALLOWED_TRANSITIONS.get(str(status or ""), frozenset())
    return [candidate for candidate in ALL_STATUSES if candidate in allowed]


def required_actor(target_status: str) -> str:
    """Who may drive a request into ``target_status``.

    Cancelling belongs to the requester; every other move belongs to the
    partner currently assigned to fulfil the request.
    """
    if target_status == STATUS_CANCELLED:
        return ACTOR_REQUESTER
    return ACTOR_ASSIGNED_PARTNER


def transition_denial(actor: Actor, service_request: ServiceRequest, target_status: str) -> str | None:
    """Return the message key explaining why ``actor`` may not move the request, or None."""
    if required_actor(target_status) == ACTOR_REQUESTER:
        if actor.id != service_request.requester_id:
            return "cancel_requires_requester"
        return None

    if not service_request.assigned_partner_id:
        return "partner_not_assigned"
    if not actor.partner_id or actor.partner_id != service_request.assigned_partner_id:
        return "not_assigned_partner"
    return None


def actions_for(actor: Actor, service_request: ServiceRequest) -> List[str]:
    return [
        candidate
        for candidate in next_statuses(service_request.status)
        if transition_denial(actor, service_request, candidate) is None
    ]


def flow_meta(actor: Actor, service_request: ServiceRequest) -> Dict[str, object]:
    return {
        "status": service_request.status,
        "status_label": status_label(service_request.status),
        "terminal": is_terminal(service_request.status),
        "next_statuses": actions_for(actor, service_request),
        "can_add_feedback": (
            service_request.status == STATUS_COMPLETED
            and service_request.feedback is None
            and actor.id == service_request.requester_id
        ),
    }
