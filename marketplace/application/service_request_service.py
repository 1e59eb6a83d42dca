from __future__ import annotations

import json
import logging
import math
import random
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Tuple

from marketplace.core import (
    EventBus,
    FeedbackAdded,
    PartnerAssigned,
    ServiceRequestCreated,
    ServiceRequestStatusChanged,
    get_event_bus,
)
from marketplace.domain.contracts import (
    KIND_MATERIAL,
    REQUEST_KINDS,
    Actor,
    ServiceRequest,
    ServiceRequestCreateInput,
    to_iso,
)
from marketplace.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientStockError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    SystemError,
    UnavailableError,
    ValidationError,
)
from marketplace.infrastructure.repositories import (
    CatalogRepository,
    PartnerRepository,
    ServiceRequestRepository,
    StatusEventRepository,
)
from marketplace.lifecycle.flow_policy import (
    ACTOR_ASSIGNED_PARTNER,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STOCK_RELEASE_STATUSES,
    can_transition,
    is_known_status,
    required_actor,
    transition_denial,
)
from marketplace.lifecycle.order_numbers import allocate_order_number
from marketplace.lifecycle.pricing import material_total, vehicle_total
from marketplace.lifecycle.validation import (
    INTEGER_FIELD_MAX,
    parse_create_payload,
    parse_feedback_payload,
    parse_status_payload,
)
from marketplace.observability import observe_service_request_transition


ENTITY_SERVICE_REQUEST = "service_request"
DEFAULT_CANCELLATION_REASON = "Cancelled by user"
LIST_SCOPES = ("mine", "assigned")

_DEFAULT_SETTINGS: Dict[str, Any] = {
    "STOCK_RESERVATION_ENABLED": True,
    "ORDER_NUMBER_MAX_ATTEMPTS": 5,
    "LIST_DEFAULT_LIMIT": 10,
    "LIST_MAX_LIMIT": 100,
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ServiceRequestService:
    """Owns the service request lifecycle: creation, transitions, assignment and feedback.

    Every mutating operation runs in one DB transaction and publishes its domain
    event only after the commit succeeded. Callers hand in the ``db`` wrapper and
    the already-authenticated ``Actor``.
    """

    def __init__(
        self,
        *,
        requests: ServiceRequestRepository | None = None,
        catalog: CatalogRepository | None = None,
        partners: PartnerRepository | None = None,
        status_events: StatusEventRepository | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        settings: Mapping[str, Any] | None = None,
    ) -> None:
        self.requests = requests or ServiceRequestRepository()
        self.catalog = catalog or CatalogRepository()
        self.partners = partners or PartnerRepository()
        self.status_events = status_events or StatusEventRepository()
        self.event_bus = event_bus or get_event_bus()
        self._clock = clock or _utc_now
        self._rng = rng
        self._settings = dict(_DEFAULT_SETTINGS)
        self._settings.update(settings or {})
        self._logger = logging.getLogger("marketplace")

    @classmethod
    def from_app_config(cls, config: Mapping[str, Any], **kwargs: Any) -> "ServiceRequestService":
        settings = {key: config.get(key, default) for key, default in _DEFAULT_SETTINGS.items()}
        return cls(settings=settings, **kwargs)

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(timezone.utc)

    def _now_ms(self) -> int:
        return int(self._now().timestamp() * 1000)

    def _load(self, db, request_id: str) -> ServiceRequest:
        service_request = self.requests.get_by_id(db, str(request_id or "").strip())
        if service_request is None:
            raise NotFoundError(
                code="service_request_not_found",
                message_key="service_request_not_found",
                payload={"service_request_id": request_id},
            )
        return service_request

    def _publish(self, event) -> None:
        self.event_bus.publish(event)

    # -- creation -----------------------------------------------------------

    def create_request(
        self,
        db,
        actor: Actor,
        create_input: ServiceRequestCreateInput | Mapping[str, Any],
    ) -> ServiceRequest:
        now = self._now()
        if not isinstance(create_input, ServiceRequestCreateInput):
            create_input = parse_create_payload(create_input, today=now.date())

        total_price, stock_unit = self._price_and_check_catalog(db, create_input)
        if create_input.client_total_price is not None and create_input.client_total_price != total_price:
            self._logger.warning(
                "client_price_mismatch",
                extra={
                    "kind": create_input.kind,
                    "client_total_price": str(create_input.client_total_price),
                    "total_price": str(total_price),
                },
            )

        reserve = create_input.kind == KIND_MATERIAL and bool(self._settings["STOCK_RESERVATION_ENABLED"])
        max_attempts = max(1, int(self._settings["ORDER_NUMBER_MAX_ATTEMPTS"]))
        service_request_id = None
        order_number = None
        # The existence check is advisory; the UNIQUE index decides, so a clash on
        # insert rolls the whole unit back and the next attempt starts over.
        for _attempt in range(max_attempts):
            order_number = allocate_order_number(
                create_input.kind,
                exists_fn=lambda candidate: self.requests.order_number_exists(db, candidate),
                max_attempts=1,
                now_fn=self._now_ms,
                rng=self._rng,
            )
            if order_number is None:
                continue
            candidate_id = uuid.uuid4().hex
            try:
                self._insert_new_request(
                    db,
                    actor,
                    create_input,
                    service_request_id=candidate_id,
                    order_number=order_number,
                    total_price=total_price,
                    stock_unit=stock_unit,
                    reserve=reserve,
                    now=now,
                )
                db.commit()
            except Exception as exc:
                db.rollback()
                if not self._is_order_number_unique_violation(exc):
                    raise
                self._logger.warning("order_number_collision", extra={"order_number": order_number})
                continue
            service_request_id = candidate_id
            break

        if service_request_id is None:
            raise SystemError(
                code="order_number_exhausted",
                message_key="order_number_exhausted",
                details=f"no free order number after {max_attempts} attempts",
            )

        service_request = self._load(db, service_request_id)
        self._logger.info(
            "service_request_created",
            extra={
                "service_request_id": service_request.id,
                "order_number": order_number,
                "kind": service_request.kind,
                "stock_reserved": reserve,
            },
        )
        self._publish(
            ServiceRequestCreated(
                service_request_id=service_request.id,
                order_number=order_number,
                kind=service_request.kind,
                requester_id=service_request.requester_id,
                total_price=str(service_request.total_price),
                contact_email=service_request.contact.email,
                contact_phone=service_request.contact.phone,
            )
        )
        return service_request

    def _price_and_check_catalog(self, db, create_input: ServiceRequestCreateInput):
        if create_input.kind == KIND_MATERIAL:
            material = self.catalog.get_material(db, create_input.material_id)
            if material is None:
                raise NotFoundError(
                    code="material_not_found",
                    message_key="material_not_found",
                    payload={"material_id": create_input.material_id},
                )
            if not material.is_available:
                raise UnavailableError(code="material_unavailable", message_key="material_unavailable")
            if create_input.quantity < material.minimum_order:
                raise ValidationError.for_field(
                    "quantity",
                    f"Minimum order is {material.minimum_order} {material.unit}",
                )
            if create_input.quantity > material.available_quantity:
                raise InsufficientStockError(available=material.available_quantity, unit=material.unit)
            return material_total(material, create_input.quantity), material.unit

        vehicle = self.catalog.get_vehicle(db, create_input.vehicle_id)
        if vehicle is None:
            raise NotFoundError(
                code="vehicle_not_found",
                message_key="vehicle_not_found",
                payload={"vehicle_id": create_input.vehicle_id},
            )
        if not vehicle.is_available or vehicle.status != "active":
            raise UnavailableError(code="vehicle_unavailable", message_key="vehicle_unavailable")
        return vehicle_total(vehicle, create_input.duration, create_input.duration_unit), None

    def _insert_new_request(
        self,
        db,
        actor: Actor,
        create_input: ServiceRequestCreateInput,
        *,
        service_request_id: str,
        order_number: str,
        total_price,
        stock_unit: str | None,
        reserve: bool,
        now: datetime,
    ) -> None:
        if reserve and not self.catalog.reserve_stock(db, create_input.material_id, create_input.quantity):
            fresh = self.catalog.get_material(db, create_input.material_id)
            raise InsufficientStockError(
                available=fresh.available_quantity if fresh else 0,
                unit=stock_unit,
            )
        self.requests.create(
            db,
            {
                "id": service_request_id,
                "requester_id": actor.id,
                "kind": create_input.kind,
                "material_id": create_input.material_id,
                "vehicle_id": create_input.vehicle_id,
                "quantity": create_input.quantity,
                "duration": create_input.duration,
                "duration_unit": create_input.duration_unit,
                "total_price": str(total_price),
                "status": STATUS_PENDING,
                "request_date": to_iso(now),
                "required_by_date": to_iso(create_input.required_by_date),
                "address": create_input.address,
                "contact_name": create_input.contact.name,
                "contact_phone": create_input.contact.phone,
                "contact_email": create_input.contact.email,
                "notes": create_input.notes,
                "special_requirements": json.dumps(list(create_input.special_requirements)),
                "order_number": order_number,
                "stock_reserved": 1 if reserve else 0,
            },
        )
        self.status_events.add_event(
            db,
            entity=ENTITY_SERVICE_REQUEST,
            entity_id=service_request_id,
            from_status=None,
            to_status=STATUS_PENDING,
            reason="service_request_created",
            actor_id=actor.id,
            created_at=to_iso(now),
        )

    @staticmethod
    def _is_order_number_unique_violation(exc: Exception) -> bool:
        pg_code = str(getattr(exc, "pgcode", "") or "").strip()
        message = str(exc or "").lower()
        if "order_number" not in message:
            return False
        if pg_code == "23505":
            return True
        return "unique constraint failed" in message or "duplicate key value violates unique constraint" in message

    # -- transitions --------------------------------------------------------

    def transition(
        self,
        db,
        actor: Actor,
        request_id: str,
        target_status: str,
        notes: str | None = None,
    ) -> ServiceRequest:
        status_input = parse_status_payload({"status": target_status, "notes": notes})
        target_status = status_input.status
        service_request = self._load(db, request_id)

        denial = transition_denial(actor, service_request, target_status)
        if denial:
            raise ForbiddenError(message_key=denial)
        if required_actor(target_status) == ACTOR_ASSIGNED_PARTNER:
            partner = self.partners.get_by_id(db, service_request.assigned_partner_id)
            if partner is None or not partner.can_fulfil:
                raise ForbiddenError(message_key="partner_not_approved")

        from_status = service_request.status
        if not can_transition(from_status, target_status):
            raise InvalidTransitionError(payload={"from_status": from_status, "to_status": target_status})

        now = self._now()
        fields: Dict[str, Any] = {"status": target_status}
        if status_input.notes is not None:
            fields["notes"] = status_input.notes
        if target_status == STATUS_COMPLETED:
            fields["completed_date"] = to_iso(now)
        if target_status == STATUS_CANCELLED:
            fields["cancellation_reason"] = status_input.notes or DEFAULT_CANCELLATION_REASON
            fields["cancelled_by"] = "user"
            fields["cancelled_date"] = to_iso(now)

        try:
            if not self.requests.update_if_status(
                db,
                service_request.id,
                expected_status=from_status,
                fields=fields,
            ):
                raise ConflictError(
                    code="transition_conflict",
                    message_key="transition_conflict",
                    payload={"from_status": from_status, "to_status": target_status},
                )
            if target_status in STOCK_RELEASE_STATUSES:
                self._release_stock(db, service_request)
            self.status_events.add_event(
                db,
                entity=ENTITY_SERVICE_REQUEST,
                entity_id=service_request.id,
                from_status=from_status,
                to_status=target_status,
                reason=status_input.notes,
                actor_id=actor.id,
                created_at=to_iso(now),
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        observe_service_request_transition(from_status, target_status)
        updated = self._load(db, service_request.id)
        self._logger.info(
            "service_request_transitioned",
            extra={
                "service_request_id": updated.id,
                "from_status": from_status,
                "to_status": target_status,
                "actor_id": actor.id,
            },
        )
        self._publish(
            ServiceRequestStatusChanged(
                service_request_id=updated.id,
                order_number=updated.tracking.order_number,
                from_status=from_status,
                to_status=target_status,
                actor_id=actor.id,
                contact_email=updated.contact.email,
                contact_phone=updated.contact.phone,
                notes=status_input.notes,
            )
        )
        return updated

    def _release_stock(self, db, service_request: ServiceRequest) -> None:
        if service_request.kind != KIND_MATERIAL or not service_request.stock_reserved:
            return
        # The flag flip is the guard: only one writer gets to hand the stock back.
        if self.requests.mark_stock_released(db, service_request.id):
            self.catalog.release_stock(db, service_request.material_id, int(service_request.quantity or 0))

    # -- assignment ---------------------------------------------------------

    def assign_partner(
        self,
        db,
        actor: Actor,
        request_id: str,
        partner_id: str | None = None,
    ) -> ServiceRequest:
        service_request = self._load(db, request_id)
        partner_id = str(partner_id or "").strip() or None

        if actor.is_admin:
            if not partner_id:
                raise ValidationError.for_field("partner_id", "Partner is required")
        elif actor.is_partner:
            if partner_id and partner_id != actor.partner_id:
                raise ForbiddenError()
            partner_id = actor.partner_id
        else:
            raise ForbiddenError()

        partner = self.partners.get_by_id(db, partner_id)
        if partner is None:
            raise NotFoundError(
                code="partner_not_found",
                message_key="partner_not_found",
                payload={"partner_id": partner_id},
            )
        if not partner.can_fulfil:
            raise ForbiddenError(message_key="partner_not_approved")
        if not partner.serves_kind(service_request.kind):
            raise ForbiddenError(message_key="partner_type_mismatch")
        if not actor.is_admin and self._catalog_owner(db, service_request) != partner.id:
            raise ForbiddenError(message_key="partner_not_item_owner")

        if service_request.status != STATUS_PENDING:
            raise InvalidStateError(message_key="assignment_requires_pending")
        if service_request.assigned_partner_id:
            raise ConflictError(code="partner_already_assigned", message_key="partner_already_assigned")

        try:
            if not self.requests.assign_partner(
                db,
                service_request.id,
                partner_id=partner.id,
                expected_status=STATUS_PENDING,
            ):
                raise ConflictError(code="partner_already_assigned", message_key="partner_already_assigned")
            self.status_events.add_event(
                db,
                entity=ENTITY_SERVICE_REQUEST,
                entity_id=service_request.id,
                from_status=STATUS_PENDING,
                to_status=STATUS_PENDING,
                reason="partner_assigned",
                actor_id=actor.id,
                created_at=to_iso(self._now()),
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        updated = self._load(db, service_request.id)
        self._logger.info(
            "service_request_partner_assigned",
            extra={"service_request_id": updated.id, "partner_id": partner.id, "actor_id": actor.id},
        )
        self._publish(
            PartnerAssigned(
                service_request_id=updated.id,
                order_number=updated.tracking.order_number,
                partner_id=partner.id,
                actor_id=actor.id,
                contact_email=updated.contact.email,
                contact_phone=updated.contact.phone,
            )
        )
        return updated

    def _catalog_owner(self, db, service_request: ServiceRequest) -> str | None:
        if service_request.kind == KIND_MATERIAL:
            material = self.catalog.get_material(db, service_request.material_id)
            return material.supplier_id if material else None
        vehicle = self.catalog.get_vehicle(db, service_request.vehicle_id)
        return vehicle.owner_id if vehicle else None

    # -- feedback -----------------------------------------------------------

    def add_feedback(
        self,
        db,
        actor: Actor,
        request_id: str,
        rating: Any,
        comment: str | None = None,
    ) -> ServiceRequest:
        feedback_input = parse_feedback_payload({"rating": rating, "comment": comment})
        service_request = self._load(db, request_id)
        if actor.id != service_request.requester_id:
            raise ForbiddenError(message_key="feedback_requires_requester")
        if service_request.status != STATUS_COMPLETED:
            raise InvalidStateError(message_key="feedback_requires_completed")
        if service_request.feedback is not None:
            raise ConflictError(code="feedback_already_provided", message_key="feedback_already_provided")

        try:
            if not self.requests.set_feedback(
                db,
                service_request.id,
                rating=feedback_input.rating,
                comment=feedback_input.comment,
                feedback_date=to_iso(self._now()),
                expected_status=STATUS_COMPLETED,
            ):
                raise ConflictError(code="feedback_already_provided", message_key="feedback_already_provided")
            db.commit()
        except Exception:
            db.rollback()
            raise

        updated = self._load(db, service_request.id)
        self._logger.info(
            "service_request_feedback_added",
            extra={"service_request_id": updated.id, "rating": feedback_input.rating},
        )
        self._publish(
            FeedbackAdded(
                service_request_id=updated.id,
                order_number=updated.tracking.order_number,
                rating=feedback_input.rating,
                requester_id=updated.requester_id,
                assigned_partner_id=updated.assigned_partner_id,
            )
        )
        return updated

    # -- reads --------------------------------------------------------------

    @staticmethod
    def can_view(actor: Actor, service_request: ServiceRequest) -> bool:
        if actor.is_admin or actor.id == service_request.requester_id:
            return True
        return bool(actor.partner_id) and actor.partner_id == service_request.assigned_partner_id

    def get_request(self, db, actor: Actor, request_id: str) -> ServiceRequest:
        service_request = self._load(db, request_id)
        if not self.can_view(actor, service_request):
            raise ForbiddenError(message_key="view_not_allowed")
        return service_request

    def history(self, db, actor: Actor, request_id: str) -> List[dict]:
        service_request = self.get_request(db, actor, request_id)
        return self.status_events.list_for_entity(
            db,
            entity=ENTITY_SERVICE_REQUEST,
            entity_id=service_request.id,
        )

    def list_requests(
        self,
        db,
        actor: Actor,
        *,
        status: str | List[str] | None = None,
        kind: str | None = None,
        scope: str = "mine",
        page: Any = None,
        limit: Any = None,
    ) -> Tuple[List[ServiceRequest], Dict[str, int]]:
        statuses = self._parse_status_filter(status)
        kind = str(kind or "").strip() or None
        if kind and kind not in REQUEST_KINDS:
            raise ValidationError.for_field("kind", "Kind must be either material or vehicle")
        scope = str(scope or "mine").strip()
        if scope not in LIST_SCOPES:
            raise ValidationError.for_field("scope", "Scope must be mine or assigned")

        page_number = self._bounded_int(page, default=1, minimum=1, maximum=INTEGER_FIELD_MAX)
        page_limit = self._bounded_int(
            limit,
            default=int(self._settings["LIST_DEFAULT_LIMIT"]),
            minimum=1,
            maximum=int(self._settings["LIST_MAX_LIMIT"]),
        )

        if scope == "assigned":
            if not actor.partner_id:
                raise ForbiddenError()
            owner_column, owner_id = "assigned_partner_id", actor.partner_id
        else:
            owner_column, owner_id = "requester_id", actor.id

        records, total = self.requests.list_page(
            db,
            owner_column=owner_column,
            owner_id=owner_id,
            statuses=statuses,
            kind=kind,
            limit=page_limit,
            offset=(page_number - 1) * page_limit,
        )
        pagination = {
            "page": page_number,
            "limit": page_limit,
            "total": total,
            "pages": int(math.ceil(total / page_limit)) if total else 0,
        }
        return records, pagination

    @staticmethod
    def _parse_status_filter(status: str | List[str] | None) -> List[str]:
        if status is None:
            return []
        raw_items = status if isinstance(status, list) else str(status).split(",")
        statuses = [str(item).strip().replace("-", "_") for item in raw_items if str(item).strip()]
        unknown = [item for item in statuses if not is_known_status(item)]
        if unknown:
            raise ValidationError.for_field("status", f"Unknown status: {', '.join(unknown)}")
        return statuses

    @staticmethod
    def _bounded_int(value: Any, *, default: int, minimum: int, maximum: int | None = None) -> int:
        try:
            parsed = int(value)
        except (TypeError, ValueError, OverflowError):
            parsed = default
        parsed = max(minimum, parsed)
        if maximum is not None:
            parsed = min(maximum, parsed)
        return parsed
