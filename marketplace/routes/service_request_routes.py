from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from marketplace.application.service_request_service import ServiceRequestService
from marketplace.auth import current_actor
from marketplace.db import get_db
from marketplace.domain.contracts import ROLE_ADMIN, ROLE_MATERIAL_SUPPLIER, ROLE_VEHICLE_OWNER, ServiceRequest
from marketplace.errors import ValidationError
from marketplace.lifecycle.flow_policy import flow_meta
from marketplace.messages import success_message
from marketplace.policies import require_roles


service_request_bp = Blueprint("service_requests", __name__)


def _service() -> ServiceRequestService:
    return current_app.extensions["service_request_service"]


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError.for_field("body", "Request body must be a JSON object")
    return payload


def _record_payload(service_request: ServiceRequest) -> Dict[str, Any]:
    payload = service_request.to_dict()
    payload["flow"] = flow_meta(current_actor(), service_request)
    return payload


@service_request_bp.route("/api/service-requests", methods=["POST"])
def create_service_request():
    service_request = _service().create_request(get_db(), current_actor(), _json_body())
    payload = _record_payload(service_request)
    payload["message"] = success_message("service_request_created")
    return jsonify(payload), 201


@service_request_bp.route("/api/service-requests", methods=["GET"])
def list_service_requests():
    records, pagination = _service().list_requests(
        get_db(),
        current_actor(),
        status=request.args.get("status"),
        kind=request.args.get("kind"),
        scope=request.args.get("scope") or "mine",
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )
    return jsonify({"items": [record.to_dict() for record in records], "pagination": pagination})


@service_request_bp.route("/api/service-requests/<string:request_id>", methods=["GET"])
def get_service_request(request_id: str):
    service_request = _service().get_request(get_db(), current_actor(), request_id)
    return jsonify(_record_payload(service_request))


@service_request_bp.route("/api/service-requests/<string:request_id>/history", methods=["GET"])
def service_request_history(request_id: str):
    items = _service().history(get_db(), current_actor(), request_id)
    return jsonify({"service_request_id": request_id, "items": items})


@service_request_bp.route("/api/service-requests/<string:request_id>/status", methods=["PUT"])
def update_service_request_status(request_id: str):
    payload = _json_body()
    service_request = _service().transition(
        get_db(),
        current_actor(),
        request_id,
        payload.get("status"),
        notes=payload.get("notes"),
    )
    response = _record_payload(service_request)
    response["message"] = success_message("status_updated")
    return jsonify(response)


@service_request_bp.route("/api/service-requests/<string:request_id>/assignment", methods=["PUT"])
def assign_service_request_partner(request_id: str):
    actor = current_actor()
    require_roles(actor.role, ROLE_ADMIN, ROLE_VEHICLE_OWNER, ROLE_MATERIAL_SUPPLIER)
    payload = _json_body()
    service_request = _service().assign_partner(get_db(), actor, request_id, payload.get("partner_id"))
    response = _record_payload(service_request)
    response["message"] = success_message("partner_assigned")
    return jsonify(response)


@service_request_bp.route("/api/service-requests/<string:request_id>/feedback", methods=["POST"])
def add_service_request_feedback(request_id: str):
    payload = _json_body()
    service_request = _service().add_feedback(
        get_db(),
        current_actor(),
        request_id,
        payload.get("rating"),
        comment=payload.get("comment"),
    )
    response = _record_payload(service_request)
    response["message"] = success_message("feedback_added")
    return jsonify(response)
