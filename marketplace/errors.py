from __future__ import annotations

from typing import Any, Dict, List

from marketplace.messages import error_message


class AppError(Exception):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or code or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        fallback = error_message("unexpected_error")
        return error_message(self.message_key, fallback)

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.user_message(),
            "request_id": request_id,
        }
        if self.payload:
            payload.update(self.payload)
        return payload


class UserActionError(AppError):
    default_code = "action_invalid"
    default_message_key = "validation_error"
    default_http_status = 400
    default_critical = False


class ValidationError(UserActionError):
    default_code = "validation_error"
    default_message_key = "validation_error"
    default_http_status = 400

    def __init__(self, errors: List[Dict[str, str]] | None = None, **kwargs: Any) -> None:
        self.errors = [dict(item) for item in (errors or [])]
        payload = dict(kwargs.pop("payload", None) or {})
        if self.errors:
            payload["errors"] = self.errors
        details = kwargs.pop("details", None) or "; ".join(
            f"{item.get('field')}: {item.get('message')}" for item in self.errors
        )
        super().__init__(payload=payload, details=details, **kwargs)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(errors=[{"field": field, "message": message}])


class AuthenticationError(UserActionError):
    default_code = "auth_required"
    default_message_key = "auth_required"
    default_http_status = 401


class ForbiddenError(UserActionError):
    default_code = "permission_denied"
    default_message_key = "permission_denied"
    default_http_status = 403


class NotFoundError(UserActionError):
    default_code = "not_found"
    default_message_key = "service_request_not_found"
    default_http_status = 404


class UnavailableError(UserActionError):
    default_code = "item_unavailable"
    default_message_key = "material_unavailable"
    default_http_status = 400


class InsufficientStockError(UserActionError):
    default_code = "insufficient_stock"
    default_message_key = "insufficient_stock"
    default_http_status = 400

    def __init__(self, available: int, unit: str | None = None, **kwargs: Any) -> None:
        self.available = int(available)
        self.unit = unit
        payload = dict(kwargs.pop("payload", None) or {})
        payload.update({"available": self.available, "unit": unit})
        details = kwargs.pop("details", None) or f"only {self.available} {unit or 'units'} available"
        super().__init__(payload=payload, details=details, **kwargs)


class InvalidTransitionError(UserActionError):
    default_code = "invalid_transition"
    default_message_key = "invalid_transition"
    default_http_status = 400


class InvalidStateError(UserActionError):
    default_code = "invalid_state"
    default_message_key = "feedback_requires_completed"
    default_http_status = 400


class ConflictError(UserActionError):
    default_code = "conflict"
    default_message_key = "transition_conflict"
    default_http_status = 409


class SystemError(AppError):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True
