from __future__ import annotations

from flask import current_app, g, request, session

from marketplace.domain.contracts import ROLE_CONSUMER, Actor
from marketplace.errors import AuthenticationError
from marketplace.policies import PARTNER_ROLES, normalize_role


ANONYMOUS_ACTOR_ID = "anonymous"

_PUBLIC_PATHS = {"/health", "/metrics"}


def resolve_actor() -> Actor | None:
    """Build the caller identity handed over by the login layer.

    The session is the primary source. Trusted headers are accepted only when
    ``AUTH_TRUST_HEADERS`` is on, which is meant for gateways and tests.
    """
    user_id = str(session.get("user_id") or "").strip()
    role = session.get("user_role")
    partner_id = session.get("partner_id")

    if not user_id and current_app.config.get("AUTH_TRUST_HEADERS", False):
        user_id = str(request.headers.get("X-User-Id") or "").strip()
        role = request.headers.get("X-User-Role")
        partner_id = request.headers.get("X-Partner-Id")

    if not user_id:
        return None
    normalized_role = normalize_role(role)
    partner_id = str(partner_id or "").strip() or None
    if normalized_role not in PARTNER_ROLES:
        partner_id = None
    return Actor(id=user_id, role=normalized_role, partner_id=partner_id)


def current_actor() -> Actor:
    actor = getattr(g, "actor", None)
    if actor is not None:
        return actor
    actor = resolve_actor()
    if actor is None:
        if current_app.config.get("AUTH_ENABLED", True):
            raise AuthenticationError()
        actor = Actor(id=ANONYMOUS_ACTOR_ID, role=ROLE_CONSUMER)
    g.actor = actor
    return actor


def register_auth(app) -> None:
    @app.before_request
    def _require_actor():
        path = request.path or "/"
        if path in _PUBLIC_PATHS or not path.startswith("/api/"):
            return None
        g.actor = resolve_actor()
        if g.actor is not None:
            return None
        if not app.config.get("AUTH_ENABLED", True):
            g.actor = Actor(id=ANONYMOUS_ACTOR_ID, role=ROLE_CONSUMER)
            return None
        raise AuthenticationError()
