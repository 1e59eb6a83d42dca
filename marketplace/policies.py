from __future__ import annotations

from typing import Iterable, Set

from marketplace.domain.contracts import (
    ROLE_ADMIN,
    ROLE_CONSUMER,
    ROLE_MATERIAL_SUPPLIER,
    ROLE_VEHICLE_OWNER,
)
from marketplace.errors import ForbiddenError


VALID_ROLES: Set[str] = {ROLE_CONSUMER, ROLE_VEHICLE_OWNER, ROLE_MATERIAL_SUPPLIER, ROLE_ADMIN}
PARTNER_ROLES: Set[str] = {ROLE_VEHICLE_OWNER, ROLE_MATERIAL_SUPPLIER}


def normalize_role(role: str | None, default: str = ROLE_CONSUMER) -> str:
    normalized = str(role or "").strip().lower().replace("-", "_")
    if normalized in VALID_ROLES:
        return normalized
    return default if default in VALID_ROLES else ""


def normalize_allowed_roles(roles: Iterable[str]) -> Set[str]:
    allowed: Set[str] = set()
    for role in roles:
        normalized = normalize_role(role, default="")
        if normalized:
            allowed.add(normalized)
    return allowed


def has_any_role(role: str | None, allowed_roles: Iterable[str]) -> bool:
    normalized_role = normalize_role(role)
    allowed = normalize_allowed_roles(allowed_roles)
    return not allowed or normalized_role in allowed


def require_roles(role: str | None, *allowed_roles: str) -> str:
    normalized_role = normalize_role(role)
    if has_any_role(normalized_role, allowed_roles):
        return normalized_role
    raise ForbiddenError()
