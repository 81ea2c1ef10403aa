"""Role-based authorization helpers."""

from __future__ import annotations

from imobipro.core.exceptions import AuthorizationError
from imobipro.models.enums import UserRole

# Scope strings are kept explicit for endpoint-level declarations.
ROLE_SCOPES: dict[str, set[str]] = {
    UserRole.DEV_MASTER.value: {
        "*",
    },
    UserRole.ADMIN.value: {
        "contacts.read",
        "contacts.write",
        "contacts.delete",
        "contacts.assign",
        "activities.write",
        "deals.read",
        "deals.write",
        "deals.delete",
        "agents.read",
        "properties.read",
        "properties.write",
        "appointments.read",
        "appointments.write",
        "calendar.connect",
        "reports.read",
        "reports.manage",
        "users.read",
        "users.manage",
        "whatsapp.send",
    },
    UserRole.AGENT.value: {
        "contacts.read",
        "contacts.write",
        "activities.write",
        "deals.read",
        "deals.write",
        "properties.read",
        "appointments.read",
        "appointments.write",
        "calendar.connect",
        "reports.read",
        "whatsapp.send",
    },
}


def get_scopes_for_role(role: str) -> set[str]:
    """Return scopes granted to a role."""
    return ROLE_SCOPES.get(role.lower(), set())


def has_scopes(role: str, required_scopes: list[str] | set[str] | tuple[str, ...]) -> bool:
    """Check if role includes every required scope."""
    granted = get_scopes_for_role(role)
    if "*" in granted:
        return True
    return set(required_scopes).issubset(granted)


def require_scopes(role: str, required_scopes: list[str] | set[str] | tuple[str, ...]) -> None:
    """Raise when a role lacks required scopes."""
    if has_scopes(role=role, required_scopes=required_scopes):
        return
    missing = sorted(set(required_scopes) - get_scopes_for_role(role))
    raise AuthorizationError(f"Missing required scopes: {', '.join(missing)}")


def can_manage_role(actor_role: str, target_role: str) -> bool:
    """dev_master manages admins and agents; admin manages agents only."""
    if target_role == UserRole.DEV_MASTER.value:
        return False
    if actor_role == UserRole.DEV_MASTER.value:
        return target_role in {UserRole.ADMIN.value, UserRole.AGENT.value}
    if actor_role == UserRole.ADMIN.value:
        return target_role == UserRole.AGENT.value
    return False
