"""Account roles and the permissions each one grants."""
from __future__ import annotations

from typing import Optional

from django.db import models

from .exceptions import PermissionDenied, Unauthenticated


class Role(models.TextChoices):
    USER = "user", "User"
    UNIFORM_ADMIN = "uniform_admin", "Uniform Admin"
    LEAVE_ADMIN = "leave_admin", "Leave Admin"
    CANDIDATE_LEADERSHIP = "candidate_leadership", "Candidate Leadership"
    ADMIN = "admin", "Admin"


APPROVE_PASS_REQUESTS = "approve_pass_requests"
APPROVE_LIBERTY_REQUESTS = "approve_liberty_requests"
CREATE_LEAVE_FOR_OTHERS = "create_leave_for_others"
MANAGE_CQ_OPERATIONS = "manage_cq_operations"
APPROVE_WEATHER_UOTD = "approve_weather_uotd"
MANAGE_PERSONNEL_STATUS = "manage_personnel_status"

ROLE_PERMISSIONS = {
    Role.USER: set(),
    Role.UNIFORM_ADMIN: {APPROVE_WEATHER_UOTD},
    Role.LEAVE_ADMIN: {APPROVE_PASS_REQUESTS, APPROVE_LIBERTY_REQUESTS, CREATE_LEAVE_FOR_OTHERS},
    Role.CANDIDATE_LEADERSHIP: {
        APPROVE_PASS_REQUESTS,
        APPROVE_LIBERTY_REQUESTS,
        CREATE_LEAVE_FOR_OTHERS,
        MANAGE_CQ_OPERATIONS,
        MANAGE_PERSONNEL_STATUS,
    },
}


def normalize_role(value: Optional[str]) -> str:
    if value in Role.values:
        return value
    return Role.USER


def role_of(user) -> str:
    """Return the barracks role for an authenticated user."""
    if user is None or not user.is_authenticated:
        return Role.USER
    if user.is_superuser:
        return Role.ADMIN
    profile = getattr(user, "account_profile", None)
    return normalize_role(profile.role if profile else None)


def has_permission(user, permission: str) -> bool:
    role = role_of(user)
    if role == Role.ADMIN:
        return True
    return permission in ROLE_PERMISSIONS.get(role, set())


def require_authenticated(user) -> None:
    if user is None or not user.is_authenticated:
        raise Unauthenticated("Must be authenticated")


def require_permission(user, permission: str, message: str = "") -> None:
    require_authenticated(user)
    if not has_permission(user, permission):
        raise PermissionDenied(message or "You do not have permission to perform this action")
