"""Helpers that turn an auth user into the identifiers the barracks records use."""
from __future__ import annotations

from typing import Tuple

SYSTEM_ACTOR = "system"
SYSTEM_ACTOR_NAME = "The Guardians"


def actor_key(user) -> str:
    """The status-store key for an account: its auth identity."""
    return str(user.pk)


def display_name(user) -> str:
    full_name = user.get_full_name().strip() if hasattr(user, "get_full_name") else ""
    return full_name or user.email or user.get_username()


def _name_parts(user) -> Tuple[str, str]:
    personnel = getattr(user, "personnel", None)
    if personnel is not None and (personnel.first_name or personnel.last_name):
        return personnel.first_name, personnel.last_name
    full_name = user.get_full_name().strip()
    if not full_name:
        return "", ""
    first, _, rest = full_name.partition(" ")
    return first, rest


def approver_initials(user) -> str:
    """First-name and last-name initials, preferring the linked roster entry."""
    first, last = _name_parts(user)
    return (first[:1] + last[:1]).upper()
