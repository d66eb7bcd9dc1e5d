from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from django.contrib.auth import get_user_model

from ..roles import Role

User = get_user_model()

NEW_YORK = ZoneInfo("America/New_York")


def local(year, month, day, hour=0, minute=0, second=0):
    """An aware instant on the facility wall clock."""
    return datetime(year, month, day, hour, minute, second, tzinfo=NEW_YORK)


def make_user(username: str, role: str = Role.USER, **extra):
    extra.setdefault("email", f"{username}@example.com")
    user = User.objects.create_user(username=username, password="pass123", **extra)
    profile = user.account_profile
    profile.role = role
    profile.save()
    return user
