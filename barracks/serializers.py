"""Turn barracks models into the camelCase dictionaries the client reads."""
from __future__ import annotations

from typing import Dict, Iterable

from django.db import models

from .status import RosterEntry


def camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def snake(name: str) -> str:
    return "".join(f"_{char.lower()}" if char.isupper() else char for char in name).lstrip("_")


def to_dict(instance: models.Model, exclude: Iterable[str] = ()) -> Dict:
    """All concrete columns, foreign keys by id, keyed in camelCase."""
    data = {}
    for field in instance._meta.concrete_fields:
        if field.name in exclude or field.attname in exclude:
            continue
        data[camel(field.attname)] = getattr(instance, field.attname)
    if "id" not in data and "pk" not in exclude:
        data["id"] = instance.pk
    return data


def roster_entry_to_dict(entry: RosterEntry) -> Dict:
    person = entry.personnel
    data = to_dict(entry.status, exclude=("updated_by",))
    data.update(
        {
            "personnelId": person.id,
            "userId": person.account_key,
            "firstName": person.first_name,
            "lastName": person.last_name,
            "rank": person.rank,
            "email": person.email,
            "matchedBy": entry.matched_by,
        }
    )
    return data
