"""Personnel status operations: sign-out, stage changes, sign-in and group movement.

Each public operation is one transaction. The actor's row and every
companion row it touches are re-read with ``select_for_update`` so the
leader/companion links stay consistent when two people act at once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from django.db import transaction
from django.utils import timezone

from .exceptions import FailedPrecondition, InvalidArgument, NotFound
from .identity import actor_key, approver_initials, display_name
from .models import PassRequest, Personnel, PersonStatus, PersonStatusHistory

logger = logging.getLogger(__name__)

Action = PersonStatusHistory.Action


def _rank_for(user) -> str:
    personnel = getattr(user, "personnel", None)
    return personnel.rank if personnel is not None else ""


def _normalize_companions(companions: Iterable[Dict], leader_key: str) -> List[Dict]:
    entries: List[Dict] = []
    seen = set()
    for companion in companions:
        companion_id = str(companion.get("id") or "").strip()
        if not companion_id:
            raise InvalidArgument("Every companion needs an id")
        if companion_id == leader_key:
            raise InvalidArgument("You cannot list yourself as a companion")
        if companion_id in seen:
            raise InvalidArgument(f"Companion {companion_id} is listed twice")
        seen.add(companion_id)
        entries.append(
            {
                "id": companion_id,
                "name": companion.get("name") or "",
                "rank": companion.get("rank") or "",
            }
        )
    return entries


def _lock(person_id: str) -> Optional[PersonStatus]:
    return PersonStatus.objects.select_for_update().filter(pk=person_id).first()


def _lock_or_new(person_id: str, name: str = "") -> PersonStatus:
    record = _lock(person_id)
    if record is None:
        record = PersonStatus(person_id=person_id, person_name=name)
    return record


def _log(
    record: PersonStatus,
    action: str,
    previous: tuple,
    actor,
    now: datetime,
    group_action: bool = False,
    rank: str = "",
) -> PersonStatusHistory:
    previous_status, previous_stage = previous
    return PersonStatusHistory.objects.create(
        person_id=record.person_id,
        person_name=record.person_name,
        person_rank=rank,
        action=action,
        status=record.status,
        pass_stage=record.pass_stage,
        previous_status=previous_status or "",
        previous_stage=previous_stage,
        destination=record.destination,
        expected_return=record.expected_return,
        contact_number=record.contact_number,
        notes=record.notes,
        with_person_id=record.with_person_id,
        with_person_name=record.with_person_name,
        group_action=group_action,
        actor=actor,
        actor_name=display_name(actor) if actor is not None else "",
        timestamp=now,
    )


def _stamp(record: PersonStatus, actor) -> None:
    record.updated_by = actor
    record.updated_by_name = display_name(actor) if actor is not None else ""


def _detach_from_leader(record: PersonStatus, actor, now: datetime) -> str:
    """Drop ``record`` from its leader's companion list. Returns the leader name."""
    leader_name = record.with_person_name
    leader = _lock(record.with_person_id)
    if leader is not None and record.person_id in leader.companion_ids:
        leader.companions = [c for c in leader.companions if c["id"] != record.person_id]
        leader.group_sign_out = bool(leader.companions)
        _stamp(leader, actor)
        leader.save()
    record.with_person_id = ""
    record.with_person_name = ""
    return leader_name


def _release_companions(record: PersonStatus, actor, now: datetime) -> None:
    """Leave every companion of ``record`` on pass but on their own."""
    for companion_id in record.companion_ids:
        companion = _lock(companion_id)
        if companion is None or companion.with_person_id != record.person_id:
            continue
        previous = companion.snapshot()
        companion.with_person_id = ""
        companion.with_person_name = ""
        companion.group_sign_out = False
        _stamp(companion, actor)
        companion.save()
        _log(companion, Action.BREAK_FREE, previous, actor, now, group_action=True)
    record.companions = []


def _start_trip(
    leader_key: str,
    leader_name: str,
    actor,
    now: datetime,
    trip: Dict,
    companions: List[Dict],
    extra: Optional[Dict] = None,
    rank: str = "",
) -> PersonStatus:
    extra = extra or {}
    for entry in companions:
        companion = _lock(entry["id"])
        if companion is not None and companion.companions:
            raise FailedPrecondition(f"{entry['name'] or entry['id']} is already leading a group")

    record = _lock_or_new(leader_key, leader_name)
    if record.is_following:
        _detach_from_leader(record, actor, now)
    if record.companions:
        _release_companions(record, actor, now)

    previous = record.snapshot()
    record.reset_to_present()
    record.person_name = leader_name or record.person_name
    record.status = PersonStatus.Status.PASS
    record.pass_stage = PersonStatus.Stage.ENROUTE_TO
    record.time_out = now
    record.destination = trip.get("destination") or ""
    record.expected_return = trip.get("expected_return")
    record.contact_number = trip.get("contact_number") or ""
    record.notes = trip.get("notes") or ""
    record.companions = companions
    record.group_sign_out = bool(companions)
    for field, value in extra.items():
        setattr(record, field, value)
    _stamp(record, actor)
    record.save()
    _log(record, Action.SIGN_OUT, previous, actor, now, group_action=bool(companions), rank=rank)

    for entry in companions:
        companion = _lock_or_new(entry["id"], entry["name"])
        if companion.is_following and companion.with_person_id != leader_key:
            _detach_from_leader(companion, actor, now)
        previous = companion.snapshot()
        companion.reset_to_present()
        companion.person_name = entry["name"] or companion.person_name
        companion.status = PersonStatus.Status.PASS
        companion.pass_stage = record.pass_stage
        companion.time_out = now
        companion.destination = record.destination
        companion.expected_return = record.expected_return
        companion.contact_number = record.contact_number
        companion.notes = f"With {record.person_name}"
        companion.with_person_id = leader_key
        companion.with_person_name = record.person_name
        companion.group_sign_out = True
        companion.self_updated = False
        _stamp(companion, actor)
        companion.save()
        _log(companion, Action.SIGN_OUT, previous, actor, now, group_action=True, rank=entry["rank"])
    return record


@transaction.atomic
def sign_out(
    actor,
    *,
    destination: str,
    expected_return: Optional[datetime] = None,
    contact_number: str = "",
    notes: str = "",
    companions: Optional[Iterable[Dict]] = None,
    now: Optional[datetime] = None,
) -> PersonStatus:
    """Put the actor, and everyone listed with them, on pass."""
    now = now or timezone.now()
    key = actor_key(actor)
    entries = _normalize_companions(companions or [], key)
    record = _start_trip(
        key,
        display_name(actor),
        actor,
        now,
        {
            "destination": destination,
            "expected_return": expected_return,
            "contact_number": contact_number,
            "notes": notes,
        },
        entries,
        extra={"user_email": actor.email or "", "self_updated": True},
        rank=_rank_for(actor),
    )
    logger.info("%s signed out to %s with %d companion(s)", key, destination, len(entries))
    return record


def sign_out_for_request(pass_request: PassRequest, approver, now: Optional[datetime] = None) -> PersonStatus:
    """Sign the requester of an approved pass out. Runs inside the approval transaction."""
    now = now or timezone.now()
    requester = pass_request.requester
    key = actor_key(requester)
    entries = _normalize_companions(pass_request.companions or [], key)
    return _start_trip(
        key,
        pass_request.requester_name or display_name(requester),
        approver,
        now,
        {
            "destination": pass_request.destination,
            "expected_return": pass_request.expected_return,
            "contact_number": pass_request.contact_number,
            "notes": pass_request.notes,
        },
        entries,
        extra={
            "user_email": pass_request.requester_email,
            "pass_request": pass_request,
            "approved_by_name": display_name(approver),
            "approver_initials": approver_initials(approver),
        },
        rank=_rank_for(requester),
    )


@transaction.atomic
def sign_out_sick_call(
    actor,
    *,
    contact_number: str = "",
    notes: str = "",
    now: Optional[datetime] = None,
) -> PersonStatus:
    now = now or timezone.now()
    key = actor_key(actor)
    record = _lock_or_new(key, display_name(actor))
    if record.is_following:
        _detach_from_leader(record, actor, now)
    if record.companions:
        _release_companions(record, actor, now)
    previous = record.snapshot()
    record.reset_to_present()
    record.person_name = display_name(actor)
    record.status = PersonStatus.Status.SICK_CALL
    record.time_out = now
    record.destination = "Sick Call"
    record.contact_number = contact_number or ""
    record.notes = notes or ""
    record.user_email = actor.email or ""
    record.self_updated = True
    _stamp(record, actor)
    record.save()
    _log(record, Action.SICK_CALL, previous, actor, now, rank=_rank_for(actor))
    return record


@transaction.atomic
def update_stage(actor, stage: str, now: Optional[datetime] = None) -> PersonStatus:
    """Advance the actor's pass stage and carry it to the actor's companions."""
    if stage not in PersonStatus.Stage.values:
        raise InvalidArgument(f"Unknown pass stage: {stage}")
    now = now or timezone.now()
    key = actor_key(actor)
    record = _lock(key)
    if record is None or record.status != PersonStatus.Status.PASS:
        raise NotFound("No active pass found for you")

    action = f"stage_{stage}"
    previous = record.snapshot()
    record.pass_stage = stage
    _stamp(record, actor)
    record.save()
    _log(record, action, previous, actor, now, group_action=bool(record.companions), rank=_rank_for(actor))

    for companion_id in record.companion_ids:
        companion = _lock(companion_id)
        if companion is None or companion.with_person_id != key:
            continue
        previous = companion.snapshot()
        companion.pass_stage = stage
        _stamp(companion, actor)
        companion.save()
        _log(companion, action, previous, actor, now, group_action=True)
    return record


def _sign_in_record(
    record: PersonStatus,
    actor,
    now: datetime,
    action: str,
    admin: bool = False,
) -> None:
    leader_key = record.person_id
    companion_ids = record.companion_ids
    if record.is_following:
        _detach_from_leader(record, actor, now)

    previous = record.snapshot()
    record.reset_to_present()
    record.admin_sign_in = admin
    _stamp(record, actor)
    record.save()
    _log(record, action, previous, actor, now, group_action=bool(companion_ids))

    for companion_id in companion_ids:
        companion = _lock(companion_id)
        if companion is None or companion.with_person_id != leader_key:
            continue
        previous = companion.snapshot()
        companion.reset_to_present()
        companion.admin_sign_in = admin
        _stamp(companion, actor)
        companion.save()
        _log(companion, action, previous, actor, now, group_action=True)


@transaction.atomic
def sign_in(actor, now: Optional[datetime] = None) -> PersonStatus:
    """Return the actor, and anyone still with them, to present."""
    now = now or timezone.now()
    key = actor_key(actor)
    record = _lock_or_new(key, display_name(actor))
    record.person_name = record.person_name or display_name(actor)
    record.user_email = actor.email or record.user_email
    record.self_updated = True
    _sign_in_record(record, actor, now, Action.ARRIVED_BARRACKS)
    logger.info("%s signed in", key)
    return record


@transaction.atomic
def break_free(actor, now: Optional[datetime] = None) -> PersonStatus:
    """Leave the group the actor was signed out with, staying on pass."""
    now = now or timezone.now()
    key = actor_key(actor)
    record = _lock(key)
    if record is None:
        raise NotFound("No status record found")
    if not record.is_following:
        raise FailedPrecondition("Not part of a group")

    previous = record.snapshot()
    leader_name = _detach_from_leader(record, actor, now)
    record.notes = f"Separated from group (was with {leader_name})"
    record.group_sign_out = False
    record.self_updated = True
    _stamp(record, actor)
    record.save()
    _log(record, Action.BREAK_FREE, previous, actor, now, rank=_rank_for(actor))
    return record


@transaction.atomic
def bulk_sign_in(admin, person_ids: Iterable[str], now: Optional[datetime] = None) -> int:
    """Sign several people in on their behalf. Returns how many were out."""
    now = now or timezone.now()
    count = 0
    for person_id in person_ids:
        record = _lock(person_id)
        if record is None or record.status == PersonStatus.Status.PRESENT:
            continue
        _sign_in_record(record, admin, now, Action.ADMIN_SIGN_IN, admin=True)
        count += 1
    logger.info("%s signed in %d person(s) in bulk", actor_key(admin), count)
    return count


def my_status(user) -> PersonStatus:
    key = actor_key(user)
    record = PersonStatus.objects.filter(pk=key).first()
    if record is None:
        record = PersonStatus(person_id=key, person_name=display_name(user))
    return record


def history_for(person_id: str, limit: int = 50) -> List[PersonStatusHistory]:
    return list(PersonStatusHistory.objects.filter(person_id=person_id)[:limit])


MATCH_PERSONNEL_ID = "personnel_id"
MATCH_ACCOUNT = "account"
MATCH_EMAIL = "email"


@dataclass
class RosterEntry:
    personnel: Personnel
    status: PersonStatus
    matched_by: Optional[str] = None


def personnel_with_status() -> List[RosterEntry]:
    """Join the roster to status rows, trying each identifier a person may be filed under.

    Order: roster id, linked account, then a self-reported status whose email
    matches. People with no row are reported present.
    """
    statuses = {record.person_id: record for record in PersonStatus.objects.all()}
    by_email = {
        record.user_email.lower(): record
        for record in statuses.values()
        if record.self_updated and record.user_email
    }

    entries = []
    for person in Personnel.objects.all():
        record, matched_by = statuses.get(person.id), MATCH_PERSONNEL_ID
        if record is None and person.account_key:
            record, matched_by = statuses.get(person.account_key), MATCH_ACCOUNT
        if record is None and person.email:
            record, matched_by = by_email.get(person.email.lower()), MATCH_EMAIL
        if record is None:
            record = PersonStatus(person_id=person.account_key or person.id, person_name=person.full_name)
            matched_by = None
        entries.append(RosterEntry(personnel=person, status=record, matched_by=matched_by))
    return entries
