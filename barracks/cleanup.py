"""Reconcile status rows filed under different identifiers for the same person.

A status row is keyed by an account id when someone signs themselves out,
but by a roster id when a leader lists them as a companion. This module
classifies every row and removes the ones that no longer make sense.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from django.db import transaction

from .exceptions import InvalidArgument, NotFound
from .models import Personnel, PersonStatus
from .status import MATCH_ACCOUNT, MATCH_EMAIL, MATCH_PERSONNEL_ID

logger = logging.getLogger(__name__)


@dataclass
class StatusMatch:
    status: PersonStatus
    personnel: Optional[Personnel] = None
    match_type: Optional[str] = None


@dataclass
class Duplicate:
    personnel: Personnel
    account_status: PersonStatus
    personnel_status: PersonStatus


@dataclass
class StatusAnalysis:
    account_matches: List[StatusMatch] = field(default_factory=list)
    personnel_id_matches: List[StatusMatch] = field(default_factory=list)
    email_matches: List[StatusMatch] = field(default_factory=list)
    orphaned: List[StatusMatch] = field(default_factory=list)
    duplicates: List[Duplicate] = field(default_factory=list)

    @property
    def stale(self) -> List[StatusMatch]:
        """Roster-id rows for people whose status belongs under their account."""
        return [
            match
            for match in self.personnel_id_matches
            if match.personnel.account_key and match.personnel.account_key != match.status.person_id
        ]

    def summary(self) -> Dict[str, int]:
        return {
            "account": len(self.account_matches),
            "personnel_id": len(self.personnel_id_matches),
            "email": len(self.email_matches),
            "orphaned": len(self.orphaned),
            "duplicates": len(self.duplicates),
            "stale": len(self.stale),
        }


def analyze_statuses() -> StatusAnalysis:
    people = list(Personnel.objects.all())
    by_account = {person.account_key: person for person in people if person.account_key}
    by_id = {person.id: person for person in people}
    by_email = {person.email.lower(): person for person in people if person.email}
    statuses = {record.person_id: record for record in PersonStatus.objects.all()}

    analysis = StatusAnalysis()
    for person_id, record in statuses.items():
        if person_id in by_account:
            analysis.account_matches.append(StatusMatch(record, by_account[person_id], MATCH_ACCOUNT))
        elif person_id in by_id:
            analysis.personnel_id_matches.append(StatusMatch(record, by_id[person_id], MATCH_PERSONNEL_ID))
        elif record.user_email and record.user_email.lower() in by_email:
            analysis.email_matches.append(StatusMatch(record, by_email[record.user_email.lower()], MATCH_EMAIL))
        else:
            analysis.orphaned.append(StatusMatch(record))

    for person in people:
        key = person.account_key
        if key and key != person.id and key in statuses and person.id in statuses:
            analysis.duplicates.append(Duplicate(person, statuses[key], statuses[person.id]))
    return analysis


@transaction.atomic
def delete_stale(analysis: Optional[StatusAnalysis] = None) -> List[str]:
    analysis = analysis or analyze_statuses()
    deleted = [match.status.person_id for match in analysis.stale]
    PersonStatus.objects.filter(pk__in=deleted).delete()
    logger.info("Deleted %d stale status row(s)", len(deleted))
    return deleted


@transaction.atomic
def delete_orphaned(analysis: Optional[StatusAnalysis] = None) -> List[str]:
    analysis = analysis or analyze_statuses()
    deleted = [match.status.person_id for match in analysis.orphaned]
    PersonStatus.objects.filter(pk__in=deleted).delete()
    logger.info("Deleted %d orphaned status row(s)", len(deleted))
    return deleted


@transaction.atomic
def resolve_duplicate(personnel_id: str, keep_account: bool = True) -> str:
    """Keep one of a person's two status rows and delete the other. Returns the deleted key."""
    person = Personnel.objects.filter(pk=personnel_id).first()
    if person is None:
        raise NotFound("Personnel not found")
    if not person.account_key:
        raise InvalidArgument(f"{person} has no linked account")
    keys = [person.account_key, person.id]
    if PersonStatus.objects.filter(pk__in=keys).count() != 2:
        raise InvalidArgument(f"{person} does not have duplicate status rows")
    removed = person.id if keep_account else person.account_key
    PersonStatus.objects.filter(pk=removed).delete()
    logger.info("Resolved duplicate status for %s, removed %s", person.pk, removed)
    return removed
