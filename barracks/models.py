"""Database models for barracks accountability and its approval workflows."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple, Union

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import Q
from django.utils import timezone

from . import timeutils
from .exceptions import AlreadyExists, FailedPrecondition, InvalidArgument, NotFound, PermissionDenied
from .identity import actor_key, approver_initials, display_name
from .roles import (
    APPROVE_LIBERTY_REQUESTS,
    CREATE_LEAVE_FOR_OTHERS,
    Role,
    has_permission,
    require_permission,
)
from .workflow import Created, DuplicateFound

User = get_user_model()


def new_personnel_id() -> str:
    return uuid.uuid4().hex


class AccountProfile(models.Model):
    """Barracks role attached to every login account."""

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name="account_profile",
    )
    role = models.CharField(max_length=32, choices=Role.choices, default=Role.USER)

    def __str__(self) -> str:
        return f"{self.user.get_username()} ({self.get_role_display()})"

    @classmethod
    def ensure_for_user(cls, user: User) -> "AccountProfile":
        profile, _ = cls.objects.get_or_create(user=user)
        return profile


class Personnel(models.Model):
    """A roster entry. Not every trainee has a login account linked yet."""

    id = models.CharField(
        primary_key=True,
        max_length=64,
        default=new_personnel_id,
        editable=False,
    )
    first_name = models.CharField(max_length=80)
    last_name = models.CharField(max_length=80)
    rank = models.CharField(max_length=40, blank=True)
    email = models.EmailField(blank=True)
    account = models.OneToOneField(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="personnel",
    )

    class Meta:
        ordering = ["last_name", "first_name"]
        verbose_name_plural = "personnel"

    def __str__(self) -> str:
        return self.roster_name

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def roster_name(self) -> str:
        return f"{self.rank} {self.last_name}, {self.first_name}".strip()

    @property
    def account_key(self) -> Optional[str]:
        return str(self.account_id) if self.account_id else None


class PersonStatus(models.Model):
    """Where a person is right now. Keyed by whichever identifier wrote it."""

    class Status(models.TextChoices):
        PRESENT = "present", "Present"
        PASS = "pass", "On Pass"
        SICK_CALL = "sick_call", "Sick Call"

    class Stage(models.TextChoices):
        ENROUTE_TO = "enroute_to", "En route to destination"
        ARRIVED = "arrived", "Arrived at destination"
        ENROUTE_BACK = "enroute_back", "En route back"

    person_id = models.CharField(primary_key=True, max_length=64)
    person_name = models.CharField(max_length=160, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PRESENT)
    pass_stage = models.CharField(max_length=16, choices=Stage.choices, null=True, blank=True)
    time_out = models.DateTimeField(null=True, blank=True)
    destination = models.CharField(max_length=255, blank=True)
    expected_return = models.DateTimeField(null=True, blank=True)
    contact_number = models.CharField(max_length=40, blank=True)
    notes = models.TextField(blank=True)

    companions = models.JSONField(default=list, blank=True)
    with_person_id = models.CharField(max_length=64, blank=True)
    with_person_name = models.CharField(max_length=160, blank=True)

    user_email = models.EmailField(blank=True)
    self_updated = models.BooleanField(default=False)
    group_sign_out = models.BooleanField(default=False)
    admin_sign_in = models.BooleanField(default=False)
    pass_request = models.ForeignKey(
        "PassRequest",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    approved_by_name = models.CharField(max_length=160, blank=True)
    approver_initials = models.CharField(max_length=8, blank=True)
    updated_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    updated_by_name = models.CharField(max_length=160, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "person status"
        verbose_name_plural = "person statuses"

    def __str__(self) -> str:
        return f"{self.person_name or self.person_id}: {self.get_status_display()}"

    @property
    def companion_ids(self) -> List[str]:
        return [companion["id"] for companion in self.companions or []]

    @property
    def is_following(self) -> bool:
        return bool(self.with_person_id)

    def clean(self) -> None:
        super().clean()
        if (self.status == self.Status.PASS) != bool(self.pass_stage):
            raise ValidationError("A pass stage is recorded exactly when the person is on pass.")
        if self.companions and self.with_person_id:
            raise ValidationError("A person cannot lead companions while following someone else.")

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)

    def reset_to_present(self) -> None:
        self.status = self.Status.PRESENT
        self.pass_stage = None
        self.time_out = None
        self.destination = ""
        self.expected_return = None
        self.contact_number = ""
        self.notes = ""
        self.companions = []
        self.with_person_id = ""
        self.with_person_name = ""
        self.group_sign_out = False
        self.admin_sign_in = False
        self.pass_request = None
        self.approved_by_name = ""
        self.approver_initials = ""

    def snapshot(self) -> Tuple[str, Optional[str]]:
        return self.status, self.pass_stage


class PersonStatusHistory(models.Model):
    """Write-once audit entry for a status change."""

    class Action(models.TextChoices):
        SIGN_OUT = "sign_out", "Signed out"
        STAGE_ENROUTE_TO = "stage_enroute_to", "En route to destination"
        STAGE_ARRIVED = "stage_arrived", "Arrived at destination"
        STAGE_ENROUTE_BACK = "stage_enroute_back", "En route back"
        ARRIVED_BARRACKS = "arrived_barracks", "Arrived at barracks"
        BREAK_FREE = "break_free", "Separated from group"
        SICK_CALL = "sick_call", "Sick call"
        ADMIN_SIGN_IN = "admin_sign_in", "Signed in by admin"

    person_id = models.CharField(max_length=64, db_index=True)
    person_name = models.CharField(max_length=160, blank=True)
    person_rank = models.CharField(max_length=40, blank=True)
    action = models.CharField(max_length=24, choices=Action.choices)
    status = models.CharField(max_length=16, choices=PersonStatus.Status.choices)
    pass_stage = models.CharField(max_length=16, choices=PersonStatus.Stage.choices, null=True, blank=True)
    previous_status = models.CharField(max_length=16, blank=True)
    previous_stage = models.CharField(max_length=16, null=True, blank=True)
    destination = models.CharField(max_length=255, blank=True)
    expected_return = models.DateTimeField(null=True, blank=True)
    contact_number = models.CharField(max_length=40, blank=True)
    notes = models.TextField(blank=True)
    with_person_id = models.CharField(max_length=64, blank=True)
    with_person_name = models.CharField(max_length=160, blank=True)
    group_action = models.BooleanField(default=False)
    actor = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    actor_name = models.CharField(max_length=160, blank=True)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-timestamp", "-id"]
        verbose_name = "status history entry"
        verbose_name_plural = "status history"

    def __str__(self) -> str:
        return f"{self.person_name or self.person_id} {self.action} @ {self.timestamp:%Y-%m-%d %H:%M}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError("Status history entries cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Status history entries cannot be deleted.")


class ApprovalRequest(models.Model):
    """Shared pending -> approved | rejected | cancelled lifecycle.

    Subclasses narrow ``duplicate_filter`` to the payload fields that make two
    pending requests the same request, and put their approval side effect in
    ``apply_approval``. The side effect and the status change commit together.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        CANCELLED = "cancelled", "Cancelled"
        SUPERSEDED = "superseded", "Superseded"

    REPLACED_REASON = "Replaced with new request"

    requester = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="%(class)ss",
    )
    requester_name = models.CharField(max_length=160, blank=True)
    requester_email = models.EmailField(blank=True)
    reason = models.TextField(blank=True)
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.PENDING)

    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    approved_by_name = models.CharField(max_length=160, blank=True)
    approver_initials = models.CharField(max_length=8, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    rejected_by_name = models.CharField(max_length=160, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    cancelled_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    cancelled_by_name = models.CharField(max_length=160, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    @property
    def is_pending(self) -> bool:
        return self.status == self.Status.PENDING

    @classmethod
    def duplicate_filter(cls, payload: Dict) -> Dict:
        return {}

    @classmethod
    def duplicate_message(cls, existing: "ApprovalRequest") -> str:
        return "You already have a pending request."

    @classmethod
    @transaction.atomic
    def submit(
        cls,
        requester: User,
        force_submit: bool = False,
        **payload,
    ) -> Union[Created, DuplicateFound]:
        """Create a pending request unless an equivalent one is waiting.

        With ``force_submit`` the waiting requests are cancelled first.
        """
        existing = list(
            cls.objects.select_for_update()
            .filter(requester=requester, status=cls.Status.PENDING, **cls.duplicate_filter(payload))
            .order_by("created_at")
        )
        if existing and not force_submit:
            return DuplicateFound(existing[0], cls.duplicate_message(existing[0]))

        now = timezone.now()
        for previous in existing:
            previous._mark_cancelled(requester, cls.REPLACED_REASON, now)

        request_obj = cls(
            requester=requester,
            requester_name=display_name(requester),
            requester_email=requester.email or "",
            **payload,
        )
        request_obj.clean()
        request_obj.save()
        return Created(request_obj)

    def _reload_locked(self) -> None:
        """Refresh every column from a row-locked read."""
        current = type(self).objects.select_for_update().filter(pk=self.pk).first()
        if current is None:
            raise NotFound("Request not found")
        for field in self._meta.concrete_fields:
            setattr(self, field.attname, getattr(current, field.attname))

    def _lock_pending(self, owner: Optional[User] = None) -> None:
        """Re-read this row under a lock and require it to still be pending."""
        self._reload_locked()
        if owner is not None and self.requester_id != owner.pk:
            raise PermissionDenied("You can only cancel your own requests")
        if self.status != self.Status.PENDING:
            raise FailedPrecondition(f"Request is already {self.status}")

    def apply_approval(self, approver: User, now: datetime) -> None:
        """Domain side effect run inside the approval transaction."""

    @transaction.atomic
    def approve(self, approver: User, now: Optional[datetime] = None) -> "ApprovalRequest":
        self._lock_pending()
        now = now or timezone.now()
        initials = approver_initials(approver)
        self.apply_approval(approver, now)
        self.status = self.Status.APPROVED
        self.approved_by = approver
        self.approved_by_name = display_name(approver)
        self.approver_initials = initials
        self.approved_at = now
        self.save(
            update_fields=[
                "status",
                "approved_by",
                "approved_by_name",
                "approver_initials",
                "approved_at",
                "updated_at",
            ]
        )
        return self

    @transaction.atomic
    def reject(self, approver: User, reason: str = "", now: Optional[datetime] = None) -> "ApprovalRequest":
        self._lock_pending()
        self.status = self.Status.REJECTED
        self.rejected_by = approver
        self.rejected_by_name = display_name(approver)
        self.rejected_at = now or timezone.now()
        self.rejection_reason = reason or ""
        self.save(
            update_fields=[
                "status",
                "rejected_by",
                "rejected_by_name",
                "rejected_at",
                "rejection_reason",
                "updated_at",
            ]
        )
        return self

    @transaction.atomic
    def cancel(self, user: User, reason: str = "") -> "ApprovalRequest":
        self._lock_pending(owner=user)
        self._mark_cancelled(user, reason, timezone.now())
        return self

    def _mark_cancelled(self, user: User, reason: str, now: datetime) -> None:
        self.status = self.Status.CANCELLED
        self.cancelled_by = user
        self.cancelled_by_name = display_name(user)
        self.cancelled_at = now
        self.cancel_reason = reason or ""
        self.save(
            update_fields=[
                "status",
                "cancelled_by",
                "cancelled_by_name",
                "cancelled_at",
                "cancel_reason",
                "updated_at",
            ]
        )


class PassRequest(ApprovalRequest):
    """A request to go out on pass, approved by leadership."""

    destination = models.CharField(max_length=255)
    expected_return = models.DateTimeField(null=True, blank=True)
    contact_number = models.CharField(max_length=40, blank=True)
    notes = models.TextField(blank=True)
    companions = models.JSONField(default=list, blank=True)

    class Meta(ApprovalRequest.Meta):
        verbose_name = "pass request"

    def __str__(self) -> str:
        return f"{self.requester_name} -> {self.destination} ({self.status})"

    @classmethod
    def duplicate_message(cls, existing: "PassRequest") -> str:
        return f"You already have a pending pass request to {existing.destination}."

    def clean(self) -> None:
        super().clean()
        if not self.destination:
            raise ValidationError("A destination is required.")

    def apply_approval(self, approver: User, now: datetime) -> None:
        from .status import sign_out_for_request

        sign_out_for_request(self, approver, now=now)


LIBERTY_LOCATIONS = {
    "shoppette": "Shoppette",
    "bx_commissary": "BX/Commissary",
    "gym": "Gym",
    "library": "Library",
    "px": "PX",
    "dfac": "DFAC",
    "off_post": "Off Post",
    "other": "Other",
}


def build_liberty_destination(locations: List[str], custom_location: str = "") -> str:
    labels = []
    for code in locations:
        if code == "other":
            if custom_location:
                labels.append(custom_location)
            continue
        labels.append(LIBERTY_LOCATIONS.get(code, code))
    return ", ".join(labels)


JOIN_PENDING = "pending"
JOIN_APPROVED = "approved"
JOIN_REJECTED = "rejected"


def member_entry(user: User) -> Dict:
    """The {id, name, rank} triple stored in group, passenger and slot lists."""
    personnel = getattr(user, "personnel", None)
    return {
        "id": actor_key(user),
        "name": display_name(user),
        "rank": personnel.rank if personnel is not None else "",
    }


def _iso(now: Optional[datetime]) -> str:
    return (now or timezone.now()).isoformat()


class LibertyRequest(ApprovalRequest):
    """A weekend liberty request.

    Approval has no side effect beyond the record. While the request is open
    (pending or approved) other trainees can ask to join the group, ride with
    a driver, or join one of its time slots; each of those edits re-reads the
    row under a lock first.
    """

    weekend_date = models.DateField()
    locations = models.JSONField(default=list, blank=True)
    custom_location = models.CharField(max_length=255, blank=True)
    destination = models.CharField(max_length=512, blank=True)
    departure_date = models.DateField(null=True, blank=True)
    departure_time = models.TimeField(null=True, blank=True)
    return_date = models.DateField(null=True, blank=True)
    return_time = models.TimeField(null=True, blank=True)
    time_slots = models.JSONField(default=list, blank=True)
    contact_number = models.CharField(max_length=40, blank=True)
    purpose = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    companions = models.JSONField(default=list, blank=True)
    is_driver = models.BooleanField(default=False)
    passenger_capacity = models.PositiveSmallIntegerField(default=0)
    passengers = models.JSONField(default=list, blank=True)
    join_requests = models.JSONField(default=list, blank=True)
    created_on_behalf = models.BooleanField(default=False)
    created_by_admin = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_by_admin_name = models.CharField(max_length=160, blank=True)

    class Meta(ApprovalRequest.Meta):
        verbose_name = "liberty request"

    def __str__(self) -> str:
        return f"{self.requester_name} liberty {self.weekend_date} ({self.status})"

    @classmethod
    def duplicate_filter(cls, payload: Dict) -> Dict:
        return {"weekend_date": payload.get("weekend_date")}

    @classmethod
    def duplicate_message(cls, existing: "LibertyRequest") -> str:
        return f"You already have a pending liberty request for the weekend of {existing.weekend_date}."

    def clean(self) -> None:
        super().clean()
        unknown = [code for code in self.locations if code not in LIBERTY_LOCATIONS]
        if unknown:
            raise ValidationError(f"Unknown liberty location(s): {', '.join(unknown)}")
        if not self.destination:
            self.destination = build_liberty_destination(self.locations, self.custom_location)
        if self.departure_date and self.return_date:
            departure = (self.departure_date, self.departure_time or datetime.min.time())
            arrival = (self.return_date, self.return_time or datetime.max.time())
            if arrival < departure:
                raise ValidationError("Return cannot be earlier than departure.")
        for slot in self.time_slots:
            if not isinstance(slot, dict):
                raise ValidationError("Each time slot must be an object.")
            slot.setdefault("participants", [])
        if not self.is_driver:
            self.passenger_capacity = 0

    @property
    def is_open(self) -> bool:
        return self.status in (self.Status.PENDING, self.Status.APPROVED)

    @property
    def seats_left(self) -> int:
        return max(self.passenger_capacity - len(self.passengers), 0)

    def _refuse_requester(self, user: User, message: str) -> None:
        if user.pk == self.requester_id:
            raise FailedPrecondition(message)

    def _join_request_index(self, user_id: str, pending_only: bool = False) -> Optional[int]:
        for index, entry in enumerate(self.join_requests):
            if entry.get("userId") != user_id:
                continue
            if pending_only and entry.get("status") != JOIN_PENDING:
                continue
            return index
        return None

    def _pending_join(self, actor: User, user_id: str) -> Dict:
        if actor.pk != self.requester_id and not has_permission(actor, APPROVE_LIBERTY_REQUESTS):
            raise PermissionDenied("Only the organizer or leadership can answer join requests")
        index = self._join_request_index(user_id)
        if index is None:
            raise NotFound("Join request not found")
        entry = self.join_requests[index]
        if entry.get("status") != JOIN_PENDING:
            raise FailedPrecondition("Join request has already been processed")
        return entry

    @transaction.atomic
    def request_to_join(self, user: User, now: Optional[datetime] = None) -> "LibertyRequest":
        self._reload_locked()
        if not self.is_open:
            raise FailedPrecondition("Can only join pending or approved liberty groups")
        key = actor_key(user)
        if self._join_request_index(key) is not None:
            raise AlreadyExists("You have already requested to join this group")
        self._refuse_requester(user, "You cannot join your own liberty group")
        if any(companion.get("id") == key for companion in self.companions):
            raise AlreadyExists("You are already in this group")
        member = member_entry(user)
        self.join_requests = self.join_requests + [
            {
                "userId": member["id"],
                "userName": member["name"],
                "userRank": member["rank"],
                "requestedAt": _iso(now),
                "status": JOIN_PENDING,
            }
        ]
        self.save(update_fields=["join_requests", "updated_at"])
        return self

    @transaction.atomic
    def approve_join(self, actor: User, user_id: str, now: Optional[datetime] = None) -> "LibertyRequest":
        self._reload_locked()
        entry = self._pending_join(actor, user_id)
        entry.update(
            status=JOIN_APPROVED,
            respondedAt=_iso(now),
            respondedBy=actor_key(actor),
            respondedByName=display_name(actor),
        )
        self.companions = self.companions + [
            {
                "id": entry["userId"],
                "name": entry.get("userName") or "",
                "rank": entry.get("userRank") or "",
                "joinedViaRequest": True,
            }
        ]
        self.save(update_fields=["join_requests", "companions", "updated_at"])
        return self

    @transaction.atomic
    def reject_join(
        self,
        actor: User,
        user_id: str,
        reason: str = "",
        now: Optional[datetime] = None,
    ) -> "LibertyRequest":
        self._reload_locked()
        entry = self._pending_join(actor, user_id)
        entry.update(
            status=JOIN_REJECTED,
            rejectionReason=reason or None,
            respondedAt=_iso(now),
            respondedBy=actor_key(actor),
            respondedByName=display_name(actor),
        )
        self.save(update_fields=["join_requests", "updated_at"])
        return self

    @transaction.atomic
    def cancel_join(self, user: User) -> "LibertyRequest":
        self._reload_locked()
        index = self._join_request_index(actor_key(user), pending_only=True)
        if index is None:
            raise NotFound("No pending join request found")
        self.join_requests = self.join_requests[:index] + self.join_requests[index + 1 :]
        self.save(update_fields=["join_requests", "updated_at"])
        return self

    @transaction.atomic
    def sign_up_as_passenger(self, user: User, now: Optional[datetime] = None) -> "LibertyRequest":
        self._reload_locked()
        if not self.is_open:
            raise FailedPrecondition("This liberty request is no longer open")
        if not self.is_driver:
            raise FailedPrecondition("This person is not offering a ride")
        self._refuse_requester(user, "You cannot sign up as a passenger on your own request")
        key = actor_key(user)
        if any(passenger.get("id") == key for passenger in self.passengers):
            raise AlreadyExists("You are already signed up as a passenger")
        if not self.seats_left:
            raise FailedPrecondition("No available seats")
        self.passengers = self.passengers + [dict(member_entry(user), signedUpAt=_iso(now))]
        self.save(update_fields=["passengers", "updated_at"])
        return self

    @transaction.atomic
    def cancel_passenger(self, user: User) -> "LibertyRequest":
        self._reload_locked()
        key = actor_key(user)
        remaining = [passenger for passenger in self.passengers if passenger.get("id") != key]
        if len(remaining) == len(self.passengers):
            raise NotFound("You are not signed up as a passenger")
        self.passengers = remaining
        self.save(update_fields=["passengers", "updated_at"])
        return self

    def _time_slot(self, index: int) -> Dict:
        if not isinstance(index, int) or not 0 <= index < len(self.time_slots):
            raise InvalidArgument("Invalid time slot")
        slot = self.time_slots[index]
        slot.setdefault("participants", [])
        return slot

    @transaction.atomic
    def join_time_slot(self, user: User, index: int, now: Optional[datetime] = None) -> "LibertyRequest":
        self._reload_locked()
        slot = self._time_slot(index)
        self._refuse_requester(user, "You cannot join your own liberty request")
        key = actor_key(user)
        if any(participant.get("id") == key for participant in slot["participants"]):
            raise AlreadyExists("You are already in this time slot")
        if self.is_driver and len(slot["participants"]) >= self.passenger_capacity:
            raise FailedPrecondition("No available seats for this time slot")
        slot["participants"] = slot["participants"] + [dict(member_entry(user), joinedAt=_iso(now))]
        self.save(update_fields=["time_slots", "updated_at"])
        return self

    @transaction.atomic
    def leave_time_slot(self, user: User, index: int) -> "LibertyRequest":
        self._reload_locked()
        slot = self._time_slot(index)
        key = actor_key(user)
        remaining = [participant for participant in slot["participants"] if participant.get("id") != key]
        if len(remaining) == len(slot["participants"]):
            raise NotFound("You are not in this time slot")
        slot["participants"] = remaining
        self.save(update_fields=["time_slots", "updated_at"])
        return self

    @classmethod
    @transaction.atomic
    def create_for(
        cls,
        admin: User,
        target: User,
        status: Optional[str] = None,
        now: Optional[datetime] = None,
        **payload,
    ) -> "LibertyRequest":
        """Write a liberty request on someone else's behalf, approved unless told otherwise."""
        require_permission(admin, CREATE_LEAVE_FOR_OTHERS, "You cannot create liberty requests for others")
        status = status or cls.Status.APPROVED
        if status not in (cls.Status.PENDING, cls.Status.APPROVED):
            raise InvalidArgument("Requests made on someone's behalf start pending or approved")
        now = now or timezone.now()
        request_obj = cls(
            requester=target,
            requester_name=display_name(target),
            requester_email=target.email or "",
            status=status,
            created_on_behalf=True,
            created_by_admin=admin,
            created_by_admin_name=display_name(admin),
            **payload,
        )
        if status == cls.Status.APPROVED:
            request_obj.approved_by = admin
            request_obj.approved_by_name = display_name(admin)
            request_obj.approver_initials = approver_initials(admin)
            request_obj.approved_at = now
        request_obj.clean()
        request_obj.save()
        return request_obj

    @transaction.atomic
    def admin_cancel(self, admin: User, reason: str = "", now: Optional[datetime] = None) -> "LibertyRequest":
        require_permission(admin, APPROVE_LIBERTY_REQUESTS, "Only liberty approvers can cancel other requests")
        self._lock_pending()
        self._mark_cancelled(admin, reason, now or timezone.now())
        return self


class CQScheduleEntry(models.Model):
    """One night of charge-of-quarters duty: two shifts of two seats each."""

    class Status(models.TextChoices):
        SCHEDULED = "scheduled", "Scheduled"
        ACTIVE = "active", "Active"
        COMPLETED = "completed", "Completed"

    class ShiftType(models.TextChoices):
        SHIFT1 = "shift1", "Shift 1 (2000-0100)"
        SHIFT2 = "shift2", "Shift 2 (0100-0600)"

    # Shift 2 runs in the early morning after the entry's calendar date.
    SHIFT_TIMES = {
        ShiftType.SHIFT1: ("20:00", "01:00"),
        ShiftType.SHIFT2: ("01:00", "06:00"),
    }
    POSITIONS = (1, 2)

    date = models.DateField(unique=True)
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.SCHEDULED)
    shift1_person1_id = models.CharField(max_length=64, blank=True)
    shift1_person1_name = models.CharField(max_length=160, blank=True)
    shift1_person2_id = models.CharField(max_length=64, blank=True)
    shift1_person2_name = models.CharField(max_length=160, blank=True)
    shift2_person1_id = models.CharField(max_length=64, blank=True)
    shift2_person1_name = models.CharField(max_length=160, blank=True)
    shift2_person2_id = models.CharField(max_length=64, blank=True)
    shift2_person2_name = models.CharField(max_length=160, blank=True)
    updated_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date"]
        verbose_name = "CQ schedule entry"
        verbose_name_plural = "CQ schedule"

    def __str__(self) -> str:
        return f"CQ {self.date}"

    @classmethod
    def _seat_prefix(cls, shift_type: str, position: int) -> str:
        if shift_type not in cls.ShiftType.values or position not in cls.POSITIONS:
            raise ValueError(f"Unknown CQ seat: {shift_type} position {position}")
        return f"{shift_type}_person{position}"

    def seat(self, shift_type: str, position: int) -> Tuple[str, str]:
        prefix = self._seat_prefix(shift_type, position)
        return getattr(self, f"{prefix}_id"), getattr(self, f"{prefix}_name")

    def assign(self, shift_type: str, position: int, person_id: str, person_name: str) -> None:
        prefix = self._seat_prefix(shift_type, position)
        setattr(self, f"{prefix}_id", person_id or "")
        setattr(self, f"{prefix}_name", person_name or "")

    def crew(self, shift_type: str) -> List[Tuple[str, str]]:
        return [self.seat(shift_type, position) for position in self.POSITIONS]

    def set_crew(self, shift_type: str, crew: List[Tuple[str, str]]) -> None:
        for position, (person_id, person_name) in zip(self.POSITIONS, crew):
            self.assign(shift_type, position, person_id, person_name)

    def position_of(self, person_id: str) -> Optional[Tuple[str, int]]:
        if not person_id:
            return None
        for shift_type in self.ShiftType.values:
            for position in self.POSITIONS:
                if self.seat(shift_type, position)[0] == person_id:
                    return shift_type, position
        return None


class SwapRequest(ApprovalRequest):
    """A CQ shift swap: one seat to a named person, or a whole shift for another."""

    class SwapType(models.TextChoices):
        INDIVIDUAL = "individual", "Individual"
        FULL_SHIFT = "full_shift", "Full shift"

    swap_type = models.CharField(max_length=12, choices=SwapType.choices, default=SwapType.INDIVIDUAL)
    schedule = models.ForeignKey(
        CQScheduleEntry,
        on_delete=models.CASCADE,
        related_name="swap_requests",
    )
    schedule_date = models.DateField()
    current_shift_type = models.CharField(max_length=8, choices=CQScheduleEntry.ShiftType.choices)
    current_position = models.PositiveSmallIntegerField(null=True, blank=True)
    proposed_person_id = models.CharField(max_length=64, blank=True)
    proposed_person_name = models.CharField(max_length=160, blank=True)
    target_schedule = models.ForeignKey(
        CQScheduleEntry,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    target_schedule_date = models.DateField(null=True, blank=True)
    target_shift_type = models.CharField(max_length=8, choices=CQScheduleEntry.ShiftType.choices, blank=True)

    class Meta(ApprovalRequest.Meta):
        verbose_name = "swap request"

    def __str__(self) -> str:
        return f"{self.requester_name} {self.schedule_date} {self.current_shift_type} ({self.status})"

    @classmethod
    def duplicate_filter(cls, payload: Dict) -> Dict:
        return {
            "schedule": payload.get("schedule"),
            "current_shift_type": payload.get("current_shift_type"),
            "current_position": payload.get("current_position"),
        }

    @classmethod
    def duplicate_message(cls, existing: "SwapRequest") -> str:
        return f"You already have a pending swap request for {existing.schedule_date} {existing.current_shift_type}."

    @property
    def is_full_shift(self) -> bool:
        return self.swap_type == self.SwapType.FULL_SHIFT

    def clean(self) -> None:
        super().clean()
        if self.is_full_shift:
            if not self.target_schedule_id or not self.target_shift_type:
                raise ValidationError("Choose a shift to swap with.")
            if self.target_schedule_id == self.schedule_id and self.target_shift_type == self.current_shift_type:
                raise ValidationError("A shift cannot be swapped with itself.")
            if not self.target_schedule_date:
                self.target_schedule_date = self.target_schedule.date
        else:
            if self.current_position not in CQScheduleEntry.POSITIONS:
                raise ValidationError("Choose which seat on the shift is being swapped.")
            if not self.proposed_person_id:
                raise ValidationError("Choose someone to swap with.")

    def apply_approval(self, approver: User, now: datetime) -> None:
        ids = {self.schedule_id, self.target_schedule_id} - {None}
        entries = {entry.pk: entry for entry in CQScheduleEntry.objects.select_for_update().filter(pk__in=ids)}
        schedule = entries.get(self.schedule_id)
        if schedule is None:
            raise FailedPrecondition("Schedule not found")

        if self.is_full_shift:
            target = entries.get(self.target_schedule_id)
            if target is None:
                raise FailedPrecondition("Target schedule not found")
            mine = schedule.crew(self.current_shift_type)
            theirs = target.crew(self.target_shift_type)
            schedule.set_crew(self.current_shift_type, theirs)
            target.set_crew(self.target_shift_type, mine)
        else:
            schedule.assign(
                self.current_shift_type,
                self.current_position,
                self.proposed_person_id,
                self.proposed_person_name,
            )

        for entry in entries.values():
            entry.updated_by = approver
            entry.save()


class Uniform(models.Model):
    number = models.PositiveIntegerField(unique=True)
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)

    class Meta:
        ordering = ["number"]

    def __str__(self) -> str:
        return f"#{self.number} {self.name}"


class MealSlot(models.TextChoices):
    BREAKFAST = timeutils.BREAKFAST, "Breakfast"
    LUNCH = timeutils.LUNCH, "Lunch"
    DINNER = timeutils.DINNER, "Dinner"


class WeatherRule(models.Model):
    """Maps weather conditions to a uniform. Lower priority numbers win."""

    name = models.CharField(max_length=120)
    priority = models.IntegerField(default=0)
    enabled = models.BooleanField(default=True)
    uniform = models.ForeignKey(Uniform, on_delete=models.CASCADE, related_name="weather_rules")
    conditions = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["priority", "name"]

    def __str__(self) -> str:
        return f"{self.name} (priority {self.priority})"


class AccessoryRule(models.Model):
    """Adds accessories to, or overrides, whatever uniform the weather rules chose."""

    class Type(models.TextChoices):
        ADD_ACCESSORIES = "add_accessories", "Add accessories"
        UNIFORM_OVERRIDE = "uniform_override", "Uniform override"

    slug = models.SlugField(max_length=60, unique=True)
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    priority = models.IntegerField(default=99)
    enabled = models.BooleanField(default=True)
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.ADD_ACCESSORIES)
    conditions = models.JSONField(default=dict, blank=True)
    accessories = models.JSONField(default=list, blank=True)
    uniform_override = models.JSONField(default=dict, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["priority", "name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.get_type_display()})"

    def as_rule(self) -> Dict:
        return {
            "id": self.slug,
            "name": self.name,
            "description": self.description,
            "priority": self.priority,
            "enabled": self.enabled,
            "type": self.type,
            "conditions": self.conditions or {},
            "accessories": self.accessories or [],
            "uniformOverride": self.uniform_override or None,
        }


class UOTDScheduleSlot(models.Model):
    """Fixed-time uniform post for a meal slot, used while no weather rule is enabled."""

    slot = models.CharField(max_length=12, choices=MealSlot.choices, unique=True)
    time = models.CharField(max_length=5, help_text="HH:MM in the facility timezone")
    enabled = models.BooleanField(default=True)
    uniform = models.ForeignKey(
        Uniform,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="schedule_slots",
    )
    last_fired = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["time"]
        verbose_name = "UOTD schedule slot"

    def __str__(self) -> str:
        return f"{self.get_slot_display()} @ {self.time}"

    def clean(self) -> None:
        super().clean()
        try:
            timeutils.parse_hhmm(self.time)
        except ValueError as exc:
            raise ValidationError({"time": str(exc)})


class PostQuerySet(models.QuerySet):
    def published_uotd(self, target_date: date, target_slot: str) -> "PostQuerySet":
        return self.filter(
            type=Post.Type.UOTD,
            status=Post.Status.PUBLISHED,
            target_date=target_date,
            target_slot=target_slot,
        )


class Post(models.Model):
    class Type(models.TextChoices):
        UOTD = "uotd", "Uniform of the day"
        ANNOUNCEMENT = "announcement", "Announcement"

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        PUBLISHED = "published", "Published"

    type = models.CharField(max_length=16, choices=Type.choices, default=Type.ANNOUNCEMENT)
    title = models.CharField(max_length=200)
    content = models.TextField(blank=True)
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.DRAFT)
    uniform = models.ForeignKey(Uniform, on_delete=models.SET_NULL, null=True, blank=True, related_name="posts")
    uniform_number = models.PositiveIntegerField(null=True, blank=True)
    uniform_name = models.CharField(max_length=120, blank=True)
    target_date = models.DateField(null=True, blank=True)
    target_slot = models.CharField(max_length=12, choices=MealSlot.choices, blank=True)
    author_id = models.CharField(max_length=64)
    author_name = models.CharField(max_length=160)
    approved_by_name = models.CharField(max_length=160, blank=True)
    weather_based = models.BooleanField(default=False)
    auto_published = models.BooleanField(default=False)
    weather_condition = models.CharField(max_length=60, blank=True)
    weather_temp = models.FloatField(null=True, blank=True)
    published_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PostQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["target_date", "target_slot"],
                condition=Q(type="uotd", status="published"),
                name="unique_published_uotd_per_slot",
            )
        ]

    def __str__(self) -> str:
        return self.title


class WeatherRecommendationQuerySet(models.QuerySet):
    def pending(self) -> "WeatherRecommendationQuerySet":
        return self.filter(status=WeatherRecommendation.Status.PENDING)

    def open_for_slot(self, target_date: date, target_slot: str) -> "WeatherRecommendationQuerySet":
        return self.filter(
            target_date=target_date,
            target_slot=target_slot,
            status__in=[WeatherRecommendation.Status.PENDING, WeatherRecommendation.Status.APPROVED],
        )

    def due_for_auto_publish(self, cutoff: datetime) -> "WeatherRecommendationQuerySet":
        return self.pending().filter(created_at__lt=cutoff)

    def past_expiry(self, now: datetime) -> "WeatherRecommendationQuerySet":
        return self.pending().filter(expires_at__lt=now)


class WeatherRecommendation(models.Model):
    """A proposed uniform-of-the-day post waiting for approval or auto-publish."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        EXPIRED = "expired", "Expired"
        SUPERSEDED = "superseded", "Superseded"

    status = models.CharField(max_length=12, choices=Status.choices, default=Status.PENDING)
    weather = models.JSONField(default=dict, blank=True)
    target_date = models.DateField()
    target_slot = models.CharField(max_length=12, choices=MealSlot.choices)
    uniform = models.ForeignKey(
        Uniform,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recommendations",
    )
    matched_rule_name = models.CharField(max_length=120, default="Default")
    accessories = models.JSONField(default=list, blank=True)
    uniform_override = models.JSONField(null=True, blank=True)
    accessory_matched_rules = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    expires_at = models.DateTimeField()
    created_by = models.CharField(max_length=64, default="system")

    approved_by = models.CharField(max_length=64, blank=True)
    approved_by_name = models.CharField(max_length=160, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    post = models.OneToOneField(
        Post,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recommendation",
    )
    auto_published = models.BooleanField(default=False)
    rejected_by = models.CharField(max_length=64, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    superseded_by = models.CharField(max_length=64, blank=True)
    superseded_at = models.DateTimeField(null=True, blank=True)
    superseded_reason = models.CharField(max_length=255, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)

    objects = WeatherRecommendationQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.target_date} {self.target_slot}: {self.uniform or 'no uniform'} ({self.status})"

    def mark_superseded(self, reason: str, by: str = "", now: Optional[datetime] = None) -> None:
        self.status = self.Status.SUPERSEDED
        self.superseded_reason = reason
        self.superseded_by = by
        self.superseded_at = now or timezone.now()
        self.save(update_fields=["status", "superseded_reason", "superseded_by", "superseded_at"])
