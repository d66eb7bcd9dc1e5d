"""Email notification helpers for pass, liberty, swap and uniform events."""
from __future__ import annotations

import logging
from typing import Iterable

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail

from .models import ApprovalRequest, PassRequest, Post
from .roles import Role
from .timeutils import format_for_notification

logger = logging.getLogger(__name__)

User = get_user_model()


def _send(to_addresses: Iterable[str], subject: str, message: str) -> None:
    recipients = [email for email in to_addresses if email]
    if not recipients:
        return
    send_mail(
        subject=subject,
        message=message,
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", "no-reply@example.com"),
        recipient_list=recipients,
        fail_silently=True,
    )
    logger.debug("Sent %r to %d recipient(s)", subject, len(recipients))


def _leadership_emails(exclude_user_id=None) -> list:
    users = User.objects.filter(is_active=True).filter(
        account_profile__role__in=[Role.ADMIN, Role.CANDIDATE_LEADERSHIP]
    )
    if exclude_user_id is not None:
        users = users.exclude(pk=exclude_user_id)
    return list(users.values_list("email", flat=True))


def notify_pass_submitted(request_obj: PassRequest) -> None:
    """Alert leadership that a pass request is waiting."""
    subject = f"Pass request: {request_obj.requester_name}"
    message = (
        f"{request_obj.requester_name} requested a pass to {request_obj.destination}"
        + (f", returning {format_for_notification(request_obj.expected_return)}" if request_obj.expected_return else "")
        + ".\nPlease review it in the pass approval queue."
    )
    _send(_leadership_emails(exclude_user_id=request_obj.requester_id), subject, message)


def _describe(request_obj: ApprovalRequest) -> str:
    return request_obj._meta.verbose_name


def notify_request_approved(request_obj: ApprovalRequest) -> None:
    subject = f"Approved: your {_describe(request_obj)}"
    message = (
        f"Hi {request_obj.requester_name},\n\n"
        f"Your {_describe(request_obj)} was approved by {request_obj.approved_by_name}"
        f" ({request_obj.approver_initials or '-'})."
    )
    _send([request_obj.requester_email], subject, message)


def notify_request_rejected(request_obj: ApprovalRequest) -> None:
    subject = f"Declined: your {_describe(request_obj)}"
    message = (
        f"Hi {request_obj.requester_name},\n\n"
        f"Your {_describe(request_obj)} was declined by {request_obj.rejected_by_name}.\n"
        f"Reason: {request_obj.rejection_reason or 'No reason provided.'}"
    )
    _send([request_obj.requester_email], subject, message)


def notify_uotd_published(post: Post) -> None:
    """Announce a newly published uniform of the day to every active account."""
    recipients = User.objects.filter(is_active=True).exclude(email="").values_list("email", flat=True)
    _send(recipients, post.title, post.content)
