"""Signal handlers for barracks."""
from __future__ import annotations

from functools import partial

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import AccountProfile, PassRequest, Post
from .notifications import notify_pass_submitted, notify_uotd_published

User = get_user_model()


@receiver(post_save, sender=User)
def create_account_profile(sender, instance: User, created: bool, **kwargs) -> None:
    """Ensure every user has a barracks role record."""
    if created:
        AccountProfile.ensure_for_user(instance)


@receiver(post_save, sender=PassRequest)
def announce_pass_request(sender, instance: PassRequest, created: bool, **kwargs) -> None:
    if created and instance.is_pending:
        transaction.on_commit(partial(notify_pass_submitted, instance))


@receiver(post_save, sender=Post)
def announce_uotd(sender, instance: Post, created: bool, **kwargs) -> None:
    if created and instance.type == Post.Type.UOTD and instance.status == Post.Status.PUBLISHED:
        transaction.on_commit(partial(notify_uotd_published, instance))
