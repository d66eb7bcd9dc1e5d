"""Result types shared by the approval workflows, and the bulk decision runner."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import DatabaseError

from .exceptions import InvalidArgument, NotFound, WorkflowError

logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"


@dataclass
class Created:
    """A new request was written."""

    request: object
    is_duplicate: bool = False


@dataclass
class DuplicateFound:
    """A matching pending request already exists and nothing was written."""

    existing: object
    message: str = ""
    is_duplicate: bool = True


@dataclass
class BulkResult:
    succeeded: List[int] = field(default_factory=list)
    failed: List[Tuple[int, str]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def as_dict(self) -> dict:
        return {
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "succeeded": self.succeeded,
            "failed": [{"id": pk, "message": message} for pk, message in self.failed],
        }


def bulk_decide(
    model,
    ids: Iterable[int],
    action: str,
    actor,
    reason: Optional[str] = "",
) -> BulkResult:
    """Approve or reject each request independently, tallying the outcome.

    A failure on one id never stops the rest of the batch.
    """
    if action not in (APPROVE, REJECT):
        raise InvalidArgument(f"Unknown bulk action: {action}")
    result = BulkResult()
    for pk in ids:
        try:
            request_obj = model.objects.filter(pk=pk).first()
            if request_obj is None:
                raise NotFound("Request not found")
            if action == APPROVE:
                request_obj.approve(actor)
            else:
                request_obj.reject(actor, reason or "")
        except (WorkflowError, ValidationError, DatabaseError) as exc:
            message = getattr(exc, "message", None) or "; ".join(getattr(exc, "messages", [str(exc)]))
            logger.warning("Bulk %s of %s %s failed: %s", action, model.__name__, pk, message)
            result.failed.append((pk, message))
        else:
            result.succeeded.append(pk)
    return result
