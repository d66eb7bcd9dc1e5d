"""JSON endpoints for status, request queues, the CQ schedule and uniform approvals."""
from __future__ import annotations

import json
import logging
from functools import wraps
from typing import Dict, Type

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST

from . import schedule as cq
from . import status as status_store
from . import weather
from .exceptions import FailedPrecondition, InvalidArgument, NotFound, Unauthenticated, WorkflowError
from .forms import (
    BulkDecisionForm,
    BulkSignInForm,
    DecisionForm,
    LibertyOnBehalfForm,
    LibertyRequestForm,
    PassRequestForm,
    RequestForm,
    SickCallForm,
    SignOutForm,
    StageForm,
    SwapRequestForm,
    WeatherCheckForm,
)
from .identity import actor_key
from .models import ApprovalRequest, CQScheduleEntry, LibertyRequest, PassRequest, SwapRequest
from .notifications import notify_request_approved, notify_request_rejected
from .roles import (
    APPROVE_LIBERTY_REQUESTS,
    APPROVE_PASS_REQUESTS,
    APPROVE_WEATHER_UOTD,
    CREATE_LEAVE_FOR_OTHERS,
    MANAGE_CQ_OPERATIONS,
    MANAGE_PERSONNEL_STATUS,
    has_permission,
    require_permission,
)
from .serializers import roster_entry_to_dict, snake, to_dict
from .timeutils import (
    board_weekend,
    get_timezone,
    is_before_liberty_deadline,
    liberty_window,
    today_in,
    tomorrow_in,
)
from .workflow import APPROVE, REJECT, DuplicateFound, bulk_decide

logger = logging.getLogger(__name__)

REQUEST_KINDS: Dict[str, tuple] = {
    "passes": (PassRequest, PassRequestForm, APPROVE_PASS_REQUESTS),
    "liberty": (LibertyRequest, LibertyRequestForm, APPROVE_LIBERTY_REQUESTS),
    "swaps": (SwapRequest, SwapRequestForm, MANAGE_CQ_OPERATIONS),
}


def _read_payload(request) -> dict:
    if request.method == "GET":
        payload = request.GET.dict()
    else:
        try:
            payload = json.loads(request.body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidArgument("Request body must be valid JSON")
        if not isinstance(payload, dict):
            raise InvalidArgument("Request body must be a JSON object")
    return {snake(key): value for key, value in payload.items()}


def callable_endpoint(view):
    """Authenticate, decode the payload and map workflow errors onto JSON responses."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            if not request.user.is_authenticated:
                raise Unauthenticated("Must be logged in")
            # Naive datetimes in payloads are facility-local.
            with timezone.override(get_timezone()):
                result = view(request, _read_payload(request), *args, **kwargs)
        except WorkflowError as exc:
            return JsonResponse(exc.as_dict(), status=exc.http_status)
        except ValidationError as exc:
            error = InvalidArgument("; ".join(exc.messages))
            return JsonResponse(error.as_dict(), status=error.http_status)
        return JsonResponse(result)

    return wrapper


def _validated(form_class, payload: dict, **kwargs):
    form = form_class(data=payload, **kwargs)
    if not form.is_valid():
        messages = []
        for field, errors in form.errors.items():
            prefix = "" if field == "__all__" else f"{field}: "
            messages.extend(f"{prefix}{error}" for error in errors)
        raise InvalidArgument("; ".join(messages))
    return form


def _request_kind(kind: str):
    try:
        return REQUEST_KINDS[kind]
    except KeyError:
        raise NotFound(f"Unknown request type: {kind}")


def _get_request(model: Type[ApprovalRequest], pk: int) -> ApprovalRequest:
    request_obj = model.objects.filter(pk=pk).first()
    if request_obj is None:
        raise NotFound("Request not found")
    return request_obj


# Personnel status


@require_GET
@callable_endpoint
def status_board(request, payload):
    return {"personnel": [roster_entry_to_dict(entry) for entry in status_store.personnel_with_status()]}


@require_GET
@callable_endpoint
def my_status(request, payload):
    return {"status": to_dict(status_store.my_status(request.user))}


@require_GET
@callable_endpoint
def status_history(request, payload, person_id: str):
    if person_id != actor_key(request.user):
        require_permission(request.user, MANAGE_PERSONNEL_STATUS)
    return {"history": [to_dict(entry) for entry in status_store.history_for(person_id)]}


@require_POST
@callable_endpoint
def sign_out(request, payload):
    form = _validated(SignOutForm, payload)
    record = status_store.sign_out(request.user, **form.cleaned_data)
    return {"success": True, "status": to_dict(record)}


@require_POST
@callable_endpoint
def sick_call(request, payload):
    form = _validated(SickCallForm, payload)
    record = status_store.sign_out_sick_call(request.user, **form.cleaned_data)
    return {"success": True, "status": to_dict(record)}


@require_POST
@callable_endpoint
def update_stage(request, payload):
    form = _validated(StageForm, payload)
    record = status_store.update_stage(request.user, form.cleaned_data["stage"])
    return {"success": True, "status": to_dict(record)}


@require_POST
@callable_endpoint
def sign_in(request, payload):
    record = status_store.sign_in(request.user)
    return {"success": True, "status": to_dict(record)}


@require_POST
@callable_endpoint
def break_free(request, payload):
    record = status_store.break_free(request.user)
    return {"success": True, "status": to_dict(record)}


@require_POST
@callable_endpoint
def bulk_sign_in(request, payload):
    require_permission(request.user, MANAGE_PERSONNEL_STATUS)
    form = _validated(BulkSignInForm, payload)
    count = status_store.bulk_sign_in(request.user, form.cleaned_data["person_ids"])
    return {"success": True, "signedIn": count}


# Pass, liberty and swap requests


@require_POST
@callable_endpoint
def create_request(request, payload, kind: str):
    model, form_class, _ = _request_kind(kind)
    if (
        model is LibertyRequest
        and getattr(settings, "WOTS_LIBERTY_DEADLINE_ENFORCED", True)
        and not is_before_liberty_deadline()
    ):
        raise FailedPrecondition("The deadline for this weekend's liberty requests has passed")
    form: RequestForm = _validated(form_class, payload)
    result = model.submit(
        request.user,
        force_submit=form.cleaned_data.get("force_submit", False),
        **form.payload(),
    )
    if isinstance(result, DuplicateFound):
        return {
            "success": False,
            "isDuplicate": True,
            "message": result.message,
            "existingRequest": to_dict(result.existing),
        }
    logger.info("%s created %s %s", actor_key(request.user), model.__name__, result.request.pk)
    return {"success": True, "isDuplicate": False, "requestId": result.request.pk, "request": to_dict(result.request)}


@require_GET
@callable_endpoint
def pending_requests(request, payload, kind: str):
    model, _, permission = _request_kind(kind)
    require_permission(request.user, permission)
    pending = model.objects.filter(status=ApprovalRequest.Status.PENDING).order_by("created_at")
    return {"requests": [to_dict(request_obj) for request_obj in pending]}


@require_GET
@callable_endpoint
def my_requests(request, payload, kind: str):
    model, _, _ = _request_kind(kind)
    mine = model.objects.filter(requester=request.user)
    return {"requests": [to_dict(request_obj) for request_obj in mine]}


@require_POST
@callable_endpoint
def decide_request(request, payload, kind: str, pk: int, action: str):
    model, _, permission = _request_kind(kind)
    request_obj = _get_request(model, pk)
    reason = _validated(DecisionForm, payload).cleaned_data["reason"]

    if action == "cancel":
        request_obj.cancel(request.user, reason)
    elif action == APPROVE:
        require_permission(request.user, permission)
        request_obj.approve(request.user)
        notify_request_approved(request_obj)
    elif action == REJECT:
        require_permission(request.user, permission)
        request_obj.reject(request.user, reason)
        notify_request_rejected(request_obj)
    else:
        raise InvalidArgument(f"Unknown action: {action}")
    return {"success": True, "request": to_dict(request_obj)}


@require_POST
@callable_endpoint
def bulk_decide_requests(request, payload, kind: str, action: str):
    model, _, permission = _request_kind(kind)
    require_permission(request.user, permission)
    form = _validated(BulkDecisionForm, payload)
    result = bulk_decide(model, form.cleaned_data["ids"], action, request.user, form.cleaned_data["reason"])
    notify = notify_request_approved if action == APPROVE else notify_request_rejected
    for request_obj in model.objects.filter(pk__in=result.succeeded):
        notify(request_obj)
    return result.as_dict()


# Liberty groups


def available_liberty(now=None):
    """Open liberty requests for the weekend on the board."""
    return LibertyRequest.objects.filter(
        weekend_date=board_weekend(now),
        status__in=[ApprovalRequest.Status.PENDING, ApprovalRequest.Status.APPROVED],
    ).order_by("created_at")


def _liberty(pk: int) -> LibertyRequest:
    return _get_request(LibertyRequest, pk)


def _liberty_response(request_obj: LibertyRequest) -> dict:
    return {"success": True, "request": to_dict(request_obj)}


@require_GET
@callable_endpoint
def liberty_window_view(request, payload):
    return liberty_window()


@require_GET
@callable_endpoint
def available_liberty_view(request, payload):
    return {
        "weekendDate": board_weekend().isoformat(),
        "requests": [to_dict(request_obj) for request_obj in available_liberty()],
    }


@require_POST
@callable_endpoint
def request_to_join(request, payload, pk: int):
    return _liberty_response(_liberty(pk).request_to_join(request.user))


@require_POST
@callable_endpoint
def cancel_join(request, payload, pk: int):
    return _liberty_response(_liberty(pk).cancel_join(request.user))


@require_POST
@callable_endpoint
def answer_join(request, payload, pk: int, user_id: str, action: str):
    request_obj = _liberty(pk)
    if action == APPROVE:
        request_obj.approve_join(request.user, user_id)
    elif action == REJECT:
        reason = _validated(DecisionForm, payload).cleaned_data["reason"]
        request_obj.reject_join(request.user, user_id, reason)
    else:
        raise InvalidArgument(f"Unknown action: {action}")
    return _liberty_response(request_obj)


@require_POST
@callable_endpoint
def sign_up_as_passenger(request, payload, pk: int):
    return _liberty_response(_liberty(pk).sign_up_as_passenger(request.user))


@require_POST
@callable_endpoint
def cancel_passenger(request, payload, pk: int):
    return _liberty_response(_liberty(pk).cancel_passenger(request.user))


@require_POST
@callable_endpoint
def time_slot(request, payload, pk: int, index: int, action: str):
    request_obj = _liberty(pk)
    if action == "join":
        request_obj.join_time_slot(request.user, index)
    elif action == "leave":
        request_obj.leave_time_slot(request.user, index)
    else:
        raise InvalidArgument(f"Unknown action: {action}")
    return _liberty_response(request_obj)


@require_POST
@callable_endpoint
def create_liberty_on_behalf(request, payload):
    require_permission(request.user, CREATE_LEAVE_FOR_OTHERS, "You cannot create liberty requests for others")
    form = _validated(LibertyOnBehalfForm, payload)
    target = get_user_model().objects.filter(pk=form.cleaned_data["target_user_id"]).first()
    if target is None:
        raise NotFound("Target user not found")
    request_obj = LibertyRequest.create_for(
        request.user,
        target,
        status=form.cleaned_data["status"] or None,
        **form.payload(),
    )
    logger.info("%s created liberty request %s for %s", actor_key(request.user), request_obj.pk, actor_key(target))
    return {"success": True, "requestId": request_obj.pk, "request": to_dict(request_obj)}


@require_POST
@callable_endpoint
def admin_cancel_liberty(request, payload, pk: int):
    reason = _validated(DecisionForm, payload).cleaned_data["reason"]
    return _liberty_response(_liberty(pk).admin_cancel(request.user, reason))


# CQ schedule


@require_GET
@callable_endpoint
def my_shift(request, payload):
    entries = CQScheduleEntry.objects.filter(date__gte=today_in(), date__lte=tomorrow_in())
    shift = cq.my_shift(entries, actor_key(request.user))
    return {"shift": shift.as_dict() if shift else None}


@require_GET
@callable_endpoint
def swap_targets(request, payload):
    try:
        current = CQScheduleEntry.objects.get(pk=int(payload.get("schedule_id") or 0))
    except (CQScheduleEntry.DoesNotExist, ValueError):
        raise NotFound("Schedule not found")
    shift_type = payload.get("shift_type") or ""
    if shift_type not in CQScheduleEntry.ShiftType.values:
        raise InvalidArgument("shiftType must be shift1 or shift2")
    entries = CQScheduleEntry.objects.filter(date__gte=today_in())
    targets = cq.available_swap_targets(entries, current, shift_type)
    return {"targets": [target.as_dict() for target in targets]}


# Uniform of the day


@require_POST
@callable_endpoint
def approve_recommendation(request, payload):
    return weather.approve_recommendation(
        payload.get("recommendation_id"),
        request.user,
        custom_title=payload.get("custom_title") or "",
        custom_content=payload.get("custom_content") or "",
    )


@require_POST
@callable_endpoint
def reject_recommendation(request, payload):
    return weather.reject_recommendation(
        payload.get("recommendation_id"),
        request.user,
        reason=payload.get("reason") or "",
    )


@require_GET
@callable_endpoint
def pending_recommendation_count(request, payload):
    return weather.pending_count(request.user)


@require_POST
@callable_endpoint
def check_weather(request, payload):
    require_permission(request.user, APPROVE_WEATHER_UOTD)
    form = _validated(WeatherCheckForm, payload)
    return weather.propose_recommendation(
        form.cleaned_data["weather"],
        target_slot=form.cleaned_data["target_slot"] or None,
        user=request.user,
        force=form.cleaned_data["force"],
    )


def permissions(request):
    """Which queues the current account may act on."""
    if not request.user.is_authenticated:
        return JsonResponse(Unauthenticated("Must be logged in").as_dict(), status=401)
    names = [
        APPROVE_PASS_REQUESTS,
        APPROVE_LIBERTY_REQUESTS,
        MANAGE_CQ_OPERATIONS,
        APPROVE_WEATHER_UOTD,
        MANAGE_PERSONNEL_STATUS,
        CREATE_LEAVE_FOR_OTHERS,
    ]
    return JsonResponse({name: has_permission(request.user, name) for name in names})
