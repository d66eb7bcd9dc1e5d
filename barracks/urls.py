"""URL routing for barracks status, requests, CQ and uniform endpoints."""
from django.urls import path

from . import views

app_name = "barracks"

urlpatterns = [
    path("permissions/", views.permissions, name="permissions"),
    path("status/", views.status_board, name="status_board"),
    path("status/me/", views.my_status, name="my_status"),
    path("status/<str:person_id>/history/", views.status_history, name="status_history"),
    path("status/sign-out/", views.sign_out, name="sign_out"),
    path("status/sick-call/", views.sick_call, name="sick_call"),
    path("status/stage/", views.update_stage, name="update_stage"),
    path("status/sign-in/", views.sign_in, name="sign_in"),
    path("status/break-free/", views.break_free, name="break_free"),
    path("status/bulk-sign-in/", views.bulk_sign_in, name="bulk_sign_in"),
    path("cq/my-shift/", views.my_shift, name="my_shift"),
    path("cq/swap-targets/", views.swap_targets, name="swap_targets"),
    path("weather/approve/", views.approve_recommendation, name="approve_recommendation"),
    path("weather/reject/", views.reject_recommendation, name="reject_recommendation"),
    path(
        "weather/pending-count/",
        views.pending_recommendation_count,
        name="pending_recommendation_count",
    ),
    path("weather/check/", views.check_weather, name="check_weather"),
    path("liberty/window/", views.liberty_window_view, name="liberty_window"),
    path("liberty/available/", views.available_liberty_view, name="available_liberty"),
    path("liberty/on-behalf/", views.create_liberty_on_behalf, name="create_liberty_on_behalf"),
    path("liberty/<int:pk>/join/", views.request_to_join, name="request_to_join"),
    path("liberty/<int:pk>/join/cancel/", views.cancel_join, name="cancel_join"),
    path(
        "liberty/<int:pk>/join/<str:user_id>/<str:action>/",
        views.answer_join,
        name="answer_join",
    ),
    path("liberty/<int:pk>/passenger/", views.sign_up_as_passenger, name="sign_up_as_passenger"),
    path("liberty/<int:pk>/passenger/cancel/", views.cancel_passenger, name="cancel_passenger"),
    path(
        "liberty/<int:pk>/slots/<int:index>/<str:action>/",
        views.time_slot,
        name="time_slot",
    ),
    path("liberty/<int:pk>/admin-cancel/", views.admin_cancel_liberty, name="admin_cancel_liberty"),
    path("<str:kind>/", views.create_request, name="create_request"),
    path("<str:kind>/pending/", views.pending_requests, name="pending_requests"),
    path("<str:kind>/mine/", views.my_requests, name="my_requests"),
    path(
        "<str:kind>/<int:pk>/<str:action>/",
        views.decide_request,
        name="decide_request",
    ),
    path(
        "<str:kind>/bulk/<str:action>/",
        views.bulk_decide_requests,
        name="bulk_decide_requests",
    ),
]
