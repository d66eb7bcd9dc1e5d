# Generated manually for the initial barracks schema.
from __future__ import annotations

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone

import barracks.models

ROLE_CHOICES = [
    ("user", "User"),
    ("uniform_admin", "Uniform Admin"),
    ("leave_admin", "Leave Admin"),
    ("candidate_leadership", "Candidate Leadership"),
    ("admin", "Admin"),
]
PERSON_STATUS_CHOICES = [("present", "Present"), ("pass", "On Pass"), ("sick_call", "Sick Call")]
PASS_STAGE_CHOICES = [
    ("enroute_to", "En route to destination"),
    ("arrived", "Arrived at destination"),
    ("enroute_back", "En route back"),
]
HISTORY_ACTION_CHOICES = [
    ("sign_out", "Signed out"),
    ("stage_enroute_to", "En route to destination"),
    ("stage_arrived", "Arrived at destination"),
    ("stage_enroute_back", "En route back"),
    ("arrived_barracks", "Arrived at barracks"),
    ("break_free", "Separated from group"),
    ("sick_call", "Sick call"),
    ("admin_sign_in", "Signed in by admin"),
]
REQUEST_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
    ("cancelled", "Cancelled"),
    ("superseded", "Superseded"),
]
SHIFT_CHOICES = [("shift1", "Shift 1 (2000-0100)"), ("shift2", "Shift 2 (0100-0600)")]
MEAL_SLOT_CHOICES = [("breakfast", "Breakfast"), ("lunch", "Lunch"), ("dinner", "Dinner")]


def request_fields():
    """Columns every approval request carries."""
    return [
        (
            "id",
            models.BigAutoField(
                auto_created=True,
                primary_key=True,
                serialize=False,
                verbose_name="ID",
            ),
        ),
        ("requester_name", models.CharField(blank=True, max_length=160)),
        ("requester_email", models.EmailField(blank=True, max_length=254)),
        ("reason", models.TextField(blank=True)),
        ("status", models.CharField(choices=REQUEST_STATUS_CHOICES, default="pending", max_length=12)),
        ("approved_by_name", models.CharField(blank=True, max_length=160)),
        ("approver_initials", models.CharField(blank=True, max_length=8)),
        ("approved_at", models.DateTimeField(blank=True, null=True)),
        ("rejected_by_name", models.CharField(blank=True, max_length=160)),
        ("rejected_at", models.DateTimeField(blank=True, null=True)),
        ("rejection_reason", models.TextField(blank=True)),
        ("cancelled_at", models.DateTimeField(blank=True, null=True)),
        ("cancel_reason", models.TextField(blank=True)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        (
            "approved_by",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
        (
            "rejected_by",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
        (
            "cancelled_by",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
    ]


def requester_field():
    return (
        "requester",
        models.ForeignKey(
            on_delete=django.db.models.deletion.CASCADE,
            related_name="%(class)ss",
            to=settings.AUTH_USER_MODEL,
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AccountProfile",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("role", models.CharField(choices=ROLE_CHOICES, default="user", max_length=32)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="account_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Personnel",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=barracks.models.new_personnel_id,
                        editable=False,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("first_name", models.CharField(max_length=80)),
                ("last_name", models.CharField(max_length=80)),
                ("rank", models.CharField(blank=True, max_length=40)),
                ("email", models.EmailField(blank=True, max_length=254)),
                (
                    "account",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="personnel",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "personnel",
                "ordering": ["last_name", "first_name"],
            },
        ),
        migrations.CreateModel(
            name="CQScheduleEntry",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("date", models.DateField(unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("scheduled", "Scheduled"), ("active", "Active"), ("completed", "Completed")],
                        default="scheduled",
                        max_length=12,
                    ),
                ),
                ("shift1_person1_id", models.CharField(blank=True, max_length=64)),
                ("shift1_person1_name", models.CharField(blank=True, max_length=160)),
                ("shift1_person2_id", models.CharField(blank=True, max_length=64)),
                ("shift1_person2_name", models.CharField(blank=True, max_length=160)),
                ("shift2_person1_id", models.CharField(blank=True, max_length=64)),
                ("shift2_person1_name", models.CharField(blank=True, max_length=160)),
                ("shift2_person2_id", models.CharField(blank=True, max_length=64)),
                ("shift2_person2_name", models.CharField(blank=True, max_length=160)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "CQ schedule entry",
                "verbose_name_plural": "CQ schedule",
                "ordering": ["date"],
            },
        ),
        migrations.CreateModel(
            name="Uniform",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("number", models.PositiveIntegerField(unique=True)),
                ("name", models.CharField(max_length=120)),
                ("description", models.TextField(blank=True)),
            ],
            options={
                "ordering": ["number"],
            },
        ),
        migrations.CreateModel(
            name="WeatherRule",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name", models.CharField(max_length=120)),
                ("priority", models.IntegerField(default=0)),
                ("enabled", models.BooleanField(default=True)),
                ("conditions", models.JSONField(blank=True, default=dict)),
                (
                    "uniform",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="weather_rules",
                        to="barracks.uniform",
                    ),
                ),
            ],
            options={
                "ordering": ["priority", "name"],
            },
        ),
        migrations.CreateModel(
            name="Post",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[("uotd", "Uniform of the day"), ("announcement", "Announcement")],
                        default="announcement",
                        max_length=16,
                    ),
                ),
                ("title", models.CharField(max_length=200)),
                ("content", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Draft"), ("published", "Published")],
                        default="draft",
                        max_length=12,
                    ),
                ),
                ("uniform_number", models.PositiveIntegerField(blank=True, null=True)),
                ("uniform_name", models.CharField(blank=True, max_length=120)),
                ("target_date", models.DateField(blank=True, null=True)),
                ("target_slot", models.CharField(blank=True, choices=MEAL_SLOT_CHOICES, max_length=12)),
                ("author_id", models.CharField(max_length=64)),
                ("author_name", models.CharField(max_length=160)),
                ("approved_by_name", models.CharField(blank=True, max_length=160)),
                ("weather_based", models.BooleanField(default=False)),
                ("auto_published", models.BooleanField(default=False)),
                ("weather_condition", models.CharField(blank=True, max_length=60)),
                ("weather_temp", models.FloatField(blank=True, null=True)),
                ("published_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "uniform",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="posts",
                        to="barracks.uniform",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="post",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status", "published"), ("type", "uotd")),
                fields=("target_date", "target_slot"),
                name="unique_published_uotd_per_slot",
            ),
        ),
        migrations.CreateModel(
            name="WeatherRecommendation",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("expired", "Expired"),
                            ("superseded", "Superseded"),
                        ],
                        default="pending",
                        max_length=12,
                    ),
                ),
                ("weather", models.JSONField(blank=True, default=dict)),
                ("target_date", models.DateField()),
                ("target_slot", models.CharField(choices=MEAL_SLOT_CHOICES, max_length=12)),
                ("matched_rule_name", models.CharField(default="Default", max_length=120)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("expires_at", models.DateTimeField()),
                ("created_by", models.CharField(default="system", max_length=64)),
                ("approved_by", models.CharField(blank=True, max_length=64)),
                ("approved_by_name", models.CharField(blank=True, max_length=160)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("auto_published", models.BooleanField(default=False)),
                ("rejected_by", models.CharField(blank=True, max_length=64)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                ("rejection_reason", models.TextField(blank=True)),
                ("superseded_by", models.CharField(blank=True, max_length=64)),
                ("superseded_at", models.DateTimeField(blank=True, null=True)),
                ("superseded_reason", models.CharField(blank=True, max_length=255)),
                ("expired_at", models.DateTimeField(blank=True, null=True)),
                (
                    "post",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="recommendation",
                        to="barracks.post",
                    ),
                ),
                (
                    "uniform",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="recommendations",
                        to="barracks.uniform",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PassRequest",
            fields=request_fields()
            + [
                ("destination", models.CharField(max_length=255)),
                ("expected_return", models.DateTimeField(blank=True, null=True)),
                ("contact_number", models.CharField(blank=True, max_length=40)),
                ("notes", models.TextField(blank=True)),
                ("companions", models.JSONField(blank=True, default=list)),
                requester_field(),
            ],
            options={
                "verbose_name": "pass request",
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="LibertyRequest",
            fields=request_fields()
            + [
                ("weekend_date", models.DateField()),
                ("locations", models.JSONField(blank=True, default=list)),
                ("custom_location", models.CharField(blank=True, max_length=255)),
                ("destination", models.CharField(blank=True, max_length=512)),
                ("departure_date", models.DateField(blank=True, null=True)),
                ("departure_time", models.TimeField(blank=True, null=True)),
                ("return_date", models.DateField(blank=True, null=True)),
                ("return_time", models.TimeField(blank=True, null=True)),
                ("time_slots", models.JSONField(blank=True, default=list)),
                ("contact_number", models.CharField(blank=True, max_length=40)),
                ("purpose", models.TextField(blank=True)),
                ("notes", models.TextField(blank=True)),
                ("companions", models.JSONField(blank=True, default=list)),
                ("is_driver", models.BooleanField(default=False)),
                ("passenger_capacity", models.PositiveSmallIntegerField(default=0)),
                requester_field(),
            ],
            options={
                "verbose_name": "liberty request",
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="SwapRequest",
            fields=request_fields()
            + [
                (
                    "swap_type",
                    models.CharField(
                        choices=[("individual", "Individual"), ("full_shift", "Full shift")],
                        default="individual",
                        max_length=12,
                    ),
                ),
                ("schedule_date", models.DateField()),
                ("current_shift_type", models.CharField(choices=SHIFT_CHOICES, max_length=8)),
                ("current_position", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("proposed_person_id", models.CharField(blank=True, max_length=64)),
                ("proposed_person_name", models.CharField(blank=True, max_length=160)),
                ("target_schedule_date", models.DateField(blank=True, null=True)),
                ("target_shift_type", models.CharField(blank=True, choices=SHIFT_CHOICES, max_length=8)),
                (
                    "schedule",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="swap_requests",
                        to="barracks.cqscheduleentry",
                    ),
                ),
                (
                    "target_schedule",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="barracks.cqscheduleentry",
                    ),
                ),
                requester_field(),
            ],
            options={
                "verbose_name": "swap request",
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="PersonStatus",
            fields=[
                ("person_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("person_name", models.CharField(blank=True, max_length=160)),
                ("status", models.CharField(choices=PERSON_STATUS_CHOICES, default="present", max_length=16)),
                ("pass_stage", models.CharField(blank=True, choices=PASS_STAGE_CHOICES, max_length=16, null=True)),
                ("time_out", models.DateTimeField(blank=True, null=True)),
                ("destination", models.CharField(blank=True, max_length=255)),
                ("expected_return", models.DateTimeField(blank=True, null=True)),
                ("contact_number", models.CharField(blank=True, max_length=40)),
                ("notes", models.TextField(blank=True)),
                ("companions", models.JSONField(blank=True, default=list)),
                ("with_person_id", models.CharField(blank=True, max_length=64)),
                ("with_person_name", models.CharField(blank=True, max_length=160)),
                ("user_email", models.EmailField(blank=True, max_length=254)),
                ("self_updated", models.BooleanField(default=False)),
                ("group_sign_out", models.BooleanField(default=False)),
                ("admin_sign_in", models.BooleanField(default=False)),
                ("approved_by_name", models.CharField(blank=True, max_length=160)),
                ("approver_initials", models.CharField(blank=True, max_length=8)),
                ("updated_by_name", models.CharField(blank=True, max_length=160)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "pass_request",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="barracks.passrequest",
                    ),
                ),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "person status",
                "verbose_name_plural": "person statuses",
            },
        ),
        migrations.CreateModel(
            name="PersonStatusHistory",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("person_id", models.CharField(db_index=True, max_length=64)),
                ("person_name", models.CharField(blank=True, max_length=160)),
                ("person_rank", models.CharField(blank=True, max_length=40)),
                ("action", models.CharField(choices=HISTORY_ACTION_CHOICES, max_length=24)),
                ("status", models.CharField(choices=PERSON_STATUS_CHOICES, max_length=16)),
                ("pass_stage", models.CharField(blank=True, choices=PASS_STAGE_CHOICES, max_length=16, null=True)),
                ("previous_status", models.CharField(blank=True, max_length=16)),
                ("previous_stage", models.CharField(blank=True, max_length=16, null=True)),
                ("destination", models.CharField(blank=True, max_length=255)),
                ("expected_return", models.DateTimeField(blank=True, null=True)),
                ("contact_number", models.CharField(blank=True, max_length=40)),
                ("notes", models.TextField(blank=True)),
                ("with_person_id", models.CharField(blank=True, max_length=64)),
                ("with_person_name", models.CharField(blank=True, max_length=160)),
                ("group_action", models.BooleanField(default=False)),
                ("actor_name", models.CharField(blank=True, max_length=160)),
                ("timestamp", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "status history entry",
                "verbose_name_plural": "status history",
                "ordering": ["-timestamp", "-id"],
            },
        ),
    ]
