# Generated manually for liberty groups, accessory rules and the fixed-time UOTD schedule.
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion

MEAL_SLOT_CHOICES = [("breakfast", "Breakfast"), ("lunch", "Lunch"), ("dinner", "Dinner")]


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("barracks", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="passrequest",
            name="cancelled_by_name",
            field=models.CharField(blank=True, max_length=160),
        ),
        migrations.AddField(
            model_name="libertyrequest",
            name="cancelled_by_name",
            field=models.CharField(blank=True, max_length=160),
        ),
        migrations.AddField(
            model_name="swaprequest",
            name="cancelled_by_name",
            field=models.CharField(blank=True, max_length=160),
        ),
        migrations.AddField(
            model_name="libertyrequest",
            name="passengers",
            field=models.JSONField(blank=True, default=list),
        ),
        migrations.AddField(
            model_name="libertyrequest",
            name="join_requests",
            field=models.JSONField(blank=True, default=list),
        ),
        migrations.AddField(
            model_name="libertyrequest",
            name="created_on_behalf",
            field=models.BooleanField(default=False),
        ),
        migrations.AddField(
            model_name="libertyrequest",
            name="created_by_admin",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
        migrations.AddField(
            model_name="libertyrequest",
            name="created_by_admin_name",
            field=models.CharField(blank=True, max_length=160),
        ),
        migrations.AddField(
            model_name="weatherrecommendation",
            name="accessories",
            field=models.JSONField(blank=True, default=list),
        ),
        migrations.AddField(
            model_name="weatherrecommendation",
            name="uniform_override",
            field=models.JSONField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name="weatherrecommendation",
            name="accessory_matched_rules",
            field=models.JSONField(blank=True, default=list),
        ),
        migrations.CreateModel(
            name="AccessoryRule",
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
                ("slug", models.SlugField(max_length=60, unique=True)),
                ("name", models.CharField(max_length=120)),
                ("description", models.TextField(blank=True)),
                ("priority", models.IntegerField(default=99)),
                ("enabled", models.BooleanField(default=True)),
                (
                    "type",
                    models.CharField(
                        choices=[("add_accessories", "Add accessories"), ("uniform_override", "Uniform override")],
                        default="add_accessories",
                        max_length=20,
                    ),
                ),
                ("conditions", models.JSONField(blank=True, default=dict)),
                ("accessories", models.JSONField(blank=True, default=list)),
                ("uniform_override", models.JSONField(blank=True, default=dict)),
                ("notes", models.TextField(blank=True)),
            ],
            options={
                "ordering": ["priority", "name"],
            },
        ),
        migrations.CreateModel(
            name="UOTDScheduleSlot",
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
                ("slot", models.CharField(choices=MEAL_SLOT_CHOICES, max_length=12, unique=True)),
                ("time", models.CharField(help_text="HH:MM in the facility timezone", max_length=5)),
                ("enabled", models.BooleanField(default=True)),
                ("last_fired", models.DateTimeField(blank=True, null=True)),
                (
                    "uniform",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="schedule_slots",
                        to="barracks.uniform",
                    ),
                ),
            ],
            options={
                "verbose_name": "UOTD schedule slot",
                "ordering": ["time"],
            },
        ),
    ]
