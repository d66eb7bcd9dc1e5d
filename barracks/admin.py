"""Admin configuration for barracks."""
from django.contrib import admin

from .models import (
    AccessoryRule,
    AccountProfile,
    CQScheduleEntry,
    LibertyRequest,
    PassRequest,
    Personnel,
    PersonStatus,
    PersonStatusHistory,
    Post,
    SwapRequest,
    Uniform,
    UOTDScheduleSlot,
    WeatherRecommendation,
    WeatherRule,
)


@admin.register(AccountProfile)
class AccountProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role")
    list_filter = ("role",)
    search_fields = ("user__username", "user__email")


@admin.register(Personnel)
class PersonnelAdmin(admin.ModelAdmin):
    list_display = ("last_name", "first_name", "rank", "email", "account")
    search_fields = ("last_name", "first_name", "email")
    autocomplete_fields = ("account",)


@admin.register(PersonStatus)
class PersonStatusAdmin(admin.ModelAdmin):
    list_display = ("person_name", "status", "pass_stage", "destination", "with_person_name", "updated_at")
    list_filter = ("status", "pass_stage")
    search_fields = ("person_id", "person_name", "user_email")
    readonly_fields = ("updated_at",)


@admin.register(PersonStatusHistory)
class PersonStatusHistoryAdmin(admin.ModelAdmin):
    list_display = ("person_name", "action", "status", "pass_stage", "actor_name", "timestamp")
    list_filter = ("action", "status")
    search_fields = ("person_id", "person_name", "actor_name")
    ordering = ("-timestamp",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ApprovalRequestAdmin(admin.ModelAdmin):
    list_filter = ("status",)
    search_fields = ("requester__username", "requester_name", "reason")
    autocomplete_fields = ("requester",)
    readonly_fields = (
        "created_at",
        "updated_at",
        "approved_by",
        "approved_at",
        "rejected_by",
        "rejected_at",
        "cancelled_by",
        "cancelled_by_name",
        "cancelled_at",
    )
    ordering = ("-created_at",)


@admin.register(PassRequest)
class PassRequestAdmin(ApprovalRequestAdmin):
    list_display = ("requester_name", "destination", "expected_return", "status", "approved_by_name", "created_at")


@admin.register(LibertyRequest)
class LibertyRequestAdmin(ApprovalRequestAdmin):
    list_display = ("requester_name", "weekend_date", "destination", "is_driver", "status", "created_at")
    list_filter = ("status", "weekend_date", "created_on_behalf")


@admin.register(SwapRequest)
class SwapRequestAdmin(ApprovalRequestAdmin):
    list_display = (
        "requester_name",
        "swap_type",
        "schedule_date",
        "current_shift_type",
        "proposed_person_name",
        "target_schedule_date",
        "status",
    )
    list_filter = ("status", "swap_type")


@admin.register(CQScheduleEntry)
class CQScheduleEntryAdmin(admin.ModelAdmin):
    list_display = (
        "date",
        "status",
        "shift1_person1_name",
        "shift1_person2_name",
        "shift2_person1_name",
        "shift2_person2_name",
    )
    list_filter = ("status",)
    ordering = ("date",)


class WeatherRuleInline(admin.TabularInline):
    model = WeatherRule
    extra = 0


@admin.register(Uniform)
class UniformAdmin(admin.ModelAdmin):
    list_display = ("number", "name")
    search_fields = ("name",)
    inlines = [WeatherRuleInline]


@admin.register(WeatherRule)
class WeatherRuleAdmin(admin.ModelAdmin):
    list_display = ("name", "priority", "enabled", "uniform")
    list_filter = ("enabled",)
    ordering = ("priority",)


@admin.register(AccessoryRule)
class AccessoryRuleAdmin(admin.ModelAdmin):
    list_display = ("name", "type", "priority", "enabled")
    list_filter = ("type", "enabled")
    prepopulated_fields = {"slug": ("name",)}
    ordering = ("priority",)


@admin.register(UOTDScheduleSlot)
class UOTDScheduleSlotAdmin(admin.ModelAdmin):
    list_display = ("slot", "time", "enabled", "uniform", "last_fired")
    readonly_fields = ("last_fired",)


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ("title", "type", "status", "target_date", "target_slot", "auto_published", "published_at")
    list_filter = ("type", "status", "target_slot")
    search_fields = ("title", "content")
    readonly_fields = ("created_at", "updated_at", "published_at")


@admin.register(WeatherRecommendation)
class WeatherRecommendationAdmin(admin.ModelAdmin):
    list_display = ("target_date", "target_slot", "uniform", "matched_rule_name", "status", "created_at")
    list_filter = ("status", "target_slot")
    readonly_fields = ("created_at", "approved_at", "rejected_at", "superseded_at", "expired_at")
