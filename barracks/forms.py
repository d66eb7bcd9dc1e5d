"""Forms validating the JSON payloads posted to the barracks endpoints."""
from __future__ import annotations

from typing import Any, Dict

from django import forms

from .models import (
    LIBERTY_LOCATIONS,
    CQScheduleEntry,
    LibertyRequest,
    MealSlot,
    PassRequest,
    PersonStatus,
    Personnel,
    SwapRequest,
)

SATURDAY = 5


class ListField(forms.Field):
    """Accepts a JSON array whose items are all of ``item_type``."""

    item_type: Any = object
    error_message = "Enter a list."

    def to_python(self, value):
        if value in (None, ""):
            return []
        if not isinstance(value, list) or not all(isinstance(item, self.item_type) for item in value):
            raise forms.ValidationError(self.error_message)
        return value

    def validate(self, value):
        if self.required and not value:
            raise forms.ValidationError(self.error_messages["required"], code="required")


class StringListField(ListField):
    item_type = str
    error_message = "Enter a list of strings."


class IdListField(ListField):
    item_type = int
    error_message = "Enter a list of request ids."


class CompanionListField(ListField):
    item_type = dict
    error_message = "Companions must be a list of {id, name, rank} objects."

    def to_python(self, value):
        companions = super().to_python(value)
        for companion in companions:
            if not companion.get("id"):
                raise forms.ValidationError("Every companion needs an id.")
        return companions


class MappingField(forms.Field):
    def to_python(self, value):
        if value in (None, ""):
            return {}
        if not isinstance(value, dict):
            raise forms.ValidationError("Enter an object.")
        return value

    def validate(self, value):
        if self.required and not value:
            raise forms.ValidationError(self.error_messages["required"], code="required")


class SignOutForm(forms.Form):
    destination = forms.CharField(max_length=255)
    expected_return = forms.DateTimeField(required=False)
    contact_number = forms.CharField(max_length=40, required=False)
    notes = forms.CharField(required=False)
    companions = CompanionListField(required=False)


class SickCallForm(forms.Form):
    contact_number = forms.CharField(max_length=40, required=False)
    notes = forms.CharField(required=False)


class StageForm(forms.Form):
    stage = forms.ChoiceField(choices=PersonStatus.Stage.choices)


class BulkSignInForm(forms.Form):
    person_ids = StringListField()


class DecisionForm(forms.Form):
    """Optional note attached to a rejection or cancellation."""

    reason = forms.CharField(required=False, max_length=2000)


class BulkDecisionForm(DecisionForm):
    ids = IdListField()


class RequestForm(forms.ModelForm):
    """Base for the request forms; ``payload()`` feeds ``ApprovalRequest.submit``."""

    force_submit = forms.BooleanField(required=False)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        for name, field in self.fields.items():
            if name in self._meta.fields and self._meta.model._meta.get_field(name).has_default():
                field.required = False

    def payload(self) -> Dict[str, Any]:
        data = {}
        for name in self._meta.fields:
            value = self.cleaned_data.get(name)
            if value is None and self._meta.model._meta.get_field(name).has_default():
                continue
            data[name] = value
        return data


class PassRequestForm(RequestForm):
    companions = CompanionListField(required=False)

    class Meta:
        model = PassRequest
        fields = ["destination", "expected_return", "contact_number", "notes", "companions", "reason"]


class LibertyRequestForm(RequestForm):
    locations = StringListField()
    time_slots = ListField(required=False)
    companions = CompanionListField(required=False)

    class Meta:
        model = LibertyRequest
        fields = [
            "weekend_date",
            "locations",
            "custom_location",
            "departure_date",
            "departure_time",
            "return_date",
            "return_time",
            "time_slots",
            "contact_number",
            "purpose",
            "notes",
            "companions",
            "is_driver",
            "passenger_capacity",
        ]

    def clean_weekend_date(self):
        weekend_date = self.cleaned_data["weekend_date"]
        if weekend_date.weekday() != SATURDAY:
            raise forms.ValidationError("Liberty weekends start on a Saturday.")
        return weekend_date

    def clean_locations(self):
        locations = self.cleaned_data["locations"]
        unknown = [code for code in locations if code not in LIBERTY_LOCATIONS]
        if unknown:
            raise forms.ValidationError(f"Unknown location(s): {', '.join(unknown)}")
        return locations

    def clean(self) -> Dict[str, Any]:
        cleaned = super().clean()
        if "other" in (cleaned.get("locations") or []) and not cleaned.get("custom_location"):
            raise forms.ValidationError("Describe where you are going when choosing Other.")
        return cleaned


class SwapRequestForm(RequestForm):
    class Meta:
        model = SwapRequest
        fields = [
            "swap_type",
            "schedule",
            "current_shift_type",
            "current_position",
            "proposed_person_id",
            "proposed_person_name",
            "target_schedule",
            "target_shift_type",
            "reason",
        ]

    def clean(self) -> Dict[str, Any]:
        cleaned = super().clean()
        schedule = cleaned.get("schedule")
        if schedule is not None and schedule.status == CQScheduleEntry.Status.COMPLETED:
            raise forms.ValidationError("That shift has already been completed.")
        person_id = cleaned.get("proposed_person_id")
        if person_id and not cleaned.get("proposed_person_name"):
            person = Personnel.objects.filter(pk=person_id).first()
            if person is not None:
                cleaned["proposed_person_name"] = f"{person.rank} {person.last_name}".strip()
        return cleaned

    def payload(self) -> Dict[str, Any]:
        data = super().payload()
        data["schedule_date"] = data["schedule"].date
        target = data.get("target_schedule")
        data["target_schedule_date"] = target.date if target is not None else None
        data["target_shift_type"] = data.get("target_shift_type") or ""
        return data


class WeatherCheckForm(forms.Form):
    weather = MappingField()
    target_slot = forms.ChoiceField(choices=MealSlot.choices, required=False)
    force = forms.BooleanField(required=False)


class LibertyOnBehalfForm(LibertyRequestForm):
    """A liberty request written by leave staff for another account."""

    target_user_id = forms.IntegerField()
    status = forms.ChoiceField(
        choices=[(LibertyRequest.Status.APPROVED, "Approved"), (LibertyRequest.Status.PENDING, "Pending")],
        required=False,
    )
