from __future__ import annotations

import json

from django.core.management.base import BaseCommand, CommandError

from ...models import MealSlot
from ...weather import propose_recommendation


class Command(BaseCommand):
    help = "Propose a uniform of the day from a weather snapshot given as JSON."

    def add_arguments(self, parser):
        parser.add_argument(
            "weather",
            help='Weather snapshot, e.g. \'{"temperature": 41, "weatherMain": "Rain"}\'.',
        )
        parser.add_argument(
            "--slot",
            choices=MealSlot.values,
            help="Meal slot to target (default: the next one for the current time).",
        )

    def handle(self, *args, **options):
        try:
            weather = json.loads(options["weather"])
        except json.JSONDecodeError as exc:
            raise CommandError(f"Weather must be valid JSON: {exc}")
        if not isinstance(weather, dict):
            raise CommandError("Weather must be a JSON object.")

        result = propose_recommendation(weather, target_slot=options["slot"])
        style = self.style.WARNING if result.get("skipped") or not result.get("recommendation") else self.style.SUCCESS
        self.stdout.write(style(result["message"]))
