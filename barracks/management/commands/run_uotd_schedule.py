from __future__ import annotations

from django.core.management.base import BaseCommand

from ...weather import run_uotd_schedule


class Command(BaseCommand):
    help = "Publish the fixed-time uniform of the day for any slot whose time has come. Run every minute."

    def handle(self, *args, **options):
        result = run_uotd_schedule()
        self.stdout.write(self.style.SUCCESS(f"Published {result['published']} scheduled UOTD post(s)."))
