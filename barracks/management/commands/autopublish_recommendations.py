from __future__ import annotations

from django.core.management.base import BaseCommand

from ...weather import auto_publish_pending_recommendations


class Command(BaseCommand):
    help = "Publish uniform recommendations nobody reviewed within the review window."

    def handle(self, *args, **options):
        result = auto_publish_pending_recommendations()
        self.stdout.write(self.style.SUCCESS(f"Auto-published {result['autoPublished']} recommendation(s)."))
