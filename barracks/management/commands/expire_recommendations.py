from __future__ import annotations

from django.core.management.base import BaseCommand

from ...weather import expire_old_recommendations


class Command(BaseCommand):
    help = "Mark pending uniform recommendations past their expiry as expired."

    def handle(self, *args, **options):
        result = expire_old_recommendations()
        self.stdout.write(self.style.SUCCESS(f"Expired {result['expired']} recommendation(s)."))
