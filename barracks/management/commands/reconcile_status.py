from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from ...cleanup import analyze_statuses, delete_orphaned, delete_stale, resolve_duplicate
from ...exceptions import WorkflowError


class Command(BaseCommand):
    help = "Report status rows filed under mismatched identifiers and optionally clean them up."

    def add_arguments(self, parser):
        parser.add_argument(
            "--delete-stale",
            action="store_true",
            help="Delete roster-id rows for people whose status lives under their account.",
        )
        parser.add_argument(
            "--delete-orphaned",
            action="store_true",
            help="Delete rows that match nobody on the roster.",
        )
        parser.add_argument(
            "--resolve",
            metavar="PERSONNEL_ID",
            help="Collapse the two status rows of one person into one.",
        )
        parser.add_argument(
            "--keep",
            choices=["account", "personnel"],
            default="account",
            help="Which row --resolve keeps (default: account).",
        )

    def handle(self, *args, **options):
        if options["resolve"]:
            try:
                removed = resolve_duplicate(options["resolve"], keep_account=options["keep"] == "account")
            except WorkflowError as exc:
                raise CommandError(exc.message)
            self.stdout.write(self.style.SUCCESS(f"Removed status row {removed}."))
            return

        analysis = analyze_statuses()
        for label, count in analysis.summary().items():
            self.stdout.write(f"{label}: {count}")
        for duplicate in analysis.duplicates:
            self.stdout.write(
                self.style.WARNING(
                    f"Duplicate rows for {duplicate.personnel.roster_name}: "
                    f"{duplicate.account_status.person_id} ({duplicate.account_status.status}) and "
                    f"{duplicate.personnel_status.person_id} ({duplicate.personnel_status.status})"
                )
            )

        if options["delete_stale"]:
            deleted = delete_stale(analysis)
            self.stdout.write(self.style.SUCCESS(f"Deleted {len(deleted)} stale row(s)."))
        if options["delete_orphaned"]:
            deleted = delete_orphaned(analysis)
            self.stdout.write(self.style.SUCCESS(f"Deleted {len(deleted)} orphaned row(s)."))
