from __future__ import annotations

from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from .. import cleanup
from ..exceptions import InvalidArgument, NotFound
from ..identity import actor_key
from ..models import Personnel, PersonStatus
from .helpers import make_user


class StatusCleanupTests(TestCase):
    def setUp(self):
        self.account = make_user("linked")
        self.person = Personnel.objects.create(first_name="Lin", last_name="Bo", rank="WO1", account=self.account)
        self.unlinked = Personnel.objects.create(first_name="Ida", last_name="Ames")
        PersonStatus.objects.create(person_id=actor_key(self.account), person_name="Lin Bo")
        PersonStatus.objects.create(person_id=self.person.id, person_name="Lin Bo")
        PersonStatus.objects.create(person_id=self.unlinked.id, person_name="Ida Ames")
        PersonStatus.objects.create(person_id="ghost", person_name="Nobody")

    def test_analysis_classifies_rows(self):
        analysis = cleanup.analyze_statuses()
        self.assertEqual(
            analysis.summary(),
            {"account": 1, "personnel_id": 2, "email": 0, "orphaned": 1, "duplicates": 1, "stale": 1},
        )
        self.assertEqual(analysis.duplicates[0].personnel, self.person)
        self.assertEqual(analysis.stale[0].status.person_id, self.person.id)

    def test_delete_stale_keeps_unlinked_people(self):
        deleted = cleanup.delete_stale()
        self.assertEqual(deleted, [self.person.id])
        self.assertTrue(PersonStatus.objects.filter(pk=self.unlinked.id).exists())
        self.assertTrue(PersonStatus.objects.filter(pk=actor_key(self.account)).exists())

    def test_delete_orphaned(self):
        self.assertEqual(cleanup.delete_orphaned(), ["ghost"])
        self.assertFalse(PersonStatus.objects.filter(pk="ghost").exists())

    def test_resolve_duplicate(self):
        removed = cleanup.resolve_duplicate(self.person.id, keep_account=False)
        self.assertEqual(removed, actor_key(self.account))
        self.assertTrue(PersonStatus.objects.filter(pk=self.person.id).exists())
        with self.assertRaises(InvalidArgument):
            cleanup.resolve_duplicate(self.person.id)

    def test_resolve_duplicate_errors(self):
        with self.assertRaises(NotFound):
            cleanup.resolve_duplicate("missing")
        with self.assertRaises(InvalidArgument):
            cleanup.resolve_duplicate(self.unlinked.id)

    def test_reconcile_command(self):
        out = StringIO()
        call_command("reconcile_status", "--delete-stale", "--delete-orphaned", stdout=out)
        output = out.getvalue()
        self.assertIn("duplicates: 1", output)
        self.assertIn("Deleted 1 stale row(s).", output)
        self.assertIn("Deleted 1 orphaned row(s).", output)
        self.assertEqual(PersonStatus.objects.count(), 2)
