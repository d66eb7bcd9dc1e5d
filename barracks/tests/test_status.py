from __future__ import annotations

from django.core.exceptions import ValidationError
from django.test import TestCase

from .. import status
from ..exceptions import FailedPrecondition, InvalidArgument, NotFound
from ..identity import actor_key
from ..models import Personnel, PersonStatus, PersonStatusHistory
from ..roles import Role
from .helpers import local, make_user

Action = PersonStatusHistory.Action
Stage = PersonStatus.Stage


class StatusWorkflowTests(TestCase):
    def setUp(self):
        self.now = local(2024, 6, 12, 14, 0)
        self.leader = make_user("leader", first_name="Alex", last_name="Reyes")
        self.buddy = make_user("buddy", first_name="Sam", last_name="Kim")
        self.admin = make_user("cq", role=Role.CANDIDATE_LEADERSHIP, first_name="Dana", last_name="Cruz")
        self.leader_key = actor_key(self.leader)
        self.buddy_key = actor_key(self.buddy)

    def _record(self, key):
        return PersonStatus.objects.get(pk=key)

    def _sign_out_group(self):
        return status.sign_out(
            self.leader,
            destination="PX",
            contact_number="555-0100",
            companions=[{"id": self.buddy_key, "name": "Sam Kim", "rank": "WO1"}],
            now=self.now,
        )

    def test_group_sign_out_puts_companions_on_pass(self):
        leader = self._sign_out_group()
        self.assertEqual(leader.status, PersonStatus.Status.PASS)
        self.assertEqual(leader.pass_stage, Stage.ENROUTE_TO)
        self.assertEqual(leader.companion_ids, [self.buddy_key])
        self.assertTrue(leader.group_sign_out)

        buddy = self._record(self.buddy_key)
        self.assertEqual(buddy.status, PersonStatus.Status.PASS)
        self.assertEqual(buddy.pass_stage, Stage.ENROUTE_TO)
        self.assertEqual(buddy.with_person_id, self.leader_key)
        self.assertEqual(buddy.notes, "With Alex Reyes")
        self.assertEqual(buddy.destination, "PX")
        self.assertTrue(buddy.group_sign_out)

        history = status.history_for(self.buddy_key)
        self.assertEqual([entry.action for entry in history], [Action.SIGN_OUT])
        self.assertTrue(history[0].group_action)

    def test_stage_change_carries_to_companions(self):
        self._sign_out_group()
        status.update_stage(self.leader, Stage.ARRIVED, now=self.now)
        self.assertEqual(self._record(self.leader_key).pass_stage, Stage.ARRIVED)
        self.assertEqual(self._record(self.buddy_key).pass_stage, Stage.ARRIVED)
        self.assertEqual(status.history_for(self.buddy_key)[0].action, Action.STAGE_ARRIVED)

    def test_break_free_leaves_group_but_stays_out(self):
        self._sign_out_group()
        buddy = status.break_free(self.buddy, now=self.now)
        self.assertEqual(buddy.status, PersonStatus.Status.PASS)
        self.assertEqual(buddy.with_person_id, "")
        self.assertEqual(buddy.notes, "Separated from group (was with Alex Reyes)")
        self.assertEqual(self._record(self.leader_key).companions, [])

        status.update_stage(self.leader, Stage.ENROUTE_BACK, now=self.now)
        self.assertEqual(self._record(self.buddy_key).pass_stage, Stage.ENROUTE_TO)

    def test_break_free_errors(self):
        with self.assertRaises(NotFound):
            status.break_free(self.buddy, now=self.now)
        status.sign_out(self.buddy, destination="Gym", now=self.now)
        with self.assertRaises(FailedPrecondition):
            status.break_free(self.buddy, now=self.now)

    def test_leader_sign_in_returns_group(self):
        self._sign_out_group()
        leader = status.sign_in(self.leader, now=self.now)
        self.assertEqual(leader.status, PersonStatus.Status.PRESENT)
        self.assertIsNone(leader.pass_stage)
        self.assertEqual(leader.companions, [])

        buddy = self._record(self.buddy_key)
        self.assertEqual(buddy.status, PersonStatus.Status.PRESENT)
        self.assertIsNone(buddy.pass_stage)
        self.assertEqual(buddy.with_person_id, "")
        self.assertEqual(status.history_for(self.buddy_key)[0].action, Action.ARRIVED_BARRACKS)

    def test_companion_sign_in_detaches_from_leader(self):
        self._sign_out_group()
        status.sign_in(self.buddy, now=self.now)
        leader = self._record(self.leader_key)
        self.assertEqual(leader.status, PersonStatus.Status.PASS)
        self.assertEqual(leader.companions, [])
        self.assertFalse(leader.group_sign_out)

    def test_sign_in_is_idempotent(self):
        status.sign_in(self.leader, now=self.now)
        record = status.sign_in(self.leader, now=self.now)
        self.assertEqual(record.status, PersonStatus.Status.PRESENT)
        self.assertEqual(PersonStatus.objects.filter(pk=self.leader_key).count(), 1)

    def test_update_stage_errors(self):
        with self.assertRaises(InvalidArgument):
            status.update_stage(self.leader, "teleported", now=self.now)
        with self.assertRaises(NotFound):
            status.update_stage(self.leader, Stage.ARRIVED, now=self.now)

    def test_companion_list_is_validated(self):
        with self.assertRaises(InvalidArgument):
            status.sign_out(
                self.leader,
                destination="PX",
                companions=[{"id": self.leader_key, "name": "Alex Reyes"}],
                now=self.now,
            )
        with self.assertRaises(InvalidArgument):
            status.sign_out(
                self.leader,
                destination="PX",
                companions=[{"id": self.buddy_key}, {"id": self.buddy_key}],
                now=self.now,
            )
        self.assertFalse(PersonStatus.objects.exists())

    def test_group_leader_cannot_be_listed_as_companion(self):
        third = make_user("third")
        status.sign_out(
            self.buddy,
            destination="Gym",
            companions=[{"id": actor_key(third), "name": "Third"}],
            now=self.now,
        )
        with self.assertRaises(FailedPrecondition):
            self._sign_out_group()

    def test_sick_call_detaches_from_group(self):
        self._sign_out_group()
        record = status.sign_out_sick_call(self.buddy, notes="Knee", now=self.now)
        self.assertEqual(record.status, PersonStatus.Status.SICK_CALL)
        self.assertIsNone(record.pass_stage)
        self.assertEqual(record.destination, "Sick Call")
        self.assertEqual(record.with_person_id, "")
        self.assertEqual(self._record(self.leader_key).companions, [])

    def test_bulk_sign_in(self):
        self._sign_out_group()
        solo = make_user("solo")
        status.sign_out(solo, destination="Library", now=self.now)

        count = status.bulk_sign_in(self.admin, [self.leader_key, actor_key(solo), "ghost"], now=self.now)
        self.assertEqual(count, 2)
        for key in (self.leader_key, self.buddy_key, actor_key(solo)):
            record = self._record(key)
            self.assertEqual(record.status, PersonStatus.Status.PRESENT)
            self.assertTrue(record.admin_sign_in)
        entry = status.history_for(actor_key(solo))[0]
        self.assertEqual(entry.action, Action.ADMIN_SIGN_IN)
        self.assertEqual(entry.actor_name, "Dana Cruz")

    def test_my_status_defaults_to_present(self):
        record = status.my_status(self.leader)
        self.assertEqual(record.status, PersonStatus.Status.PRESENT)
        self.assertEqual(record.person_id, self.leader_key)
        self.assertFalse(PersonStatus.objects.exists())


class StatusInvariantTests(TestCase):
    def test_stage_requires_pass(self):
        with self.assertRaises(ValidationError):
            PersonStatus(person_id="a", status=PersonStatus.Status.PASS).save()
        with self.assertRaises(ValidationError):
            PersonStatus(person_id="b", pass_stage=PersonStatus.Stage.ARRIVED).save()

    def test_cannot_lead_and_follow(self):
        record = PersonStatus(
            person_id="c",
            status=PersonStatus.Status.PASS,
            pass_stage=PersonStatus.Stage.ENROUTE_TO,
            companions=[{"id": "d", "name": "", "rank": ""}],
            with_person_id="e",
        )
        with self.assertRaises(ValidationError):
            record.save()

    def test_history_is_write_once(self):
        entry = PersonStatusHistory.objects.create(
            person_id="a",
            action=Action.SIGN_OUT,
            status=PersonStatus.Status.PASS,
            pass_stage=PersonStatus.Stage.ENROUTE_TO,
        )
        entry.notes = "edited"
        with self.assertRaises(ValidationError):
            entry.save()
        with self.assertRaises(ValidationError):
            entry.delete()
        self.assertEqual(PersonStatusHistory.objects.get(pk=entry.pk).notes, "")


class RosterTests(TestCase):
    def test_status_found_under_each_identifier(self):
        account = make_user("linked", email="linked@example.com")
        by_id = Personnel.objects.create(first_name="Ida", last_name="Ames")
        by_account = Personnel.objects.create(first_name="Lin", last_name="Bo", account=account)
        by_email = Personnel.objects.create(first_name="Eve", last_name="Cole", email="Eve@Example.com")
        nobody = Personnel.objects.create(first_name="Nat", last_name="Dunn")

        PersonStatus.objects.create(person_id=by_id.id, person_name="Ida Ames")
        PersonStatus.objects.create(person_id=actor_key(account), person_name="Lin Bo")
        PersonStatus.objects.create(
            person_id="legacy-key",
            person_name="Eve Cole",
            user_email="eve@example.com",
            self_updated=True,
        )

        matches = {entry.personnel.pk: entry for entry in status.personnel_with_status()}
        self.assertEqual(matches[by_id.pk].matched_by, status.MATCH_PERSONNEL_ID)
        self.assertEqual(matches[by_account.pk].matched_by, status.MATCH_ACCOUNT)
        self.assertEqual(matches[by_email.pk].matched_by, status.MATCH_EMAIL)
        self.assertEqual(matches[by_email.pk].status.person_id, "legacy-key")
        self.assertIsNone(matches[nobody.pk].matched_by)
        self.assertEqual(matches[nobody.pk].status.status, PersonStatus.Status.PRESENT)
