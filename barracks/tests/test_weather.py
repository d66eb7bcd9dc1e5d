from __future__ import annotations

from datetime import date, timedelta
from unittest import mock

from django.test import SimpleTestCase, TestCase, override_settings

from .. import weather
from ..exceptions import AlreadyExists, FailedPrecondition, InvalidArgument, PermissionDenied
from ..models import AccessoryRule, MealSlot, Post, UOTDScheduleSlot, Uniform, WeatherRecommendation, WeatherRule
from ..roles import Role
from ..rules import find_matching_rule
from .helpers import local, make_user

RecStatus = WeatherRecommendation.Status


class WeatherSummaryTests(SimpleTestCase):
    def test_summary_with_precipitation(self):
        summary = weather.format_weather_summary(
            {
                "temperature": 71.5,
                "weatherMain": "Rain",
                "humidity": 80,
                "windSpeed": 12.4,
                "precipitationChance": 65,
            }
        )
        self.assertEqual(
            summary,
            "Current weather: 72°, Rain. Humidity: 80%, Wind: 12 mph. 65% chance of precipitation.",
        )

    def test_summary_defaults(self):
        summary = weather.format_weather_summary({"temperature": 40, "humidity": 30, "precipitationChance": 20})
        self.assertEqual(summary, "Current weather: 40°, Clear. Humidity: 30%, Wind: 0 mph.")

    def test_half_values_round_up(self):
        self.assertEqual(weather.js_round(2.5), 3)
        self.assertEqual(weather.js_round(-2.5), -2)


class RuleMatchingTests(TestCase):
    def setUp(self):
        self.rain_gear = Uniform.objects.create(number=2, name="OCP with Gore-Tex")
        self.summer = Uniform.objects.create(number=1, name="OCP")
        self.rain = WeatherRule.objects.create(
            name="Rain",
            priority=1,
            uniform=self.rain_gear,
            conditions={"precipitation": {"types": ["rain"], "probability": {"min": 0}}},
        )
        self.warm = WeatherRule.objects.create(
            name="Warm",
            priority=5,
            uniform=self.summer,
            conditions={"temperature": {"min": 60}},
        )

    def test_lowest_priority_number_wins(self):
        rule = find_matching_rule(WeatherRule.objects.all(), {"temperature": 75, "weatherMain": "Rain"})
        self.assertEqual(rule, self.rain)

    def test_drizzle_counts_as_rain(self):
        rule = find_matching_rule(
            WeatherRule.objects.all(),
            {"temperature": 50, "weatherMain": "Drizzle", "precipitationChance": 10},
        )
        self.assertEqual(rule, self.rain)

    def test_high_chance_overrides_condition_type(self):
        rule = find_matching_rule(
            WeatherRule.objects.all(),
            {"temperature": 50, "weatherMain": "Clouds", "precipitationChance": 40},
        )
        self.assertEqual(rule, self.rain)

    def test_falls_through_to_next_rule(self):
        rule = find_matching_rule(
            WeatherRule.objects.all(),
            {"temperature": 75, "weatherMain": "Clear", "precipitationChance": 5},
        )
        self.assertEqual(rule, self.warm)

    def test_disabled_rules_never_match(self):
        self.rain.enabled = False
        self.rain.save()
        self.warm.enabled = False
        self.warm.save()
        self.assertIsNone(find_matching_rule(WeatherRule.objects.all(), {"temperature": 75, "weatherMain": "Rain"}))


class RecommendationTests(TestCase):
    def setUp(self):
        self.now = local(2024, 6, 12, 14, 0)
        self.uniform = Uniform.objects.create(number=3, name="PT Uniform", description="Black shorts, gray shirt.")
        self.uniform_admin = make_user("uniforms", role=Role.UNIFORM_ADMIN, first_name="Kim", last_name="Vo")
        self.trainee = make_user("trainee")

    def _recommendation(self, slot=MealSlot.LUNCH, created_at=None, **extra):
        created_at = created_at or self.now
        return WeatherRecommendation.objects.create(
            weather={"temperature": 81.2, "weatherMain": "Clear", "humidity": 40, "windSpeed": 3},
            target_date=date(2024, 6, 12),
            target_slot=slot,
            uniform=self.uniform,
            created_at=created_at,
            expires_at=created_at + timedelta(hours=24),
            **extra,
        )

    def test_approve_publishes_post(self):
        recommendation = self._recommendation()
        result = weather.approve_recommendation(recommendation.pk, self.uniform_admin, now=self.now)

        post = Post.objects.get(pk=result["postId"])
        self.assertEqual(post.type, Post.Type.UOTD)
        self.assertEqual(post.status, Post.Status.PUBLISHED)
        self.assertEqual(post.title, "Uniform #3 - PT Uniform")
        self.assertTrue(post.content.startswith("Black shorts, gray shirt.\n\nCurrent weather: 81°"))
        self.assertEqual(post.author_name, "Kim Vo")
        self.assertEqual(result["recommendation"], {"uniformNumber": 3, "uniformName": "PT Uniform"})

        recommendation.refresh_from_db()
        self.assertEqual(recommendation.status, RecStatus.APPROVED)
        self.assertEqual(recommendation.post, post)
        self.assertFalse(recommendation.auto_published)

    def test_custom_title_and_content(self):
        recommendation = self._recommendation()
        result = weather.approve_recommendation(
            recommendation.pk,
            self.uniform_admin,
            custom_title="Rain plan",
            custom_content="Bring a jacket.",
            now=self.now,
        )
        post = Post.objects.get(pk=result["postId"])
        self.assertEqual(post.title, "Rain plan")
        self.assertTrue(post.content.endswith("Bring a jacket."))

    def test_only_uniform_admins_approve(self):
        recommendation = self._recommendation()
        with self.assertRaises(PermissionDenied):
            weather.approve_recommendation(recommendation.pk, self.trainee, now=self.now)
        with self.assertRaises(InvalidArgument):
            weather.approve_recommendation(None, self.uniform_admin, now=self.now)

    def test_existing_post_supersedes(self):
        first = self._recommendation()
        second = self._recommendation()
        weather.approve_recommendation(first.pk, self.uniform_admin, now=self.now)

        with self.assertRaises(AlreadyExists):
            weather.approve_recommendation(second.pk, self.uniform_admin, now=self.now)
        second.refresh_from_db()
        self.assertEqual(second.status, RecStatus.SUPERSEDED)
        self.assertEqual(second.superseded_reason, weather.POST_EXISTS_REASON)

    def test_unique_index_catches_concurrent_publish(self):
        first = self._recommendation()
        second = self._recommendation()
        # Both approvers pass the read check before either post is written.
        with mock.patch("barracks.weather.existing_uotd_post", return_value=None):
            weather.approve_recommendation(first.pk, self.uniform_admin, now=self.now)
            with self.assertRaises(AlreadyExists):
                weather.approve_recommendation(second.pk, self.uniform_admin, now=self.now)

        self.assertEqual(Post.objects.published_uotd(date(2024, 6, 12), MealSlot.LUNCH).count(), 1)
        second.refresh_from_db()
        self.assertEqual(second.status, RecStatus.SUPERSEDED)

    def test_other_slot_is_independent(self):
        weather.approve_recommendation(self._recommendation().pk, self.uniform_admin, now=self.now)
        dinner = self._recommendation(slot=MealSlot.DINNER)
        weather.approve_recommendation(dinner.pk, self.uniform_admin, now=self.now)
        self.assertEqual(Post.objects.filter(type=Post.Type.UOTD).count(), 2)

    def test_reject(self):
        recommendation = self._recommendation()
        result = weather.reject_recommendation(recommendation.pk, self.uniform_admin, reason="Wrong season")
        self.assertEqual(result["recommendationId"], recommendation.pk)
        recommendation.refresh_from_db()
        self.assertEqual(recommendation.status, RecStatus.REJECTED)
        self.assertEqual(recommendation.rejection_reason, "Wrong season")
        with self.assertRaises(FailedPrecondition):
            weather.reject_recommendation(recommendation.pk, self.uniform_admin)

    def test_pending_count_is_zero_without_permission(self):
        self._recommendation()
        self._recommendation(slot=MealSlot.DINNER)
        self.assertEqual(weather.pending_count(self.trainee), {"count": 0})
        self.assertEqual(weather.pending_count(self.uniform_admin), {"count": 2})

    def test_expire_old_recommendations(self):
        stale = self._recommendation(created_at=self.now - timedelta(days=2))
        fresh = self._recommendation(slot=MealSlot.DINNER)
        self.assertEqual(weather.expire_old_recommendations(now=self.now), {"expired": 1})
        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.status, RecStatus.EXPIRED)
        self.assertEqual(stale.expired_at, self.now)
        self.assertEqual(fresh.status, RecStatus.PENDING)

    @override_settings(WOTS_AUTO_PUBLISH_DELAY_MINUTES=5)
    def test_auto_publish_waits_out_the_delay(self):
        waited = self._recommendation(created_at=self.now - timedelta(minutes=10))
        recent = self._recommendation(slot=MealSlot.DINNER, created_at=self.now - timedelta(minutes=1))

        self.assertEqual(weather.auto_publish_pending_recommendations(now=self.now), {"autoPublished": 1})
        waited.refresh_from_db()
        recent.refresh_from_db()
        self.assertEqual(waited.status, RecStatus.APPROVED)
        self.assertTrue(waited.auto_published)
        self.assertEqual(waited.post.author_name, "The Guardians")
        self.assertTrue(waited.post.auto_published)
        self.assertEqual(recent.status, RecStatus.PENDING)

    def test_auto_publish_supersedes_when_slot_is_taken(self):
        taken = self._recommendation()
        weather.approve_recommendation(taken.pk, self.uniform_admin, now=self.now)
        late = self._recommendation(created_at=self.now - timedelta(minutes=30))

        self.assertEqual(weather.auto_publish_pending_recommendations(now=self.now), {"autoPublished": 0})
        late.refresh_from_db()
        self.assertEqual(late.status, RecStatus.SUPERSEDED)

    def test_auto_publish_failure_does_not_stop_the_batch(self):
        broken = self._recommendation(created_at=self.now - timedelta(minutes=20))
        broken.weather = {"temperature": "hot", "weatherMain": "Clear"}
        broken.save()
        good = self._recommendation(slot=MealSlot.DINNER, created_at=self.now - timedelta(minutes=10))

        with self.assertLogs("barracks.weather", level="ERROR"):
            result = weather.auto_publish_pending_recommendations(now=self.now)

        self.assertEqual(result, {"autoPublished": 1})
        broken.refresh_from_db()
        good.refresh_from_db()
        self.assertEqual(broken.status, RecStatus.PENDING)
        self.assertIsNone(broken.post)
        self.assertEqual(good.status, RecStatus.APPROVED)
        self.assertEqual(Post.objects.filter(type=Post.Type.UOTD).count(), 1)

    def test_auto_publish_skips_recommendation_decided_meanwhile(self):
        late = self._recommendation(created_at=self.now - timedelta(minutes=30))
        publish_one = weather._auto_publish_one

        def rejected_first(pk, now):
            weather.reject_recommendation(pk, self.uniform_admin, reason="Changed plan", now=now)
            return publish_one(pk, now)

        with mock.patch("barracks.weather._auto_publish_one", side_effect=rejected_first):
            result = weather.auto_publish_pending_recommendations(now=self.now)

        self.assertEqual(result, {"autoPublished": 0})
        late.refresh_from_db()
        self.assertEqual(late.status, RecStatus.REJECTED)
        self.assertFalse(Post.objects.exists())

    def test_publish_carries_accessories_and_override(self):
        recommendation = self._recommendation(
            accessories=[
                {"name": "Reflective Belt", "required": True},
                {"name": "Patrol Cap (secured)", "required": False},
            ],
            uniform_override={"name": "Wet Weather Gear", "description": "OCP, ECWS, Water source"},
        )
        result = weather.approve_recommendation(recommendation.pk, self.uniform_admin, now=self.now)

        post = Post.objects.get(pk=result["postId"])
        self.assertEqual(post.title, "Uniform #3 - Wet Weather Gear")
        self.assertEqual(post.uniform_name, "Wet Weather Gear")
        self.assertIn("Uniform: Wet Weather Gear\n(OCP, ECWS, Water source)", post.content)
        self.assertIn("Required: Reflective Belt", post.content)
        self.assertIn("Recommended: Patrol Cap (secured)", post.content)


class ProposeRecommendationTests(TestCase):
    def setUp(self):
        self.now = local(2024, 6, 12, 14, 0)
        self.uniform = Uniform.objects.create(number=4, name="OCP")
        WeatherRule.objects.create(name="Warm", priority=1, uniform=self.uniform, conditions={"temperature": {"min": 60}})
        self.uniform_admin = make_user("uniforms", role=Role.UNIFORM_ADMIN)

    def test_creates_pending_recommendation_for_current_slot(self):
        result = weather.propose_recommendation({"temperature": 75}, now=self.now)
        recommendation = WeatherRecommendation.objects.get(pk=result["recommendationId"])
        self.assertEqual(recommendation.status, RecStatus.PENDING)
        self.assertEqual(recommendation.target_slot, MealSlot.LUNCH)
        self.assertEqual(recommendation.target_date, date(2024, 6, 12))
        self.assertEqual(recommendation.matched_rule_name, "Warm")
        self.assertEqual(recommendation.created_by, "system")
        self.assertEqual(recommendation.expires_at, self.now + timedelta(hours=24))

    def test_open_recommendation_is_kept_unless_forced(self):
        first = weather.propose_recommendation({"temperature": 75}, now=self.now)
        skipped = weather.propose_recommendation({"temperature": 76}, now=self.now)
        self.assertTrue(skipped["skipped"])
        self.assertEqual(skipped["existingRecommendationId"], first["recommendationId"])

        forced = weather.propose_recommendation({"temperature": 76}, user=self.uniform_admin, force=True, now=self.now)
        old = WeatherRecommendation.objects.get(pk=first["recommendationId"])
        self.assertEqual(old.status, RecStatus.SUPERSEDED)
        self.assertEqual(old.superseded_by, str(self.uniform_admin.pk))
        self.assertEqual(
            WeatherRecommendation.objects.get(pk=forced["recommendationId"]).created_by,
            str(self.uniform_admin.pk),
        )

    def test_no_rule_and_no_default(self):
        result = weather.propose_recommendation({"temperature": 20}, now=self.now)
        self.assertIsNone(result["recommendation"])
        self.assertFalse(WeatherRecommendation.objects.exists())

    @override_settings(WOTS_DEFAULT_UNIFORM_NUMBER=4)
    def test_falls_back_to_default_uniform(self):
        result = weather.propose_recommendation({"temperature": 20}, target_slot=MealSlot.DINNER, now=self.now)
        self.assertEqual(result["recommendation"]["matchedRule"], "Default")
        self.assertEqual(result["recommendation"]["targetSlot"], MealSlot.DINNER)

    def test_unknown_slot(self):
        with self.assertRaises(InvalidArgument):
            weather.propose_recommendation({"temperature": 75}, target_slot="brunch", now=self.now)

    def test_cold_dark_morning_adds_accessories(self):
        WeatherRule.objects.create(name="Any", priority=9, uniform=self.uniform, conditions={})
        result = weather.propose_recommendation(
            {"temperature": 35, "weatherMain": "Clear", "isTwilight": True},
            target_slot=MealSlot.BREAKFAST,
            now=self.now,
        )
        names = [item["name"] for item in result["recommendation"]["accessories"]]
        self.assertEqual(names, ["Fleece Jacket", "Watch Cap", "Reflective Belt", "Light Source"])
        self.assertIsNone(result["recommendation"]["uniformOverride"])
        self.assertTrue(result["recommendation"]["twilight"])

        recommendation = WeatherRecommendation.objects.get(pk=result["recommendationId"])
        self.assertEqual(
            [rule["id"] for rule in recommendation.accessory_matched_rules],
            ["extreme-cold", "twilight-safety"],
        )

    def test_rain_override_renames_the_uniform(self):
        result = weather.propose_recommendation(
            {"temperature": 65, "weatherMain": "Rain", "precipitationChance": 80},
            now=self.now,
        )
        self.assertEqual(result["recommendation"]["uniformName"], "Wet Weather Gear")
        self.assertEqual(result["recommendation"]["uniformNumber"], 4)
        recommendation = WeatherRecommendation.objects.get(pk=result["recommendationId"])
        self.assertEqual(recommendation.uniform_override["ruleId"], "rain-storm-override")

    def test_stored_accessory_rules_replace_the_defaults(self):
        AccessoryRule.objects.create(
            slug="gloves",
            name="Gloves",
            priority=1,
            conditions={"temperature": {"max": 70}},
            accessories=[{"name": "Gloves", "required": False}],
        )
        result = weather.propose_recommendation({"temperature": 65}, now=self.now)
        self.assertEqual([item["name"] for item in result["recommendation"]["accessories"]], ["Gloves"])


class UOTDScheduleTests(TestCase):
    def setUp(self):
        self.uniform = Uniform.objects.create(number=7, name="OCP", description="Sleeves down.")
        self.breakfast = UOTDScheduleSlot.objects.create(slot=MealSlot.BREAKFAST, time="06:00", uniform=self.uniform)
        self.lunch = UOTDScheduleSlot.objects.create(slot=MealSlot.LUNCH, time="11:30", uniform=self.uniform)

    def test_publishes_slots_whose_time_has_come(self):
        result = weather.run_uotd_schedule(now=local(2024, 6, 12, 6, 0))
        self.assertEqual(result, {"published": 1})

        post = Post.objects.get(target_slot=MealSlot.BREAKFAST)
        self.assertEqual(post.title, "Uniform of the Day: 7 - OCP")
        self.assertEqual(post.target_date, date(2024, 6, 12))
        self.assertEqual(post.author_name, "The Guardians")
        self.breakfast.refresh_from_db()
        self.assertEqual(self.breakfast.last_fired, local(2024, 6, 12, 6, 0))

    def test_fires_once_per_day(self):
        weather.run_uotd_schedule(now=local(2024, 6, 12, 6, 0))
        self.assertEqual(weather.run_uotd_schedule(now=local(2024, 6, 12, 6, 1)), {"published": 0})
        self.assertEqual(weather.run_uotd_schedule(now=local(2024, 6, 13, 6, 0)), {"published": 1})

    def test_weather_rules_take_over(self):
        WeatherRule.objects.create(name="Warm", uniform=self.uniform, conditions={"temperature": {"min": 60}})
        self.assertEqual(weather.run_uotd_schedule(now=local(2024, 6, 12, 12, 0)), {"published": 0})
        self.assertFalse(Post.objects.exists())

    def test_existing_post_is_left_alone(self):
        Post.objects.create(
            type=Post.Type.UOTD,
            status=Post.Status.PUBLISHED,
            title="Manual",
            target_date=date(2024, 6, 12),
            target_slot=MealSlot.BREAKFAST,
            author_id="1",
            author_name="Admin",
        )
        self.assertEqual(weather.run_uotd_schedule(now=local(2024, 6, 12, 6, 30)), {"published": 0})
        self.breakfast.refresh_from_db()
        self.assertIsNotNone(self.breakfast.last_fired)

    def test_disabled_or_unassigned_slots_are_skipped(self):
        self.breakfast.enabled = False
        self.breakfast.save()
        self.lunch.uniform = None
        self.lunch.save()
        self.assertEqual(weather.run_uotd_schedule(now=local(2024, 6, 12, 12, 0)), {"published": 0})
