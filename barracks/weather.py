"""Weather-driven uniform-of-the-day recommendations.

A recommendation is proposed from a weather snapshot, then either approved
by a uniform admin, rejected, published automatically once it has waited
``WOTS_AUTO_PUBLISH_DELAY_MINUTES`` untouched, or expired by the daily job.
Publishing checks for an existing published post in the same (date, slot)
inside the transaction, and the ``unique_published_uotd_per_slot`` index
catches the case where two publishers pass that check at the same time.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Mapping, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from . import timeutils
from .accessories import configured_rules, evaluate_accessory_rules, format_accessory_summary
from .exceptions import AlreadyExists, FailedPrecondition, InvalidArgument, NotFound
from .identity import SYSTEM_ACTOR, SYSTEM_ACTOR_NAME, actor_key, display_name
from .models import MealSlot, Post, UOTDScheduleSlot, Uniform, WeatherRecommendation, WeatherRule
from .roles import APPROVE_WEATHER_UOTD, has_permission, require_permission
from .rules import find_matching_rule

logger = logging.getLogger(__name__)

POST_EXISTS_REASON = "Post already exists"


def js_round(value) -> int:
    """Round half up, the way the posted figures have always been rounded."""
    return int(math.floor(float(value) + 0.5))


def _plain(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_weather_summary(weather: Mapping) -> str:
    condition = weather.get("weatherMain") or "Clear"
    summary = (
        f"Current weather: {js_round(weather.get('temperature') or 0)}°, {condition}. "
        f"Humidity: {_plain(weather.get('humidity'))}%, "
        f"Wind: {js_round(weather.get('windSpeed') or 0)} mph."
    )
    chance = weather.get("precipitationChance") or 0
    if chance > 20:
        summary += f" {js_round(chance)}% chance of precipitation."
    return summary


def build_post_content(
    uniform: Uniform,
    weather: Mapping,
    custom_content: str = "",
    accessory_summary: str = "",
) -> str:
    parts = []
    if uniform.description:
        parts.append(uniform.description)
    parts.append(format_weather_summary(weather))
    if accessory_summary:
        parts.append(accessory_summary)
    if custom_content:
        parts.append(custom_content)
    return "\n\n".join(parts).strip()


def shown_uniform_name(recommendation: WeatherRecommendation, uniform: Uniform) -> str:
    override = recommendation.uniform_override or {}
    return override.get("name") or uniform.name


def existing_uotd_post(target_date, target_slot: str) -> Optional[Post]:
    return Post.objects.published_uotd(target_date, target_slot).first()


def _settings_delay() -> timedelta:
    return timedelta(minutes=getattr(settings, "WOTS_AUTO_PUBLISH_DELAY_MINUTES", 5))


def _recommendation_ttl() -> timedelta:
    return timedelta(hours=getattr(settings, "WOTS_RECOMMENDATION_TTL_HOURS", 24))


def _coerce_id(recommendation_id) -> int:
    if recommendation_id in (None, ""):
        raise InvalidArgument("recommendationId is required")
    try:
        return int(recommendation_id)
    except (TypeError, ValueError):
        raise InvalidArgument("recommendationId must be an integer")


def _publish(
    recommendation: WeatherRecommendation,
    uniform: Uniform,
    *,
    author_id: str,
    author_name: str,
    now: datetime,
    custom_title: str = "",
    custom_content: str = "",
    auto: bool = False,
) -> Post:
    weather = recommendation.weather or {}
    name = shown_uniform_name(recommendation, uniform)
    summary = format_accessory_summary(recommendation.accessories or [], recommendation.uniform_override)
    # Savepoint so a lost race on the unique index leaves the outer transaction usable.
    with transaction.atomic():
        post = Post.objects.create(
            type=Post.Type.UOTD,
            status=Post.Status.PUBLISHED,
            title=custom_title or f"Uniform #{uniform.number} - {name}",
            content=build_post_content(uniform, weather, custom_content, summary),
            uniform=uniform,
            uniform_number=uniform.number,
            uniform_name=name,
            target_date=recommendation.target_date,
            target_slot=recommendation.target_slot,
            author_id=author_id,
            author_name=author_name,
            approved_by_name=author_name,
            weather_based=True,
            auto_published=auto,
            weather_condition=weather.get("weatherMain") or "Clear",
            weather_temp=js_round(weather["temperature"]) if weather.get("temperature") is not None else None,
            published_at=now,
        )
    recommendation.status = WeatherRecommendation.Status.APPROVED
    recommendation.approved_by = author_id
    recommendation.approved_by_name = author_name
    recommendation.approved_at = now
    recommendation.post = post
    recommendation.auto_published = auto
    recommendation.save(
        update_fields=["status", "approved_by", "approved_by_name", "approved_at", "post", "auto_published"]
    )
    return post


def approve_recommendation(
    recommendation_id,
    approver,
    custom_title: str = "",
    custom_content: str = "",
    now: Optional[datetime] = None,
) -> dict:
    require_permission(approver, APPROVE_WEATHER_UOTD, "Must be admin or uniform_admin to approve recommendations")
    pk = _coerce_id(recommendation_id)
    now = now or timezone.now()

    conflict = None
    with transaction.atomic():
        recommendation = WeatherRecommendation.objects.select_for_update().filter(pk=pk).first()
        if recommendation is None:
            raise NotFound("Recommendation not found")
        if recommendation.status != WeatherRecommendation.Status.PENDING:
            raise FailedPrecondition(f"Recommendation is already {recommendation.status}")
        if existing_uotd_post(recommendation.target_date, recommendation.target_slot):
            recommendation.mark_superseded(POST_EXISTS_REASON, now=now)
            conflict = recommendation
        else:
            uniform = recommendation.uniform
            if uniform is None:
                raise NotFound("Associated uniform not found")
            try:
                post = _publish(
                    recommendation,
                    uniform,
                    author_id=actor_key(approver),
                    author_name=display_name(approver),
                    now=now,
                    custom_title=custom_title,
                    custom_content=custom_content,
                )
            except IntegrityError:
                recommendation.mark_superseded(POST_EXISTS_REASON, now=now)
                conflict = recommendation

    # Raised after the block so the superseded mark is committed.
    if conflict is not None:
        raise AlreadyExists(f"UOTD already posted for {conflict.target_slot} on {conflict.target_date}")

    logger.info("Recommendation %s approved by %s as post %s", pk, actor_key(approver), post.pk)
    return {
        "success": True,
        "message": "Recommendation approved and UOTD post created",
        "postId": post.pk,
        "recommendation": {
            "uniformNumber": uniform.number,
            "uniformName": shown_uniform_name(recommendation, uniform),
        },
    }


def reject_recommendation(recommendation_id, approver, reason: str = "", now: Optional[datetime] = None) -> dict:
    require_permission(approver, APPROVE_WEATHER_UOTD, "Must be admin or uniform_admin to reject recommendations")
    pk = _coerce_id(recommendation_id)
    with transaction.atomic():
        recommendation = WeatherRecommendation.objects.select_for_update().filter(pk=pk).first()
        if recommendation is None:
            raise NotFound("Recommendation not found")
        if recommendation.status != WeatherRecommendation.Status.PENDING:
            raise FailedPrecondition(f"Recommendation is already {recommendation.status}")
        recommendation.status = WeatherRecommendation.Status.REJECTED
        recommendation.rejected_by = actor_key(approver)
        recommendation.rejected_at = now or timezone.now()
        recommendation.rejection_reason = reason or ""
        recommendation.save(update_fields=["status", "rejected_by", "rejected_at", "rejection_reason"])
    logger.info("Recommendation %s rejected by %s", pk, actor_key(approver))
    return {"success": True, "message": "Recommendation rejected", "recommendationId": pk}


def pending_count(user) -> dict:
    """Pending recommendations for the admin badge. Zero for anyone not allowed to act on them."""
    if user is None or not user.is_authenticated or not has_permission(user, APPROVE_WEATHER_UOTD):
        return {"count": 0}
    return {"count": WeatherRecommendation.objects.pending().count()}


def expire_old_recommendations(now: Optional[datetime] = None) -> dict:
    now = now or timezone.now()
    expired = WeatherRecommendation.objects.past_expiry(now).update(
        status=WeatherRecommendation.Status.EXPIRED,
        expired_at=now,
    )
    logger.info("Expired %d weather recommendation(s)", expired)
    return {"expired": expired}


def _auto_publish_one(pk: int, now: datetime) -> bool:
    with transaction.atomic():
        recommendation = (
            WeatherRecommendation.objects.select_for_update().select_related("uniform").filter(pk=pk).first()
        )
        if recommendation is None or recommendation.status != WeatherRecommendation.Status.PENDING:
            logger.info("Recommendation %s is no longer pending, skipping", pk)
            return False
        uniform = recommendation.uniform
        if uniform is None:
            logger.warning("Recommendation %s has no uniform, skipping", pk)
            return False
        if existing_uotd_post(recommendation.target_date, recommendation.target_slot):
            recommendation.mark_superseded(POST_EXISTS_REASON, now=now)
            logger.info("Recommendation %s superseded, slot already posted", pk)
            return False
        try:
            _publish(
                recommendation,
                uniform,
                author_id=SYSTEM_ACTOR,
                author_name=SYSTEM_ACTOR_NAME,
                now=now,
                auto=True,
            )
        except IntegrityError:
            recommendation.mark_superseded(POST_EXISTS_REASON, now=now)
            logger.info("Recommendation %s lost the publish race, superseded", pk)
            return False
    return True


def auto_publish_pending_recommendations(now: Optional[datetime] = None) -> dict:
    """Publish every pending recommendation that has waited out the review window."""
    now = now or timezone.now()
    cutoff = now - _settings_delay()
    candidates = list(
        WeatherRecommendation.objects.due_for_auto_publish(cutoff).order_by("created_at").values_list("pk", flat=True)
    )
    published = 0
    for pk in candidates:
        try:
            if _auto_publish_one(pk, now):
                published += 1
                logger.info("Auto-published recommendation %s", pk)
        except Exception:
            logger.exception("Auto-publish failed for recommendation %s", pk)
    logger.info("Auto-publish run: %d of %d candidate(s) published", published, len(candidates))
    return {"autoPublished": published}


def _default_uniform() -> Optional[Uniform]:
    number = getattr(settings, "WOTS_DEFAULT_UNIFORM_NUMBER", None)
    if number is None:
        return None
    return Uniform.objects.filter(number=number).first()


def propose_recommendation(
    weather: Mapping,
    target_slot: Optional[str] = None,
    user=None,
    force: bool = False,
    now: Optional[datetime] = None,
) -> dict:
    """Create a pending recommendation for today's slot from a weather snapshot.

    An open (pending or approved) recommendation for the slot is left alone
    unless ``force`` is set by a signed-in user, who then supersedes it.
    """
    now = now or timezone.now()
    slot = target_slot or timeutils.determine_target_slot(now)
    if slot not in MealSlot.values:
        raise InvalidArgument(f"Unknown meal slot: {slot}")

    rule = find_matching_rule(WeatherRule.objects.select_related("uniform").filter(enabled=True), weather)
    uniform = rule.uniform if rule is not None else _default_uniform()
    if uniform is None:
        return {
            "success": True,
            "message": "No matching rule and no default uniform configured",
            "recommendation": None,
        }

    extras = evaluate_accessory_rules(weather, configured_rules())
    logger.info(
        "Accessory evaluation: %d accessory(ies), override %s",
        len(extras["accessories"]),
        (extras["uniformOverride"] or {}).get("name", "none"),
    )

    target_date = timeutils.today_in(now)
    with transaction.atomic():
        existing = WeatherRecommendation.objects.select_for_update().open_for_slot(target_date, slot).first()
        if existing is not None:
            if not (force and user is not None):
                return {
                    "success": True,
                    "skipped": True,
                    "message": f"Recommendation already exists for {target_date} {slot}",
                    "existingRecommendationId": existing.pk,
                    "recommendation": None,
                }
            existing.mark_superseded("Superseded by manual weather check", by=actor_key(user), now=now)
            logger.info("Superseded recommendation %s for %s %s", existing.pk, target_date, slot)

        recommendation = WeatherRecommendation.objects.create(
            weather=dict(weather),
            target_date=target_date,
            target_slot=slot,
            uniform=uniform,
            matched_rule_name=rule.name if rule is not None else "Default",
            accessories=extras["accessories"],
            uniform_override=extras["uniformOverride"],
            accessory_matched_rules=extras["matchedRules"],
            created_at=now,
            expires_at=now + _recommendation_ttl(),
            created_by=actor_key(user) if user is not None else SYSTEM_ACTOR,
        )

    logger.info("Proposed uniform #%s for %s %s", uniform.number, target_date, slot)
    return {
        "success": True,
        "message": "Weather recommendation created",
        "recommendationId": recommendation.pk,
        "recommendation": {
            "uniformNumber": uniform.number,
            "uniformName": shown_uniform_name(recommendation, uniform),
            "uniformOverride": recommendation.uniform_override,
            "accessories": recommendation.accessories,
            "matchedRule": recommendation.matched_rule_name,
            "targetSlot": slot,
            "targetDate": target_date.isoformat(),
            "twilight": bool(weather.get("isTwilight")),
            "nighttime": bool(weather.get("isNighttime")),
        },
    }


def _schedule_due(slot: UOTDScheduleSlot, now: datetime) -> bool:
    if not slot.enabled or slot.uniform_id is None:
        return False
    if timeutils.current_minutes(now) < timeutils.parse_hhmm(slot.time):
        return False
    return not (slot.last_fired and timeutils.is_today(timeutils.today_in(slot.last_fired), now))


def _fire_schedule_slot(pk: int, now: datetime) -> bool:
    with transaction.atomic():
        slot = UOTDScheduleSlot.objects.select_for_update().select_related("uniform").get(pk=pk)
        if not _schedule_due(slot, now):
            return False
        target_date = timeutils.today_in(now)
        uniform = slot.uniform
        published = False
        if existing_uotd_post(target_date, slot.slot):
            logger.info("Slot %s already has a post for %s", slot.slot, target_date)
        else:
            try:
                with transaction.atomic():
                    Post.objects.create(
                        type=Post.Type.UOTD,
                        status=Post.Status.PUBLISHED,
                        title=f"Uniform of the Day: {uniform.number} - {uniform.name}",
                        content=uniform.description,
                        uniform=uniform,
                        uniform_number=uniform.number,
                        uniform_name=uniform.name,
                        target_date=target_date,
                        target_slot=slot.slot,
                        author_id=SYSTEM_ACTOR,
                        author_name=SYSTEM_ACTOR_NAME,
                        published_at=now,
                    )
                published = True
            except IntegrityError:
                logger.info("Slot %s lost the publish race for %s", slot.slot, target_date)
        slot.last_fired = now
        slot.save(update_fields=["last_fired"])
    return published


def run_uotd_schedule(now: Optional[datetime] = None) -> dict:
    """Publish the fixed-time uniform posts whose time has come, unless weather rules are in charge."""
    now = now or timezone.now()
    if WeatherRule.objects.filter(enabled=True).exists():
        logger.info("Weather rules are active, leaving UOTD posts to the weather pipeline")
        return {"published": 0}
    published = 0
    for slot in UOTDScheduleSlot.objects.select_related("uniform"):
        if not _schedule_due(slot, now):
            continue
        try:
            if _fire_schedule_slot(slot.pk, now):
                published += 1
                logger.info("Published scheduled UOTD for %s", slot.slot)
        except Exception:
            logger.exception("Scheduled UOTD failed for slot %s", slot.slot)
    return {"published": published}
