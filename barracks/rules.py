"""Match a weather snapshot against the configured uniform rules."""
from __future__ import annotations

from typing import Iterable, Mapping, Optional

from .models import WeatherRule

# Below this chance of precipitation a rule that names precipitation types
# only applies when the current condition is one of them.
PRECIPITATION_TYPE_THRESHOLD = 30


def in_range(value, bounds: Optional[Mapping]) -> bool:
    """Inclusive range check. Missing data or missing bounds always pass."""
    if not bounds or value is None:
        return True
    low, high = bounds.get("min"), bounds.get("max")
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def matches_precipitation(weather: Mapping, precipitation: Optional[Mapping]) -> bool:
    if not precipitation:
        return True
    chance = weather.get("precipitationChance") or 0

    types = precipitation.get("types") or []
    if types:
        condition = (weather.get("weatherMain") or "").lower()
        matched = any(
            kind.lower() in condition
            or (kind.lower() == "rain" and condition == "drizzle")
            or (kind.lower() == "snow" and condition == "sleet")
            for kind in types
        )
        if not matched and chance < PRECIPITATION_TYPE_THRESHOLD:
            return False

    return in_range(chance, precipitation.get("probability"))


def evaluate_rule(rule: WeatherRule, weather: Mapping) -> bool:
    if not rule.enabled:
        return False
    conditions = rule.conditions or {}
    if not in_range(weather.get("temperature"), conditions.get("temperature")):
        return False
    if not in_range(weather.get("humidity"), conditions.get("humidity")):
        return False
    wind = conditions.get("wind")
    if wind and not in_range(weather.get("windSpeed"), {"min": wind.get("speedMin"), "max": wind.get("speedMax")}):
        return False
    if not in_range(weather.get("uvIndex"), conditions.get("uvIndex")):
        return False
    return matches_precipitation(weather, conditions.get("precipitation"))


def find_matching_rule(rules: Iterable[WeatherRule], weather: Mapping) -> Optional[WeatherRule]:
    """First enabled rule, by ascending priority, whose conditions all hold."""
    for rule in sorted(rules, key=lambda r: r.priority or 0):
        if evaluate_rule(rule, weather):
            return rule
    return None
