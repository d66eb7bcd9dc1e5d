"""Accessory and uniform-override recommendations layered on top of the chosen uniform.

Rules are plain dictionaries (``AccessoryRule.as_rule()`` or the built-in
defaults below) so the evaluator has no database dependency.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

from .models import AccessoryRule

ADD_ACCESSORIES = AccessoryRule.Type.ADD_ACCESSORIES
UNIFORM_OVERRIDE = AccessoryRule.Type.UNIFORM_OVERRIDE

# A rule naming weather types still applies from this chance of precipitation.
TYPE_MATCH_THRESHOLD = 50

_REFLECTIVE = [
    {"name": "Reflective Belt", "required": True},
    {"name": "Light Source", "required": True},
]

DEFAULT_ACCESSORY_RULES: List[Dict] = [
    {
        "id": "rain-storm-override",
        "name": "Rain/Storm Weather",
        "description": "Wet weather gear for rain/storm conditions",
        "enabled": True,
        "priority": 1,
        "type": UNIFORM_OVERRIDE,
        "conditions": {
            "weather": {
                "types": ["rain", "storm", "thunder", "drizzle", "shower"],
                "precipitationChance": {"min": 50},
            }
        },
        "uniformOverride": {
            "name": "Wet Weather Gear",
            "description": "OCP, ECWS, Water source",
            "items": ["OCP", "ECWS", "Water source"],
        },
    },
    {
        "id": "extreme-cold",
        "name": "Extreme Cold Weather (Below 40°F)",
        "description": "Fleece jacket and watch cap for very cold conditions",
        "enabled": True,
        "priority": 2,
        "type": ADD_ACCESSORIES,
        "conditions": {"temperature": {"max": 40}},
        "accessories": [
            {"name": "Fleece Jacket", "required": True},
            {"name": "Watch Cap", "required": True},
        ],
    },
    {
        "id": "moderate-cold",
        "name": "Moderate Cold Weather (40-45°F)",
        "description": "Fleece jacket and patrol cap for cool conditions",
        "enabled": True,
        "priority": 3,
        "type": ADD_ACCESSORIES,
        "conditions": {"temperature": {"min": 40, "max": 45}},
        "accessories": [
            {"name": "Fleece Jacket", "required": True},
            {"name": "Patrol Cap", "required": True},
        ],
    },
    {
        "id": "high-wind",
        "name": "High Wind Conditions",
        "description": "Secure headgear in high winds",
        "enabled": True,
        "priority": 5,
        "type": ADD_ACCESSORIES,
        "conditions": {"wind": {"min": 20}},
        "accessories": [
            {"name": "Patrol Cap (secured)", "required": False, "note": "Secure headgear against wind"},
        ],
    },
    {
        "id": "twilight-safety",
        "name": "Twilight/Low-Light Safety",
        "description": "Reflective belt and light source during twilight hours",
        "enabled": True,
        "priority": 10,
        "type": ADD_ACCESSORIES,
        "conditions": {"twilight": True},
        "accessories": [dict(item, reason="auto-added based on twilight calculation") for item in _REFLECTIVE],
    },
    {
        "id": "nighttime-safety",
        "name": "Nighttime Safety",
        "description": "Reflective belt and light source during nighttime hours",
        "enabled": True,
        "priority": 10,
        "type": ADD_ACCESSORIES,
        "conditions": {"nighttime": True},
        "accessories": [dict(item, reason="auto-added based on nighttime calculation") for item in _REFLECTIVE],
    },
]

_LIGHT_KEYS = ("twilight", "nighttime")


def _outside(value, bounds: Optional[Mapping]) -> bool:
    if not bounds:
        return False
    low, high = bounds.get("min"), bounds.get("max")
    return (low is not None and value < low) or (high is not None and value > high)


def matches_condition(weather: Mapping, conditions: Mapping) -> bool:
    """Temperature, weather type, wind and humidity checks. Missing readings count as zero."""
    temperature = conditions.get("temperature")
    if temperature and weather.get("temperature") is not None:
        if _outside(weather["temperature"], temperature):
            return False

    kind = conditions.get("weather")
    if kind:
        condition = (weather.get("weatherMain") or "").lower()
        chance = weather.get("precipitationChance") or 0
        if _outside(chance, {"min": (kind.get("precipitationChance") or {}).get("min")}):
            return False
        types = kind.get("types") or []
        if types and not any(name.lower() in condition for name in types) and chance < TYPE_MATCH_THRESHOLD:
            return False

    if _outside(weather.get("windSpeed") or 0, conditions.get("wind")):
        return False
    if _outside(weather.get("humidity") or 0, conditions.get("humidity")):
        return False
    return True


def _rule_applies(rule: Mapping, weather: Mapping) -> bool:
    conditions = rule.get("conditions") or {}
    if conditions.get("twilight") and not weather.get("isTwilight"):
        return False
    if conditions.get("nighttime") and not weather.get("isNighttime"):
        return False
    if any(key not in _LIGHT_KEYS for key in conditions):
        return matches_condition(weather, conditions)
    return True


def evaluate_accessory_rules(weather: Mapping, rules: Optional[Iterable[Mapping]] = None) -> Dict:
    """Collect accessories and the first uniform override from every matching rule."""
    active = [rule for rule in (DEFAULT_ACCESSORY_RULES if rules is None else rules) if rule.get("enabled")]
    matched: List[Dict] = []
    accessories: List[Dict] = []
    override = None

    for rule in sorted(active, key=lambda r: r.get("priority") or 99):
        if not _rule_applies(rule, weather):
            continue
        matched.append(
            {
                "id": rule.get("id"),
                "name": rule.get("name"),
                "description": rule.get("description", ""),
                "priority": rule.get("priority"),
                "type": rule.get("type"),
            }
        )
        if rule.get("type") == UNIFORM_OVERRIDE and override is None and rule.get("uniformOverride"):
            override = dict(rule["uniformOverride"], ruleId=rule.get("id"), ruleName=rule.get("name"))
        seen = {item["name"] for item in accessories}
        for item in rule.get("accessories") or []:
            if item["name"] in seen:
                continue
            seen.add(item["name"])
            accessories.append(dict(item, fromRule=rule.get("id"), fromRuleName=rule.get("name")))

    return {
        "matchedRules": matched,
        "accessories": accessories,
        "uniformOverride": override,
        "hasRecommendations": bool(accessories) or override is not None,
    }


def configured_rules() -> List[Dict]:
    """Stored rules, or the defaults while none have been configured."""
    stored = [rule.as_rule() for rule in AccessoryRule.objects.all()]
    return stored or list(DEFAULT_ACCESSORY_RULES)


def format_accessory_summary(accessories: Iterable[Mapping], uniform_override: Optional[Mapping] = None) -> str:
    """Human-readable lines for a post body; empty when there is nothing to add."""
    lines = []
    if uniform_override:
        lines.append(f"Uniform: {uniform_override['name']}")
        if uniform_override.get("description"):
            lines.append(f"({uniform_override['description']})")
    accessories = list(accessories)
    required = [item["name"] for item in accessories if item.get("required")]
    optional = [item["name"] for item in accessories if not item.get("required")]
    if required:
        lines.append(f"Required: {', '.join(required)}")
    if optional:
        lines.append(f"Recommended: {', '.join(optional)}")
    return "\n".join(lines)
