"""
Built-in accessory rules, used whenever the rule store holds none.

Kept in the stored camelCase JSON shape; ``import-catalog`` can seed these
documents into the rule store unchanged.
"""

from __future__ import annotations

from typing import Any

from uotd.models.rules import Rule

DEFAULT_ACCESSORY_RULE_DOCS: tuple[dict[str, Any], ...] = (
    {
        "id": "rain-storm-override",
        "name": "Rain/Storm Weather",
        "description": "Wet weather gear for rain/storm conditions",
        "enabled": True,
        "priority": 1,
        "type": "uniformOverride",
        "conditions": {
            "weather": {
                "types": ["rain", "storm", "thunder", "drizzle", "shower"],
                "precipitationChance": {"min": 50},
            },
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
        "type": "addAccessories",
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
        "type": "addAccessories",
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
        "type": "addAccessories",
        "conditions": {"wind": {"min": 20}},
        "accessories": [
            {
                "name": "Patrol Cap (secured)",
                "required": False,
                "note": "Secure headgear against wind",
            },
        ],
        "notes": "Consider securing headgear or wearing watch cap",
    },
    {
        "id": "twilight-safety",
        "name": "Twilight/Low-Light Safety",
        "description": "Reflective belt and light source during twilight hours",
        "enabled": True,
        "priority": 10,
        "type": "addAccessories",
        "conditions": {"twilight": True},
        "accessories": [
            {
                "name": "Reflective Belt",
                "required": True,
                "reason": "auto-added based on twilight calculation",
            },
            {
                "name": "Light Source",
                "required": True,
                "reason": "auto-added based on twilight calculation",
            },
        ],
    },
    {
        "id": "nighttime-safety",
        "name": "Nighttime Safety",
        "description": "Reflective belt and light source during nighttime hours",
        "enabled": True,
        "priority": 10,
        "type": "addAccessories",
        "conditions": {"nighttime": True},
        "accessories": [
            {
                "name": "Reflective Belt",
                "required": True,
                "reason": "auto-added based on nighttime calculation",
            },
            {
                "name": "Light Source",
                "required": True,
                "reason": "auto-added based on nighttime calculation",
            },
        ],
    },
)

DEFAULT_ACCESSORY_RULES: tuple[Rule, ...] = tuple(
    Rule.model_validate(doc) for doc in DEFAULT_ACCESSORY_RULE_DOCS
)
