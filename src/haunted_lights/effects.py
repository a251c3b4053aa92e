"""Effect table for haunted_lights.

Each static effect maps to the ordered command batch sent to every device.
`flicker` has no batch: the dispatcher plays it as a sequence of pulses.
"""

from __future__ import annotations

import json
from types import MappingProxyType

from .models import Command

BLACKOUT = "blackout"
FLASH_RED = "flash-red"
RESET = "reset"
DIM = "dim"
FLICKER = "flicker"

_RED_HSV = json.dumps({"h": 0, "s": 1000, "v": 1000}, separators=(",", ":"))

STATIC_EFFECTS: MappingProxyType[str, tuple[Command, ...]] = MappingProxyType(
    {
        BLACKOUT: (
            Command("switch_led", False),
            Command("switch", False),
        ),
        FLASH_RED: (
            Command("switch_led", True),
            Command("work_mode", "colour"),
            # Sent as a JSON string; most bulbs reject the bare object
            Command("colour_data_v2", _RED_HSV),
        ),
        RESET: (
            Command("switch_led", True),
            Command("switch", True),
            Command("work_mode", "white"),
            Command("bright_value_v2", 500),
        ),
        DIM: (
            Command("switch_led", True),
            Command("bright_value_v2", 100),
        ),
    }
)

PROCEDURAL_EFFECTS = frozenset({FLICKER})

EFFECT_NAMES = frozenset(STATIC_EFFECTS) | PROCEDURAL_EFFECTS

FLICKER_OFF = (Command("switch_led", False),)
FLICKER_ON = (Command("switch_led", True),)


def is_known_effect(name: str) -> bool:
    return name in EFFECT_NAMES
