"""The haunted house timeline."""

from __future__ import annotations

from collections.abc import Sequence
import json
import logging
from pathlib import Path
from typing import Any

from .effects import BLACKOUT, DIM, FLASH_RED, FLICKER, RESET, is_known_effect
from .exceptions import TimelineError
from .models import TimelineEntry

_LOGGER = logging.getLogger(__name__)

TIMELINE_DURATION = 65

TIMELINE: tuple[TimelineEntry, ...] = (
    TimelineEntry(0, RESET, "Lights Normal"),
    TimelineEntry(5, FLICKER, "Quick Flicker"),
    TimelineEntry(12, DIM, "Dim Slowly"),
    TimelineEntry(20, FLASH_RED, "Red Flash"),
    TimelineEntry(25, BLACKOUT, "Complete Darkness"),
    TimelineEntry(32, FLASH_RED, "Red Pulse"),
    TimelineEntry(38, RESET, "Lights Return"),
    TimelineEntry(45, FLICKER, "Flickering"),
    TimelineEntry(52, BLACKOUT, "Final Blackout"),
    TimelineEntry(60, RESET, "End - Normal"),
)


def validate_timeline(entries: Sequence[TimelineEntry], duration: float) -> None:
    """Check that a timeline can be played.

    Offsets must be strictly increasing, non-negative and within `duration`,
    and every effect must be known.

    Raises:
        TimelineError: On the first violation found.

    """
    if duration <= 0:
        err_msg = f"Timeline duration must be positive, got {duration}"
        raise TimelineError(err_msg)

    previous: float | None = None
    for entry in entries:
        if entry.time < 0 or entry.time > duration:
            err_msg = f"Entry '{entry.label}' at {entry.time}s is outside 0-{duration}s"
            raise TimelineError(err_msg)
        if previous is not None and entry.time <= previous:
            err_msg = f"Entry '{entry.label}' at {entry.time}s is not after {previous}s"
            raise TimelineError(err_msg)
        if not is_known_effect(entry.effect):
            err_msg = f"Entry '{entry.label}' uses unknown effect '{entry.effect}'"
            raise TimelineError(err_msg)
        previous = entry.time


def parse_timeline(data: dict[str, Any]) -> tuple[tuple[TimelineEntry, ...], float]:
    """Build a timeline from `{"duration": ..., "entries": [...]}`."""
    try:
        duration = float(data["duration"])
        entries = tuple(
            TimelineEntry(
                time=float(item["time"]),
                effect=str(item["effect"]),
                label=str(item.get("label") or item["effect"]),
            )
            for item in data["entries"]
        )
    except (KeyError, TypeError, ValueError) as err:
        err_msg = f"Malformed timeline: {err}"
        raise TimelineError(err_msg) from err

    validate_timeline(entries, duration)
    return entries, duration


def load_timeline(path: str | Path) -> tuple[tuple[TimelineEntry, ...], float]:
    """Load and validate a timeline from a JSON file."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as err:
        err_msg = f"Cannot read timeline {path}: {err}"
        raise TimelineError(err_msg) from err

    entries, duration = parse_timeline(data)
    _LOGGER.info("Loaded %d timeline entries from %s", len(entries), path)
    return entries, duration


validate_timeline(TIMELINE, TIMELINE_DURATION)
