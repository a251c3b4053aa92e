"""Timeline playback."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
import enum
import logging
from typing import Any

from .const import TICK_SECONDS
from .effects import RESET
from .exceptions import NoDevicesSelectedError
from .models import TimelineEntry
from .timeline import TIMELINE, TIMELINE_DURATION

_LOGGER = logging.getLogger(__name__)

TriggerFn = Callable[[str], Awaitable[dict[str, Any]]]


class PlayerState(enum.Enum):
    """Playback state."""

    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class LogEntry:
    """One line of the activity log."""

    timestamp: str
    message: str
    level: str = "info"


def _to_ms(seconds: float) -> int:
    return round(seconds * 1000)


class TimelinePlayer:
    """Walks a timeline on a virtual clock and fires its effects.

    A single task ticks every `interval` seconds and advances the virtual
    clock by `tick` seconds; the clock is kept in integer milliseconds. On
    each tick at most one entry fires: the first one whose offset is past
    the last fired offset and not past the clock. Since the last fired
    offset only grows, each entry fires once and in time order.

    Trigger calls are spawned as detached tasks. The tick loop never awaits
    them, so a slow or failing trigger does not delay the clock; their
    outcome only shows up in `log`. `drain()` joins whatever is in flight.

    Attributes:
        state (PlayerState): Current playback state.
        log (deque[LogEntry]): The most recent activity log lines.
        fired (list[TimelineEntry]): Entries fired during the current run.

    """

    def __init__(
        self,
        trigger: TriggerFn,
        timeline: Sequence[TimelineEntry] = TIMELINE,
        duration: float = TIMELINE_DURATION,
        tick: float = TICK_SECONDS,
        interval: float | None = None,
        log_size: int = 10,
    ) -> None:
        """Initialize the player.

        Args:
            trigger (TriggerFn): Async callable taking an effect name and
                returning the trigger response (`{"success": ..., ...}`).
            timeline (Sequence[TimelineEntry]): Entries in time order.
            duration (float): Total playback length in seconds.
            tick (float): Virtual seconds added to the clock per tick.
            interval (float | None): Real seconds between ticks. Defaults to
                `tick`.
            log_size (int): Number of activity log lines kept.

        """
        self._trigger = trigger
        self._entries = tuple(timeline)
        self._duration_ms = _to_ms(duration)
        self._tick_ms = _to_ms(tick)
        self._interval = tick if interval is None else interval
        self._clock_ms = 0
        self._last_fired_ms: int | None = None
        self._tick_task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()
        self.state = PlayerState.IDLE
        self.log: deque[LogEntry] = deque(maxlen=log_size)
        self.fired: list[TimelineEntry] = []

    @property
    def is_running(self) -> bool:
        return self.state is PlayerState.RUNNING

    @property
    def current_time(self) -> float:
        """Virtual clock in seconds."""
        return self._clock_ms / 1000

    @property
    def progress(self) -> float:
        """Fraction of the timeline played, between 0 and 1."""
        return min(1.0, self._clock_ms / self._duration_ms)

    def next_entry(self) -> TimelineEntry | None:
        """Return the next entry after the current clock, if any."""
        return next(
            (entry for entry in self._entries if _to_ms(entry.time) > self._clock_ms),
            None,
        )

    def _add_log(self, message: str, level: str = "info") -> None:
        self.log.append(
            LogEntry(datetime.now().strftime("%H:%M:%S"), message, level)
        )
        if level == "error":
            _LOGGER.warning(message)
        else:
            _LOGGER.info(message)

    def start(self, selected_devices: Sequence[str]) -> None:
        """Start playback from the beginning of the timeline.

        Raises:
            NoDevicesSelectedError: If no device is selected.

        """
        if self.is_running:
            _LOGGER.warning("Playback is already running.")
            return
        if not selected_devices:
            self._add_log("No devices selected!", "error")
            err_msg = "No devices selected"
            raise NoDevicesSelectedError(err_msg)

        self._clock_ms = 0
        self._last_fired_ms = None
        self.fired = []
        self.state = PlayerState.RUNNING
        self._add_log("Starting haunted experience...")
        self._tick_task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop playback immediately and reset the lights.

        In-flight trigger calls are not aborted.
        """
        if not self.is_running:
            return
        task = self._tick_task
        self._tick_task = None
        if task and not task.done():
            task.cancel()
            await asyncio.wait({task})
        self._halt()

    async def wait(self) -> None:
        """Wait until the playback run ends (end of timeline or stop)."""
        task = self._tick_task
        if task:
            await asyncio.wait({task})

    async def drain(self) -> None:
        """Wait for every spawned trigger call to finish."""
        while self._pending:
            await asyncio.gather(*self._pending)

    async def _run(self) -> None:
        while self.is_running:
            await asyncio.sleep(self._interval)
            self._advance()

    def _advance(self) -> None:
        """Advance the clock by one tick and fire the due entry, if any."""
        self._clock_ms += self._tick_ms

        entry = self._due_entry()
        if entry is not None:
            self._last_fired_ms = _to_ms(entry.time)
            self.fired.append(entry)
            self._spawn(entry.effect, f"[{entry.time:g}s] {entry.label}")

        if self._clock_ms >= self._duration_ms:
            self._tick_task = None
            self._halt()

    def _due_entry(self) -> TimelineEntry | None:
        for entry in self._entries:
            offset = _to_ms(entry.time)
            if offset <= self._clock_ms and (
                self._last_fired_ms is None or offset > self._last_fired_ms
            ):
                return entry
        return None

    def _halt(self) -> None:
        self.state = PlayerState.IDLE
        self._spawn(RESET, "Reset")
        self._add_log("Experience stopped")

    def _spawn(self, effect: str, label: str) -> None:
        # Detached: tracked so it is not garbage collected, never awaited here.
        task = asyncio.create_task(self._fire(effect, label))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _fire(self, effect: str, label: str) -> None:
        try:
            result = await self._trigger(effect)
        except Exception as e:  # noqa: BLE001
            self._add_log(f"Error: {e}", "error")
            return

        if result.get("success"):
            self._add_log(label, "success")
        else:
            error = result.get("error") or "no device responded"
            self._add_log(f"{label} failed: {error}", "error")
