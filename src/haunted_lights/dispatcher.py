"""Effect dispatch to a session's devices."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import logging

from .client import TuyaClient
from .const import FLICKER_PULSE_DELAY, FLICKER_PULSES
from .effects import FLICKER, FLICKER_OFF, FLICKER_ON, STATIC_EFFECTS, is_known_effect
from .exceptions import UnknownEffectError
from .models import Command, Session, TriggerResult

_LOGGER = logging.getLogger(__name__)


class EffectDispatcher:
    """Turns effect names into command batches broadcast to every device.

    Calls to different devices run concurrently and are joined before a
    result is reported; each call carries its own timeout, so one slow
    device only delays its own contribution. Overlapping triggers for the
    same session are not serialized and may interleave.
    """

    def __init__(
        self,
        client: TuyaClient,
        pulse_count: int = FLICKER_PULSES,
        pulse_delay: float = FLICKER_PULSE_DELAY,
    ) -> None:
        """Initialize the dispatcher."""
        self._client = client
        self._pulse_count = pulse_count
        self._pulse_delay = pulse_delay

    async def broadcast(
        self, session: Session, commands: Sequence[Command]
    ) -> list[bool]:
        """Send one batch to every online device concurrently.

        Returns one success flag per addressed device, in device order.
        Offline devices are skipped without a call.
        """
        devices = session.online_devices
        if not devices:
            _LOGGER.debug("No online devices to address.")
            return []

        batch = list(commands)
        results = await asyncio.gather(
            *(
                self._client.send_commands(session.tokens, device.id, batch)
                for device in devices
            )
        )
        return list(results)

    async def trigger(self, session: Session, effect: str) -> TriggerResult:
        """Play `effect` on all of the session's cached devices.

        Raises:
            UnknownEffectError: If `effect` is not a known effect name. No
                                device is contacted in that case.

        """
        if not is_known_effect(effect):
            raise UnknownEffectError(effect)

        _LOGGER.info(
            "Triggering %s for session %s", effect, session.session_id[:8]
        )
        total = len(session.devices)

        if effect == FLICKER:
            addressed = await self._flicker(session)
            return TriggerResult(effect, addressed, total, success=True)

        results = await self.broadcast(session, STATIC_EFFECTS[effect])
        triggered = sum(results)
        _LOGGER.info("%s reached %d/%d devices", effect, triggered, total)
        return TriggerResult(effect, triggered, total, success=triggered > 0)

    async def _flicker(self, session: Session) -> int:
        """Pulse the lights off and on; per-pulse failures are ignored."""
        addressed = len(session.online_devices)
        for _ in range(self._pulse_count):
            await self.broadcast(session, FLICKER_OFF)
            await asyncio.sleep(self._pulse_delay)
            await self.broadcast(session, FLICKER_ON)
            await asyncio.sleep(self._pulse_delay)
        return addressed
