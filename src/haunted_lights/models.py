"""Data models for haunted_lights."""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Any

from .const import TOKEN_EXPIRY_MARGIN


@dataclass(frozen=True)
class Credentials:
    """A client id / secret pair used to sign vendor requests."""

    client_id: str
    client_secret: str = field(repr=False)


@dataclass
class TokenInfo:
    """Tokens returned by a vendor login or token exchange."""

    access_token: str
    refresh_token: str
    uid: str
    expires_at: float | None = None

    @classmethod
    def from_result(cls, result: dict[str, Any], uid: str = "") -> TokenInfo:
        """Build from the `result` object of a vendor token response."""
        expire_time = result.get("expire_time")
        return cls(
            access_token=result["access_token"],
            refresh_token=result.get("refresh_token", ""),
            uid=result.get("uid") or uid,
            expires_at=time.time() + int(expire_time) if expire_time else None,
        )

    def is_expired(self, margin: int = TOKEN_EXPIRY_MARGIN) -> bool:
        """Check if the access token is expired or close to expiring."""
        if self.expires_at is None:
            return False
        return time.time() >= (self.expires_at - margin)


@dataclass
class Device:
    """Represents a discovered lighting device."""

    id: str
    name: str
    category: str
    online: bool
    product_name: str = ""
    raw_data: dict[str, Any] | None = None

    @classmethod
    def from_vendor(cls, data: dict[str, Any]) -> Device:
        """Build from one entry of the vendor device listing."""
        product_name = data.get("product_name") or ""
        return cls(
            id=str(data["id"]),
            name=data.get("name") or product_name,
            category=data.get("category", ""),
            online=bool(data.get("online")),
            product_name=product_name,
            raw_data=data,
        )

    def to_dict(self) -> dict[str, Any]:
        """Render the device the way the HTTP API reports it."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.category,
            "online": self.online,
        }


@dataclass
class Session:
    """Server-side record linking a browser session to vendor tokens."""

    session_id: str
    tokens: TokenInfo
    devices: list[Device] = field(default_factory=list)
    username: str | None = None

    @property
    def online_devices(self) -> list[Device]:
        return [device for device in self.devices if device.online]


@dataclass(frozen=True)
class Command:
    """A single device data-point command."""

    code: str
    value: Any

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "value": self.value}


@dataclass(frozen=True)
class TimelineEntry:
    """An effect scheduled at a fixed offset of the timeline."""

    time: float
    effect: str
    label: str


@dataclass
class TriggerResult:
    """Outcome of dispatching one effect to a session's devices."""

    effect: str
    devices_triggered: int
    total_devices: int
    success: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "effect": self.effect,
            "devicesTriggered": self.devices_triggered,
            "totalDevices": self.total_devices,
        }
