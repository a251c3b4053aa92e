"""Haunted house lighting effects for Tuya cloud devices."""

# Import main classes for easier access
from .client import TuyaClient
from .dispatcher import EffectDispatcher
from .player import TimelinePlayer
from .models import Command, Credentials, Device, Session, TimelineEntry, TokenInfo
from .session_store import InMemorySessionStore, SessionStore

# Import exceptions for easier handling
from .exceptions import (
    ApiError,
    AuthError,
    DeviceCommandError,
    DiscoveryError,
    HauntedLightsException,
    NetworkTimeoutError,
    NoDevicesSelectedError,
    TimelineError,
    UnknownEffectError,
)

__version__ = "0.1.0"

# Define what gets imported with 'from haunted_lights import *'
__all__ = [
    "TuyaClient",
    "EffectDispatcher",
    "TimelinePlayer",
    "Command",
    "Credentials",
    "Device",
    "Session",
    "TimelineEntry",
    "TokenInfo",
    "InMemorySessionStore",
    "SessionStore",
    "ApiError",
    "AuthError",
    "DeviceCommandError",
    "DiscoveryError",
    "HauntedLightsException",
    "NetworkTimeoutError",
    "NoDevicesSelectedError",
    "TimelineError",
    "UnknownEffectError",
    "__version__",
]
