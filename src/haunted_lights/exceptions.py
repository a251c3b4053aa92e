"""Custom exceptions for haunted_lights."""


class HauntedLightsException(Exception):
    """Base class for haunted_lights exceptions."""


class AuthError(HauntedLightsException):
    """Raised when authentication or a token exchange fails."""


class DiscoveryError(HauntedLightsException):
    """Raised when devices cannot be listed for a session."""


class UnknownEffectError(HauntedLightsException):
    """Raised when an effect name is not in the effect table."""

    def __init__(self, effect: str) -> None:
        """Initialize the error with the rejected effect name."""
        self.effect = effect
        super().__init__(f"Unknown effect: {effect}")


class DeviceCommandError(HauntedLightsException):
    """Raised when a single device rejects a command batch."""

    def __init__(self, device_id: str, error_message: str) -> None:
        """Initialize the device command error."""
        self.device_id = device_id
        self.error_message = error_message
        super().__init__(f"Device {device_id}: {error_message}")


class ApiError(HauntedLightsException):
    """Raised when a vendor API call fails."""

    def __init__(self, status_code: int, error_message: str) -> None:
        """Initialize the API error."""
        self.status_code = status_code
        self.error_message = error_message
        super().__init__(f"API Error {status_code}: {error_message}")


class NetworkTimeoutError(ApiError):
    """Raised when a vendor API call times out."""

    def __init__(self, error_message: str = "Request timed out") -> None:
        """Initialize the timeout error."""
        super().__init__(408, error_message)


class TimelineError(HauntedLightsException):
    """Raised when a timeline definition is invalid."""


class NoDevicesSelectedError(HauntedLightsException):
    """Raised when playback is started without any selected device."""
