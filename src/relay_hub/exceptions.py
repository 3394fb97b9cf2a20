"""
Error taxonomy for the relay hub.

None of these are fatal: the router turns them into ``error`` envelopes and
the REST layer turns them into HTTP status codes.
"""


class HubError(Exception):
    """Base class for relay hub errors."""


class MessageDecodeError(HubError):
    """Inbound envelope could not be parsed or validated."""

    def __init__(self, reason: str = "Invalid message format"):
        super().__init__(reason)
        self.reason = reason


class DeviceNotFoundError(HubError):
    """Target device has never identified itself."""

    def __init__(self, device_id: str):
        super().__init__("Device not found")
        self.device_id = device_id


class DeviceNotConnectedError(HubError):
    """Target device is known but has no live connection."""

    def __init__(self, device_id: str):
        super().__init__("Device not connected")
        self.device_id = device_id
