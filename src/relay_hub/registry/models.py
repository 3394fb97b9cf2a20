"""
Device and pin records held by the registry.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

PinId = Any

# Pin state that reads as a logical high
HIGH_STATE = "HIGH"


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class PinRecord:
    """A single pin on a device. ``value`` is always derived from ``state``."""
    id: PinId
    state: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def value(self) -> bool:
        return self.state == HIGH_STATE

    @classmethod
    def from_payload(cls, payload: Union["PinRecord", Mapping[str, Any]]) -> "PinRecord":
        """
        Build a pin from a device-supplied mapping; unknown keys go to ``extra``.

        The mapping is not validated further: a missing ``id`` is kept as None.
        """
        if isinstance(payload, PinRecord):
            return replace(payload, extra=dict(payload.extra))
        if not isinstance(payload, Mapping):
            raise TypeError(f"Pin entry must be a mapping, got {type(payload).__name__}")

        extra = {k: v for k, v in payload.items() if k not in ("id", "state", "value")}
        return cls(id=payload.get("id"), state=payload.get("state"), extra=extra)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.extra, "id": self.id, "state": self.state, "value": self.value}


@dataclass
class DeviceRecord:
    """Authoritative state for one device."""
    id: str
    pins: List[PinRecord] = field(default_factory=list)
    capabilities: Any = ""
    last_seen: str = field(default_factory=utc_timestamp)
    status: Optional[Dict[str, Any]] = None
    connection_id: Optional[str] = None

    @property
    def online(self) -> bool:
        """True iff a live connection owns this device."""
        return self.connection_id is not None

    def find_pin(self, pin_id: PinId) -> Optional[PinRecord]:
        """First pin with a matching id."""
        for pin in self.pins:
            if pin.id == pin_id:
                return pin
        return None

    def copy(self) -> "DeviceRecord":
        return replace(
            self,
            pins=[replace(pin, extra=dict(pin.extra)) for pin in self.pins],
            status=dict(self.status) if self.status is not None else None,
        )

    def to_client_view(self) -> Dict[str, Any]:
        """Wire projection. The connection id is never included."""
        return {
            "id": self.id,
            "pins": [pin.to_dict() for pin in self.pins],
            "capabilities": self.capabilities or "",
            "lastSeen": self.last_seen,
            "online": self.online,
        }
