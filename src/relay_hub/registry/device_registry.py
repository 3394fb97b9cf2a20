"""
Device registry: the single source of truth for device state.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Set

from .models import DeviceRecord, PinId, PinRecord, utc_timestamp

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """
    In-memory registry of every device that has ever identified itself.

    Records are keyed by device id and are never removed; a disconnect only
    clears the owning connection. A second index maps each connection id to
    the devices it currently represents; a gateway connection may identify
    several devices. Both maps are only touched under ``_lock``.
    """

    def __init__(self):
        self._devices: Dict[str, DeviceRecord] = {}
        self._connection_index: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

    def register(
        self,
        device_id: str,
        pins: Sequence[Any],
        capabilities: Any = "",
        connection_id: Optional[str] = None
    ) -> DeviceRecord:
        """
        Replace any record for ``device_id`` with a fresh one.

        Pins and capabilities are taken wholesale from the new payload. The
        connection that sent it becomes the device's owner.
        """
        if isinstance(pins, (str, bytes)) or not isinstance(pins, Sequence):
            raise TypeError(f"pins must be a sequence, got {type(pins).__name__}")
        pin_records = [PinRecord.from_payload(pin) for pin in pins]

        with self._lock:
            previous = self._devices.get(device_id)
            if previous and previous.connection_id and previous.connection_id != connection_id:
                self._release_index(previous.connection_id, device_id)
            if connection_id is not None:
                self._connection_index.setdefault(connection_id, set()).add(device_id)

            record = DeviceRecord(
                id=device_id,
                pins=pin_records,
                capabilities=capabilities or "",
                last_seen=utc_timestamp(),
                connection_id=connection_id,
            )
            # Existing keys keep their position, so snapshots stay in first-registration order
            self._devices[device_id] = record

            if previous:
                logger.info(f"Device {device_id} re-registered with {len(pin_records)} pins")
            else:
                logger.info(f"New device registered: {device_id} with {len(pin_records)} pins")
            return record.copy()

    def update_pin(self, device_id: str, pin_id: PinId, state: Any) -> bool:
        """Set a pin's state. Returns False for an unknown device or pin."""
        with self._lock:
            device = self._devices.get(device_id)
            if not device:
                logger.debug(f"Pin update for unknown device {device_id} dropped")
                return False

            pin = device.find_pin(pin_id)
            if not pin:
                logger.debug(f"Pin update for unknown pin {pin_id} on {device_id} dropped")
                return False

            pin.state = state
            device.last_seen = utc_timestamp()
            logger.debug(f"Updated pin {pin_id} of device {device_id} to {state}")
            return True

    def update_sensor(self, device_id: str, sensor: str, value: Any) -> bool:
        """Store the latest reading for a sensor. Returns False for an unknown device."""
        with self._lock:
            device = self._devices.get(device_id)
            if not device:
                logger.debug(f"Sensor data for unknown device {device_id} dropped")
                return False

            if device.status is None:
                device.status = {}
            device.status[sensor] = value
            return True

    def mark_offline(self, connection_id: str) -> List[str]:
        """
        Release every device the connection owned.

        Returns:
            Released device ids in registration order, empty if the
            connection was not a device
        """
        with self._lock:
            device_ids = self._connection_index.pop(connection_id, set())
            released = []
            for device_id, device in self._devices.items():
                if device_id in device_ids and device.connection_id == connection_id:
                    device.connection_id = None
                    released.append(device_id)
                    logger.info(f"Device {device_id} marked as offline")
            return released

    def _release_index(self, connection_id: str, device_id: str) -> None:
        device_ids = self._connection_index.get(connection_id)
        if device_ids is None:
            return
        device_ids.discard(device_id)
        if not device_ids:
            del self._connection_index[connection_id]

    def snapshot(self) -> List[Dict[str, Any]]:
        """ClientView of every device, in first-registration order."""
        with self._lock:
            return [device.to_client_view() for device in self._devices.values()]

    def get_device(self, device_id: str) -> Optional[DeviceRecord]:
        """Get a detached copy of a device record."""
        with self._lock:
            device = self._devices.get(device_id)
            return device.copy() if device else None

    def get_device_stats(self) -> Dict[str, int]:
        """Get registry statistics."""
        with self._lock:
            total_count = len(self._devices)
            online_count = sum(1 for d in self._devices.values() if d.online)

        return {
            "total_devices": total_count,
            "online_devices": online_count,
            "offline_devices": total_count - online_count,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._devices


# Global device registry instance
_device_registry: Optional[DeviceRegistry] = None


def get_device_registry() -> DeviceRegistry:
    """Get or create device registry singleton."""
    global _device_registry
    if _device_registry is None:
        _device_registry = DeviceRegistry()
    return _device_registry
