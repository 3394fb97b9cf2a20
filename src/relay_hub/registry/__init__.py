"""
Registry module - authoritative in-memory device state.
"""

from .models import PinRecord, DeviceRecord, HIGH_STATE
from .device_registry import DeviceRegistry, get_device_registry

__all__ = [
    "PinRecord", "DeviceRecord", "HIGH_STATE",
    "DeviceRegistry", "get_device_registry",
]
