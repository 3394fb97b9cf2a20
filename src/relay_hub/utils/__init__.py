"""
Utility helpers for the Device Relay Hub.
"""

from .network import get_host_ip

__all__ = ["get_host_ip"]
