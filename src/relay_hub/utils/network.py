"""
Network utilities for the Device Relay Hub.
"""

import logging
import socket

logger = logging.getLogger(__name__)


def get_host_ip() -> str:
    """Get the primary host IP address devices on the LAN should dial."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            # UDP connect sends nothing; it only selects the outbound interface
            s.connect(("8.8.8.8", 80))
            host_ip = s.getsockname()[0]
            logger.debug(f"Detected host IP: {host_ip}")
            return host_ip
    except OSError as e:
        logger.warning(f"Error detecting host IP: {e}")
        return "127.0.0.1"
