"""
Configuration for the Device Relay Hub.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class HubConfig:
    """Relay hub configuration settings."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8080

    # Fan-out settings
    outbound_queue_size: int = 256  # Per-connection backlog before messages are dropped (0 = unbounded)

    # Logging
    log_level: str = "INFO"
    log_file: str = ""

    @classmethod
    def from_env(cls) -> "HubConfig":
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("RELAY_HUB_HOST", "0.0.0.0"),
            port=int(os.getenv("RELAY_HUB_PORT", "8080")),
            outbound_queue_size=int(os.getenv("RELAY_HUB_OUTBOUND_QUEUE", "256")),
            log_level=os.getenv("RELAY_HUB_LOG_LEVEL", "INFO"),
            log_file=os.getenv("RELAY_HUB_LOG_FILE", ""),
        )


# Global config instance
_config: Optional[HubConfig] = None


def get_config() -> HubConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = HubConfig.from_env()
    return _config


def set_config(config: HubConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
