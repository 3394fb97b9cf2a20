"""
Hub module - connection directory, broadcaster and message routing.
"""

from .connections import Session, ConnectionManager, get_connection_manager
from .router import MessageRouter, get_message_router

__all__ = [
    "Session", "ConnectionManager", "get_connection_manager",
    "MessageRouter", "get_message_router",
]
