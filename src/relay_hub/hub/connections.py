"""
WebSocket connection directory and broadcaster.
Tracks every open connection, device or observer, and fans messages out to them.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import WebSocket

from ..config import get_config

logger = logging.getLogger(__name__)


class Session:
    """
    One open connection.

    Outbound messages go through a queue drained by a dedicated writer task,
    so enqueueing never waits on the socket.
    """

    def __init__(self, session_id: str, websocket: WebSocket, queue_size: int = 0):
        self.session_id = session_id
        self.websocket = websocket
        self.connected_at = datetime.now(timezone.utc)
        self.device_id: Optional[str] = None
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None

    @property
    def is_device(self) -> bool:
        return self.device_id is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "session_id": self.session_id,
            "role": "device" if self.is_device else "observer",
            "device_id": self.device_id,
            "connected_at": self.connected_at.isoformat(),
            "pending": self._queue.qsize(),
        }

    def start(self) -> None:
        self._writer = asyncio.create_task(self._write_loop())

    def stop(self) -> None:
        self.closed = True
        if self._writer and not self._writer.done():
            self._writer.cancel()

    def enqueue(self, message: Dict[str, Any]) -> bool:
        """Queue a message for delivery. Drops it if the session is closed or backlogged."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Session {self.session_id} backlogged, dropped '{message.get('type')}'")
            return False
        return True

    async def _write_loop(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.websocket.send_json(message)
            except Exception as e:
                logger.warning(f"Send to session {self.session_id} failed: {e}")
                self.closed = True
                return


class ConnectionManager:
    """
    Manages every open WebSocket connection.

    Usage:
        manager = ConnectionManager()
        session = await manager.connect(websocket)
        await manager.send(session.session_id, {"type": "devices_list", ...})
        await manager.broadcast({"type": "sensor_update", ...}, exclude=session.session_id)
    """

    def __init__(self, outbound_queue_size: int = 0):
        self.outbound_queue_size = outbound_queue_size
        self._sessions: Dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def connect(
        self,
        websocket: WebSocket,
        initial_message: Optional[Callable[[], Dict[str, Any]]] = None
    ) -> Session:
        """
        Accept a connection and assign it a session id.

        Args:
            websocket: The socket to accept
            initial_message: Builds the first message for this session. It is
                called and queued under the directory lock, before the session
                becomes visible to ``broadcast``, so no broadcast can be queued
                ahead of it or be missed by it.
        """
        await websocket.accept()

        session = Session(uuid.uuid4().hex, websocket, self.outbound_queue_size)
        session.start()

        async with self._lock:
            if initial_message is not None:
                session.enqueue(initial_message())
            self._sessions[session.session_id] = session

        client = websocket.client.host if websocket.client else "unknown"
        logger.info(f"[CONNECT] Session {session.session_id} opened from {client}")
        return session

    async def disconnect(self, session_id: str) -> Optional[Session]:
        """Forget a session and stop its writer. Safe to call twice."""
        async with self._lock:
            session = self._sessions.pop(session_id, None)

        if session:
            session.stop()
            logger.info(f"[DISCONNECT] Session {session_id} closed")
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def is_connected(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        return session is not None and not session.closed

    def get_all_sessions(self) -> List[Dict[str, Any]]:
        """Get all open sessions as list of dicts."""
        return [session.to_dict() for session in self._sessions.values()]

    @property
    def online_count(self) -> int:
        """Number of open connections."""
        return len(self._sessions)

    async def send(self, session_id: str, message: Dict[str, Any]) -> bool:
        """
        Send a message to one session.
        Returns True if queued, False if the session is gone or backlogged.
        """
        async with self._lock:
            session = self._sessions.get(session_id)

        if not session or session.closed:
            logger.warning(f"Cannot send to {session_id}: not connected")
            return False

        queued = session.enqueue(message)
        if queued:
            logger.debug(f"Sent to {session_id}: {message.get('type')}")
        return queued

    async def broadcast(self, message: Dict[str, Any], exclude: Optional[str] = None) -> int:
        """
        Fan a message out to every open session.

        Args:
            message: Message to send
            exclude: Session id to skip (usually the sender)

        Returns:
            Number of sessions the message was queued for
        """
        async with self._lock:
            targets = [s for s in self._sessions.values() if s.session_id != exclude]

        delivered = sum(1 for session in targets if session.enqueue(message))
        logger.debug(f"Broadcast '{message.get('type')}' to {delivered}/{len(targets)} sessions")
        return delivered


# Global connection manager instance
_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager() -> ConnectionManager:
    """Get singleton connection manager instance."""
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager(
            outbound_queue_size=get_config().outbound_queue_size
        )
    return _connection_manager
