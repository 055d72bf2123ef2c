from typing import Dict, Optional, Any
from fastapi import WebSocket
import asyncio
import structlog

from deskagent.domain.models.agent_state import utcnow
from .schema.events import BaseEvent, ConnectionEvent, ErrorEvent, ErrorData

logger = structlog.get_logger(__name__)

STALE_AFTER_SECONDS = 300


class ConnectionManager:
    """Manages WebSocket connections and message routing"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.session_metadata: Dict[str, Dict[str, Any]] = {}
        # Runs in flight per session, cancelled when the socket goes away
        self.cancel_events: Dict[str, asyncio.Event] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, session_id: str, tenant_id: str):
        """Accept a new WebSocket connection"""
        await websocket.accept()

        async with self._lock:
            self.active_connections[session_id] = websocket
            self.session_metadata[session_id] = {
                "tenant_id": tenant_id,
                "connected_at": utcnow(),
                "last_activity": utcnow()
            }

        # Send connection confirmation
        await self.send_event(
            session_id,
            ConnectionEvent(
                status="connected",
                session_id=session_id
            )
        )

        logger.info("WebSocket connected", session_id=session_id, tenant_id=tenant_id)

    async def disconnect(self, session_id: str):
        """Disconnect a WebSocket connection and cancel its run"""
        async with self._lock:
            cancel_event = self.cancel_events.pop(session_id, None)
            if cancel_event is not None:
                cancel_event.set()

            if session_id in self.active_connections:
                ws = self.active_connections.pop(session_id)
                self.session_metadata.pop(session_id, None)

                try:
                    await ws.close()
                except RuntimeError as e:
                    # Already closed by the client
                    logger.debug("WebSocket already closed", session_id=session_id, error=str(e))

        logger.info("WebSocket disconnected", session_id=session_id)

    def begin_run(self, session_id: str) -> asyncio.Event:
        """Register a cancel signal for the run a session is starting"""
        cancel_event = asyncio.Event()
        self.cancel_events[session_id] = cancel_event
        return cancel_event

    def end_run(self, session_id: str):
        self.cancel_events.pop(session_id, None)

    async def send_event(self, session_id: str, event: BaseEvent) -> bool:
        """Send an event to a specific session"""
        if session_id not in self.active_connections:
            logger.warning("Attempted to send to disconnected session", session_id=session_id)
            return False

        websocket = self.active_connections[session_id]

        try:
            await websocket.send_json(event.to_wire())

            # Update last activity
            if session_id in self.session_metadata:
                self.session_metadata[session_id]["last_activity"] = utcnow()

            return True

        except Exception as e:
            logger.error("Failed to send event", session_id=session_id, error=str(e))
            await self.disconnect(session_id)
            return False

    async def send_error(self, session_id: str, error_message: str, error_code: Optional[str] = None):
        """Send an error event to a session"""
        error_event = ErrorEvent(
            data=ErrorData(error=error_message),
            error_code=error_code,
            session_id=session_id
        )
        await self.send_event(session_id, error_event)

    async def health_check(self):
        """Periodic health check to clean up stale connections"""
        while True:
            try:
                current_time = utcnow()
                stale_sessions = [
                    session_id
                    for session_id, metadata in list(self.session_metadata.items())
                    if (current_time - metadata["last_activity"]).total_seconds() > STALE_AFTER_SECONDS
                ]

                for session_id in stale_sessions:
                    logger.warning("Disconnecting stale session", session_id=session_id)
                    await self.disconnect(session_id)

            except Exception as e:
                logger.error("Health check error", error=str(e))

            await asyncio.sleep(60)  # Check every minute
