from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from typing import Dict, Any, Optional
import asyncio
import uuid
import structlog
from pydantic import ValidationError

from .connection_manager import ConnectionManager
from .schema.events import DoneData, DoneEvent, EventType, StreamEvent, UserMessage
from deskagent.application.dependencies import get_message_store, get_orchestrator
from deskagent.domain.models.agent_state import (
    PersistedMessage, PriorTurn, RunMode, RunOptions, Scope,
)
from deskagent.infrastructure.config.settings import get_settings

logger = structlog.get_logger(__name__)

router = APIRouter()

# Global connection manager
connection_manager = ConnectionManager()

# Runs in flight, one per session
active_runs: Dict[str, "asyncio.Task[None]"] = {}


@router.websocket("/ws/agent/{tenant_id}/{session_id}")
async def agent_websocket(
    websocket: WebSocket,
    tenant_id: str,
    session_id: str,
    user_id: Optional[str] = None,
):
    """Main WebSocket endpoint for agent interaction"""

    # Validate session ID format
    try:
        uuid.UUID(session_id)
    except ValueError:
        await websocket.close(code=1008, reason="Invalid session ID format")
        return

    # Connect the WebSocket
    await connection_manager.connect(websocket, session_id, tenant_id)

    try:
        # Main message loop
        while True:
            data = await websocket.receive_json()

            if data.get("type") != EventType.USER_MESSAGE.value:
                await connection_manager.send_error(
                    session_id, f"Unsupported event type: {data.get('type')}", "unsupported_event"
                )
                continue

            try:
                user_message = UserMessage(**data)
            except ValidationError as e:
                await connection_manager.send_error(session_id, str(e), "invalid_message")
                continue

            running = active_runs.get(session_id)
            if running is not None and not running.done():
                await connection_manager.send_error(
                    session_id, "A response is already in progress", "busy"
                )
                continue

            active_runs[session_id] = asyncio.create_task(process_user_message(
                session_id=session_id,
                tenant_id=tenant_id,
                identity=user_id or session_id,
                message=user_message
            ))

    except WebSocketDisconnect:
        logger.info("Client disconnected", session_id=session_id)
    finally:
        active_runs.pop(session_id, None)
        await connection_manager.disconnect(session_id)


async def process_user_message(
    session_id: str,
    tenant_id: str,
    identity: str,
    message: UserMessage
):
    """Process a user message through the agent orchestrator"""

    settings = get_settings()
    orchestrator = get_orchestrator()
    scope = Scope(tenant_id=tenant_id)

    async def relay(event: StreamEvent):
        await connection_manager.send_event(session_id, event)

    await get_message_store().persist(
        scope, session_id, PersistedMessage(role="user", content=message.content)
    )

    metadata: Dict[str, Any] = message.metadata or {}
    prior_turns = [
        PriorTurn(role=turn.role, content=turn.content)
        for turn in message.conversation_history
    ] + [PriorTurn(role="user", content=message.content)]

    options = RunOptions(
        conversation_id=session_id,
        identity=identity,
        scope=scope,
        persona_id=message.persona_id,
        personality_ordinal=(
            message.personality_ordinal
            if message.personality_ordinal is not None else settings.default_personality
        ),
        mode=RunMode.DIRECT,
        max_iterations=settings.max_iterations,
        tenant_display_name=metadata.get("company_name"),
        on_stream=relay,
        cancel_event=connection_manager.begin_run(session_id)
    )

    try:
        result = await orchestrator.run(prior_turns, options)
    finally:
        connection_manager.end_run(session_id)

    await connection_manager.send_event(
        session_id,
        DoneEvent(
            session_id=session_id,
            data=DoneData(
                success=result.success,
                messages_persisted=result.messages_persisted,
                error=result.error,
                stop_reason=result.stop_reason.value
            )
        )
    )
