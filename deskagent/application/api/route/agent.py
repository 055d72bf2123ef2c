from typing import Annotated, Any, AsyncIterator, Dict, List
from uuid import uuid4
import asyncio
import json
import time

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from deskagent.application.api.schema.requests import (
    ActionRespondRequest, ChatRespondRequest, MessageListResponse, SessionResponse,
)
from deskagent.application.dependencies import get_message_store, get_orchestrator
from deskagent.application.websocket.schema.events import DoneData, DoneEvent, StreamEvent
from deskagent.domain.context.memory.message_store import InMemoryMessageStore
from deskagent.domain.models.agent_state import (
    PersistedMessage, PriorTurn, RunMode, RunOptions, Scope,
)
from deskagent.domain.orchestration.core.main_agent import AgentOrchestrator
from deskagent.domain.prompt.prompt_composer import compose_action_trigger
from deskagent.infrastructure.config.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def format_sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def stream_run(
    orchestrator: AgentOrchestrator,
    prior_turns: List[PriorTurn],
    options: RunOptions
) -> AsyncIterator[str]:
    """Run the engine and relay its events as Server-Sent Events.

    The run is cancelled when the client goes away before it finishes.
    """

    queue: "asyncio.Queue[Any]" = asyncio.Queue()
    cancel_event = asyncio.Event()

    def relay(event: StreamEvent):
        queue.put_nowait(event.to_wire())

    run_options = options.model_copy(update={"on_stream": relay, "cancel_event": cancel_event})
    task = asyncio.create_task(orchestrator.run(prior_turns, run_options))
    task.add_done_callback(lambda _: queue.put_nowait(None))

    try:
        while True:
            payload = await queue.get()
            if payload is None:
                break
            yield format_sse(payload)

        result = task.result()
        done = DoneEvent(
            session_id=options.conversation_id,
            data=DoneData(
                success=result.success,
                messages_persisted=result.messages_persisted,
                error=result.error,
                stop_reason=result.stop_reason.value
            )
        )
        yield format_sse(done.to_wire())
    finally:
        if not task.done():
            logger.info("Client disconnected, cancelling run", conversation_id=options.conversation_id)
            cancel_event.set()


@router.post("/api/chat/{chat_id}/respond")
async def respond_to_chat(
    chat_id: str,
    request: ChatRespondRequest,
    orchestrator: Annotated[AgentOrchestrator, Depends(get_orchestrator)],
    message_store: Annotated[InMemoryMessageStore, Depends(get_message_store)],
    settings: Annotated[Settings, Depends(get_settings)]
):
    """Answer a user message in a chat, streamed as SSE"""

    scope = Scope(tenant_id=request.company_id)

    await message_store.persist(
        scope, chat_id, PersistedMessage(role="user", content=request.message)
    )

    prior_turns = list(request.conversation_history) + [
        PriorTurn(role="user", content=request.message)
    ]
    options = RunOptions(
        conversation_id=chat_id,
        identity=request.user_id,
        scope=scope,
        persona_id=request.persona_id,
        personality_ordinal=(
            request.personality_level
            if request.personality_level is not None else settings.default_personality
        ),
        mode=RunMode.DIRECT,
        max_iterations=settings.max_iterations,
        tenant_display_name=request.company_name,
        enabled_capabilities=(
            frozenset(request.enabled_capabilities)
            if request.enabled_capabilities is not None else None
        )
    )

    logger.info("Chat respond requested",
                conversation_id=chat_id,
                persona_id=request.persona_id,
                history_length=len(prior_turns))

    return StreamingResponse(
        stream_run(orchestrator, prior_turns, options),
        media_type="text/event-stream",
        headers=SSE_HEADERS
    )


@router.post("/api/actions/events/{event_id}/respond")
async def respond_to_action_event(
    event_id: str,
    request: ActionRespondRequest,
    orchestrator: Annotated[AgentOrchestrator, Depends(get_orchestrator)],
    message_store: Annotated[InMemoryMessageStore, Depends(get_message_store)],
    settings: Annotated[Settings, Depends(get_settings)]
):
    """Run an action event autonomously, streamed as SSE"""

    scope = Scope(tenant_id=request.company_id, action_id=request.action_id)
    trigger = compose_action_trigger(
        request.action_prompt,
        [turn.model_dump() for turn in request.conversation_history],
        request.trigger_data
    )

    await message_store.persist(
        scope, event_id, PersistedMessage(role="user", content=trigger)
    )

    options = RunOptions(
        conversation_id=event_id,
        identity=request.user_id,
        scope=scope,
        persona_id=request.persona_id,
        personality_ordinal=(
            request.personality_level
            if request.personality_level is not None else settings.default_personality
        ),
        mode=RunMode.ACTION,
        max_iterations=settings.max_iterations,
        tenant_display_name=request.company_name
    )

    logger.info("Action event respond requested",
                conversation_id=event_id,
                action_id=request.action_id,
                persona_id=request.persona_id)

    return StreamingResponse(
        stream_run(orchestrator, [PriorTurn(role="user", content=trigger)], options),
        media_type="text/event-stream",
        headers=SSE_HEADERS
    )


@router.get("/api/chat/{chat_id}/messages", response_model=MessageListResponse)
async def list_chat_messages(
    chat_id: str,
    message_store: Annotated[InMemoryMessageStore, Depends(get_message_store)],
    company_id: str = Query(min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200)
):
    result = await message_store.list_messages(Scope(tenant_id=company_id), chat_id, page, limit)
    return MessageListResponse(messages=result.messages, **result.pagination.model_dump())


@router.get("/api/actions/events/{event_id}/messages", response_model=MessageListResponse)
async def list_action_event_messages(
    event_id: str,
    message_store: Annotated[InMemoryMessageStore, Depends(get_message_store)],
    company_id: str = Query(min_length=1),
    action_id: str = Query(min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200)
):
    scope = Scope(tenant_id=company_id, action_id=action_id)
    result = await message_store.list_messages(scope, event_id, page, limit)
    return MessageListResponse(messages=result.messages, **result.pagination.model_dump())


# REST endpoint that initiates WebSocket session
@router.post("/api/v1/agent/session/create", response_model=SessionResponse)
async def create_session(tenant_id: str = Query(min_length=1)):
    session_id = str(uuid4())
    ws_url = f"/ws/agent/{tenant_id}/{session_id}"

    return SessionResponse(
        session_id=session_id,
        websocket_url=ws_url,
        expires_at=time.time() + 3600
    )
