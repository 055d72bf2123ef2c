from typing import Dict, Any, Optional, List, Literal, Union
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    """Stream event types"""
    MESSAGE_DELTA = "message_delta"
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_COMPLETE = "tool_call_complete"
    ASSISTANT_MESSAGE_SAVED = "assistant_message_saved"
    ERROR = "error"
    DONE = "done"
    CONNECTION = "connection"
    USER_MESSAGE = "user_message"


class BaseEvent(BaseModel):
    """Base event model for everything streamed to a caller"""
    type: EventType
    timestamp: datetime = Field(default_factory=_utcnow)
    session_id: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class MessageDeltaData(BaseModel):
    """Cumulative text streamed so far in the current iteration"""
    text: str


class MessageDeltaEvent(BaseEvent):
    type: Literal[EventType.MESSAGE_DELTA] = EventType.MESSAGE_DELTA
    data: MessageDeltaData


class ToolCallData(BaseModel):
    """Tool call lifecycle payload"""
    id: str
    name: str
    arguments: Optional[str] = None
    result: Optional[Any] = None


class ToolCallStartEvent(BaseEvent):
    type: Literal[EventType.TOOL_CALL_START] = EventType.TOOL_CALL_START
    data: ToolCallData


class ToolCallCompleteEvent(BaseEvent):
    type: Literal[EventType.TOOL_CALL_COMPLETE] = EventType.TOOL_CALL_COMPLETE
    data: ToolCallData


class MessageSavedData(BaseModel):
    message_number: int


class AssistantMessageSavedEvent(BaseEvent):
    type: Literal[EventType.ASSISTANT_MESSAGE_SAVED] = EventType.ASSISTANT_MESSAGE_SAVED
    data: MessageSavedData


class ErrorData(BaseModel):
    error: str


class ErrorEvent(BaseEvent):
    """Error event"""
    type: Literal[EventType.ERROR] = EventType.ERROR
    data: ErrorData
    error_code: Optional[str] = None


class DoneData(BaseModel):
    success: bool
    messages_persisted: int
    error: Optional[str] = None
    stop_reason: Optional[str] = None


class DoneEvent(BaseEvent):
    """Final event of a streamed run, carries the run result"""
    type: Literal[EventType.DONE] = EventType.DONE
    data: DoneData


StreamEvent = Union[
    MessageDeltaEvent,
    ToolCallStartEvent,
    ToolCallCompleteEvent,
    AssistantMessageSavedEvent,
    ErrorEvent,
]


class ConnectionEvent(BaseEvent):
    """Connection status event"""
    type: Literal[EventType.CONNECTION] = EventType.CONNECTION
    status: Literal["connected", "disconnected", "reconnecting"]


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class UserMessage(BaseEvent):
    """User message received over the WebSocket"""
    type: Literal[EventType.USER_MESSAGE] = EventType.USER_MESSAGE
    content: str
    persona_id: Optional[str] = None
    personality_ordinal: Optional[int] = None
    conversation_history: List[ChatTurn] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None
