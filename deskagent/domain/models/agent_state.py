from typing import Dict, Any, List, Optional, Callable, FrozenSet, Literal
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from enum import Enum
import asyncio


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunMode(str, Enum):
    """How the persona is being driven"""
    DIRECT = "direct"
    ACTION = "action"


class StopReason(str, Enum):
    """Why a run ended"""
    TERMINAL_TEXT = "terminal_text"
    EMPTY_COMPLETION = "empty_completion"
    BUDGET_EXHAUSTED = "budget_exhausted"
    CANCELLED = "cancelled"
    ERROR = "error"


class ToolCallKind(str, Enum):
    """Tool call kinds as stored on persisted messages"""
    FILE_SEARCH = "file_search_call"
    WEB_SEARCH = "web_search_call"
    FUNCTION = "function_call"

    @property
    def display_name(self) -> str:
        if self is ToolCallKind.FILE_SEARCH:
            return "file_search"
        if self is ToolCallKind.WEB_SEARCH:
            return "web_search"
        return "function"


class ToolCallStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class ToolCallRecord(BaseModel):
    """One tool that contributed to an assistant message"""
    id: str = Field(description="Output item id assigned by the completion service")
    type: ToolCallKind
    name: Optional[str] = Field(None, description="Function name, null for builtin tools")
    arguments: Optional[str] = Field(None, description="Raw JSON arguments")
    parsed_arguments: Optional[Dict[str, Any]] = None
    output: Optional[str] = Field(None, description="JSON-serialized function result")
    status: ToolCallStatus = ToolCallStatus.COMPLETED


class Scope(BaseModel):
    """Tenant scope a run operates in"""
    tenant_id: str = Field(description="Company / knowledge base identifier")
    action_id: Optional[str] = Field(None, description="Set when persisting into an action event thread")


class PriorTurn(BaseModel):
    """A finished turn handed to the engine"""
    role: Literal["user", "assistant"]
    content: str


class RunOptions(BaseModel):
    """Options for one engine invocation"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    conversation_id: str = Field(description="Chat id, or event id in action mode")
    identity: str = Field(description="User the run acts on behalf of")
    scope: Scope
    persona_id: Optional[str] = None
    personality_ordinal: int = 2
    mode: RunMode = RunMode.DIRECT
    max_iterations: int = Field(default=10, ge=1)
    tenant_display_name: Optional[str] = None
    enabled_capabilities: Optional[FrozenSet[str]] = Field(
        None, description="Function names the persona may call, None for all"
    )
    file_search_enabled: bool = True
    web_search_enabled: bool = True
    vector_store_ids: Optional[List[str]] = Field(
        None, description="File search stores for this run, resolved per tenant when None"
    )
    on_stream: Optional[Callable[..., Any]] = None
    cancel_event: Optional[asyncio.Event] = None


class PersistedMessage(BaseModel):
    """Durable record of a finished turn"""
    id: Optional[str] = None
    role: Literal["user", "assistant"]
    content: str
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_document(self) -> Dict[str, Any]:
        """Storage shape; the tool summary is omitted when empty"""
        document = self.model_dump(mode="json", exclude={"tool_calls", "id"})
        if self.tool_calls:
            document["tool_calls"] = [
                call.model_dump(mode="json") for call in self.tool_calls
            ]
        return document


class RunResult(BaseModel):
    """Outcome of one engine invocation"""
    success: bool
    messages_persisted: int = 0
    error: Optional[str] = None
    iterations: int = 0
    stop_reason: StopReason = StopReason.TERMINAL_TEXT
