"""
Conversation items exchanged with the completion service.

The history sent on every request is a list of these items. Each item knows
its wire shape; anything that only exists for local bookkeeping is dropped
by ``sanitize_item`` before transmission.
"""

from typing import Any, Dict, Iterable, List, Literal, Optional, Union
from enum import Enum

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)


class ItemType(str, Enum):
    """Item type tags used by the completion service"""
    MESSAGE = "message"
    FUNCTION_CALL = "function_call"
    FUNCTION_CALL_OUTPUT = "function_call_output"
    FILE_SEARCH_CALL = "file_search_call"
    WEB_SEARCH_CALL = "web_search_call"
    REASONING = "reasoning"


BUILTIN_TOOL_TYPES = (ItemType.FILE_SEARCH_CALL.value, ItemType.WEB_SEARCH_CALL.value)


class UserMessage(BaseModel):
    """A user turn"""
    role: Literal["user"] = "user"
    content: str


class AssistantMessage(BaseModel):
    """An assistant turn, either prior or produced by the service"""
    role: Literal["assistant"] = "assistant"
    text: str
    id: Optional[str] = None


class FunctionCall(BaseModel):
    """A custom function the service wants executed locally"""
    type: Literal["function_call"] = "function_call"
    call_id: str
    name: str
    arguments: str = "{}"
    id: Optional[str] = None
    status: Optional[str] = None
    # Local bookkeeping only, the service rejects it as an unknown field
    parsed_arguments: Optional[Dict[str, Any]] = None


class FunctionCallOutput(BaseModel):
    """Result of a locally executed function, linked by call_id"""
    type: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str


class BuiltinToolCall(BaseModel):
    """A retrieval or web search executed inside the completion service"""
    type: Literal["file_search_call", "web_search_call"]
    id: str
    status: Optional[str] = None


class ReasoningTrace(BaseModel):
    """Opaque reasoning item, replayed verbatim"""
    type: Literal["reasoning"] = "reasoning"
    id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


ConversationItem = Union[
    UserMessage,
    AssistantMessage,
    FunctionCall,
    FunctionCallOutput,
    BuiltinToolCall,
    ReasoningTrace,
]


def sanitize_item(item: ConversationItem) -> ConversationItem:
    """Return the item without local-only fields. Idempotent."""

    if isinstance(item, FunctionCall) and item.parsed_arguments is not None:
        return item.model_copy(update={"parsed_arguments": None})
    return item


def to_wire(item: ConversationItem) -> Dict[str, Any]:
    """Render an item in the shape the completion service accepts"""

    item = sanitize_item(item)

    if isinstance(item, UserMessage):
        return {"role": "user", "content": item.content}
    elif isinstance(item, AssistantMessage):
        wire: Dict[str, Any] = {
            "type": ItemType.MESSAGE.value,
            "role": "assistant",
            "content": [{"type": "output_text", "text": item.text}],
        }
        if item.id:
            wire["id"] = item.id
        return wire
    elif isinstance(item, FunctionCall):
        wire = {
            "type": ItemType.FUNCTION_CALL.value,
            "call_id": item.call_id,
            "name": item.name,
            "arguments": item.arguments,
        }
        if item.id:
            wire["id"] = item.id
        if item.status:
            wire["status"] = item.status
        return wire
    elif isinstance(item, FunctionCallOutput):
        return {
            "type": ItemType.FUNCTION_CALL_OUTPUT.value,
            "call_id": item.call_id,
            "output": item.output,
        }
    elif isinstance(item, ReasoningTrace):
        return dict(item.payload)
    elif isinstance(item, BuiltinToolCall):
        raise ValueError(f"Builtin tool call {item.id} is not replayable")

    raise TypeError(f"Unsupported conversation item: {type(item).__name__}")


def sanitize_history(history: Iterable[ConversationItem]) -> List[Dict[str, Any]]:
    """Render the whole history for transmission"""

    wire_items = []
    for item in history:
        if isinstance(item, BuiltinToolCall):
            logger.warning("Dropping builtin tool call from history", item_id=item.id)
            continue
        wire_items.append(to_wire(item))
    return wire_items


def parse_output_item(payload: Dict[str, Any]) -> Optional[ConversationItem]:
    """Convert a finalized output item into a conversation item.

    Returns None for item types the engine does not handle.
    """

    item_type = payload.get("type")

    if item_type == ItemType.MESSAGE.value:
        text = ""
        for part in payload.get("content") or []:
            if part.get("type") == "output_text" and part.get("text"):
                text = part["text"]
                break
        return AssistantMessage(id=payload.get("id"), text=text)

    elif item_type == ItemType.FUNCTION_CALL.value:
        arguments = payload.get("arguments")
        return FunctionCall(
            id=payload.get("id"),
            call_id=payload["call_id"],
            name=payload["name"],
            arguments=arguments if isinstance(arguments, str) else "{}",
            status=payload.get("status"),
        )

    elif item_type in BUILTIN_TOOL_TYPES:
        return BuiltinToolCall(
            type=item_type,
            id=payload["id"],
            status=payload.get("status"),
        )

    elif item_type == ItemType.REASONING.value:
        return ReasoningTrace(id=payload.get("id"), payload=payload)

    logger.warning("Ignoring unsupported output item", item_type=item_type)
    return None


def from_prior_turns(turns: Iterable[Dict[str, Any]]) -> List[ConversationItem]:
    """Build the starting history from plain {role, content} turns"""

    history: List[ConversationItem] = []
    for turn in turns:
        role = turn.get("role")
        content = turn.get("content") or ""
        if role == "user":
            history.append(UserMessage(content=content))
        elif role == "assistant":
            history.append(AssistantMessage(text=content))
        else:
            raise ValueError(f"Unsupported turn role: {role}")
    return history
