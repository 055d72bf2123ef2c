from typing import Any, AsyncIterator, Dict, List, Literal, Protocol, Union

from pydantic import BaseModel, Field


class CompletionRequest(BaseModel):
    """One streamed request to the completion service"""
    model: str
    instructions: str
    input: List[Dict[str, Any]] = Field(description="Sanitized conversation history")
    tools: List[Dict[str, Any]] = Field(default_factory=list)


class TextDelta(BaseModel):
    """A chunk of output text"""
    kind: Literal["text_delta"] = "text_delta"
    delta: str
    item_id: str = ""


class OutputItemAdded(BaseModel):
    """The service started producing a new output item"""
    kind: Literal["output_item_added"] = "output_item_added"
    item_id: str
    item_type: str
    name: str = ""


class CompletionFailed(BaseModel):
    """The service reported an error in the stream"""
    kind: Literal["completion_failed"] = "completion_failed"
    message: str


class CompletionFinished(BaseModel):
    """The finalized response, its output items in service order"""
    kind: Literal["completion_finished"] = "completion_finished"
    output: List[Dict[str, Any]] = Field(default_factory=list)


CompletionEvent = Union[TextDelta, OutputItemAdded, CompletionFailed, CompletionFinished]


class CompletionService(Protocol):
    """Language-model backend the agent loop talks to."""

    def stream(self, request: CompletionRequest) -> AsyncIterator[CompletionEvent]:
        """Submit a request and yield its events.

        The last event of a healthy stream is a CompletionFinished.
        Implementations raise TransportError for network failures.
        """
        ...
