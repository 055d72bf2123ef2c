from typing import Any, AsyncIterator, Optional

import openai
import structlog
from openai import AsyncOpenAI

from deskagent.domain.completion.completion_service import (
    CompletionEvent, CompletionFailed, CompletionFinished,
    CompletionRequest, OutputItemAdded, TextDelta,
)
from deskagent.domain.models.errors import TransportError

logger = structlog.get_logger(__name__)


class OpenAICompletionService:
    """Streams requests through the OpenAI Responses API."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None) -> None:
        # A single client is shared by all concurrent runs
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[CompletionEvent]:
        """Yield completion events for one request."""
        try:
            response_stream = await self._client.responses.create(
                model=request.model,
                input=request.input,
                instructions=request.instructions,
                tools=request.tools,
                parallel_tool_calls=False,
                stream=True,
            )

            # Closes the HTTP response when the consumer stops early
            async with response_stream:
                async for event in response_stream:
                    mapped = self._map_event(event)
                    if mapped is not None:
                        yield mapped
        except openai.OpenAIError as e:
            raise TransportError(f"Completion service error: {e}") from e

    def _map_event(self, event: Any) -> Optional[CompletionEvent]:
        event_type = getattr(event, "type", None)

        if event_type == "response.output_text.delta":
            return TextDelta(delta=event.delta or "", item_id=getattr(event, "item_id", "") or "")

        if event_type == "response.output_item.added":
            item = event.item
            return OutputItemAdded(
                item_id=getattr(item, "id", "") or "",
                item_type=getattr(item, "type", "") or "",
                name=getattr(item, "name", "") or "",
            )

        if event_type == "response.completed":
            output = [
                item.model_dump(exclude_none=True) for item in (event.response.output or [])
            ]
            return CompletionFinished(output=output)

        if event_type == "response.failed":
            error = getattr(event.response, "error", None)
            message = getattr(error, "message", None) or "Response failed"
            return CompletionFailed(message=message)

        if event_type == "error":
            return CompletionFailed(message=getattr(event, "message", None) or "Stream error")

        return None
