from typing import Any, Awaitable, Callable, Optional, Set, Union
import inspect
import structlog

from deskagent.application.websocket.schema.events import (
    StreamEvent, MessageDeltaEvent, MessageDeltaData,
    ToolCallStartEvent, ToolCallCompleteEvent, ToolCallData,
    AssistantMessageSavedEvent, MessageSavedData,
    ErrorEvent, ErrorData,
)

logger = structlog.get_logger(__name__)

StreamListener = Callable[[StreamEvent], Union[None, Awaitable[None]]]


class StreamingHandler:
    """Delivers stream events of one run to an attached listener.

    Events are delivered in emission order and at most once. Without a
    listener they are dropped; the persisted message is the durable record.
    """

    def __init__(self, listener: Optional[StreamListener] = None, session_id: Optional[str] = None):
        self.listener = listener
        self.session_id = session_id
        self.announced_tool_calls: Set[str] = set()
        self.events_emitted = 0

    async def emit(self, event: StreamEvent):
        """Deliver a single event to the listener"""

        if self.listener is None:
            return

        if self.session_id and not event.session_id:
            event.session_id = self.session_id

        try:
            outcome = self.listener(event)
            if inspect.isawaitable(outcome):
                await outcome
            self.events_emitted += 1
        except Exception as e:
            # The event stream is best effort, the run goes on
            logger.error("Error in stream listener",
                         event_type=event.type.value,
                         error=str(e))

    async def send_message_delta(self, text: str):
        """Send the cumulative text buffer of the current iteration"""

        await self.emit(MessageDeltaEvent(data=MessageDeltaData(text=text)))

    async def send_tool_call_start(self, item_id: str, name: str, arguments: Optional[str] = None) -> bool:
        """Announce a tool call once per item id.

        Returns False when the call was already announced, e.g. while
        streaming and then again from the finalized response.
        """

        if item_id in self.announced_tool_calls:
            return False
        self.announced_tool_calls.add(item_id)

        await self.emit(ToolCallStartEvent(
            data=ToolCallData(id=item_id, name=name, arguments=arguments)
        ))
        return True

    async def send_tool_call_complete(self, item_id: str, name: str, result: Any = None):
        await self.emit(ToolCallCompleteEvent(
            data=ToolCallData(id=item_id, name=name, result=result)
        ))

    async def send_message_saved(self, message_number: int):
        await self.emit(AssistantMessageSavedEvent(
            data=MessageSavedData(message_number=message_number)
        ))

    async def send_error(self, error: str, error_code: Optional[str] = None):
        await self.emit(ErrorEvent(data=ErrorData(error=error), error_code=error_code))
