from typing import TypedDict, AsyncIterator, List, Dict, Any, FrozenSet, Optional, Literal, Sequence, Tuple, Union
from contextlib import aclosing
from langgraph.graph import StateGraph, END
import asyncio
import json
import time

import structlog

from deskagent.domain.completion.completion_service import (
    CompletionEvent, CompletionService, CompletionRequest,
    TextDelta, OutputItemAdded, CompletionFailed, CompletionFinished,
)
from deskagent.domain.completion.vector_store import VectorStoreResolver
from deskagent.domain.context.memory.message_store import MessageStore
from deskagent.domain.models.agent_state import (
    PersistedMessage, PriorTurn, RunMode, RunOptions, RunResult, StopReason,
    ToolCallKind, ToolCallRecord,
)
from deskagent.domain.models.conversation import (
    BUILTIN_TOOL_TYPES, AssistantMessage, BuiltinToolCall, ConversationItem,
    FunctionCall, FunctionCallOutput, ItemType, ReasoningTrace,
    from_prior_turns, parse_output_item, sanitize_history,
)
from deskagent.domain.models.errors import (
    AgentError, PersistenceError, ToolExecutionError, TransportError,
)
from deskagent.domain.prompt.prompt_composer import compose_instructions
from deskagent.domain.streaming.streaming_handler import StreamingHandler
from deskagent.domain.tool.tool_definition import Capability
from deskagent.domain.tool.tool_registry import ToolRegistry
from deskagent.infrastructure.config.settings import Settings, get_settings
from deskagent.infrastructure.observability.logging import agent_logger, metrics

logger = structlog.get_logger(__name__)

TOOL_CALL_ITEM_TYPES = (ItemType.FUNCTION_CALL.value,) + BUILTIN_TOOL_TYPES


async def _next_item(stream: AsyncIterator[CompletionEvent]) -> CompletionEvent:
    return await stream.__anext__()


class LoopRun:
    """Per-invocation collaborators shared by the graph nodes"""

    def __init__(
        self,
        options: RunOptions,
        streaming_handler: StreamingHandler,
        instructions: str,
        tools: Optional[List[Dict[str, Any]]] = None
    ):
        self.options = options
        self.streaming_handler = streaming_handler
        self.instructions = instructions
        self.tools = tools or []
        # Mirrored here so a failed run can still report progress
        self.iterations = 0
        self.messages_persisted = 0

    @property
    def cancelled(self) -> bool:
        event = self.options.cancel_event
        return event is not None and event.is_set()

    @property
    def offered_functions(self) -> FrozenSet[str]:
        """Custom functions sent with the request, the only ones dispatched"""
        return frozenset(tool["name"] for tool in self.tools if tool.get("type") == "function")


class LoopState(TypedDict):
    """State for the loop graph, created fresh per run"""
    run: LoopRun
    history: List[ConversationItem]
    iteration: int
    tool_records: List[ToolCallRecord]
    stream_buffer: str
    pending_output: List[Dict[str, Any]]
    terminal_text: Optional[str]
    executed_function: bool
    saw_builtin: bool
    messages_persisted: int
    stop_reason: Optional[StopReason]


class AgentOrchestrator:
    """Autonomous tool-calling loop using LangGraph"""

    def __init__(
        self,
        completion_service: CompletionService,
        tool_registry: ToolRegistry,
        message_store: MessageStore,
        settings: Optional[Settings] = None,
        vector_store_resolver: Optional[VectorStoreResolver] = None
    ):
        self.completion_service = completion_service
        self.tool_registry = tool_registry
        self.message_store = message_store
        self.settings = settings or get_settings()
        self.vector_store_resolver = vector_store_resolver
        self.workflow = self._create_workflow()

    def _create_workflow(self):
        """Create the loop graph"""

        workflow = StateGraph(LoopState)

        workflow.add_node("call_model", self.call_model_node)
        workflow.add_node("process_output", self.process_output_node)
        workflow.add_node("persist_message", self.persist_message_node)

        workflow.set_entry_point("call_model")

        workflow.add_conditional_edges(
            "call_model",
            self.check_model_result,
            {
                "process": "process_output",
                "stop": END
            }
        )

        # Termination test
        workflow.add_conditional_edges(
            "process_output",
            self.route_after_output,
            {
                "persist": "persist_message",
                "continue": "call_model",
                "stop": END
            }
        )

        workflow.add_edge("persist_message", END)

        return workflow.compile()

    async def call_model_node(self, state: LoopState) -> Dict[str, Any]:
        """Submit the sanitized history and consume the stream"""

        run = state["run"]
        if run.cancelled:
            return {"stop_reason": StopReason.CANCELLED}

        iteration = state["iteration"] + 1
        run.iterations = iteration
        options = run.options

        agent_logger.log_iteration(
            conversation_id=options.conversation_id,
            iteration=iteration,
            max_iterations=options.max_iterations,
            history_length=len(state["history"])
        )

        request = CompletionRequest(
            model=self.settings.model,
            instructions=run.instructions,
            input=sanitize_history(state["history"]),
            tools=run.tools
        )

        start_time = time.time()
        try:
            buffer, output = await asyncio.wait_for(
                self._consume_stream(run, request),
                timeout=self.settings.iteration_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Completion timed out after {self.settings.iteration_timeout_seconds}s"
            ) from e
        finally:
            metrics.record_latency("completion_iteration", (time.time() - start_time) * 1000)

        if output is None:
            return {"iteration": iteration, "stream_buffer": buffer, "stop_reason": StopReason.CANCELLED}

        return {
            "iteration": iteration,
            "stream_buffer": buffer,
            "pending_output": output,
            "terminal_text": None,
            "executed_function": False,
            "saw_builtin": False,
        }

    async def _consume_stream(
        self, run: LoopRun, request: CompletionRequest
    ) -> Tuple[str, Optional[List[Dict[str, Any]]]]:
        """Forward deltas and tool announcements, return the finalized output.

        The output is None when the run was cancelled mid-stream.
        """

        handler = run.streaming_handler
        buffer = ""
        finished: Optional[CompletionFinished] = None

        async with aclosing(self.completion_service.stream(request)) as stream:
            while True:
                try:
                    event = await self._next_event(run, stream)
                except StopAsyncIteration:
                    break

                if event is None or run.cancelled:
                    return buffer, None

                if isinstance(event, TextDelta):
                    if not event.delta:
                        continue
                    buffer += event.delta
                    await handler.send_message_delta(buffer)
                elif isinstance(event, OutputItemAdded):
                    if event.item_type in TOOL_CALL_ITEM_TYPES and event.item_id:
                        await handler.send_tool_call_start(
                            event.item_id, event.name or ToolCallKind(event.item_type).display_name
                        )
                elif isinstance(event, CompletionFailed):
                    raise TransportError(event.message)
                elif isinstance(event, CompletionFinished):
                    finished = event

        if finished is None:
            raise TransportError("Stream ended without a completed response")
        return buffer, finished.output

    async def _next_event(self, run: LoopRun, stream: AsyncIterator[CompletionEvent]) -> Optional[CompletionEvent]:
        """Wait for the next stream event, or return None once the run is cancelled"""

        cancel_event = run.options.cancel_event
        if cancel_event is None:
            return await stream.__anext__()

        next_event = asyncio.ensure_future(_next_item(stream))
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {next_event, cancelled}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            pending = [task for task in (next_event, cancelled) if not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        if next_event in done:
            return next_event.result()
        return None

    async def process_output_node(self, state: LoopState) -> Dict[str, Any]:
        """Process the finalized output items in order"""

        run = state["run"]
        handler = run.streaming_handler
        history = list(state["history"])
        records = list(state["tool_records"])
        terminal_text: Optional[str] = None
        executed_function = False
        saw_builtin = False

        for payload in state["pending_output"]:
            item = parse_output_item(payload)

            if isinstance(item, AssistantMessage):
                # The streamed buffer was already delivered, keep what the caller saw
                text = state["stream_buffer"] or item.text
                if terminal_text is None and text:
                    terminal_text = text

            elif isinstance(item, BuiltinToolCall):
                saw_builtin = True
                kind = ToolCallKind(item.type)
                self._add_record(records, ToolCallRecord(id=item.id, type=kind))
                await handler.send_tool_call_start(item.id, kind.display_name)
                await handler.send_tool_call_complete(item.id, kind.display_name)

            elif isinstance(item, FunctionCall):
                executed_function = True
                call, output, record = await self._execute_function_call(run, item)
                history.append(call)
                history.append(output)
                self._add_record(records, record)

            elif isinstance(item, ReasoningTrace):
                history.append(item)

        return {
            "history": history,
            "tool_records": records,
            "terminal_text": terminal_text,
            "executed_function": executed_function,
            "saw_builtin": saw_builtin,
            "pending_output": [],
        }

    async def _execute_function_call(
        self, run: LoopRun, item: FunctionCall
    ) -> Tuple[FunctionCall, FunctionCallOutput, ToolCallRecord]:
        """Dispatch one function call and build its history pair"""

        options = run.options
        handler = run.streaming_handler
        item_id = item.id or item.call_id

        await handler.send_tool_call_start(item_id, item.name, item.arguments)

        try:
            parsed = json.loads(item.arguments or "{}")
        except json.JSONDecodeError as e:
            raise ToolExecutionError(
                f"Invalid arguments for {item.name}: {e.msg}", tool_name=item.name
            ) from e
        if not isinstance(parsed, dict):
            raise ToolExecutionError(f"Arguments for {item.name} must be an object", tool_name=item.name)

        parsed = self._inject_request_scope(item.name, parsed, options)

        start_time = time.time()
        status = "completed"
        try:
            result = await self.tool_registry.dispatch(
                item.name,
                parsed,
                identity=options.identity,
                scope=options.scope,
                offered=run.offered_functions
            )
        except ToolExecutionError as e:
            duration_ms = (time.time() - start_time) * 1000
            agent_logger.log_tool_execution(
                tool_name=item.name,
                conversation_id=options.conversation_id,
                call_id=item.call_id,
                input_data=parsed,
                duration_ms=duration_ms,
                success=False,
                error=str(e)
            )
            metrics.increment_counter("tool_calls.failed", tags={"tool": item.name})
            if self.settings.tool_error_policy == "abort":
                raise
            result = {"error": str(e)}
            status = "failed"
        else:
            duration_ms = (time.time() - start_time) * 1000
            agent_logger.log_tool_execution(
                tool_name=item.name,
                conversation_id=options.conversation_id,
                call_id=item.call_id,
                input_data=parsed,
                duration_ms=duration_ms
            )
            metrics.increment_counter("tool_calls.completed", tags={"tool": item.name})

        serialized = json.dumps(result, default=str)

        call = item.model_copy(update={"parsed_arguments": parsed})
        output = FunctionCallOutput(call_id=item.call_id, output=serialized)
        record = ToolCallRecord(
            id=item_id,
            type=ToolCallKind.FUNCTION,
            name=item.name,
            arguments=item.arguments,
            parsed_arguments=parsed,
            output=serialized,
            status=status
        )

        await handler.send_tool_call_complete(item_id, item.name, result)
        return call, output, record

    def _inject_request_scope(self, name: str, parsed: Dict[str, Any], options: RunOptions) -> Dict[str, Any]:
        """Add values only the running conversation knows"""

        capability = Capability.lookup(name)
        if capability is Capability.SAVE_ANSWERED_QUESTION and not parsed.get("session_id"):
            return {**parsed, "session_id": options.conversation_id}
        if capability is Capability.ESCALATE_TO_HUMAN and options.persona_id:
            return {**parsed, "employeeId": options.persona_id}
        return parsed

    def _add_record(self, records: List[ToolCallRecord], record: ToolCallRecord):
        if len(records) >= self.settings.max_tool_records:
            raise ToolExecutionError(
                f"tool call budget exceeded ({self.settings.max_tool_records} calls without a reply)"
            )
        records.append(record)

    async def persist_message_node(self, state: LoopState) -> Dict[str, Any]:
        """Write the terminal text with every tool used since the last message"""

        run = state["run"]
        options = run.options
        records = state["tool_records"]
        content = state["terminal_text"] or ""

        message = PersistedMessage(
            role="assistant",
            content=content,
            tool_calls=records,
            metadata={
                "persona_id": options.persona_id,
                "mode": options.mode.value,
            }
        )

        try:
            await self.message_store.persist(options.scope, options.conversation_id, message)
        except AgentError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to persist message: {e}") from e

        messages_persisted = state["messages_persisted"] + 1
        run.messages_persisted = messages_persisted

        agent_logger.log_message_persisted(
            conversation_id=options.conversation_id,
            message_number=messages_persisted,
            tool_call_count=len(records),
            content_length=len(content)
        )

        await run.streaming_handler.send_message_saved(messages_persisted)

        return {
            "messages_persisted": messages_persisted,
            "tool_records": [],
            "stop_reason": StopReason.TERMINAL_TEXT,
        }

    def check_model_result(self, state: LoopState) -> Literal["process", "stop"]:
        if state.get("stop_reason") == StopReason.CANCELLED:
            return "stop"
        return "process"

    def route_after_output(self, state: LoopState) -> Literal["persist", "continue", "stop"]:
        """Termination test, in priority order"""

        if state.get("terminal_text"):
            return "persist"

        if not (state["executed_function"] or state["saw_builtin"]):
            return "stop"

        if state["iteration"] >= state["run"].options.max_iterations:
            return "stop"

        return "continue"

    def _final_stop_reason(self, state: Dict[str, Any]) -> StopReason:
        if state.get("stop_reason"):
            return state["stop_reason"]
        if state.get("executed_function") or state.get("saw_builtin"):
            return StopReason.BUDGET_EXHAUSTED
        return StopReason.EMPTY_COMPLETION

    async def run(
        self,
        prior_turns: Sequence[Union[PriorTurn, Dict[str, Any]]],
        options: RunOptions
    ) -> RunResult:
        """Drive one conversation turn to a terminal reply or a stop"""

        streaming_handler = StreamingHandler(options.on_stream, session_id=options.conversation_id)
        instructions = compose_instructions(
            options.persona_id,
            options.personality_ordinal,
            options.mode,
            options.tenant_display_name
        )
        run = LoopRun(options, streaming_handler, instructions)

        structlog.contextvars.bind_contextvars(
            conversation_id=options.conversation_id,
            persona_id=options.persona_id,
            run_mode=options.mode.value
        )

        try:
            file_search_enabled = options.file_search_enabled and self.settings.file_search_enabled
            run.tools = self.tool_registry.get_tool_schemas(
                options.persona_id,
                options.mode,
                options.enabled_capabilities,
                file_search_enabled=file_search_enabled,
                web_search_enabled=options.web_search_enabled and self.settings.web_search_enabled,
                vector_store_ids=(
                    await self._resolve_vector_store_ids(options) if file_search_enabled else None
                )
            )

            turns = [t.model_dump() if isinstance(t, PriorTurn) else t for t in prior_turns]
            initial_state: LoopState = {
                "run": run,
                "history": from_prior_turns(turns),
                "iteration": 0,
                "tool_records": [],
                "stream_buffer": "",
                "pending_output": [],
                "terminal_text": None,
                "executed_function": False,
                "saw_builtin": False,
                "messages_persisted": 0,
                "stop_reason": None,
            }

            final_state = await self.workflow.ainvoke(
                initial_state,
                # Each iteration visits call_model and process_output
                config={"recursion_limit": options.max_iterations * 2 + 5}
            )
            result = self._build_result(final_state, run)

        except AgentError as e:
            logger.error("Agent run failed", error=str(e), error_type=type(e).__name__)
            result = await self._fail(run, str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Unexpected error in agent run")
            result = await self._fail(run, str(e) or type(e).__name__)
        finally:
            structlog.contextvars.unbind_contextvars("conversation_id", "persona_id", "run_mode")

        agent_logger.log_run_finished(
            conversation_id=options.conversation_id,
            success=result.success,
            stop_reason=result.stop_reason.value,
            iterations=result.iterations,
            messages_persisted=result.messages_persisted,
            error=result.error
        )
        metrics.increment_counter(f"runs.{result.stop_reason.value}")
        return result

    async def _resolve_vector_store_ids(self, options: RunOptions) -> List[str]:
        """Stores file search runs against, per tenant.

        Explicit ids on the options win; without a resolver the configured
        ids are used. A failed lookup leaves file search out of the request.
        """

        if options.vector_store_ids is not None:
            return options.vector_store_ids
        if self.vector_store_resolver is None:
            return self.settings.vector_store_ids

        try:
            return [await self.vector_store_resolver.resolve(options.scope, options.identity)]
        except TransportError as e:
            logger.warning("Vector store unavailable, file search disabled",
                           tenant_id=options.scope.tenant_id,
                           error=str(e))
            return []

    def _build_result(self, final_state: Dict[str, Any], run: LoopRun) -> RunResult:
        stop_reason = self._final_stop_reason(final_state)
        if stop_reason == StopReason.CANCELLED:
            return RunResult(
                success=False,
                messages_persisted=final_state["messages_persisted"],
                error="cancelled",
                iterations=run.iterations,
                stop_reason=stop_reason
            )
        return RunResult(
            success=True,
            messages_persisted=final_state["messages_persisted"],
            iterations=run.iterations,
            stop_reason=stop_reason
        )

    async def _fail(self, run: LoopRun, error: str) -> RunResult:
        await run.streaming_handler.send_error(error)
        return RunResult(
            success=False,
            messages_persisted=run.messages_persisted,
            error=error,
            iterations=run.iterations,
            stop_reason=StopReason.ERROR
        )
