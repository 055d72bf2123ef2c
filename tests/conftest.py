import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from deskagent.domain.completion.completion_service import (
    CompletionFailed, CompletionFinished, CompletionRequest, OutputItemAdded, TextDelta,
)
from deskagent.domain.context.memory.message_store import InMemoryMessageStore
from deskagent.domain.models.agent_state import RunOptions, Scope
from deskagent.domain.orchestration.core.main_agent import AgentOrchestrator
from deskagent.domain.tool.tool_executor import ApiToolExecutor
from deskagent.domain.tool.tool_registry import ToolRegistry
from deskagent.infrastructure.config.settings import Settings

API_BASE_URL = "http://api.test"


def message_item(text: str, item_id: str = "msg_1") -> Dict[str, Any]:
    return {
        "type": "message",
        "id": item_id,
        "role": "assistant",
        "status": "completed",
        "content": [{"type": "output_text", "text": text, "annotations": []}],
    }


def function_call_item(
    name: str, arguments: Dict[str, Any], call_id: str = "call_1", item_id: str = "fc_1"
) -> Dict[str, Any]:
    return {
        "type": "function_call",
        "id": item_id,
        "call_id": call_id,
        "name": name,
        "arguments": json.dumps(arguments),
        "status": "completed",
    }


def builtin_item(kind: str = "file_search_call", item_id: str = "fs_1") -> Dict[str, Any]:
    return {"type": kind, "id": item_id, "status": "completed", "queries": ["refund policy"]}


def reasoning_item(item_id: str = "rs_1") -> Dict[str, Any]:
    return {"type": "reasoning", "id": item_id, "summary": []}


def text_turn(text: str, deltas: Optional[List[str]] = None, item_id: str = "msg_1") -> List[Any]:
    """Events of an iteration that answers with text"""
    events: List[Any] = [OutputItemAdded(item_id=item_id, item_type="message")]
    events += [TextDelta(delta=delta, item_id=item_id) for delta in (deltas or [text])]
    events.append(CompletionFinished(output=[message_item(text, item_id)]))
    return events


def output_turn(*items: Dict[str, Any]) -> List[Any]:
    """Events of an iteration that only returns output items"""
    events: List[Any] = [
        OutputItemAdded(item_id=item["id"], item_type=item["type"], name=item.get("name", ""))
        for item in items
        if item["type"] != "reasoning"
    ]
    events.append(CompletionFinished(output=list(items)))
    return events


def failed_turn(message: str = "model overloaded") -> List[Any]:
    return [CompletionFailed(message=message)]


class ScriptedCompletionService:
    """Plays back one scripted event list per request"""

    def __init__(self, turns: List[List[Any]]) -> None:
        self.turns = list(turns)
        self.requests: List[CompletionRequest] = []

    async def stream(self, request: CompletionRequest):
        self.requests.append(request)
        if not self.turns:
            raise AssertionError("Completion service called more often than scripted")
        for event in self.turns.pop(0):
            yield event


class StallingCompletionService:
    """Yields the given events, then hangs without finishing the response"""

    def __init__(self, events: List[Any], stall_seconds: float = 10.0) -> None:
        self.events = events
        self.stall_seconds = stall_seconds
        self.requests: List[CompletionRequest] = []
        self.closed = False

    async def stream(self, request: CompletionRequest):
        self.requests.append(request)
        try:
            for event in self.events:
                yield event
            await asyncio.sleep(self.stall_seconds)
        finally:
            self.closed = True


class RecordingApi:
    """Product API stand-in served through httpx.MockTransport"""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"error": "boom"})
        return httpx.Response(200, json={"ok": True, "path": request.url.path})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        api_base_url=API_BASE_URL,
        vector_store_ids=["vs_test"],
        iteration_timeout_seconds=5,
    )


@pytest.fixture
def product_api() -> RecordingApi:
    return RecordingApi()


@pytest.fixture
def tool_registry(product_api: RecordingApi) -> ToolRegistry:
    return ToolRegistry(
        base_url=API_BASE_URL,
        executor=ApiToolExecutor(transport=product_api.transport),
    )


@pytest.fixture
def message_store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def scope() -> Scope:
    return Scope(tenant_id="company-1")


@pytest.fixture
def make_orchestrator(settings: Settings, tool_registry: ToolRegistry, message_store: InMemoryMessageStore):
    """Build an orchestrator around a scripted completion service"""

    def _make(turns: Any, vector_store_resolver: Any = None, **overrides: Any):
        service = turns if hasattr(turns, "stream") else ScriptedCompletionService(turns)
        orchestrator = AgentOrchestrator(
            completion_service=service,
            tool_registry=tool_registry,
            message_store=message_store,
            settings=settings.model_copy(update=overrides) if overrides else settings,
            vector_store_resolver=vector_store_resolver,
        )
        return orchestrator, service

    return _make


@pytest.fixture
def make_options(scope: Scope):
    def _make(events: Optional[List[Any]] = None, **overrides: Any) -> RunOptions:
        values: Dict[str, Any] = {
            "conversation_id": "chat-1",
            "identity": "user-1",
            "scope": scope,
            "persona_id": "emma",
        }
        if events is not None:
            values["on_stream"] = events.append
        values.update(overrides)
        return RunOptions(**values)

    return _make
