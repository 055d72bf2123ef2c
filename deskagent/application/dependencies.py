from functools import lru_cache

from openai import AsyncOpenAI

from deskagent.domain.context.memory.message_store import InMemoryMessageStore
from deskagent.domain.orchestration.core.main_agent import AgentOrchestrator
from deskagent.domain.tool.tool_registry import ToolRegistry
from deskagent.infrastructure.config.settings import Settings, get_settings
from deskagent.infrastructure.llm.openai_completion_service import OpenAICompletionService
from deskagent.infrastructure.llm.openai_vector_store_resolver import OpenAIVectorStoreResolver


def build_orchestrator(settings: Settings, message_store: InMemoryMessageStore) -> AgentOrchestrator:
    """Wire the engine from settings"""

    client = AsyncOpenAI(api_key=settings.openai_api_key)

    return AgentOrchestrator(
        completion_service=OpenAICompletionService(client=client),
        tool_registry=ToolRegistry(
            base_url=settings.api_base_url,
            timeout=settings.tool_timeout_seconds
        ),
        message_store=message_store,
        settings=settings,
        vector_store_resolver=(
            OpenAIVectorStoreResolver(client, cache_ttl_seconds=settings.vector_store_cache_seconds)
            if settings.tenant_vector_stores else None
        )
    )


@lru_cache
def get_message_store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@lru_cache
def get_orchestrator() -> AgentOrchestrator:
    """Process-wide engine, safe to share between conversations"""
    return build_orchestrator(get_settings(), get_message_store())
