from typing import Dict, List, Protocol, Tuple
from collections import defaultdict
import asyncio
import uuid

from pydantic import BaseModel

from deskagent.domain.models.agent_state import PersistedMessage, Scope, utcnow

ThreadKey = Tuple[str, ...]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    has_more: bool


class MessagePage(BaseModel):
    messages: List[PersistedMessage]
    pagination: Pagination


class MessageStore(Protocol):
    """Durable append-only persistence for finished turns"""

    async def persist(self, scope: Scope, conversation_id: str, message: PersistedMessage) -> PersistedMessage:
        ...

    async def list_messages(
        self, scope: Scope, conversation_id: str, page: int = 1, limit: int = 50
    ) -> MessagePage:
        ...


def thread_key(scope: Scope, conversation_id: str) -> ThreadKey:
    """Chat thread, or the event thread of an action when the scope names one"""
    if scope.action_id:
        return (scope.tenant_id, "actions", scope.action_id, "events", conversation_id)
    return (scope.tenant_id, "chats", conversation_id)


class InMemoryMessageStore:
    """Keeps finished turns in process memory"""

    def __init__(self):
        self.threads: Dict[ThreadKey, List[PersistedMessage]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def persist(self, scope: Scope, conversation_id: str, message: PersistedMessage) -> PersistedMessage:
        """Append a message to its thread and return the stored copy"""

        key = thread_key(scope, conversation_id)
        stored = message.model_copy(update={
            "id": message.id or uuid.uuid4().hex,
            "timestamp": utcnow(),
        }, deep=True)

        async with self._lock:
            self.threads[key].append(stored)

        return stored.model_copy(deep=True)

    async def list_messages(
        self, scope: Scope, conversation_id: str, page: int = 1, limit: int = 50
    ) -> MessagePage:
        """List messages of a thread, oldest first"""

        page = max(page, 1)
        offset = (page - 1) * limit

        async with self._lock:
            thread = self.threads.get(thread_key(scope, conversation_id), [])
            total = len(thread)
            selected = [message.model_copy(deep=True) for message in thread[offset:offset + limit]]

        return MessagePage(
            messages=selected,
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                has_more=offset + len(selected) < total,
            ),
        )
