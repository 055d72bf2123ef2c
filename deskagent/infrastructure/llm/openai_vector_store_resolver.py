from collections import defaultdict
from typing import Dict, Tuple
import asyncio
import time

import openai
import structlog
from openai import AsyncOpenAI

from deskagent.domain.completion.vector_store import vector_store_name
from deskagent.domain.models.agent_state import Scope
from deskagent.domain.models.errors import TransportError

logger = structlog.get_logger(__name__)


class OpenAIVectorStoreResolver:
    """Gets or creates the tenant's vector store through the OpenAI API.

    Store ids are cached in process for ``cache_ttl_seconds``; lookups of
    the same store are serialized so concurrent runs never create it twice.
    """

    def __init__(self, client: AsyncOpenAI, cache_ttl_seconds: float = 3600.0) -> None:
        self._client = client
        self.cache_ttl_seconds = cache_ttl_seconds
        self._cache: Dict[str, Tuple[str, float]] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def resolve(self, scope: Scope, identity: str) -> str:
        name = vector_store_name(identity, scope.tenant_id)

        async with self._locks[name]:
            cached = self._cache.get(name)
            if cached is not None and time.monotonic() - cached[1] < self.cache_ttl_seconds:
                return cached[0]

            try:
                store_id = await self._find_or_create(name)
            except openai.OpenAIError as e:
                raise TransportError(f"Vector store lookup failed for {name}: {e}") from e

            self._cache[name] = (store_id, time.monotonic())
            return store_id

    async def _find_or_create(self, name: str) -> str:
        page = await self._client.vector_stores.list(limit=50)
        for store in page.data:
            if store.name == name:
                logger.info("Found vector store", name=name, vector_store_id=store.id)
                return store.id

        created = await self._client.vector_stores.create(name=name)
        logger.info("Created vector store", name=name, vector_store_id=created.id)
        return created.id
