import asyncio
from types import SimpleNamespace
from typing import Any, List, Optional

import httpx
import openai
import pytest

from deskagent.domain.completion.vector_store import vector_store_name
from deskagent.domain.models.agent_state import Scope
from deskagent.domain.models.errors import TransportError
from deskagent.infrastructure.llm.openai_vector_store_resolver import OpenAIVectorStoreResolver


class FakeVectorStores:

    def __init__(self, existing: Optional[List[Any]] = None, error: Optional[Exception] = None) -> None:
        self.existing = list(existing or [])
        self.error = error
        self.created: List[str] = []
        self.list_calls = 0

    async def list(self, limit: int = 20):
        self.list_calls += 1
        if self.error is not None:
            raise self.error
        await asyncio.sleep(0)
        return SimpleNamespace(data=list(self.existing))

    async def create(self, name: str):
        store = SimpleNamespace(id=f"vs_{len(self.created) + 1}", name=name)
        self.created.append(name)
        self.existing.append(store)
        return store


def make_resolver(stores: FakeVectorStores, ttl: float = 3600.0) -> OpenAIVectorStoreResolver:
    return OpenAIVectorStoreResolver(SimpleNamespace(vector_stores=stores), cache_ttl_seconds=ttl)


class TestVectorStoreName:

    def test_tenant_is_sanitized(self) -> None:
        assert vector_store_name("user-1", "Acme Inc/EU") == "kb_user-1_Acme_Inc_EU"

    def test_tenants_get_distinct_names(self) -> None:
        assert vector_store_name("user-1", "company-1") != vector_store_name("user-1", "company-2")


class TestOpenAIVectorStoreResolver:

    @pytest.mark.asyncio
    async def test_existing_store_is_reused(self) -> None:
        stores = FakeVectorStores(existing=[
            SimpleNamespace(id="vs_other", name="kb_user-1_company-2"),
            SimpleNamespace(id="vs_mine", name="kb_user-1_company-1"),
        ])

        store_id = await make_resolver(stores).resolve(Scope(tenant_id="company-1"), "user-1")

        assert store_id == "vs_mine"
        assert stores.created == []

    @pytest.mark.asyncio
    async def test_missing_store_is_created_once(self) -> None:
        stores = FakeVectorStores()
        resolver = make_resolver(stores)
        scope = Scope(tenant_id="company-1")

        first, second = await asyncio.gather(
            resolver.resolve(scope, "user-1"), resolver.resolve(scope, "user-1")
        )

        assert first == second == "vs_1"
        assert stores.created == ["kb_user-1_company-1"]
        assert stores.list_calls == 1

    @pytest.mark.asyncio
    async def test_tenants_resolve_to_different_stores(self) -> None:
        resolver = make_resolver(FakeVectorStores())

        first = await resolver.resolve(Scope(tenant_id="company-1"), "user-1")
        second = await resolver.resolve(Scope(tenant_id="company-2"), "user-1")

        assert first != second

    @pytest.mark.asyncio
    async def test_expired_cache_looks_up_again(self) -> None:
        stores = FakeVectorStores()
        resolver = make_resolver(stores, ttl=0.01)
        scope = Scope(tenant_id="company-1")

        await resolver.resolve(scope, "user-1")
        await asyncio.sleep(0.02)
        store_id = await resolver.resolve(scope, "user-1")

        assert store_id == "vs_1"
        assert stores.list_calls == 2
        assert len(stores.created) == 1

    @pytest.mark.asyncio
    async def test_sdk_errors_become_transport_errors(self) -> None:
        error = openai.APIConnectionError(request=httpx.Request("GET", "https://api.openai.com/v1/vector_stores"))
        resolver = make_resolver(FakeVectorStores(error=error))

        with pytest.raises(TransportError, match="kb_user-1_company-1"):
            await resolver.resolve(Scope(tenant_id="company-1"), "user-1")
