import json

import pytest

from deskagent.domain.models.agent_state import RunMode, Scope
from deskagent.domain.models.errors import (
    ToolExecutionError, ToolNotOfferedError, ToolValidationError, UnknownToolError,
)
from deskagent.domain.tool.tool_catalog import ALL_TOOLS
from deskagent.domain.tool.tool_definition import ApiEndpoint, Capability, ToolDefinition

SCOPE = Scope(tenant_id="company-1")


def schema_names(schemas):
    return [schema.get("name") or schema["type"] for schema in schemas]


class TestSchemas:

    def test_every_capability_is_declared_once(self) -> None:
        declared = [tool.capability for tool in ALL_TOOLS]

        assert sorted(declared) == sorted(Capability)

    def test_optional_marker_decides_required(self) -> None:
        tool = ToolDefinition(
            capability=Capability.SEARCH_CATEGORIES,
            description="Search",
            parameters={
                "query": {"type": "string", "description": "Search query"},
                "limit": {"type": "number", "description": "Number of results (optional, default is 12)"},
                "lastDocId": {"type": "string", "description": "Last document ID (optional)"},
            },
            endpoint=ApiEndpoint(path="/api/category/search"),
        )

        schema = tool.to_schema()

        assert schema["parameters"]["required"] == ["query"]
        assert schema["parameters"]["additionalProperties"] is False
        assert schema["strict"] is False

    def test_strict_only_when_everything_is_required(self) -> None:
        tool = ToolDefinition(
            capability=Capability.DELETE_FAQ,
            description="Delete",
            parameters={"faqId": {"type": "string", "description": "The ID of the FAQ to delete"}},
            endpoint=ApiEndpoint(method="DELETE", path="/api/training/faq"),
        )

        assert tool.to_schema()["strict"] is True

    def test_builtin_tools_come_first(self, tool_registry) -> None:
        schemas = tool_registry.get_tool_schemas("emma", RunMode.DIRECT, vector_store_ids=["vs_1"])

        assert schemas[0] == {"type": "web_search"}
        assert schemas[1] == {"type": "file_search", "vector_store_ids": ["vs_1"]}
        assert all(schema["type"] == "function" for schema in schemas[2:])

    def test_file_search_needs_vector_stores(self, tool_registry) -> None:
        schemas = tool_registry.get_tool_schemas("emma", RunMode.DIRECT, web_search_enabled=False)

        assert "file_search" not in schema_names(schemas)
        assert "web_search" not in schema_names(schemas)

    def test_persona_tools_only(self, tool_registry) -> None:
        names = schema_names(tool_registry.get_tool_schemas("emma", RunMode.DIRECT, web_search_enabled=False))

        assert "create_article" in names
        assert "get_support_tickets" not in names
        assert "escalate_to_human" not in names

    def test_escalation_only_in_action_mode(self, tool_registry) -> None:
        names = schema_names(tool_registry.get_tool_schemas("charlie", RunMode.ACTION, web_search_enabled=False))

        assert "escalate_to_human" in names
        assert "send_email" in names

    def test_enabled_capabilities_filter_persona_tools(self, tool_registry) -> None:
        names = schema_names(tool_registry.get_tool_schemas(
            "charlie", RunMode.ACTION,
            enabled_capabilities=frozenset({"get_support_tickets"}),
            web_search_enabled=False,
        ))

        assert names == ["escalate_to_human", "get_support_tickets"]

    def test_unknown_persona_gets_shared_tools_only(self, tool_registry) -> None:
        names = schema_names(tool_registry.get_tool_schemas("nobody", RunMode.ACTION, web_search_enabled=False))

        assert names == ["escalate_to_human"]


class TestDispatch:

    @pytest.mark.asyncio
    async def test_get_sends_query_params(self, tool_registry, product_api) -> None:
        result = await tool_registry.dispatch(
            "search_articles", {"query": "refund", "limit": 3}, identity="user-1", scope=SCOPE
        )

        assert result == {"ok": True, "path": "/api/articles/search"}
        request = product_api.requests[-1]
        assert request.method == "GET"
        assert str(request.url).startswith("http://api.test/api/articles/search")
        assert request.url.params["query"] == "refund"
        assert request.url.params["limit"] == "3"
        assert request.url.params["uid"] == "user-1"
        assert request.url.params["selectedCompany"] == "company-1"

    @pytest.mark.asyncio
    async def test_other_methods_send_json_body(self, tool_registry, product_api) -> None:
        await tool_registry.dispatch(
            "close_ticket", {"ticketId": "t-7"}, identity="user-1", scope=SCOPE
        )

        request = product_api.requests[-1]
        assert request.method == "PUT"
        assert request.url.path == "/api/inbox/ticket/close"
        assert json.loads(request.content) == {
            "ticketId": "t-7", "uid": "user-1", "selectedCompany": "company-1",
        }

    @pytest.mark.asyncio
    async def test_path_parameters_are_filled(self, tool_registry, product_api) -> None:
        await tool_registry.dispatch(
            "get_live_chat_session", {"sessionId": "s-1"}, identity="user-1", scope=SCOPE
        )

        request = product_api.requests[-1]
        assert request.url.path == "/api/livechat/sessions/s-1"
        assert "sessionId" not in request.url.params

    @pytest.mark.asyncio
    async def test_unknown_tool_fails_loudly(self, tool_registry) -> None:
        with pytest.raises(UnknownToolError) as excinfo:
            await tool_registry.dispatch("get_weather", {}, identity="user-1", scope=SCOPE)

        assert isinstance(excinfo.value, ToolExecutionError)
        assert excinfo.value.tool_name == "get_weather"

    @pytest.mark.asyncio
    async def test_arguments_are_validated(self, tool_registry, product_api) -> None:
        with pytest.raises(ToolValidationError):
            await tool_registry.dispatch("close_ticket", {}, identity="user-1", scope=SCOPE)

        with pytest.raises(ToolValidationError):
            await tool_registry.dispatch(
                "close_ticket", {"ticketId": "t-1", "force": True}, identity="user-1", scope=SCOPE
            )

        assert product_api.requests == []

    @pytest.mark.asyncio
    async def test_injected_keys_pass_validation(self, tool_registry, product_api) -> None:
        await tool_registry.dispatch(
            "escalate_to_human",
            {"reason": "unsure", "urgency": "low", "employeeId": "charlie"},
            identity="user-1",
            scope=SCOPE,
        )

        assert product_api.last_json()["employeeId"] == "charlie"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, tool_registry, product_api) -> None:
        product_api.status_code = 404

        with pytest.raises(ToolExecutionError, match="404"):
            await tool_registry.dispatch("get_faqs", {}, identity="user-1", scope=SCOPE)

    @pytest.mark.asyncio
    async def test_only_offered_tools_are_dispatched(self, tool_registry, product_api) -> None:
        offered = frozenset(
            schema["name"]
            for schema in tool_registry.get_tool_schemas("charlie", RunMode.DIRECT, web_search_enabled=False)
        )

        with pytest.raises(ToolNotOfferedError) as excinfo:
            await tool_registry.dispatch(
                "delete_article", {"articleId": "a-1", "categoryId": "c-1"},
                identity="user-1", scope=SCOPE, offered=offered,
            )

        assert excinfo.value.tool_name == "delete_article"
        assert product_api.requests == []

        await tool_registry.dispatch(
            "close_ticket", {"ticketId": "t-1"}, identity="user-1", scope=SCOPE, offered=offered
        )
        assert product_api.requests[-1].url.path == "/api/inbox/ticket/close"
