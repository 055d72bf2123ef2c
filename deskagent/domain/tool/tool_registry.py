from typing import Any, Dict, FrozenSet, Iterable, List, Optional
import time

import structlog

from deskagent.domain.models.agent_state import RunMode, Scope
from deskagent.domain.models.errors import ToolExecutionError, ToolNotOfferedError, UnknownToolError
from deskagent.domain.tool.tool_catalog import ALL_TOOLS
from deskagent.domain.tool.tool_definition import Capability, ToolDefinition
from deskagent.domain.tool.tool_executor import ApiToolExecutor, ToolCallContext
from deskagent.domain.tool.tool_validator import ToolParameterValidator

logger = structlog.get_logger(__name__)

# Keys the loop adds after the model produced the arguments
INJECTED_KEYS: Dict[Capability, FrozenSet[str]] = {
    Capability.SAVE_ANSWERED_QUESTION: frozenset({"session_id"}),
    Capability.ESCALATE_TO_HUMAN: frozenset({"employeeId"}),
}


class ToolRegistry:
    """Registry for managing available tools"""

    def __init__(
        self,
        base_url: str,
        executor: Optional[ApiToolExecutor] = None,
        tools: Optional[Iterable[ToolDefinition]] = None,
        timeout: float = 30.0
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.executor = executor or ApiToolExecutor()
        self.tools: Dict[Capability, ToolDefinition] = {}

        for tool in (ALL_TOOLS if tools is None else tools):
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition):
        """Register a new tool"""

        if tool.capability in self.tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self.tools[tool.capability] = tool

    def get_tool_info(self, name: str) -> Optional[ToolDefinition]:
        """Get information about a specific tool"""

        capability = Capability.lookup(name)
        if capability is None:
            return None
        return self.tools.get(capability)

    def get_tools_for_persona(
        self,
        persona_id: Optional[str],
        mode: RunMode,
        enabled_capabilities: Optional[FrozenSet[str]] = None
    ) -> List[ToolDefinition]:
        """Shared and persona tools offered in the given mode"""

        offered = []
        for tool in self.tools.values():
            if not tool.offered_to(persona_id, mode):
                continue
            # Shared tools are always offered, persona tools can be switched off
            if enabled_capabilities is not None and not tool.is_shared \
                    and tool.name not in enabled_capabilities:
                continue
            offered.append(tool)
        return offered

    def get_tool_schemas(
        self,
        persona_id: Optional[str],
        mode: RunMode,
        enabled_capabilities: Optional[FrozenSet[str]] = None,
        file_search_enabled: bool = True,
        web_search_enabled: bool = True,
        vector_store_ids: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """Assemble the tool list sent with every completion request"""

        schemas: List[Dict[str, Any]] = []

        if web_search_enabled:
            schemas.append({"type": "web_search"})

        if file_search_enabled and vector_store_ids:
            schemas.append({
                "type": "file_search",
                "vector_store_ids": list(vector_store_ids),
            })

        for tool in self.get_tools_for_persona(persona_id, mode, enabled_capabilities):
            schemas.append(tool.to_schema())

        return schemas

    async def dispatch(
        self,
        name: str,
        parsed_args: Dict[str, Any],
        identity: str,
        scope: Scope,
        offered: Optional[FrozenSet[str]] = None
    ) -> Any:
        """Validate and execute one custom function call.

        ``offered`` holds the function names sent with the request; a call
        outside it raises ToolNotOfferedError before anything is validated.
        Raises UnknownToolError for names that are not registered and
        ToolExecutionError for anything that fails while running it.
        """

        tool = self.get_tool_info(name)
        if tool is None:
            raise UnknownToolError(name)
        if offered is not None and tool.name not in offered:
            raise ToolNotOfferedError(name)

        ToolParameterValidator.validate_tool_call(
            tool, parsed_args, injected_keys=INJECTED_KEYS.get(tool.capability, ())
        )

        context = ToolCallContext(
            identity=identity,
            scope=scope,
            base_url=self.base_url,
            timeout=self.timeout
        )

        start_time = time.time()
        try:
            result = await self.executor.execute_tool(tool, parsed_args, context)
        except ToolExecutionError:
            raise
        except Exception as e:
            raise ToolExecutionError(f"{name} failed: {e}", tool_name=name) from e

        logger.debug("Tool dispatched",
                     tool_name=name,
                     tenant_id=scope.tenant_id,
                     duration_ms=(time.time() - start_time) * 1000)
        return result
