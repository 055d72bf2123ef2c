from typing import Any, Dict, Optional, Tuple
import json
import re
import time

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from deskagent.domain.models.agent_state import Scope
from deskagent.domain.models.errors import ToolExecutionError
from deskagent.domain.tool.tool_definition import ToolDefinition

logger = structlog.get_logger(__name__)

PATH_PARAM = re.compile(r"\{(\w+)\}")


class ToolCallContext(BaseModel):
    """Everything a handler needs to run, passed explicitly per call"""
    model_config = ConfigDict(frozen=True)

    identity: str = Field(description="User the call is made on behalf of")
    scope: Scope
    base_url: str = Field(description="Product API the relative endpoint paths resolve against")
    timeout: float = 30.0


def build_request(
    tool: ToolDefinition,
    parameters: Dict[str, Any],
    context: ToolCallContext
) -> Tuple[str, Dict[str, Any]]:
    """Resolve the endpoint path and payload for one call.

    Path placeholders consume their argument; the remaining arguments are
    sent together with the caller identity and tenant.
    """

    payload = {key: value for key, value in parameters.items() if value is not None}

    def _fill(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key not in payload:
            raise ToolExecutionError(f"Missing path parameter: {key}", tool_name=tool.name)
        return str(payload.pop(key))

    path = PATH_PARAM.sub(_fill, tool.endpoint.path)
    payload["uid"] = context.identity
    payload["selectedCompany"] = context.scope.tenant_id
    return path, payload


class ApiToolExecutor:
    """Executes tools by calling the product API they are backed by"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # A transport override lets tests answer without a running API
        self.transport = transport

    async def execute_tool(
        self,
        tool: ToolDefinition,
        parameters: Dict[str, Any],
        context: ToolCallContext
    ) -> Any:
        """Call the endpoint and return its decoded JSON body"""

        path, payload = build_request(tool, parameters, context)
        method = tool.endpoint.method
        request_kwargs: Dict[str, Any] = (
            {"params": _query_params(payload)} if method == "GET" else {"json": payload}
        )

        start_time = time.time()
        try:
            async with httpx.AsyncClient(
                base_url=context.base_url,
                timeout=context.timeout,
                transport=self.transport
            ) as client:
                response = await client.request(method, path, **request_kwargs)
        except httpx.HTTPError as e:
            raise ToolExecutionError(
                f"{tool.name} request failed: {e}", tool_name=tool.name
            ) from e

        logger.debug("Tool endpoint called",
                     tool_name=tool.name,
                     method=method,
                     path=path,
                     status_code=response.status_code,
                     duration_ms=(time.time() - start_time) * 1000)

        if not response.is_success:
            raise ToolExecutionError(
                f"{tool.name} failed with status {response.status_code}: {response.text[:200]}",
                tool_name=tool.name
            )

        if not response.content:
            return None
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise ToolExecutionError(
                f"{tool.name} returned a non-JSON body", tool_name=tool.name
            ) from e


def _query_params(payload: Dict[str, Any]) -> Dict[str, str]:
    params = {}
    for key, value in payload.items():
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, (dict, list)):
            params[key] = json.dumps(value)
        else:
            params[key] = str(value)
    return params
