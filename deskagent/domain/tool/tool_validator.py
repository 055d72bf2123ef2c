from typing import Any, Dict, Iterable

import jsonschema

from deskagent.domain.models.errors import ToolValidationError
from deskagent.domain.tool.tool_definition import ToolDefinition


# Parameter validation
class ToolParameterValidator:
    @staticmethod
    def validate_tool_call(
        tool: ToolDefinition,
        parameters: Dict[str, Any],
        injected_keys: Iterable[str] = ()
    ) -> None:
        """Validate arguments against the declared schema.

        Keys injected by the loop are not part of the model-facing schema,
        so they are left out of validation.
        """

        schema = tool.to_schema()["parameters"]
        injected = set(injected_keys)
        candidate = {key: value for key, value in parameters.items() if key not in injected}

        try:
            jsonschema.validate(candidate, schema)
        except jsonschema.ValidationError as e:
            raise ToolValidationError(
                f"Schema validation failed for {tool.name}: {e.message}",
                tool_name=tool.name
            ) from e
