from typing import Optional


class AgentError(Exception):
    """Base error for everything that can abort an agent run"""


class TransportError(AgentError):
    """Completion service, network or stream failure.

    Also covers request validation failures reported by the service,
    such as a missing required field or an unmatched function call.
    """


class ToolExecutionError(AgentError):
    """A dispatched custom function failed"""

    def __init__(self, message: str, tool_name: Optional[str] = None):
        super().__init__(message)
        self.tool_name = tool_name


class UnknownToolError(ToolExecutionError):
    """The completion service asked for a function that is not registered"""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}", tool_name=tool_name)


class ToolValidationError(ToolExecutionError):
    """Function arguments do not match the declared schema"""


class PersistenceError(AgentError):
    """The message store rejected a write"""


class ToolNotOfferedError(ToolExecutionError):
    """The function exists but was not offered to this run"""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not available in this conversation: {tool_name}", tool_name=tool_name)
