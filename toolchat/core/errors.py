"""
Error types raised by the tool registry, the tool invoker, the completion
gateway and the agent loop.
"""

from typing import Optional


class ToolchatError(Exception):
    """Base class for every error raised by toolchat"""


class ConfigurationError(ToolchatError):
    """Raised when the agent or registry is configured incorrectly"""


class ToolSchemaError(ConfigurationError):
    """Raised when a backend advertises a tool whose schema cannot be parsed"""

    def __init__(self, tool_name: str, backend: str, reason: str):
        self.tool_name = tool_name
        self.backend = backend
        super().__init__(
            f"Invalid parameter schema for tool '{tool_name}' on backend '{backend}': {reason}"
        )


class ToolNameCollisionError(ConfigurationError):
    """Raised when two backends advertise a tool with the same name"""

    def __init__(self, tool_name: str, first_backend: str, second_backend: str):
        self.tool_name = tool_name
        self.backends = (first_backend, second_backend)
        super().__init__(
            f"Tool '{tool_name}' is provided by both '{first_backend}' and '{second_backend}'"
        )


class BackendClosedError(ToolchatError):
    """Raised when a call is issued on a backend connection that was closed"""

    def __init__(self, backend: str):
        self.backend = backend
        super().__init__(f"Backend '{backend}' is closed")


class GatewayError(ToolchatError):
    """Raised when a completion request fails or returns no usable choice"""

    def __init__(self, message: str, iteration: Optional[int] = None):
        self.iteration = iteration
        super().__init__(message)


class ToolNotFound(ToolchatError):
    """Raised when the model requests a tool no backend owns"""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        self.iteration: Optional[int] = None
        super().__init__(f"Tool not found: {tool_name}")


class ToolExecutionError(ToolchatError):
    """Raised when a backend reports failure for a tool call"""

    def __init__(self, tool_name: str, backend: str, message: str):
        self.tool_name = tool_name
        self.backend = backend
        self.message = message
        self.iteration: Optional[int] = None
        super().__init__(f"Tool '{tool_name}' failed on backend '{backend}': {message}")


class ToolResultMalformed(ToolExecutionError):
    """Raised when a backend returns no content or non-text content"""


class MaxIterationsExceeded(ToolchatError):
    """Raised when the model keeps requesting tools past the round-trip limit"""

    def __init__(self, iterations: int, tool_name: Optional[str] = None):
        self.iterations = iterations
        self.tool_name = tool_name
        super().__init__(
            f"Exceeded {iterations} tool round-trips in one turn"
            + (f" (last requested tool: {tool_name})" if tool_name else "")
        )
