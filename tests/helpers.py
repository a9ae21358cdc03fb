"""
In-memory fakes for MCP backends and the completion gateway
"""

from types import SimpleNamespace
from typing import Any

from mcp.types import CallToolResult, TextContent, Tool

from toolchat.core.conversation import FunctionCall, Message
from toolchat.core.gateway import CompletionResult

CRYPTO_PRICE_SCHEMA = {
    "type": "object",
    "properties": {
        "coin_id": {
            "type": "string",
            "description": "The ID of the cryptocurrency (e.g. bitcoin, ethereum, solana)",
        },
        "currency": {
            "type": "string",
            "description": "The currency to get the price in (e.g. usd, eur, gbp)",
        },
    },
    "required": ["coin_id", "currency"],
}

SAVE_TO_FILE_SCHEMA = {
    "type": "object",
    "properties": {
        "filename": {"type": "string"},
        "text": {"type": "string"},
    },
    "required": ["filename", "text"],
}


def make_tool(name: str, schema: Any = None, description: str = "") -> Any:
    """MCP tool listing entry. String schemas bypass mcp.types validation."""
    if isinstance(schema, str):
        return SimpleNamespace(name=name, description=description, inputSchema=schema)
    return Tool(
        name=name,
        description=description,
        inputSchema=schema if schema is not None else {"type": "object"},
    )


def text_result(text: str, is_error: bool = False) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


class FakeToolSession:
    """In-memory stand-in for an MCP ClientSession"""

    def __init__(self, tools: list[Any], results: dict[str, Any] | None = None):
        self.tools = tools
        self.results = results or {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    async def list_tools(self) -> Any:
        return SimpleNamespace(tools=list(self.tools))

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        self.calls.append((name, arguments))
        result = self.results[name]
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return await result(arguments)
        return result


class ScriptedGateway:
    """Completion gateway returning pre-recorded results in order"""

    def __init__(self, *results: Any):
        self.results = list(results)
        self.requests: list[dict[str, Any]] = []

    async def complete(self, messages, model, temperature, functions):
        self.requests.append(
            {
                "messages": list(messages),
                "model": model,
                "temperature": temperature,
                "functions": functions,
            }
        )
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def stop(content: str) -> CompletionResult:
    return CompletionResult(
        finish_reason="stop",
        message=Message(role="assistant", content=content),
    )


def function_call(name: str, **arguments: Any) -> CompletionResult:
    call = FunctionCall(name=name, arguments=arguments)
    return CompletionResult(
        finish_reason="function_call",
        message=Message(role="assistant", content="", function_call=call),
        function_call=call,
    )


