"""
Tool registry: connects to every configured MCP server, merges their tools
into one catalog and routes each tool name to the backend that owns it
"""

import asyncio
import json
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from toolchat.config import MCPServerConfig
from toolchat.core.errors import (
    BackendClosedError,
    ConfigurationError,
    ToolNameCollisionError,
    ToolSchemaError,
)

logger = logging.getLogger(__name__)

EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


class ToolSession(Protocol):
    """The part of an MCP client session the registry relies on"""

    async def list_tools(self) -> Any: ...

    async def call_tool(
        self, name: str, arguments: Optional[dict[str, Any]] = None
    ) -> Any: ...


Connector = Callable[[str, Any, AsyncExitStack], Awaitable[ToolSession]]


async def connect_stdio(
    name: str, server_config: MCPServerConfig, exit_stack: AsyncExitStack
) -> ClientSession:
    """
    Launch an MCP server subprocess and open a client session on its stdio.

    Both the transport and the session are entered on ``exit_stack`` so that
    closing the stack terminates the subprocess.
    """
    server_params = StdioServerParameters(
        command=server_config.command,
        args=server_config.args,
        env=server_config.env,
    )

    stdio, write = await exit_stack.enter_async_context(stdio_client(server_params))
    session = await exit_stack.enter_async_context(ClientSession(stdio, write))

    await session.initialize()

    logger.info("Connected to MCP server: %s", name)
    return session


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool specification advertised to the model"""

    name: str
    description: str
    parameters: dict[str, Any]
    backend: str

    def to_function_spec(self) -> dict[str, Any]:
        """Function definition in the format the completion gateway sends"""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class BackendConnection:
    """
    One live tool backend.

    Calls are serialized with a per-backend lock because a stdio pipe cannot
    carry interleaved requests from several sessions safely.
    """

    def __init__(self, name: str, session: ToolSession):
        self.name = name
        self.session = session
        self.tool_names: frozenset[str] = frozenset()
        self.closed = False
        self._lock = asyncio.Lock()

    def _ensure_open(self) -> None:
        if self.closed:
            raise BackendClosedError(self.name)

    async def list_tools(self) -> list[Any]:
        self._ensure_open()
        async with self._lock:
            # the backend may have closed while this call waited for the lock
            self._ensure_open()
            response = await self.session.list_tools()
        return list(response.tools)

    async def call_tool(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        self._ensure_open()
        async with self._lock:
            self._ensure_open()
            return await self.session.call_tool(tool_name, arguments)

    def close(self) -> None:
        self.closed = True
        self.tool_names = frozenset()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"BackendConnection({self.name!r}, {state}, tools={sorted(self.tool_names)})"


def parse_tool_schema(tool: Any, backend: str) -> dict[str, Any]:
    """
    Return the tool's input schema as a dict.

    Backends may deliver the schema already structured or as a JSON string;
    anything that does not decode to a JSON object is rejected.
    """
    schema = getattr(tool, "inputSchema", None)
    if schema is None or schema == "":
        return dict(EMPTY_SCHEMA)

    if isinstance(schema, (str, bytes)):
        try:
            schema = json.loads(schema)
        except json.JSONDecodeError as e:
            raise ToolSchemaError(tool.name, backend, str(e)) from e

    if not isinstance(schema, dict):
        raise ToolSchemaError(
            tool.name, backend, f"expected a JSON object, got {type(schema).__name__}"
        )
    return schema


class ToolRegistry:
    """
    Merged catalog of the tools exposed by every configured backend.

    Use as an async context manager, or call ``open()`` and ``aclose()``.
    Construction is all-or-nothing: if any backend fails to connect, lists a
    malformed schema or collides with another backend's tool name, every
    backend opened so far is closed before the error propagates.
    """

    def __init__(self, servers: dict[str, Any], connector: Connector = connect_stdio):
        """
        Args:
            servers: backend name -> connection target. With the default
                connector the target is an ``MCPServerConfig``.
            connector: coroutine opening a session for one backend
        """
        if not servers:
            raise ConfigurationError("At least one MCP server must be configured")

        self.servers = dict(servers)
        self.connector = connector
        self.backends: dict[str, BackendConnection] = {}
        self._tools: dict[str, ToolDescriptor] = {}
        self._routes: dict[str, BackendConnection] = {}
        self._exit_stack: Optional[AsyncExitStack] = None

    @classmethod
    def from_sessions(cls, sessions: dict[str, ToolSession]) -> "ToolRegistry":
        """Build a registry over sessions the caller has already opened"""

        async def use_session(
            name: str, session: ToolSession, exit_stack: AsyncExitStack
        ) -> ToolSession:
            return session

        return cls(sessions, connector=use_session)

    @property
    def is_open(self) -> bool:
        return self._exit_stack is not None

    async def open(self) -> "ToolRegistry":
        if self._exit_stack is not None:
            return self

        exit_stack = AsyncExitStack()
        try:
            for name, target in self.servers.items():
                session = await self.connector(name, target, exit_stack)
                self.backends[name] = BackendConnection(name, session)
            await self._build()
        except BaseException:
            logger.exception("Tool registry construction failed, closing backends")
            await self._teardown(exit_stack)
            raise

        self._exit_stack = exit_stack
        logger.info(
            "Tool registry ready: %d tools from %d backends",
            len(self._tools),
            len(self.backends),
        )
        return self

    async def refresh(self) -> None:
        """Re-list tools on every live backend and rebuild the routing table"""
        if self._exit_stack is None:
            raise ConfigurationError("Tool registry is not open")
        await self._build()

    async def aclose(self) -> None:
        if self._exit_stack is None:
            return
        exit_stack, self._exit_stack = self._exit_stack, None
        await self._teardown(exit_stack)
        logger.info("Tool registry closed")

    async def __aenter__(self) -> "ToolRegistry":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def catalog(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def function_specs(self) -> list[dict[str, Any]]:
        """Get tool specifications for the completion gateway"""
        return [tool.to_function_spec() for tool in self._tools.values()]

    def route_for(self, name: str) -> tuple[Optional[BackendConnection], bool]:
        backend = self._routes.get(name)
        if backend is None or backend.closed:
            return None, False
        return backend, True

    async def _build(self) -> None:
        tools: dict[str, ToolDescriptor] = {}
        routes: dict[str, BackendConnection] = {}
        owned: dict[str, list[str]] = {}

        for backend in self.backends.values():
            owned[backend.name] = []
            for tool in await backend.list_tools():
                if tool.name in tools:
                    raise ToolNameCollisionError(
                        tool.name, tools[tool.name].backend, backend.name
                    )
                tools[tool.name] = ToolDescriptor(
                    name=tool.name,
                    description=tool.description or "",
                    parameters=parse_tool_schema(tool, backend.name),
                    backend=backend.name,
                )
                routes[tool.name] = backend
                owned[backend.name].append(tool.name)
            logger.debug("Backend %s provides tools: %s", backend.name, owned[backend.name])

        for backend in self.backends.values():
            backend.tool_names = frozenset(owned[backend.name])
        self._tools = tools
        self._routes = routes

    async def _teardown(self, exit_stack: AsyncExitStack) -> None:
        for backend in self.backends.values():
            backend.close()
        self.backends.clear()
        self._tools = {}
        self._routes = {}
        await exit_stack.aclose()
