"""
Tool invoker: runs a named tool on the backend that owns it and normalizes
the MCP result into plain text
"""

import asyncio
import logging
from typing import Any, Optional

from lmnr import observe
from mcp.types import TextContent
from pydantic import JsonValue

from toolchat.core.errors import (
    ToolExecutionError,
    ToolNotFound,
    ToolResultMalformed,
)
from toolchat.core.registry import ToolRegistry

logger = logging.getLogger(__name__)


def _first_text(content: list[Any]) -> Optional[str]:
    for item in content:
        if isinstance(item, TextContent):
            return item.text
    return None


def extract_result_text(tool_name: str, backend: str, result: Any) -> str:
    """
    Convert an MCP CallToolResult into the text handed back to the model.

    A single text block is expected. An error flag, an empty result or a
    non-text first block is reported as an error rather than guessed at.
    """
    content = list(getattr(result, "content", None) or [])

    if getattr(result, "isError", False):
        message = _first_text(content) or "tool reported an error"
        raise ToolExecutionError(tool_name, backend, message)

    if not content:
        raise ToolResultMalformed(tool_name, backend, "no content in tool result")

    first = content[0]
    if not isinstance(first, TextContent):
        content_type = getattr(first, "type", type(first).__name__)
        raise ToolResultMalformed(
            tool_name, backend, f"unexpected content type: {content_type}"
        )

    if len(content) > 1:
        logger.warning(
            "Tool %s returned %d content blocks, using the first one",
            tool_name,
            len(content),
        )
    return first.text


class ToolInvoker:
    """Routes tool calls to the owning backend. Calls are never retried here."""

    def __init__(self, registry: ToolRegistry, timeout: Optional[float] = None):
        self.registry = registry
        self.timeout = timeout

    @observe(name="call_tool")
    async def invoke(
        self,
        tool_name: str,
        arguments: dict[str, JsonValue],
        timeout: Optional[float] = None,
    ) -> str:
        """
        Call a tool and return its text output.

        Args:
            tool_name: Name of the tool as listed in the registry catalog
            arguments: Structured arguments, passed through unchanged
            timeout: Seconds to wait for the backend, overriding the default

        Raises:
            ToolNotFound: no backend owns ``tool_name``
            ToolExecutionError: the backend failed, timed out or flagged an error
            ToolResultMalformed: the backend returned no text content
        """
        backend, found = self.registry.route_for(tool_name)
        if not found:
            logger.warning("Model requested unknown tool: %s", tool_name)
            raise ToolNotFound(tool_name)

        timeout = timeout if timeout is not None else self.timeout
        logger.debug("Calling tool %s on %s with %s", tool_name, backend.name, arguments)

        try:
            result = await asyncio.wait_for(
                backend.call_tool(tool_name, dict(arguments)), timeout
            )
        except asyncio.TimeoutError as e:
            logger.error("Tool %s timed out after %ss", tool_name, timeout)
            raise ToolExecutionError(
                tool_name, backend.name, f"timed out after {timeout}s"
            ) from e
        except Exception as e:
            logger.error("Error calling tool %s on %s: %s", tool_name, backend.name, e)
            raise ToolExecutionError(tool_name, backend.name, str(e)) from e

        return extract_result_text(tool_name, backend.name, result)
