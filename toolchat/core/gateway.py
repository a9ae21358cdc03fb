"""
Completion gateway: the request/response contract the agent loop depends on,
and its LiteLLM implementation
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from litellm import acompletion

from toolchat.core.conversation import FunctionCall, Message
from toolchat.core.errors import GatewayError
from toolchat.credentials import Credentials

logger = logging.getLogger(__name__)

FUNCTION_CALL_FINISH_REASON = "function_call"


@dataclass
class CompletionResult:
    """One assistant turn as returned by the gateway"""

    finish_reason: str
    message: Message
    function_call: Optional[FunctionCall] = None

    @property
    def wants_function_call(self) -> bool:
        return self.finish_reason == FUNCTION_CALL_FINISH_REASON


class CompletionGateway(Protocol):
    """Stateless chat completion endpoint: receives the full transcript on every call"""

    async def complete(
        self,
        messages: list[Message],
        model: str,
        temperature: float,
        functions: list[dict[str, Any]],
    ) -> CompletionResult: ...


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def parse_function_call(raw: Any) -> Optional[FunctionCall]:
    """Decode the provider's function_call payload, if any"""
    if raw is None:
        return None

    name = _field(raw, "name")
    if not name:
        raise GatewayError("function call without a name in completion response")

    arguments = _field(raw, "arguments")
    if arguments is None or arguments == "":
        arguments = {}
    elif isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise GatewayError(
                f"Invalid JSON arguments for function call '{name}': {e}"
            ) from e

    if not isinstance(arguments, dict):
        raise GatewayError(
            f"Arguments for function call '{name}' must be an object, got {type(arguments).__name__}"
        )
    return FunctionCall(name=name, arguments=arguments)


def parse_completion_response(response: Any) -> CompletionResult:
    choices = _field(response, "choices") or []
    if not choices:
        raise GatewayError("no choices in completion response")

    choice = choices[0]
    message = _field(choice, "message")
    if message is None:
        raise GatewayError("completion choice has no message")

    finish_reason = _field(choice, "finish_reason") or "stop"
    # a function call is only decoded when the model stopped to make one
    function_call = None
    if finish_reason == FUNCTION_CALL_FINISH_REASON:
        function_call = parse_function_call(_field(message, "function_call"))
    return CompletionResult(
        finish_reason=finish_reason,
        message=Message(
            role="assistant",
            content=_field(message, "content") or "",
            function_call=function_call,
        ),
        function_call=function_call,
    )


class LiteLLMGateway:
    """Completion gateway backed by litellm.acompletion with legacy function calling"""

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        timeout: Optional[float] = None,
    ):
        self.credentials = credentials or Credentials()
        self.timeout = timeout

    async def complete(
        self,
        messages: list[Message],
        model: str,
        temperature: float,
        functions: list[dict[str, Any]],
    ) -> CompletionResult:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [message.to_llm_dict() for message in messages],
            "temperature": temperature,
        }
        if functions:
            kwargs["functions"] = functions
            kwargs["function_call"] = "auto"
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        if self.credentials.api_key is not None:
            kwargs["api_key"] = self.credentials.api_key.get_secret_value()
        if self.credentials.api_base:
            kwargs["api_base"] = self.credentials.api_base

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            logger.error("Completion request to %s failed: %s", model, e)
            raise GatewayError(f"Completion request failed: {e}") from e

        return parse_completion_response(response)
