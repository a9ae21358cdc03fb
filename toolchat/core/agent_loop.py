"""
Agent session driving the completion / function-call cycle
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from lmnr import observe

from toolchat.config import Config
from toolchat.core.conversation import (
    Conversation,
    FunctionCall,
    Message,
    function_result_message,
    load_system_prompt,
)
from toolchat.core.errors import (
    GatewayError,
    MaxIterationsExceeded,
    ToolchatError,
    ToolExecutionError,
    ToolNotFound,
)
from toolchat.core.gateway import CompletionGateway, CompletionResult
from toolchat.core.invoker import ToolInvoker
from toolchat.core.registry import ToolDescriptor, ToolRegistry
from toolchat.core.session import Event, LoopState

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


class AgentSession:
    """
    One conversation with the model.

    The transcript persists across ``send_message`` calls. Backend processes
    belong to the registry behind the invoker and may be shared by several
    sessions.
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        invoker: ToolInvoker,
        model_name: str,
        temperature: float = 0.0,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        catalog: Optional[list[ToolDescriptor]] = None,
        completion_timeout: Optional[float] = None,
        system_prompt: Optional[str] = None,
        event_queue: Optional[asyncio.Queue] = None,
    ):
        if max_iterations < 0:
            raise ValueError("max_iterations must be >= 0")

        self.gateway = gateway
        self.invoker = invoker
        self.model_name = model_name
        self.temperature = temperature
        self.max_iterations = max_iterations
        self.catalog = catalog if catalog is not None else invoker.registry.catalog()
        self.completion_timeout = completion_timeout
        self.event_queue = event_queue
        self.conversation = Conversation()
        self.state: Optional[LoopState] = None

        if system_prompt:
            self.conversation.append(Message(role="system", content=system_prompt))

    @classmethod
    def from_config(
        cls,
        config: Config,
        gateway: CompletionGateway,
        registry: ToolRegistry,
        event_queue: Optional[asyncio.Queue] = None,
    ) -> "AgentSession":
        system_prompt = None
        if config.system_prompt_path:
            system_prompt = load_system_prompt(
                registry.function_specs(), Path(config.system_prompt_path)
            )

        session = cls(
            gateway=gateway,
            invoker=ToolInvoker(registry, timeout=config.tool_timeout),
            model_name=config.model_name,
            temperature=config.temperature,
            max_iterations=config.max_iterations,
            completion_timeout=config.completion_timeout,
            system_prompt=system_prompt,
            event_queue=event_queue,
        )
        if config.system_context:
            session.set_context(config.system_context)
        return session

    @property
    def history(self) -> tuple[Message, ...]:
        return self.conversation.messages

    def set_context(self, text: str) -> None:
        """Append a system message carrying context for the following turns"""
        self.conversation.append(Message(role="system", content=text))

    async def send_event(self, event: Event) -> None:
        if self.event_queue is not None:
            await self.event_queue.put(event)

    @observe(name="send_message")
    async def send_message(self, text: str) -> str:
        """
        Run one user turn to completion and return the final answer.

        Every assistant reply, function call and function result is appended
        to the transcript as it happens. On failure the transcript is left
        exactly as far as the turn got.

        Raises:
            GatewayError: the completion failed or was unusable
            ToolNotFound: the model asked for a tool no backend provides
            ToolExecutionError: the tool failed (includes ToolResultMalformed)
            MaxIterationsExceeded: the model kept calling tools
        """
        self.conversation.append(Message(role="user", content=text))
        self.state = LoopState.AWAITING_COMPLETION
        await self.send_event(
            Event(event_type="processing", data={"message": "Processing user input"})
        )

        round_trips = 0
        try:
            while True:
                result = await self._request_completion(round_trips)

                if not result.wants_function_call:
                    reply = Message(role="assistant", content=result.message.content)
                    self.conversation.append(reply)
                    self.state = LoopState.DONE
                    await self.send_event(
                        Event(event_type="assistant_message", data={"content": reply.content})
                    )
                    return reply.content

                call = result.function_call
                self.conversation.append(result.message)
                self.state = LoopState.TOOL_CALL_PENDING

                if round_trips >= self.max_iterations:
                    raise MaxIterationsExceeded(round_trips, call.name)

                output = await self._run_function_call(call, round_trips)
                self.conversation.append(function_result_message(call.name, output))
                round_trips += 1
                self.state = LoopState.AWAITING_COMPLETION

        except ToolchatError as e:
            self.state = LoopState.FAILED
            logger.error("Turn failed after %d tool round-trips: %s", round_trips, e)
            await self.send_event(Event(event_type="error", data={"error": str(e)}))
            raise
        except asyncio.CancelledError:
            self.state = LoopState.FAILED
            logger.warning("Turn cancelled after %d tool round-trips", round_trips)
            raise
        except Exception as e:
            self.state = LoopState.FAILED
            logger.exception("Unexpected error after %d tool round-trips", round_trips)
            await self.send_event(Event(event_type="error", data={"error": str(e)}))
            raise
        finally:
            await self.send_event(
                Event(
                    event_type="turn_complete",
                    data={"history_size": len(self.conversation), "state": self.state.value},
                )
            )

    async def _request_completion(self, iteration: int) -> CompletionResult:
        functions = [tool.to_function_spec() for tool in self.catalog]

        try:
            result = await asyncio.wait_for(
                self.gateway.complete(
                    list(self.conversation.messages),
                    self.model_name,
                    self.temperature,
                    functions,
                ),
                self.completion_timeout,
            )
        except GatewayError as e:
            e.iteration = iteration
            raise
        except asyncio.TimeoutError as e:
            raise GatewayError(
                f"Completion timed out after {self.completion_timeout}s", iteration
            ) from e
        except Exception as e:
            raise GatewayError(f"Completion request failed: {e}", iteration) from e

        if result.wants_function_call and result.function_call is None:
            raise GatewayError(
                "finish_reason is 'function_call' but the response carries no function call",
                iteration,
            )
        return result

    async def _run_function_call(self, call: FunctionCall, iteration: int) -> str:
        await self.send_event(
            Event(
                event_type="tool_call",
                data={"tool": call.name, "arguments": call.arguments},
            )
        )

        try:
            output = await self.invoker.invoke(call.name, call.arguments)
        except (ToolNotFound, ToolExecutionError) as e:
            e.iteration = iteration
            await self.send_event(
                Event(
                    event_type="tool_output",
                    data={"tool": call.name, "output": str(e), "success": False},
                )
            )
            raise

        await self.send_event(
            Event(
                event_type="tool_output",
                data={"tool": call.name, "output": output, "success": True},
            )
        )
        return output

    def __repr__(self) -> str:
        state = self.state.value if self.state else None
        return (
            f"AgentSession(model={self.model_name!r}, messages={len(self.conversation)}, "
            f"state={state})"
        )
