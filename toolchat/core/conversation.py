"""
Conversation state: the ordered, append-only transcript shared by the
completion gateway and the tool invoker
"""

import json
from pathlib import Path
from typing import Any, Iterator, Literal, Optional

import yaml
from jinja2 import Template
from pydantic import BaseModel, ConfigDict, Field, JsonValue, model_validator

Role = Literal["system", "user", "assistant", "function"]

DEFAULT_PROMPT_FILE = Path(__file__).parent.parent / "prompts" / "system_prompt.yaml"


class FunctionCall(BaseModel):
    """A model-emitted request to run one tool with structured arguments"""

    model_config = ConfigDict(frozen=True)

    name: str
    arguments: dict[str, JsonValue] = Field(default_factory=dict)


class Message(BaseModel):
    """One transcript entry"""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    function_call: Optional[FunctionCall] = None
    name: Optional[str] = None

    @model_validator(mode="after")
    def _function_call_only_on_assistant(self) -> "Message":
        if self.function_call is not None and self.role != "assistant":
            raise ValueError(
                f"function_call is only allowed on assistant messages, got role '{self.role}'"
            )
        return self

    def to_llm_dict(self) -> dict[str, Any]:
        """Render the message in the OpenAI chat format LiteLLM expects"""
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name is not None:
            payload["name"] = self.name
        if self.function_call is not None:
            payload["function_call"] = {
                "name": self.function_call.name,
                "arguments": json.dumps(self.function_call.arguments, ensure_ascii=False),
            }
        return payload


def function_result_message(tool_name: str, result: str) -> Message:
    """
    Build the function-role message that feeds a tool result back to the model.

    The envelope is serialized as a whole, so the content stays valid JSON
    whatever characters the tool name or result contain.
    """
    envelope = {"name": tool_name, "arguments": {"result": result}}
    return Message(
        role="function",
        name=tool_name,
        content=json.dumps(envelope, ensure_ascii=False),
    )


class Conversation:
    """Ordered transcript of messages. Entries are only ever appended."""

    def __init__(self, messages: Optional[list[Message]] = None):
        self._messages: list[Message] = list(messages or [])

    def append(self, message: Message) -> None:
        self._messages.append(message)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def to_llm_messages(self) -> list[dict[str, Any]]:
        return [message.to_llm_dict() for message in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))


def load_system_prompt(
    tool_specs: list[dict[str, Any]], prompt_file: Optional[Path] = None
) -> str:
    """Load and render the system prompt from a YAML file with Jinja2"""
    prompt_file = prompt_file or DEFAULT_PROMPT_FILE

    with open(prompt_file, "r") as f:
        prompt_data = yaml.safe_load(f) or {}
        template_str = prompt_data.get("system_prompt", "")

    template = Template(template_str)
    return template.render(
        tools=tool_specs,
        num_tools=len(tool_specs),
    )
