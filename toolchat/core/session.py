from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class LoopState(Enum):
    AWAITING_COMPLETION = "awaiting_completion"
    TOOL_CALL_PENDING = "tool_call_pending"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Event:
    event_type: str
    data: Optional[dict[str, Any]] = None
