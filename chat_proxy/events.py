"""Normalized stream events sent to the caller."""

import json
from dataclasses import asdict, dataclass
from typing import Any, ClassVar


@dataclass(frozen=True)
class ContentEvent:
    """Incremental text delta."""

    type: ClassVar[str] = "content"
    terminal: ClassVar[bool] = False

    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "content": self.content}


@dataclass(frozen=True)
class CompleteEvent:
    """Terminal success: the turn was persisted."""

    type: ClassVar[str] = "complete"
    terminal: ClassVar[bool] = True

    conversation_id: str
    message_id: str | None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "id": self.conversation_id, "message_id": self.message_id}


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal failure."""

    type: ClassVar[str] = "error"
    terminal: ClassVar[bool] = True

    error: str
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = {"type": self.type, **asdict(self)}
        if self.details is None:
            payload.pop("details")
        return payload


StreamEvent = ContentEvent | CompleteEvent | ErrorEvent


def format_sse(event: StreamEvent) -> str:
    """Frame an event as a ``data:`` line."""
    return f"data: {json.dumps(event.to_dict(), ensure_ascii=False)}\n\n"
