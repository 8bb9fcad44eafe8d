"""Per-request stream session state."""

import time
from dataclasses import dataclass, field
from enum import Enum

from .models import ChatRequest
from .routing import Route
from .types import TokenUsage


class RelayState(str, Enum):
    """Streaming relay states."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMPLETING = "completing"
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


TERMINAL_STATES = frozenset({RelayState.SUCCESS, RelayState.ERROR, RelayState.TIMEOUT})

_TRANSITIONS: dict[RelayState, frozenset[RelayState]] = {
    RelayState.IDLE: frozenset({RelayState.CONNECTING, RelayState.ERROR}),
    RelayState.CONNECTING: frozenset(
        {RelayState.STREAMING, RelayState.COMPLETING, RelayState.ERROR, RelayState.TIMEOUT}
    ),
    RelayState.STREAMING: frozenset({RelayState.COMPLETING, RelayState.ERROR, RelayState.TIMEOUT}),
    RelayState.COMPLETING: frozenset({RelayState.SUCCESS, RelayState.ERROR}),
}


class InvalidTransition(RuntimeError):
    """A relay state transition that the state machine does not allow."""


@dataclass
class StreamSession:
    """State of one in-flight request, owned by the relay until it terminates."""

    user_id: str
    request: ChatRequest
    route: Route
    conversation_id: str | None = None
    state: RelayState = RelayState.IDLE
    usage: TokenUsage | None = None
    last_activity: float = field(default_factory=time.monotonic)
    _chunks: list[str] = field(default_factory=list, repr=False)

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def content(self) -> str:
        return "".join(self._chunks)

    def append(self, text: str) -> None:
        self._chunks.append(text)

    def touch(self, now: float) -> None:
        self.last_activity = now

    def advance(self, new_state: RelayState) -> None:
        """Move to ``new_state``; each transition happens at most once."""
        allowed = _TRANSITIONS.get(self.state, frozenset())
        if new_state not in allowed:
            raise InvalidTransition(f"Cannot move stream from {self.state.value} to {new_state.value}")
        self.state = new_state
