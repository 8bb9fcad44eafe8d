"""Chat Proxy - streaming chat relay in front of multiple LLM providers."""

__version__ = "1.0.0"

from .api import app  # noqa: E402
from .chat import ChatService  # noqa: E402
from .models import Attachment, ChatMessage, ChatRequest  # noqa: E402

__all__ = [
    "Attachment",
    "ChatMessage",
    "ChatRequest",
    "ChatService",
    "app",
]
