"""Shared test fixtures."""

import asyncio
import json
import os
from collections.abc import AsyncIterator, Callable, Iterable
from datetime import datetime
from typing import Any

import httpx
import pytest

# Set test environment before the package reads its settings
os.environ["CHAT_RATE_LIMIT"] = "1000/minute"
os.environ["CHAT_LOG_LEVEL"] = "ERROR"  # Reduce log noise
os.environ["CHAT_SECRET_KEY"] = "test-secret-key"

from chat_proxy.models import ChatRequest  # noqa: E402
from chat_proxy.routing import Route, RoutingEntry  # noqa: E402
from chat_proxy.types import AttachmentMeta, UsageLogRecord  # noqa: E402


class InMemoryRepository:
    """Repository double that keeps everything in lists."""

    def __init__(self) -> None:
        self.conversations: dict[str, dict[str, Any]] = {}
        self.messages: list[dict[str, Any]] = []
        self.usage_logs: list[UsageLogRecord] = []
        self.routing: list[RoutingEntry] = []
        self.daily_limits: dict[str, int] = {}
        self.request_counts: dict[str, int] = {}
        self.healthy = True

    async def create_conversation(self, user_id: str, title: str) -> str:
        conversation_id = f"conv-{len(self.conversations) + 1}"
        self.conversations[conversation_id] = {"user_id": user_id, "title": title}
        return conversation_id

    async def save_message(
        self,
        conversation_id: str,
        user_id: str,
        role: str,
        content: str,
        model: str | None = None,
        attachments: list[AttachmentMeta] | None = None,
    ) -> str:
        message_id = f"msg-{len(self.messages) + 1}"
        self.messages.append(
            {
                "id": message_id,
                "conversation_id": conversation_id,
                "user_id": user_id,
                "role": role,
                "content": content,
                "model": model,
                "attachments": attachments,
            }
        )
        return message_id

    async def insert_usage_log(self, record: UsageLogRecord) -> None:
        self.usage_logs.append(record)

    async def get_routing_config(self) -> list[RoutingEntry]:
        return list(self.routing)

    async def count_user_requests_since(self, user_id: str, since: datetime) -> int:
        return self.request_counts.get(user_id, 0)

    async def get_user_daily_limit(self, user_id: str) -> int | None:
        return self.daily_limits.get(user_id)

    async def health_check(self) -> bool:
        return self.healthy

    async def startup(self) -> None:
        pass

    async def shutdown(self) -> None:
        pass


@pytest.fixture
def repository() -> InMemoryRepository:
    """In-memory repository."""
    return InMemoryRepository()


@pytest.fixture
def make_request() -> Callable[..., ChatRequest]:
    """Build a chat request with sensible defaults."""

    def _make(content: str = "Hello, world!", model: str = "gpt-4o", **kwargs: Any) -> ChatRequest:
        messages = kwargs.pop("messages", None) or [{"role": "user", "content": content}]
        return ChatRequest.model_validate({"model": model, "messages": messages, **kwargs})

    return _make


@pytest.fixture
def openai_route() -> Route:
    """Direct OpenAI-compatible route."""
    return Route(
        endpoint="https://api.openai.test/v1/chat/completions",
        credential="sk-test",
        provider_kind="openai",
        wire_model_id="gpt-4o",
    )


def sse_lines(*events: str) -> bytes:
    """Frame raw JSON payloads as an upstream event stream."""
    return "".join(f"data: {event}\n\n" for event in events).encode()


def openai_delta(text: str) -> str:
    """OpenAI-style streamed chunk payload."""
    return json.dumps({"choices": [{"delta": {"content": text}}]})


def streaming_transport(
    chunks: Iterable[bytes],
    status_code: int = 200,
    fail_with: Exception | None = None,
    stall_seconds: float | None = None,
    chunk_delay: float = 0.0,
) -> httpx.MockTransport:
    """Mock transport answering every request with a chunked event stream.

    ``fail_with`` is raised after the chunks are sent; ``stall_seconds``
    sleeps after them instead, to trigger idle timeouts. ``chunk_delay`` pauses
    before every chunk.
    """
    chunk_list = list(chunks)
    captured: list[httpx.Request] = []

    async def body() -> AsyncIterator[bytes]:
        for chunk in chunk_list:
            if chunk_delay:
                await asyncio.sleep(chunk_delay)
            yield chunk
        if stall_seconds is not None:
            await asyncio.sleep(stall_seconds)
        if fail_with is not None:
            raise fail_with

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(status_code, content=body())

    transport = httpx.MockTransport(handler)
    transport.captured = captured  # type: ignore[attr-defined]
    return transport
