"""Type definitions for the chat proxy."""

from decimal import Decimal

from typing_extensions import TypedDict


class TokenUsage(TypedDict, total=False):
    """Token usage information reported by (or estimated for) a provider."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost_usd: Decimal


class AttachmentMeta(TypedDict):
    """Attachment metadata persisted with a message (never the payload)."""

    type: str
    name: str
    mime_type: str
    size: int


class UsageLogRecord(TypedDict):
    """Row written to the usage log after a completed turn."""

    user_id: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    status: str
    cost: Decimal | None


class HealthStatus(TypedDict):
    """Health status of system components."""

    storage: bool
    routing: bool
    pricing: bool
