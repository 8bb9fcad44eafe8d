"""Upstream event-stream parsing."""

import json
from dataclasses import dataclass
from typing import Any

from .types import TokenUsage

DONE_SENTINEL = "[DONE]"


class MalformedEventError(ValueError):
    """An upstream ``data:`` line could not be decoded."""


@dataclass(frozen=True)
class UpstreamChunk:
    """What one upstream event contributes to the session."""

    text: str = ""
    usage: TokenUsage | None = None
    error: str | None = None


def extract_data_payload(line: str) -> str | None:
    """Return the payload of a ``data:`` line, or None for other lines."""
    stripped = line.strip()
    if not stripped.startswith("data:"):
        return None
    return stripped[5:].strip()


def _openai_text(event: dict[str, Any]) -> str:
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if isinstance(delta, dict) and isinstance(delta.get("content"), str):
        return delta["content"]
    return ""


def _gemini_text(event: dict[str, Any]) -> str:
    candidates = event.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    if not isinstance(content, dict):
        return ""
    return "".join(
        part["text"]
        for part in content.get("parts") or []
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


def _usage(event: dict[str, Any]) -> TokenUsage | None:
    usage = event.get("usage")
    if isinstance(usage, dict):
        found: TokenUsage = {}
        for field in ("prompt_tokens", "completion_tokens", "total_tokens"):
            if isinstance(usage.get(field), int):
                found[field] = usage[field]  # type: ignore[literal-required]
        return found or None

    metadata = event.get("usageMetadata")
    if isinstance(metadata, dict):
        found = {}
        if isinstance(metadata.get("promptTokenCount"), int):
            found["prompt_tokens"] = metadata["promptTokenCount"]
        if isinstance(metadata.get("candidatesTokenCount"), int):
            found["completion_tokens"] = metadata["candidatesTokenCount"]
        if isinstance(metadata.get("totalTokenCount"), int):
            found["total_tokens"] = metadata["totalTokenCount"]
        return found or None
    return None


def _error(event: dict[str, Any]) -> str | None:
    error = event.get("error")
    if error is None:
        return None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("code") or "upstream_error")
    return str(error)


def parse_event(payload: str) -> UpstreamChunk:
    """Decode one upstream ``data:`` payload.

    Raises:
        MalformedEventError: If the payload is not a JSON object.
    """
    try:
        event = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedEventError(f"Invalid JSON in upstream event: {e}") from e
    if not isinstance(event, dict):
        raise MalformedEventError("Upstream event is not a JSON object")

    error = _error(event)
    if error is not None:
        return UpstreamChunk(error=error)
    text = _openai_text(event) or _gemini_text(event)
    return UpstreamChunk(text=text, usage=_usage(event))
