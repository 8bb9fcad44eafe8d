"""Request translation into provider wire bodies."""

from typing import Any

from .attachments import ContentSchema, build_content, build_parts
from .exceptions import ConfigurationError
from .models import ChatRequest
from .routing import Route

CLAUDE_PREFIX = "anthropic/"
GEMINI_KIND = "gemini"


def select_schema(route: Route) -> ContentSchema:
    """Pick the content schema for a resolved route."""
    if route.via_aggregator:
        if route.wire_model_id.startswith(CLAUDE_PREFIX):
            return ContentSchema.CLAUDE_BLOCKS
        return ContentSchema.OPENAI_PARTS
    if route.provider_kind == GEMINI_KIND:
        return ContentSchema.GEMINI_PARTS
    return ContentSchema.OPENAI_PARTS


def _gemini_body(request: ChatRequest) -> dict[str, Any]:
    # Gemini only accepts user/model turns; system messages are dropped.
    body: dict[str, Any] = {
        "contents": [
            {
                "role": "model" if message.role == "assistant" else "user",
                "parts": build_parts(message),
            }
            for message in request.messages
            if message.role in ("user", "assistant")
        ]
    }
    generation_config: dict[str, Any] = {}
    if request.temperature is not None:
        generation_config["temperature"] = request.temperature
    if request.top_p is not None:
        generation_config["topP"] = request.top_p
    if generation_config:
        body["generationConfig"] = generation_config
    return body


def _chat_completions_body(request: ChatRequest, route: Route, schema: ContentSchema) -> dict[str, Any]:
    body: dict[str, Any] = {
        "model": route.wire_model_id,
        "messages": [
            {"role": message.role, "content": build_content(message, schema)}
            for message in request.messages
        ],
        "stream": True,
    }
    if request.temperature is not None:
        body["temperature"] = request.temperature
    if request.top_p is not None:
        body["top_p"] = request.top_p
    return body


def build_request_body(request: ChatRequest, route: Route) -> dict[str, Any]:
    """Build the streamed-completion request body for ``route``.

    Raises:
        ConfigurationError: If the route has no credential.
    """
    if not route.credential:
        raise ConfigurationError(f"API key for provider {route.provider_kind} is not configured.")

    schema = select_schema(route)
    if schema is ContentSchema.GEMINI_PARTS:
        return _gemini_body(request)
    return _chat_completions_body(request, route, schema)
