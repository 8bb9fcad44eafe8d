"""Tests for provider request translation."""

import pytest

from chat_proxy.attachments import ContentSchema
from chat_proxy.exceptions import ConfigurationError
from chat_proxy.routing import AGGREGATOR_KIND, Route
from chat_proxy.translator import build_request_body, select_schema

IMAGE = {"type": "image", "name": "a.png", "mime_type": "image/png", "size": 3, "data": "AAA="}


def route(provider_kind: str = "openai", wire: str = "gpt-4o", credential: str | None = "key") -> Route:
    return Route(
        endpoint="https://upstream.test/v1",
        credential=credential,
        provider_kind=provider_kind,
        wire_model_id=wire,
    )


class TestSelectSchema:
    def test_direct_openai_compatible(self):
        for kind in ("openai", "deepseek", "mistral"):
            assert select_schema(route(kind)) is ContentSchema.OPENAI_PARTS

    def test_direct_gemini(self):
        assert select_schema(route("gemini")) is ContentSchema.GEMINI_PARTS

    def test_aggregator_claude(self):
        assert (
            select_schema(route(AGGREGATOR_KIND, "anthropic/claude-3.5-sonnet"))
            is ContentSchema.CLAUDE_BLOCKS
        )

    def test_aggregator_other_models(self):
        assert select_schema(route(AGGREGATOR_KIND, "google/gemini-pro")) is ContentSchema.OPENAI_PARTS


class TestChatCompletionsBody:
    def test_basic_body(self, make_request):
        body = build_request_body(make_request("Hi"), route(wire="gpt-4o-2024"))
        assert body == {
            "model": "gpt-4o-2024",
            "messages": [{"role": "user", "content": "Hi"}],
            "stream": True,
        }

    def test_sampling_parameters_at_top_level(self, make_request):
        body = build_request_body(make_request("Hi", temperature=0.2, top_p=0.9), route())
        assert body["temperature"] == 0.2
        assert body["top_p"] == 0.9

    def test_history_and_roles_preserved(self, make_request):
        request = make_request(
            messages=[
                {"role": "system", "content": "Be brief"},
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "content": "Hello"},
                {"role": "user", "content": "Again"},
            ]
        )
        body = build_request_body(request, route())
        assert [m["role"] for m in body["messages"]] == ["system", "user", "assistant", "user"]

    def test_claude_via_aggregator_uses_content_blocks(self, make_request):
        request = make_request(
            model="anthropic/claude-3.5-sonnet",
            messages=[{"role": "user", "content": "What is this?", "attachments": [IMAGE]}],
        )
        body = build_request_body(request, route(AGGREGATOR_KIND, "anthropic/claude-3.5-sonnet"))
        content = body["messages"][0]["content"]
        assert content[0]["type"] == "image"
        assert content[-1] == {"type": "text", "text": "What is this?"}

    def test_missing_credential(self, make_request):
        with pytest.raises(ConfigurationError):
            build_request_body(make_request(), route(credential=None))


class TestGeminiBody:
    def test_roles_are_remapped_and_system_dropped(self, make_request):
        request = make_request(
            model="gemini-flash",
            messages=[
                {"role": "system", "content": "Be brief"},
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "content": "Hello"},
                {"role": "user", "content": "Again"},
            ],
        )
        body = build_request_body(request, route("gemini", "gemini-2.0-flash"))
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
        assert body["contents"][0]["parts"] == [{"text": "Hi"}]
        assert "model" not in body
        assert "generationConfig" not in body

    def test_sampling_in_generation_config(self, make_request):
        request = make_request(model="gemini-flash", temperature=1.5, top_p=0.5)
        body = build_request_body(request, route("gemini", "gemini-2.0-flash"))
        assert body["generationConfig"] == {"temperature": 1.5, "topP": 0.5}

    def test_attachments_become_inline_data(self, make_request):
        request = make_request(
            model="gemini-flash",
            messages=[{"role": "user", "content": "Look", "attachments": [IMAGE]}],
        )
        body = build_request_body(request, route("gemini", "gemini-2.0-flash"))
        parts = body["contents"][0]["parts"]
        assert parts[0] == {"inline_data": {"mime_type": "image/png", "data": "AAA="}}
        assert parts[-1] == {"text": "Look"}
