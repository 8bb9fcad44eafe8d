"""Tests for request models."""

import pytest
from pydantic import ValidationError

from chat_proxy.models import Attachment, ChatMessage, ChatRequest


class TestChatMessage:
    def test_valid_message(self):
        message = ChatMessage(role="user", content="Hello")
        assert message.attachments is None

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_content_rejected(self, content):
        with pytest.raises(ValidationError, match="Message content is required"):
            ChatMessage(role="user", content=content)

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            ChatMessage(role="tool", content="x")

    def test_too_many_attachments(self):
        attachment = {"type": "markdown", "name": "a.md", "mime_type": "text/markdown", "size": 1, "data": "x"}
        with pytest.raises(ValidationError):
            ChatMessage(role="user", content="x", attachments=[attachment] * 6)


class TestAttachment:
    def test_payload_is_optional(self):
        attachment = Attachment(type="pdf", name="a.pdf", mime_type="application/pdf", size=100)
        assert attachment.data is None
        assert attachment.meta() == {
            "type": "pdf",
            "name": "a.pdf",
            "mime_type": "application/pdf",
            "size": 100,
        }

    def test_unsupported_type(self):
        with pytest.raises(ValidationError):
            Attachment(type="video", name="a.mp4", mime_type="video/mp4", size=1)

    def test_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            Attachment(type="image", name="a.png", mime_type="image/png", size=0)

    def test_oversized_attachment(self):
        with pytest.raises(ValidationError):
            Attachment(type="image", name="a.png", mime_type="image/png", size=21 * 1024 * 1024)


class TestChatRequest:
    def test_minimal_request(self):
        request = ChatRequest(model=" gpt-4o ", messages=[{"role": "user", "content": "Hi"}])
        assert request.model == "gpt-4o"
        assert request.conversation_id is None
        assert request.last_message.content == "Hi"

    def test_conversation_id_alias(self):
        request = ChatRequest.model_validate(
            {
                "model": "gpt-4o",
                "messages": [{"role": "user", "content": "Hi"}],
                "conversationId": "12345678-1234-5678-1234-567812345678",
            }
        )
        assert str(request.conversation_id) == "12345678-1234-5678-1234-567812345678"

    def test_invalid_conversation_id(self):
        with pytest.raises(ValidationError):
            ChatRequest.model_validate(
                {"model": "m", "messages": [{"role": "user", "content": "Hi"}], "conversationId": "nope"}
            )

    def test_empty_messages_rejected(self):
        with pytest.raises(ValidationError):
            ChatRequest(model="gpt-4o", messages=[])

    def test_blank_model_rejected(self):
        with pytest.raises(ValidationError, match="Model is required"):
            ChatRequest(model="  ", messages=[{"role": "user", "content": "Hi"}])

    @pytest.mark.parametrize("field,value", [("temperature", 2.5), ("temperature", -0.1), ("top_p", 1.1)])
    def test_sampling_bounds(self, field, value):
        with pytest.raises(ValidationError):
            ChatRequest(model="m", messages=[{"role": "user", "content": "Hi"}], **{field: value})

    def test_title_from_first_user_message(self):
        request = ChatRequest(
            model="m",
            messages=[
                {"role": "system", "content": "Be brief"},
                {"role": "user", "content": "x" * 80},
                {"role": "assistant", "content": "ok"},
                {"role": "user", "content": "second"},
            ],
        )
        assert request.conversation_title() == "x" * 50

    def test_title_fallback(self):
        request = ChatRequest(model="m", messages=[{"role": "system", "content": "Be brief"}])
        assert request.conversation_title() == "New Chat"
