"""Attachment encoding for the three provider content schemas.

Schema A (``OPENAI_PARTS``) is the OpenAI-compatible ``type`` discriminated
part list (``text`` / ``image_url`` / ``file``). Schema B (``CLAUDE_BLOCKS``)
is the Anthropic content-block list (``text`` / ``image`` / ``document``).
Schema C (``GEMINI_PARTS``) is the Gemini ``parts`` list of ``inline_data`` or
``text`` entries. Markdown attachments are always inlined as text.
"""

from enum import Enum
from typing import Any

from .exceptions import ValidationError
from .models import Attachment, ChatMessage

ContentPart = dict[str, Any]


class ContentSchema(str, Enum):
    """Provider content schemas."""

    OPENAI_PARTS = "openai_parts"
    CLAUDE_BLOCKS = "claude_blocks"
    GEMINI_PARTS = "gemini_parts"


def markdown_block(attachment: Attachment) -> str:
    """Delimited text block used to inline a markdown file."""
    return f"\n\n--- File: {attachment.name} ---\n{attachment.data}\n---"


def _data_uri(attachment: Attachment) -> str:
    return f"data:{attachment.mime_type};base64,{attachment.data}"


def _encode_openai(attachment: Attachment) -> ContentPart:
    match attachment.type:
        case "image":
            return {"type": "image_url", "image_url": {"url": _data_uri(attachment)}}
        case "pdf":
            return {
                "type": "file",
                "file": {"filename": attachment.name, "file_data": _data_uri(attachment)},
            }
        case "markdown":
            return {"type": "text", "text": markdown_block(attachment)}
        case _:
            raise ValidationError(f"Unsupported attachment type: {attachment.type}")


def _encode_claude(attachment: Attachment) -> ContentPart:
    match attachment.type:
        case "image":
            return {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": attachment.mime_type,
                    "data": attachment.data,
                },
            }
        case "pdf":
            return {
                "type": "document",
                "source": {"type": "base64", "media_type": "application/pdf", "data": attachment.data},
            }
        case "markdown":
            return {"type": "text", "text": markdown_block(attachment)}
        case _:
            raise ValidationError(f"Unsupported attachment type: {attachment.type}")


def _encode_gemini(attachment: Attachment) -> ContentPart:
    match attachment.type:
        case "image":
            return {"inline_data": {"mime_type": attachment.mime_type, "data": attachment.data}}
        case "pdf":
            return {"inline_data": {"mime_type": "application/pdf", "data": attachment.data}}
        case "markdown":
            return {"text": markdown_block(attachment)}
        case _:
            raise ValidationError(f"Unsupported attachment type: {attachment.type}")


_ENCODERS = {
    ContentSchema.OPENAI_PARTS: _encode_openai,
    ContentSchema.CLAUDE_BLOCKS: _encode_claude,
    ContentSchema.GEMINI_PARTS: _encode_gemini,
}


def encode(attachment: Attachment, schema: ContentSchema) -> ContentPart:
    """Encode one attachment into a content part of the given schema.

    Raises:
        ValidationError: If the attachment carries no payload.
    """
    if attachment.data is None:
        raise ValidationError(f"Attachment {attachment.name!r} has no payload")
    return _ENCODERS[schema](attachment)


def outbound_attachments(message: ChatMessage) -> list[Attachment]:
    """Attachments that can be sent upstream (those that still carry a payload)."""
    return [att for att in message.attachments or [] if att.data is not None]


def build_content(message: ChatMessage, schema: ContentSchema) -> str | list[ContentPart]:
    """Build the message content for Schema A or B.

    Without attachments the content is the plain message string.
    """
    attachments = outbound_attachments(message)
    if not attachments:
        return message.content

    if schema is ContentSchema.CLAUDE_BLOCKS:
        blocks = [encode(att, schema) for att in attachments]
        blocks.append({"type": "text", "text": message.content})
        return blocks

    if schema is ContentSchema.OPENAI_PARTS:
        text = message.content + "".join(
            markdown_block(att) for att in attachments if att.type == "markdown"
        )
        parts: list[ContentPart] = [{"type": "text", "text": text}]
        parts.extend(encode(att, schema) for att in attachments if att.type != "markdown")
        return parts

    raise ValueError(f"{schema.value} content is built with build_parts()")


def build_parts(message: ChatMessage) -> list[ContentPart]:
    """Build Schema C parts; the message text is always the last part."""
    parts = [encode(att, ContentSchema.GEMINI_PARTS) for att in outbound_attachments(message)]
    parts.append({"text": message.content})
    return parts
