"""Request models using Pydantic."""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from .config import settings
from .types import AttachmentMeta

Role = Literal["system", "user", "assistant"]
AttachmentKind = Literal["image", "pdf", "markdown"]


class Attachment(BaseModel):
    """A file attached to a message.

    ``data`` is base64 for images and PDFs and raw text for markdown. It may
    be absent on historical turns, where clients keep only the metadata.
    """

    type: AttachmentKind
    name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=100)
    size: int = Field(..., gt=0, le=settings.max_attachment_bytes)
    data: str | None = None

    def meta(self) -> AttachmentMeta:
        """Metadata safe to persist."""
        return {
            "type": self.type,
            "name": self.name,
            "mime_type": self.mime_type,
            "size": self.size,
        }


class ChatMessage(BaseModel):
    """A single turn of the conversation history."""

    role: Role
    content: str = Field(..., max_length=settings.max_message_content_length)
    attachments: list[Attachment] | None = Field(
        default=None, max_length=settings.max_attachments_per_message
    )

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise PydanticCustomError(
                "empty_content", "Message content is required.", {"input": value}
            )
        return value


class ChatRequest(BaseModel):
    """Provider-agnostic chat request accepted by ``POST /chat/stream``."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model: str = Field(..., min_length=1)
    messages: list[ChatMessage] = Field(
        ..., min_length=1, max_length=settings.max_messages_per_request
    )
    conversation_id: UUID | None = Field(default=None, alias="conversationId")
    temperature: float | None = Field(default=None, ge=0, le=2)
    top_p: float | None = Field(default=None, ge=0, le=1)

    @field_validator("model", mode="before")
    @classmethod
    def validate_model(cls, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise PydanticCustomError("empty_model", "Model is required.", {"input": value})
        return value.strip()

    @property
    def last_message(self) -> ChatMessage:
        return self.messages[-1]

    def conversation_title(self, max_length: int = 50) -> str:
        """Title for a new conversation: the first user message, truncated."""
        for message in self.messages:
            if message.role == "user":
                return message.content[:max_length]
        return "New Chat"
