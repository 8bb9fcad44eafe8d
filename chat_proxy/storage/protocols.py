"""Storage protocol definitions using typing.Protocol."""

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from ..types import AttachmentMeta, UsageLogRecord

if TYPE_CHECKING:
    from ..routing import RoutingEntry


class Repository(Protocol):
    """Repository protocol for conversations, messages and usage accounting."""

    async def create_conversation(self, user_id: str, title: str) -> str:
        """Create a conversation and return its id."""
        ...

    async def save_message(
        self,
        conversation_id: str,
        user_id: str,
        role: str,
        content: str,
        model: str | None = None,
        attachments: list[AttachmentMeta] | None = None,
    ) -> str:
        """Save a message and return its id."""
        ...

    async def insert_usage_log(self, record: UsageLogRecord) -> None:
        """Write a usage-log row."""
        ...

    async def get_routing_config(self) -> list["RoutingEntry"]:
        """Load the model routing table."""
        ...

    async def count_user_requests_since(self, user_id: str, since: datetime) -> int:
        """Count the user's successful requests since ``since``."""
        ...

    async def get_user_daily_limit(self, user_id: str) -> int | None:
        """Get the user's daily request limit, or None when the profile has none."""
        ...

    async def health_check(self) -> bool:
        """Check if repository is healthy."""
        ...

    async def startup(self) -> None:
        """Initialize repository on startup."""
        ...

    async def shutdown(self) -> None:
        """Cleanup repository on shutdown."""
        ...
