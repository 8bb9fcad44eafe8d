"""SQLite repository implementation."""

import uuid
from datetime import UTC, datetime
from pathlib import Path

import databases
import sqlalchemy as sa
from loguru import logger
from sqlalchemy.schema import CreateIndex, CreateTable

from ..routing import RoutingEntry
from ..types import AttachmentMeta, UsageLogRecord


class SQLiteRepository:
    """SQLite/PostgreSQL repository using databases."""

    def __init__(self, database_url: str):
        """Initialize SQLite repository.

        Args:
            database_url: Database connection URL.
        """
        self.database = databases.Database(database_url)
        self.metadata = sa.MetaData()

        self.conversations = sa.Table(
            "conversations",
            self.metadata,
            sa.Column("id", sa.String, primary_key=True),
            sa.Column("user_id", sa.String, nullable=False, index=True),
            sa.Column("title", sa.String, nullable=False),
            sa.Column("created_at", sa.DateTime, nullable=False),
        )
        self.messages = sa.Table(
            "messages",
            self.metadata,
            sa.Column("id", sa.String, primary_key=True),
            sa.Column("conversation_id", sa.String, nullable=False, index=True),
            sa.Column("user_id", sa.String, nullable=False),
            sa.Column("role", sa.String, nullable=False),
            sa.Column("content", sa.Text, nullable=False),
            sa.Column("model", sa.String),
            sa.Column("attachments", sa.JSON),
            sa.Column("created_at", sa.DateTime, nullable=False),
        )
        self.usage_logs = sa.Table(
            "usage_logs",
            self.metadata,
            sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
            sa.Column("user_id", sa.String, nullable=False, index=True),
            sa.Column("model", sa.String, nullable=False),
            sa.Column("prompt_tokens", sa.Integer, nullable=False),
            sa.Column("completion_tokens", sa.Integer, nullable=False),
            sa.Column("total_tokens", sa.Integer, nullable=False),
            sa.Column("status", sa.String, nullable=False),
            sa.Column("cost", sa.Float),
            sa.Column("created_at", sa.DateTime, nullable=False),
        )
        self.model_routing_config = sa.Table(
            "model_routing_config",
            self.metadata,
            sa.Column("model_id", sa.String, primary_key=True),
            sa.Column("use_openrouter", sa.Boolean, nullable=False, default=False),
            sa.Column("openrouter_model_id", sa.String),
        )
        self.user_profiles = sa.Table(
            "user_profiles",
            self.metadata,
            sa.Column("id", sa.String, primary_key=True),
            sa.Column("daily_request_limit", sa.Integer),
        )

    async def startup(self) -> None:
        """Initialize database connection and create tables."""
        url = self.database.url
        if url.dialect == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        await self.database.connect()
        await self._create_tables()

    async def shutdown(self) -> None:
        """Close database connection."""
        await self.database.disconnect()

    async def create_conversation(self, user_id: str, title: str) -> str:
        """Create a conversation.

        Args:
            user_id: Owner of the conversation.
            title: Conversation title.

        Returns:
            The new conversation id.
        """
        conversation_id = str(uuid.uuid4())
        query = self.conversations.insert().values(
            id=conversation_id,
            user_id=user_id,
            title=title,
            created_at=datetime.now(UTC),
        )
        await self.database.execute(query)
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
        """Save a message.

        Args:
            conversation_id: Conversation the message belongs to.
            user_id: User identifier.
            role: Message role.
            content: Message text.
            model: Model that produced the message, for assistant messages.
            attachments: Attachment metadata (no payloads).

        Returns:
            The new message id.
        """
        message_id = str(uuid.uuid4())
        query = self.messages.insert().values(
            id=message_id,
            conversation_id=conversation_id,
            user_id=user_id,
            role=role,
            content=content,
            model=model,
            attachments=list(attachments) if attachments else None,
            created_at=datetime.now(UTC),
        )
        await self.database.execute(query)
        return message_id

    async def insert_usage_log(self, record: UsageLogRecord) -> None:
        """Write a usage-log row."""
        cost = record["cost"]
        query = self.usage_logs.insert().values(
            user_id=record["user_id"],
            model=record["model"],
            prompt_tokens=record["prompt_tokens"],
            completion_tokens=record["completion_tokens"],
            total_tokens=record["total_tokens"],
            status=record["status"],
            cost=float(cost) if cost is not None else None,
            created_at=datetime.now(UTC),
        )
        await self.database.execute(query)

    async def get_routing_config(self) -> list[RoutingEntry]:
        """Load the model routing table."""
        rows = await self.database.fetch_all(self.model_routing_config.select())
        return [
            RoutingEntry(
                model_id=row["model_id"],
                use_aggregator=bool(row["use_openrouter"]),
                aggregator_model_id=row["openrouter_model_id"] or "",
            )
            for row in rows
        ]

    async def count_user_requests_since(self, user_id: str, since: datetime) -> int:
        """Count the user's successful requests since ``since``."""
        query = (
            sa.select(sa.func.count())
            .select_from(self.usage_logs)
            .where(self.usage_logs.c.user_id == user_id)
            .where(self.usage_logs.c.status == "success")
            .where(self.usage_logs.c.created_at >= since)
        )
        count = await self.database.fetch_val(query)
        return int(count or 0)

    async def get_user_daily_limit(self, user_id: str) -> int | None:
        """Get the user's configured daily request limit."""
        query = sa.select(self.user_profiles.c.daily_request_limit).where(
            self.user_profiles.c.id == user_id
        )
        return await self.database.fetch_val(query)

    async def health_check(self) -> bool:
        """Check if database is accessible.

        Returns:
            True if database is healthy, False otherwise.
        """
        try:
            await self.database.execute("SELECT 1")
            return True
        except (ConnectionError, TimeoutError):
            logger.exception("Database health check failed")
            return False

    async def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        for table in self.metadata.sorted_tables:
            await self.database.execute(CreateTable(table, if_not_exists=True))
            for index in table.indexes:
                await self.database.execute(CreateIndex(index, if_not_exists=True))
