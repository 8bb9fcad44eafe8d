"""Usage reconciliation and persistence of a completed turn."""

import math
from dataclasses import dataclass
from decimal import Decimal

from loguru import logger

from .cost import CostGovernor
from .exceptions import PersistenceError
from .pricing import PricingCache
from .session import StreamSession
from .storage.protocols import Repository
from .types import TokenUsage, UsageLogRecord


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of persisting a turn."""

    conversation_id: str
    message_id: str
    usage: TokenUsage
    cost: Decimal | None


def estimate_completion_tokens(content: str) -> int:
    """Rough completion token estimate from the word count."""
    return math.ceil(len(content.split(" ")) / 0.75)


def count_tokens(content: str, reported: TokenUsage | None) -> TokenUsage:
    """Token counts for a turn, preferring provider-reported usage.

    Prompt tokens cannot be estimated here and default to zero.
    """
    reported = reported or {}
    prompt_tokens = reported.get("prompt_tokens") or 0
    completion_tokens = reported.get("completion_tokens") or 0
    if completion_tokens == 0:
        completion_tokens = estimate_completion_tokens(content)
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": prompt_tokens + completion_tokens,
    }


class UsageReconciler:
    """Persists a finished stream and accounts for its cost, once per request."""

    def __init__(
        self,
        repository: Repository,
        pricing: PricingCache,
        governor: CostGovernor,
    ) -> None:
        self.repository = repository
        self.pricing = pricing
        self.governor = governor

    async def reconcile(self, session: StreamSession) -> ReconcileResult:
        """Persist the turn held by ``session``.

        Raises:
            PersistenceError: If the conversation or either message cannot be saved.
        """
        request = session.request
        user_message = request.last_message

        try:
            if session.conversation_id is None:
                session.conversation_id = await self.repository.create_conversation(
                    session.user_id, request.conversation_title()
                )
            conversation_id = session.conversation_id

            attachments_meta = [att.meta() for att in user_message.attachments or []] or None
            await self.repository.save_message(
                conversation_id,
                session.user_id,
                user_message.role,
                user_message.content,
                attachments=attachments_meta,
            )
            message_id = await self.repository.save_message(
                conversation_id,
                session.user_id,
                "assistant",
                session.content,
                model=request.model,
            )
        except Exception as e:
            logger.error(f"Failed to save conversation turn: {e}")
            raise PersistenceError("Failed to save response.") from e

        usage = count_tokens(session.content, session.usage)
        cost = self._cost(session, usage)
        if cost is not None:
            self.governor.add_cost(cost)
            usage["cost_usd"] = cost

        await self._log_usage(
            {
                "user_id": session.user_id,
                "model": request.model,
                "prompt_tokens": usage["prompt_tokens"],
                "completion_tokens": usage["completion_tokens"],
                "total_tokens": usage["total_tokens"],
                "status": "success",
                "cost": cost,
            }
        )

        logger.info(
            "Token usage",
            model=request.model,
            prompt_tokens=usage["prompt_tokens"],
            completion_tokens=usage["completion_tokens"],
            cost=str(cost) if cost is not None else None,
        )
        return ReconcileResult(
            conversation_id=conversation_id, message_id=message_id, usage=usage, cost=cost
        )

    def _cost(self, session: StreamSession, usage: TokenUsage) -> Decimal | None:
        entry = self.pricing.get(session.route.wire_model_id)
        if entry is None:
            logger.debug(f"No pricing for {session.route.wire_model_id}, cost not recorded")
            return None
        return entry.cost(usage["prompt_tokens"], usage["completion_tokens"])

    async def _log_usage(self, record: UsageLogRecord) -> None:
        try:
            await self.repository.insert_usage_log(record)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Failed to log usage (non-critical): {e}")
