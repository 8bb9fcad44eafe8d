"""Chat service: admission, routing and translation in front of the relay."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime

from loguru import logger

from .cost import CostGovernor
from .events import StreamEvent
from .exceptions import DailyLimitExceeded, HourlyCostLimitExceeded
from .models import ChatRequest
from .pricing import PricingCache
from .relay import StreamingRelay
from .routing import ModelRouter
from .session import StreamSession
from .storage.protocols import Repository
from .translator import build_request_body
from .types import HealthStatus


def start_of_day(now: datetime | None = None) -> datetime:
    """UTC midnight of the current day."""
    now = now or datetime.now(UTC)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class ChatService:
    """Chat service handling streamed chat requests."""

    def __init__(
        self,
        repository: Repository,
        router: ModelRouter,
        pricing: PricingCache,
        governor: CostGovernor,
        relay: StreamingRelay,
        preflight_cost_estimate: float = 0.01,
        default_daily_limit: int = 100,
    ) -> None:
        """Initialize with injected dependencies."""
        self.repository = repository
        self.router = router
        self.pricing = pricing
        self.governor = governor
        self.relay = relay
        self.preflight_cost_estimate = preflight_cost_estimate
        self.default_daily_limit = default_daily_limit

    async def open_stream(self, request: ChatRequest, user_id: str) -> AsyncIterator[StreamEvent]:
        """Admit, route and translate a request, then hand it to the relay.

        Admission and configuration errors are raised here, before any
        upstream call is made.

        Raises:
            DailyLimitExceeded: If the user used up today's requests.
            HourlyCostLimitExceeded: If the process-wide cost window is full.
            ConfigurationError: If the model has no usable route.
        """
        safe_user_id = user_id[:8] + "..." if len(user_id) > 8 else user_id

        await self._check_daily_limit(user_id)

        if not self.governor.can_proceed(self.preflight_cost_estimate):
            raise HourlyCostLimitExceeded("Hourly cost limit exceeded. Please try again later.")

        route = self.router.resolve(request.model)
        body = build_request_body(request, route)
        logger.debug(
            "Routing chat request",
            user_id=safe_user_id,
            model=request.model,
            provider=route.provider_kind,
            wire_model=route.wire_model_id,
        )

        session = StreamSession(
            user_id=user_id,
            request=request,
            route=route,
            conversation_id=str(request.conversation_id) if request.conversation_id else None,
        )
        return self.relay.run(session, body)

    async def _check_daily_limit(self, user_id: str) -> None:
        limit = await self.repository.get_user_daily_limit(user_id) or self.default_daily_limit
        count = await self.repository.count_user_requests_since(user_id, start_of_day())
        if count >= limit:
            logger.info(f"Daily limit reached: {count}/{limit}")
            raise DailyLimitExceeded("You have reached your daily request limit.")

    async def health_check(self) -> HealthStatus:
        """Check health of all components."""
        logger.debug("Performing health checks")

        return {
            "storage": await self._check_storage_health(),
            "routing": self.router.is_configured(),
            "pricing": self.pricing.is_fresh or not self.pricing.api_key,
        }

    async def _check_storage_health(self) -> bool:
        """Check storage health."""
        try:
            return await self.repository.health_check()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Storage health check failed: {e}")
            return False
