"""Aggregator pricing feed cache."""

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any

import httpx
from loguru import logger

from .exceptions import LLMProviderError
from .retry import with_fetch_retry

COST_QUANTUM = Decimal("0.000001")


@dataclass(frozen=True)
class PricingEntry:
    """Per-token prices for one aggregator model."""

    model_id: str
    prompt_price: Decimal
    completion_price: Decimal

    def cost(self, prompt_tokens: int, completion_tokens: int) -> Decimal:
        """Cost of a call, rounded to 6 decimal places."""
        total = prompt_tokens * self.prompt_price + completion_tokens * self.completion_price
        return total.quantize(COST_QUANTUM, rounding=ROUND_HALF_UP)


def _price(raw: Any) -> Decimal:
    try:
        return Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def parse_pricing_feed(payload: Any) -> dict[str, PricingEntry]:
    """Parse the aggregator ``/models`` response into pricing entries.

    Raises:
        ValueError: If the response is not an object with a ``data`` list.
    """
    models = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(models, list):
        raise ValueError("Pricing feed response has no model list")

    entries: dict[str, PricingEntry] = {}
    for model in models:
        if not isinstance(model, dict):
            continue
        model_id = model.get("id")
        pricing = model.get("pricing")
        if not model_id or not isinstance(pricing, dict):
            continue
        entries[model_id] = PricingEntry(
            model_id=model_id,
            prompt_price=_price(pricing.get("prompt", 0)),
            completion_price=_price(pricing.get("completion", 0)),
        )
    return entries


class PricingCache:
    """Cached pricing snapshot with a freshness timestamp.

    Lookups never trigger a fetch; a stale snapshot is served until the next
    successful :meth:`refresh` replaces it wholesale.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        models_url: str,
        api_key: str | None,
        max_age_seconds: float = 6 * 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self.models_url = models_url
        self.api_key = api_key
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._entries: Mapping[str, PricingEntry] = MappingProxyType({})
        self._fetched_at: float | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, model_id: str) -> PricingEntry | None:
        return self._entries.get(model_id)

    @property
    def is_fresh(self) -> bool:
        if not self._entries or self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self.max_age_seconds

    async def refresh(self, force: bool = False) -> bool:
        """Fetch the pricing feed unless the cache is still fresh.

        Returns:
            True if the snapshot was replaced.
        """
        if self.is_fresh and not force:
            return False
        if not self.api_key:
            logger.debug("Aggregator key not configured, skipping pricing refresh")
            return False

        try:
            response = await self._fetch()
        except (httpx.HTTPError, LLMProviderError) as e:
            logger.error(f"Failed to fetch aggregator pricing: {e}")
            return False

        try:
            entries = parse_pricing_feed(response.json())
        except ValueError as e:
            logger.error(f"Ignoring aggregator pricing response: {e}")
            return False

        self._entries = MappingProxyType(entries)
        self._fetched_at = self._clock()
        logger.info(f"Cached pricing for {len(entries)} aggregator models")
        return True

    @with_fetch_retry("Pricing feed")
    async def _fetch(self) -> httpx.Response:
        response = await self._client.get(
            self.models_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        response.raise_for_status()
        return response
