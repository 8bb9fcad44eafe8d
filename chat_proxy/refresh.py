"""Background refresh of the routing table and pricing cache."""

import asyncio

from loguru import logger

from .pricing import PricingCache
from .routing import ModelRouter
from .storage.protocols import Repository


class ConfigRefresher:
    """Owns the out-of-band refresh of routing and pricing snapshots."""

    def __init__(
        self,
        repository: Repository,
        router: ModelRouter,
        pricing: PricingCache,
        interval_seconds: float = 300,
    ) -> None:
        self.repository = repository
        self.router = router
        self.pricing = pricing
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    async def refresh_routing(self) -> bool:
        """Reload the routing table; keeps the old snapshot on failure."""
        try:
            entries = await self.repository.get_routing_config()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to load model routing config: {e}")
            return False
        self.router.replace_routing(entries)
        return True

    async def refresh_all(self) -> None:
        await self.refresh_routing()
        await self.pricing.refresh()

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run_loop(), name="chat-proxy-config-refresh")
        logger.info("Config refresh task started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
        logger.info("Config refresh task stopped")

    async def _run_loop(self) -> None:
        interval = max(5.0, float(self.interval_seconds))
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh_all()
            except asyncio.CancelledError:
                raise
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Config refresh failed: {e}")
