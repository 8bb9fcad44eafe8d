"""Model routing: caller-facing model id to upstream endpoint and credential."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from loguru import logger

from .config import ProviderSettings, Settings
from .exceptions import ConfigurationError

AGGREGATOR_KIND = "openrouter"


@dataclass(frozen=True)
class RoutingEntry:
    """Per-model routing override loaded from the routing config table."""

    model_id: str
    use_aggregator: bool
    aggregator_model_id: str = ""


@dataclass(frozen=True)
class Route:
    """Resolved upstream target for a request."""

    endpoint: str
    credential: str | None
    provider_kind: str
    wire_model_id: str

    @property
    def via_aggregator(self) -> bool:
        return self.provider_kind == AGGREGATOR_KIND


@dataclass(frozen=True)
class AggregatorConfig:
    """Aggregator endpoint and credential."""

    url: str
    api_key: str | None


class ModelRouter:
    """Resolves model ids against a routing table and the provider configuration.

    The routing table is replaced wholesale by :meth:`replace_routing`, so a
    request always sees one consistent snapshot. Resolution never refreshes.
    """

    def __init__(
        self,
        providers: Mapping[str, ProviderSettings],
        aggregator: AggregatorConfig,
        entries: Iterable[RoutingEntry] = (),
    ) -> None:
        self._providers = MappingProxyType(dict(providers))
        self._aggregator = aggregator
        self._routing: Mapping[str, RoutingEntry] = MappingProxyType(
            {entry.model_id: entry for entry in entries}
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelRouter":
        return cls(
            providers=settings.providers,
            aggregator=AggregatorConfig(url=settings.openrouter_url, api_key=settings.openrouter_api_key),
        )

    @property
    def routing(self) -> Mapping[str, RoutingEntry]:
        return self._routing

    def replace_routing(self, entries: Iterable[RoutingEntry]) -> None:
        """Swap in a new routing table snapshot."""
        self._routing = MappingProxyType({entry.model_id: entry for entry in entries})
        logger.info(f"Model routing configuration loaded ({len(self._routing)} entries)")

    def resolve(self, model_id: str) -> Route:
        """Resolve a model id to its upstream route.

        Raises:
            ConfigurationError: If no route applies or the route lacks a credential.
        """
        entry = self._routing.get(model_id)
        if entry is not None and entry.use_aggregator and self._aggregator.api_key:
            return Route(
                endpoint=self._aggregator.url,
                credential=self._aggregator.api_key,
                provider_kind=AGGREGATOR_KIND,
                wire_model_id=entry.aggregator_model_id or model_id,
            )

        provider = self._providers.get(model_id)
        if provider is None:
            logger.error(f"No route configured for model {model_id}")
            raise ConfigurationError(f"Configuration for model {model_id} is missing or incomplete.")
        if not provider.api_key:
            logger.error(f"No credential configured for model {model_id} ({provider.provider})")
            raise ConfigurationError(f"API key for provider {provider.provider} is not configured.")

        return Route(
            endpoint=provider.url,
            credential=provider.api_key,
            provider_kind=provider.provider,
            wire_model_id=provider.model or model_id,
        )

    def is_configured(self) -> bool:
        """Check if at least one route can be resolved."""
        has_direct = any(provider.api_key for provider in self._providers.values())
        return has_direct or bool(self._aggregator.api_key)
