"""
Request router for the offline proxy.

Routes each intercepted request through an ordered chain of caching
strategies. The first strategy that matches answers the request.
"""

import logging
from typing import Any, Dict, List, Optional

from milvet_nav.config import AppSettings
from milvet_nav.models import ProxyRequest, ProxyResponse
from milvet_nav.transport.http_transport import Transport
from .cache_store import CacheStore
from .strategies import (
    ApiStrategy,
    AssetStrategy,
    CacheStrategy,
    DefaultStrategy,
    NavigationStrategy,
    PassthroughStrategy,
)


class RequestRouter:
    """
    Chooses a caching strategy per request.

    Default order: passthrough (non-GET), API, navigation, asset, default.
    """

    def __init__(self, strategies: List[CacheStrategy]):
        """
        Initialize router.

        Args:
            strategies: Strategies in evaluation order
        """
        if not strategies:
            raise ValueError("At least one strategy is required")
        self.logger = logging.getLogger(__name__)
        self._strategies = list(strategies)
        self._stats: Dict[str, int] = {strategy.name: 0 for strategy in self._strategies}

    @classmethod
    def create_default(cls, store: CacheStore, transport: Transport,
                       settings: AppSettings) -> 'RequestRouter':
        """Build the standard strategy chain for the given settings."""
        return cls([
            PassthroughStrategy(store, transport),
            ApiStrategy(store, transport, settings.backend_host, settings.dynamic_cache_name),
            NavigationStrategy(store, transport, settings.dynamic_cache_name),
            AssetStrategy(store, transport, settings.static_cache_name),
            DefaultStrategy(store, transport),
        ])

    @property
    def strategies(self) -> List[CacheStrategy]:
        return list(self._strategies)

    def select_strategy(self, request: ProxyRequest) -> Optional[CacheStrategy]:
        """Get the strategy that will handle the request."""
        for strategy in self._strategies:
            if strategy.matches(request):
                return strategy
        return None

    async def route(self, request: ProxyRequest) -> ProxyResponse:
        """
        Answer an intercepted request.

        Raises:
            LookupError: If no strategy matches
            Exception: Network failures of non-GET requests, unchanged
        """
        strategy = self.select_strategy(request)
        if strategy is None:
            raise LookupError(f"No caching strategy for {request.method} {request.url}")

        self._stats[strategy.name] = self._stats.get(strategy.name, 0) + 1
        self.logger.debug(f"{request.method} {request.url} -> {strategy.name}")
        return await strategy.handle(request)

    def get_stats(self) -> Dict[str, Any]:
        """Get the number of requests handled per strategy."""
        return dict(self._stats)
