"""
Caching strategies used by the request router.

Each strategy decides whether it applies to a request and how to answer it
from the network and the cache store.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from milvet_nav.models import CACHE_ORIGIN_HEADER, ProxyRequest, ProxyResponse
from milvet_nav.transport.http_transport import Transport
from .cache_store import CacheStore


class CacheStrategy(ABC):
    """Base class for caching strategies."""

    def __init__(self, store: CacheStore, transport: Transport):
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.transport = transport

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the strategy."""

    @abstractmethod
    def matches(self, request: ProxyRequest) -> bool:
        """Check if this strategy handles the request."""

    @abstractmethod
    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        """Answer the request."""

    async def _store(self, partition: str, request: ProxyRequest, response: ProxyResponse):
        try:
            await self.store.put(partition, request, response)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Failed to cache {request.url}: {e}")


class PassthroughStrategy(CacheStrategy):
    """Writes go straight to the network; nothing is cached."""

    name = "passthrough"

    def matches(self, request: ProxyRequest) -> bool:
        return not request.is_get()

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        return await self.transport.fetch(request)


class ApiStrategy(CacheStrategy):
    """
    Network first for backend API traffic.

    Successful GET responses are kept in the dynamic partition. When the
    network fails, GETs are answered from the cache with a cache-origin
    marker header, or with a structured 503 response.
    """

    name = "api"

    def __init__(self, store: CacheStore, transport: Transport,
                 backend_host: str, dynamic_partition: str):
        super().__init__(store, transport)
        self.backend_host = backend_host.lower()
        self.dynamic_partition = dynamic_partition

    def matches(self, request: ProxyRequest) -> bool:
        hostname = request.hostname
        return hostname == self.backend_host or hostname.endswith('.' + self.backend_host)

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        try:
            response = await self.transport.fetch(request)
        except Exception as e:
            self.logger.info(f"API request failed, checking cache: {request.url} ({e})")
            return await self._offline_response(request)

        if request.is_get() and response.ok:
            await self._store(self.dynamic_partition, request, response)
        return response

    async def _offline_response(self, request: ProxyRequest) -> ProxyResponse:
        if request.is_get():
            cached = await self.store.match(request)
            if cached is not None:
                return cached.with_header(CACHE_ORIGIN_HEADER, "true")
        return ProxyResponse.network_unavailable(url=request.url)


class NavigationStrategy(CacheStrategy):
    """
    Network first for page navigations.

    Falls back to the cached page, then to the cached root page, then to a
    plain 503 response.
    """

    name = "navigation"

    def __init__(self, store: CacheStore, transport: Transport, dynamic_partition: str):
        super().__init__(store, transport)
        self.dynamic_partition = dynamic_partition

    def matches(self, request: ProxyRequest) -> bool:
        return request.is_navigation()

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        try:
            response = await self.transport.fetch(request)
        except Exception as e:
            self.logger.info(f"Navigation request failed, trying cache: {request.url} ({e})")
            return await self._offline_response(request)

        if response.ok:
            await self._store(self.dynamic_partition, request, response)
        return response

    async def _offline_response(self, request: ProxyRequest) -> ProxyResponse:
        cached = await self.store.match(request)
        if cached is not None:
            return cached

        root_page = await self.store.match(request.for_url('/'))
        if root_page is not None:
            return root_page

        return ProxyResponse.offline_page(url=request.url)


class AssetStrategy(CacheStrategy):
    """Cache first for scripts, styles, images and fonts."""

    name = "asset"

    def __init__(self, store: CacheStore, transport: Transport, static_partition: str):
        super().__init__(store, transport)
        self.static_partition = static_partition

    def matches(self, request: ProxyRequest) -> bool:
        return request.is_asset()

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        cached = await self.store.match(request)
        if cached is not None:
            return cached

        try:
            response = await self.transport.fetch(request)
        except Exception as e:
            self.logger.warning(f"Asset request failed: {request.url} ({e})")
            return ProxyResponse.offline_page(url=request.url)

        if response.ok:
            await self._store(self.static_partition, request, response)
        return response


class DefaultStrategy(CacheStrategy):
    """Serve from cache when possible, otherwise from the network without caching."""

    name = "default"

    def matches(self, request: ProxyRequest) -> bool:
        return True

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        cached: Optional[ProxyResponse] = await self.store.match(request)
        if cached is not None:
            return cached

        try:
            return await self.transport.fetch(request)
        except Exception as e:
            self.logger.warning(f"Request failed with no cached copy: {request.url} ({e})")
            return ProxyResponse.offline_page(url=request.url)
