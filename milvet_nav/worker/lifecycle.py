"""
Install and activation lifecycle of the offline service.
"""

import logging
from enum import Enum
from typing import List, Optional

from milvet_nav.cache import CacheStore
from milvet_nav.config import AppSettings
from milvet_nav.models import ProxyRequest
from milvet_nav.transport.http_transport import Transport
from .clients import ClientRegistry


class ServiceState(Enum):
    """Lifecycle states of a service version."""
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class InstallError(Exception):
    """Raised when the static asset manifest cannot be cached."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class LifecycleManager:
    """
    Seeds the static partition at install and removes stale partitions at
    activation.
    """

    def __init__(self, store: CacheStore, transport: Transport, settings: AppSettings,
                 clients: ClientRegistry):
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.transport = transport
        self.settings = settings
        self.clients = clients
        self.state = ServiceState.PARSED
        self.skip_waiting = False

    @property
    def expected_partitions(self) -> List[str]:
        return [self.settings.static_cache_name, self.settings.dynamic_cache_name]

    async def install(self, skip_waiting: bool = True) -> List[str]:
        """
        Cache the static asset manifest.

        Every asset is fetched before anything is written, so a failed
        install leaves the cache untouched. Re-running overwrites entries.

        Returns:
            Cache keys written

        Raises:
            InstallError: If any manifest asset cannot be fetched
        """
        self.state = ServiceState.INSTALLING
        self.logger.info("Installing offline service...")

        fetched = []
        for url in self.settings.manifest_urls():
            request = ProxyRequest(url=url, destination=self._destination_for(url))
            try:
                response = await self.transport.fetch(request)
            except Exception as e:
                self.state = ServiceState.REDUNDANT
                raise InstallError(f"Failed to fetch {url}: {e}", url=url) from e
            if not response.ok:
                self.state = ServiceState.REDUNDANT
                raise InstallError(f"Failed to fetch {url}: HTTP {response.status}", url=url)
            fetched.append((request, response))

        self.logger.info(f"Caching {len(fetched)} static assets...")
        keys = []
        for request, response in fetched:
            entry = await self.store.put(self.settings.static_cache_name, request, response)
            keys.append(entry.key)

        self.skip_waiting = skip_waiting
        self.state = ServiceState.INSTALLED
        return keys

    async def activate(self) -> List[str]:
        """
        Delete every partition not belonging to the current version, then
        claim all open clients.

        Returns:
            Names of deleted partitions
        """
        if self.state not in (ServiceState.INSTALLED, ServiceState.ACTIVATED):
            raise RuntimeError(f"Cannot activate from state {self.state.value}")

        self.state = ServiceState.ACTIVATING
        self.logger.info("Activating offline service...")

        expected = set(self.expected_partitions)
        deleted = []
        for name in await self.store.partition_names():
            if name not in expected:
                self.logger.info(f"Deleting old cache: {name}")
                await self.store.delete_partition(name)
                deleted.append(name)

        self.clients.claim()
        self.state = ServiceState.ACTIVATED
        return deleted

    @staticmethod
    def _destination_for(url: str) -> str:
        path = url.split('?', 1)[0].lower()
        if path.endswith('.js'):
            return 'script'
        if path.endswith('.css'):
            return 'style'
        if path.endswith(('.png', '.jpg', '.jpeg', '.gif', '.svg', '.webp', '.ico')):
            return 'image'
        if path.endswith(('.woff', '.woff2', '.ttf', '.otf')):
            return 'font'
        return ''
