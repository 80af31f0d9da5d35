"""
Transport that routes application requests through the offline service.
"""

import logging

from milvet_nav.models import ProxyRequest, ProxyResponse
from .http_transport import Transport


class OfflineProxyTransport(Transport):
    """
    Sends every request to a target exposing ``handle_fetch``.

    The target is normally a ServiceHost or an OfflineCacheService, so the
    data client sees cached or synthesized offline responses instead of
    raw network failures.
    """

    def __init__(self, target):
        self.logger = logging.getLogger(__name__)
        self.target = target

    async def fetch(self, request: ProxyRequest) -> ProxyResponse:
        return await self.target.handle_fetch(request)
