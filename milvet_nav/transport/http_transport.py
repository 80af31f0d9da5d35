"""
Network transport for outgoing requests.

RequestsTransport performs the actual network call with a requests.Session in
a worker thread so callers can await it. Transport exceptions are not
translated: requests.ConnectionError, requests.Timeout and friends reach the
caller unchanged and are classified by the error handling layer.
"""

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional

import requests

from milvet_nav.models import ProxyRequest, ProxyResponse


class Transport(ABC):
    """Base class for anything that can issue a request."""

    @abstractmethod
    async def fetch(self, request: ProxyRequest) -> ProxyResponse:
        """Issue the request and return its response."""


class RequestsTransport(Transport):
    """Transport backed by a requests.Session."""

    def __init__(self, timeout: float = 30.0, session: Optional[requests.Session] = None):
        """
        Initialize the transport.

        Args:
            timeout: Connect and read timeout in seconds
            session: Session to use (a new one if None)
        """
        self.logger = logging.getLogger(__name__)
        self.timeout = timeout
        self._session = session or requests.Session()
        self._lock = threading.Lock()

    async def fetch(self, request: ProxyRequest) -> ProxyResponse:
        return await asyncio.to_thread(self.fetch_sync, request)

    def fetch_sync(self, request: ProxyRequest) -> ProxyResponse:
        """Issue the request on the calling thread."""
        start_time = time.time()
        self.logger.debug(f"{request.method} {request.url}")

        response = self._session.request(
            request.method,
            request.url,
            headers=request.headers or None,
            data=request.body,
            timeout=self.timeout,
            allow_redirects=True,
        )

        self.logger.debug(f"{request.method} {request.url} -> {response.status_code} "
                          f"in {time.time() - start_time:.3f}s")
        # requests has already decoded the body.
        headers = {k: v for k, v in response.headers.items()
                   if k.lower() not in ('content-encoding', 'content-length', 'transfer-encoding')}
        return ProxyResponse(
            status=response.status_code,
            headers=headers,
            body=response.content,
            status_text=response.reason or "",
            url=response.url or request.url,
        )

    def close(self):
        """Close the underlying session."""
        with self._lock:
            self._session.close()
