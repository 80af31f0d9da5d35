"""
Background host for the offline service.

The host runs the service on a dedicated thread with its own asyncio event
loop, so its lifetime is independent of any application instance. Callers
talk to it only by posting events.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Optional

from milvet_nav.communication.events import ActivateEvent, FetchEvent, InstallEvent, ServiceEvent
from milvet_nav.models import ProxyRequest, ProxyResponse
from .offline_service import OfflineCacheService


class ServiceHost:
    """Runs an OfflineCacheService on its own thread and event loop."""

    def __init__(self, service: OfflineCacheService, thread_name: str = "offline-service"):
        """
        Initialize the host.

        Args:
            service: Service to host
            thread_name: Name of the background thread
        """
        self.logger = logging.getLogger(__name__)
        self.service = service
        self.thread_name = thread_name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()

    def start(self, timeout: float = 5.0):
        """Start the background thread and wait until its loop runs."""
        with self._lock:
            if self.is_running():
                return
            self._ready.clear()
            self._thread = threading.Thread(target=self._run, name=self.thread_name, daemon=True)
            self._thread.start()

        if not self._ready.wait(timeout):
            raise RuntimeError("Offline service thread did not start")
        self.logger.info("Offline service host started")

    def stop(self, timeout: float = 5.0):
        """Stop the event loop and join the thread."""
        with self._lock:
            loop, thread = self._loop, self._thread
            if loop is None or thread is None:
                return
            loop.call_soon_threadsafe(loop.stop)

        thread.join(timeout)
        if thread.is_alive():
            self.logger.warning("Offline service thread did not stop in time")
        else:
            self.logger.info("Offline service host stopped")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._loop is not None

    def post(self, event: ServiceEvent) -> concurrent.futures.Future:
        """
        Deliver an event to the service.

        Returns:
            Future resolving to the handler's result
        """
        if not self.is_running():
            raise RuntimeError("Offline service host is not running")
        return asyncio.run_coroutine_threadsafe(self.service.dispatch(event), self._loop)

    def send(self, event: ServiceEvent, timeout: Optional[float] = None) -> Any:
        """Deliver an event and block until the handler finishes."""
        return self.post(event).result(timeout)

    async def handle_fetch(self, request: ProxyRequest) -> ProxyResponse:
        """Await the service's answer to a request from another event loop."""
        return await asyncio.wrap_future(self.post(FetchEvent(request=request)))

    def register(self, timeout: Optional[float] = None):
        """Install and activate the service, blocking until both finish."""
        self.send(InstallEvent(), timeout)
        return self.send(ActivateEvent(), timeout)

    def _run(self):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()
            self._loop = None
