"""
Offline service: the background context that intercepts application requests.

The service reacts to lifecycle, fetch, sync and push events through named
handlers. It shares no in-memory state with application instances; all
coordination goes through events and the persisted cache store.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from milvet_nav.cache import CacheStore, FileCacheStore, RequestRouter
from milvet_nav.communication.events import (
    ActivateEvent,
    FetchEvent,
    InstallEvent,
    NotificationClickEvent,
    PushEvent,
    ServiceEvent,
    ServiceEventType,
    SyncEvent,
)
from milvet_nav.config import AppSettings
from milvet_nav.models import ProxyRequest, ProxyResponse
from milvet_nav.transport.http_transport import RequestsTransport, Transport
from .clients import ClientRegistry, Notification, NotificationCenter
from .lifecycle import LifecycleManager, ServiceState
from .sync_queue import MutationQueue, SyncResult


BACKGROUND_SYNC_TAG = "background-sync"
NOTIFICATION_VIBRATE = [100, 50, 100]

EventHandler = Callable[[Any], Awaitable[Any]]


class OfflineCacheService:
    """
    Intercepts requests and keeps the application usable offline.

    Handlers:
        install: seed the static partition
        activate: drop stale partitions and claim clients
        fetch: route the request through the caching strategies
        sync: replay deferred mutations
        push: show a notification
        notificationclick: open or focus the notification's target URL
    """

    def __init__(self, settings: AppSettings,
                 store: CacheStore,
                 transport: Transport,
                 clients: Optional[ClientRegistry] = None,
                 notifications: Optional[NotificationCenter] = None,
                 mutation_queue: Optional[MutationQueue] = None,
                 router: Optional[RequestRouter] = None):
        self.logger = logging.getLogger(__name__)
        self.settings = settings
        self.store = store
        self.transport = transport
        self.clients = clients or ClientRegistry(settings.app_origin)
        self.notifications = notifications or NotificationCenter()
        self.mutation_queue = mutation_queue if mutation_queue is not None else MutationQueue()
        self.router = router or RequestRouter.create_default(store, transport, settings)
        self.lifecycle = LifecycleManager(store, transport, settings, self.clients)

        self._handlers: Dict[ServiceEventType, EventHandler] = {
            ServiceEventType.INSTALL: self.on_install,
            ServiceEventType.ACTIVATE: self.on_activate,
            ServiceEventType.FETCH: self.on_fetch,
            ServiceEventType.SYNC: self.on_sync,
            ServiceEventType.PUSH: self.on_push,
            ServiceEventType.NOTIFICATION_CLICK: self.on_notification_click,
        }

    @classmethod
    def from_settings(cls, settings: AppSettings) -> 'OfflineCacheService':
        """Build a service with persisted storage under the settings' data directory."""
        return cls(
            settings=settings,
            store=FileCacheStore(settings.cache_dir),
            transport=RequestsTransport(timeout=settings.request_timeout),
            mutation_queue=MutationQueue(settings.sync_queue_file),
        )

    @property
    def state(self) -> ServiceState:
        return self.lifecycle.state

    def set_handler(self, event_type: ServiceEventType, handler: EventHandler):
        """Replace the handler for an event type."""
        self._handlers[event_type] = handler

    async def dispatch(self, event: ServiceEvent) -> Any:
        """Run the handler registered for the event's type."""
        handler = self._handlers.get(event.event_type)
        if handler is None:
            raise LookupError(f"No handler for event type {event.event_type}")
        return await handler(event)

    async def handle_fetch(self, request: ProxyRequest) -> ProxyResponse:
        """Answer one intercepted request."""
        return await self.dispatch(FetchEvent(request=request))

    async def on_install(self, event: InstallEvent):
        self.logger.info("Service: Installing...")
        return await self.lifecycle.install(skip_waiting=True)

    async def on_activate(self, event: ActivateEvent):
        self.logger.info("Service: Activating...")
        return await self.lifecycle.activate()

    async def on_fetch(self, event: FetchEvent) -> ProxyResponse:
        return await self.router.route(event.request)

    async def on_sync(self, event: SyncEvent) -> Optional[SyncResult]:
        if event.tag != BACKGROUND_SYNC_TAG:
            self.logger.debug(f"Ignoring sync tag {event.tag}")
            return None
        self.logger.info("Service: Performing background sync...")
        return await self.mutation_queue.replay(self.transport)

    async def on_push(self, event: PushEvent) -> Optional[Notification]:
        if not event.data:
            return None

        data = event.data
        notification = Notification(
            title=str(data.get('title', '')),
            body=str(data.get('body', '')),
            icon=data.get('icon') or self.settings.notification_icon,
            badge=self.settings.notification_badge,
            vibrate=list(NOTIFICATION_VIBRATE),
            data=dict(data.get('data') or {}),
            actions=list(data.get('actions') or []),
        )
        return self.notifications.show(notification)

    async def on_notification_click(self, event: NotificationClickEvent):
        data = event.data
        if event.notification_id:
            notification = self.notifications.get(event.notification_id)
            if data is None and notification is not None:
                data = notification.data
            self.notifications.close(event.notification_id)

        url = (data or {}).get('url') or '/'
        return self.clients.open_window(url)
