"""
Offline service running in its own background context.

This package provides the service event handlers, its install/activate
lifecycle, the background-sync queue and the thread that hosts it.
"""

from .clients import ClientRegistry, ClientWindow, Notification, NotificationCenter
from .lifecycle import LifecycleManager, ServiceState, InstallError
from .sync_queue import MutationQueue, PendingMutation, SyncResult, IDEMPOTENCY_HEADER
from .offline_service import OfflineCacheService, BACKGROUND_SYNC_TAG
from .service_host import ServiceHost

__all__ = [
    'ClientRegistry',
    'ClientWindow',
    'Notification',
    'NotificationCenter',
    'LifecycleManager',
    'ServiceState',
    'InstallError',
    'MutationQueue',
    'PendingMutation',
    'SyncResult',
    'IDEMPOTENCY_HEADER',
    'OfflineCacheService',
    'BACKGROUND_SYNC_TAG',
    'ServiceHost'
]
