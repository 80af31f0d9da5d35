# Communication module for application-to-service events

from .events import (
    ServiceEvent, ServiceEventType, InstallEvent, ActivateEvent, FetchEvent,
    SyncEvent, PushEvent, NotificationClickEvent
)

__all__ = [
    'ServiceEvent', 'ServiceEventType', 'InstallEvent', 'ActivateEvent', 'FetchEvent',
    'SyncEvent', 'PushEvent', 'NotificationClickEvent'
]
