"""
Event data structures delivered to the offline service.

Application instances never call into the offline service directly; they post
one of these events and wait for the handler's result.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from milvet_nav.models import ProxyRequest


class ServiceEventType(Enum):
    """Types of events handled by the offline service."""
    INSTALL = "install"
    ACTIVATE = "activate"
    FETCH = "fetch"
    SYNC = "sync"
    PUSH = "push"
    NOTIFICATION_CLICK = "notificationclick"


@dataclass
class ServiceEvent:
    """Base class for all service events."""
    event_type: Optional[ServiceEventType] = field(default=None, init=False)
    timestamp: datetime = field(default_factory=datetime.now, init=False)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()), init=False)


@dataclass
class InstallEvent(ServiceEvent):
    """Sent when a new service version is installed."""

    def __post_init__(self):
        self.event_type = ServiceEventType.INSTALL


@dataclass
class ActivateEvent(ServiceEvent):
    """Sent when a new service version takes over from the running one."""

    def __post_init__(self):
        self.event_type = ServiceEventType.ACTIVATE


@dataclass
class FetchEvent(ServiceEvent):
    """Sent for every outgoing request of an application instance."""
    request: Optional[ProxyRequest] = None
    client_id: Optional[str] = None

    def __post_init__(self):
        self.event_type = ServiceEventType.FETCH
        if self.request is None:
            raise ValueError("FetchEvent requires a request")


@dataclass
class SyncEvent(ServiceEvent):
    """Sent when connectivity returns and deferred work may run."""
    tag: str = "background-sync"

    def __post_init__(self):
        self.event_type = ServiceEventType.SYNC


@dataclass
class PushEvent(ServiceEvent):
    """Sent when a push message arrives. data is the decoded JSON payload."""
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        self.event_type = ServiceEventType.PUSH


@dataclass
class NotificationClickEvent(ServiceEvent):
    """Sent when the user clicks a displayed notification."""
    notification_id: str = ""
    data: Optional[Dict[str, Any]] = None
    action: str = ""

    def __post_init__(self):
        self.event_type = ServiceEventType.NOTIFICATION_CLICK
