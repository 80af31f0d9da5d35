"""
Application instances and notifications seen from the offline service.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin


@dataclass
class ClientWindow:
    """
    An open application instance.

    Attributes:
        url: URL currently shown
        client_id: Unique identifier
        controlled: Whether the offline service controls its requests
        focused: Whether the instance has focus
        messages: Messages posted to the instance by the service
    """
    url: str
    client_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    controlled: bool = False
    focused: bool = False
    messages: List[Any] = field(default_factory=list)


class ClientRegistry:
    """Tracks open application instances and opens new ones on request."""

    def __init__(self, app_origin: str,
                 window_opener: Optional[Callable[[str], None]] = None):
        """
        Initialize client registry.

        Args:
            app_origin: Origin relative URLs are resolved against
            window_opener: Called with the absolute URL when a new window opens
        """
        self.logger = logging.getLogger(__name__)
        self.app_origin = app_origin.rstrip('/') + '/'
        self.window_opener = window_opener
        self._clients: Dict[str, ClientWindow] = {}
        self._lock = threading.RLock()

    def register(self, url: str) -> ClientWindow:
        """Register a newly opened instance."""
        client = ClientWindow(url=self.resolve(url))
        with self._lock:
            self._clients[client.client_id] = client
        return client

    def unregister(self, client_id: str) -> bool:
        with self._lock:
            return self._clients.pop(client_id, None) is not None

    def get(self, client_id: str) -> Optional[ClientWindow]:
        with self._lock:
            return self._clients.get(client_id)

    def all(self) -> List[ClientWindow]:
        with self._lock:
            return list(self._clients.values())

    def claim(self) -> int:
        """Take control of every open instance immediately. Returns the count claimed."""
        with self._lock:
            claimed = 0
            for client in self._clients.values():
                if not client.controlled:
                    client.controlled = True
                    claimed += 1
        self.logger.info(f"Claimed {claimed} client(s)")
        return claimed

    def open_window(self, url: str) -> ClientWindow:
        """
        Focus an instance showing the URL, or open a new one.

        Args:
            url: Absolute or origin-relative URL
        """
        target = self.resolve(url)
        with self._lock:
            for client in self._clients.values():
                client.focused = client.url == target
            existing = next((c for c in self._clients.values() if c.url == target), None)
            if existing is not None:
                return existing

            client = ClientWindow(url=target, controlled=True, focused=True)
            self._clients[client.client_id] = client

        if self.window_opener is not None:
            try:
                self.window_opener(target)
            except Exception as e:
                self.logger.error(f"Failed to open window for {target}: {e}")
        self.logger.info(f"Opened window: {target}")
        return client

    def post_message(self, message: Any, client_id: Optional[str] = None) -> int:
        """Post a message to one instance, or to all controlled instances."""
        with self._lock:
            if client_id is not None:
                targets = [self._clients[client_id]] if client_id in self._clients else []
            else:
                targets = [c for c in self._clients.values() if c.controlled]
            for client in targets:
                client.messages.append(message)
        return len(targets)

    def resolve(self, url: str) -> str:
        return urljoin(self.app_origin, url)


@dataclass
class Notification:
    """A notification shown to the user."""
    title: str
    body: str = ""
    icon: str = ""
    badge: str = ""
    vibrate: List[int] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)
    actions: List[Dict[str, Any]] = field(default_factory=list)
    notification_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    shown_at: datetime = field(default_factory=datetime.now)


class NotificationCenter:
    """
    Displays notifications.

    The default implementation keeps shown notifications and logs them; a
    display callback can forward them to the platform.
    """

    def __init__(self, display: Optional[Callable[[Notification], None]] = None):
        self.logger = logging.getLogger(__name__)
        self.display = display
        self._active: Dict[str, Notification] = {}
        self._lock = threading.RLock()

    def show(self, notification: Notification) -> Notification:
        with self._lock:
            self._active[notification.notification_id] = notification
        self.logger.info(f"Notification: {notification.title}")
        if self.display is not None:
            self.display(notification)
        return notification

    def close(self, notification_id: str) -> bool:
        with self._lock:
            return self._active.pop(notification_id, None) is not None

    def get(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            return self._active.get(notification_id)

    def active(self) -> List[Notification]:
        with self._lock:
            return list(self._active.values())
