"""
Deferred mutation queue for background sync.

Writes that could not reach the backend are persisted here with an
idempotency key and replayed in order once connectivity returns.
"""

import base64
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from milvet_nav.models import ProxyRequest
from milvet_nav.transport.http_transport import Transport


IDEMPOTENCY_HEADER = "Idempotency-Key"

# Statuses worth retrying later; other 4xx responses are dropped.
TRANSIENT_STATUSES = {408, 429}

# Queues backed by the same file share one lock.
_file_locks: Dict[str, Any] = {}
_file_locks_guard = threading.Lock()


def _lock_for(queue_file: Optional[Path]):
    if queue_file is None:
        return threading.RLock()
    with _file_locks_guard:
        return _file_locks.setdefault(str(queue_file.resolve()), threading.RLock())


@dataclass
class PendingMutation:
    """A write waiting to be replayed."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    idempotency_key: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    attempts: int = 0
    last_error: Optional[str] = None

    def to_request(self) -> ProxyRequest:
        headers = dict(self.headers)
        headers[IDEMPOTENCY_HEADER] = self.idempotency_key
        return ProxyRequest(url=self.url, method=self.method, headers=headers, body=self.body)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'method': self.method,
            'url': self.url,
            'headers': dict(self.headers),
            'body': base64.b64encode(self.body).decode('ascii') if self.body is not None else None,
            'idempotency_key': self.idempotency_key,
            'created_at': self.created_at.isoformat(),
            'attempts': self.attempts,
            'last_error': self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PendingMutation':
        body = data.get('body')
        return cls(
            method=data['method'],
            url=data['url'],
            headers=dict(data.get('headers') or {}),
            body=base64.b64decode(body) if body is not None else None,
            idempotency_key=data['idempotency_key'],
            created_at=datetime.fromisoformat(data['created_at']),
            attempts=int(data.get('attempts', 0)),
            last_error=data.get('last_error'),
        )


@dataclass
class SyncResult:
    """Outcome of one replay pass."""
    replayed: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    remaining: int = 0

    @property
    def completed(self) -> bool:
        return self.remaining == 0


class MutationQueue:
    """
    Persisted FIFO queue of pending mutations.

    The queue is stored as a JSON list. Entries are unique by idempotency key.
    The file is the source of truth: every operation reloads it before
    reading or rewriting, so the page and the service may each hold their
    own instance over the same file.
    """

    def __init__(self, queue_file: Optional[Path] = None):
        """
        Initialize the queue.

        Args:
            queue_file: JSON file backing the queue (memory only if None)
        """
        self.logger = logging.getLogger(__name__)
        self.queue_file = Path(queue_file) if queue_file else None
        self._lock = _lock_for(self.queue_file)
        self._pending: List[PendingMutation] = self._load()

    def enqueue(self, request: ProxyRequest, idempotency_key: Optional[str] = None) -> PendingMutation:
        """
        Add a write to the queue.

        Args:
            request: Non-GET request to defer
            idempotency_key: Key identifying the write (generated if None)

        Returns:
            The queued entry; the existing one if the key is already queued
        """
        if request.is_get():
            raise ValueError("Only mutations can be queued for background sync")

        key = idempotency_key or request.get_header(IDEMPOTENCY_HEADER) or str(uuid.uuid4())
        headers = {k: v for k, v in request.headers.items() if k.lower() != IDEMPOTENCY_HEADER.lower()}

        with self._lock:
            self._refresh()
            existing = self._find(key)
            if existing is not None:
                return existing

            mutation = PendingMutation(
                method=request.method,
                url=request.url,
                headers=headers,
                body=request.body,
                idempotency_key=key,
            )
            self._pending.append(mutation)
            self._save()

        self.logger.info(f"Queued {mutation.method} {mutation.url} for background sync")
        return mutation

    def pending(self) -> List[PendingMutation]:
        with self._lock:
            self._refresh()
            return list(self._pending)

    def __len__(self) -> int:
        with self._lock:
            self._refresh()
            return len(self._pending)

    def remove(self, idempotency_key: str) -> bool:
        with self._lock:
            self._refresh()
            mutation = self._find(idempotency_key)
            if mutation is None:
                return False
            self._pending.remove(mutation)
            self._save()
            return True

    def clear(self):
        with self._lock:
            self._pending.clear()
            self._save()

    async def replay(self, transport: Transport) -> SyncResult:
        """
        Send queued mutations in order.

        Successful and permanently rejected mutations leave the queue. The
        pass stops at the first transient failure so later writes never
        overtake earlier ones.
        """
        result = SyncResult()

        for mutation in self.pending():
            try:
                response = await transport.fetch(mutation.to_request())
            except Exception as e:
                self._mark_failed(mutation, f"{type(e).__name__}: {e}")
                self.logger.warning(f"Background sync stopped at {mutation.url}: {e}")
                break

            if response.ok:
                self.remove(mutation.idempotency_key)
                result.replayed.append(mutation.idempotency_key)
            elif 400 <= response.status < 500 and response.status not in TRANSIENT_STATUSES:
                self.remove(mutation.idempotency_key)
                result.dropped.append(mutation.idempotency_key)
                self.logger.error(f"Dropping deferred {mutation.method} {mutation.url}: "
                                  f"rejected with {response.status}")
            else:
                self._mark_failed(mutation, f"HTTP {response.status}")
                self.logger.warning(f"Background sync stopped at {mutation.url}: HTTP {response.status}")
                break

        result.remaining = len(self)
        self.logger.info(f"Background sync: {len(result.replayed)} replayed, "
                         f"{len(result.dropped)} dropped, {result.remaining} remaining")
        return result

    def _mark_failed(self, mutation: PendingMutation, error: str):
        with self._lock:
            self._refresh()
            current = self._find(mutation.idempotency_key)
            if current is None:
                return
            current.attempts += 1
            current.last_error = error
            self._save()

    def _refresh(self):
        if self.queue_file is not None:
            self._pending = self._load()

    def _find(self, idempotency_key: str) -> Optional[PendingMutation]:
        for mutation in self._pending:
            if mutation.idempotency_key == idempotency_key:
                return mutation
        return None

    def _load(self) -> List[PendingMutation]:
        if self.queue_file is None or not self.queue_file.exists():
            return []
        try:
            with open(self.queue_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return [PendingMutation.from_dict(item) for item in data]
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            self.logger.error(f"Failed to load sync queue from {self.queue_file}: {e}")
            return []

    def _save(self):
        if self.queue_file is None:
            return
        try:
            self.queue_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file = self.queue_file.with_suffix('.tmp')
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump([m.to_dict() for m in self._pending], f, indent=2)
            temp_file.replace(self.queue_file)
        except OSError as e:
            self.logger.error(f"Failed to save sync queue to {self.queue_file}: {e}")
