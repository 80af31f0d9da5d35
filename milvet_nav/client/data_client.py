"""
Client for the remote data backend.

The client is constructed explicitly with its transport and settings and
passed to whoever needs it. Reads are retried with backoff; writes can be
deferred to the background-sync queue while offline.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urlencode

from milvet_nav.config import AppSettings
from milvet_nav.error_handling import ClassifiedError, ErrorKind, RetryPolicy, classify_error, execute_with_retry
from milvet_nav.models import ProxyRequest, ProxyResponse
from milvet_nav.transport import Transport
from milvet_nav.worker.sync_queue import IDEMPOTENCY_HEADER, MutationQueue


# Failures after which a write is worth replaying later.
DEFERRABLE_KINDS = {
    ErrorKind.NETWORK_ERROR,
    ErrorKind.TIMEOUT_ERROR,
    ErrorKind.OFFLINE_ERROR,
    ErrorKind.SERVICE_UNAVAILABLE,
}


class BackendError(Exception):
    """Error response returned by the backend."""

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None,
                 details: Any = None, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status
        self.details = details
        self.hint = hint

    @classmethod
    def from_response(cls, response: ProxyResponse) -> 'BackendError':
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            return cls(response.text or response.status_text or f"HTTP {response.status}",
                       status=response.status)

        message = payload.get('message') or payload.get('error') or f"HTTP {response.status}"
        code = payload.get('code')
        return cls(
            str(message),
            code=str(code) if code is not None else None,
            status=response.status,
            details=payload.get('details'),
            hint=payload.get('hint'),
        )


@dataclass
class AuthSession:
    """Signed-in user."""
    user_id: str
    access_token: str


@dataclass
class DeferredMutation:
    """A write queued for background sync instead of being sent."""
    table: str
    idempotency_key: str
    error: ClassifiedError


class DataClient:
    """Table and function access to the backend."""

    def __init__(self, transport: Transport, settings: AppSettings,
                 session: Optional[AuthSession] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 mutation_queue: Optional[MutationQueue] = None):
        """
        Initialize the client.

        Args:
            transport: Transport issuing requests
            settings: Application settings (backend URL and API key)
            session: Signed-in session, if any
            retry_policy: Policy for reads (built from settings if None)
            mutation_queue: Queue for deferred writes (the settings' sync queue file if None)
        """
        self.logger = logging.getLogger(__name__)
        self.transport = transport
        self.settings = settings
        self.session = session
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.max_retries,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            backoff_factor=settings.backoff_factor,
        )
        if mutation_queue is None:
            mutation_queue = MutationQueue(settings.sync_queue_file)
        self.mutation_queue = mutation_queue

    def set_session(self, session: Optional[AuthSession]):
        self.session = session

    async def select(self, table: str, params: Optional[Mapping[str, Any]] = None,
                     require_auth: bool = False) -> List[Dict[str, Any]]:
        """
        Read rows from a table.

        Raises:
            ClassifiedError: AUTH_REQUIRED if require_auth is set without a session
            BackendError: If the backend answers with an error status
        """
        self._check_auth(require_auth, f"select {table}")
        url = self._table_url(table, params)

        async def operation():
            response = await self.transport.fetch(ProxyRequest(url=url, headers=self._headers()))
            return self._parse(response)

        return await execute_with_retry(operation, self.retry_policy, operation_name=f"select {table}")

    async def select_paginated(self, table: str, page_size: int = 20,
                               params: Optional[Mapping[str, Any]] = None,
                               require_auth: bool = False) -> List[Dict[str, Any]]:
        """Read every row of a table page by page until a short page."""
        if page_size < 1:
            raise ValueError("page_size must be positive")

        rows = []
        offset = 0
        while True:
            page_params = dict(params or {})
            page_params.update({'limit': page_size, 'offset': offset})
            page = await self.select(table, page_params, require_auth=require_auth)
            rows.extend(page)
            if len(page) < page_size:
                return rows
            offset += page_size

    async def insert(self, table: str, rows: Union[Dict[str, Any], List[Dict[str, Any]]],
                     defer_if_offline: bool = False,
                     require_auth: bool = False) -> Union[List[Dict[str, Any]], DeferredMutation]:
        """
        Insert rows into a table.

        With defer_if_offline, a write that fails for lack of connectivity is
        queued for background sync and a DeferredMutation is returned.
        """
        self._check_auth(require_auth, f"insert {table}")
        key = str(uuid.uuid4())
        headers = self._headers()
        headers['Content-Type'] = 'application/json'
        headers['Prefer'] = 'return=representation'
        headers[IDEMPOTENCY_HEADER] = key
        request = ProxyRequest(
            url=self._table_url(table),
            method='POST',
            headers=headers,
            body=json.dumps(rows),
        )

        try:
            response = await self.transport.fetch(request)
            return self._parse(response)
        except Exception as e:
            if not defer_if_offline:
                raise
            classified = classify_error(e, operation_label=f"insert {table}")
            if classified.kind not in DEFERRABLE_KINDS:
                raise
            self.mutation_queue.enqueue(request, idempotency_key=key)
            self.logger.info(f"Deferred insert into {table} ({classified.kind.value})")
            return DeferredMutation(table=table, idempotency_key=key, error=classified)

    async def invoke_function(self, name: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """Call a remote function and return its decoded JSON result."""
        headers = self._headers()
        headers['Content-Type'] = 'application/json'
        request = ProxyRequest(
            url=f"{self._base_url()}/functions/v1/{name}",
            method='POST',
            headers=headers,
            body=json.dumps(payload or {}),
        )
        response = await self.transport.fetch(request)
        return self._parse(response)

    def _check_auth(self, require_auth: bool, operation_label: str):
        if require_auth and self.session is None:
            raise ClassifiedError(ErrorKind.AUTH_REQUIRED, operation_label=operation_label)

    def _base_url(self) -> str:
        if not self.settings.backend_url:
            raise ValueError("backend_url is not configured")
        return self.settings.backend_url.rstrip('/')

    def _table_url(self, table: str, params: Optional[Mapping[str, Any]] = None) -> str:
        url = f"{self._base_url()}/rest/v1/{table}"
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    def _headers(self) -> Dict[str, str]:
        token = self.session.access_token if self.session else self.settings.api_key
        return {
            'apikey': self.settings.api_key,
            'Authorization': f"Bearer {token}",
            'Accept': 'application/json',
        }

    @staticmethod
    def _parse(response: ProxyResponse) -> Any:
        if not response.ok:
            raise BackendError.from_response(response)
        if not response.body:
            return None
        return response.json()
