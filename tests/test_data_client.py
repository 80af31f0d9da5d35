"""
Unit tests for the backend data client.
"""

import json

import pytest

from milvet_nav.cache import MemoryCacheStore
from milvet_nav.client import AuthSession, BackendError, DataClient, DeferredMutation
from milvet_nav.communication import SyncEvent
from milvet_nav.error_handling import ClassifiedError, ErrorKind, RetryPolicy, classify_error
from milvet_nav.models import ProxyResponse
from milvet_nav.transport import OfflineProxyTransport
from milvet_nav.worker import IDEMPOTENCY_HEADER, MutationQueue, OfflineCacheService
from .test_mocks import FakeTransport, json_response


BASE = "https://abc.supabase.co"
NO_WAIT = RetryPolicy(max_retries=2, base_delay=0.0, max_delay=0.0, jitter_factor=0.0)


class TestDataClientReads:
    """Test select and pagination."""

    @pytest.fixture(autouse=True)
    def setup_client(self, settings, transport):
        self.transport = transport
        self.client = DataClient(transport, settings, retry_policy=NO_WAIT)

    @pytest.mark.asyncio
    async def test_select(self):
        url = f"{BASE}/rest/v1/cycles?select=%2A&user_id=eq.u1"
        self.transport.set(url, json_response([{'id': 1}]))

        rows = await self.client.select("cycles", {'select': '*', 'user_id': 'eq.u1'})

        assert rows == [{'id': 1}]
        request = self.transport.requests[0]
        assert request.get_header('apikey') == "anon-key"
        assert request.get_header('Authorization') == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_session_token_used(self, settings):
        client = DataClient(self.transport, settings, session=AuthSession("u1", "user-token"))
        self.transport.set(f"{BASE}/rest/v1/profiles", json_response([]))

        await client.select("profiles", require_auth=True)
        assert self.transport.requests[0].get_header('Authorization') == "Bearer user-token"

    @pytest.mark.asyncio
    async def test_auth_required(self):
        with pytest.raises(ClassifiedError) as exc_info:
            await self.client.select("profiles", require_auth=True)

        assert exc_info.value.kind == ErrorKind.AUTH_REQUIRED
        assert self.transport.requests == []

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self):
        url = f"{BASE}/rest/v1/cycles"
        self.transport.set(url, [
            ConnectionError("reset"),
            json_response({'message': 'upstream down'}, status=502),
            json_response([{'id': 3}]),
        ])

        assert await self.client.select("cycles") == [{'id': 3}]
        assert len(self.transport.requests) == 3

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        self.transport.set(f"{BASE}/rest/v1/clinics", json_response(
            {'message': 'relation "clinics" does not exist', 'code': '42P01', 'hint': None}, status=404))

        with pytest.raises(BackendError) as exc_info:
            await self.client.select("clinics")

        error = exc_info.value
        assert error.status == 404
        assert error.code == "42P01"
        assert classify_error(error).kind == ErrorKind.DATA_NOT_FOUND
        assert len(self.transport.requests) == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_original(self):
        self.transport.offline = True

        with pytest.raises(ConnectionError):
            await self.client.select("cycles")
        assert len(self.transport.requests) == 3

    @pytest.mark.asyncio
    async def test_select_paginated(self):
        page_url = f"{BASE}/rest/v1/resources?limit=2&offset={{}}"
        self.transport.set(page_url.format(0), json_response([{'id': 1}, {'id': 2}]))
        self.transport.set(page_url.format(2), json_response([{'id': 3}, {'id': 4}]))
        self.transport.set(page_url.format(4), json_response([{'id': 5}]))

        rows = await self.client.select_paginated("resources", page_size=2)

        assert [r['id'] for r in rows] == [1, 2, 3, 4, 5]
        assert len(self.transport.requests) == 3

    @pytest.mark.asyncio
    async def test_select_paginated_rejects_bad_page_size(self):
        with pytest.raises(ValueError):
            await self.client.select_paginated("resources", page_size=0)

    @pytest.mark.asyncio
    async def test_missing_backend_url(self, settings):
        client = DataClient(self.transport, settings.with_overrides({'backend_url': ''}))
        with pytest.raises(ValueError):
            await client.select("cycles")


class TestDataClientWrites:
    """Test insert, deferral and remote functions."""

    @pytest.fixture(autouse=True)
    def setup_client(self, settings, transport):
        self.settings = settings
        self.transport = transport
        self.queue = MutationQueue()
        self.client = DataClient(transport, settings, retry_policy=NO_WAIT, mutation_queue=self.queue)
        self.url = f"{BASE}/rest/v1/journal_entries"

    @pytest.mark.asyncio
    async def test_insert(self):
        self.transport.set(self.url, json_response([{'id': 9, 'mood': 'hopeful'}], status=201))

        rows = await self.client.insert("journal_entries", {'mood': 'hopeful'})

        assert rows == [{'id': 9, 'mood': 'hopeful'}]
        request = self.transport.requests[0]
        assert request.method == "POST"
        assert json.loads(request.body) == {'mood': 'hopeful'}
        assert request.get_header('Prefer') == "return=representation"
        assert request.get_header(IDEMPOTENCY_HEADER)

    @pytest.mark.asyncio
    async def test_insert_is_not_retried(self):
        self.transport.offline = True
        with pytest.raises(ConnectionError):
            await self.client.insert("journal_entries", {'mood': 'tired'})
        assert len(self.transport.requests) == 1
        assert len(self.queue) == 0

    @pytest.mark.asyncio
    async def test_offline_insert_is_deferred(self):
        self.transport.offline = True

        result = await self.client.insert("journal_entries", {'mood': 'tired'}, defer_if_offline=True)

        assert isinstance(result, DeferredMutation)
        assert result.error.kind == ErrorKind.NETWORK_ERROR
        [pending] = self.queue.pending()
        assert pending.idempotency_key == result.idempotency_key
        assert pending.url == self.url

    @pytest.mark.asyncio
    async def test_unavailable_insert_is_deferred(self):
        self.transport.set(self.url, ProxyResponse.network_unavailable(self.url))

        result = await self.client.insert("journal_entries", {'mood': 'ok'}, defer_if_offline=True)

        assert isinstance(result, DeferredMutation)
        assert result.error.kind == ErrorKind.SERVICE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_rejected_insert_is_not_deferred(self):
        self.transport.set(self.url, json_response({'message': 'invalid input syntax'}, status=422))

        with pytest.raises(BackendError):
            await self.client.insert("journal_entries", {'mood': 1}, defer_if_offline=True)
        assert len(self.queue) == 0

    @pytest.mark.asyncio
    async def test_deferred_insert_replays_with_same_key(self):
        self.transport.offline = True
        deferred = await self.client.insert("journal_entries", {'mood': 'calm'}, defer_if_offline=True)

        self.transport.offline = False
        self.transport.set(self.url, json_response([], status=201))
        result = await self.queue.replay(self.transport)

        assert result.replayed == [deferred.idempotency_key]
        assert self.transport.requests[-1].get_header(IDEMPOTENCY_HEADER) == deferred.idempotency_key

    @pytest.mark.asyncio
    async def test_invoke_function(self):
        url = f"{BASE}/functions/v1/ai-search"
        self.transport.set(url, json_response({'results': ['clinic a']}))

        result = await self.client.invoke_function("ai-search", {'query': 'tricare ivf'})

        assert result == {'results': ['clinic a']}
        assert json.loads(self.transport.requests[0].body) == {'query': 'tricare ivf'}

    @pytest.mark.asyncio
    async def test_empty_body(self):
        url = f"{BASE}/functions/v1/ping"
        self.transport.set(url, ProxyResponse(status=204))
        assert await self.client.invoke_function("ping") is None


class TestBackendError:
    """Test error payload parsing."""

    def test_from_json_payload(self):
        response = json_response({'message': 'permission denied for table x', 'code': '42501',
                                  'details': None, 'hint': 'check policies'}, status=403)
        error = BackendError.from_response(response)

        assert str(error) == 'permission denied for table x'
        assert error.hint == 'check policies'
        assert classify_error(error).kind == ErrorKind.INSUFFICIENT_PERMISSIONS

    def test_from_plain_text(self):
        error = BackendError.from_response(ProxyResponse(status=502, body=b"Bad gateway"))
        assert error.message == "Bad gateway"
        assert error.status == 502
        assert classify_error(error).kind == ErrorKind.SERVER_ERROR

    def test_from_empty_body(self):
        error = BackendError.from_response(ProxyResponse(status=500))
        assert error.message == "Internal Server Error"


class TestDataClientThroughOfflineProxy:
    """The client talking to the backend through the offline service."""

    @pytest.mark.asyncio
    async def test_cached_read_while_offline(self, settings):
        network = FakeTransport({f"{BASE}/rest/v1/cycles": json_response([{'id': 1}])})
        service = OfflineCacheService(settings, MemoryCacheStore(), network)
        client = DataClient(OfflineProxyTransport(service), settings, retry_policy=NO_WAIT)

        assert await client.select("cycles") == [{'id': 1}]
        network.offline = True
        assert await client.select("cycles") == [{'id': 1}]

    @pytest.mark.asyncio
    async def test_uncached_read_while_offline(self, settings):
        network = FakeTransport()
        network.offline = True
        service = OfflineCacheService(settings, MemoryCacheStore(), network)
        client = DataClient(OfflineProxyTransport(service), settings, retry_policy=NO_WAIT)

        with pytest.raises(BackendError) as exc_info:
            await client.select("cycles")

        assert exc_info.value.status == 503
        assert classify_error(exc_info.value).kind == ErrorKind.SERVICE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_default_queue_is_replayed_by_service(self, settings):
        network = FakeTransport()
        network.offline = True
        client = DataClient(network, settings, retry_policy=NO_WAIT)

        deferred = await client.insert("journal_entries", {'mood': 'calm'}, defer_if_offline=True)

        url = f"{BASE}/rest/v1/journal_entries"
        network.offline = False
        network.set(url, json_response([], status=201))
        service = OfflineCacheService(settings, MemoryCacheStore(), network,
                                      mutation_queue=MutationQueue(settings.sync_queue_file))
        result = await service.dispatch(SyncEvent())

        assert result.replayed == [deferred.idempotency_key]
        assert network.requests[-1].url == url
        assert len(client.mutation_queue) == 0
