"""
Unit tests for the background-sync mutation queue.
"""

import json

import pytest

from milvet_nav.models import ProxyRequest
from milvet_nav.worker import IDEMPOTENCY_HEADER, MutationQueue
from .test_mocks import FakeTransport, json_response


API = "https://abc.supabase.co/rest/v1"


def mutation(table="cycles", method="POST", body='{"day": 1}', headers=None):
    return ProxyRequest(url=f"{API}/{table}", method=method, body=body, headers=headers or {})


class TestMutationQueue:
    """Queue management."""

    def test_enqueue_generates_key(self):
        queue = MutationQueue()
        entry = queue.enqueue(mutation())

        assert entry.idempotency_key
        assert entry.body == b'{"day": 1}'
        assert len(queue) == 1

    def test_get_requests_rejected(self):
        with pytest.raises(ValueError):
            MutationQueue().enqueue(ProxyRequest(url=f"{API}/cycles"))

    def test_duplicate_keys_are_collapsed(self):
        queue = MutationQueue()
        first = queue.enqueue(mutation(), idempotency_key="key-1")
        second = queue.enqueue(mutation(body='{"day": 2}'), idempotency_key="key-1")

        assert second is first
        assert len(queue) == 1

    def test_key_taken_from_header(self):
        queue = MutationQueue()
        entry = queue.enqueue(mutation(headers={'idempotency-key': 'from-header'}))

        assert entry.idempotency_key == "from-header"
        assert entry.headers == {}
        assert entry.to_request().get_header(IDEMPOTENCY_HEADER) == "from-header"

    def test_remove_and_clear(self):
        queue = MutationQueue()
        queue.enqueue(mutation(), idempotency_key="a")
        queue.enqueue(mutation(), idempotency_key="b")

        assert queue.remove("a") is True
        assert queue.remove("a") is False
        queue.clear()
        assert queue.pending() == []

    def test_persistence(self, tmp_path):
        queue_file = tmp_path / "sync_queue.json"
        MutationQueue(queue_file).enqueue(mutation(method="PATCH"), idempotency_key="persisted")

        reloaded = MutationQueue(queue_file)
        [entry] = reloaded.pending()
        assert entry.idempotency_key == "persisted"
        assert entry.method == "PATCH"
        assert entry.body == b'{"day": 1}'
        assert json.loads(queue_file.read_text(encoding='utf-8'))[0]['idempotency_key'] == "persisted"

    def test_corrupt_file_starts_empty(self, tmp_path):
        queue_file = tmp_path / "sync_queue.json"
        queue_file.write_text("[{", encoding='utf-8')
        assert len(MutationQueue(queue_file)) == 0


class TestReplay:
    """In-order replay."""

    @pytest.mark.asyncio
    async def test_replay_sends_in_order_with_keys(self):
        queue = MutationQueue()
        queue.enqueue(mutation("cycles"), idempotency_key="first")
        queue.enqueue(mutation("notes"), idempotency_key="second")
        transport = FakeTransport({
            f"{API}/cycles": json_response([], status=201),
            f"{API}/notes": json_response([], status=201),
        })

        result = await queue.replay(transport)

        assert result.replayed == ["first", "second"]
        assert result.completed
        assert [r.get_header(IDEMPOTENCY_HEADER) for r in transport.requests] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_transient_failure_stops_pass(self):
        queue = MutationQueue()
        queue.enqueue(mutation("cycles"), idempotency_key="first")
        queue.enqueue(mutation("notes"), idempotency_key="second")
        transport = FakeTransport({f"{API}/cycles": json_response({}, status=503)})

        result = await queue.replay(transport)

        assert result.replayed == []
        assert result.remaining == 2
        assert transport.urls() == [f"{API}/cycles"]
        first = queue.pending()[0]
        assert first.attempts == 1
        assert first.last_error == "HTTP 503"

    @pytest.mark.asyncio
    async def test_network_error_stops_pass(self):
        queue = MutationQueue()
        queue.enqueue(mutation(), idempotency_key="only")
        transport = FakeTransport()
        transport.offline = True

        result = await queue.replay(transport)

        assert result.remaining == 1
        assert queue.pending()[0].last_error.startswith("ConnectionError")

    @pytest.mark.asyncio
    async def test_rate_limit_is_transient(self):
        queue = MutationQueue()
        queue.enqueue(mutation(), idempotency_key="only")
        transport = FakeTransport({f"{API}/cycles": json_response({}, status=429)})

        result = await queue.replay(transport)
        assert result.remaining == 1
        assert result.dropped == []

    @pytest.mark.asyncio
    async def test_rejected_mutation_is_dropped(self):
        queue = MutationQueue()
        queue.enqueue(mutation("cycles"), idempotency_key="bad")
        queue.enqueue(mutation("notes"), idempotency_key="good")
        transport = FakeTransport({
            f"{API}/cycles": json_response({'message': 'invalid input'}, status=422),
            f"{API}/notes": json_response([], status=201),
        })

        result = await queue.replay(transport)

        assert result.dropped == ["bad"]
        assert result.replayed == ["good"]
        assert result.completed


class EnqueueingTransport(FakeTransport):
    """Transport that lets another queue enqueue while a request is in flight."""

    def __init__(self, routes, other_queue, request):
        super().__init__(routes)
        self.other_queue = other_queue
        self.request = request

    async def fetch(self, request):
        if self.request is not None:
            self.other_queue.enqueue(self.request, idempotency_key="new-from-page")
            self.request = None
        return await super().fetch(request)


class TestSharedQueueFile:
    """Separate instances over one file, as the page and the service hold them."""

    def test_instances_see_each_others_writes(self, tmp_path):
        queue_file = tmp_path / "sync_queue.json"
        page = MutationQueue(queue_file)
        service = MutationQueue(queue_file)

        page.enqueue(mutation(), idempotency_key="from-page")
        service.enqueue(mutation("notes"), idempotency_key="from-service")

        assert [m.idempotency_key for m in page.pending()] == ["from-page", "from-service"]
        assert len(service) == 2
        assert service.remove("from-page") is True
        assert [m.idempotency_key for m in page.pending()] == ["from-service"]

    @pytest.mark.asyncio
    async def test_replay_picks_up_writes_queued_by_another_instance(self, tmp_path):
        queue_file = tmp_path / "sync_queue.json"
        page = MutationQueue(queue_file)
        service = MutationQueue(queue_file)
        assert len(service) == 0

        page.enqueue(mutation(), idempotency_key="from-page")
        transport = FakeTransport({f"{API}/cycles": json_response([], status=201)})

        result = await service.replay(transport)

        assert result.replayed == ["from-page"]
        assert page.pending() == []
        assert json.loads(queue_file.read_text(encoding='utf-8')) == []

    @pytest.mark.asyncio
    async def test_write_queued_during_replay_is_kept(self, tmp_path):
        queue_file = tmp_path / "sync_queue.json"
        page = MutationQueue(queue_file)
        service = MutationQueue(queue_file)
        service.enqueue(mutation(), idempotency_key="old")
        transport = EnqueueingTransport(
            {f"{API}/cycles": json_response([], status=201),
             f"{API}/notes": json_response({}, status=503)},
            page, mutation("notes"))

        result = await service.replay(transport)

        assert result.replayed == ["old"]
        assert result.remaining == 1
        [kept] = page.pending()
        assert kept.idempotency_key == "new-from-page"
        assert MutationQueue(queue_file).pending()[0].idempotency_key == "new-from-page"
