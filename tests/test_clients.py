"""
Unit tests for the client registry.
"""

from milvet_nav.worker import ClientRegistry


APP = "https://app.example.com"


class TestPostMessage:
    """Messages from the service to open instances."""

    def setup_method(self):
        self.clients = ClientRegistry(APP)
        self.home = self.clients.register("/")
        self.settings_page = self.clients.register("/settings")

    def test_targeted_message(self):
        delivered = self.clients.post_message({'type': 'refresh'}, client_id=self.home.client_id)

        assert delivered == 1
        assert self.home.messages == [{'type': 'refresh'}]
        assert self.settings_page.messages == []

    def test_targeted_message_reaches_uncontrolled_client(self):
        assert not self.home.controlled
        assert self.clients.post_message("hello", client_id=self.home.client_id) == 1

    def test_unknown_client_id(self):
        assert self.clients.post_message("hello", client_id="missing") == 0
        assert self.home.messages == []
        assert self.settings_page.messages == []

    def test_broadcast_skips_uncontrolled_clients(self):
        assert self.clients.post_message("before claim") == 0
        assert self.home.messages == []

    def test_broadcast_after_claim(self):
        assert self.clients.claim() == 2
        late = self.clients.register("/late")

        delivered = self.clients.post_message("synced")

        assert delivered == 2
        assert self.home.messages == ["synced"]
        assert self.settings_page.messages == ["synced"]
        assert late.messages == []

    def test_unregistered_client_gets_nothing(self):
        self.clients.claim()
        self.clients.unregister(self.settings_page.client_id)

        assert self.clients.post_message("synced") == 1
        assert self.settings_page.messages == []
