"""
Shared fixtures for milvet_nav tests.
"""

import pytest

from milvet_nav.config import AppSettings
from milvet_nav.error_handling import set_error_manager
from .test_mocks import FakeTransport


@pytest.fixture
def settings(tmp_path):
    return AppSettings(
        backend_url="https://abc.supabase.co",
        api_key="anon-key",
        data_dir=str(tmp_path / "data"),
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture(autouse=True)
def reset_error_manager():
    yield
    set_error_manager(None)
