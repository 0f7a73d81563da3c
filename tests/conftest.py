"""Shared test fixtures."""

import pytest

from omi_memory.mock import MockApp, MockRegistry, MockServer

APP_ID = "01JTESTAPP"
API_KEY = "sk_test_123"
USER_ID = "user-alice"


@pytest.fixture
def registry() -> MockRegistry:
    """A registry with one app enabled for USER_ID and no throttling."""
    reg = MockRegistry()
    reg.register(MockApp(app_id=APP_ID, api_keys={API_KEY}, enabled_users={USER_ID}))
    return reg


@pytest.fixture
async def mock_server(registry):
    """Run the mock endpoint on a free local port."""
    server = MockServer(registry, host="127.0.0.1", port=0)
    await server.start()
    yield server
    await server.stop()
