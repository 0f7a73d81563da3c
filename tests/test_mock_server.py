"""Tests for the mock ingestion HTTP server."""

from aiohttp.test_utils import TestClient, TestServer

from omi_memory.mock import CREATE_MEMORY, MockApp, MockRegistry, MockServer, create_mock_app
from omi_memory.models import TextSource

APP_ID = "01JTESTAPP"
API_KEY = "sk_test_123"
USER_ID = "user-alice"
PATH = f"/v2/integrations/{APP_ID}/user/memories"
AUTH = {"Authorization": f"Bearer {API_KEY}"}


# -- Helpers -----------------------------------------------------------------


def _registry(**app_kwargs) -> MockRegistry:
    reg = MockRegistry()
    app_kwargs.setdefault("api_keys", {API_KEY})
    app_kwargs.setdefault("enabled_users", {USER_ID})
    reg.register(MockApp(app_id=APP_ID, **app_kwargs))
    return reg


async def _make_client(registry: MockRegistry) -> TestClient:
    """Create a TestClient for the mock app."""
    server = TestServer(create_mock_app(registry))
    client = TestClient(server)
    await client.start_server()
    return client


# -- Health check -----------------------------------------------------------


async def test_health_check() -> None:
    client = await _make_client(_registry())
    try:
        resp = await client.get("/health")
        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "ok"
    finally:
        await client.close()


# -- Happy path --------------------------------------------------------------


async def test_accepts_and_records_memory() -> None:
    registry = _registry()
    client = await _make_client(registry)
    try:
        resp = await client.post(
            PATH,
            params={"uid": USER_ID},
            json={"text": "hello", "text_source": "message", "text_source_spec": "whatsapp"},
            headers=AUTH,
        )
        assert resp.status == 200
        assert await resp.json() == {}
    finally:
        await client.close()

    stored = registry.memories(APP_ID, USER_ID)
    assert len(stored) == 1
    assert stored[0].request.text == "hello"
    assert stored[0].request.text_source is TextSource.MESSAGE
    # Missing timestamps are filled in at receipt
    assert stored[0].request.started_at is not None
    assert stored[0].request.finished_at > stored[0].request.started_at


# -- Auth & lookup -----------------------------------------------------------


async def test_unknown_app_returns_404() -> None:
    client = await _make_client(_registry())
    try:
        resp = await client.post(
            "/v2/integrations/nope/user/memories",
            params={"uid": USER_ID},
            json={"text": "hi"},
            headers=AUTH,
        )
        assert resp.status == 404
        assert (await resp.json())["detail"] == "App not found"
    finally:
        await client.close()


async def test_rejects_missing_key() -> None:
    client = await _make_client(_registry())
    try:
        resp = await client.post(PATH, params={"uid": USER_ID}, json={"text": "hi"})
        assert resp.status == 401
    finally:
        await client.close()


async def test_rejects_wrong_key() -> None:
    client = await _make_client(_registry())
    try:
        resp = await client.post(
            PATH,
            params={"uid": USER_ID},
            json={"text": "hi"},
            headers={"Authorization": "Bearer wrong"},
        )
        assert resp.status == 401
    finally:
        await client.close()


async def test_rejects_non_bearer_scheme() -> None:
    client = await _make_client(_registry())
    try:
        resp = await client.post(
            PATH,
            params={"uid": USER_ID},
            json={"text": "hi"},
            headers={"Authorization": f"Basic {API_KEY}"},
        )
        assert resp.status == 401
    finally:
        await client.close()


async def test_missing_capability_returns_403() -> None:
    client = await _make_client(_registry(capabilities=set()))
    try:
        resp = await client.post(PATH, params={"uid": USER_ID}, json={"text": "hi"}, headers=AUTH)
        assert resp.status == 403
        assert CREATE_MEMORY in (await resp.json())["detail"]
    finally:
        await client.close()


async def test_user_not_enabled_returns_403() -> None:
    client = await _make_client(_registry())
    try:
        resp = await client.post(PATH, params={"uid": "bob"}, json={"text": "hi"}, headers=AUTH)
        assert resp.status == 403
    finally:
        await client.close()


async def test_missing_uid_returns_403() -> None:
    client = await _make_client(_registry())
    try:
        resp = await client.post(PATH, json={"text": "hi"}, headers=AUTH)
        assert resp.status == 403
    finally:
        await client.close()


# -- Payload validation ------------------------------------------------------


async def test_invalid_json_returns_400() -> None:
    client = await _make_client(_registry())
    try:
        resp = await client.post(
            PATH,
            params={"uid": USER_ID},
            data=b"not json",
            headers={**AUTH, "Content-Type": "application/json"},
        )
        assert resp.status == 400
    finally:
        await client.close()


async def test_bad_text_source_returns_400_with_detail() -> None:
    registry = _registry()
    client = await _make_client(registry)
    try:
        resp = await client.post(
            PATH,
            params={"uid": USER_ID},
            json={"text": "coo", "text_source": "carrier_pigeon"},
            headers=AUTH,
        )
        assert resp.status == 400
        assert "text_source" in (await resp.json())["detail"]
    finally:
        await client.close()

    assert registry.memories(APP_ID, USER_ID) == []


async def test_non_object_body_returns_400() -> None:
    client = await _make_client(_registry())
    try:
        resp = await client.post(PATH, params={"uid": USER_ID}, json=["hi"], headers=AUTH)
        assert resp.status == 400
    finally:
        await client.close()


# -- Throttling --------------------------------------------------------------


async def test_throttled_requests_get_429_with_retry_after() -> None:
    client = await _make_client(_registry(rate=0.01, burst=1))
    try:
        first = await client.post(PATH, params={"uid": USER_ID}, json={"text": "a"}, headers=AUTH)
        second = await client.post(PATH, params={"uid": USER_ID}, json={"text": "b"}, headers=AUTH)
        assert first.status == 200
        assert second.status == 429
        assert int(second.headers["Retry-After"]) >= 1
    finally:
        await client.close()


# -- MockServer lifecycle ----------------------------------------------------


async def test_server_binds_free_port() -> None:
    server = MockServer(_registry(), host="127.0.0.1", port=0)
    await server.start()
    try:
        assert server.port != 0
        assert server.url == f"http://127.0.0.1:{server.port}"
    finally:
        await server.stop()
    assert server._runner is None


async def test_stop_without_start_is_noop() -> None:
    server = MockServer(MockRegistry(), port=0)
    await server.stop()
    assert server._runner is None
