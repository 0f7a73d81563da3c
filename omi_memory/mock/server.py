"""Lightweight aiohttp server that mimics the memory ingestion endpoint.

Checks run in the same order as the real platform: app lookup, bearer key,
capability and per-user enablement, throttling, then payload validation.
Accepted memories are recorded in a ``MockRegistry`` and answered with
``200 {}``.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any

from aiohttp import web

from omi_memory.config import settings
from omi_memory.errors import InvalidRequest
from omi_memory.mock.registry import CREATE_MEMORY, MockRegistry
from omi_memory.models import MemoryRequest

logger = logging.getLogger(__name__)

REGISTRY_KEY = web.AppKey("registry", MockRegistry)


def _error(status: int, detail: str, headers: dict[str, str] | None = None) -> web.Response:
    return web.json_response({"detail": detail}, status=status, headers=headers)


def _bearer_token(request: web.Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


async def _handle_create_memory(request: web.Request) -> web.Response:
    """POST /v2/integrations/{app_id}/user/memories?uid=<user_id>."""
    registry = request.app[REGISTRY_KEY]
    app_id = request.match_info["app_id"]

    app = registry.get(app_id)
    if app is None:
        logger.warning("Mock 404: unknown app_id=%s", app_id)
        return _error(404, "App not found")

    if not app.accepts_key(_bearer_token(request)):
        logger.warning("Mock 401: invalid API key (app=%s)", app_id)
        return _error(401, "Invalid API key")

    if not app.can(CREATE_MEMORY):
        logger.warning("Mock 403: app=%s lacks %s capability", app_id, CREATE_MEMORY)
        return _error(403, "App does not have the create_memory capability")

    user_id = request.query.get("uid", "")
    if not user_id or user_id not in app.enabled_users:
        logger.warning("Mock 403: app=%s not enabled for user=%s", app_id, user_id)
        return _error(403, "App is not enabled for this user")

    allowed, retry_after = app.throttle()
    if not allowed:
        wait = max(1, math.ceil(retry_after))
        logger.warning("Mock 429: app=%s throttled, retry in %ds", app_id, wait)
        return _error(429, "Rate limit exceeded", headers={"Retry-After": str(wait)})

    try:
        body: Any = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Mock 400: invalid JSON (app=%s)", app_id)
        return _error(400, "Invalid JSON body")

    try:
        memory = MemoryRequest.parse(body)
    except InvalidRequest as exc:
        logger.warning("Mock 400: %s (app=%s)", exc.message, app_id)
        return _error(400, exc.message)

    stored = registry.record(app_id, user_id, memory.with_defaults())
    logger.info(
        "Mock accepted memory: app=%s, user=%s, source=%s, chars=%d",
        app_id,
        user_id,
        stored.request.text_source,
        len(stored.request.text),
    )
    return web.json_response({})


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    return web.json_response({"status": "ok"})


def create_mock_app(registry: MockRegistry) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application()
    app[REGISTRY_KEY] = registry
    app.router.add_get("/health", _health)
    app.router.add_post("/v2/integrations/{app_id}/user/memories", _handle_create_memory)
    return app


class MockServer:
    """Manages the mock server lifecycle."""

    def __init__(
        self,
        registry: MockRegistry | None = None,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        self.registry = registry or MockRegistry()
        self.host = host or settings.mock_server_host
        self.port = settings.mock_server_port if port is None else port
        self._runner: web.AppRunner | None = None

    @property
    def url(self) -> str:
        """Base URL to hand to ``OmiClient(base_url=...)``."""
        return f"http://{self.host}:{self.port}"

    async def start(self) -> None:
        """Start listening. Port ``0`` picks a free port, reflected in ``url``."""
        app = create_mock_app(self.registry)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        if self.port == 0 and self._runner.addresses:
            self.port = self._runner.addresses[0][1]
        logger.info(
            "Mock server listening on %s (apps: %s)",
            self.url,
            self.registry.app_ids or ["none registered"],
        )

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Mock server stopped")

    async def __aenter__(self) -> MockServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
