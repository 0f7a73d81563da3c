"""In-memory catalog of integration apps and the memories they submitted."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from omi_memory.mock.rate_limit import TokenBucket
from omi_memory.models import MemoryRequest

logger = logging.getLogger(__name__)

CREATE_MEMORY = "create_memory"


@dataclass
class MockApp:
    """An integration app as the platform sees it.

    Attributes:
        app_id: Opaque identifier used in the request path.
        api_keys: Bearer keys accepted for this app.
        capabilities: Granted actions, e.g. ``{"create_memory"}``.
        enabled_users: User ids that have enabled the app.
        rate: Requests per second allowed (``None`` disables throttling).
        burst: Burst capacity for throttling.
    """

    app_id: str
    api_keys: set[str] = field(default_factory=set)
    capabilities: set[str] = field(default_factory=lambda: {CREATE_MEMORY})
    enabled_users: set[str] = field(default_factory=set)
    rate: float | None = None
    burst: int = 1
    _bucket: TokenBucket | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.rate is not None:
            self._bucket = TokenBucket(self.rate, self.burst)

    def accepts_key(self, api_key: str) -> bool:
        return bool(api_key) and api_key in self.api_keys

    def can(self, capability: str) -> bool:
        return capability in self.capabilities

    def throttle(self) -> tuple[bool, float]:
        """Consume one request from the app's budget. Returns (allowed, retry_after)."""
        if self._bucket is None:
            return True, 0.0
        return self._bucket.consume()


@dataclass
class StoredMemory:
    """A memory the mock accepted, with defaults already resolved."""

    request: MemoryRequest
    received_at: datetime


class MockRegistry:
    """Apps known to the mock server plus everything they have submitted."""

    def __init__(self) -> None:
        self._apps: dict[str, MockApp] = {}
        self._memories: dict[tuple[str, str], list[StoredMemory]] = {}

    def register(self, app: MockApp) -> MockApp:
        self._apps[app.app_id] = app
        logger.info("Registered mock app: %s", app.app_id)
        return app

    def get(self, app_id: str) -> MockApp | None:
        return self._apps.get(app_id)

    @property
    def app_ids(self) -> list[str]:
        return list(self._apps)

    def record(self, app_id: str, user_id: str, request: MemoryRequest) -> StoredMemory:
        stored = StoredMemory(request=request, received_at=datetime.now(UTC))
        self._memories.setdefault((app_id, user_id), []).append(stored)
        return stored

    def memories(self, app_id: str, user_id: str) -> list[StoredMemory]:
        """Accepted memories for one (app, user) pair, oldest first."""
        return list(self._memories.get((app_id, user_id), []))

    def clear(self) -> None:
        """Forget all stored memories (apps stay registered)."""
        self._memories.clear()
