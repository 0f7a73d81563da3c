"""Memory ingestion API client using httpx.

Each call validates the request locally, POSTs it to
``/v2/integrations/{app_id}/user/memories?uid={user_id}`` and maps the
response onto the error taxonomy in ``omi_memory.errors``. Failures come back
inside an ``ApiResult`` instead of being raised, so a throttled or rejected
memory never crashes the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import quote

import httpx

from omi_memory.config import settings
from omi_memory.errors import (
    ApiError,
    InvalidRequest,
    TransportError,
    Unauthenticated,
    error_for_status,
)
from omi_memory.models import MemoryRequest
from omi_memory.retry import RetryPolicy

logger = logging.getLogger(__name__)

MEMORIES_PATH = "/v2/integrations/{app_id}/user/memories"
MAX_ERROR_CHARS = 300
DEFAULT_BATCH_CONCURRENCY = 4

RequestLike = MemoryRequest | Mapping[str, Any]


@dataclass
class ApiResult:
    """Outcome of a create-memory call.

    Success only means the remote accepted the memory; processing happens
    asynchronously on the platform.
    """

    error: ApiError | None = None
    attempts: int = 1

    @property
    def success(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise the carried error, if any."""
        if self.error is not None:
            raise self.error


def _parse_retry_after(value: str | None) -> float | None:
    """Read a Retry-After header given as delta-seconds or an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug("Ignoring unparseable Retry-After header: %r", value)
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - datetime.now(UTC)).total_seconds())


def _error_message(resp: httpx.Response) -> str:
    """Pull a readable message out of an error response."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("detail", "error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if value:
                return str(value)[:MAX_ERROR_CHARS]
    text = resp.text.strip()
    if text:
        return text[:MAX_ERROR_CHARS]
    return resp.reason_phrase or f"HTTP {resp.status_code}"


class OmiClient:
    """Client for the platform's create-memory integration action.

    Arguments left as ``None`` fall back to ``Settings``. A shared
    ``httpx.AsyncClient`` is created lazily and reused for keep-alive; pass
    ``http_client`` to supply your own (it is then not closed by this client).

    Usage::

        async with OmiClient(app_id="01J...", api_key="sk_...") as client:
            result = await client.create_memory("user-123", {"text": "hello"})
            if not result.success:
                ...
    """

    def __init__(
        self,
        app_id: str | None = None,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        retry: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if (app_id is None or api_key is None) and not settings.memories_configured:
            logger.warning(
                "Memory client credentials incomplete: set OMI_APP_ID and OMI_API_KEY "
                "or pass app_id/api_key explicitly"
            )
        self.app_id = settings.app_id if app_id is None else app_id
        self._api_key = settings.api_key if api_key is None else api_key
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.timeout = settings.timeout_seconds if timeout is None else timeout
        self.retry = retry or RetryPolicy.from_settings()
        self._http = http_client
        self._owns_http = http_client is None

    # -- Lifecycle -------------------------------------------------------------

    def _get_http(self) -> httpx.AsyncClient:
        """Return (and lazily create) the shared httpx client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=self.timeout)
            self._owns_http = True
        return self._http

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._http is not None and self._owns_http and not self._http.is_closed:
            await self._http.aclose()
        if self._owns_http:
            self._http = None

    async def __aenter__(self) -> OmiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- Request building ------------------------------------------------------

    @property
    def memories_url(self) -> str:
        path = MEMORIES_PATH.format(app_id=quote(self.app_id, safe=""))
        return f"{self.base_url}{path}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def build_payload(
        self,
        user_id: str,
        request: RequestLike,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Validate the call locally and return the JSON body to send.

        Raises:
            InvalidRequest: Bad identifiers or request fields.
            Unauthenticated: No API key configured.
        """
        memory = MemoryRequest.parse(request)
        if not self.app_id or not self.app_id.strip():
            msg = "app_id must not be empty"
            raise InvalidRequest(msg)
        if not user_id or not user_id.strip():
            msg = "user_id must not be empty"
            raise InvalidRequest(msg)
        if not self._api_key or not self._api_key.strip():
            msg = "API key is not configured"
            raise Unauthenticated(msg)
        return memory.to_payload(now)

    # -- Transmission ----------------------------------------------------------

    async def _send(self, user_id: str, payload: dict[str, Any]) -> ApiError | None:
        """POST one attempt. Returns the mapped error, or None on success."""
        try:
            resp = await self._get_http().post(
                self.memories_url,
                params={"uid": user_id},
                json=payload,
                headers=self._headers(),
            )
        except httpx.TimeoutException as exc:
            return TransportError(f"request timed out ({type(exc).__name__})")
        except httpx.HTTPError as exc:
            return TransportError(f"{type(exc).__name__}: {exc}")

        if resp.is_success:
            return None

        return error_for_status(
            resp.status_code,
            _error_message(resp),
            retry_after=_parse_retry_after(resp.headers.get("Retry-After")),
        )

    async def create_memory(self, user_id: str, request: RequestLike) -> ApiResult:
        """Submit one memory for *user_id*.

        Local validation failures return immediately with ``attempts=0``.
        Retryable failures are retried only as far as ``self.retry`` allows;
        the same payload (timestamps included) is sent on every attempt.
        """
        try:
            payload = self.build_payload(user_id, request)
        except ApiError as exc:
            logger.warning("Memory rejected before sending (user=%s): %s", user_id, exc)
            return ApiResult(error=exc, attempts=0)

        attempt = 0
        while True:
            attempt += 1
            error = await self._send(user_id, payload)
            if error is None:
                logger.info(
                    "Memory accepted: app=%s, user=%s, chars=%d, attempts=%d",
                    self.app_id,
                    user_id,
                    len(payload["text"]),
                    attempt,
                )
                return ApiResult(attempts=attempt)

            if not self.retry.should_retry(error, attempt):
                logger.error(
                    "Memory not accepted: app=%s, user=%s, attempts=%d, error=%s",
                    self.app_id,
                    user_id,
                    attempt,
                    error,
                )
                return ApiResult(error=error, attempts=attempt)

            delay = self.retry.delay(attempt, error)
            logger.info(
                "Memory attempt %d/%d failed (%s), retrying in %.1fs...",
                attempt,
                self.retry.max_retries + 1,
                error.kind,
                delay,
            )
            await asyncio.sleep(delay)

    async def create_memories(
        self,
        user_id: str,
        requests: Iterable[RequestLike],
        *,
        max_concurrency: int = DEFAULT_BATCH_CONCURRENCY,
    ) -> list[ApiResult]:
        """Submit several memories concurrently. Results keep the input order."""
        if max_concurrency < 1:
            msg = "max_concurrency must be >= 1"
            raise ValueError(msg)
        semaphore = asyncio.Semaphore(max_concurrency)

        async def _one(request: RequestLike) -> ApiResult:
            async with semaphore:
                return await self.create_memory(user_id, request)

        results = await asyncio.gather(*(_one(r) for r in requests))
        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.warning(
                "Batch for user=%s: %d of %d memories failed", user_id, failed, len(results)
            )
        return list(results)


async def create_memory(
    app_id: str,
    user_id: str,
    api_key: str,
    request: RequestLike,
    *,
    base_url: str | None = None,
    timeout: float | None = None,
    retry: RetryPolicy | None = None,
) -> ApiResult:
    """One-shot helper: create a client, submit one memory, close the client."""
    async with OmiClient(
        app_id=app_id,
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
        retry=retry,
    ) as client:
        return await client.create_memory(user_id, request)
