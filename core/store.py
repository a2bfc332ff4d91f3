"""
HTTP client for the remote memory store (mem0 platform REST API).

Only idempotent reads (search, get, list) are retried. Writes and deletes are
attempted once: a retried add could duplicate a memory and the update workflow
must never re-run a delete blindly.
"""

from __future__ import annotations

import asyncio
import random
import threading
import time
from typing import Any, Optional
from urllib.parse import quote

import httpx

import core.config as config
from core.errors import MemoryNotFound, StoreTimeout, StoreUnavailable

logger = config.logger

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def _memory_path(memory_id: str) -> str:
    return f"/v1/memories/{quote(memory_id, safe='')}/"


class StoreCircuitBreaker:
    """
    Consecutive-failure breaker for the memory store.

    closed: every call goes through. open: calls fail fast until the cooldown
    ends. half_open: one trial call is let through per cooldown; its success
    closes the breaker and its failure reopens it.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int, cooldown_seconds: int):
        self.failure_threshold = max(1, failure_threshold)
        self.cooldown_seconds = max(1, cooldown_seconds)
        self._lock = threading.Lock()
        self._state = self.CLOSED
        self._failures = 0
        self._retry_at = 0.0
        self._last_error: Optional[str] = None
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    def is_open(self) -> bool:
        return self.state != self.CLOSED

    def allow_request(self) -> bool:
        with self._lock:
            if self._state == self.CLOSED:
                return True
            now = time.time()
            if now < self._retry_at:
                return False
            # Trial call; concurrent callers keep failing fast until it reports back.
            self._state = self.HALF_OPEN
            self._retry_at = now + self.cooldown_seconds
            return True

    def record_success(self) -> None:
        with self._lock:
            if self._state != self.CLOSED:
                logger.info("store_circuit_closed")
            self._state = self.CLOSED
            self._failures = 0
            self._retry_at = 0.0
            self._opened_at = None

    def record_failure(self, error: str) -> None:
        with self._lock:
            self._failures += 1
            self._last_error = error
            if self._state == self.HALF_OPEN or self._failures >= self.failure_threshold:
                if self._state == self.CLOSED:
                    logger.warning("store_circuit_opened", extra={"failures": self._failures})
                self._state = self.OPEN
                self._opened_at = time.time()
                self._retry_at = self._opened_at + self.cooldown_seconds

    def status(self) -> dict:
        with self._lock:
            return {
                "state": self._state,
                "open": self._state != self.CLOSED,
                "consecutive_failures": self._failures,
                "retry_at_epoch": int(self._retry_at) if self._retry_at else None,
                "opened_at_epoch": int(self._opened_at) if self._opened_at else None,
                "last_error": self._last_error,
            }


class MemoryStoreClient:
    """Async client for add/search/get/delete/list against the memory store."""

    def __init__(
        self,
        api_key: str,
        base_url: str = config.MEM0_BASE_URL,
        timeout_seconds: float = config.STORE_TIMEOUT_SECONDS,
        retry_max: int = config.STORE_RETRY_MAX,
        backoff_seconds: float = config.STORE_RETRY_BACKOFF_SECONDS,
        jitter_seconds: float = config.STORE_RETRY_JITTER_SECONDS,
        breaker: Optional[StoreCircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.retry_max = max(0, retry_max)
        self.backoff_seconds = backoff_seconds
        self.jitter_seconds = jitter_seconds
        self.breaker = breaker or StoreCircuitBreaker(
            failure_threshold=config.STORE_FAILURE_THRESHOLD,
            cooldown_seconds=config.STORE_COOLDOWN_SECONDS,
        )
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=100),
            headers={
                "Authorization": f"Token {api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _sleep_backoff(self, attempt: int) -> None:
        base = self.backoff_seconds * (2 ** attempt)
        jitter = random.uniform(0, self.jitter_seconds) if self.jitter_seconds > 0 else 0.0
        await asyncio.sleep(base + jitter)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        idempotent: bool,
        json: Any = None,
        params: Optional[dict] = None,
        not_found_id: Optional[str] = None,
    ) -> Any:
        if not self.breaker.allow_request():
            logger.warning("store_circuit_open", extra={"operation": operation})
            raise StoreUnavailable("memory store circuit breaker open", operation=operation)

        attempts = self.retry_max + 1 if idempotent else 1
        for attempt in range(attempts):
            last_attempt = attempt >= attempts - 1
            try:
                response = await self._client.request(method, path, json=json, params=params)
            except httpx.TimeoutException as exc:
                if not last_attempt:
                    await self._sleep_backoff(attempt)
                    continue
                self.breaker.record_failure(f"{operation}: timeout")
                logger.warning("store_timeout", extra={"operation": operation, "attempts": attempt + 1})
                raise StoreTimeout(f"memory store timed out during {operation}", operation=operation) from exc
            except httpx.RequestError as exc:
                if not last_attempt:
                    await self._sleep_backoff(attempt)
                    continue
                self.breaker.record_failure(f"{operation}: {type(exc).__name__}")
                logger.warning(
                    "store_request_error",
                    extra={"operation": operation, "error_type": type(exc).__name__},
                )
                raise StoreUnavailable(f"memory store unreachable during {operation}", operation=operation) from exc

            if response.status_code == 404 and not_found_id is not None:
                self.breaker.record_success()
                raise MemoryNotFound(not_found_id)

            if response.status_code in RETRYABLE_STATUS_CODES:
                if not last_attempt:
                    await self._sleep_backoff(attempt)
                    continue
                self.breaker.record_failure(f"{operation}: status {response.status_code}")
                logger.warning(
                    "store_status_error",
                    extra={"operation": operation, "status_code": response.status_code},
                )
                raise StoreUnavailable(
                    f"memory store returned status {response.status_code} during {operation}",
                    operation=operation,
                    status_code=response.status_code,
                )

            if response.status_code >= 400:
                # the store answered; a rejected request says nothing about its health
                self.breaker.record_success()
                logger.warning(
                    "store_rejected_request",
                    extra={"operation": operation, "status_code": response.status_code},
                )
                raise StoreUnavailable(
                    f"memory store rejected {operation} with status {response.status_code}",
                    operation=operation,
                    status_code=response.status_code,
                )

            self.breaker.record_success()
            return self._decode(response)

        raise StoreUnavailable(f"memory store {operation} exhausted retries", operation=operation)

    async def add(
        self,
        messages: list[dict],
        user_id: str,
        metadata: dict,
        infer: bool = True,
    ) -> Any:
        payload = {
            "messages": messages,
            "user_id": user_id,
            "metadata": metadata,
        }
        if not infer:
            payload["infer"] = False
        return await self._request("POST", "/v1/memories/", "add", idempotent=False, json=payload)

    async def search(
        self,
        query: str,
        user_id: str,
        filters: Optional[dict] = None,
        top_k: int = config.SEARCH_DEFAULT_LIMIT,
    ) -> Any:
        payload: dict[str, Any] = {"query": query, "user_id": user_id, "top_k": top_k}
        if filters:
            payload["filters"] = filters
        return await self._request("POST", "/v1/memories/search/", "search", idempotent=True, json=payload)

    async def get(self, memory_id: str) -> Any:
        """Return the raw record, or None when the store has no such id."""
        try:
            return await self._request(
                "GET",
                _memory_path(memory_id),
                "get",
                idempotent=True,
                not_found_id=memory_id,
            )
        except MemoryNotFound:
            return None

    async def delete(self, memory_id: str) -> Any:
        return await self._request(
            "DELETE",
            _memory_path(memory_id),
            "delete",
            idempotent=False,
            not_found_id=memory_id,
        )

    async def list_memories(self, user_id: str, limit: int) -> Any:
        params = {"user_id": user_id, "page": 1, "page_size": limit}
        return await self._request("GET", "/v1/memories/", "list", idempotent=True, params=params)


class Store:
    """Store client holder (avoids global scoping issues)."""

    client: Optional[MemoryStoreClient] = None


def init_store() -> None:
    if not config.MEM0_API_KEY:
        logger.warning("store_not_configured")
        return
    Store.client = MemoryStoreClient(api_key=config.MEM0_API_KEY)
    logger.info("Memory store client initialized")


async def close_store() -> None:
    if Store.client is not None:
        await Store.client.close()
        Store.client = None
        logger.info("Memory store client closed")


def get_store() -> MemoryStoreClient:
    if Store.client is None:
        raise StoreUnavailable("memory store is not configured", operation="init")
    return Store.client


def store_status() -> dict:
    if Store.client is None:
        return {"configured": False}
    return {"configured": True, "circuit_breaker": Store.client.breaker.status()}
