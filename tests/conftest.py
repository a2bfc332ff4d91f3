import copy
import os
from typing import Any, Optional

os.environ.setdefault("REQUIRE_MCP_AUTH", "false")
os.environ.setdefault("MINNE_APP_CONTEXT", "minne_worker")
os.environ.setdefault("STORE_RETRY_BACKOFF_SECONDS", "0")
os.environ.setdefault("STORE_RETRY_JITTER_SECONDS", "0")

import pytest

import core.config as config
from core.context import AuthContext, RequestContext
from core.errors import MemoryNotFound
from core.store import Store, StoreCircuitBreaker


class FakeMemoryStore:
    """In-memory stand-in for the remote store, returning mem0-shaped payloads."""

    def __init__(self):
        self.records: dict[str, dict] = {}
        self.calls: list[tuple[str, Any]] = []
        self.failures: dict[str, Exception] = {}
        self.delete_lands_before_failure = False
        self.get_omits_user_id = False
        self._next_id = 1
        self.breaker = StoreCircuitBreaker(failure_threshold=5, cooldown_seconds=30)

    def seed(
        self,
        text: str,
        user_id: str = "u1",
        app_context: Optional[str] = "minne_worker",
        categories: tuple = (),
        score: float = 0.0,
        metadata: Optional[dict] = None,
        created_at: str = "2026-01-05T10:00:00Z",
        memory_id: Optional[str] = None,
    ) -> str:
        memory_id = memory_id or f"mem-{self._next_id}"
        self._next_id += 1
        meta = dict(metadata or {})
        if app_context is not None:
            meta.setdefault("app_context", app_context)
        self.records[memory_id] = {
            "id": memory_id,
            "memory": text,
            "user_id": user_id,
            "categories": list(categories),
            "metadata": meta,
            "created_at": created_at,
            "updated_at": created_at,
            "score": score,
        }
        return memory_id

    def _fail(self, operation: str) -> None:
        exc = self.failures.get(operation)
        if exc is not None:
            raise exc

    async def add(self, messages, user_id, metadata, infer=True):
        self.calls.append(("add", {"messages": messages, "user_id": user_id, "metadata": metadata, "infer": infer}))
        self._fail("add")
        memory_id = self.seed(messages[-1]["content"], user_id=user_id, app_context=None, metadata=metadata)
        return [{"id": memory_id, "data": {"memory": messages[-1]["content"]}, "event": "ADD"}]

    async def search(self, query, user_id, filters=None, top_k=10):
        self.calls.append(("search", {"query": query, "user_id": user_id, "filters": filters, "top_k": top_k}))
        self._fail("search")
        matches = [copy.deepcopy(r) for r in self.records.values() if r["user_id"] == user_id]
        return {"results": matches[:top_k]}

    async def get(self, memory_id):
        self.calls.append(("get", memory_id))
        self._fail("get")
        record = self.records.get(memory_id)
        if not record:
            return None
        record = copy.deepcopy(record)
        if self.get_omits_user_id:
            record.pop("user_id", None)
        return record

    async def delete(self, memory_id):
        self.calls.append(("delete", memory_id))
        if self.delete_lands_before_failure:
            self.records.pop(memory_id, None)
        self._fail("delete")
        if memory_id not in self.records:
            raise MemoryNotFound(memory_id)
        del self.records[memory_id]
        return {"message": "Memory deleted successfully!"}

    async def list_memories(self, user_id, limit):
        self.calls.append(("list", {"user_id": user_id, "limit": limit}))
        self._fail("list")
        matches = [copy.deepcopy(r) for r in self.records.values() if r["user_id"] == user_id]
        return matches[:limit]

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def fake_store():
    store = FakeMemoryStore()
    previous = Store.client
    Store.client = store
    try:
        yield store
    finally:
        Store.client = previous


@pytest.fixture
def user_context():
    return RequestContext(auth=AuthContext(user_key="u1", actor="u1"), source="test")


@pytest.fixture
def anonymous():
    return RequestContext(auth=AuthContext(actor="anonymous"), source="test")


@pytest.fixture
def app_context_tag():
    return config.APP_CONTEXT_TAG
