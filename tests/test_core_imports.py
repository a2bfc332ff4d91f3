import asyncio

from fastapi.testclient import TestClient


def test_core_imports():
    import core.context  # noqa: F401
    import core.models  # noqa: F401
    import core.services.memory_service  # noqa: F401
    import core.store  # noqa: F401


def test_all_memory_tools_registered():
    from core.mcp.server import expected_tool_names, tool_inventory_status

    names = {
        "addMemory",
        "searchMemories",
        "searchByCategory",
        "getMemoryCategories",
        "getRelevantContext",
        "updateMemory",
        "deleteMemory",
    }
    assert set(expected_tool_names()) == names
    inventory = asyncio.run(tool_inventory_status())
    assert inventory["missing"] == []
    assert names <= set(inventory["tools"])


def test_health_reports_unconfigured_store():
    from app.main import app
    from core.store import Store

    previous = Store.client
    Store.client = None
    try:
        response = TestClient(app).get("/health")
    finally:
        Store.client = previous
    assert response.status_code == 503


def test_health_with_store(fake_store):
    from app.main import app

    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json()["app_context"] == "minne_worker"


def test_core_smoke_lifecycle(fake_store, user_context):
    from core.services import memory_service as memory

    added = asyncio.run(memory.add_memory(content="Core import smoke observation", context=user_context))
    assert "ID: mem-1" in added
    fake_store.records["mem-1"]["score"] = 0.9

    found = asyncio.run(memory.search_memories(query="smoke", context=user_context))
    assert "Core import smoke observation" in found

    updated = asyncio.run(memory.update_memory(
        memory_id="mem-1", new_content="Core smoke observation, revised", context=user_context
    ))
    assert updated.startswith("Memory updated.")

    deleted = asyncio.run(memory.delete_memories(memory_ids=["mem-2"], context=user_context))
    assert deleted.startswith("Deleted 1 of 1")
    assert fake_store.records == {}
