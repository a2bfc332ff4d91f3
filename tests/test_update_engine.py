import asyncio

import pytest

from core.context import Identity
from core.errors import (
    DeleteFailed,
    MemoryNotFound,
    RecreateFailed,
    StoreTimeout,
    StoreUnavailable,
)
from core.models import UpdateState
from core.services.update_engine import replace_memory

USER = Identity(user_key="u1")


def test_successful_update_preserves_provenance(fake_store):
    original_id = fake_store.seed(
        "User prefers light mode",
        metadata={"created_at": "2025-12-01T09:00:00+00:00"},
    )

    result = asyncio.run(replace_memory(fake_store, USER, original_id, "User prefers dark mode", "changed mind"))

    assert result.state == UpdateState.recreated
    assert result.previous_id == original_id
    assert result.new_id is not None and result.new_id != original_id
    assert original_id not in fake_store.records

    new_record = fake_store.records[result.new_id]
    assert new_record["memory"] == "User prefers dark mode"
    assert new_record["metadata"]["created_at"] == "2025-12-01T09:00:00+00:00"
    assert new_record["metadata"]["previous_id"] == original_id
    assert new_record["metadata"]["update_reason"] == "changed mind"
    assert new_record["metadata"]["app_context"] == "minne_worker"
    assert new_record["metadata"]["last_updated"] != new_record["metadata"]["created_at"]
    assert fake_store.operations() == ["get", "delete", "add"]
    assert fake_store.calls[-1][1]["infer"] is False


def test_created_at_falls_back_to_store_timestamp(fake_store):
    original_id = fake_store.seed("old text", created_at="2025-11-02T08:30:00Z")

    result = asyncio.run(replace_memory(fake_store, USER, original_id, "new text"))

    assert result.created_at == "2025-11-02T08:30:00+00:00"
    assert result.update_reason == "content update"


def test_missing_memory_is_a_safe_no_op(fake_store):
    with pytest.raises(MemoryNotFound):
        asyncio.run(replace_memory(fake_store, USER, "mem-404", "new text"))
    assert fake_store.operations() == ["get"]


def test_other_users_memory_is_treated_as_missing(fake_store):
    other_id = fake_store.seed("secret", user_id="u2")
    with pytest.raises(MemoryNotFound):
        asyncio.run(replace_memory(fake_store, USER, other_id, "hijack"))
    assert other_id in fake_store.records
    assert "delete" not in fake_store.operations()


def test_other_apps_memory_is_treated_as_missing(fake_store):
    foreign_id = fake_store.seed("from another integration", app_context="other_app")
    with pytest.raises(MemoryNotFound):
        asyncio.run(replace_memory(fake_store, USER, foreign_id, "new text"))
    assert foreign_id in fake_store.records


def test_delete_failure_aborts_with_original_intact(fake_store):
    original_id = fake_store.seed("keep me")
    fake_store.failures["delete"] = StoreUnavailable("boom", operation="delete")

    with pytest.raises(DeleteFailed) as excinfo:
        asyncio.run(replace_memory(fake_store, USER, original_id, "new text"))

    assert excinfo.value.verified is True
    assert excinfo.value.data_lost is False
    assert fake_store.records[original_id]["memory"] == "keep me"
    assert "add" not in fake_store.operations()


def test_delete_error_after_delete_landed_continues_to_recreate(fake_store):
    original_id = fake_store.seed("old text")
    fake_store.delete_lands_before_failure = True
    fake_store.failures["delete"] = StoreTimeout("slow", operation="delete")

    result = asyncio.run(replace_memory(fake_store, USER, original_id, "new text"))

    assert result.state == UpdateState.recreated
    assert fake_store.operations() == ["get", "delete", "get", "add"]


def test_recreate_failure_reports_data_loss(fake_store):
    original_id = fake_store.seed("irreplaceable note")
    fake_store.failures["add"] = StoreUnavailable("down", operation="add")

    with pytest.raises(RecreateFailed) as excinfo:
        asyncio.run(replace_memory(fake_store, USER, original_id, "new text"))

    error = excinfo.value
    assert error.data_lost is True
    assert error.step == "recreate"
    assert error.memory_id == original_id
    assert error.lost_text == "irreplaceable note"
    assert original_id not in fake_store.records
    # no retry of the sequence
    assert fake_store.operations() == ["get", "delete", "add"]


def test_owner_falls_back_to_metadata_user_key(fake_store):
    original_id = fake_store.seed("u1 note", metadata={"user_key": "u1"})
    fake_store.get_omits_user_id = True

    with pytest.raises(MemoryNotFound):
        asyncio.run(replace_memory(fake_store, Identity(user_key="u2"), original_id, "hijack"))
    assert original_id in fake_store.records

    result = asyncio.run(replace_memory(fake_store, USER, original_id, "u1 note, revised"))
    assert result.state == UpdateState.recreated


def test_record_without_any_owner_is_refused(fake_store):
    original_id = fake_store.seed("legacy note")
    fake_store.get_omits_user_id = True

    with pytest.raises(MemoryNotFound):
        asyncio.run(replace_memory(fake_store, USER, original_id, "new text"))
    assert original_id in fake_store.records
    assert "delete" not in fake_store.operations()


def test_recreate_writes_owner_into_metadata(fake_store):
    original_id = fake_store.seed("old text")
    result = asyncio.run(replace_memory(fake_store, USER, original_id, "new text"))
    assert fake_store.records[result.new_id]["metadata"]["user_key"] == "u1"


def test_delete_error_with_unverifiable_state(fake_store, monkeypatch):
    original_id = fake_store.seed("keep me")
    fake_store.failures["delete"] = StoreTimeout("slow", operation="delete")
    original_get = fake_store.get
    gets = []

    async def get_then_fail(memory_id):
        gets.append(memory_id)
        if len(gets) > 1:
            raise StoreUnavailable("down", operation="get")
        return await original_get(memory_id)

    monkeypatch.setattr(fake_store, "get", get_then_fail)

    with pytest.raises(DeleteFailed) as excinfo:
        asyncio.run(replace_memory(fake_store, USER, original_id, "new text"))

    assert excinfo.value.verified is False
    assert excinfo.value.data_lost is False
    assert len(gets) == 2
    assert "add" not in fake_store.operations()
