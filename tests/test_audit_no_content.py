import logging

import pytest

from core.audit import (
    EVENT_MEMORY_DELETED,
    EVENT_MEMORY_UPDATE_DATA_LOSS,
    log_event,
    record_event,
)


def test_audit_rejects_content_metadata(caplog):
    with caplog.at_level(logging.INFO, logger="minne.audit"):
        with pytest.raises(ValueError):
            log_event(
                event_type=EVENT_MEMORY_DELETED,
                user_key="u1",
                target_ids=["m1"],
                metadata={"content": "should_not_log"},
            )
    assert caplog.records == []


@pytest.mark.parametrize("key", ["new_content", "lost_text", "memory_text", "api_key", "bearer-token"])
def test_audit_rejects_content_like_keys(key):
    with pytest.raises(ValueError):
        log_event(
            event_type=EVENT_MEMORY_DELETED,
            user_key="u1",
            target_ids=["m1"],
            metadata={"nested": {key: "x"}},
        )


def test_audit_rejects_long_strings():
    with pytest.raises(ValueError):
        log_event(
            event_type=EVENT_MEMORY_DELETED,
            user_key="u1",
            target_ids=["m1"],
            metadata={"note": "x" * 600},
        )


def test_audit_rejects_unknown_event():
    with pytest.raises(ValueError):
        log_event(event_type="memory.archived", user_key="u1", target_ids=["m1"])


def test_data_loss_event_logged_at_error(caplog):
    with caplog.at_level(logging.INFO, logger="minne.audit"):
        event = log_event(
            event_type=EVENT_MEMORY_UPDATE_DATA_LOSS,
            user_key="u1",
            target_ids=["m1"],
            metadata={"step": "recreate", "error_type": "StoreUnavailable"},
        )
    assert event["count_affected"] == 1
    assert caplog.records[-1].levelno == logging.ERROR
    assert caplog.records[-1].audit["target_ids"] == ["m1"]


def test_update_data_loss_audit_never_carries_text(fake_store, user_context, caplog):
    import asyncio

    from core.errors import StoreUnavailable
    from core.services import memory_service

    original_id = fake_store.seed("private diary entry")
    fake_store.failures["add"] = StoreUnavailable("down", operation="add")
    with caplog.at_level(logging.INFO, logger="minne.audit"):
        asyncio.run(memory_service.update_memory(
            memory_id=original_id, new_content="another secret", context=user_context
        ))

    audit_records = [r for r in caplog.records if r.name == "minne.audit"]
    assert audit_records
    for record in audit_records:
        assert "private diary entry" not in repr(record.audit)
        assert "another secret" not in repr(record.audit)


def test_long_target_ids_are_truncated_not_rejected():
    event = log_event(event_type=EVENT_MEMORY_DELETED, user_key="u1", target_ids=["m" * 300])
    assert event["target_ids"] == ["m" * 255]


def test_record_event_drops_rejected_event(caplog):
    with caplog.at_level(logging.INFO, logger="minne.audit"):
        event = record_event(
            event_type=EVENT_MEMORY_DELETED,
            user_key="u1",
            target_ids=["m1"],
            metadata={"content": "nope"},
        )
    assert event is None
    assert caplog.records[-1].getMessage() == "audit_event_rejected"
