"""
Replace-by-recreate update workflow.

The store has no in-place edit, so an update is:

    START -> FETCHED -> DELETED -> RECREATED

A failure before DELETED leaves the original untouched. A failure after
DELETED means the original content is gone: the workflow is at-most-once and
there is no rollback. Callers must surface `RecreateFailed` as data loss.
"""

from __future__ import annotations

from typing import Optional

from core.audit import EVENT_MEMORY_REPLACED, EVENT_MEMORY_UPDATE_DATA_LOSS, record_event
from core.context import Identity
from core.errors import DeleteFailed, MemoryNotFound, RecreateFailed, StoreUnavailable
from core.models import MemoryRecord, UpdateResult, UpdateState
from core.services.memory_shared import (
    build_messages,
    build_write_metadata,
    logger,
    owned_by,
    utc_now,
)
from core.services.normalizer import extract_memory_ids, normalize_record

DEFAULT_UPDATE_REASON = "content update"


async def _fetch_owned(store, identity: Identity, memory_id: str) -> Optional[MemoryRecord]:
    raw = await store.get(memory_id)
    if raw is None:
        return None
    record = normalize_record(raw)
    if record is None or not owned_by(record, identity):
        return None
    return record


async def _delete_original(store, memory_id: str, result: UpdateResult) -> None:
    try:
        await store.delete(memory_id)
        return
    except MemoryNotFound as exc:
        result.state = UpdateState.failed
        raise DeleteFailed(
            f"memory {memory_id} was removed before it could be replaced",
            memory_id,
            cause=exc,
        ) from exc
    except StoreUnavailable as exc:
        delete_error = exc

    # The delete may have landed before the failure surfaced; check before deciding.
    try:
        still_there = await store.get(memory_id)
    except StoreUnavailable as exc:
        result.state = UpdateState.failed
        logger.error(
            "update_delete_state_unknown",
            extra={"memory_id": memory_id, "error_type": type(exc).__name__},
        )
        raise DeleteFailed(
            f"delete of memory {memory_id} failed and its current state could not be verified",
            memory_id,
            cause=delete_error,
            verified=False,
        ) from delete_error

    if still_there is not None:
        result.state = UpdateState.failed
        raise DeleteFailed(
            f"delete of memory {memory_id} failed; the original is unchanged",
            memory_id,
            cause=delete_error,
        ) from delete_error

    logger.warning(
        "update_delete_confirmed_after_error",
        extra={"memory_id": memory_id, "error_type": type(delete_error).__name__},
    )


async def replace_memory(
    store,
    identity: Identity,
    memory_id: str,
    new_content: str,
    reason: Optional[str] = None,
) -> UpdateResult:
    """Replace a memory's content, keeping its original creation time.

    Raises MemoryNotFound, DeleteFailed or RecreateFailed; StoreUnavailable
    from the initial fetch propagates unchanged (nothing was mutated).
    """
    result = UpdateResult(previous_id=memory_id)
    update_reason = reason.strip() if reason and reason.strip() else DEFAULT_UPDATE_REASON

    record = await _fetch_owned(store, identity, memory_id)
    if record is None:
        result.state = UpdateState.failed
        raise MemoryNotFound(memory_id)
    result.state = UpdateState.fetched

    await _delete_original(store, memory_id, result)
    result.state = UpdateState.deleted

    now = utc_now()
    metadata = build_write_metadata(
        now,
        identity.user_key,
        created_at=record.original_created_at,
        update_reason=update_reason,
        previous_id=memory_id,
    )
    try:
        raw = await store.add(
            build_messages(new_content),
            user_id=identity.user_key,
            metadata=metadata,
            infer=False,
        )
    except Exception as exc:
        result.state = UpdateState.failed
        logger.error(
            "update_recreate_failed",
            extra={"memory_id": memory_id, "error_type": type(exc).__name__},
        )
        record_event(
            event_type=EVENT_MEMORY_UPDATE_DATA_LOSS,
            user_key=identity.user_key,
            target_ids=[memory_id],
            reason=update_reason,
            metadata={"step": "recreate", "error_type": type(exc).__name__},
        )
        raise RecreateFailed(
            f"memory {memory_id} was deleted but its replacement could not be stored",
            memory_id,
            lost_text=record.text,
            cause=exc,
        ) from exc

    new_ids = extract_memory_ids(raw)
    result.state = UpdateState.recreated
    result.new_id = new_ids[0] if new_ids else None
    result.created_at = metadata["created_at"]
    result.last_updated = metadata["last_updated"]
    result.update_reason = update_reason
    result.stored_text = new_content

    record_event(
        event_type=EVENT_MEMORY_REPLACED,
        user_key=identity.user_key,
        target_ids=[memory_id] + ([result.new_id] if result.new_id else []),
        reason=update_reason,
    )
    return result
