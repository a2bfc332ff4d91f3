"""
Audit logging helpers (log-only, metadata-only).

Destructive memory operations emit one structured record to the
`minne.audit` logger. Memory content never goes into audit metadata.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

EVENT_MEMORY_DELETED = "memory.deleted"
EVENT_MEMORY_REPLACED = "memory.replaced"
EVENT_MEMORY_UPDATE_DATA_LOSS = "memory.update_data_loss"

ALLOWED_EVENT_TYPES = {
    EVENT_MEMORY_DELETED,
    EVENT_MEMORY_REPLACED,
    EVENT_MEMORY_UPDATE_DATA_LOSS,
}

FORBIDDEN_METADATA_KEYS = {
    "content",
    "text",
    "memory",
    "new_content",
    "lost_text",
    "query",
    "token",
    "api_key",
}
MAX_METADATA_STRING_LENGTH = 500
MAX_TARGET_ID_LENGTH = 255

audit_logger = logging.getLogger("minne.audit")


def _normalize_key(key: str) -> str:
    return key.strip().lower().replace("-", "_")


def _metadata_key_forbidden(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized in FORBIDDEN_METADATA_KEYS:
        return True
    for token in FORBIDDEN_METADATA_KEYS:
        if token in normalized:
            return True
    return False


def _validate_metadata_value(value: Any, path: str = "") -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError("metadata keys must be strings")
            if _metadata_key_forbidden(key):
                raise ValueError(f"metadata key '{key}' is not allowed")
            next_path = f"{path}.{key}" if path else key
            _validate_metadata_value(item, next_path)
        return
    if isinstance(value, list):
        for item in value:
            _validate_metadata_value(item, path)
        return
    if isinstance(value, str) and len(value) > MAX_METADATA_STRING_LENGTH:
        raise ValueError(f"metadata value too long at '{path or 'value'}'")


def _coerce_target_ids(target_ids: Any) -> list[str]:
    if not isinstance(target_ids, (list, tuple)):
        raise ValueError("target_ids must be a list")
    coerced: list[str] = []
    for item in target_ids:
        if not isinstance(item, str):
            raise ValueError("target_ids must contain strings")
        coerced.append(item[:MAX_TARGET_ID_LENGTH])
    return coerced


def log_event(
    *,
    event_type: str,
    user_key: str,
    target_ids: list[str],
    reason: Optional[str] = None,
    request_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> dict:
    """
    Emit an audit event and return the record that was logged.
    """
    if event_type not in ALLOWED_EVENT_TYPES:
        raise ValueError(f"unknown audit event type: {event_type}")
    if not user_key:
        raise ValueError("user_key is required")

    safe_target_ids = _coerce_target_ids(target_ids)
    if metadata is not None:
        if not isinstance(metadata, dict):
            raise ValueError("metadata must be a dict")
        _validate_metadata_value(metadata)
    if reason is not None and len(reason) > MAX_METADATA_STRING_LENGTH:
        reason = reason[:MAX_METADATA_STRING_LENGTH]

    event = {
        "created_at": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "user_key": user_key,
        "target_ids": safe_target_ids,
        "count_affected": len(safe_target_ids),
        "reason": reason,
        "request_id": request_id,
        "metadata": metadata or {},
    }
    level = logging.ERROR if event_type == EVENT_MEMORY_UPDATE_DATA_LOSS else logging.INFO
    audit_logger.log(level, event_type, extra={"audit": event})
    return event


def record_event(**kwargs) -> Optional[dict]:
    """
    Emit an audit event from inside a workflow.

    A rejected event is logged and dropped; it never replaces the outcome of
    the operation being audited.
    """
    try:
        return log_event(**kwargs)
    except ValueError as exc:
        audit_logger.warning(
            "audit_event_rejected",
            extra={"event_type": kwargs.get("event_type"), "error": str(exc)},
        )
        return None
