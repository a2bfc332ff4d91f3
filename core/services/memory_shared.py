"""
Shared helpers and configuration for memory services.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import core.config as config
from core.context import Identity
from core.models import (
    META_APP_CONTEXT,
    META_CREATED_AT,
    META_LAST_UPDATED,
    META_PREVIOUS_ID,
    META_UPDATE_REASON,
    META_USER_KEY,
    MemoryRecord,
)

logger = config.logger

STORAGE_PREAMBLE = "Memory storage"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_messages(content: str) -> list[dict]:
    """Message list for the store's add call; the store extracts memories from the user turn."""
    return [
        {"role": "system", "content": STORAGE_PREAMBLE},
        {"role": "user", "content": content},
    ]


def build_write_metadata(
    now: datetime,
    user_key: str,
    created_at: Optional[str] = None,
    update_reason: Optional[str] = None,
    previous_id: Optional[str] = None,
) -> dict:
    metadata = {
        META_APP_CONTEXT: config.APP_CONTEXT_TAG,
        META_USER_KEY: user_key,
        META_CREATED_AT: created_at or now.isoformat(),
        META_LAST_UPDATED: now.isoformat(),
    }
    if update_reason:
        metadata[META_UPDATE_REASON] = update_reason
    if previous_id:
        metadata[META_PREVIOUS_ID] = previous_id
    return metadata


def owned_by(record: MemoryRecord, identity: Identity) -> bool:
    """True only when a fetched record is this gateway's and provably this user's.

    A record with neither a store user_id nor a metadata user key is not owned.
    """
    if record.app_context != config.APP_CONTEXT_TAG:
        return False
    return record.owner_key == identity.user_key
