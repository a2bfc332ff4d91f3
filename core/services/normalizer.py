"""
Normalization of raw memory store responses.

The store's add/search/get payloads are not shape-stable across endpoints and
API versions. Everything downstream works against `MemoryRecord`; nothing in
this module raises on malformed input.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Optional

from core.models import MemoryRecord

ADD_FALLBACK_NOTICE = "Memory processed (no specific text returned by API)."

_RECORD_LIST_KEYS = ("results", "memories", "data")
_RECORD_TEXT_KEYS = ("memory", "text", "content")


def _text_of(item: Any) -> Optional[str]:
    if not isinstance(item, dict):
        return None
    for key in ("text", "memory"):
        value = item.get(key)
        if isinstance(value, str):
            return value
    return None


def _nested_data_memory(item: Any) -> Optional[str]:
    if not isinstance(item, dict):
        return None
    data = item.get("data")
    if isinstance(data, dict) and isinstance(data.get("memory"), str):
        return data["memory"]
    return None


def _extract_add_texts(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return [raw]

    if isinstance(raw, list):
        if raw and _nested_data_memory(raw[0]) is not None:
            return [text for text in (_nested_data_memory(item) for item in raw) if text is not None]
        if raw and all(isinstance(item, str) for item in raw):
            return list(raw)
        return [text for text in (_text_of(item) for item in raw) if text is not None]

    if isinstance(raw, dict):
        texts: list[str] = []
        memories = raw.get("memories")
        if isinstance(memories, list):
            texts = [text for text in (_text_of(item) for item in memories) if text is not None]
        if not texts:
            for key in ("message", "text"):
                if isinstance(raw.get(key), str):
                    return [raw[key]]
        return texts

    return []


def normalize_add_response(raw: Any) -> str:
    """Extract the human-readable text of an add response, or the fallback notice."""
    texts = [text for text in _extract_add_texts(raw) if text.strip()]
    if not texts:
        return ADD_FALLBACK_NOTICE
    return "; ".join(texts)


def extract_memory_ids(raw: Any) -> list[str]:
    """Ids of memories created by an add call, in response order."""
    if isinstance(raw, dict):
        items = raw.get("results") or raw.get("memories") or [raw]
    elif isinstance(raw, list):
        items = raw
    else:
        return []
    ids = []
    for item in items:
        if isinstance(item, dict):
            memory_id = _coerce_id(item.get("id"))
            if memory_id:
                ids.append(memory_id)
    return ids


def _coerce_id(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, int):
        return str(value)
    return None


def _coerce_score(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    score = float(value)
    if not math.isfinite(score):
        return None
    return score


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def _coerce_categories(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


def normalize_record(raw: Any) -> Optional[MemoryRecord]:
    """Build a MemoryRecord from a single raw store object, or None if unusable."""
    if not isinstance(raw, dict):
        return None
    memory_id = _coerce_id(raw.get("id"))
    text = None
    for key in _RECORD_TEXT_KEYS:
        if isinstance(raw.get(key), str):
            text = raw[key]
            break
    if text is None:
        text = _nested_data_memory(raw)
    if memory_id is None or text is None:
        return None

    metadata = raw.get("metadata")
    user_id = raw.get("user_id")
    return MemoryRecord(
        id=memory_id,
        text=text,
        score=_coerce_score(raw.get("score")),
        categories=_coerce_categories(raw.get("categories")),
        metadata=dict(metadata) if isinstance(metadata, dict) else {},
        user_id=user_id if isinstance(user_id, str) else None,
        created_at=parse_timestamp(raw.get("created_at")),
        updated_at=parse_timestamp(raw.get("updated_at")),
    )


def normalize_records(raw: Any) -> list[MemoryRecord]:
    """Convert any raw search/list response into records, skipping unusable entries."""
    items: Any = raw
    if isinstance(raw, dict):
        for key in _RECORD_LIST_KEYS:
            if isinstance(raw.get(key), list):
                items = raw[key]
                break
        else:
            items = [raw]
    if not isinstance(items, list):
        return []
    records = []
    for item in items:
        record = normalize_record(item)
        if record is not None:
            records.append(record)
    return records
