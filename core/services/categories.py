"""
Category index derived from a bounded sample of a user's memories.

Counts are an approximation over whatever the store returned for the sample,
not an exhaustive index.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from core.models import CategoryCount, CategorySummary, MemoryRecord
from core.services.relevance import belongs_to_app

_WHITESPACE = re.compile(r"\s+")


def normalize_category(label: str) -> str:
    return _WHITESPACE.sub(" ", label.strip()).casefold()


def record_categories(record: MemoryRecord) -> list[str]:
    """Normalized, de-duplicated categories of one record in store order."""
    seen: list[str] = []
    for label in record.categories:
        normalized = normalize_category(label)
        if normalized and normalized not in seen:
            seen.append(normalized)
    return seen


def aggregate_categories(records: Iterable[MemoryRecord]) -> list[CategoryCount]:
    counts: dict[str, int] = {}
    for record in records:
        for category in record_categories(record):
            counts[category] = counts.get(category, 0) + 1
    # dicts keep insertion order and sorted() is stable: ties stay first-seen
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [CategoryCount(category=name, count=count) for name, count in ranked]


def summarize_categories(
    records: Iterable[MemoryRecord],
    sample_limit: int,
    app_context: Optional[str] = None,
) -> CategorySummary:
    owned = [record for record in records if belongs_to_app(record, app_context)]
    uncategorized = sum(1 for record in owned if not record_categories(record))
    return CategorySummary(
        categories=aggregate_categories(owned),
        sampled=len(owned),
        sample_limit=sample_limit,
        uncategorized_count=uncategorized,
    )


def has_category(record: MemoryRecord, category: str) -> bool:
    return normalize_category(category) in record_categories(record)
