"""
Relevance filtering and ranking of search results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import core.config as config
from core.models import MemoryRecord


@dataclass(frozen=True)
class RelevancePolicy:
    min_score: float
    max_count: int
    sort_descending: bool = True


def search_policy(limit: Optional[int] = None) -> RelevancePolicy:
    return RelevancePolicy(config.SEARCH_MIN_SCORE, limit or config.SEARCH_DEFAULT_LIMIT)


def context_policy(limit: Optional[int] = None) -> RelevancePolicy:
    return RelevancePolicy(config.CONTEXT_MIN_SCORE, limit or config.CONTEXT_DEFAULT_LIMIT)


def category_policy(limit: Optional[int] = None) -> RelevancePolicy:
    return RelevancePolicy(config.CATEGORY_MIN_SCORE, limit or config.SEARCH_DEFAULT_LIMIT)


def belongs_to_app(record: MemoryRecord, app_context: Optional[str] = None) -> bool:
    return record.app_context == (app_context or config.APP_CONTEXT_TAG)


def is_admissible(record: MemoryRecord, min_score: float, app_context: Optional[str] = None) -> bool:
    if not belongs_to_app(record, app_context):
        return False
    score = record.score
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return False
    return score >= min_score


def filter_and_rank(
    results: Iterable[MemoryRecord],
    policy: RelevancePolicy,
    app_context: Optional[str] = None,
) -> list[MemoryRecord]:
    """Keep this gateway's results at or above the threshold, best first.

    `sorted` is stable, so equal scores keep the store's order.
    """
    admissible = [record for record in results if is_admissible(record, policy.min_score, app_context)]
    if policy.sort_descending:
        admissible = sorted(admissible, key=lambda record: record.score, reverse=True)
    if policy.max_count <= 0:
        return []
    return admissible[: policy.max_count]
