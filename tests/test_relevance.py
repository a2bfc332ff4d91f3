import pytest

import core.config as config
from core.models import MemoryRecord
from core.services.relevance import (
    RelevancePolicy,
    category_policy,
    context_policy,
    filter_and_rank,
    search_policy,
)


def _record(memory_id, score, app_context="minne_worker"):
    metadata = {"app_context": app_context} if app_context else {}
    return MemoryRecord(id=memory_id, text=f"text {memory_id}", score=score, metadata=metadata)


def test_included_iff_tag_matches_and_score_meets_threshold():
    records = [
        _record("keep-high", 0.9),
        _record("keep-edge", 0.5),
        _record("low", 0.49),
        _record("foreign", 0.99, app_context="other_app"),
        _record("untagged", 0.95, app_context=None),
        _record("no-score", None),
    ]
    ranked = filter_and_rank(records, RelevancePolicy(min_score=0.5, max_count=10))
    assert [record.id for record in ranked] == ["keep-high", "keep-edge"]


def test_sorted_descending_with_stable_ties():
    records = [
        _record("a", 0.6),
        _record("b", 0.8),
        _record("c", 0.6),
        _record("d", 0.95),
    ]
    ranked = filter_and_rank(records, RelevancePolicy(min_score=0.0, max_count=10))
    assert [record.id for record in ranked] == ["d", "b", "a", "c"]


def test_truncated_to_max_count():
    records = [_record(str(i), 0.5 + i / 100) for i in range(10)]
    ranked = filter_and_rank(records, RelevancePolicy(min_score=0.0, max_count=3))
    assert [record.id for record in ranked] == ["9", "8", "7"]


def test_boolean_score_is_not_numeric():
    record = MemoryRecord(id="x", text="t", score=True, metadata={"app_context": "minne_worker"})
    assert filter_and_rank([record], RelevancePolicy(min_score=0.0, max_count=5)) == []


def test_empty_input_is_not_an_error():
    assert filter_and_rank([], RelevancePolicy(min_score=0.5, max_count=5)) == []


def test_explicit_app_context_override():
    records = [_record("mine", 0.9, app_context="custom"), _record("default", 0.9)]
    ranked = filter_and_rank(records, RelevancePolicy(min_score=0.1, max_count=5), app_context="custom")
    assert [record.id for record in ranked] == ["mine"]


def test_operation_thresholds_are_configurable(monkeypatch):
    monkeypatch.setattr(config, "SEARCH_MIN_SCORE", 0.42)
    monkeypatch.setattr(config, "CONTEXT_MIN_SCORE", 0.81)
    monkeypatch.setattr(config, "CATEGORY_MIN_SCORE", 0.2)
    assert search_policy(4) == RelevancePolicy(0.42, 4)
    assert context_policy().min_score == pytest.approx(0.81)
    assert category_policy().min_score == pytest.approx(0.2)


def test_default_thresholds_order_precision_over_recall():
    assert config.CATEGORY_MIN_SCORE <= config.SEARCH_MIN_SCORE <= config.CONTEXT_MIN_SCORE
