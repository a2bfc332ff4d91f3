"""
Shared validation helpers for memory tool arguments.
"""

from __future__ import annotations

from typing import Optional, Sequence

from core.errors import ValidationIssue


def validate_required_text(value: str, field: str, max_len: int) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationIssue(f"{field} must be a non-empty string", field=field, error_type="required")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_optional_text(value: Optional[str], field: str, max_len: int) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationIssue(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_limit(value: int, field: str, max_value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationIssue(f"{field} must be an integer", field=field, error_type="invalid_type")
    if value <= 0 or value > max_value:
        raise ValidationIssue(f"{field} must be between 1 and {max_value}", field=field, error_type="out_of_range")


def validate_memory_ids(
    values: Sequence[str],
    field: str,
    max_items: int,
    max_item_length: int,
) -> list[str]:
    """Validate a batch of memory ids and return them stripped and de-duplicated in order."""
    if not isinstance(values, (list, tuple)) or not values:
        raise ValidationIssue(f"{field} must be a non-empty list", field=field, error_type="required")
    if len(values) > max_items:
        raise ValidationIssue(f"{field} exceeds max items {max_items}", field=field, error_type="max_items")
    cleaned: list[str] = []
    for item in values:
        validate_required_text(item, field, max_item_length)
        item = item.strip()
        if item not in cleaned:
            cleaned.append(item)
    return cleaned
