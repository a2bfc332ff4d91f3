"""
Plain-text rendering of tool results.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from core.models import CategorySummary, DeleteReport, MemoryRecord, UpdateResult


def percent(score: Optional[float]) -> str:
    return f"{round((score or 0.0) * 100)}%"


def relative_day(moment: Optional[datetime], now: Optional[datetime] = None) -> Optional[str]:
    if moment is None:
        return None
    now = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    days = (now.date() - moment.astimezone(now.tzinfo or timezone.utc).date()).days
    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 30:
        return f"{days} days ago"
    return moment.date().isoformat()


def _record_line(index: int, record: MemoryRecord, now: Optional[datetime]) -> str:
    parts = [f"{index}. {record.text}", f"   Relevance: {percent(record.score)}"]
    if record.categories:
        parts.append(f"   Categories: {', '.join(record.categories)}")
    when = relative_day(record.last_activity, now)
    if when:
        parts.append(f"   Updated: {when}")
    parts.append(f"   ID: {record.id}")
    return "\n".join(parts)


def format_results(
    heading: str,
    records: list[MemoryRecord],
    now: Optional[datetime] = None,
) -> str:
    blocks = [_record_line(index, record, now) for index, record in enumerate(records, start=1)]
    return heading + "\n\n" + "\n\n".join(blocks)


def format_context(topic: str, records: list[MemoryRecord], now: Optional[datetime] = None) -> str:
    lines = [f"Relevant context for \"{topic}\" ({len(records)} memories):", ""]
    for record in records:
        when = relative_day(record.last_activity, now)
        suffix = f" [{percent(record.score)}" + (f", {when}]" if when else "]")
        lines.append(f"- {record.text}{suffix} (ID: {record.id})")
    return "\n".join(lines)


def format_categories(summary: CategorySummary) -> str:
    if not summary.categories:
        return (
            f"No categories found in the {summary.sampled} most recent memories "
            f"(sample limit {summary.sample_limit})."
        )
    lines = [f"Memory categories ({len(summary.categories)} found):", ""]
    for index, item in enumerate(summary.categories, start=1):
        noun = "memory" if item.count == 1 else "memories"
        lines.append(f"{index}. {item.category}: {item.count} {noun}")
    lines.append("")
    if summary.uncategorized_count:
        lines.append(f"Uncategorized: {summary.uncategorized_count}")
    lines.append(
        f"Approximate counts based on a sample of {summary.sampled} memories "
        f"(sample limit {summary.sample_limit}); older memories may not be reflected."
    )
    return "\n".join(lines)


def format_update(result: UpdateResult) -> str:
    lines = [
        "Memory updated.",
        f"Previous ID: {result.previous_id}",
        f"New ID: {result.new_id or 'pending (assigned by the memory service)'}",
        f"Originally created: {result.created_at}",
        f"Last updated: {result.last_updated}",
        f"Reason: {result.update_reason}",
        f"Content: {result.stored_text}",
    ]
    return "\n".join(lines)


def format_delete_report(report: DeleteReport) -> str:
    total = len(report.outcomes)
    lines = [f"Deleted {len(report.deleted)} of {total} memories."]
    for outcome in report.outcomes:
        if outcome.ok:
            lines.append(f"- {outcome.memory_id}: deleted")
        else:
            lines.append(f"- {outcome.memory_id}: failed ({outcome.error_kind}) {outcome.detail or ''}".rstrip())
    return "\n".join(lines)
