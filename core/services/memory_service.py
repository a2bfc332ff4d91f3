"""
Memory tool services: identity check, store call, normalization, text result.

Every public function here is wrapped by `service_tool`, which turns each
failure kind into a descriptive text result. The MCP transport has a single
text result type, so nothing propagates to it as an exception.
"""

from __future__ import annotations

from functools import wraps
from typing import Awaitable, Callable, Optional

import core.config as config
from core.audit import EVENT_MEMORY_DELETED, record_event
from core.context import RequestContext, resolve_identity
from core.errors import (
    DeleteFailed,
    MemoryNotFound,
    RecreateFailed,
    StoreTimeout,
    StoreUnavailable,
    Unauthenticated,
    ValidationIssue,
)
from core.models import DeleteOutcome, DeleteReport
from core.services.categories import has_category, normalize_category, summarize_categories
from core.services.formatting import (
    format_categories,
    format_context,
    format_delete_report,
    format_results,
    format_update,
    percent,
)
from core.services.memory_shared import (
    build_messages,
    build_write_metadata,
    logger,
    owned_by,
    utc_now,
)
from core.services.normalizer import (
    extract_memory_ids,
    normalize_add_response,
    normalize_record,
    normalize_records,
)
from core.services.relevance import (
    RelevancePolicy,
    category_policy,
    context_policy,
    filter_and_rank,
    search_policy,
)
from core.services.update_engine import replace_memory
from core.store import get_store
from core.validators import (
    validate_limit as _validate_limit,
    validate_memory_ids as _validate_memory_ids,
    validate_optional_text as _validate_optional_text,
    validate_required_text as _validate_required_text,
)

NOT_AUTHENTICATED_MESSAGE = "Not authenticated: sign in to use memory tools."

ToolFn = Callable[..., Awaitable[str]]


# =============================================================================
# Error handling
# =============================================================================

def _log_validation_issue(tool_name: str, exc: ValidationIssue, warn: bool = False) -> None:
    payload = {
        "tool": tool_name,
        "field": exc.field,
        "error_type": exc.error_type,
        "detail": str(exc),
    }
    if warn:
        logger.warning("tool_validation_error", extra=payload)
    else:
        logger.info("tool_validation_error", extra=payload)


def _data_loss_text(exc: RecreateFailed) -> str:
    return (
        f"DATA LOSS: memory {exc.memory_id} was deleted but the updated version could not be saved "
        f"({type(exc.cause).__name__ if exc.cause else 'unknown error'}). "
        "The previous content is no longer stored. Lost content:\n"
        f"{exc.lost_text}\n"
        "Re-add it with addMemory to restore it."
    )


def _tool_error_handler(fn: ToolFn) -> ToolFn:
    @wraps(fn)
    async def wrapper(*args, **kwargs) -> str:
        tool_name = fn.__name__
        try:
            return await fn(*args, **kwargs)
        except Unauthenticated:
            logger.info("tool_unauthenticated", extra={"tool": tool_name})
            return NOT_AUTHENTICATED_MESSAGE
        except ValidationIssue as exc:
            _log_validation_issue(tool_name, exc, warn=False)
            return f"Invalid input for {exc.field}: {exc}"
        except RecreateFailed as exc:
            logger.error("tool_update_data_loss", extra={"tool": tool_name, "memory_id": exc.memory_id})
            return _data_loss_text(exc)
        except DeleteFailed as exc:
            logger.warning(
                "tool_update_delete_failed",
                extra={"tool": tool_name, "memory_id": exc.memory_id, "verified": exc.verified},
            )
            if exc.verified:
                return f"Update failed at the delete step: {exc}. Nothing was changed or lost."
            return (
                f"Update failed at the delete step: {exc}. The original may or may not still exist; "
                "search for it before retrying."
            )
        except MemoryNotFound as exc:
            return f"Memory {exc.memory_id} not found."
        except StoreTimeout as exc:
            logger.warning("tool_store_timeout", extra={"tool": tool_name, "operation": exc.operation})
            return f"The memory service timed out during {exc.operation}. Please try again."
        except StoreUnavailable as exc:
            logger.warning("tool_store_unavailable", extra={"tool": tool_name, "operation": exc.operation})
            return f"The memory service is unavailable ({exc}). Please try again later."
        except ValueError as exc:
            issue = ValidationIssue(str(exc), field="unknown", error_type="value_error")
            _log_validation_issue(tool_name, issue, warn=True)
            return f"Invalid input: {issue}"
        except Exception:
            logger.exception("tool_unexpected_error", extra={"tool": tool_name})
            return f"Unexpected error while running {tool_name}. The error has been logged."
    return wrapper


def service_tool(fn: ToolFn) -> ToolFn:
    return _tool_error_handler(fn)


def _no_results_text(subject: str, policy: RelevancePolicy) -> str:
    return f"No relevant memories found for {subject} (minimum relevance {percent(policy.min_score)})."


def _fetch_size(limit: int) -> int:
    return min(limit * max(1, config.SEARCH_FETCH_MULTIPLIER), config.MAX_RESULT_LIMIT * 2)


# =============================================================================
# Tools
# =============================================================================

@service_tool
async def add_memory(content: str, context: Optional[RequestContext] = None) -> str:
    """
    Store a new memory for the caller.

    Returns the text the memory service extracted, or a fallback notice when
    its response carries no readable text.
    """
    _validate_required_text(content, "content", config.MAX_TEXT_LENGTH)
    identity = resolve_identity(context)
    store = get_store()

    raw = await store.add(
        build_messages(content),
        user_id=identity.user_key,
        metadata=build_write_metadata(utc_now(), identity.user_key),
    )
    text = normalize_add_response(raw)
    ids = extract_memory_ids(raw)
    logger.info("memory_added", extra={"memory_ids": ids})
    if ids:
        return f"{text}\nID: {', '.join(ids)}"
    return text


@service_tool
async def search_memories(
    query: str,
    limit: Optional[int] = None,
    context: Optional[RequestContext] = None,
) -> str:
    """Broad semantic search (tolerant threshold)."""
    limit = limit or config.SEARCH_DEFAULT_LIMIT
    _validate_required_text(query, "query", config.MAX_QUERY_LENGTH)
    _validate_limit(limit, "limit", config.MAX_RESULT_LIMIT)
    identity = resolve_identity(context)
    store = get_store()

    policy = search_policy(limit)
    raw = await store.search(query, user_id=identity.user_key, top_k=_fetch_size(limit))
    records = normalize_records(raw)
    ranked = filter_and_rank(records, policy)
    logger.info(
        "memory_search",
        extra={"returned": len(records), "admitted": len(ranked), "min_score": policy.min_score},
    )
    if not ranked:
        return _no_results_text(f'"{query}"', policy)
    return format_results(f'Found {len(ranked)} memories for "{query}":', ranked)


@service_tool
async def search_by_category(
    category: str,
    query: Optional[str] = None,
    limit: Optional[int] = None,
    context: Optional[RequestContext] = None,
) -> str:
    """Topical search restricted to one category (lowest threshold)."""
    limit = limit or config.SEARCH_DEFAULT_LIMIT
    _validate_required_text(category, "category", config.MAX_SHORT_TEXT_LENGTH)
    _validate_optional_text(query, "query", config.MAX_QUERY_LENGTH)
    _validate_limit(limit, "limit", config.MAX_RESULT_LIMIT)
    identity = resolve_identity(context)
    store = get_store()

    policy = category_policy(limit)
    search_text = query.strip() if query and query.strip() else category
    raw = await store.search(
        search_text,
        user_id=identity.user_key,
        filters={"categories": {"contains": normalize_category(category)}},
        top_k=_fetch_size(limit),
    )
    in_category = [record for record in normalize_records(raw) if has_category(record, category)]
    ranked = filter_and_rank(in_category, policy)
    if not ranked:
        return _no_results_text(f'category "{category}"', policy)
    return format_results(f'Found {len(ranked)} memories in category "{category}":', ranked)


@service_tool
async def get_memory_categories(
    sample_size: Optional[int] = None,
    context: Optional[RequestContext] = None,
) -> str:
    """
    Rank the caller's categories by frequency.

    Counts come from the most recent `sample_size` memories the service
    returns, so they are an approximation rather than a full index.
    """
    sample_size = sample_size or config.CATEGORY_SAMPLE_SIZE
    _validate_limit(sample_size, "sample_size", config.CATEGORY_SAMPLE_MAX)
    identity = resolve_identity(context)
    store = get_store()

    raw = await store.list_memories(user_id=identity.user_key, limit=sample_size)
    records = normalize_records(raw)[:sample_size]
    summary = summarize_categories(records, sample_limit=sample_size)
    return format_categories(summary)


@service_tool
async def get_relevant_context(
    topic: str,
    limit: Optional[int] = None,
    context: Optional[RequestContext] = None,
) -> str:
    """Precision-first retrieval of what an agent should already know about a topic."""
    limit = limit or config.CONTEXT_DEFAULT_LIMIT
    _validate_required_text(topic, "topic", config.MAX_QUERY_LENGTH)
    _validate_limit(limit, "limit", config.MAX_RESULT_LIMIT)
    identity = resolve_identity(context)
    store = get_store()

    policy = context_policy(limit)
    raw = await store.search(topic, user_id=identity.user_key, top_k=_fetch_size(limit))
    ranked = filter_and_rank(normalize_records(raw), policy)
    if not ranked:
        return _no_results_text(f'"{topic}"', policy)
    return format_context(topic, ranked)


@service_tool
async def update_memory(
    memory_id: str,
    new_content: str,
    reason: Optional[str] = None,
    context: Optional[RequestContext] = None,
) -> str:
    """
    Replace a memory's content (delete, then recreate).

    Not atomic: if recreating fails after the delete, the old content is gone
    and the result says so explicitly.
    """
    _validate_required_text(memory_id, "memory_id", config.MAX_SHORT_TEXT_LENGTH)
    _validate_required_text(new_content, "new_content", config.MAX_TEXT_LENGTH)
    _validate_optional_text(reason, "reason", config.MAX_SHORT_TEXT_LENGTH)
    identity = resolve_identity(context)
    store = get_store()

    result = await replace_memory(store, identity, memory_id.strip(), new_content, reason)
    return format_update(result)


async def _delete_one(store, identity, memory_id: str) -> DeleteOutcome:
    try:
        raw = await store.get(memory_id)
        record = normalize_record(raw) if raw is not None else None
        if record is None or not owned_by(record, identity):
            return DeleteOutcome(memory_id, ok=False, error_kind="not_found", detail="no such memory")
        await store.delete(memory_id)
    except MemoryNotFound:
        return DeleteOutcome(memory_id, ok=False, error_kind="not_found", detail="no such memory")
    except StoreTimeout as exc:
        return DeleteOutcome(memory_id, ok=False, error_kind="timeout", detail=str(exc))
    except StoreUnavailable as exc:
        return DeleteOutcome(memory_id, ok=False, error_kind="store_unavailable", detail=str(exc))
    except Exception as exc:
        logger.exception("memory_delete_unexpected_error", extra={"memory_id": memory_id})
        return DeleteOutcome(memory_id, ok=False, error_kind="error", detail=type(exc).__name__)
    return DeleteOutcome(memory_id, ok=True)


@service_tool
async def delete_memories(
    memory_ids: list[str],
    context: Optional[RequestContext] = None,
) -> str:
    """
    Delete a batch of memories, one at a time.

    Each id succeeds or fails on its own; partial success is a normal result.
    """
    ids = _validate_memory_ids(memory_ids, "memory_ids", config.MAX_BATCH_DELETE, config.MAX_SHORT_TEXT_LENGTH)
    identity = resolve_identity(context)
    store = get_store()

    report = DeleteReport()
    for memory_id in ids:
        report.outcomes.append(await _delete_one(store, identity, memory_id))

    if report.deleted:
        record_event(
            event_type=EVENT_MEMORY_DELETED,
            user_key=identity.user_key,
            target_ids=[outcome.memory_id for outcome in report.deleted],
        )
    if report.failed:
        logger.warning(
            "memory_delete_partial" if report.partial else "memory_delete_failed",
            extra={"failed": len(report.failed), "deleted": len(report.deleted)},
        )
    return format_delete_report(report)
