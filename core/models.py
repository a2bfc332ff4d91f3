"""
Request-scoped memory records and derived views.

Records are transient copies of what the remote store returned; nothing here
is persisted by the gateway.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

# Metadata keys written on every create/recreate
META_APP_CONTEXT = "app_context"
META_CREATED_AT = "created_at"
META_LAST_UPDATED = "last_updated"
META_UPDATE_REASON = "update_reason"
META_PREVIOUS_ID = "previous_id"
META_USER_KEY = "user_key"


@dataclass(frozen=True)
class MemoryRecord:
    id: str
    text: str
    score: Optional[float] = None
    categories: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def app_context(self) -> Optional[str]:
        value = self.metadata.get(META_APP_CONTEXT)
        return value if isinstance(value, str) else None

    @property
    def owner_key(self) -> Optional[str]:
        """The store's user_id, else the user key written into metadata at create time."""
        if self.user_id:
            return self.user_id
        value = self.metadata.get(META_USER_KEY)
        return value if isinstance(value, str) and value else None

    @property
    def previous_id(self) -> Optional[str]:
        value = self.metadata.get(META_PREVIOUS_ID)
        return value if isinstance(value, str) else None

    @property
    def update_reason(self) -> Optional[str]:
        value = self.metadata.get(META_UPDATE_REASON)
        return value if isinstance(value, str) else None

    @property
    def original_created_at(self) -> Optional[str]:
        """Creation time carried forward across recreates, falling back to the store's own."""
        value = self.metadata.get(META_CREATED_AT)
        if isinstance(value, str) and value:
            return value
        if self.created_at is not None:
            return self.created_at.isoformat()
        return None

    @property
    def last_activity(self) -> Optional[datetime]:
        return self.updated_at or self.created_at


@dataclass(frozen=True)
class CategoryCount:
    category: str
    count: int


@dataclass(frozen=True)
class CategorySummary:
    categories: list[CategoryCount]
    sampled: int
    sample_limit: int
    uncategorized_count: int = 0


class UpdateState(str, Enum):
    start = "start"
    fetched = "fetched"
    deleted = "deleted"
    recreated = "recreated"
    failed = "failed"


@dataclass
class UpdateResult:
    previous_id: str
    state: UpdateState = UpdateState.start
    new_id: Optional[str] = None
    created_at: Optional[str] = None
    last_updated: Optional[str] = None
    update_reason: Optional[str] = None
    stored_text: Optional[str] = None


@dataclass(frozen=True)
class DeleteOutcome:
    memory_id: str
    ok: bool
    error_kind: Optional[str] = None
    detail: Optional[str] = None


@dataclass
class DeleteReport:
    outcomes: list[DeleteOutcome] = field(default_factory=list)

    @property
    def deleted(self) -> list[DeleteOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> list[DeleteOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def partial(self) -> bool:
        return bool(self.deleted) and bool(self.failed)
