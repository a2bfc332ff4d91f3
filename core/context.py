"""
Request-scoped context objects for core services.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import contextvars

from core.errors import Unauthenticated


@dataclass(frozen=True)
class Identity:
    user_key: str


@dataclass(frozen=True)
class AuthContext:
    user_key: Optional[str] = None
    actor: Optional[str] = None


@dataclass(frozen=True)
class RequestContext:
    auth: AuthContext
    request_id: Optional[str] = None
    source: Optional[str] = None


_CURRENT_REQUEST_CONTEXT: contextvars.ContextVar[Optional["RequestContext"]] = contextvars.ContextVar(
    "minne_request_context",
    default=None,
)


def get_current_request_context() -> Optional["RequestContext"]:
    return _CURRENT_REQUEST_CONTEXT.get()


def set_current_request_context(context: Optional["RequestContext"]) -> contextvars.Token:
    return _CURRENT_REQUEST_CONTEXT.set(context)


def reset_current_request_context(token: contextvars.Token) -> None:
    _CURRENT_REQUEST_CONTEXT.reset(token)


def anonymous_context(source: Optional[str] = None) -> RequestContext:
    return RequestContext(auth=AuthContext(actor="anonymous"), source=source)


def resolve_identity(context: Optional["RequestContext"]) -> Identity:
    """Return the caller identity or raise Unauthenticated.

    Called once per tool invocation, before any store call is made.
    """
    if context is None or context.auth is None:
        raise Unauthenticated("no request context")
    user_key = context.auth.user_key
    if not isinstance(user_key, str) or not user_key.strip():
        raise Unauthenticated("no user key in request context")
    return Identity(user_key=user_key.strip())


__all__ = [
    "Identity",
    "AuthContext",
    "RequestContext",
    "get_current_request_context",
    "set_current_request_context",
    "reset_current_request_context",
    "anonymous_context",
    "resolve_identity",
]
