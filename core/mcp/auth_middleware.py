"""
MCP authentication middleware for per-user isolation.

Extracts the OAuth bearer token from MCP requests, resolves it to a stable
user key through the identity provider's userinfo endpoint, and sets the
request context for the duration of the request using contextvars
(async-safe). The user key is resolved per request and never cached.
"""

from __future__ import annotations

import json
import uuid
from typing import Awaitable, Callable, Optional

import httpx

import core.config as config
from core.context import (
    AuthContext,
    RequestContext,
    anonymous_context,
    get_current_request_context,
    reset_current_request_context,
    set_current_request_context,
)

UserKeyResolver = Callable[[str], Awaitable[Optional[str]]]


class IdentityProviderUnavailable(RuntimeError):
    """Raised when the identity provider cannot be reached."""


def get_current_context() -> RequestContext:
    """Get current request context, or an anonymous one if not set."""
    ctx = get_current_request_context()
    if ctx is not None:
        return ctx
    return anonymous_context()


def extract_bearer_token(headers: dict[str, str]) -> Optional[str]:
    value = headers.get("authorization", "")
    scheme, _, token = value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def resolve_user_key(token: str) -> Optional[str]:
    """Resolve a bearer token to the identity provider's stable user identifier.

    Returns None when the provider rejects the token.
    """
    if not config.OAUTH_USERINFO_URL:
        return None
    timeout = httpx.Timeout(config.OAUTH_TIMEOUT_SECONDS)
    async with httpx.AsyncClient(timeout=timeout) as client:
        try:
            response = await client.get(
                config.OAUTH_USERINFO_URL,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
        except httpx.RequestError as exc:
            raise IdentityProviderUnavailable(type(exc).__name__) from exc

    if response.status_code in {401, 403}:
        return None
    if response.status_code >= 400:
        raise IdentityProviderUnavailable(f"status {response.status_code}")
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    value = data.get(config.OAUTH_USER_KEY_FIELD)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class MCPAuthMiddleware:
    """
    ASGI middleware that resolves the caller identity and sets request context.

    Wraps MCP endpoints to provide per-request authentication and user isolation.
    """

    def __init__(
        self,
        app,
        resolver: Optional[UserKeyResolver] = None,
        require_auth: Optional[bool] = None,
    ):
        self.app = app
        self.resolver = resolver or resolve_user_key
        self.require_auth = config.REQUIRE_MCP_AUTH if require_auth is None else require_auth

    def __getattr__(self, name):
        return getattr(self.app, name)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Extract headers (ASGI headers are bytes tuples)
        headers = {}
        for header_name, header_value in scope.get("headers", []):
            headers[header_name.decode("latin1").lower()] = header_value.decode("latin1")

        request_id = headers.get("x-request-id") or uuid.uuid4().hex
        token = extract_bearer_token(headers)
        user_key = None
        if token:
            try:
                user_key = await self.resolver(token)
            except IdentityProviderUnavailable as exc:
                config.logger.warning(
                    "mcp_auth_provider_unavailable",
                    extra={"error": str(exc), "request_id": request_id},
                )
                await self._send_error(send, 503, "Identity provider unavailable")
                return

        if user_key is None:
            if self.require_auth:
                await self._send_error(send, 401, "Valid OAuth bearer token required")
                return
            req_ctx = RequestContext(
                auth=AuthContext(actor="anonymous"),
                request_id=request_id,
                source="mcp",
            )
        else:
            req_ctx = RequestContext(
                auth=AuthContext(user_key=user_key, actor=user_key),
                request_id=request_id,
                source="mcp",
            )

        ctx_token = set_current_request_context(req_ctx)
        try:
            await self.app(scope, receive, send)
        finally:
            reset_current_request_context(ctx_token)

    async def _send_error(self, send, status_code: int, detail: str):
        """Send JSON error response."""
        body = json.dumps({"error": detail}).encode("utf-8")
        headers = [
            [b"content-type", b"application/json"],
            [b"content-length", str(len(body)).encode("latin1")],
        ]
        if status_code == 401:
            headers.append([b"www-authenticate", b"Bearer"])

        await send({
            "type": "http.response.start",
            "status": status_code,
            "headers": headers,
        })

        await send({
            "type": "http.response.body",
            "body": body,
        })
