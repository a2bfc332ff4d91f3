"""
Standalone FastAPI app wiring for the Minne memory gateway.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

import core.config as config
from core.mcp import (
    mcp_sse_app,
    mcp_stream_app,
    MCPRouteNormalizerASGI,
)
from core.store import close_store, init_store
from app.middleware import configure_middleware
from app.routes.health import router as health_router
from app.routes.root import router as root_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    config.validate_and_prepare_config()
    init_store()
    try:
        async with mcp_stream_app.lifespan(mcp_stream_app):
            yield
    finally:
        await close_store()


app = FastAPI(title=config.SERVICE_NAME, redirect_slashes=False, lifespan=lifespan)
configure_middleware(app)

# Health and root endpoints
app.include_router(health_router)
app.include_router(root_router)

# Mount MCP apps behind the OAuth identity middleware
app.mount("/mcp", mcp_stream_app)
app.mount("/sse", mcp_sse_app)


# =============================================================================
# ASGI Application (module-level for production deployment)
# =============================================================================

asgi_app = MCPRouteNormalizerASGI(app)
