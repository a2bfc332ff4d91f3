"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter

import core.config as config


router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "description": "Per-user memory tools for AI agents over MCP",
        "endpoints": {
            "health": "/health",
            "health_tools": "/health/tools",
            "mcp": "/mcp",
            "sse": "/sse",
        },
    }
