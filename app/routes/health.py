"""
Health and dependency endpoints.
"""

from __future__ import annotations

import os

from fastapi import APIRouter, HTTPException

import core.config as config
from core.mcp import tool_inventory_status
from core.store import store_status


router = APIRouter()


def _check_store_health() -> dict:
    status = store_status()
    if not status.get("configured"):
        return {"ok": False, "error": "store_not_configured", **status}
    breaker = status.get("circuit_breaker", {})
    return {"ok": not breaker.get("open"), **status}


@router.get("/health")
async def health():
    """Health check endpoint."""
    store_health = _check_store_health()
    if not store_health.get("configured"):
        raise HTTPException(status_code=503, detail={"memory_store": store_health})

    return {
        "status": "healthy" if store_health["ok"] else "degraded",
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "instance_id": os.environ.get("MINNE_INSTANCE_ID", "minne-1"),
        "app_context": config.APP_CONTEXT_TAG,
        "auth_required": config.REQUIRE_MCP_AUTH,
        "memory_store": store_health,
        "thresholds": {
            "search": config.SEARCH_MIN_SCORE,
            "context": config.CONTEXT_MIN_SCORE,
            "category": config.CATEGORY_MIN_SCORE,
        },
    }


@router.get("/health/tools")
async def health_tools():
    """Tool inventory health check."""
    tool_inventory = await tool_inventory_status()
    if tool_inventory.get("tool_count", 0) == 0 or tool_inventory.get("missing"):
        raise HTTPException(status_code=503, detail={"tool_inventory": tool_inventory})

    return {
        "status": "healthy",
        "service": config.SERVICE_NAME,
        "tool_inventory": tool_inventory,
    }
