"""
MCP server wiring and tool registration.
"""

from __future__ import annotations

from typing import Annotated, Any, Callable, Optional

from fastmcp import FastMCP
from pydantic import Field

import core.config as config
from core.services import memory_service
from core.mcp.auth_middleware import get_current_context, MCPAuthMiddleware

READ_ONLY_TOOL_ANNOTATIONS = {"readOnlyHint": True}
DESTRUCTIVE_TOOL_ANNOTATIONS = {"destructiveHint": True}

mcp = FastMCP(config.SERVICE_NAME)

_REGISTERED_TOOLS: list[tuple[Callable[..., Any], tuple[Any, ...], dict[str, Any]]] = []


def mcp_tool(*args, **kwargs):
    """Register a tool with FastMCP and keep a local registry for inventory checks."""
    def decorator(fn: Callable[..., Any]):
        _REGISTERED_TOOLS.append((fn, args, kwargs))
        mcp.tool(*args, **kwargs)(fn)
        return fn
    return decorator


def expected_tool_names() -> list[str]:
    return sorted(kwargs.get("name", fn.__name__) for fn, _, kwargs in _REGISTERED_TOOLS)


async def tool_inventory_status() -> dict:
    """Return tool inventory details."""
    tools = await mcp.get_tools()
    tool_names = sorted(tools.keys())
    missing = sorted(set(expected_tool_names()) - set(tool_names))
    if missing:
        config.logger.warning("tool_inventory_incomplete", extra={"missing": missing})
    return {
        "tool_count": len(tool_names),
        "tools": tool_names,
        "missing": missing,
        "retry_after_seconds": config.TOOL_INVENTORY_RETRY_SECONDS if not tool_names else None,
    }


@mcp_tool(name="addMemory")
async def add_memory(
    content: Annotated[
        str,
        Field(description="The fact, preference or note to remember", min_length=1, max_length=config.MAX_TEXT_LENGTH),
    ],
) -> str:
    """Store a new memory for the signed-in user."""
    return await memory_service.add_memory(content=content, context=get_current_context())


@mcp_tool(name="searchMemories", annotations=READ_ONLY_TOOL_ANNOTATIONS)
async def search_memories(
    query: Annotated[str, Field(description="What to look for", min_length=1, max_length=config.MAX_QUERY_LENGTH)],
    limit: Annotated[
        Optional[int],
        Field(description="Maximum number of results", ge=1, le=config.MAX_RESULT_LIMIT),
    ] = None,
) -> str:
    """Search the user's memories by meaning. Results show relevance, categories, age and ID."""
    return await memory_service.search_memories(query=query, limit=limit, context=get_current_context())


@mcp_tool(name="searchByCategory", annotations=READ_ONLY_TOOL_ANNOTATIONS)
async def search_by_category(
    category: Annotated[
        str,
        Field(description="Category name, e.g. preferences", min_length=1, max_length=config.MAX_SHORT_TEXT_LENGTH),
    ],
    query: Annotated[
        Optional[str],
        Field(description="Optional text to narrow the search within the category", max_length=config.MAX_QUERY_LENGTH),
    ] = None,
    limit: Annotated[
        Optional[int],
        Field(description="Maximum number of results", ge=1, le=config.MAX_RESULT_LIMIT),
    ] = None,
) -> str:
    """Find memories the memory service has filed under a category."""
    return await memory_service.search_by_category(
        category=category,
        query=query,
        limit=limit,
        context=get_current_context(),
    )


@mcp_tool(name="getMemoryCategories", annotations=READ_ONLY_TOOL_ANNOTATIONS)
async def get_memory_categories(
    sample_size: Annotated[
        Optional[int],
        Field(description="How many recent memories to analyze", ge=1, le=config.CATEGORY_SAMPLE_MAX),
    ] = None,
) -> str:
    """List the user's memory categories by frequency (approximate, from a sample of recent memories)."""
    return await memory_service.get_memory_categories(sample_size=sample_size, context=get_current_context())


@mcp_tool(name="getRelevantContext", annotations=READ_ONLY_TOOL_ANNOTATIONS)
async def get_relevant_context(
    topic: Annotated[
        str,
        Field(description="The task or topic you need background on", min_length=1, max_length=config.MAX_QUERY_LENGTH),
    ],
    limit: Annotated[
        Optional[int],
        Field(description="Maximum number of memories", ge=1, le=config.MAX_RESULT_LIMIT),
    ] = None,
) -> str:
    """Retrieve only highly relevant memories about a topic, for use before answering."""
    return await memory_service.get_relevant_context(topic=topic, limit=limit, context=get_current_context())


@mcp_tool(name="updateMemory", annotations=DESTRUCTIVE_TOOL_ANNOTATIONS)
async def update_memory(
    memory_id: Annotated[
        str,
        Field(description="ID of the memory to change", min_length=1, max_length=config.MAX_SHORT_TEXT_LENGTH),
    ],
    new_content: Annotated[
        str,
        Field(description="Replacement content", min_length=1, max_length=config.MAX_TEXT_LENGTH),
    ],
    reason: Annotated[
        Optional[str],
        Field(description="Why the memory changed", max_length=config.MAX_SHORT_TEXT_LENGTH),
    ] = None,
) -> str:
    """
    Replace a memory's content. The old memory is deleted and a new one is
    created with a new ID; the original creation date is kept.
    """
    return await memory_service.update_memory(
        memory_id=memory_id,
        new_content=new_content,
        reason=reason,
        context=get_current_context(),
    )


@mcp_tool(name="deleteMemory", annotations=DESTRUCTIVE_TOOL_ANNOTATIONS)
async def delete_memory(
    memory_ids: Annotated[
        list[str],
        Field(description="IDs of the memories to delete", min_length=1, max_length=config.MAX_BATCH_DELETE),
    ],
) -> str:
    """Delete one or more memories. Each ID is reported separately."""
    return await memory_service.delete_memories(memory_ids=memory_ids, context=get_current_context())


mcp_sse_app = MCPAuthMiddleware(mcp.http_app(
    path="/",
    transport="sse",
))

mcp_stream_app = MCPAuthMiddleware(mcp.http_app(
    path="/",
    transport="streamable-http",
    stateless_http=True,
    json_response=True,
))


class MCPRouteNormalizerASGI:
    """Pure ASGI middleware - no response buffering, SSE-safe."""
    def __init__(self, wrapped_app):
        self.wrapped_app = wrapped_app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            path = scope.get("path")
            if path in {"/mcp", "/sse"}:
                scope = dict(scope)
                scope["path"] = f"{path}/"
        await self.wrapped_app(scope, receive, send)
