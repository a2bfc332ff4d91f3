from core.mcp.server import (
    mcp,
    mcp_sse_app,
    mcp_stream_app,
    tool_inventory_status,
    MCPRouteNormalizerASGI,
)

__all__ = [
    "mcp",
    "mcp_sse_app",
    "mcp_stream_app",
    "tool_inventory_status",
    "MCPRouteNormalizerASGI",
]
