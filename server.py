"""
Minne - per-user memory tools for AI agents.
MCP server backed by a remote mem0 memory store.

Usage:
    python server.py            # HTTP (streamable HTTP at /mcp, SSE at /sse)
    python server.py --stdio    # stdio transport, identity from MINNE_STDIO_USER_KEY
"""

import argparse

import uvicorn

import core.config as config
from core.context import AuthContext, RequestContext, set_current_request_context


def run_stdio() -> None:
    from core.mcp import mcp
    from core.store import init_store

    if not config.STDIO_USER_KEY:
        config.logger.warning("MINNE_STDIO_USER_KEY is not set; memory tools will report not authenticated.")
    else:
        set_current_request_context(RequestContext(
            auth=AuthContext(user_key=config.STDIO_USER_KEY, actor="stdio"),
            source="stdio",
        ))
    init_store()
    mcp.run(transport="stdio")


def main() -> None:
    parser = argparse.ArgumentParser(description="Minne memory MCP server")
    parser.add_argument("--stdio", action="store_true", help="serve MCP over stdio instead of HTTP")
    args = parser.parse_args()

    if args.stdio:
        run_stdio()
        return

    config.logger.info(f"{config.SERVICE_NAME} starting on {config.HOST}:{config.PORT}")
    uvicorn.run("app.main:asgi_app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
