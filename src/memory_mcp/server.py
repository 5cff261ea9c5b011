"""MCP server entry point: stdio transport, JSON-RPC framing by the mcp library."""

import json
import sqlite3
import traceback

import structlog
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from knowledge.errors import KnowledgeError

logger = structlog.get_logger()

SERVER_NAME = "beliefbase"

app = Server(SERVER_NAME)

# Cache tool definitions at module level (populated on first list_tools call)
_tool_defs: list[Tool] | None = None
_handlers: dict | None = None


def _load_tools() -> tuple[list[Tool], dict]:
    """Load tool definitions and handlers from all tool modules."""
    from memory_mcp.tools import admin, recall

    tools = []
    handlers = {}
    for mod in [recall, admin]:
        for name, schema, handler in mod.TOOLS:
            tools.append(Tool(name=name, description=schema["description"], inputSchema=schema))
            handlers[name] = handler
    return tools, handlers


def _text(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, default=str))]


@app.list_tools()
async def list_tools() -> list[Tool]:
    global _tool_defs, _handlers
    if _tool_defs is None:
        _tool_defs, _handlers = _load_tools()
    return _tool_defs


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    global _tool_defs, _handlers
    if _handlers is None:
        _tool_defs, _handlers = _load_tools()

    handler = _handlers.get(name)
    if not handler:
        logger.warning("mcp.unknown_tool", tool=name)
        return _text({"error": f"Unknown tool: {name}", "available_tools": sorted(_handlers)})

    try:
        return _text(handler(arguments or {}))
    except KnowledgeError as e:
        logger.warning("mcp.tool_rejected", tool=name, error=str(e))
        return _text({"error": str(e), "error_type": type(e).__name__})
    except sqlite3.Error as e:
        logger.error("mcp.tool_db_error", tool=name, error=str(e))
        return _text({"error": str(e), "error_type": "DatabaseError"})
    except Exception as e:
        logger.error("mcp.tool_error", tool=name, error=str(e))
        return _text({"error": str(e), "traceback": traceback.format_exc()})


async def run():
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def main():
    import asyncio

    asyncio.run(run())


if __name__ == "__main__":
    main()
