"""Lazy component initialization for the MCP server."""

import structlog

logger = structlog.get_logger()

_components = None


def get_components() -> dict:
    """Lazy singleton wrapping cli.utils.get_components().

    The server is one long-lived process, so the scope manager (and its open
    store handles) is shared by every tool call.
    """
    global _components
    if _components is None:
        logger.info("mcp_bootstrap_init")
        from cli.utils import get_components as _get

        _components = _get()
    return _components
