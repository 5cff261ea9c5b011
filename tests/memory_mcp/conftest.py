"""Shared fixtures for MCP tests."""

import pytest

import memory_mcp.bootstrap
import memory_mcp.server
from cli.config_models import MemoryConfig
from knowledge.recall import Recall


@pytest.fixture(autouse=True)
def reset_bootstrap():
    """Reset the bootstrap singleton and tool cache between tests."""
    memory_mcp.bootstrap._components = None
    memory_mcp.server._tool_defs = None
    memory_mcp.server._handlers = None
    yield
    memory_mcp.bootstrap._components = None


@pytest.fixture
def components(scopes):
    """Real stores under tmp_path, injected in place of config-driven bootstrap."""
    c = {
        "config": MemoryConfig().to_dict(),
        "config_model": MemoryConfig(),
        "paths": {},
        "scopes": scopes,
        "recall": Recall(scopes),
    }
    memory_mcp.bootstrap._components = c
    return c
