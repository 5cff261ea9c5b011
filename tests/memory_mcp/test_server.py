"""Tests for MCP server init and tool listing."""

import json

import pytest

from memory_mcp.server import _load_tools, call_tool, list_tools

EXPECTED_TOOLS = {
    "memory_recall",
    "memory_recall_index",
    "memory_recall_details",
    "memory_explain",
    "memory_changes",
    "memory_conflicts",
    "memory_recall_semantic",
    "memory_search_concepts",
    "memory_decisions",
    "memory_conventions",
    "memory_architecture",
    "memory_store_extraction",
    "memory_promote",
    "memory_sweep_now",
    "memory_status",
    "memory_stats",
    "memory_doctor",
}


def test_load_tools_names():
    tools, handlers = _load_tools()
    assert {t.name for t in tools} == EXPECTED_TOOLS
    assert set(handlers) == EXPECTED_TOOLS


def test_tools_have_descriptions_and_schemas():
    tools, _ = _load_tools()
    for tool in tools:
        assert tool.description, f"Tool {tool.name} missing description"
        assert tool.inputSchema["type"] == "object", f"Tool {tool.name} bad schema type"


@pytest.mark.asyncio
async def test_list_tools_async():
    tools = await list_tools()
    assert len(tools) == len(EXPECTED_TOOLS)


@pytest.mark.asyncio
async def test_call_unknown_tool():
    result = await call_tool("nonexistent_tool", {})
    assert len(result) == 1
    data = json.loads(result[0].text)
    assert "Unknown tool" in data["error"]
    assert "memory_recall" in data["available_tools"]


@pytest.mark.asyncio
async def test_call_tool_returns_json(components, remember, sample_extraction):
    remember(components["scopes"].store("project"), sample_extraction)
    result = await call_tool("memory_recall", {"query": "postgresql"})
    data = json.loads(result[0].text)
    assert data["count"] >= 1
    assert data["facts"][0]["object"] == "postgresql"


@pytest.mark.asyncio
async def test_handler_exception_reported(components):
    result = await call_tool("memory_recall_semantic", {"query": "x", "mode": "fuzzy"})
    data = json.loads(result[0].text)
    assert "Unknown semantic mode" in data["error"]
    assert "traceback" in data


@pytest.mark.asyncio
async def test_rejected_arguments_reported_without_traceback(components):
    result = await call_tool("memory_recall", {"query": "x", "scope": "bogus"})
    data = json.loads(result[0].text)
    assert data["error_type"] == "ScopeError"
    assert "bogus" in data["error"]
    assert "traceback" not in data
