"""Structured data carried by JSONL session transcripts.

Transcript lines are JSON messages. Besides the conversation text they carry
session metadata (branch, working directory, agent version) and the tool calls
the assistant made. Lines that are not JSON objects are skipped.
"""

import json
from typing import Iterator, Optional

import structlog

from .models import utc_now

logger = structlog.get_logger()

TOOL_INPUT_CHARS = 1000

# Column name -> (top-level keys, metadata keys)
_METADATA_FIELDS = {
    "git_branch": (("gitBranch", "git_branch"), ("gitBranch",)),
    "cwd": (("cwd", "workingDirectory"), ("cwd", "workingDirectory")),
    "agent_version": (("version", "agent_version"), ("version",)),
}


def _messages(text: str) -> Iterator[dict]:
    for line in (text or "").splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(message, dict):
            yield message


def _first(message: dict, keys: tuple, nested_keys: tuple) -> Optional[str]:
    for key in keys:
        if message.get(key):
            return str(message[key])
    nested = message.get("metadata")
    if isinstance(nested, dict):
        for key in nested_keys:
            if nested.get(key):
                return str(nested[key])
    return None


def extract_metadata(text: str) -> dict:
    """Session metadata from the first message that carries any.

    Returns only the keys that were found: ``git_branch``, ``cwd``,
    ``agent_version`` and ``thinking_level``.
    """
    for message in _messages(text):
        found = {
            column: _first(message, keys, nested_keys)
            for column, (keys, nested_keys) in _METADATA_FIELDS.items()
        }
        thinking = message.get("thinkingMetadata")
        if isinstance(thinking, dict) and thinking.get("level"):
            found["thinking_level"] = str(thinking["level"])
        found = {k: v for k, v in found.items() if v}
        if found:
            return found
    return {}


def _serialize_input(tool_input) -> Optional[str]:
    if tool_input is None:
        return None
    encoded = json.dumps(tool_input, sort_keys=True, default=str)
    if len(encoded) > TOOL_INPUT_CHARS:
        return encoded[:TOOL_INPUT_CHARS] + "..."
    return encoded


def extract_tool_calls(text: str) -> list[dict]:
    """Tool invocations made by the assistant, in transcript order.

    A ``tool_result`` block flagged ``is_error`` marks the matching call
    (by ``tool_use_id``) as failed.
    """
    calls: list[dict] = []
    by_use_id: dict[str, dict] = {}
    for message in _messages(text):
        body = message.get("message")
        content = body.get("content") if isinstance(body, dict) else None
        if not isinstance(content, list):
            continue
        timestamp = message.get("timestamp") or utc_now()
        for block in content:
            if not isinstance(block, dict):
                continue
            if block.get("type") == "tool_use" and message.get("type") == "assistant":
                call = {
                    "tool_name": block.get("name") or "unknown",
                    "tool_input": _serialize_input(block.get("input")),
                    "is_error": False,
                    "timestamp": timestamp,
                }
                calls.append(call)
                if block.get("id"):
                    by_use_id[block["id"]] = call
            elif block.get("type") == "tool_result" and block.get("is_error"):
                call = by_use_id.get(block.get("tool_use_id"))
                if call is not None:
                    call["is_error"] = True
    if calls:
        logger.debug("transcript.tool_calls", count=len(calls))
    return calls
