"""Host lifecycle hooks: ingest a transcript delta, run maintenance.

A hook process reads one JSON object from stdin and reports through its exit
code (see ``ExitCode``).
"""

import json
import os
import sqlite3
from typing import Mapping, Optional

import structlog

from knowledge.distiller import RuleDistiller
from knowledge.errors import KnowledgeError, TranscriptNotFoundError
from knowledge.ingest import Ingester
from knowledge.resolver import Resolver
from knowledge.sweeper import Sweeper

from .exit_codes import ExitCode

logger = structlog.get_logger()

HOOK_SOURCE = "session_transcript"
DEFAULT_SWEEP_BUDGET = 5
SESSION_ENV = "BELIEFBASE_SESSION_ID"
TRANSCRIPT_ENV = "BELIEFBASE_TRANSCRIPT_PATH"


class PayloadError(KnowledgeError):
    """Hook payload is missing a required field or is not valid JSON."""


def parse_payload(raw: str) -> dict:
    try:
        payload = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise PayloadError(f"Invalid JSON payload: {e}")
    if not isinstance(payload, dict):
        raise PayloadError("Hook payload must be a JSON object")
    return payload


class HookHandler:
    def __init__(
        self,
        store,
        project_path: Optional[str] = None,
        sweeper_options: Optional[dict] = None,
        env: Optional[Mapping[str, str]] = None,
    ):
        self.store = store
        self.project_path = project_path
        self.sweeper_options = sweeper_options or {}
        self.env = os.environ if env is None else env

    def _required(self, payload: dict, key: str, env_key: str) -> str:
        value = payload.get(key) or self.env.get(env_key)
        if not value:
            raise PayloadError(f"Missing required field: {key}")
        return value

    def ingest(self, payload: dict) -> dict:
        """Store the new transcript bytes, then distill and resolve them.

        Both steps share one transaction: if resolution fails the content item
        and the cursor advance roll back, so the next run retries the delta.
        """
        session_id = self._required(payload, "session_id", SESSION_ENV)
        transcript_path = self._required(payload, "transcript_path", TRANSCRIPT_ENV)

        with self.store.transaction():
            result = Ingester(self.store).ingest(
                source=HOOK_SOURCE,
                session_id=session_id,
                transcript_path=transcript_path,
                project_path=self.project_path,
            )
            text = result.pop("text", None)
            if result["status"] != "ingested" or not text:
                return result

            extraction = RuleDistiller().distill(text)
            if extraction.facts:
                resolved = Resolver(self.store).apply(
                    extraction,
                    content_item_id=result["content_item_id"],
                    project_path=self.project_path,
                    scope="project",
                )
                result["resolved"] = resolved.to_dict()
        return result

    def sweep(self, payload: dict) -> dict:
        try:
            budget = float(payload.get("budget", DEFAULT_SWEEP_BUDGET))
        except (TypeError, ValueError):
            raise PayloadError(f"Invalid budget: {payload.get('budget')!r}")
        return {"stats": Sweeper(self.store, **self.sweeper_options).run(budget_seconds=budget)}

    def dispatch(self, command: str, payload: dict) -> dict:
        if command == "ingest":
            return self.ingest(payload)
        if command == "sweep":
            return self.sweep(payload)
        raise PayloadError(f"Unknown hook command: {command}")


def run_hook(handler: HookHandler, command: str, raw_input: str) -> tuple[ExitCode, dict]:
    """Run one hook invocation and map the outcome to an exit code."""
    try:
        result = handler.dispatch(command, parse_payload(raw_input))
    except (PayloadError, TranscriptNotFoundError) as e:
        logger.warning("hook.skipped", command=command, error=str(e))
        return ExitCode.WARNING, {"error": str(e)}
    except (sqlite3.Error, KnowledgeError) as e:
        logger.error("hook.failed", command=command, error=str(e))
        return ExitCode.ERROR, {"error": str(e)}
    logger.info("hook.completed", command=command)
    return ExitCode.SUCCESS, result
