"""Incremental transcript ingestion.

A delta cursor per (session, transcript) remembers how many bytes were already
read, so each hook invocation only stores the newly appended text.
"""

import hashlib
from pathlib import Path
from typing import Optional

import structlog

from .errors import TranscriptNotFoundError
from .sanitizer import ContentSanitizer
from .store import FactStore
from .transcript import extract_metadata, extract_tool_calls

logger = structlog.get_logger()


def read_delta(path: str | Path, from_offset: int) -> tuple[Optional[bytes], int]:
    """Bytes appended since ``from_offset`` and the new offset.

    A file that shrank below the cursor (rotated or rewritten) is read from
    the start. Returns ``(None, offset)`` when nothing is new.
    """
    path = Path(path)
    if not path.exists():
        raise TranscriptNotFoundError(f"File not found: {path}")
    size = path.stat().st_size
    offset = 0 if from_offset > size else from_offset
    if offset == size:
        return None, offset
    with open(path, "rb") as f:
        f.seek(offset)
        data = f.read(size - offset)
    return data, offset + len(data)


class Ingester:
    def __init__(self, store: FactStore, sanitizer: Optional[ContentSanitizer] = None):
        self.store = store
        self.sanitizer = sanitizer or ContentSanitizer()

    def ingest(
        self,
        source: str,
        session_id: str,
        transcript_path: str,
        project_path: Optional[str] = None,
        occurred_at: Optional[str] = None,
    ) -> dict:
        """Store the unread part of a transcript as a content item."""
        offset = self.store.get_delta_cursor(session_id, transcript_path)
        delta, new_offset = read_delta(transcript_path, offset)
        if delta is None:
            return {"status": "no_change", "bytes_read": 0}

        text = self.sanitizer.strip_tags(delta.decode("utf-8", errors="replace"))
        with self.store.transaction():
            if not text.strip():
                self.store.update_delta_cursor(session_id, transcript_path, new_offset)
                return {"status": "no_change", "bytes_read": len(delta)}

            content_id = self.store.upsert_content_item(
                source=source,
                text_hash=hashlib.sha256(text.encode("utf-8")).hexdigest(),
                byte_len=len(text.encode("utf-8")),
                session_id=session_id,
                transcript_path=transcript_path,
                project_path=project_path,
                occurred_at=occurred_at,
                raw_text=text,
                metadata=extract_metadata(text),
            )
            self.store.fts.index_content_item(content_id, text)
            tool_calls = 0
            if not self.store.tool_calls_for(content_id):
                tool_calls = self.store.insert_tool_calls(content_id, extract_tool_calls(text))
            self.store.update_delta_cursor(session_id, transcript_path, new_offset)

        logger.info(
            "ingest.content_stored",
            content_item_id=content_id,
            session_id=session_id,
            bytes_read=len(delta),
            tool_calls=tool_calls,
        )
        return {
            "status": "ingested",
            "content_item_id": content_id,
            "bytes_read": len(delta),
            "tool_calls": tool_calls,
            "text": text,
        }

    def ingest_text(
        self,
        source: str,
        text: str,
        project_path: Optional[str] = None,
        occurred_at: Optional[str] = None,
    ) -> int:
        """Store and index a standalone piece of evidence. Returns its id."""
        with self.store.transaction():
            content_id = self.store.upsert_content_item(
                source=source,
                text_hash=hashlib.sha256(text.encode("utf-8")).hexdigest(),
                byte_len=len(text.encode("utf-8")),
                project_path=project_path,
                occurred_at=occurred_at,
                raw_text=text,
            )
            self.store.fts.index_content_item(content_id, text)
        return content_id
