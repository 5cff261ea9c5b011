"""Tests for transcript delta ingestion."""

import json

import pytest

from knowledge.errors import TranscriptNotFoundError
from knowledge.ingest import Ingester, read_delta


@pytest.fixture
def transcript(tmp_path):
    path = tmp_path / "session.jsonl"
    path.write_text("We use PostgreSQL.\n")
    return path


class TestReadDelta:
    def test_reads_from_offset(self, transcript):
        data, offset = read_delta(transcript, 0)
        assert data == b"We use PostgreSQL.\n"
        assert offset == len(data)

    def test_nothing_new(self, transcript):
        size = transcript.stat().st_size
        assert read_delta(transcript, size) == (None, size)

    def test_truncated_file_reread(self, transcript):
        data, offset = read_delta(transcript, 10_000)
        assert data == b"We use PostgreSQL.\n"

    def test_missing_file(self, tmp_path):
        with pytest.raises(TranscriptNotFoundError):
            read_delta(tmp_path / "nope.jsonl", 0)


class TestIngester:
    def test_only_new_bytes_are_stored(self, store, transcript):
        ingester = Ingester(store)
        first = ingester.ingest("hook", "s1", str(transcript), project_path="/work/app")
        assert first["status"] == "ingested"
        assert first["text"] == "We use PostgreSQL.\n"

        again = ingester.ingest("hook", "s1", str(transcript))
        assert again == {"status": "no_change", "bytes_read": 0}

        with open(transcript, "a") as f:
            f.write("Deploy to Heroku.\n")
        third = ingester.ingest("hook", "s1", str(transcript))
        assert third["text"] == "Deploy to Heroku.\n"
        assert third["content_item_id"] != first["content_item_id"]
        assert store.get_delta_cursor("s1", str(transcript)) == transcript.stat().st_size

    def test_cursor_is_per_session(self, store, transcript):
        ingester = Ingester(store)
        ingester.ingest("hook", "s1", str(transcript))
        other = ingester.ingest("hook", "s2", str(transcript))
        assert other["status"] == "ingested"

    def test_private_text_never_stored(self, store, tmp_path):
        path = tmp_path / "t.jsonl"
        path.write_text("Keep this. <private>token abc</private>")
        result = Ingester(store).ingest("hook", "s1", str(path))
        assert "token abc" not in result["text"]
        row = store.conn.execute(
            "SELECT raw_text FROM content_items WHERE id = ?", (result["content_item_id"],)
        ).fetchone()
        assert "token abc" not in row[0]

    def test_fully_private_delta_advances_cursor(self, store, tmp_path):
        path = tmp_path / "t.jsonl"
        path.write_text("<private>everything</private>")
        result = Ingester(store).ingest("hook", "s1", str(path))
        assert result["status"] == "no_change"
        assert store.get_delta_cursor("s1", str(path)) == path.stat().st_size
        assert store.stats()["content_items"] == 0

    def test_ingested_text_is_searchable(self, store, transcript):
        result = Ingester(store).ingest("hook", "s1", str(transcript))
        assert store.fts.search("postgresql") == [result["content_item_id"]]

    def test_ingest_text(self, store):
        content_id = Ingester(store).ingest_text("mcp_extraction", "repo convention tabs")
        assert store.get_content_item(content_id).value.source == "mcp_extraction"
        assert Ingester(store).ingest_text("mcp_extraction", "repo convention tabs") == content_id

    def test_session_metadata_and_tool_calls(self, store, tmp_path):
        path = tmp_path / "t.jsonl"
        lines = [
            {"type": "user", "gitBranch": "feature/auth", "cwd": "/work/app", "version": "1.4.2"},
            {
                "type": "assistant",
                "message": {"content": [{"type": "tool_use", "id": "t1", "name": "Bash", "input": {"command": "ls"}}]},
            },
        ]
        path.write_text("\n".join(json.dumps(line) for line in lines) + "\n")

        result = Ingester(store).ingest("hook", "s1", str(path))
        assert result["tool_calls"] == 1
        item = store.get_content_item(result["content_item_id"]).value
        assert item.git_branch == "feature/auth"
        assert item.cwd == "/work/app"
        assert item.agent_version == "1.4.2"
        assert item.thinking_level is None
        [call] = store.tool_calls_for(result["content_item_id"])
        assert call["tool_name"] == "Bash"
        assert store.stats()["tool_calls"] == 1
