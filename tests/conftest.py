"""Shared test fixtures for beliefbase."""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from knowledge.scope import DualStoreScope  # noqa: E402
from knowledge.store import FactStore  # noqa: E402

PROJECT_PATH = "/work/app"


@pytest.fixture
def project_path():
    return PROJECT_PATH


@pytest.fixture
def store(tmp_path):
    s = FactStore(tmp_path / "memory.sqlite3")
    yield s
    s.close()


@pytest.fixture
def scopes(tmp_path):
    """Project and global stores under tmp_path, both created up front."""
    manager = DualStoreScope(
        tmp_path / "project" / "memory.sqlite3",
        tmp_path / "global" / "memory.sqlite3",
        project_path=PROJECT_PATH,
    )
    manager.store("project")
    manager.store("global")
    yield manager
    manager.close()


@pytest.fixture
def remember():
    """Index an extraction's text as evidence, then resolve it into ``store``."""
    from knowledge.ingest import Ingester
    from knowledge.models import Extraction
    from knowledge.resolver import Resolver

    def _remember(store, data, scope="project", project_path=PROJECT_PATH, occurred_at=None):
        extraction = Extraction.from_dict(data)
        content_id = Ingester(store).ingest_text(
            "test",
            extraction.searchable_text(),
            project_path=project_path if scope == "project" else None,
            occurred_at=occurred_at,
        )
        return Resolver(store).apply(
            extraction,
            content_item_id=content_id,
            occurred_at=occurred_at,
            project_path=project_path,
            scope=scope,
        )

    return _remember


@pytest.fixture
def sample_extraction():
    """One database fact plus a convention, as an agent would submit them."""
    return {
        "entities": [{"type": "database", "name": "postgresql"}],
        "facts": [
            {
                "subject": "repo",
                "predicate": "uses_database",
                "object": "postgresql",
                "quote": "We use PostgreSQL for the main database.",
                "strength": "stated",
            },
            {
                "subject": "repo",
                "predicate": "convention",
                "object": "snake_case table names",
                "quote": "Tables are always snake_case.",
                "strength": "stated",
            },
        ],
    }
