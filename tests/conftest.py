"""Shared test fixtures and configuration."""

from pathlib import Path

import pytest

from tinysearch.documents.store import InMemoryDocumentSource, SqliteDocumentStore
from tinysearch.search.inverted_index import InvertedIndex
from tinysearch.search.tokenizer import term_frequencies, tokenize


# Environment that overrides every setting a developer might have exported
TEST_ENV = {
    "HOST": "127.0.0.1",
    "PORT": "3000",
    "INDEX_BATCH_SIZE": "1000",
    "SEED_INDEX": "true",
    "SKIP_SEED_INDEX": "false",
    "LOG_LEVEL": "warning",
    "LOG_JSON": "false",
}

SCENARIO_DOCUMENTS = {
    1: "the quick brown fox",
    2: "the quick red fox",
    3: "cats and dogs",
}


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path: Path):
    """Pin settings to test defaults and keep artifacts inside tmp_path."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "documents.sqlite3"))
    for key in ("INDEX_PERSIST_PATH", "INDEX_LOAD_PATH", "OTLP_ENDPOINT"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


def build_test_index(documents: dict[int, str]) -> InvertedIndex:
    return InvertedIndex.from_term_frequencies(
        (doc_id, term_frequencies(tokenize(text))) for doc_id, text in documents.items()
    )


@pytest.fixture
def scenario_index() -> InvertedIndex:
    """Finalized index over the three-document boolean query corpus."""
    return build_test_index(SCENARIO_DOCUMENTS)


@pytest.fixture
def scenario_source() -> InMemoryDocumentSource:
    return InMemoryDocumentSource({"id": doc_id, "content": text} for doc_id, text in SCENARIO_DOCUMENTS.items())


@pytest.fixture
def memory_store():
    store = SqliteDocumentStore(":memory:")
    yield store
    store.close()
