"""Unit tests for index artifact persistence."""

import hashlib

import pytest

from tinysearch.errors import IndexStateError, IndexValidationError
from tinysearch.search.inverted_index import InvertedIndex
from tinysearch.search.storage import artifact_digest, load_index, save_index


def _index() -> InvertedIndex:
    return InvertedIndex.from_term_frequencies([(2, {"fox": 1}), (1, {"fox": 3, "dog": 1})])


def test_save_then_load_round_trips(tmp_path):
    index = _index()
    path = save_index(index, tmp_path / "index.json")

    restored = load_index(path)

    assert path.read_bytes() == index.serialize()
    assert restored.postings == index.postings
    assert restored.doc_count == 2


def test_save_creates_parent_directories(tmp_path):
    target = tmp_path / "nested" / "dir" / "index.json"
    save_index(_index(), target)

    assert target.exists()


def test_save_replaces_existing_artifact_without_leftovers(tmp_path):
    target = tmp_path / "index.json"
    target.write_bytes(b"stale")

    save_index(_index(), target)

    assert target.read_bytes() == _index().serialize()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["index.json"]


def test_refuses_non_finalized_index(tmp_path):
    index = InvertedIndex()
    index.add_document(1, {"fox": 1})

    with pytest.raises(IndexStateError):
        save_index(index, tmp_path / "index.json")
    assert not (tmp_path / "index.json").exists()


def test_load_rejects_corrupt_artifact(tmp_path):
    path = tmp_path / "index.json"
    path.write_bytes(b'{"docCount": 1, "postings": {"fox": [{"docId": 1}]}}')

    with pytest.raises(IndexValidationError):
        load_index(path)


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_index(tmp_path / "missing.json")


def test_artifact_digest_is_sha256():
    payload = _index().serialize()

    assert artifact_digest(payload) == hashlib.sha256(payload).hexdigest()
    assert artifact_digest(payload) == artifact_digest(_index().serialize())
