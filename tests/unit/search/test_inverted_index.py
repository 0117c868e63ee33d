"""Unit tests for the inverted index and its artifact format."""

import itertools

import orjson
import pytest

from tinysearch.errors import IndexStateError, IndexValidationError
from tinysearch.search.inverted_index import InvertedIndex
from tinysearch.search.models import Posting
from tinysearch.search.tokenizer import term_frequencies, tokenize


DOCUMENTS = [
    (7, "red fox red"),
    (2, "quick brown fox"),
    (11, "lazy dog"),
    (5, "quick dog"),
]


def _build(documents):
    index = InvertedIndex()
    for doc_id, text in documents:
        index.add_document(doc_id, term_frequencies(tokenize(text)))
    index.finalize()
    return index


class TestAddDocument:
    def test_appends_postings_and_counts_documents(self):
        index = InvertedIndex()
        index.add_document(3, {"fox": 2, "red": 1})
        index.add_document(1, {"fox": 1})

        assert index.doc_count == 2
        assert index.postings["fox"] == [Posting(3, 2), Posting(1, 1)]
        assert index.postings["red"] == [Posting(3, 1)]

    def test_document_without_terms_still_counts(self):
        index = InvertedIndex()
        index.add_document(4, {})

        assert index.doc_count == 1
        assert index.term_count == 0

    @pytest.mark.parametrize("doc_id", [-1, "3", 1.0, True, None])
    def test_rejects_malformed_doc_ids(self, doc_id):
        index = InvertedIndex()
        with pytest.raises(IndexValidationError):
            index.add_document(doc_id, {"fox": 1})

    @pytest.mark.parametrize("tf", [0, -2, 1.5, "1", False])
    def test_rejects_non_positive_frequencies(self, tf):
        index = InvertedIndex()
        with pytest.raises(IndexValidationError):
            index.add_document(1, {"fox": tf})

    def test_rejects_empty_or_non_string_terms(self):
        index = InvertedIndex()
        with pytest.raises(IndexValidationError):
            index.add_document(1, {"": 1})
        with pytest.raises(IndexValidationError):
            index.add_document(1, {5: 1})

    def test_validation_failure_applies_nothing(self):
        index = InvertedIndex()
        with pytest.raises(IndexValidationError):
            index.add_document(1, {"fox": 1, "dog": 0})

        assert index.doc_count == 0
        assert index.postings == {}

    def test_rejects_mapping_of_wrong_type(self):
        with pytest.raises(IndexValidationError):
            InvertedIndex().add_document(1, [("fox", 1)])

    def test_add_after_finalize_is_a_state_error(self):
        index = InvertedIndex()
        index.add_document(1, {"fox": 1})
        index.finalize()

        with pytest.raises(IndexStateError):
            index.add_document(2, {"fox": 1})


class TestFinalize:
    def test_sorts_postings_by_doc_id(self):
        index = _build(DOCUMENTS)

        assert [p.doc_id for p in index.postings["fox"]] == [2, 7]
        assert [p.doc_id for p in index.postings["dog"]] == [5, 11]
        assert index.is_finalized

    def test_is_idempotent(self):
        index = _build(DOCUMENTS)
        before = index.serialize()
        index.finalize()

        assert index.serialize() == before

    def test_non_finalized_index_is_queryable(self):
        index = InvertedIndex()
        index.add_document(9, {"fox": 1})
        index.add_document(4, {"fox": 1})

        assert not index.is_finalized
        assert index.get_postings("fox") == {4, 9}
        assert [p.doc_id for p in index.postings_for("fox")] == [9, 4]


class TestLookups:
    def test_get_postings_returns_fresh_set(self):
        index = _build(DOCUMENTS)
        postings = index.get_postings("fox")
        postings.add(999)

        assert index.get_postings("fox") == {2, 7}

    def test_unknown_term_has_no_postings(self):
        index = _build(DOCUMENTS)

        assert index.get_postings("cat") == set()
        assert index.postings_for("cat") == []

    def test_terms_are_sorted(self):
        index = _build(DOCUMENTS)

        assert index.terms() == ["brown", "dog", "fox", "lazy", "quick", "red"]
        assert index.term_count == 6

    def test_term_frequency_is_recorded(self):
        index = _build(DOCUMENTS)

        assert index.postings_for("red") == [Posting(doc_id=7, tf=2)]


class TestSerialization:
    def test_artifact_shape(self):
        index = _build([(1, "b a a")])

        assert orjson.loads(index.serialize()) == {
            "docCount": 1,
            "postings": {
                "a": [{"docId": 1, "tf": 2}],
                "b": [{"docId": 1, "tf": 1}],
            },
        }

    def test_terms_emitted_in_lexicographic_order(self):
        index = _build(DOCUMENTS)
        payload = orjson.loads(index.serialize())

        assert list(payload["postings"]) == sorted(payload["postings"])

    def test_byte_identical_across_insertion_orders(self):
        expected = _build(DOCUMENTS).serialize()
        for permutation in itertools.permutations(DOCUMENTS):
            assert _build(permutation).serialize() == expected

    def test_round_trip_preserves_content(self):
        index = _build(DOCUMENTS)
        restored = InvertedIndex.deserialize(index.serialize())

        assert restored.doc_count == index.doc_count
        assert restored.postings == index.postings
        assert restored.is_finalized
        assert restored.serialize() == index.serialize()

    def test_deserialize_trusts_stored_order(self):
        payload = b'{"docCount":2,"postings":{"fox":[{"docId":9,"tf":1},{"docId":3,"tf":1}]}}'
        restored = InvertedIndex.deserialize(payload)

        assert [p.doc_id for p in restored.postings["fox"]] == [9, 3]

    def test_deserialize_accepts_str(self):
        restored = InvertedIndex.deserialize('{"docCount":0,"postings":{}}')

        assert restored.doc_count == 0
        assert restored.term_count == 0

    @pytest.mark.parametrize(
        "payload",
        [
            b"not json",
            b"[]",
            b'{"docCount":-1,"postings":{}}',
            b'{"docCount":1,"postings":[]}',
            b'{"docCount":1,"postings":{"fox":{}}}',
            b'{"docCount":1,"postings":{"fox":[{"docId":1,"tf":0}]}}',
            b'{"docCount":1,"postings":{"fox":[{"docId":"1","tf":1}]}}',
            b'{"docCount":1,"postings":{"fox":[7]}}',
        ],
    )
    def test_deserialize_rejects_malformed_payloads(self, payload):
        with pytest.raises(IndexValidationError):
            InvertedIndex.deserialize(payload)

    def test_from_term_frequencies_builds_finalized_index(self):
        index = InvertedIndex.from_term_frequencies([(3, {"fox": 1}), (1, {"fox": 2})])

        assert index.is_finalized
        assert index.postings["fox"] == [Posting(1, 2), Posting(3, 1)]
