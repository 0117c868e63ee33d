"""Unit tests for boolean query evaluation."""

import math

import pytest

from tinysearch.errors import QueryValidationError
from tinysearch.search.query import (
    NormalizingPostingsLookup,
    Query,
    QueryMode,
    evaluate,
    parse_mode,
    parse_query_terms,
    search,
    validate_limit,
)
from tinysearch.search.tokenizer import TokenizeOptions


class DictLookup:
    """Postings lookup backed by a plain dict, recording requested terms."""

    def __init__(self, postings: dict[str, set[int]]):
        self.postings = postings
        self.requested: list[str] = []

    def get_postings(self, term):
        self.requested.append(term)
        return self.postings.get(term, set())


class MembershipCountingSet(set):
    """Set that counts membership checks."""

    checks = 0

    def __contains__(self, item):
        type(self).checks += 1
        return super().__contains__(item)


class TestScenarios:
    def test_and_query_intersects(self, scenario_index):
        result = search("quick fox", scenario_index, mode="and")

        assert result.doc_ids == [1, 2]
        assert result.terms == ("quick", "fox")
        assert result.mode is QueryMode.AND

    def test_or_query_unions(self, scenario_index):
        result = search("fox dogs", scenario_index, mode="or")

        assert result.doc_ids == [1, 2, 3]

    def test_default_mode_is_and(self, scenario_index):
        assert search("quick cats", scenario_index).doc_ids == []

    def test_unknown_term_under_and_matches_nothing(self, scenario_index):
        assert search("fox unicorn", scenario_index).doc_ids == []

    def test_single_term(self, scenario_index):
        result = search("the", scenario_index)

        assert result.doc_ids == [1, 2]
        assert result.count == 2


class TestBoundaries:
    @pytest.mark.parametrize("q", ["", "   ", "\t\n", None])
    def test_empty_query_has_no_terms_and_no_results(self, scenario_index, q):
        result = search(q, scenario_index)

        assert result.terms == ()
        assert result.doc_ids == []

    def test_empty_query_does_not_touch_lookup(self):
        lookup = DictLookup({})
        evaluate(Query(terms=()), lookup)

        assert lookup.requested == []

    def test_limit_zero_yields_empty(self, scenario_index):
        assert search("fox", scenario_index, limit=0).doc_ids == []

    def test_limit_truncates_sorted_results(self, scenario_index):
        assert search("fox dogs", scenario_index, mode="or", limit=2).doc_ids == [1, 2]

    def test_limit_larger_than_result_returns_everything(self, scenario_index):
        assert search("fox", scenario_index, limit="50").doc_ids == [1, 2]


class TestEvaluate:
    def test_results_are_sorted_numerically(self):
        lookup = DictLookup({"a": {100, 9, 20, 3}})

        assert evaluate(Query(terms=("a",)), lookup).doc_ids == [3, 9, 20, 100]

    def test_string_ids_sort_numerically(self):
        lookup = DictLookup({"a": {"10", "9", "100"}})

        assert evaluate(Query(terms=("a",)), lookup).doc_ids == [9, 10, 100]

    def test_does_not_mutate_lookup_sets(self):
        shared = {1, 2, 3}
        lookup = DictLookup({"a": shared, "b": {2}, "c": {4}})

        evaluate(Query(terms=("a", "b"), mode=QueryMode.AND), lookup)
        evaluate(Query(terms=("a", "c"), mode=QueryMode.OR), lookup)

        assert shared == {1, 2, 3}

    def test_and_stops_once_empty(self):
        lookup = DictLookup({"a": {1}, "b": {2}, "c": {1, 2}})

        result = evaluate(Query(terms=("a", "b", "c")), lookup)

        assert result.doc_ids == []
        assert lookup.requested == ["a", "b"]

    def test_or_consults_every_term(self):
        lookup = DictLookup({"a": set(), "b": {2}})

        result = evaluate(Query(terms=("a", "b", "c"), mode=QueryMode.OR), lookup)

        assert result.doc_ids == [2]
        assert lookup.requested == ["a", "b", "c"]

    def test_intersection_iterates_smaller_set(self):
        large = MembershipCountingSet(range(1000))
        small = MembershipCountingSet({5, 7, 2000})
        MembershipCountingSet.checks = 0

        result = evaluate(Query(terms=("small", "large")), DictLookup({"small": small, "large": large}))

        assert result.doc_ids == [5, 7]
        assert MembershipCountingSet.checks <= len(small)

    def test_intersection_direction_independent_of_term_order(self):
        large = MembershipCountingSet(range(1000))
        small = MembershipCountingSet({5, 7})
        MembershipCountingSet.checks = 0

        # The accumulator is a copy of ``large``; membership checks must still run over ``small``'s members.
        result = evaluate(Query(terms=("large", "small")), DictLookup({"small": small, "large": large}))

        assert result.doc_ids == [5, 7]
        assert MembershipCountingSet.checks == 0

    def test_and_monotonicity(self, scenario_index):
        terms = ["the", "quick", "fox", "brown"]
        previous = None
        for end in range(1, len(terms) + 1):
            current = set(search(" ".join(terms[:end]), scenario_index, mode="and").doc_ids)
            if previous is not None:
                assert current <= previous
            previous = current

    def test_or_monotonicity(self, scenario_index):
        terms = ["brown", "red", "cats", "unicorn"]
        previous = None
        for end in range(1, len(terms) + 1):
            current = set(search(" ".join(terms[:end]), scenario_index, mode="or").doc_ids)
            if previous is not None:
                assert current >= previous
            previous = current


class TestQueryConstruction:
    def test_string_mode_is_coerced(self):
        lookup = DictLookup({"fox": {1, 2}, "dogs": {3}})

        query = Query(terms=("fox", "dogs"), mode="or")

        assert query.mode is QueryMode.OR
        assert evaluate(query, lookup).doc_ids == [1, 2, 3]

    @pytest.mark.parametrize("mode", ["xor", "OR", None, 1])
    def test_unknown_mode_rejected(self, mode):
        with pytest.raises(QueryValidationError) as exc_info:
            Query(terms=("fox",), mode=mode)

        assert exc_info.value.code == "invalid_mode"

    @pytest.mark.parametrize("limit", [-1, 1.5, True, "2"])
    def test_invalid_limit_rejected(self, limit):
        with pytest.raises(QueryValidationError) as exc_info:
            Query(terms=("fox",), limit=limit)

        assert exc_info.value.code == "invalid_limit"

    def test_terms_are_stored_as_tuple(self):
        assert Query(terms=["a", "b"]).terms == ("a", "b")


class TestParseMode:
    @pytest.mark.parametrize("raw", ["and", "AND", "And", "", None, "  and "])
    def test_and_variants(self, raw):
        assert parse_mode(raw) is QueryMode.AND

    @pytest.mark.parametrize("raw", ["or", "OR", "Or"])
    def test_or_variants(self, raw):
        assert parse_mode(raw) is QueryMode.OR

    def test_enum_passes_through(self):
        assert parse_mode(QueryMode.OR) is QueryMode.OR

    @pytest.mark.parametrize("raw", ["xor", "not", "&&", 1])
    def test_unknown_mode_rejected(self, raw):
        with pytest.raises(QueryValidationError) as exc_info:
            parse_mode(raw)

        assert exc_info.value.code == "invalid_mode"


class TestValidateLimit:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(None, None), ("", None), (0, 0), ("0", 0), (5, 5), ("5", 5), (2.9, 2), ("2.9", 2), ("1e1", 10)],
    )
    def test_accepted_values(self, raw, expected):
        assert validate_limit(raw) == expected

    @pytest.mark.parametrize("raw", [-1, "-1", "-0.5", "abc", math.inf, "Infinity", math.nan, "nan", True, [3], "  "])
    def test_rejected_values(self, raw):
        with pytest.raises(QueryValidationError) as exc_info:
            validate_limit(raw)

        assert exc_info.value.code == "invalid_limit"


def test_parse_query_terms_splits_on_any_whitespace():
    assert parse_query_terms("  quick\tbrown \n fox ") == ("quick", "brown", "fox")


class TestNormalizingPostingsLookup:
    def test_query_terms_are_normalized_like_documents(self, scenario_index):
        result = search("QUICK, Fox!", NormalizingPostingsLookup(scenario_index))

        assert result.doc_ids == [1, 2]
        assert result.terms == ("QUICK,", "Fox!")

    def test_multi_token_term_resolves_to_intersection(self, scenario_index):
        lookup = NormalizingPostingsLookup(scenario_index)

        assert lookup.get_postings("quick-brown") == {1}
        assert lookup.get_postings("red/dogs") == set()

    def test_term_without_tokens_matches_nothing(self, scenario_index):
        lookup = NormalizingPostingsLookup(scenario_index)

        assert lookup.get_postings("!!!") == set()

    def test_uses_supplied_options(self, scenario_index):
        lookup = NormalizingPostingsLookup(scenario_index, TokenizeOptions(remove_stopwords=True))

        assert lookup.get_postings("the") == set()
