"""Tests for smart playlist rule decoding and evaluation."""

import random

import pytest

from recommendation_api.core.errors import LibraryUnavailableError, RuleDocumentError
from recommendation_api.services.smart_playlist import (
    LIBRARY_SCAN_LIMIT,
    AllOf,
    AnyOf,
    EvaluationDiagnostics,
    Leaf,
    evaluate,
    evaluate_smart_playlist,
    parse_rules,
    sort_tracks,
    to_document,
)


def _ids(tracks):
    return [t.id for t in tracks]


def _run(document, songs, diagnostics=None, rng=None):
    return evaluate(parse_rules(document), songs, diagnostics, rng)


class TestParseRules:
    def test_builds_typed_tree(self):
        rules = parse_rules(
            {
                "name": "Loud",
                "all": [{"contains": {"genre": "rock"}}, {"any": [{"is": {"loved": True}}]}],
                "sort": "-year",
                "order": "desc",
                "limit": 5,
            }
        )
        assert rules.all_of[0] == Leaf(operator="contains", field="genre", value="rock")
        assert isinstance(rules.all_of[1], AnyOf)
        assert rules.all_of[1].conditions == (Leaf("is", "loved", True),)
        assert rules.any_of is None
        assert rules.sort == "-year"
        assert rules.order == "desc"
        assert rules.limit == 5
        assert rules.name == "Loud"

    def test_range_value_becomes_pair(self):
        rules = parse_rules({"all": [{"inTheRange": {"year": [1990, 1999]}}]})
        assert rules.all_of[0].value == (1990, 1999)

    def test_nested_all(self):
        rules = parse_rules({"any": [{"all": [{"gt": {"rating": 3}}]}]})
        assert rules.any_of == (AllOf((Leaf("gt", "rating", 3),)),)

    @pytest.mark.parametrize(
        "document",
        [
            [],
            {"all": {"is": {"genre": "rock"}}},
            {"all": [{"is": {"genre": "rock"}, "gt": {"year": 1990}}]},
            {"all": [{"is": {"genre": "rock", "year": 1990}}]},
            {"all": [{"inTheRange": {"year": [1990]}}]},
            {"all": [{"inTheRange": {"year": ["a", "b"]}}]},
            {"order": "sideways"},
            {"limit": -1},
            {"limit": "10"},
            {"sort": 5},
        ],
    )
    def test_rejects_invalid_documents(self, document):
        with pytest.raises(RuleDocumentError):
            parse_rules(document)

    def test_to_document_restores_wire_shape(self):
        document = {
            "name": "Nineties",
            "all": [{"inTheRange": {"year": [1990, 1999]}}, {"any": [{"contains": {"genre": "rock"}}]}],
            "sort": "title",
            "order": "desc",
            "limit": 10,
        }
        assert to_document(parse_rules(document)) == document


class TestFiltering:
    def test_all_narrows_sequentially(self, sample_library):
        result = _run({"all": [{"contains": {"genre": "rock"}}, {"gt": {"year": 1990}}]}, sample_library.songs)
        assert _ids(result) == ["lib-1"]

    def test_any_unions_without_duplicates(self, sample_library):
        result = _run({"any": [{"is": {"genre": "jazz"}}, {"gt": {"rating": 4}}]}, sample_library.songs)
        assert _ids(result) == ["lib-3", "lib-1"]

    def test_any_applies_to_all_result(self, sample_library):
        result = _run(
            {"all": [{"inTheRange": {"year": [1990, 1999]}}], "any": [{"is": {"loved": True}}]},
            sample_library.songs,
        )
        assert _ids(result) == ["lib-1"]

    def test_is_matches_text_substring_case_insensitively(self, sample_library):
        assert _ids(_run({"all": [{"is": {"genre": "AMBIENT"}}]}, sample_library.songs)) == ["lib-4"]
        assert "lib-4" not in _ids(_run({"all": [{"isNot": {"genre": "ambient"}}]}, sample_library.songs))

    def test_is_is_strict_for_non_text(self, sample_library):
        assert _ids(_run({"all": [{"is": {"loved": True}}]}, sample_library.songs)) == ["lib-1", "lib-6"]
        assert _run({"all": [{"is": {"loved": "true"}}]}, sample_library.songs) == []
        assert _ids(_run({"all": [{"is": {"playCount": 0}}]}, sample_library.songs)) == ["lib-3", "lib-5"]

    def test_numeric_comparisons_coerce_text(self, sample_library):
        result = _run({"all": [{"gt": {"playcount": "5"}}]}, sample_library.songs)
        assert _ids(result) == ["lib-1", "lib-4", "lib-6"]
        assert _ids(_run({"all": [{"lt": {"year": 1980}}]}, sample_library.songs)) == ["lib-3"]

    def test_in_the_range_is_inclusive(self, sample_library):
        result = _run({"all": [{"inTheRange": {"year": [1997, 1998]}}]}, sample_library.songs)
        assert _ids(result) == ["lib-1", "lib-2", "lib-5"]

    def test_text_operators(self, sample_library):
        songs = sample_library.songs
        assert _ids(_run({"all": [{"startsWith": {"title": "t"}}]}, songs)) == ["lib-5", "lib-6"]
        assert _ids(_run({"all": [{"endsWith": {"artist": "TWIN"}}]}, songs)) == ["lib-4"]
        assert len(_run({"all": [{"notContains": {"album": "o"}}]}, songs)) == 2

    def test_date_operators_pass_through_with_one_note(self, sample_library):
        diagnostics = EvaluationDiagnostics()
        result = _run(
            {"all": [{"inTheLast": {"dateAdded": 30}}, {"inTheLast": {"dateAdded": 60}}]},
            sample_library.songs,
            diagnostics,
        )
        assert len(result) == len(sample_library.songs)
        assert len(diagnostics.notes) == 1
        assert "dateAdded" in diagnostics.notes[0]

    def test_date_field_with_supported_operator_passes_through(self, sample_library):
        diagnostics = EvaluationDiagnostics()
        result = _run({"all": [{"gt": {"lastPlayed": 5}}]}, sample_library.songs, diagnostics)
        assert len(result) == len(sample_library.songs)
        assert len(diagnostics.notes) == 1

    def test_unknown_operator_passes_through(self, sample_library):
        diagnostics = EvaluationDiagnostics()
        result = _run({"all": [{"matches": {"title": "x"}}]}, sample_library.songs, diagnostics)
        assert len(result) == len(sample_library.songs)
        assert diagnostics.notes == ["Unknown operator: matches; condition ignored"]

    def test_unknown_field_resolves_empty(self, sample_library):
        diagnostics = EvaluationDiagnostics()
        result = _run({"all": [{"contains": {"bpm": "1"}}]}, sample_library.songs, diagnostics)
        assert result == []
        assert len(diagnostics.notes) == 1
        assert "bpm" in diagnostics.notes[0]

    def test_diagnostics_are_scoped_to_one_evaluation(self, sample_library):
        document = {"all": [{"before": {"dateAdded": "2020-01-01"}}]}
        first, second = EvaluationDiagnostics(), EvaluationDiagnostics()
        _run(document, sample_library.songs, first)
        _run(document, sample_library.songs, second)
        assert len(first.notes) == 1
        assert len(second.notes) == 1

    def test_empty_lists_do_not_filter(self, sample_library):
        assert len(_run({"all": [], "any": []}, sample_library.songs)) == 6
        assert len(_run({"all": [{"any": []}]}, sample_library.songs)) == 6
        assert len(_run({}, sample_library.songs)) == 6


class TestSortAndLimit:
    def test_multi_field_sort_with_descending_prefix(self, sample_library):
        result = _run({"sort": "-year,title"}, sample_library.songs)
        assert _ids(result) == ["lib-4", "lib-5", "lib-2", "lib-1", "lib-6", "lib-3"]

    def test_order_desc_applies_to_unprefixed_fields(self, sample_library):
        result = _run({"sort": "title", "order": "desc"}, sample_library.songs)
        assert _ids(result) == ["lib-4", "lib-5", "lib-6", "lib-3", "lib-1", "lib-2"]

    def test_text_sort_ignores_case(self, track_factory):
        songs = [track_factory("b", "Beta", "x"), track_factory("a", "alpha", "x")]
        assert _ids(sort_tracks(songs, "title")) == ["a", "b"]

    def test_random_sort_is_a_permutation(self, sample_library):
        first = _run({"sort": "random"}, sample_library.songs, rng=random.Random(7))
        second = _run({"sort": "random"}, sample_library.songs, rng=random.Random(7))
        assert sorted(_ids(first)) == sorted(_ids(sample_library.songs))
        assert _ids(first) == _ids(second)

    def test_limit_truncates_after_sort(self, sample_library):
        result = _run({"sort": "-playCount", "limit": 2}, sample_library.songs)
        assert _ids(result) == ["lib-6", "lib-1"]

    def test_zero_limit_means_unlimited(self, sample_library):
        assert len(_run({"limit": 0}, sample_library.songs)) == 6

    def test_reevaluation_is_stable_without_random_sort(self, sample_library):
        document = {
            "any": [{"gt": {"year": 1990}}, {"is": {"loved": True}}],
            "sort": "-year,title",
            "limit": 3,
        }
        once = _run(document, sample_library.songs)
        assert _ids(once) == ["lib-4", "lib-5", "lib-2"]
        assert _ids(_run(document, once)) == _ids(once)
        assert _ids(_run(document, sample_library.songs)) == _ids(once)


class TestEvaluateSmartPlaylist:
    @pytest.mark.asyncio
    async def test_scans_library(self, sample_library):
        rules = parse_rules({"all": [{"is": {"genre": "jazz"}}]})
        result = await evaluate_smart_playlist(rules, sample_library)
        assert _ids(result) == ["lib-3"]
        assert sample_library.list_calls == [(0, LIBRARY_SCAN_LIMIT)]

    @pytest.mark.asyncio
    async def test_library_errors_propagate(self, library_factory):
        library = library_factory(error=LibraryUnavailableError("down"))
        with pytest.raises(LibraryUnavailableError):
            await evaluate_smart_playlist(parse_rules({}), library)
