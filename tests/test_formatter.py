"""Tests for record_commander.formatter."""

import pytest

from record_commander.formatter import did_you_mean, format_result, suggest


class TestFormatResult:
    def test_success(self):
        assert format_result(True, "add language en English") == "+ add language en English"

    def test_failure(self):
        assert format_result(False, "Type 'x' is not registered.") == "! Type 'x' is not registered."

    def test_marker_is_the_only_prefix(self):
        with pytest.raises(TypeError):
            format_result(True, "updated", prefix="*")

    def test_empty_message(self):
        assert format_result(True, "") == "+ "


class TestSuggest:
    def test_close_match(self):
        assert suggest("langauge", ["language", "country"]) == "language"

    def test_case_insensitive(self):
        assert suggest("LANGUAG", ["language", "country"]) == "language"

    def test_returns_original_spelling(self):
        assert suggest("spokenlanguage", ["SpokenLanguages"]) == "SpokenLanguages"

    def test_no_match(self):
        assert suggest("zzzzz", ["language", "country"]) is None

    def test_empty_candidates(self):
        assert suggest("language", []) is None

    def test_exact_match(self):
        assert suggest("country", ["language", "country"]) == "country"


class TestDidYouMean:
    def test_with_match(self):
        assert did_you_mean("contry", ["country"]) == " Did you mean 'country'?"

    def test_without_match(self):
        assert did_you_mean("zzzzz", ["country"]) == ""
