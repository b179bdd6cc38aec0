"""Tests for filter parsing and matching."""

import pytest

from wordsbot.engine.filters import (
    FilterTerm,
    TaskFilter,
    collect_filter_info,
    match_task,
)
from wordsbot.errors import InvalidFilter

GENITIV = {"case": "genitiv", "theme": "Padeži"}
DATIV = {"case": "dativ", "theme": "Padeži"}
COLORS = {"topic": "colors", "level": "A1"}


class TestParse:
    @pytest.mark.parametrize("text", [None, "", "   ", "-", " - "])
    def test_reset_tokens_mean_no_filter(self, text):
        assert TaskFilter.parse(text) is None

    def test_groups_and_terms(self):
        f = TaskFilter.parse("genitiv, dativ; level=a1")

        assert len(f.groups) == 2
        assert f.groups[0].terms == (FilterTerm("genitiv"), FilterTerm("dativ"))
        assert f.groups[1].terms == (FilterTerm("a1", name="level"),)

    def test_exact_term(self):
        f = TaskFilter.parse("topic==colors")
        assert f.groups[0].terms == (FilterTerm("colors", name="topic", exact=True),)

    def test_parse_is_case_insensitive(self):
        assert TaskFilter.parse("Case=GENITIV") == TaskFilter.parse("case=genitiv")

    @pytest.mark.parametrize("text", [";", ", ;,", "=x", "name=", "==x"])
    def test_nothing_usable_raises(self, text):
        with pytest.raises(InvalidFilter):
            TaskFilter.parse(text)

    def test_invalid_filter_is_a_value_error(self):
        with pytest.raises(ValueError):
            TaskFilter.parse(";;")

    def test_empty_terms_are_skipped(self):
        f = TaskFilter.parse("genitiv,, ;")
        assert len(f.groups) == 1
        assert f.groups[0].terms == (FilterTerm("genitiv"),)


class TestMatching:
    def test_bare_term_matches_any_value(self):
        f = TaskFilter.parse("padež")
        assert f.matches(GENITIV)
        assert not f.matches(COLORS)

    def test_named_term_only_checks_that_tag(self):
        f = TaskFilter.parse("theme=genitiv")
        assert not f.matches(GENITIV)
        assert TaskFilter.parse("case=genitiv").matches(GENITIV)

    def test_substring_versus_exact(self):
        assert TaskFilter.parse("case=gen").matches(GENITIV)
        assert not TaskFilter.parse("case==gen").matches(GENITIV)
        assert TaskFilter.parse("case==Genitiv").matches(GENITIV)

    def test_or_within_group(self):
        f = TaskFilter.parse("genitiv, dativ")
        assert f.matches(GENITIV)
        assert f.matches(DATIV)
        assert not f.matches(COLORS)

    def test_and_across_groups(self):
        f = TaskFilter.parse("genitiv, dativ; theme=padeži")
        assert f.matches(GENITIV)
        assert not f.matches({"case": "genitiv"})

    def test_tag_names_are_case_insensitive(self):
        assert TaskFilter.parse("level=a1").matches({"Level": "A1"})

    def test_no_filter_matches_everything(self):
        assert match_task(COLORS, None)
        assert match_task({}, None)

    def test_untagged_task_matches_no_filter_but_fails_any_term(self):
        assert not match_task({}, TaskFilter.parse("colors"))


class TestTextForm:
    @pytest.mark.parametrize(
        "text",
        ["genitiv, dativ; level=a1", "topic==colors", "a; b; c=d, e==f"],
    )
    def test_to_text_parses_back(self, text):
        f = TaskFilter.parse(text)
        assert TaskFilter.parse(f.to_text()) == f

    def test_str_is_canonical_text(self):
        f = TaskFilter.parse("  Genitiv ,dativ;LEVEL = a1 ")
        assert str(f) == "genitiv, dativ; level=a1"

    def test_from_tags_is_exact_conjunction(self):
        f = TaskFilter.from_tags({"topic": "colors", "level": "A1"})

        assert f.to_text() == "level==a1; topic==colors"
        assert f.matches(COLORS)
        assert not f.matches({"topic": "colorsx", "level": "A1"})
        assert TaskFilter.parse(f.to_text()) == f

    def test_from_empty_tags(self):
        assert TaskFilter.from_tags({}) is None


def test_collect_filter_info_sorted_and_deduplicated():
    infos = collect_filter_info(
        [
            {"topic": "colors", "level": "A1"},
            {"topic": "Colors", "level": "B2"},
            {"topic": "animals"},
            {},
        ]
    )

    assert [i.name for i in infos] == ["level", "topic"]
    assert infos[0].possible_values == ["A1", "B2"]
    assert infos[1].possible_values == ["animals", "colors"]


def test_collect_filter_info_empty():
    assert collect_filter_info([]) == []


class TestSeparatorsInValues:
    @pytest.mark.parametrize(
        "tags",
        [
            {"level": "a1, a2"},
            {"topic": "a; b", "level": "x=y"},
            {"note": "back\\slash", "name=odd": "=lead"},
            {"padded": " a1 "},
        ],
    )
    def test_from_tags_text_parses_back(self, tags):
        f = TaskFilter.from_tags(tags)
        assert TaskFilter.parse(f.to_text()) == f

    def test_escaped_comma_stays_in_one_term(self):
        f = TaskFilter.parse("level==a1\\, a2")

        assert f.groups[0].terms == (FilterTerm("a1, a2", name="level", exact=True),)
        assert f.matches({"level": "A1, A2"})
        assert not f.matches({"topic": "a2 words"})

    def test_canonical_text_escapes_separators(self):
        f = TaskFilter.from_tags({"level": "a1, a2"})
        assert f.to_text() == "level==a1\\, a2"

    @pytest.mark.parametrize("tags", [{"level": ""}, {"level": "  "}, {"": "a1"}])
    def test_blank_tags_cannot_be_written(self, tags):
        with pytest.raises(InvalidFilter):
            TaskFilter.from_tags(tags)
