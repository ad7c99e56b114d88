"""Tests for filter-string parsing and rule evaluation."""

import pytest

import fsg


class TestParse:

    def test_polarities(self):
        rules = fsg.FilterRuleSet.parse("+foo -bar")
        assert rules.rules == (
            fsg.FilterRule(b"foo", fsg.INCLUDE),
            fsg.FilterRule(b"bar", fsg.EXCLUDE),
        )
        assert rules.has_includes

    def test_repeated_spaces_are_ignored(self):
        assert len(fsg.FilterRuleSet.parse("  +foo   -bar ")) == 2

    def test_exclude_only(self):
        rules = fsg.FilterRuleSet.parse("-bar")
        assert not rules.has_includes

    @pytest.mark.parametrize("text", ["", "   "])
    def test_empty_filter_rejected(self, text):
        with pytest.raises(fsg.ConfigurationError, match="invalid filter"):
            fsg.FilterRuleSet.parse(text)

    def test_missing_prefix_rejected(self):
        with pytest.raises(fsg.ConfigurationError, match="missing \\+ or -"):
            fsg.FilterRuleSet.parse("+foo bar")

    @pytest.mark.parametrize("text", ["+", "+foo -"])
    def test_bare_prefix_rejected(self, text):
        with pytest.raises(fsg.ConfigurationError, match="no word"):
            fsg.FilterRuleSet.parse(text)

    def test_rules_validated_on_construction(self):
        with pytest.raises(fsg.ConfigurationError):
            fsg.FilterRuleSet([fsg.FilterRule(b"foo", "*")])
        with pytest.raises(fsg.ConfigurationError):
            fsg.FilterRuleSet([fsg.FilterRule(b"", fsg.INCLUDE)])

    def test_describe(self):
        lines = list(fsg.FilterRuleSet.parse("+foo -bar").describe())
        assert lines == [
            "> strings with 'foo' will be included",
            "> strings with 'bar' will be excluded",
        ]


class TestAccepts:

    @pytest.fixture
    def rules(self):
        return fsg.FilterRuleSet.parse("+a +b -c")

    def test_empty_rule_set_accepts_everything(self):
        rules = fsg.FilterRuleSet()
        assert rules.accepts(b"anything")
        assert rules.accepts(b"")

    def test_one_include_matches(self, rules):
        assert rules.accepts(b"xaz")
        assert rules.accepts(b"xbz")

    def test_exclude_wins_over_include(self, rules):
        assert not rules.accepts(b"xcz")
        assert not rules.accepts(b"a-c")

    def test_no_include_matches(self, rules):
        assert not rules.accepts(b"xyz")

    def test_exclude_only_keeps_other_strings(self):
        rules = fsg.FilterRuleSet.parse("-world")
        assert rules.accepts(b"hello")
        assert not rules.accepts(b"hello world")

    def test_case_sensitive(self):
        rules = fsg.FilterRuleSet.parse("+Foo")
        assert rules.accepts(b"xFoox")
        assert not rules.accepts(b"xfoox")

    def test_word_longer_than_string(self):
        assert not fsg.FilterRuleSet.parse("+longword").accepts(b"long")

    def test_match_at_edges(self):
        rules = fsg.FilterRuleSet.parse("+key")
        assert rules.accepts(b"key=1")
        assert rules.accepts(b"the key")

    def test_order_does_not_matter(self):
        forward = fsg.FilterRuleSet.parse("+a -c +b")
        backward = fsg.FilterRuleSet.parse("+b -c +a")
        for text in (b"a", b"b", b"c", b"ac", b"bc", b"xyz", b"ab"):
            assert forward.accepts(text) == backward.accepts(text)
