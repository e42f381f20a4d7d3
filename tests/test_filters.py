"""
Tests for LDAP-style filters.
"""

import pytest

from reposlice.models.component import SelectionContext
from reposlice.models.filters import Filter
from reposlice.validation import ConfigurationError, FilterSyntaxError

LINUX = {"os": "linux", "ws": "gtk", "arch": "x86_64"}
WINDOWS = {"os": "win32", "ws": "win32", "arch": "x86_64"}


class TestFilterParse:
    """Tests for Filter.parse."""

    def test_parens_added_when_missing(self):
        assert Filter.parse("os=linux").text == "(os=linux)"

    def test_parse_optional_blank(self):
        assert Filter.parse_optional(None) is None
        assert Filter.parse_optional("  ") is None

    @pytest.mark.parametrize(
        "text",
        ["(os=linux", "(&(os=linux)", "(os linux)", "(&)", "()", "(os=linux))"],
    )
    def test_malformed_raises(self, text):
        with pytest.raises(FilterSyntaxError):
            Filter.parse(text)

    def test_syntax_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Filter.parse("(os=linux")
        assert exc_info.value.expression == "(os=linux"

    def test_equality_by_text(self):
        assert Filter.parse("(os=linux)") == Filter.parse("os=linux")
        assert hash(Filter.parse("(os=linux)")) == hash(Filter.parse("(os=linux)"))


class TestFilterMatches:
    """Tests for Filter.matches."""

    def test_equality(self):
        f = Filter.parse("(os=linux)")
        assert f.matches(LINUX)
        assert not f.matches(WINDOWS)

    def test_and_or_not(self):
        f = Filter.parse("(&(|(os=linux)(os=macosx))(!(arch=x86)))")
        assert f.matches(LINUX)
        assert not f.matches(WINDOWS)
        assert not f.matches({"os": "linux", "arch": "x86"})

    def test_presence(self):
        f = Filter.parse("(nl=*)")
        assert not f.matches(LINUX)
        assert f.matches({**LINUX, "nl": "de"})

    def test_wildcard(self):
        f = Filter.parse("(arch=x86*)")
        assert f.matches(LINUX)
        assert not f.matches({"arch": "aarch64"})

    def test_missing_attribute_does_not_match(self):
        assert not Filter.parse("(os=linux)").matches({})

    def test_numeric_comparison(self):
        f = Filter.parse("(level>=10)")
        assert f.matches({"level": "10"})
        assert f.matches({"level": "11"})
        assert not f.matches({"level": "9"})

    def test_equality_compares_strings(self):
        assert not Filter.parse("(nl=1.10)").matches({"nl": "1.1"})
        assert Filter.parse("(nl=1.10)").matches({"nl": "1.10"})
        assert Filter.parse("(flavor=nan)").matches({"flavor": "nan"})

    def test_ordering_of_non_integers_is_textual(self):
        assert Filter.parse("(flavor>=inf)").matches({"flavor": "nan"})

    def test_approximate(self):
        assert Filter.parse("(name~=Hello World)").matches({"name": "helloworld"})

    def test_attribute_names_are_case_insensitive(self):
        assert Filter.parse("(OS=linux)").matches(LINUX)


class TestFilterMatchesAny:
    """Tests for the existential match over contexts."""

    def test_any_context(self):
        f = Filter.parse("(os=win32)")
        contexts = [SelectionContext.from_properties(LINUX), SelectionContext.from_properties(WINDOWS)]
        assert f.matches_any(contexts)
        assert not f.matches_any(contexts[:1])

    def test_accepts_plain_mappings(self):
        assert Filter.parse("(os=linux)").matches_any([WINDOWS, LINUX])

    def test_no_contexts(self):
        assert not Filter.parse("(os=linux)").matches_any([])
