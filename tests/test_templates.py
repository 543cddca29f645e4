"""
Test Template and Backreference Module
======================================

Unit tests for placeholder substitution and \\N backreferences.
"""

import re
import uuid
from datetime import datetime

import pytest
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from rules.templates import substitute, tokenize, call_function, Literal, FieldRef, FuncRef
from rules.backrefs import apply_backrefs
from services.message import Message


@pytest.fixture
def message():
    """Message with a few fields."""
    return Message("test", {"param1": "Value1", "a": "1", "b": "2", "flag": True})


class TestTokenize:
    """Tests for the placeholder lexer."""

    def test_tokens(self):
        """Test literal, field and function tokens."""
        assert tokenize("a${b}c$(d)") == [
            Literal("a"), FieldRef("b"), Literal("c"), FuncRef("d")
        ]

    def test_unterminated(self):
        """Test an unterminated placeholder stays literal."""
        assert tokenize("x ${name") == [Literal("x ${name")]

    def test_lone_dollar(self):
        """Test dollar signs without a delimiter."""
        assert tokenize("$5 and $") == [Literal("$5 and $")]


class TestSubstitute:
    """Tests for substitute."""

    def test_no_placeholders(self, message):
        """Test text without placeholders is unchanged."""
        assert substitute(message, "plain text; a=b") == "plain text; a=b"
        assert substitute(message, "") == ""

    def test_field(self, message):
        """Test field substitution."""
        assert substitute(message, "Here is param1 = ${param1}") == "Here is param1 = Value1"

    def test_adjacent_fields(self, message):
        """Test adjacent placeholders both substitute."""
        assert substitute(message, "${a}${b}") == "12"
        assert substitute(message, "$(random x)${a}") == "x1"

    def test_missing_field(self, message):
        """Test an absent field renders as the message's not-found value."""
        assert substitute(message, "x${nope}y") == "xy"

    def test_boolean_field(self, message):
        """Test booleans render in command form."""
        assert substitute(message, "${flag}") == "true"

    def test_empty_placeholders(self, message):
        """Test empty placeholders render as nothing."""
        assert substitute(message, "a${}b$()c") == "abc"

    def test_unterminated(self, message):
        """Test unterminated placeholders are kept."""
        assert substitute(message, "abc ${param1") == "abc ${param1"
        assert substitute(message, "${a} $(uuid") == "1 $(uuid"

    def test_uuid(self, message):
        """Test uuid generates a fresh UUID."""
        first = substitute(message, "$(uuid)")
        second = substitute(message, "$(uuid)")
        assert str(uuid.UUID(first)) == first
        assert first != second

    def test_random(self, message):
        """Test random character classes."""
        result = substitute(message, "${param1}, $(random , this # is number and this @ is letter)")
        assert re.fullmatch(r"Value1, this \d is number and this [A-Za-z] is letter", result)

        result = substitute(message, "$(random ***)")
        assert re.fullmatch(r"[A-Za-z0-9]{3}", result)

    def test_random_joins_arguments(self, message):
        """Test comma separated arguments are joined with spaces."""
        assert substitute(message, "$(random a, b)") == "a b"

    def test_date(self, message):
        """Test date formatting."""
        assert substitute(message, "$(date %Y)") == str(datetime.now().year)
        datetime.fromisoformat(substitute(message, "$(date)"))

    def test_date_moment_tokens_are_literal(self, message):
        """Test moment-style tokens are not strftime directives."""
        assert substitute(message, "$(date YYYY-MM-DD)") == "YYYY-MM-DD"

    def test_unknown_function(self, message):
        """Test an unknown function keeps its text without delimiters."""
        assert substitute(message, "[$(unknown thing)]") == "[unknown thing]"

    def test_call_function_leading_equals(self):
        """Test the optional '=' before the function name."""
        assert call_function("=random abc") == "abc"


class TestApplyBackrefs:
    """Tests for apply_backrefs."""

    def test_groups(self):
        """Test numbered groups."""
        result = apply_backrefs(r"(\w+)\s+(\w+)", "Hello World!", "echo \\1;marked=\\2")
        assert result == "echo Hello;marked=World"

    def test_whole_match(self):
        """Test group 0."""
        assert apply_backrefs("regexp", "myregexp", "v=\\0") == "v=regexp"

    @pytest.mark.parametrize("template", ["", "x", "\\0", "return true"])
    def test_no_match_is_empty(self, template):
        """Test no match yields an empty string for any template."""
        assert apply_backrefs("^zzz", "myregexp", template) == ""

    def test_missing_group(self):
        """Test a group the pattern does not have renders empty."""
        assert apply_backrefs("regexp", "myregexp", "v=\\1") == "v="

    def test_non_participating_group(self):
        """Test a group outside the match renders empty."""
        assert apply_backrefs("(a)|(b)", "b", "[\\1][\\2]") == "[][b]"

    def test_backslash_without_digit(self):
        """Test other backslashes are kept."""
        assert apply_backrefs("x", "x", "ext\\.\\d+") == "ext\\.\\d+"
        assert apply_backrefs("x", "x", "end\\") == "end\\"

    def test_multi_digit_group(self):
        """Test group numbers above nine."""
        pattern = "(a)(b)(c)(d)(e)(f)(g)(h)(i)(j)"
        assert apply_backrefs(pattern, "abcdefghij", "\\10\\1") == "ja"

    def test_compiled_pattern(self):
        """Test a precompiled pattern."""
        assert apply_backrefs(re.compile(r"(\d+)"), "id 42", "n=\\1") == "n=42"

    def test_invalid_pattern(self):
        """Test an invalid pattern raises re.error."""
        with pytest.raises(re.error):
            apply_backrefs("(abc", "abc", "x")
