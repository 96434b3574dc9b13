"""Test error messages, position accuracy, and context snippets."""

import pytest

from pleat.errors import AttributeConditionError, CompileError, LexError, ParseError, RenderError
from pleat.lexer import tokenize
from pleat.parser import parse
from pleat.tokens import SourcePosition


class TestErrorPositions:
    def test_indentation_position(self):
        with pytest.raises(LexError) as exc_info:
            tokenize("div\n    p\n  span")
        err = exc_info.value
        assert err.position.line == 3
        assert err.position.column == 1

    def test_parse_error_points_at_token(self):
        with pytest.raises(ParseError) as exc_info:
            parse("div\n  p\n  @case 1")
        err = exc_info.value
        assert err.position.line == 3
        assert err.position.column == 3

    def test_nul_character(self):
        with pytest.raises(LexError, match="NUL"):
            tokenize("hello\0world")

    def test_unterminated_fence_points_at_opening(self):
        with pytest.raises(LexError) as exc_info:
            tokenize("p\n~~\nx = 1")
        assert exc_info.value.position.line == 2


class TestErrorFormatting:
    def _error(self) -> ParseError:
        with pytest.raises(ParseError) as exc_info:
            parse("p one\n@else", "page.pleat")
        return exc_info.value

    def test_format_contains_line(self):
        assert "@else" in self._error().format()

    def test_format_contains_carets(self):
        assert "^^^^^" in self._error().format()

    def test_format_contains_error_prefix(self):
        assert self._error().format().startswith("error:")

    def test_format_contains_position(self):
        assert "page.pleat:2:1" in self._error().format()

    def test_format_with_custom_filename(self):
        assert "other.pleat:2:1" in self._error().format("other.pleat")

    def test_str_is_formatted(self):
        err = self._error()
        assert str(err) == err.format()


class TestErrorKinds:
    def test_hierarchy(self):
        assert issubclass(AttributeConditionError, CompileError)

    def test_render_error_kind_and_chain(self):
        err = RenderError(
            "NameError: name 'x' is not defined",
            SourcePosition(1, 3, 1, "page.pleat"),
            "p #{x}",
            ["card", "badge"],
        )
        formatted = err.format()
        assert formatted.startswith("render error: NameError")
        assert formatted.endswith("in component chain: +card -> +badge")

    def test_render_error_without_chain(self):
        err = RenderError("boom", SourcePosition(1, 1, 0, "page.pleat"), "p")
        assert "component chain" not in err.format()

    def test_attribute_condition_message(self):
        err = AttributeConditionError("div", "class", "x +", "invalid syntax", SourcePosition(2, 3, 0, "t.pleat"))
        assert err.message == "parse tag 'div': attribute 'class': condition 'x +': invalid syntax"
