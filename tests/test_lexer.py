"""Scanner tests: indentation, line rules and raw-text capture."""

import pytest

from conftest import assert_types
from pleat.errors import LexError
from pleat.lexer import Lexer, tokenize
from pleat.tokens import TokenType

T = TokenType


class TestIndentation:
    def test_single_level(self, lex):
        tokens = lex("div\n  p")
        assert_types(tokens, [T.TAG, T.INDENT, T.TAG, T.OUTDENT])

    def test_multiple_outdents_are_queued(self, lex):
        tokens = lex("a\n  b\n    c\nd")
        assert_types(
            tokens,
            [T.TAG, T.INDENT, T.TAG, T.INDENT, T.TAG, T.OUTDENT, T.OUTDENT, T.TAG],
        )

    def test_blank_lines(self, lex):
        tokens = lex("a\n\n  b")
        assert_types(tokens, [T.TAG, T.BLANK, T.INDENT, T.TAG, T.OUTDENT])

    def test_tabs(self):
        tokens = tokenize("ul\n\tli\n\tli\n")
        assert [t.type for t in tokens] == [T.TAG, T.INDENT, T.TAG, T.TAG, T.OUTDENT, T.EOF]

    def test_incoherent_indentation(self):
        with pytest.raises(LexError, match="incoherent indentation"):
            tokenize("div\n    p\n  span\n")

    def test_mixed_indent_characters(self):
        with pytest.raises(LexError, match="incoherent indentation"):
            tokenize("div\n\tp\n  span\n")

    def test_incoherent_indentation_position(self):
        with pytest.raises(LexError) as exc_info:
            tokenize("div\n    p\n  span\n")
        assert exc_info.value.position.line == 3

    def test_next_until_eof(self):
        lexer = Lexer("p\n")
        assert lexer.next().type is T.TAG
        assert lexer.next().type is T.EOF
        assert lexer.next().type is T.EOF


class TestMarkup:
    def test_tag_class_and_inline_text(self, lex):
        tokens = lex("p.lead Hello")
        assert_types(tokens, [T.TAG, T.CLASS_NAME, T.TEXT])
        assert tokens[1].value == "lead"
        assert tokens[2].value == "Hello"
        assert tokens[2].data["Mode"] == "inline"

    def test_piped_text(self, lex):
        tokens = lex("| some text")
        assert_types(tokens, [T.TEXT])
        assert tokens[0].value == "some text"
        assert tokens[0].data["Mode"] == "piped"

    def test_id_with_condition(self, lex):
        tokens = lex("#main ? show")
        assert_types(tokens, [T.ID])
        assert tokens[0].value == "main"
        assert tokens[0].data["Condition"] == "show"

    def test_attribute_list(self, lex):
        tokens = lex('a[href="/x", target="_blank"] Go')
        assert_types(tokens, [T.TAG, T.ATTRIBUTE, T.TEXT])
        attr = tokens[1]
        assert attr.data["Mode"] == "list"
        assert [e.key for e in attr.payload] == ["href", "target"]
        assert tokens[2].value == "Go"

    def test_attribute_list_with_condition(self, lex):
        tokens = lex("[disabled] ? locked")
        assert_types(tokens, [T.ATTRIBUTE])
        assert tokens[0].data["Condition"] == "locked"
        assert tokens[0].payload[0].kind == "flag"

    def test_doctype(self, lex):
        tokens = lex("!!! 5")
        assert_types(tokens, [T.DOCTYPE])
        assert tokens[0].value == "5"

    def test_doctype_keyword_defaults_to_html(self, lex):
        tokens = lex("@doctype")
        assert tokens[0].value == "html"

    def test_comments(self, lex):
        tokens = lex("// shown\n//- hidden")
        assert_types(tokens, [T.COMMENT, T.COMMENT])
        assert tokens[0].data["Mode"] == "embed"
        assert tokens[1].data["Mode"] == "silent"
        assert tokens[1].value == "hidden"

    def test_backslash_continuation(self, lex):
        tokens = lex("p Hello \\\n  world")
        assert_types(tokens, [T.TAG, T.TEXT])
        assert tokens[1].value == "Hello world"

    def test_token_position(self, lex):
        tokens = lex("div\n  span.x")
        span = tokens[2]
        assert span.position.line == 2
        assert span.position.column == 3
        assert span.position.length == 4


class TestRawText:
    def test_script_body_is_one_text_token(self, lex):
        tokens = lex(
            """
            script
              if (a < b) {
                go();
              }
            p
            """
        )
        assert_types(tokens, [T.TAG, T.INDENT, T.TEXT, T.OUTDENT, T.TAG])
        assert tokens[2].value == "if (a < b) {\n  go();\n}"
        assert tokens[2].data["Mode"] == "raw"

    def test_style_body_keeps_blank_lines(self, lex):
        tokens = lex("style\n  a {}\n\n  b {}")
        text = [t for t in tokens if t.type is T.TEXT][0]
        assert text.value == "a {}\n\nb {}"


class TestControlFlow:
    def test_if_else_chain(self, lex):
        tokens = lex("@if x > 1\n@else if y\n@else")
        assert_types(tokens, [T.IF, T.ELSE_IF, T.ELSE])
        assert tokens[0].value == "x > 1"
        assert tokens[1].value == "y"

    def test_for(self, lex):
        tokens = lex("@for item in items")
        assert_types(tokens, [T.FOR])
        assert tokens[0].value == "item in items"

    def test_switch_case_default(self, lex):
        tokens = lex("@switch kind\n  @case 'a'\n  @default")
        assert_types(tokens, [T.SWITCH, T.INDENT, T.CASE, T.DEFAULT, T.OUTDENT])
        assert tokens[2].value == "'a'"

    def test_return_stops_scanning(self, lex):
        tokens = lex("p\n@return\ndiv")
        assert_types(tokens, [T.TAG])


class TestCode:
    def test_code_line(self, lex):
        tokens = lex("~ total = 0")
        assert_types(tokens, [T.CODE])
        assert tokens[0].values == ["total = 0"]
        assert tokens[0].data["Mode"] == "line"

    def test_code_trim_markers(self, lex):
        tokens = lex("~- x = 1 -")
        assert tokens[0].data["TrimLeft"] == "true"
        assert tokens[0].data["TrimRight"] == "true"
        assert tokens[0].values == ["x = 1"]

    def test_fenced_code(self, lex):
        tokens = lex("~~\n  x = 1\n  if x:\n      y = 2\n~~\np")
        assert_types(tokens, [T.CODE, T.TAG])
        assert tokens[0].data["Mode"] == "block"
        assert tokens[0].values == ["x = 1", "if x:", "    y = 2"]

    def test_init_fence(self, lex):
        tokens = lex("~~~\nimport math\n~~~")
        assert tokens[0].data["Mode"] == "init"

    def test_unterminated_fence(self):
        with pytest.raises(LexError, match="unterminated code fence"):
            tokenize("~~\nx = 1\n")

    def test_assignment(self, lex):
        tokens = lex("$count += 1")
        assert_types(tokens, [T.ASSIGNMENT])
        assert tokens[0].data["X"] == "count"
        assert tokens[0].data["Op"] == "+"
        assert tokens[0].value == "1"

    def test_write_expression_after_tag(self, lex):
        tokens = lex("p= title")
        assert_types(tokens, [T.TAG, T.ASSIGNMENT])
        assert tokens[1].data["X"] == ""
        assert tokens[1].value == "title"

    def test_import(self, lex):
        tokens = lex('@import "partials/nav" as nav')
        assert_types(tokens, [T.IMPORT])
        assert tokens[0].value == "partials/nav"
        assert tokens[0].data["Ident"] == "nav"


class TestComponents:
    def test_comp(self, lex):
        tokens = lex("@comp card(title, body=None)")
        assert_types(tokens, [T.COMP])
        assert tokens[0].value == "card"
        assert tokens[0].data["Args"] == "title, body=None"
        assert tokens[0].data["Exported"] == ""

    def test_exported_mixin(self, lex):
        tokens = lex("@export mixin nav-item")
        assert tokens[0].type is T.COMP
        assert tokens[0].value == "nav-item"
        assert tokens[0].data["Exported"] == "true"
        assert tokens[0].data["Keyword"] == "mixin"

    def test_override(self, lex):
        tokens = lex("@comp =card")
        assert tokens[0].data["Override"] == "true"

    def test_main(self, lex):
        tokens = lex("@main(title)")
        assert tokens[0].type is T.COMP
        assert tokens[0].value == "main"
        assert tokens[0].data["Exported"] == "true"

    def test_export_value(self, lex):
        tokens = lex("@export version = '1.0'")
        assert_types(tokens, [T.EXPORT])
        assert tokens[0].data["Value"] == "'1.0'"

    def test_comp_call(self, lex):
        tokens = lex('+card("x", size=2)')
        assert_types(tokens, [T.COMP_CALL])
        assert tokens[0].value == "card"
        assert tokens[0].data["Args"] == '"x", size=2'

    def test_comp_call_with_init_code(self, lex):
        tokens = lex("+card() ~")
        assert tokens[0].data["WithCode"] == "true"

    def test_comp_call_is_tried_before_tags(self, lex):
        tokens = lex("+ui.card")
        assert_types(tokens, [T.COMP_CALL])
        assert tokens[0].value == "ui.card"

    def test_slot_and_slot_pass(self, lex):
        tokens = lex("@slot row(item)\n@slot #row(item)\n@wrap")
        assert_types(tokens, [T.SLOT, T.SLOT_PASS, T.WRAP])
        assert tokens[0].data["Args"] == "item"
        assert tokens[1].data["Header"] == "row(item)"
