"""End-to-end rendering through the generated Python."""

import pytest

from pleat.errors import CompileError, RenderError
from pleat.template import Template


class TestAttributes:
    def test_class_flattening(self, render):
        html = render('div.test1.test2[class="test3"][class="test4"]')
        assert html == '<div class="test1 test2 test3 test4"></div>'

    def test_sorted_keys(self, render):
        html = render('a[title="t", href="/"]#x')
        assert html == '<a href="/" id="x" title="t"></a>'

    def test_conditional_branches(self, render):
        source = "div\n  @if active\n    .on\n  @else\n    .off\n  | x"
        assert render(source, active=True) == '<div class="on">x</div>'
        assert render(source, active=False) == '<div class="off">x</div>'

    def test_nested_conditional_branches(self, render):
        source = "div\n  @if a\n    @if b\n      .on\n  | x"
        assert render(source, a=True, b=True) == '<div class="on">x</div>'
        assert render(source, a=True, b=False) == "<div>x</div>"

    def test_condition_suffix(self, render):
        source = "div\n  .active ? on\n  | x"
        assert render(source, on=True) == '<div class="active">x</div>'
        assert render(source, on=False) == "<div>x</div>"

    def test_guarded_list(self, render):
        source = 'p[(admin)=[class="admin", data-role="root"]] hi'
        assert render(source, admin=True) == '<p class="admin" data-role="root">hi</p>'
        assert render(source, admin=False) == "<p>hi</p>"

    def test_boolean_flags(self, render):
        source = 'input[type="checkbox", checked=on]'
        assert render(source, on=True) == '<input checked type="checkbox" />'
        assert render(source, on=False) == '<input type="checkbox" />'

    def test_style(self, render):
        html = render('div[style={"color": "red"}][style="margin: 0"]')
        assert html == '<div style="color:red; margin: 0"></div>'

    def test_attribute_values_escaped(self, render):
        assert render("a[title=t]", t='"quoted"') == '<a title="&quot;quoted&quot;"></a>'


class TestMarkup:
    @pytest.mark.parametrize("name", ["meta", "img", "link", "input", "source", "area", "base", "col", "br", "hr"])
    def test_self_closing(self, render, name):
        assert render(f"{name}\n  | ignored") == f"<{name} />"

    def test_blank_line_before_block(self, render):
        assert render("div\n\n  p x") == "<div><p>x</p></div>"
        assert render("@if on\n\n  | yes", on=True) == "yes"

    def test_doctype(self, render):
        assert render("!!! 5\nhtml") == "<!DOCTYPE html><html></html>"

    def test_comments(self, render):
        assert render("// shown\n//- hidden\np") == "<!-- shown --><p></p>"

    def test_interpolation_escapes(self, render):
        assert render("p #{value}", value="<b>") == "<p>&lt;b&gt;</p>"

    def test_raw_interpolation(self, render):
        assert render("p !{value}", value="<b>") == "<p><b></p>"

    def test_literal_text_is_markup(self, render):
        assert render("p <em>hi</em>") == "<p><em>hi</em></p>"

    def test_none_writes_nothing(self, render):
        assert render("p #{value}", value=None) == "<p></p>"

    def test_write_expression(self, render):
        assert render("h1= title.upper()", title="hi") == "<h1>HI</h1>"

    def test_script_body_verbatim(self, render):
        html = render("script\n  if (a < b) {\n    go();\n  }")
        assert html == "<script>if (a < b) {\n  go();\n}</script>"

    def test_sigils(self, render):
        assert render("p #{$a + $b}", a=1, b=2) == "<p>3</p>"


class TestExpressions:
    def test_arithmetic(self, render):
        assert render("p #{A + B * C}", A=2, B=3, C=4) == "<p>14</p>"

    def test_comparison(self, render):
        assert render("p #{C - A < B}", A=2, B=3, C=4) == "<p>True</p>"

    def test_dollar_brace(self, render):
        assert render("p ${A + B * C}", A=2, B=3, C=4) == "<p>14</p>"


class TestControlFlow:
    SWITCH = """
        @switch x
          @case 1
            | one
          @case 2
            | two
          @case 3
            | three
          @default
            | other
        """

    def test_switch_first_match(self, render):
        assert render(self.SWITCH, x=2) == "two"

    def test_switch_default(self, render):
        assert render(self.SWITCH, x=9) == "other"

    def test_switch_without_default_emits_nothing(self, render):
        assert render("@switch x\n  @case 1\n    | one", x=9) == ""

    def test_duplicate_case_first_wins(self, render):
        assert render("@switch x\n  @case 1\n    | a\n  @case 1\n    | b", x=1) == "a"

    def test_if_else_if(self, render):
        source = "@if n > 10\n  | big\n@else if n > 5\n  | medium\n@else\n  | small"
        assert render(source, n=20) == "big"
        assert render(source, n=7) == "medium"
        assert render(source, n=1) == "small"

    def test_for(self, render):
        source = "ul\n  @for item in items\n    li #{item}\n  @else\n    li empty"
        assert render(source, items=[1, 2]) == "<ul><li>1</li><li>2</li></ul>"
        assert render(source, items=[]) == "<ul><li>empty</li></ul>"

    def test_for_unpacking(self, render):
        source = "@for k, v in pairs.items()\n  | #{k}=#{v};"
        assert render(source, pairs={"a": 1, "b": 2}) == "a=1;b=2;"

    def test_code_and_assignment(self, render):
        source = "~ total = 0\n@for n in nums\n  $total += n\np= total"
        assert render(source, nums=[1, 2, 3]) == "<p>6</p>"

    def test_fenced_code(self, render):
        source = "~~\ndef double(x):\n    return x * 2\n~~\np #{double(21)}"
        assert render(source) == "<p>42</p>"

    def test_return_stops_template(self, render):
        assert render("p a\n@return\np b") == "<p>a</p>"


class TestComponents:
    def test_comp_with_params(self, render):
        source = '@comp greet(name)\n  p Hello #{name}\n+greet("Ann")'
        assert render(source) == "<p>Hello Ann</p>"

    def test_kebab_case_name(self, render):
        assert render("@comp nav-item\n  li\n+nav-item") == "<li></li>"

    def test_override_wins(self, render):
        assert render("@comp card\n  | a\n@comp =card\n  | b\n+card") == "b"

    def test_main_component(self, render):
        assert render("@main(title)\n  h1= title", title="Hi") == "<h1>Hi</h1>"

    def test_slot_default(self, render):
        source = "@comp card\n  div\n    @slot main\n      | default\n+card"
        assert render(source) == "<div>default</div>"

    def test_slot_override_calls_default(self, render):
        source = """
            @comp card
              div
                @slot main
                  | default
            +card()
              @slot #main(default_slot)
                | before
                ~ default_slot()
                | after
            """
        assert render(source) == "<div>beforedefaultafter</div>"

    def test_default_as_leading_argument(self, render):
        source = """
            @comp message()
              @slot main
                | the message
            +message()
              @slot #main(parent)
                | my msg
            +message()
              @slot #main(parent)
                ~ parent()
                | !
            """
        assert render(source) == "my msgthe message!"

    def test_leading_default_with_slot_arguments(self, render):
        source = """
            @comp print-lines(lines)
              @for i, line in enumerate(lines)
                @slot line(i, line)
                  | #{i}: #{line};
            +print-lines(["a", "b"])
              @slot #line(sup, i, line)
                | [#{line}]
                ~ sup(i, line)
            +print-lines(["c"])
              @slot #line(sup, i, line)
                ~ sup()
            """
        assert render(source) == "[a]0: a;[b]1: b;0: c;"

    def test_implicit_main_pass(self, render):
        source = "@comp box\n  section\n    @slot main\n      | empty\n+box\n  p inside"
        assert render(source) == "<section><p>inside</p></section>"

    def test_scoped_slot(self, render):
        source = """
            @comp listing(items)
              ul
                @for item in items
                  li
                    @slot row(item)
                      | #{item}
            +listing([1, 2])
            +listing([3])
              @slot #row(item)
                b #{item * 10}
            """
        assert render(source) == "<ul><li>1</li><li>2</li></ul><ul><li><b>30</b></li></ul>"

    def test_dynamic_slot_key(self, render):
        source = """
            @comp card
              @slot header
                | h
              @slot footer
                | f
            +card
              @slot #(which)()
                | X
            """
        assert render(source, which="footer") == "hX"

    def test_wrap(self, render):
        source = """
            @comp card
              div
                @slot body
                  @wrap
                    section
                      ~ slot()
                  | default
            +card
            +card
              @slot #body
                | custom
            """
        html = render(source)
        assert html == "<div><section>default</section></div><div><section>custom</section></div>"

    def test_wrap_sees_user_slot(self, render):
        source = """
            @comp card
              @slot body
                @wrap
                  @if user_slot
                    | [custom]
                  ~ slot()
                | default
            +card
            +card
              @slot #body
                | mine
            """
        assert render(source) == "default[custom]mine"

    def test_comp_call_init_code(self, render):
        source = "@comp show(n)\n  | #{n}\n+show(n) ~\n  ~ n = 5"
        assert render(source) == "5"

    def test_nested_comp(self, render):
        source = "@comp outer\n  @comp inner\n    i x\n  b\n    +inner\n+outer"
        assert render(source) == "<b><i>x</i></b>"

    def test_passed_slot_updates_module_variable(self, render):
        source = "$n = 1\n@comp card\n  div\n    @slot main\n+card\n  $n += 1\n  p= n"
        assert render(source) == "<div><p>2</p></div>"

    def test_comp_updates_module_variable(self, render):
        source = "$n = 0\n@comp bump\n  $n += 1\n+bump\n+bump\np= n"
        assert render(source) == "<p>2</p>"

    def test_passed_slot_updates_comp_variable(self, render):
        source = """
            @comp card
              @slot main
            @comp tally(items)
              $total = 0
              @for item in items
                +card
                  $total += item
              b= total
            +tally([1, 2, 3])
            """
        assert render(source) == "<b>6</b>"

    def test_exports(self):
        template = Template("@export comp card\n  | c\n@export answer = 42\n")
        exports = template.exports()
        assert exports["answer"] == 42
        assert callable(exports["card"])


class TestErrors:
    def test_render_error_position(self, render):
        with pytest.raises(RenderError) as exc_info:
            render("p ok\np #{1 / zero}", zero=0)
        err = exc_info.value
        assert err.position.line == 2
        assert "ZeroDivisionError" in err.message

    def test_render_error_component_chain(self, render):
        with pytest.raises(RenderError) as exc_info:
            render("@comp boom\n  p #{missing}\n+boom")
        err = exc_info.value
        assert err.call_stack == ["boom"]
        assert "NameError" in err.message
        assert "in component chain: +boom" in err.format()

    def test_generated_syntax_error(self):
        with pytest.raises(CompileError, match="generated code does not compile"):
            Template("~ if x\np")
