"""Bridge to Python's own expression parser.

Template expressions are plain Python.  This module checks them with
:mod:`ast`, reshapes call headers into parameter lists and splits text
lines into literal and interpolated segments.  Failures raise
:class:`ExpressionError`; callers attach a template position.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass

from pleat.strings import strip_sigils

_OPENERS = {"(": ")", "[": "]", "{": "}"}


class ExpressionError(ValueError):
    """An embedded expression that Python cannot parse."""

    def __init__(self, text: str, reason: str) -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"invalid expression {text!r}: {reason}")


def _reason(exc: SyntaxError) -> str:
    return exc.msg or "invalid syntax"


def parse_expression(text: str) -> ast.expr:
    """Parse a single expression, accepting ``$`` sigils on names."""
    source = strip_sigils(text.strip())
    if not source:
        raise ExpressionError(text, "empty expression")
    try:
        return ast.parse(source, mode="eval").body
    except SyntaxError as exc:
        raise ExpressionError(text, _reason(exc)) from None


def expression(text: str) -> str:
    """Validate an expression and return its source with sigils removed."""
    parse_expression(text)
    return strip_sigils(text.strip())


def is_expression(text: str) -> bool:
    try:
        parse_expression(text)
    except ExpressionError:
        return False
    return True


def for_header(text: str) -> str:
    """Validate the ``target in iterable`` part of a for loop."""
    source = strip_sigils(text.strip())
    if source.startswith("for "):
        source = source[4:].lstrip()
    try:
        ast.parse(f"for {source}:\n    pass\n")
    except SyntaxError as exc:
        raise ExpressionError(text, _reason(exc)) from None
    return source


def parse_params(text: str, *, kwonly: tuple[str, ...] = (), var_keywords: str | None = None) -> str:
    """Normalise a parameter list such as ``a, b=1, *rest``.

    Names in *kwonly* are appended as keyword-only parameters defaulting
    to ``None``; *var_keywords* adds a ``**name`` catch-all unless the
    list already has one.
    """
    source = strip_sigils(text.strip())
    try:
        fn = ast.parse(f"def _({source}):\n    pass\n").body[0]
    except SyntaxError as exc:
        raise ExpressionError(text, _reason(exc)) from None
    assert isinstance(fn, ast.FunctionDef)
    args = fn.args
    for name in kwonly:
        args.kwonlyargs.append(ast.arg(arg=name))
        args.kw_defaults.append(ast.Constant(value=None))
    if var_keywords and args.kwarg is None:
        args.kwarg = ast.arg(arg=var_keywords)
    return ast.unparse(args)


def param_names(text: str) -> set[str]:
    """Names bound by a parameter list."""
    try:
        fn = ast.parse(f"def _({strip_sigils(text.strip())}):\n    pass\n").body[0]
    except SyntaxError:
        return set()
    assert isinstance(fn, ast.FunctionDef)
    args = fn.args
    names = {a.arg for a in [*args.posonlyargs, *args.args, *args.kwonlyargs]}
    for extra in (args.vararg, args.kwarg):
        if extra is not None:
            names.add(extra.arg)
    return names


# ----------------------------------------------------------------------
# Call shapes
# ----------------------------------------------------------------------


@dataclass(slots=True)
class CallShape:
    """A parsed call: optional callee plus positional and keyword arguments."""

    target: ast.expr | None
    args: list[ast.expr]
    keywords: list[ast.keyword]

    def call_args(self) -> list[str]:
        """Argument sources, ready to be joined into a call."""
        return [ast.unparse(a) for a in self.args] + [ast.unparse(k) for k in self.keywords]

    def params(self, *, keep_defaults: bool) -> str:
        """Turn the call into a ``def`` parameter list.

        Positional names become parameters, keywords become parameters
        with a default (their value, or ``None`` when *keep_defaults* is
        false), ``*x`` and ``**y`` carry over.  Without keep_defaults
        every parameter defaults to ``None``.
        """
        plain: list[str] = []
        defaulted: list[str] = []
        star = ""
        double_star = ""
        for i, arg in enumerate(self.args):
            if isinstance(arg, ast.Starred):
                star = f"*{_param_name(arg.value, i)}"
            elif keep_defaults:
                plain.append(_param_name(arg, i))
            else:
                defaulted.append(f"{_param_name(arg, i)}=None")
        for kw in self.keywords:
            if kw.arg is None:
                double_star = f"**{_param_name(kw.value, len(self.args))}"
            elif keep_defaults:
                defaulted.append(f"{kw.arg}={ast.unparse(kw.value)}")
            else:
                defaulted.append(f"{kw.arg}=None")
        parts = plain + defaulted
        if star:
            parts.append(star)
        if double_star:
            parts.append(double_star)
        return ", ".join(parts)

    @property
    def has_var_keywords(self) -> bool:
        return any(kw.arg is None for kw in self.keywords)


def _param_name(node: ast.expr, index: int) -> str:
    if isinstance(node, ast.Name):
        return node.id
    return f"__arg{index}"


def parse_call(text: str) -> CallShape:
    """Parse ``name(args)``, ``name`` or ``(key_expr)(args)``."""
    node = parse_expression(text)
    if isinstance(node, ast.Call):
        return CallShape(node.func, list(node.args), list(node.keywords))
    return CallShape(node, [], [])


def parse_arguments(text: str) -> CallShape:
    """Parse a bare argument list such as ``1, title="x"``."""
    if not text.strip():
        return CallShape(None, [], [])
    try:
        node = ast.parse(f"_({strip_sigils(text)})", mode="eval").body
    except SyntaxError as exc:
        raise ExpressionError(text, _reason(exc)) from None
    assert isinstance(node, ast.Call)
    return CallShape(None, list(node.args), list(node.keywords))


def slot_key(target: ast.expr | None, *, dynamic: bool = False) -> str:
    """Source of the slots-map key for a slot-pass callee expression.

    A bare name is a literal key unless *dynamic* (the header wrapped it
    in parentheses), in which case it is looked up at render time.
    """
    if isinstance(target, ast.Name) and not dynamic:
        return repr(target.id)
    if target is None:
        return repr("main")
    return ast.unparse(target)


# ----------------------------------------------------------------------
# Bracket-aware scanning
# ----------------------------------------------------------------------


def find_closing(text: str, start: int) -> int:
    """Index of the bracket closing the one at *start*, or -1.

    String literals and nested brackets are skipped.
    """
    stack: list[str] = []
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in "\"'":
            i = _skip_string(text, i)
            if i < 0:
                return -1
            continue
        if ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif stack and ch == stack[-1]:
            stack.pop()
            if not stack:
                return i
        elif ch in ")]}":
            return -1
        i += 1
    return -1


def _skip_string(text: str, i: int) -> int:
    quote = text[i] * 3 if text.startswith(text[i] * 3, i) else text[i]
    i += len(quote)
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text.startswith(quote, i):
            return i + len(quote)
        i += 1
    return -1


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split on *sep* outside strings and brackets."""
    parts: list[str] = []
    depth = 0
    last = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in "\"'":
            end = _skip_string(text, i)
            if end < 0:
                raise ExpressionError(text, "unterminated string")
            i = end
            continue
        if ch in _OPENERS:
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(text[last:i])
            last = i + 1
        i += 1
    parts.append(text[last:])
    return parts


def find_assign(text: str) -> int:
    """Index of the first top-level ``=`` that is not part of an operator."""
    depth = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in "\"'":
            end = _skip_string(text, i)
            if end < 0:
                return -1
            i = end
            continue
        if ch in _OPENERS:
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == "=" and depth == 0:
            prev = text[i - 1] if i else " "
            nxt = text[i + 1] if i + 1 < len(text) else " "
            if prev not in "=!<>:" and nxt != "=":
                return i
            if nxt == "=":
                i += 1
        i += 1
    return -1


# ----------------------------------------------------------------------
# Text interpolation
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Segment:
    """One piece of a text line: literal text or an expression to write."""

    kind: str  # "literal" | "expr" | "raw"
    value: str


_MARKERS = {"#": "expr", "$": "expr", "!": "raw"}


def split_interpolations(text: str) -> list[Segment]:
    """Split a text line into literal and ``#{...}``/``!{...}`` segments.

    ``#{x}`` and ``${x}`` write an escaped value, ``!{x}`` writes it
    verbatim, a leading ``=`` inside the braces is ignored.  A backslash
    before the marker keeps it literal.
    """
    segments: list[Segment] = []
    literal: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\" and i + 2 < n and text[i + 1] in _MARKERS and text[i + 2] == "{":
            literal.append(text[i + 1 : i + 3])
            i += 3
            continue
        if ch in _MARKERS and i + 1 < n and text[i + 1] == "{":
            end = find_closing(text, i + 1)
            if end < 0:
                raise ExpressionError(text[i:], "unterminated interpolation")
            if literal:
                segments.append(Segment("literal", "".join(literal)))
                literal = []
            body = text[i + 2 : end].strip()
            if body.startswith("=") and not body.startswith("=="):
                body = body[1:].strip()
            segments.append(Segment(_MARKERS[ch], expression(body)))
            i = end + 1
            continue
        literal.append(ch)
        i += 1
    if literal:
        segments.append(Segment("literal", "".join(literal)))
    return segments
