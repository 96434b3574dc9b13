"""Attribute resolution: merging a tag's declarations into one attribute set.

Declarations come from ``#id``/``.class`` shorthand, bracket lists and
conditional lines.  At compile time they are flattened to
``(name, value, guard)`` triples, grouped by name and sorted; the result
is emitted as a dict literal handed to :func:`render_attrs` at render
time.
"""

from __future__ import annotations

import ast
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pleat.errors import AttributeConditionError, CompileError
from pleat.expr import (
    ExpressionError,
    expression,
    find_assign,
    find_closing,
    is_expression,
    split_top_level,
)
from pleat.runtime import Markup, escape
from pleat.strings import strip_sigils

if TYPE_CHECKING:
    from pleat.ast import Attribute, Tag

_ATTR_NAME = re.compile(r"^[\w\-:@.]+$")


class AttributeSyntaxError(ValueError):
    """A bracket attribute list that cannot be split into entries."""


@dataclass(slots=True)
class AttrEntry:
    """One entry of a bracket list.

    ``kind`` is ``pair`` (``key=value``), ``flag`` (bare ``key``),
    ``guard`` (``(cond)=[...]``, key holds the condition) or ``spread``
    (a nested ``[...]``).
    """

    key: str
    value: str | None = None
    kind: str = "pair"
    children: list[AttrEntry] = field(default_factory=list)


@dataclass(slots=True)
class ResolvedAttribute:
    name: str
    values: list[str]

    def source(self) -> str:
        if len(self.values) == 1:
            return self.values[0]
        return "[" + ", ".join(self.values) + "]"


# ----------------------------------------------------------------------
# Bracket lists
# ----------------------------------------------------------------------


def parse_attribute_list(text: str) -> tuple[list[AttrEntry], int]:
    """Parse the ``[...]`` list at the start of *text*.

    Returns the entries and the index just past the closing bracket.
    """
    if not text.startswith("["):
        raise AttributeSyntaxError("attribute list must start with '['")
    end = find_closing(text, 0)
    if end < 0:
        raise AttributeSyntaxError("unclosed attribute list")
    try:
        items = split_top_level(text[1:end])
    except ExpressionError as exc:
        raise AttributeSyntaxError(exc.reason) from None
    entries = [_parse_entry(item.strip()) for item in items if item.strip()]
    return entries, end + 1


def _parse_entry(item: str) -> AttrEntry:
    if item.startswith("[") and find_closing(item, 0) == len(item) - 1:
        children, _ = parse_attribute_list(item)
        return AttrEntry("", kind="spread", children=children)

    eq = find_assign(item)
    if eq < 0:
        if item.startswith("("):
            raise AttributeSyntaxError(f"guard {item!r} needs an attribute list")
        return AttrEntry(_parse_key(item), kind="flag")

    key_text = item[:eq].strip()
    value_text = item[eq + 1 :].strip()
    if not value_text:
        raise AttributeSyntaxError(f"missing value for {key_text!r}")

    if key_text.startswith("(") and find_closing(key_text, 0) == len(key_text) - 1:
        guard = key_text[1:-1].strip()
        if not value_text.startswith("["):
            raise AttributeSyntaxError(f"guard {key_text!r} needs an attribute list")
        children, end = parse_attribute_list(value_text)
        if value_text[end:].strip():
            raise AttributeSyntaxError(f"unexpected text after {value_text[:end]!r}")
        return AttrEntry(guard, kind="guard", children=children)

    return AttrEntry(_parse_key(key_text), _parse_value(value_text))


def _parse_key(text: str) -> str:
    if _ATTR_NAME.match(text):
        return text
    if text[:1] in "\"'":
        try:
            value = ast.literal_eval(text)
        except (SyntaxError, ValueError):
            value = None
        if isinstance(value, str) and value:
            return value
    raise AttributeSyntaxError(f"invalid attribute name {text!r}")


def _parse_value(text: str) -> str:
    """Expression source for a value; bare text that is not Python is quoted."""
    if is_expression(text):
        return strip_sigils(text)
    return repr(text)


def flatten(entries: Iterable[AttrEntry], guard: str | None = None) -> list[tuple[str, str, str | None]]:
    """Flatten bracket entries into ``(name, value_source, guard)`` triples."""
    out: list[tuple[str, str, str | None]] = []
    for entry in entries:
        if entry.kind == "spread":
            out.extend(flatten(entry.children, guard))
        elif entry.kind == "guard":
            inner = entry.key if guard is None else f"({guard}) and ({entry.key})"
            out.extend(flatten(entry.children, inner))
        elif entry.kind == "flag":
            out.append((entry.key, "True", guard))
        else:
            assert entry.value is not None
            out.append((entry.key, entry.value, guard))
    return out


# ----------------------------------------------------------------------
# Compile-time resolution
# ----------------------------------------------------------------------


def guarded(value: str, condition: str) -> str:
    """Lower ``value ? condition`` to a conditional expression.

    ``cond`` gives ``value if cond else None``; ``cond else other`` gives
    ``value if cond else other``.
    """
    source = strip_sigils(condition.strip())
    try:
        node = ast.parse(f"({value}) if {source}", mode="eval").body
    except SyntaxError:
        node = None
    if isinstance(node, ast.IfExp):
        return ast.unparse(node)
    try:
        test = ast.parse(source, mode="eval").body
    except SyntaxError as exc:
        raise ExpressionError(condition, exc.msg or "invalid syntax") from None
    body = ast.parse(value, mode="eval").body
    return ast.unparse(ast.IfExp(test=test, body=body, orelse=ast.Constant(value=None)))


def _declaration_triples(tag: Tag, attr: Attribute, source: str) -> list[tuple[str, str, str | None]]:
    if attr.elements is not None:
        triples = flatten(attr.elements)
    elif attr.flag:
        triples = [(attr.name, "True", None)]
    elif attr.raw:
        triples = [(attr.name, repr(attr.value), None)]
    else:
        try:
            triples = [(attr.name, expression(attr.value), None)]
        except ExpressionError as exc:
            raise CompileError(
                f"tag '{tag.name}': attribute '{attr.name}': {exc.reason}", attr.position, source
            ) from None

    if not attr.condition:
        return triples

    lowered: list[tuple[str, str, str | None]] = []
    for name, value, guard in triples:
        try:
            if guard is not None:
                value = guarded(value, guard)
            lowered.append((name, guarded(value, attr.condition), None))
        except ExpressionError as exc:
            raise AttributeConditionError(
                tag.name, name, attr.condition, exc.reason, attr.position, source
            ) from None
    return lowered


def resolve(tag: Tag, source: str = "") -> list[ResolvedAttribute]:
    """Merge a tag's declarations into attributes sorted by name.

    Repeated names collect their values in declaration order.
    """
    grouped: dict[str, list[str]] = {}
    for attr in tag.attributes:
        for name, value, guard in _declaration_triples(tag, attr, source):
            if guard is not None:
                try:
                    value = guarded(value, guard)
                except ExpressionError as exc:
                    raise AttributeConditionError(
                        tag.name, name, guard, exc.reason, attr.position, source
                    ) from None
            grouped.setdefault(name, []).append(value)
    return [ResolvedAttribute(name, grouped[name]) for name in sorted(grouped)]


def mapping_source(attributes: list[ResolvedAttribute]) -> str:
    """Dict literal passed to the runtime ``__attrs__`` helper."""
    items = ", ".join(f"{a.name!r}: {a.source()}" for a in attributes)
    return "{" + items + "}"


# ----------------------------------------------------------------------
# Render time
# ----------------------------------------------------------------------


def _flatten_values(value: Any) -> Iterator[Any]:
    if isinstance(value, (list, tuple)):
        for item in value:
            yield from _flatten_values(item)
    elif value:
        yield value


def _class_tokens(value: Any) -> Iterator[str]:
    for item in _flatten_values(value):
        if isinstance(item, Mapping):
            yield from (str(k) for k, v in item.items() if v)
        elif item is not True:
            yield str(item)


def _style_items(value: Any) -> Iterator[str]:
    for item in _flatten_values(value):
        if isinstance(item, Mapping):
            yield from (f"{k}:{v}" for k, v in item.items() if v)
        elif item is not True:
            yield str(item).strip().rstrip(";")


def _attr_value(name: str, value: Any) -> str | bool | None:
    if name == "class":
        return " ".join(_class_tokens(value)) or None
    if name == "style":
        return "; ".join(_style_items(value)) or None
    if isinstance(value, (list, tuple)):
        items = list(_flatten_values(value))
        if not items:
            return None
        if all(item is True for item in items):
            return True
        return " ".join(item if isinstance(item, Markup) else str(item) for item in items if item is not True)
    if value is True:
        return True
    if not value:
        return None
    return value if isinstance(value, Markup) else str(value)


def render_attrs(attributes: Mapping[str, Any]) -> Markup:
    """Render a resolved attribute mapping as `` name="value"`` pairs.

    Falsy values are dropped, ``True`` gives a bare attribute, ``class``
    values are space-joined and ``style`` values ``"; "``-joined.
    """
    parts: list[str] = []
    for name, value in attributes.items():
        rendered = _attr_value(name, value)
        if rendered is None:
            continue
        if rendered is True:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{escape(rendered, quote=True)}"')
    return Markup("".join(parts))
