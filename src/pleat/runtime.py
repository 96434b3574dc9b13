"""Helpers available to generated template code while it renders."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

_HTML_ESCAPES = {"&": "&amp;", "<": "&lt;", ">": "&gt;"}
_ATTR_ESCAPES = {**_HTML_ESCAPES, '"': "&quot;", "'": "&#39;"}


class Markup(str):
    """Text that is already safe HTML and is written without escaping."""

    __slots__ = ()

    def __add__(self, other: str) -> Markup:
        return Markup(str.__add__(self, escape(other)))

    def __repr__(self) -> str:
        return f"Markup({str.__repr__(self)})"


def escape(value: Any, *, quote: bool = False) -> str:
    """Escape a value for HTML text, or for a quoted attribute with *quote*.

    ``None`` becomes the empty string; :class:`Markup` passes through.
    """
    if value is None:
        return ""
    if isinstance(value, Markup):
        return str(value)
    text = str(value)
    table = _ATTR_ESCAPES if quote else _HTML_ESCAPES
    if not any(ch in table for ch in text):
        return text
    return "".join(table.get(ch, ch) for ch in text)


def markup(value: Any) -> Markup:
    """Mark *value* as safe HTML; ``None`` becomes empty markup."""
    if value is None:
        return Markup()
    return value if isinstance(value, Markup) else Markup(value)


class Writer:
    """Output sink for one render; keeps the pieces and their total length."""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self.length = 0

    def write(self, *values: Any) -> None:
        for value in values:
            text = escape(value)
            self._parts.append(text)
            self.length += len(text)

    def raw(self, *values: Any) -> None:
        for value in values:
            if value is None:
                continue
            text = str(value)
            self._parts.append(text)
            self.length += len(text)

    def getvalue(self) -> str:
        return "".join(self._parts)


def bind_slot(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Callable[..., Any]:
    """The default closure handed to a slot override.

    Called with no arguments it replays the usage site's arguments;
    otherwise it forwards whatever it is given.
    """

    def default(*a: Any, **kw: Any) -> Any:
        return fn(*a, **kw) if a or kw else fn(*args, **kwargs)

    return default


def call_slot(fn: Callable[..., Any], /, *args: Any, default_slot: Any = None, **kwargs: Any) -> Any:
    """Invoke a resolved slot binding.

    An override that requires more positional parameters than the usage
    site supplies takes the default closure as its leading argument;
    anything else receives it as the ``default_slot`` keyword.
    """
    if _required_positional(fn) > len(args):
        return fn(default_slot, *args, **kwargs)
    return fn(*args, default_slot=default_slot, **kwargs)


def _required_positional(fn: Callable[..., Any]) -> int:
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return 0
    count = 0
    for param in params:
        if param.kind is param.VAR_POSITIONAL:
            return 0
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD) and param.default is param.empty:
            count += 1
    return count


def namespace(writer: Writer, **extra: Any) -> dict[str, Any]:
    """Globals for executing generated code against *writer*."""
    from pleat.attrs import render_attrs

    ns: dict[str, Any] = {
        "__name__": "__pleat__",
        "__write__": writer.write,
        "__raw__": writer.raw,
        "__attrs__": render_attrs,
        "__bind_slot__": bind_slot,
        "__call_slot__": call_slot,
        "__markup__": markup,
        "Markup": Markup,
        "escape": escape,
    }
    ns.update(extra)
    return ns
