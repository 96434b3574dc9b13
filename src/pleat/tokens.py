"""Token types and source positions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class TokenType(Enum):
    # Layout
    EOF = auto()
    BLANK = auto()  # whitespace-only line
    INDENT = auto()
    OUTDENT = auto()

    # Markup
    DOCTYPE = auto()  # !!! 5 / @doctype html
    COMMENT = auto()  # // text, //- silent
    TAG = auto()  # div, a:b, svg/path
    ID = auto()  # #main
    CLASS_NAME = auto()  # .active
    ATTRIBUTE = auto()  # [href=url, disabled]
    TEXT = auto()  # | piped text or inline text

    # Control flow
    IF = auto()
    ELSE_IF = auto()
    ELSE = auto()
    FOR = auto()
    SWITCH = auto()
    CASE = auto()
    DEFAULT = auto()

    # Code
    ASSIGNMENT = auto()  # $x += expr
    CODE = auto()  # ~ stmt, ~~ fenced ~~, ~~~ init ~~~
    IMPORT = auto()  # @import "path" as name
    EXPORT = auto()  # @export name = expr

    # Components
    FUNC = auto()  # @func name(params)
    COMP = auto()  # @comp name(params), @mixin, @main
    COMP_CALL = auto()  # +name(args)
    SLOT = auto()  # @slot name(params)
    SLOT_PASS = auto()  # @slot #name(params)
    WRAP = auto()  # @wrap


@dataclass(frozen=True, slots=True)
class SourcePosition:
    """Location of a token or node: 1-based line and column, token length."""

    line: int
    column: int
    length: int = 0
    filename: str = ""

    @property
    def end_column(self) -> int:
        return self.column + max(1, self.length)

    def __str__(self) -> str:
        where = f"{self.line}:{self.column}"
        return f"{self.filename}:{where}" if self.filename else where


@dataclass(slots=True)
class Token:
    """A scanned line-level token.

    ``value`` is the primary payload (tag name, expression text...),
    ``data`` carries named side values (``Mode``, ``Condition``, ``Args``),
    ``values`` holds multi-line payloads such as fenced code bodies.
    """

    type: TokenType
    value: str
    position: SourcePosition
    data: dict[str, str] = field(default_factory=dict)
    values: list[str] = field(default_factory=list)
    payload: Any = None
