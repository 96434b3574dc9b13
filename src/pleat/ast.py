"""AST node types for parsed Pleat templates.

Nodes are created by the parser and only touched afterwards to attach
slots to their component and to splice inline text into a tag's block.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from pleat.tags import doctype_markup, is_raw_text, is_self_closing
from pleat.tokens import SourcePosition

if TYPE_CHECKING:
    from pleat.attrs import AttrEntry
    from pleat.expr import CallShape, Segment


@dataclass(slots=True)
class Block:
    """Ordered child nodes of a tag, branch or component."""

    position: SourcePosition
    children: list[Node] = field(default_factory=list)

    def push(self, node: Node | None) -> None:
        if node is not None:
            self.children.append(node)

    def push_front(self, node: Node) -> None:
        self.children.insert(0, node)

    @property
    def can_inline(self) -> bool:
        """True when every child is text, so the block renders on one line."""
        return all(isinstance(c, Text) for c in self.children)


@dataclass(slots=True)
class Doctype:
    value: str
    position: SourcePosition

    def markup(self) -> str:
        return doctype_markup(self.value)


@dataclass(slots=True)
class Comment:
    """``// text`` is written to the output, ``//- text`` is dropped."""

    value: str
    position: SourcePosition
    silent: bool = False
    block: Block | None = None


@dataclass(slots=True)
class Attribute:
    """One attribute declaration on a tag.

    ``value`` holds literal text when ``raw`` is set, otherwise an
    expression.  ``elements`` carries a bracket list such as
    ``[href=url, disabled]``.
    """

    name: str
    value: str
    position: SourcePosition
    raw: bool = True
    flag: bool = False
    condition: str = ""
    elements: list[AttrEntry] | None = None


@dataclass(slots=True)
class Tag:
    name: str
    position: SourcePosition
    attributes: list[Attribute] = field(default_factory=list)
    block: Block | None = None

    @property
    def self_closing(self) -> bool:
        return is_self_closing(self.name)

    @property
    def raw_text(self) -> bool:
        return is_raw_text(self.name)


@dataclass(slots=True)
class Text:
    """A line of text: literal pieces and interpolated expressions."""

    segments: list[Segment]
    position: SourcePosition
    raw: bool = False  # body of a script/style tag


@dataclass(slots=True)
class Condition:
    expression: str
    position: SourcePosition
    block: Block | None = None


@dataclass(slots=True)
class If:
    """``@if`` with its ``@else if`` branches and optional ``@else``.

    ``skips`` marks a conditional that only guarded attributes of the
    enclosing tag and renders nothing itself.
    """

    positives: list[Condition]
    position: SourcePosition
    negative: Block | None = None
    skips: bool = False


@dataclass(slots=True)
class For:
    expression: str
    position: SourcePosition
    block: Block | None = None
    else_block: Block | None = None


@dataclass(slots=True)
class Assignment:
    """``$x = expr``, ``$x += expr``; an empty target writes the value."""

    target: str
    op: str
    expression: str
    position: SourcePosition


@dataclass(slots=True)
class Code:
    lines: list[str]
    position: SourcePosition
    trim_left: bool = False
    trim_right: bool = False


@dataclass(slots=True)
class Func:
    """``@func name(params)``: a plain helper function inside a template."""

    name: str
    params: str
    position: SourcePosition
    block: Block | None = None
    exported: bool = False


@dataclass(slots=True)
class Wrap:
    block: Block
    position: SourcePosition


@dataclass(slots=True)
class Slot:
    """``@slot name(args)`` declared inside a component."""

    name: str
    id: str
    scope: CallShape
    position: SourcePosition
    block: Block | None = None
    wrap: Wrap | None = None


@dataclass(slots=True)
class Comp:
    """``@comp name(params)``; ``@main`` is an exported comp named ``main``."""

    name: str
    id: str
    params: str
    position: SourcePosition
    block: Block | None = None
    comps: list[Comp] = field(default_factory=list)
    slots: list[Slot] = field(default_factory=list)
    exported: bool = False
    override: bool = False


@dataclass(slots=True)
class SlotPass:
    """Content a caller hands to one slot of the called component.

    ``key`` is the source of the slots-map key: a quoted name or a
    computed expression.
    """

    key: str
    params: str
    position: SourcePosition
    block: Block | None = None


@dataclass(slots=True)
class CompCall:
    name: str
    args: list[str]
    position: SourcePosition
    slot_passes: list[SlotPass] = field(default_factory=list)
    init_code: Code | None = None


@dataclass(slots=True)
class Case:
    expression: str
    position: SourcePosition
    block: Block | None = None


@dataclass(slots=True)
class Default:
    position: SourcePosition
    block: Block | None = None


@dataclass(slots=True)
class Switch:
    expression: str
    position: SourcePosition
    cases: list[Case] = field(default_factory=list)
    default: Default | None = None


@dataclass(slots=True)
class Export:
    name: str
    value: str
    position: SourcePosition


@dataclass(slots=True)
class Import:
    """``@import "path" as name`` binds another template's exports."""

    path: str
    ident: str
    position: SourcePosition


@dataclass(slots=True)
class Root:
    block: Block
    filename: str
    comps: list[Comp] = field(default_factory=list)
    init: list[Code] = field(default_factory=list)


Node = Union[
    Block,
    Doctype,
    Comment,
    Tag,
    Text,
    If,
    For,
    Assignment,
    Code,
    Func,
    Wrap,
    Slot,
    Comp,
    SlotPass,
    CompCall,
    Switch,
    Export,
    Import,
]
