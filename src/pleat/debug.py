"""--debug AST dump to stderr."""

from __future__ import annotations

import sys
from typing import TextIO

from pleat.ast import (
    Assignment,
    Attribute,
    Block,
    Code,
    Comment,
    Comp,
    CompCall,
    Doctype,
    Export,
    For,
    Func,
    If,
    Import,
    Node,
    Root,
    Slot,
    SlotPass,
    Switch,
    Tag,
    Text,
    Wrap,
)


def dump_ast(root: Root, *, file: TextIO = sys.stderr) -> None:
    """Print a human-readable AST tree to *file*."""
    file.write(f"Root {root.filename}\n")
    for code in root.init:
        _dump_node(code, 1, file)
    for comp in root.comps:
        _dump_comp(comp, 1, file)
    _dump_children(root.block, 1, file)


def _indent(depth: int) -> str:
    return "  " * depth


def _dump_children(block: Block | None, depth: int, f: TextIO) -> None:
    if block is None:
        return
    for child in block.children:
        _dump_node(child, depth, f)


def _dump_node(node: Node, depth: int, f: TextIO) -> None:
    pad = _indent(depth)
    match node:
        case Block():
            f.write(f"{pad}Block\n")
            _dump_children(node, depth + 1, f)
        case Doctype():
            f.write(f"{pad}Doctype({node.value!r})\n")
        case Comment():
            kind = "silent" if node.silent else "embed"
            f.write(f"{pad}Comment[{kind}]({node.value!r})\n")
            _dump_children(node.block, depth + 1, f)
        case Tag():
            f.write(f"{pad}Tag {node.name}\n")
            for attr in node.attributes:
                _dump_attribute(attr, depth + 1, f)
            _dump_children(node.block, depth + 1, f)
        case Text():
            parts = ", ".join(f"{s.kind}({s.value!r})" for s in node.segments)
            f.write(f"{pad}Text{'[raw]' if node.raw else ''}({parts})\n")
        case If():
            for i, cond in enumerate(node.positives):
                f.write(f"{pad}{'If' if i == 0 else 'ElseIf'} {cond.expression}\n")
                _dump_children(cond.block, depth + 1, f)
            if node.negative is not None:
                f.write(f"{pad}Else\n")
                _dump_children(node.negative, depth + 1, f)
        case For():
            f.write(f"{pad}For {node.expression}\n")
            _dump_children(node.block, depth + 1, f)
            if node.else_block is not None:
                f.write(f"{pad}Else\n")
                _dump_children(node.else_block, depth + 1, f)
        case Switch():
            f.write(f"{pad}Switch {node.expression}\n")
            for case in node.cases:
                f.write(f"{_indent(depth + 1)}Case {case.expression}\n")
                _dump_children(case.block, depth + 2, f)
            if node.default is not None:
                f.write(f"{_indent(depth + 1)}Default\n")
                _dump_children(node.default.block, depth + 2, f)
        case Assignment():
            target = f"${node.target} {node.op}=" if node.target else "="
            f.write(f"{pad}Assignment {target} {node.expression}\n")
        case Code():
            f.write(f"{pad}Code {node.lines!r}\n")
        case Func():
            f.write(f"{pad}Func {node.name}({node.params})\n")
            _dump_children(node.block, depth + 1, f)
        case Comp():
            _dump_comp(node, depth, f)
        case Slot():
            f.write(f"{pad}Slot {node.name}({', '.join(node.scope.call_args())})\n")
        case Wrap():
            f.write(f"{pad}Wrap\n")
            _dump_children(node.block, depth + 1, f)
        case CompCall():
            f.write(f"{pad}CompCall +{node.name}({', '.join(node.args)})\n")
            if node.init_code is not None:
                _dump_node(node.init_code, depth + 1, f)
            for slot_pass in node.slot_passes:
                _dump_slot_pass(slot_pass, depth + 1, f)
        case SlotPass():
            _dump_slot_pass(node, depth, f)
        case Export():
            f.write(f"{pad}Export {node.name}{' = ' + node.value if node.value else ''}\n")
        case Import():
            f.write(f"{pad}Import {node.path!r} as {node.ident}\n")


def _dump_attribute(attr: Attribute, depth: int, f: TextIO) -> None:
    cond = f" ? {attr.condition}" if attr.condition else ""
    if attr.elements is not None:
        f.write(f"{_indent(depth)}Attributes[{attr.value}]{cond}\n")
    elif attr.flag:
        f.write(f"{_indent(depth)}Attribute {attr.name}{cond}\n")
    else:
        f.write(f"{_indent(depth)}Attribute {attr.name}={attr.value!r}{cond}\n")


def _dump_comp(comp: Comp, depth: int, f: TextIO) -> None:
    flags = [n for n, on in (("exported", comp.exported), ("override", comp.override)) if on]
    suffix = f" [{', '.join(flags)}]" if flags else ""
    f.write(f"{_indent(depth)}Comp {comp.name}({comp.params}){suffix}\n")
    for slot in comp.slots:
        f.write(f"{_indent(depth + 1)}SlotDecl {slot.name}\n")
        if slot.wrap is not None:
            _dump_node(slot.wrap, depth + 2, f)
        _dump_children(slot.block, depth + 2, f)
    for nested in comp.comps:
        _dump_comp(nested, depth + 1, f)
    _dump_children(comp.block, depth + 1, f)


def _dump_slot_pass(node: SlotPass, depth: int, f: TextIO) -> None:
    f.write(f"{_indent(depth)}SlotPass {node.key}({node.params})\n")
    _dump_children(node.block, depth + 1, f)
