"""Code generation: turns a Pleat AST into Python module source.

The generated module writes markup through runtime helpers injected into
its globals (``__raw__``, ``__write__``, ``__attrs__``...) and ends with an
``__exports__`` dict.  Components become functions taking a keyword-only
``__slots`` map; each declared slot becomes a default closure plus a
binding that prefers the caller's override.
"""

from __future__ import annotations

import ast as pyast
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from pleat.ast import (
    Assignment,
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
from pleat.attrs import mapping_source, resolve
from pleat.errors import CompileError
from pleat.expr import ExpressionError, expression, for_header, param_names, parse_params
from pleat.parser import parse
from pleat.strings import identifier
from pleat.tokens import SourcePosition

logger = logging.getLogger(__name__)

_ASSIGN_OPS = {"": "=", ":": "=", "+": "+=", "-": "-=", "*": "*=", "/": "/="}


@dataclass(slots=True)
class CompileOptions:
    """Knobs for code generation.

    ``globals`` names are bound from the ``__globals__`` mapping at the top
    of the module; ``pre_code`` is inserted verbatim after them.
    """

    pretty: bool = False
    line_numbers: bool = False
    globals: list[str] = field(default_factory=list)
    pre_code: str = ""


class Compiler:
    """Single-use visitor: one instance compiles one Root."""

    def __init__(self, root: Root, source: str = "", options: CompileOptions | None = None) -> None:
        self._root = root
        self._source = source
        self._options = options or CompileOptions()
        self._lines: list[str] = []
        self._pending: list[str] = []  # static markup not yet emitted
        self._level = 0
        self._depth = 0  # markup nesting, for pretty printing
        self._written = False
        self._suppress_newline = False
        self._temp = 0
        self._exports: dict[str, str] = {}
        self._scopes: list[dict[str, str]] = []  # name -> "global" or "local"
        self._position: SourcePosition = root.block.position
        self.line_map: dict[int, SourcePosition] = {}

    def compile(self) -> str:
        """Generate the module source.  Raises CompileError on failure."""
        try:
            self._visit_root(self._root)
        except ExpressionError as exc:
            raise CompileError(str(exc), self._position, self._source) from None
        code = "\n".join(self._lines) + "\n"
        logger.debug("compiled %s into %d lines", self._root.filename, len(self._lines))
        return code

    @property
    def exports(self) -> list[str]:
        return sorted(self._exports)

    # ------------------------------------------------------------------
    # Emission helpers
    # ------------------------------------------------------------------

    def _emit(self, line: str) -> None:
        self._flush()
        for part in line.split("\n"):
            self._lines.append("    " * self._level + part)
            self.line_map[len(self._lines)] = self._position

    def _raw(self, markup: str) -> None:
        if markup:
            self._pending.append(markup)
            self._written = True

    def _flush(self) -> None:
        if not self._pending:
            return
        markup = "".join(self._pending)
        self._pending = []
        self._lines.append("    " * self._level + f"__raw__({markup!r})")
        self.line_map[len(self._lines)] = self._position

    @contextmanager
    def _body(self) -> Iterator[None]:
        self._flush()
        self._level += 1
        start = len(self._lines)
        try:
            yield
            self._flush()
            if all(_is_comment(line) for line in self._lines[start:]):
                self._emit("pass")
        finally:
            self._level -= 1

    @contextmanager
    def _function_body(self, params: str, block: Block | None) -> Iterator[None]:
        """Body of a generated def that sees the enclosing template scopes.

        Assignment targets already bound further out are declared
        ``nonlocal`` (or ``global`` at module level) so that the body
        updates them instead of shadowing them.
        """
        scope = dict.fromkeys(param_names(params), "local")
        with self._body():
            for name in dict.fromkeys(_assigned_names(block)):
                if name in scope:
                    continue
                kind = self._lookup(name)
                if kind == "local":
                    self._emit(f"nonlocal {name}")
                elif kind == "global":
                    self._emit(f"global {name}")
                scope[name] = kind or "local"
            self._scopes.append(scope)
            try:
                yield
            finally:
                self._scopes.pop()

    def _lookup(self, name: str) -> str | None:
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        return None

    def _newline(self, offset: int = 0) -> None:
        if not self._options.pretty:
            return
        if self._suppress_newline:
            self._suppress_newline = False
            return
        if self._written:
            self._raw("\n")
        self._raw("\t" * (self._depth + offset))

    def _next_temp(self) -> int:
        self._temp += 1
        return self._temp

    def _error(self, message: str, position: SourcePosition | None = None) -> CompileError:
        return CompileError(message, position or self._position, self._source)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _visit(self, node: Node) -> None:
        previous = self._position
        self._position = node.position
        if self._options.line_numbers and not isinstance(node, Block):
            self._emit(f"# {self._root.filename}:{node.position.line}")
        match node:
            case Block():
                self._visit_block(node)
            case Doctype():
                self._raw(node.markup())
            case Comment():
                self._visit_comment(node)
            case Tag():
                self._visit_tag(node)
            case Text():
                self._visit_text(node)
            case If():
                self._visit_if(node)
            case For():
                self._visit_for(node)
            case Assignment():
                self._visit_assignment(node)
            case Code():
                self._visit_code(node)
            case Func():
                self._visit_func(node)
            case Slot():
                self._visit_slot_usage(node)
            case CompCall():
                self._visit_comp_call(node)
            case Switch():
                self._visit_switch(node)
            case Export():
                self._exports[node.name] = expression(node.value) if node.value else node.name
            case Import():
                self._emit(f"{node.ident} = __import_template__({node.path!r})")
            case Comp() | SlotPass() | Wrap():
                raise self._error(f"{type(node).__name__} is not allowed here")
        self._position = previous

    def _visit_root(self, root: Root) -> None:
        self._emit(f"# generated by pleat from {root.filename}")
        self._scopes = [dict.fromkeys([*self._options.globals, *_assigned_names(root.block)], "global")]
        for name in self._options.globals:
            if not name.isidentifier():
                raise self._error(f"invalid global name {name!r}")
            self._emit(f"{name} = __globals__.get({name!r})")
        if self._options.pre_code.strip():
            self._emit(self._options.pre_code.rstrip("\n"))
        for code in root.init:
            self._visit(code)

        self._visit_comps(root.comps, exported=True)
        self._visit_block(root.block)
        self._flush()

        items = ", ".join(f"{name!r}: {self._exports[name]}" for name in sorted(self._exports))
        self._emit(f"__exports__ = {{{items}}}")

    def _visit_block(self, block: Block | None) -> None:
        if block is None:
            return
        inline = block.can_inline
        for child in block.children:
            if isinstance(child, Text) and not inline:
                self._newline()
            self._visit(child)

    # ------------------------------------------------------------------
    # Markup
    # ------------------------------------------------------------------

    def _visit_comment(self, node: Comment) -> None:
        if node.silent:
            return
        self._newline()
        if node.block is None:
            self._raw(f"<!-- {node.value} -->")
            return
        self._raw(f"<!-- {node.value}")
        self._visit_block(node.block)
        self._raw(" -->")

    def _visit_tag(self, tag: Tag) -> None:
        self._newline()
        self._raw(f"<{tag.name}")

        attributes = resolve(tag, self._source)
        if attributes:
            self._emit(f"__raw__(__attrs__({mapping_source(attributes)}))")

        if tag.self_closing:
            self._raw(" />")
            return

        self._raw(">")
        if tag.block is not None:
            inline = tag.block.can_inline
            if not inline:
                self._depth += 1
            self._visit_block(tag.block)
            if not inline:
                self._depth -= 1
                self._newline()
        self._raw(f"</{tag.name}>")

    def _visit_text(self, node: Text) -> None:
        if node.raw:
            self._raw("".join(s.value for s in node.segments))
            return

        if all(seg.kind == "literal" for seg in node.segments):
            self._raw("".join(seg.value for seg in node.segments))
            return

        # literal text is markup; only interpolated values are escaped
        args: list[str] = []
        for seg in node.segments:
            if seg.kind == "literal":
                args.append(f"__markup__({seg.value!r})")
            elif seg.kind == "raw":
                args.append(f"__markup__({seg.value})")
            else:
                args.append(seg.value)
        self._emit(f"__write__({', '.join(args)})")
        self._written = True

    # ------------------------------------------------------------------
    # Control flow
    # ------------------------------------------------------------------

    def _visit_if(self, node: If) -> None:
        for i, cond in enumerate(node.positives):
            self._position = cond.position
            keyword = "if" if i == 0 else "elif"
            self._emit(f"{keyword} {expression(cond.expression)}:")
            with self._body():
                self._visit_block(cond.block)
        if node.negative is not None:
            self._emit("else:")
            with self._body():
                self._visit_block(node.negative)

    def _visit_for(self, node: For) -> None:
        if node.block is None and node.else_block is None:
            return
        header = for_header(node.expression)
        if node.else_block is None:
            self._emit(f"for {header}:")
            with self._body():
                self._visit_block(node.block)
            return

        flag = f"__empty_{self._next_temp()}"
        self._emit(f"{flag} = True")
        self._emit(f"for {header}:")
        with self._body():
            self._emit(f"{flag} = False")
            self._visit_block(node.block)
        self._emit(f"if {flag}:")
        with self._body():
            self._visit_block(node.else_block)

    def _visit_switch(self, node: Switch) -> None:
        if not node.cases:
            if node.default is not None:
                self._visit_block(node.default.block)
            return

        subject = f"__switch_{self._next_temp()}"
        self._emit(f"{subject} = {expression(node.expression)}")
        seen: dict[str, int] = {}
        for i, case in enumerate(node.cases):
            self._position = case.position
            value = expression(case.expression)
            key = pyast.dump(pyast.parse(value, mode="eval"))
            if key in seen:
                logger.warning(
                    "%s:%d: @case %s repeats the case on line %d and is never reached",
                    self._root.filename,
                    case.position.line,
                    case.expression,
                    seen[key],
                )
            seen.setdefault(key, case.position.line)
            keyword = "if" if i == 0 else "elif"
            self._emit(f"{keyword} {subject} == ({value}):")
            with self._body():
                self._visit_block(case.block)
        if node.default is not None:
            self._emit("else:")
            with self._body():
                self._visit_block(node.default.block)

    # ------------------------------------------------------------------
    # Code
    # ------------------------------------------------------------------

    def _visit_assignment(self, node: Assignment) -> None:
        value = expression(node.expression)
        if not node.target:
            self._emit(f"__write__({value})")
            self._written = True
            return
        target = identifier(node.target)
        if not target.isidentifier():
            raise self._error(f"invalid assignment target ${node.target}")
        self._emit(f"{target} {_ASSIGN_OPS[node.op]} {value}")

    def _visit_code(self, node: Code) -> None:
        if node.trim_left and self._pending:
            markup = "".join(self._pending).rstrip()
            self._pending = [markup] if markup else []
        for line in node.lines:
            self._emit(line.rstrip())
        if node.trim_right:
            self._suppress_newline = True

    def _visit_func(self, node: Func) -> None:
        self._emit(f"def {identifier(node.name)}({node.params}):")
        with self._function_body(node.params, node.block):
            self._visit_block(node.block)
        if node.exported:
            self._exports[identifier(node.name)] = identifier(node.name)

    # ------------------------------------------------------------------
    # Components and slots
    # ------------------------------------------------------------------

    def _visit_comps(self, comps: list[Comp], *, exported: bool) -> None:
        defined: dict[str, Comp] = {}
        for comp in sorted(comps, key=lambda c: (c.name, c.override)):
            if comp.name in defined and not comp.override:
                raise self._error(
                    f"duplicate component {comp.name!r} (first defined on line {defined[comp.name].position.line})",
                    comp.position,
                )
            defined.setdefault(comp.name, comp)
            self._visit_comp(comp)
            if exported and comp.exported:
                self._exports[comp.id] = comp.id

    def _visit_comp(self, comp: Comp) -> None:
        self._position = comp.position
        params = parse_params(comp.params, kwonly=("__slots",))
        self._emit(f"def {comp.id}({params}):")
        with self._function_body(params, comp.block):
            self._emit("__slots = __slots or {}")
            children = list(comp.block.children) if comp.block is not None else []
            if children and isinstance(children[0], Code):
                self._visit(children.pop(0))
            for func in [c for c in children if isinstance(c, Func)]:
                self._visit(func)
            self._visit_comps(comp.comps, exported=False)
            for slot in comp.slots:
                self._visit_slot_def(slot)
            for child in children:
                if not isinstance(child, Func):
                    if isinstance(child, Text):
                        self._newline()
                    self._visit(child)
        self._position = comp.position

    def _visit_slot_def(self, slot: Slot) -> None:
        self._position = slot.position
        local = f"__slot_{slot.id}"
        params = parse_params(slot.scope.params(keep_defaults=False), kwonly=("default_slot",))
        self._emit(f"def {local}_default({params}):")
        with self._function_body(params, slot.block):
            self._visit_block(slot.block)

        override = f"__slots.get({slot.name!r}, {local}_default)"
        if slot.wrap is None:
            self._emit(f"{local} = {override}")
            return

        self._emit(f"def {local}_wrap(__inner):")
        with self._body():
            self._emit("def __wrapped(*args, **kwargs):")
            with self._function_body("*args, **kwargs", slot.wrap.block):
                self._emit(f"user_slot = __slots.get({slot.name!r})")
                self._emit("def slot(*a, **kw):")
                with self._body():
                    self._emit("if a or kw:")
                    with self._body():
                        self._emit("return __call_slot__(__inner, *a, **kw)")
                    self._emit("return __call_slot__(__inner, *args, **kwargs)")
                self._visit_block(slot.wrap.block)
            self._emit("return __wrapped")
        self._emit(f"{local} = {local}_wrap({override})")

    def _visit_slot_usage(self, slot: Slot) -> None:
        local = f"__slot_{slot.id}"
        args = slot.scope.call_args()
        default = ", ".join([f"{local}_default", *args])
        call = ", ".join([local, *args, f"default_slot=__bind_slot__({default})"])
        self._emit(f"__call_slot__({call})")

    def _visit_comp_call(self, call: CompCall) -> None:
        name = identifier(call.name)
        args = list(call.args)

        if call.slot_passes:
            n = self._next_temp()
            for i, slot_pass in enumerate(call.slot_passes):
                self._position = slot_pass.position
                params = parse_params(slot_pass.params, var_keywords="__kw")
                self._emit(f"def __pass_{n}_{i}({params}):")
                with self._function_body(params, slot_pass.block):
                    self._visit_block(slot_pass.block)
            self._position = call.position
            self._emit(f"__slots_{n} = {{}}")
            for i, slot_pass in enumerate(call.slot_passes):
                self._emit(f"__slots_{n}[{slot_pass.key}] = __pass_{n}_{i}")
            args.append(f"__slots=__slots_{n}")

        if call.init_code is not None:
            self._visit(call.init_code)
        self._emit(f"{name}({', '.join(args)})")


def compile_source(source: str, filename: str = "input.pleat", options: CompileOptions | None = None) -> str:
    """Parse and compile template source, returning the generated Python."""
    return Compiler(parse(source, filename), source, options).compile()


def _is_comment(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


def _assigned_names(block: Block | None) -> list[str]:
    """``$x`` assignment targets in *block*, outside nested function bodies."""
    names: list[str] = []
    if block is None:
        return names
    for node in block.children:
        match node:
            case Assignment(target=target) if target:
                names.append(identifier(target))
            case Block():
                names.extend(_assigned_names(node))
            case Tag() | Comment():
                names.extend(_assigned_names(node.block))
            case If():
                for cond in node.positives:
                    names.extend(_assigned_names(cond.block))
                names.extend(_assigned_names(node.negative))
            case For():
                names.extend(_assigned_names(node.block))
                names.extend(_assigned_names(node.else_block))
            case Switch():
                for branch in node.cases:
                    names.extend(_assigned_names(branch.block))
                if node.default is not None:
                    names.extend(_assigned_names(node.default.block))
    return names
