"""Pleat parser: recursive descent from the token stream to a Root AST."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from pathlib import PurePosixPath

from pleat.ast import (
    Assignment,
    Attribute,
    Block,
    Case,
    Code,
    Comment,
    Comp,
    CompCall,
    Condition,
    Default,
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
from pleat.errors import ParseError
from pleat.expr import (
    ExpressionError,
    Segment,
    parse_arguments,
    parse_call,
    parse_params,
    slot_key,
    split_interpolations,
)
from pleat.lexer import tokenize
from pleat.strings import identifier
from pleat.tokens import Token, TokenType

_ATTRIBUTE_TOKENS = (TokenType.ID, TokenType.CLASS_NAME, TokenType.ATTRIBUTE)
_NON_IDENT = re.compile(r"\W")


@dataclass(frozen=True, slots=True)
class _BlockContext:
    """What the block being parsed belongs to.

    ``tag`` receives attribute lines; ``guard`` is set inside an ``@if``
    branch directly under that tag and turns attribute lines into
    conditional attributes of the tag.
    """

    top: bool = False
    tag: Tag | None = None
    guard: str = ""
    cond: If | None = None
    comp: Comp | None = None
    slot: Slot | None = None
    call: CompCall | None = None

    def nested(self, **changes: object) -> _BlockContext:
        base = _BlockContext(comp=self.comp)
        return replace(base, **changes)


class Parser:
    """Recursive-descent parser over the scanner's token list."""

    def __init__(self, source: str, filename: str = "input.pleat") -> None:
        self._source = source
        self._filename = filename
        self._tokens = tokenize(source, filename)
        self._pos = 0
        self._comps: list[Comp] = []
        self._init: list[Code] = []

    def parse(self) -> Root:
        """Parse the full template and return the Root node."""
        root = Root(Block(self._peek().position), self._filename)
        ctx = _BlockContext(top=True)
        while not self._at(TokenType.EOF):
            if self._at(TokenType.BLANK, TokenType.OUTDENT):
                self._advance()
                continue
            root.block.push(self._parse_node(ctx))
        root.comps = self._comps
        root.init = self._init
        return root

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        idx = self._pos + offset
        if idx < len(self._tokens):
            return self._tokens[idx]
        return self._tokens[-1]

    def _at(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if self._pos < len(self._tokens) - 1:
            self._pos += 1
        return tok

    def _expect(self, tt: TokenType) -> Token:
        tok = self._peek()
        if tok.type is not tt:
            raise self._error(f"expected {tt.name}, got {tok.type.name}", tok)
        return self._advance()

    def _skip_blank_before(self, *types: TokenType) -> bool:
        """Skip blank lines if the next real token is one of *types*."""
        offset = 0
        while self._peek(offset).type is TokenType.BLANK:
            offset += 1
        if self._peek(offset).type in types:
            self._pos += offset
            return True
        return False

    def _error(self, message: str, tok: Token | None = None) -> ParseError:
        if tok is None:
            tok = self._peek()
        return ParseError(message, tok.position, self._source)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _parse_node(self, ctx: _BlockContext) -> Node | None:
        tok = self._peek()
        match tok.type:
            case TokenType.DOCTYPE:
                self._advance()
                return Doctype(tok.value, tok.position)
            case TokenType.COMMENT:
                return self._parse_comment(ctx)
            case TokenType.TEXT:
                return self._parse_text()
            case TokenType.IF:
                node = self._parse_if(ctx)
                return None if node.skips else node
            case TokenType.FOR:
                return self._parse_for(ctx)
            case TokenType.IMPORT:
                return self._parse_import()
            case TokenType.TAG:
                return self._parse_tag(ctx)
            case TokenType.ASSIGNMENT:
                self._advance()
                return Assignment(tok.data["X"], tok.data["Op"], tok.value, tok.position)
            case TokenType.CODE:
                return self._parse_code(ctx)
            case TokenType.SLOT:
                return self._parse_slot(ctx)
            case TokenType.SLOT_PASS:
                return self._parse_slot_pass(ctx)
            case TokenType.WRAP:
                return self._parse_wrap(ctx)
            case TokenType.INDENT:
                return self._parse_block(ctx)
            case TokenType.FUNC:
                return self._parse_func(ctx)
            case TokenType.COMP:
                comp = self._parse_comp(ctx)
                if ctx.comp is not None:
                    ctx.comp.comps.append(comp)
                else:
                    self._comps.append(comp)
                return None
            case TokenType.COMP_CALL:
                return self._parse_comp_call(ctx)
            case TokenType.SWITCH:
                return self._parse_switch(ctx)
            case TokenType.EXPORT:
                self._advance()
                return Export(tok.data["Name"], tok.data["Value"], tok.position)
            case TokenType.ID | TokenType.CLASS_NAME | TokenType.ATTRIBUTE:
                raise self._error("conditional attributes must be placed immediately within a parent tag", tok)
            case TokenType.ELSE | TokenType.ELSE_IF:
                raise self._error("@else without a matching @if or @for", tok)
            case TokenType.CASE | TokenType.DEFAULT:
                raise self._error(f"@{tok.type.name.lower()} outside of @switch", tok)
            case _:
                raise self._error(f"unexpected token {tok.type.name}", tok)

    # ------------------------------------------------------------------
    # Blocks and attributes
    # ------------------------------------------------------------------

    def _parse_block(self, ctx: _BlockContext) -> Block:
        start = self._expect(TokenType.INDENT)
        block = Block(start.position)

        while not self._at(TokenType.EOF, TokenType.OUTDENT):
            tok = self._peek()
            if tok.type is TokenType.BLANK:
                self._advance()
                continue

            if tok.type in _ATTRIBUTE_TOKENS:
                self._advance()
                if ctx.tag is None:
                    raise self._error(
                        "conditional attributes must be placed immediately within a parent tag", tok
                    )
                attr = self._attribute(tok)
                if ctx.cond is not None:
                    ctx.cond.skips = True
                    attr.condition = _combine(ctx.guard, attr.condition)
                ctx.tag.attributes.append(attr)
                continue

            block.push(self._parse_node(ctx))

        if self._at(TokenType.OUTDENT):
            self._advance()
        return block

    def _attribute(self, tok: Token) -> Attribute:
        cond = tok.data.get("Condition", "")
        match tok.type:
            case TokenType.ID:
                return Attribute("id", tok.value, tok.position, condition=cond)
            case TokenType.CLASS_NAME:
                return Attribute("class", tok.value, tok.position, condition=cond)
        mode = tok.data.get("Mode")
        if mode == "list":
            return Attribute("", tok.value, tok.position, raw=False, condition=cond, elements=tok.payload)
        return Attribute(
            tok.value,
            tok.data.get("Content", ""),
            tok.position,
            raw=mode == "raw",
            flag=tok.data.get("Flag") == "true",
            condition=cond,
        )

    # ------------------------------------------------------------------
    # Markup
    # ------------------------------------------------------------------

    def _parse_tag(self, ctx: _BlockContext) -> Tag:
        tok = self._expect(TokenType.TAG)
        tag = Tag(tok.value, tok.position)

        while True:
            nxt = self._peek()
            same_line = nxt.position.line == tok.position.line
            if nxt.type in _ATTRIBUTE_TOKENS and same_line:
                self._advance()
                if nxt.data.get("Condition"):
                    raise self._error("conditional attributes must be placed in a block within a tag", nxt)
                tag.attributes.append(self._attribute(nxt))
            elif nxt.type is TokenType.TEXT and nxt.data.get("Mode") == "inline" and same_line:
                self._ensure_block(tag).push_front(self._parse_text())
            elif nxt.type is TokenType.ASSIGNMENT and not nxt.data["X"] and not nxt.data["Op"] and same_line:
                self._advance()
                self._ensure_block(tag).push_front(Assignment("", "", nxt.value, nxt.position))
            elif self._skip_blank_before(TokenType.INDENT):
                block = self._parse_block(ctx.nested(tag=tag))
                if tag.block is None:
                    tag.block = block
                else:
                    tag.block.children.extend(block.children)
                return tag
            else:
                return tag

    @staticmethod
    def _ensure_block(tag: Tag) -> Block:
        if tag.block is None:
            tag.block = Block(tag.position)
        return tag.block

    def _parse_text(self) -> Text:
        tok = self._expect(TokenType.TEXT)
        if tok.data.get("Mode") == "raw":
            return Text([Segment("literal", tok.value)], tok.position, raw=True)
        try:
            segments = split_interpolations(tok.value)
        except ExpressionError as exc:
            raise self._error(str(exc), tok) from None
        return Text(segments, tok.position)

    def _parse_comment(self, ctx: _BlockContext) -> Comment:
        tok = self._expect(TokenType.COMMENT)
        node = Comment(tok.value, tok.position, silent=tok.data.get("Mode") == "silent")
        if self._skip_blank_before(TokenType.INDENT):
            node.block = self._parse_block(ctx.nested())
        return node

    def _parse_import(self) -> Import:
        tok = self._expect(TokenType.IMPORT)
        ident = tok.data.get("Ident") or _NON_IDENT.sub("_", PurePosixPath(tok.value).stem)
        if not ident or ident[0].isdigit():
            raise self._error(f"cannot derive a name for import {tok.value!r}; use 'as NAME'", tok)
        return Import(tok.value, ident, tok.position)

    # ------------------------------------------------------------------
    # Control flow
    # ------------------------------------------------------------------

    def _branch_context(self, ctx: _BlockContext, node: If, guard: str) -> _BlockContext:
        if ctx.tag is None:
            return ctx.nested()
        return ctx.nested(tag=ctx.tag, cond=node, guard=_combine(ctx.guard, guard))

    def _parse_if(self, ctx: _BlockContext) -> If:
        tok = self._expect(TokenType.IF)
        first = Condition(tok.value, tok.position)
        node = If([first], tok.position)
        negations = [f"not ({tok.value})"]

        if self._skip_blank_before(TokenType.INDENT):
            first.block = self._parse_block(self._branch_context(ctx, node, tok.value))

        while self._skip_blank_before(TokenType.ELSE_IF, TokenType.ELSE):
            branch = self._advance()
            if branch.type is TokenType.ELSE_IF:
                cond = Condition(branch.value, branch.position)
                guard = " and ".join([f"({branch.value})", *negations])
                negations.append(f"not ({branch.value})")
                if self._skip_blank_before(TokenType.INDENT):
                    cond.block = self._parse_block(self._branch_context(ctx, node, guard))
                node.positives.append(cond)
                continue
            if self._skip_blank_before(TokenType.INDENT):
                node.negative = self._parse_block(self._branch_context(ctx, node, " and ".join(negations)))
            break

        blocks = [c.block for c in node.positives] + [node.negative]
        if node.skips:
            if any(b is not None and b.children for b in blocks):
                raise self._error("conditional tag attributes cannot be mixed with other content", tok)
        elif ctx.tag is not None and any(b is not None for b in blocks):
            # branches whose nested @if only guarded attributes are left empty
            node.skips = not any(b.children for b in blocks if b is not None)
        return node

    def _parse_for(self, ctx: _BlockContext) -> For:
        tok = self._expect(TokenType.FOR)
        node = For(tok.value, tok.position)
        if self._skip_blank_before(TokenType.INDENT):
            node.block = self._parse_block(ctx.nested())
        if self._skip_blank_before(TokenType.ELSE):
            else_tok = self._advance()
            if not self._skip_blank_before(TokenType.INDENT):
                raise self._error("@else of a @for loop requires a block", else_tok)
            node.else_block = self._parse_block(ctx.nested())
        return node

    def _parse_switch(self, ctx: _BlockContext) -> Switch:
        tok = self._expect(TokenType.SWITCH)
        node = Switch(tok.value, tok.position)

        if self._skip_blank_before(TokenType.INDENT):
            self._advance()
            while True:
                cur = self._peek()
                if cur.type is TokenType.BLANK:
                    self._advance()
                elif cur.type is TokenType.CASE:
                    self._advance()
                    case = Case(cur.value, cur.position)
                    if self._skip_blank_before(TokenType.INDENT):
                        case.block = self._parse_block(ctx.nested())
                    node.cases.append(case)
                elif cur.type is TokenType.DEFAULT:
                    self._advance()
                    if node.default is not None:
                        raise self._error("@switch has more than one @default", cur)
                    node.default = Default(cur.position)
                    if self._skip_blank_before(TokenType.INDENT):
                        node.default.block = self._parse_block(ctx.nested())
                elif cur.type is TokenType.OUTDENT:
                    self._advance()
                    break
                elif cur.type is TokenType.EOF:
                    break
                else:
                    raise self._error("expected @case or @default inside @switch", cur)

        if not node.cases and node.default is None:
            raise self._error("@switch requires at least one @case or @default", tok)
        return node

    # ------------------------------------------------------------------
    # Code
    # ------------------------------------------------------------------

    def _parse_code(self, ctx: _BlockContext) -> Code | None:
        tok = self._expect(TokenType.CODE)
        node = Code(
            list(tok.values),
            tok.position,
            trim_left=tok.data.get("TrimLeft") == "true",
            trim_right=tok.data.get("TrimRight") == "true",
        )
        if tok.data.get("Mode") == "init":
            if not ctx.top:
                raise self._error("init code (~~~) is only allowed at the top level", tok)
            self._init.append(node)
            return None
        return node

    def _parse_func(self, ctx: _BlockContext) -> Func:
        tok = self._expect(TokenType.FUNC)
        params = self._params(tok, "function")
        node = Func(tok.value, params, tok.position, exported=tok.data.get("Exported") == "true")
        if self._skip_blank_before(TokenType.INDENT):
            node.block = self._parse_block(ctx.nested())
        return node

    def _params(self, tok: Token, what: str) -> str:
        try:
            return parse_params(tok.data.get("Args", ""))
        except ExpressionError as exc:
            raise self._error(f"malformed {what} header '{tok.value}': {exc.reason}", tok) from None

    # ------------------------------------------------------------------
    # Components and slots
    # ------------------------------------------------------------------

    def _parse_comp(self, ctx: _BlockContext) -> Comp:
        tok = self._expect(TokenType.COMP)
        comp = Comp(
            tok.value,
            identifier(tok.value),
            self._params(tok, "component"),
            tok.position,
            exported=tok.data.get("Exported") == "true",
            override=tok.data.get("Override") == "true",
        )
        if self._skip_blank_before(TokenType.INDENT):
            comp.block = self._parse_block(_BlockContext(top=False, comp=comp))
        return comp

    def _parse_slot(self, ctx: _BlockContext) -> Slot:
        tok = self._expect(TokenType.SLOT)
        if ctx.comp is None:
            raise self._error(f"@slot {tok.value} must be declared inside a component", tok)
        try:
            scope = parse_arguments(tok.data.get("Args", ""))
        except ExpressionError as exc:
            raise self._error(f"malformed slot header '{tok.value}': {exc.reason}", tok) from None

        slot = Slot(tok.value, identifier(tok.value), scope, tok.position)
        ctx.comp.slots.append(slot)

        if self._skip_blank_before(TokenType.INDENT):
            slot.block = self._parse_block(ctx.nested(slot=slot))
            children = slot.block.children
            if children and isinstance(children[0], Wrap):
                slot.wrap = children.pop(0)
            for child in children:
                if isinstance(child, Wrap):
                    raise ParseError("@wrap must be the first line inside a @slot", child.position, self._source)
        return slot

    def _parse_wrap(self, ctx: _BlockContext) -> Wrap:
        tok = self._expect(TokenType.WRAP)
        if ctx.slot is None:
            raise self._error("@wrap must be the first line inside a @slot", tok)
        if not self._skip_blank_before(TokenType.INDENT):
            raise self._error("@wrap requires a block", tok)
        return Wrap(self._parse_block(ctx.nested()), tok.position)

    def _parse_slot_pass(self, ctx: _BlockContext) -> SlotPass:
        tok = self._expect(TokenType.SLOT_PASS)
        if ctx.call is None:
            raise self._error("@slot #name must be placed directly within a component call", tok)
        try:
            shape = parse_call(tok.data["Header"])
        except ExpressionError as exc:
            raise self._error(f"malformed slot pass '{tok.value}': {exc.reason}", tok) from None

        params = shape.params(keep_defaults=True)
        dynamic = tok.data["Header"].startswith("(")
        node = SlotPass(slot_key(shape.target, dynamic=dynamic), params, tok.position)
        if self._skip_blank_before(TokenType.INDENT):
            node.block = self._parse_block(ctx.nested())
        return node

    def _parse_comp_call(self, ctx: _BlockContext) -> CompCall:
        tok = self._expect(TokenType.COMP_CALL)
        try:
            args = parse_arguments(tok.data.get("Args", "")).call_args()
        except ExpressionError as exc:
            raise self._error(f"malformed arguments for +{tok.value}: {exc.reason}", tok) from None
        call = CompCall(tok.value, args, tok.position)

        if not self._skip_blank_before(TokenType.INDENT):
            return call

        block = self._parse_block(ctx.nested(call=call))
        rest: list[Node] = []
        for child in block.children:
            if isinstance(child, SlotPass):
                call.slot_passes.append(child)
            else:
                rest.append(child)

        if tok.data.get("WithCode") == "true" and rest and isinstance(rest[0], Code):
            call.init_code = rest.pop(0)

        if rest:
            block.children = rest
            call.slot_passes.append(SlotPass(repr("main"), "*args, **kwargs", rest[0].position, block))
        return call


def _combine(outer: str, inner: str) -> str:
    if not outer:
        return inner
    if not inner:
        return outer
    return f"({outer}) and ({inner})"


def parse(source: str, filename: str = "input.pleat") -> Root:
    """Convenience function: parse source and return the Root AST."""
    return Parser(source, filename).parse()
