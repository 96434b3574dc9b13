"""Pleat scanner: turns indented template source into a line-level token stream."""

from __future__ import annotations

import re
from collections import deque
from enum import Enum, auto

from pleat.errors import LexError
from pleat.strings import dedent_lines
from pleat.tags import is_raw_text
from pleat.tokens import SourcePosition, Token, TokenType


class _State(Enum):
    NEW_LINE = auto()
    LINE = auto()
    EOF = auto()


# ----------------------------------------------------------------------
# Line rules
# ----------------------------------------------------------------------

_RETURN = re.compile(r"^@return\s*$")
_EXPORT = re.compile(r"^@export\s+([a-zA-Z_]\w*)(\s*=\s*(.+))?$")
_FUNC = re.compile(r"^@(export\s+)?func\s+([a-zA-Z_-]+\w*)(\((.*)\))?\s*$")
_COMP = re.compile(r"^@(export\s+)?(comp|mixin)\s+(=)?([a-zA-Z_-]+[\w-]*)(\((.*)\))?\s*$")
_MAIN = re.compile(r"^@main\s*(\((.*)\))?\s*$")
_COMP_CALL = re.compile(r"^\+([A-Za-z_-]+[.\w-]*)(\((.*)\)\s*(~?))?\s*$")
_SWITCH = re.compile(r"^@switch\s+(.+?)\s*$")
_CASE = re.compile(r"^@case\s+(.+?)\s*$")
_DEFAULT = re.compile(r"^@default\s*$")
_DOCTYPE = re.compile(r"^(!!!|@doctype)\s*(.*)$")
_IF = re.compile(r"^@if\s+(.+)$")
_ELSE = re.compile(r"^@else(\s*|\s+if\s+(.+))$")
_FOR = re.compile(r"^@for\s+(.+)$")
_IMPORT = re.compile(r"^@import\s+(\"[\w\-. /]+\"|'[\w\-. /]+')(\s+as\s+([a-zA-Z_]\w*))?\s*$")
_SLOT = re.compile(r"^@slot\s+([a-zA-Z_-]+[\w-]*)(\((.*)\))?\s*$")
_SLOT_PASS = re.compile(r"^@slot\s+#(.+)$")
_WRAP = re.compile(r"^@wrap\s*$")
_ASSIGNMENT = re.compile(r"^(\$[\w-]*)?\s*([-+/*:]?)=\s*(.+)$")
_INIT_FENCE = re.compile(r"^\s*~~~\s*$")
_CODE_FENCE = re.compile(r"^\s*~~\s*$")
_CODE = re.compile(r"^\s*~(-?)\s+(.+?)(\s+-)?\s*$")
_TAG = re.compile(r"^(\w[-:/\w]*)")
_ID = re.compile(r"^#([\w-]+)(?:\s*\?\s*(.*)$)?")
_CLASS_NAME = re.compile(r"^\.([\w-]+)(?:\s*\?\s*(.*)$)?")
_ATTRIBUTE = re.compile(
    r"^\[([\w\-:@.]+)\s*(?:=\s*(\"([^\"\\]*)\"|([^\]]+)))?\](?:\s*\?\s*(.*)$)?"
)
_ATTR_CONDITION = re.compile(r"^\s*\?\s*(.*)$")
_COMMENT = re.compile(r"^//(-)?\s*(.*)$")
_TEXT = re.compile(r"^(\|)? ?(.*)$")

_LEADING_WS = re.compile(r"^[ \t]+")


class Lexer:
    """Scan Pleat source one token at a time.

    Call :meth:`next` until it returns an ``EOF`` token.  Indentation is
    tracked with an explicit stack of whitespace strings; each new level
    must extend the previous levels exactly.
    """

    def __init__(self, source: str, filename: str = "input.pleat") -> None:
        self._source = source
        self._filename = filename
        self._lines = source.splitlines()
        self._next_line = 0  # index of the next physical line to read
        self._line = 0  # 1-based number of the line in the buffer
        self._col = 1
        self._buffer = ""
        self._state = _State.NEW_LINE
        self._indents: list[str] = []
        self._stash: deque[Token] = deque()
        self._raw_pending = False

    def tokenize(self) -> list[Token]:
        """Scan the full source and return the token list, ending with EOF."""
        tokens: list[Token] = []
        while True:
            tok = self.next()
            tokens.append(tok)
            if tok.type is TokenType.EOF:
                return tokens

    def next(self) -> Token:
        if self._stash:
            return self._stash.popleft()

        while True:
            if self._state is _State.EOF:
                if self._indents:
                    self._indents.pop()
                    return self._make(TokenType.OUTDENT, "", 0)
                return self._make(TokenType.EOF, "", 0)

            if self._state is _State.LINE and not self._buffer:
                self._state = _State.NEW_LINE

            if self._state is _State.NEW_LINE:
                if not self._read_line():
                    self._state = _State.EOF
                    continue
                self._state = _State.LINE
                raw_pending, self._raw_pending = self._raw_pending, False
                tok = self._scan_indent()
                if tok is None:
                    continue
                if tok.type is TokenType.BLANK:
                    self._raw_pending = raw_pending
                elif tok.type is TokenType.INDENT and raw_pending:
                    self._stash.append(self._scan_raw())
                return tok

            return self._scan_line()

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------

    def _position(self, length: int = 0) -> SourcePosition:
        return SourcePosition(self._line, self._col, length, self._filename)

    def _make(self, tt: TokenType, value: str, length: int, **data: str) -> Token:
        return Token(tt, value, self._position(length), data=dict(data))

    def _consume(self, n: int) -> None:
        self._buffer = self._buffer[n:]
        self._col += n

    def _error(self, message: str, length: int = 0) -> LexError:
        return LexError(message, self._position(length), self._source)

    # ------------------------------------------------------------------
    # Line reading and indentation
    # ------------------------------------------------------------------

    def _read_line(self) -> bool:
        if self._next_line >= len(self._lines):
            return False
        buf = self._lines[self._next_line]
        self._next_line += 1
        self._line = self._next_line
        self._col = 1

        # A trailing backslash joins the next physical line
        while buf.endswith("\\") and self._next_line < len(self._lines):
            buf = buf[:-1] + self._lines[self._next_line].lstrip()
            self._next_line += 1

        if "\0" in buf:
            self._buffer = buf
            raise self._error("NUL character in source")
        self._buffer = buf
        return True

    def _scan_indent(self) -> Token | None:
        if not self._buffer.strip():
            tok = self._make(TokenType.BLANK, "", 0)
            self._buffer = ""
            return tok

        consumed = 0
        matched = 0
        for level in self._indents:
            if not self._buffer.startswith(level, consumed):
                break
            consumed += len(level)
            matched += 1

        m = _LEADING_WS.match(self._buffer[consumed:])
        new_indent = m.group(0) if m else ""

        if matched == len(self._indents):
            if not new_indent:
                self._consume(consumed)
                return None
            self._consume(consumed)
            tok = self._make(TokenType.INDENT, new_indent, len(new_indent))
            self._indents.append(new_indent)
            self._consume(len(new_indent))
            return tok

        if new_indent:
            self._consume(consumed)
            raise self._error(
                "incoherent indentation: use the same indent characters at every level",
                len(new_indent),
            )

        pops = len(self._indents) - matched
        del self._indents[matched:]
        self._consume(consumed)
        for _ in range(pops - 1):
            self._stash.append(self._make(TokenType.OUTDENT, "", 0))
        return self._make(TokenType.OUTDENT, "", 0)

    def _scan_raw(self) -> Token:
        """Capture the body of a script/style tag verbatim."""
        pos = self._position(len(self._buffer))
        prefix = "".join(self._indents)
        lines = [self._buffer]
        self._buffer = ""

        while self._next_line < len(self._lines):
            raw = self._lines[self._next_line]
            if raw.strip() and not raw.startswith(prefix):
                break
            lines.append(raw[len(prefix) :] if raw.strip() else "")
            self._next_line += 1
            self._line = self._next_line

        # Trailing blank lines belong to the surrounding block
        while len(lines) > 1 and not lines[-1]:
            lines.pop()
        return Token(TokenType.TEXT, "\n".join(lines), pos, data={"Mode": "raw"})

    def _read_fence(self, fence: str) -> list[str]:
        start = self._position()
        prefix = "".join(self._indents)
        body: list[str] = []
        while self._next_line < len(self._lines):
            raw = self._lines[self._next_line]
            self._next_line += 1
            self._line = self._next_line
            line = raw[len(prefix) :] if raw.startswith(prefix) else raw.lstrip()
            if line.strip() == fence:
                return dedent_lines(body)
            body.append(line)
        raise LexError(f"unterminated code fence '{fence}'", start, self._source)

    # ------------------------------------------------------------------
    # Line rules, tried in priority order
    # ------------------------------------------------------------------

    def _scan_line(self) -> Token:
        buf = self._buffer

        if _RETURN.match(buf):
            self._buffer = ""
            self._next_line = len(self._lines)
            self._state = _State.EOF
            return self.next()

        if m := _EXPORT.match(buf):
            tok = self._make(TokenType.EXPORT, m.group(1), len(m.group(0)), Name=m.group(1), Value=m.group(3) or "")
            self._consume(len(m.group(0)))
            return tok

        if m := _FUNC.match(buf):
            tok = self._make(
                TokenType.FUNC,
                m.group(2),
                len(m.group(0)),
                Args=m.group(4) or "",
                Exported="true" if m.group(1) else "",
            )
            self._consume(len(m.group(0)))
            return tok

        if m := _COMP.match(buf):
            tok = self._make(
                TokenType.COMP,
                m.group(4),
                len(m.group(0)),
                Args=m.group(6) or "",
                Exported="true" if m.group(1) else "",
                Override="true" if m.group(3) else "",
                Keyword=m.group(2),
            )
            self._consume(len(m.group(0)))
            return tok

        if m := _MAIN.match(buf):
            tok = self._make(
                TokenType.COMP, "main", len(m.group(0)), Args=m.group(2) or "", Exported="true", Keyword="main"
            )
            self._consume(len(m.group(0)))
            return tok

        if m := _COMP_CALL.match(buf):
            tok = self._make(
                TokenType.COMP_CALL,
                m.group(1),
                len(m.group(0)),
                Args=m.group(3) or "",
                WithCode="true" if m.group(4) else "",
            )
            self._consume(len(m.group(0)))
            return tok

        for rule, tt in ((_SWITCH, TokenType.SWITCH), (_CASE, TokenType.CASE)):
            if m := rule.match(buf):
                tok = self._make(tt, m.group(1), len(m.group(0)))
                self._consume(len(m.group(0)))
                return tok

        if m := _DEFAULT.match(buf):
            tok = self._make(TokenType.DEFAULT, "", len(m.group(0)))
            self._consume(len(m.group(0)))
            return tok

        if m := _DOCTYPE.match(buf):
            tok = self._make(TokenType.DOCTYPE, m.group(2).strip() or "html", len(m.group(0)))
            self._consume(len(m.group(0)))
            return tok

        if m := _IF.match(buf):
            tok = self._make(TokenType.IF, m.group(1).strip(), len(m.group(0)))
            self._consume(len(m.group(0)))
            return tok

        if m := _ELSE.match(buf):
            if m.group(2) is not None:
                tok = self._make(TokenType.ELSE_IF, m.group(2).strip(), len(m.group(0)))
            else:
                tok = self._make(TokenType.ELSE, "", len(m.group(0)))
            self._consume(len(m.group(0)))
            return tok

        if m := _FOR.match(buf):
            tok = self._make(TokenType.FOR, m.group(1).strip(), len(m.group(0)))
            self._consume(len(m.group(0)))
            return tok

        if m := _IMPORT.match(buf):
            tok = self._make(TokenType.IMPORT, m.group(1)[1:-1], len(m.group(0)), Ident=m.group(3) or "")
            self._consume(len(m.group(0)))
            return tok

        if m := _SLOT.match(buf):
            tok = self._make(TokenType.SLOT, m.group(1), len(m.group(0)), Args=m.group(3) or "")
            self._consume(len(m.group(0)))
            return tok

        if m := _SLOT_PASS.match(buf):
            tok = self._make(TokenType.SLOT_PASS, m.group(1).strip(), len(m.group(0)), Header=m.group(1).strip())
            self._consume(len(m.group(0)))
            return tok

        if m := _WRAP.match(buf):
            tok = self._make(TokenType.WRAP, "", len(m.group(0)))
            self._consume(len(m.group(0)))
            return tok

        if m := _ASSIGNMENT.match(buf):
            tok = self._make(
                TokenType.ASSIGNMENT,
                m.group(3).strip(),
                len(m.group(0)),
                X=(m.group(1) or "")[1:],
                Op=m.group(2),
            )
            self._consume(len(m.group(0)))
            return tok

        if _INIT_FENCE.match(buf) or _CODE_FENCE.match(buf):
            fence = buf.strip()
            tok = self._make(TokenType.CODE, "", len(buf), Mode="init" if fence == "~~~" else "block")
            self._buffer = ""
            tok.values = self._read_fence(fence)
            return tok

        if m := _CODE.match(buf):
            tok = self._make(
                TokenType.CODE,
                m.group(2),
                len(m.group(0)),
                Mode="line",
                TrimLeft="true" if m.group(1) else "",
                TrimRight="true" if m.group(3) else "",
            )
            tok.values = [m.group(2)]
            self._consume(len(m.group(0)))
            return tok

        if m := _TAG.match(buf):
            tok = self._make(TokenType.TAG, m.group(1), len(m.group(1)))
            self._consume(len(m.group(0)))
            self._raw_pending = is_raw_text(m.group(1))
            return tok

        if m := _ID.match(buf):
            tok = self._make(TokenType.ID, m.group(1), len(m.group(0)), Condition=(m.group(2) or "").strip())
            self._consume(len(m.group(0)))
            return tok

        if m := _CLASS_NAME.match(buf):
            tok = self._make(TokenType.CLASS_NAME, m.group(1), len(m.group(0)), Condition=(m.group(2) or "").strip())
            self._consume(len(m.group(0)))
            return tok

        if buf.startswith("["):
            tok = self._scan_attribute(buf)
            if tok is not None:
                return tok

        if m := _COMMENT.match(buf):
            tok = self._make(TokenType.COMMENT, m.group(2), len(m.group(0)), Mode="silent" if m.group(1) else "embed")
            self._consume(len(m.group(0)))
            return tok

        m = _TEXT.match(buf)
        assert m is not None  # the text rule matches any line
        tok = self._make(TokenType.TEXT, m.group(2), len(m.group(0)), Mode="piped" if m.group(1) else "inline")
        self._consume(len(m.group(0)))
        return tok

    def _scan_attribute(self, buf: str) -> Token | None:
        from pleat.attrs import AttributeSyntaxError, parse_attribute_list

        try:
            entries, end = parse_attribute_list(buf)
        except AttributeSyntaxError:
            entries = None

        if entries is not None:
            rest = buf[end:]
            length = end
            cond = ""
            if m := _ATTR_CONDITION.match(rest):
                cond = m.group(1).strip()
                length = len(buf)
            tok = self._make(TokenType.ATTRIBUTE, buf[1 : end - 1], length, Mode="list", Condition=cond)
            tok.payload = entries
            self._consume(length)
            return tok

        if m := _ATTRIBUTE.match(buf):
            quoted, expression = m.group(3), m.group(4)
            data = {"Condition": (m.group(5) or "").strip()}
            if m.group(2) is None:
                data.update(Content="", Mode="raw", Flag="true")
            elif quoted is not None:
                data.update(Content=quoted, Mode="raw")
            else:
                data.update(Content=expression.strip(), Mode="expression")
            tok = self._make(TokenType.ATTRIBUTE, m.group(1), len(m.group(0)), **data)
            self._consume(len(m.group(0)))
            return tok

        return None


def tokenize(source: str, filename: str = "input.pleat") -> list[Token]:
    """Convenience function: scan source and return the token list."""
    return Lexer(source, filename).tokenize()
