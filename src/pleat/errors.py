"""Error types with formatted source context."""

from __future__ import annotations

from pleat.tokens import SourcePosition


class PleatError(Exception):
    """Base for every error raised while compiling or rendering a template."""

    kind = "error"

    def __init__(self, message: str, position: SourcePosition, source: str = "") -> None:
        self.message = message
        self.position = position
        self.source = source
        super().__init__(self.format())

    def format(self, filename: str | None = None) -> str:
        if filename is None:
            filename = self.position.filename or "input.pleat"
        lines = self.source.splitlines()
        line_idx = self.position.line - 1
        col = max(1, self.position.column)

        if 0 <= line_idx < len(lines):
            source_line = lines[line_idx].rstrip("\r")
        else:
            source_line = ""

        # Underline the token when its length is known, else up to two chars
        if self.position.length > 0:
            underline_len = self.position.length
        else:
            underline_len = max(1, min(2, len(source_line) - col + 1))

        pad = "".join("\t" if ch == "\t" else " " for ch in source_line[: col - 1])
        carets = "^" * underline_len

        line_num = str(self.position.line)
        gutter_width = len(line_num) + 1

        blank_gutter = " " * gutter_width + "|"
        line_gutter = f"{line_num:>{gutter_width - 1}} |"

        return (
            f"{self.kind}: {self.message}\n"
            f"{' ' * gutter_width}--> {filename}:{self.position.line}:{col}\n"
            f"{blank_gutter}\n"
            f"{line_gutter} {source_line}\n"
            f"{blank_gutter} {pad}{carets}"
        )


class LexError(PleatError):
    """Raised on the first scan error (indentation mismatch, unterminated fence)."""


class ParseError(PleatError):
    """Raised on the first structural error while building the AST."""


class CompileError(PleatError):
    """Raised while generating code (duplicate component, bad expression)."""


class AttributeConditionError(CompileError):
    """An attribute condition that is not a valid expression."""

    def __init__(
        self,
        tag: str,
        attribute: str,
        condition: str,
        reason: str,
        position: SourcePosition,
        source: str = "",
    ) -> None:
        self.tag = tag
        self.attribute = attribute
        self.condition = condition
        self.reason = reason
        message = f"parse tag '{tag}': attribute '{attribute}': condition {condition!r}: {reason}"
        super().__init__(message, position, source)


class RenderError(PleatError):
    """Raised when generated code fails while rendering, mapped to the template line."""

    kind = "render error"

    def __init__(
        self,
        message: str,
        position: SourcePosition,
        source: str = "",
        call_stack: list[str] | None = None,
    ) -> None:
        self.call_stack = call_stack or []
        super().__init__(message, position, source)

    def format(self, filename: str | None = None) -> str:
        result = super().format(filename)
        if self.call_stack:
            chain = " -> ".join(f"+{name}" for name in self.call_stack)
            result += f"\n  in component chain: {chain}"
        return result
