"""Compiled templates: generated Python executed against a Writer."""

from __future__ import annotations

import bisect
import inspect
import logging
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from types import SimpleNamespace
from typing import Any

from pleat.compiler import CompileOptions, Compiler
from pleat.errors import CompileError, PleatError, RenderError
from pleat.loader import TemplateLoader
from pleat.parser import parse
from pleat.runtime import Writer, namespace
from pleat.tokens import SourcePosition

logger = logging.getLogger(__name__)


@dataclass
class _Render:
    """State shared by a template and everything it imports during one render."""

    writer: Writer
    data: dict[str, Any]
    chain: list[Template] = field(default_factory=list)
    templates: dict[str, Template] = field(default_factory=dict)


class Template:
    """A template compiled to Python, ready to render any number of times."""

    def __init__(
        self,
        source: str,
        filename: str = "input.pleat",
        options: CompileOptions | None = None,
        loader: TemplateLoader | None = None,
    ) -> None:
        self.source = source
        self.filename = filename
        self.loader = loader or TemplateLoader(Path.cwd())

        compiler = Compiler(parse(source, filename), source, options)
        self.code = compiler.compile()
        self.line_map = compiler.line_map
        self._lines = sorted(self.line_map)
        self._code_name = f"<pleat {filename}>"
        self._key = Path(filename).resolve()
        try:
            self._bytecode = compile(self.code, self._code_name, "exec")
        except SyntaxError as exc:
            raise CompileError(
                f"generated code does not compile: {exc.msg}",
                self.position_for(exc.lineno or 0),
                source,
            ) from None
        logger.debug("compiled template %s", filename)

    @classmethod
    def from_source(cls, source: str, filename: str = "input.pleat", **kwargs: Any) -> Template:
        return cls(source, filename, **kwargs)

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        options: CompileOptions | None = None,
        loader: TemplateLoader | None = None,
    ) -> Template:
        path = Path(path)
        source = path.read_text(encoding="utf-8")
        if loader is None:
            loader = TemplateLoader(path.parent, options=options)
        return cls(source, str(path), options, loader)

    def position_for(self, lineno: int) -> SourcePosition:
        """Template position of a line in the generated code."""
        idx = bisect.bisect_right(self._lines, lineno) - 1
        if idx < 0:
            return SourcePosition(1, 1, 0, self.filename)
        return self.line_map[self._lines[idx]]

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, **data: Any) -> str:
        """Execute the template and return the produced HTML.

        When the template exports a ``main`` component it is called after
        the top-level content, with the data entries it names as
        parameters.
        """
        state = _Render(Writer(), data)
        exports = self._execute(state)
        main = exports.get("main")
        if callable(main):
            params = inspect.signature(main).parameters
            kwargs = {k: v for k, v in data.items() if k in params and not k.startswith("__")}
            self._guard(state, main, **kwargs)
        return state.writer.getvalue()

    def exports(self, **data: Any) -> dict[str, Any]:
        """Execute the template and return its ``__exports__`` map."""
        return self._execute(_Render(Writer(), data))

    def _execute(self, state: _Render) -> dict[str, Any]:
        if any(t._key == self._key for t in state.chain):
            cycle = " -> ".join(t.filename for t in [*state.chain, self])
            raise RenderError(f"import cycle: {cycle}", SourcePosition(1, 1, 0, self.filename), self.source)

        state.chain.append(self)
        state.templates[self._code_name] = self
        ns = namespace(
            state.writer,
            __globals__=state.data,
            __import_template__=lambda name: self._import(state, name),
        )
        ns.update({k: v for k, v in state.data.items() if not k.startswith("__")})
        try:
            self._guard(state, exec, self._bytecode, ns)
        finally:
            state.chain.pop()
        return ns.get("__exports__", {})

    def _import(self, state: _Render, name: str) -> SimpleNamespace:
        relative_to = Path(self.filename).parent if self.filename else None
        template = self.loader.load(name, relative_to)
        return SimpleNamespace(**template._execute(state))

    def _guard(self, state: _Render, fn: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except PleatError:
            raise
        except Exception as exc:
            raise _render_error(self, state, exc) from exc


def _render_error(current: Template, state: _Render, exc: Exception) -> RenderError:
    """Map an exception raised by generated code back to a template line."""
    frames = [f for f in traceback.extract_tb(exc.__traceback__) if f.filename in state.templates]
    message = f"{type(exc).__name__}: {exc}"
    if not frames:
        return RenderError(message, current.position_for(0), current.source)

    last = frames[-1]
    template = state.templates[last.filename]
    position = template.position_for(last.lineno or 0)
    call_stack = [f.name for f in frames if f.name != "<module>" and not f.name.startswith("__")]
    return RenderError(message, position, template.source, call_stack)
