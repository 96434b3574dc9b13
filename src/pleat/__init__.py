"""Pleat: an indentation-based HTML template compiler targeting Python."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pleat.compiler import CompileOptions

__version__ = "0.1.0"


def compile(
    source: str,
    filename: str = "input.pleat",
    options: CompileOptions | None = None,
) -> str:
    """Parse and compile Pleat source to Python module source."""
    from pleat.compiler import compile_source

    return compile_source(source, filename, options)


def render(
    source: str,
    filename: str = "input.pleat",
    options: CompileOptions | None = None,
    **data: Any,
) -> str:
    """Compile Pleat source and render it to HTML with *data*."""
    from pleat.template import Template

    return Template(source, filename, options).render(**data)
