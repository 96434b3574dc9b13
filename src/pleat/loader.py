"""Template discovery and caching for ``@import``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pleat.compiler import CompileOptions
    from pleat.template import Template

logger = logging.getLogger(__name__)

EXTENSION = ".pleat"


class TemplateNotFound(LookupError):
    """No file matches an ``@import`` path."""

    def __init__(self, name: str, searched: list[Path]) -> None:
        self.name = name
        self.searched = searched
        where = ", ".join(str(p) for p in searched) or "nowhere"
        super().__init__(f"template '{name}' not found (searched {where})")


@dataclass
class TemplateLoader:
    """Resolves import paths to compiled templates. Results are cached."""

    document_dir: Path
    extra_paths: list[Path] = field(default_factory=list)
    options: CompileOptions | None = None
    _cache: dict[Path, Template] = field(default_factory=dict, init=False)

    def find(self, name: str, relative_to: Path | None = None) -> Path:
        """Locate *name* next to the importing file, then in the search paths."""
        dirs: list[Path] = []
        if relative_to is not None:
            dirs.append(relative_to)
        dirs.append(self.document_dir)
        dirs.extend(self.extra_paths)

        searched: list[Path] = []
        for d in dirs:
            for candidate in _candidates(d / name):
                if candidate in searched:
                    continue
                searched.append(candidate)
                if candidate.is_file():
                    return candidate.resolve()
        raise TemplateNotFound(name, searched)

    def load(self, name: str, relative_to: Path | None = None) -> Template:
        """Find and compile a template; compiled templates are reused."""
        from pleat.template import Template

        path = self.find(name, relative_to)
        cached = self._cache.get(path)
        if cached is not None:
            logger.debug("template cache hit: %s", path)
            return cached

        logger.debug("loading template %s", path)
        template = Template.from_file(path, options=self.options, loader=self)
        self._cache[path] = template
        return template

    def clear(self) -> None:
        self._cache.clear()


def _candidates(path: Path) -> list[Path]:
    if path.suffix == EXTENSION:
        return [path]
    return [path.with_name(path.name + EXTENSION), path]
