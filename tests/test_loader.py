"""Template lookup, caching and @import."""

from __future__ import annotations

from pathlib import Path

import pytest

from pleat.errors import RenderError
from pleat.loader import TemplateLoader, TemplateNotFound
from pleat.template import Template


class TestFind:
    def test_adds_extension(self, tmp_path: Path) -> None:
        (tmp_path / "ui.pleat").write_text("p\n")
        loader = TemplateLoader(tmp_path)
        assert loader.find("ui") == (tmp_path / "ui.pleat").resolve()

    def test_relative_to_importer_first(self, tmp_path: Path) -> None:
        sub = tmp_path / "sub"
        sub.mkdir()
        (tmp_path / "ui.pleat").write_text("| root\n")
        (sub / "ui.pleat").write_text("| sub\n")
        loader = TemplateLoader(tmp_path)
        assert loader.find("ui", sub) == (sub / "ui.pleat").resolve()

    def test_extra_paths(self, tmp_path: Path) -> None:
        lib = tmp_path / "lib"
        lib.mkdir()
        (lib / "widgets.pleat").write_text("p\n")
        loader = TemplateLoader(tmp_path / "docs", extra_paths=[lib])
        assert loader.find("widgets") == (lib / "widgets.pleat").resolve()

    def test_not_found_lists_searched(self, tmp_path: Path) -> None:
        loader = TemplateLoader(tmp_path)
        with pytest.raises(TemplateNotFound) as exc_info:
            loader.find("missing")
        assert "template 'missing' not found" in str(exc_info.value)
        assert tmp_path / "missing.pleat" in exc_info.value.searched


class TestCache:
    def test_load_reuses_template(self, tmp_path: Path) -> None:
        (tmp_path / "ui.pleat").write_text("p\n")
        loader = TemplateLoader(tmp_path)
        assert loader.load("ui") is loader.load("ui")

    def test_clear(self, tmp_path: Path) -> None:
        (tmp_path / "ui.pleat").write_text("p\n")
        loader = TemplateLoader(tmp_path)
        first = loader.load("ui")
        loader.clear()
        assert loader.load("ui") is not first


class TestImport:
    def test_exported_component(self, tmp_path: Path) -> None:
        (tmp_path / "ui.pleat").write_text("@export comp badge(text)\n  span.badge= text\n")
        page = tmp_path / "page.pleat"
        page.write_text('@import "ui"\n+ui.badge("new")\n')
        assert Template.from_file(page).render() == '<span class="badge">new</span>'

    def test_alias_and_exported_value(self, tmp_path: Path) -> None:
        (tmp_path / "site.pleat").write_text("@export title = 'Docs'\n")
        page = tmp_path / "page.pleat"
        page.write_text('@import "site" as cfg\nh1= cfg.title\n')
        assert Template.from_file(page).render() == "<h1>Docs</h1>"

    def test_import_from_subdirectory(self, tmp_path: Path) -> None:
        partials = tmp_path / "partials"
        partials.mkdir()
        (partials / "nav-bar.pleat").write_text("@export comp links\n  nav\n")
        page = tmp_path / "page.pleat"
        page.write_text('@import "partials/nav-bar"\n+nav_bar.links\n')
        assert Template.from_file(page).render() == "<nav></nav>"

    def test_cycle(self, tmp_path: Path) -> None:
        (tmp_path / "a.pleat").write_text('@import "b"\n')
        (tmp_path / "b.pleat").write_text('@import "a"\n')
        with pytest.raises(RenderError, match="import cycle"):
            Template.from_file(tmp_path / "a.pleat").render()

    def test_missing_import(self, tmp_path: Path) -> None:
        page = tmp_path / "page.pleat"
        page.write_text('p\n@import "nope"\n')
        with pytest.raises(RenderError) as exc_info:
            Template.from_file(page).render()
        assert "TemplateNotFound" in exc_info.value.message
        assert exc_info.value.position.line == 2

    def test_error_in_imported_template_points_there(self, tmp_path: Path) -> None:
        (tmp_path / "ui.pleat").write_text("@export comp boom\n  p\n    | #{1 / 0}\n")
        page = tmp_path / "page.pleat"
        page.write_text('@import "ui"\n+ui.boom\n')
        with pytest.raises(RenderError) as exc_info:
            Template.from_file(page).render()
        err = exc_info.value
        assert err.position.filename.endswith("ui.pleat")
        assert err.position.line == 3
        assert err.call_stack == ["boom"]
