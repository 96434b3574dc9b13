"""Tests for TOML config file loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from pleat.cli import build_parser, load_config, main, resolve_options


def _resolve(doc: Path, *argv: str):
    return resolve_options(build_parser().parse_args([str(doc), *argv]))


@pytest.fixture
def doc(tmp_path: Path) -> Path:
    path = tmp_path / "page.pleat"
    path.write_text("p\n")
    return path


class TestLoadConfig:
    def test_missing_config_returns_empty(self, tmp_path: Path) -> None:
        assert load_config(None, tmp_path) == {}

    def test_explicit_path(self, tmp_path: Path) -> None:
        cfg = tmp_path / "custom.toml"
        cfg.write_text('[env]\nmode = "test"\n')
        result = load_config(cfg, tmp_path)
        assert result["env"] == {"mode": "test"}

    def test_auto_discover_pleat_toml(self, tmp_path: Path) -> None:
        cfg = tmp_path / "pleat.toml"
        cfg.write_text('[env]\nauthor = "Alice"\n')
        result = load_config(None, tmp_path)
        assert result["env"] == {"author": "Alice"}


class TestConfigMerge:
    def test_config_env_merged(self, tmp_path: Path, doc: Path) -> None:
        (tmp_path / "pleat.toml").write_text('[env]\nmode = "prod"\n')
        assert _resolve(doc).env == {"mode": "prod"}

    def test_cli_overrides_config_env(self, tmp_path: Path, doc: Path) -> None:
        (tmp_path / "pleat.toml").write_text('[env]\nmode = "prod"\n')
        assert _resolve(doc, "-e", "mode=dev").env["mode"] == "dev"

    def test_non_string_env_values(self, tmp_path: Path, doc: Path) -> None:
        (tmp_path / "pleat.toml").write_text("[env]\nyear = 2024\n")
        assert _resolve(doc).env == {"year": "2024"}

    def test_config_globals_and_cli_globals(self, tmp_path: Path, doc: Path) -> None:
        (tmp_path / "pleat.toml").write_text('[compile]\nglobals = ["site"]\n')
        opts = _resolve(doc, "-g", "user", "-g", "site")
        assert opts.globals == ["site", "user"]

    def test_pre_code_relative_to_input(self, tmp_path: Path, doc: Path) -> None:
        (tmp_path / "pleat.toml").write_text('[compile]\npre_code = "pre.py"\n')
        assert _resolve(doc).pre_code_file == tmp_path / "pre.py"

    def test_cli_pre_code_overrides_config(self, tmp_path: Path, doc: Path) -> None:
        (tmp_path / "pleat.toml").write_text('[compile]\npre_code = "pre.py"\n')
        assert _resolve(doc, "--pre-code", "other.py").pre_code_file == Path("other.py")

    def test_config_flags(self, tmp_path: Path, doc: Path) -> None:
        (tmp_path / "pleat.toml").write_text("[compile]\npretty = true\nline_numbers = true\n")
        opts = _resolve(doc)
        assert opts.pretty is True
        assert opts.line_numbers is True
        assert opts.compile_options().pretty is True

    def test_include_paths(self, tmp_path: Path, doc: Path) -> None:
        (tmp_path / "pleat.toml").write_text('[compile]\ninclude_paths = ["partials"]\n')
        opts = _resolve(doc, "--include-path", "/opt/pleat")
        assert opts.include_paths == [tmp_path / "partials", Path("/opt/pleat")]

    def test_explicit_config_flag(self, tmp_path: Path, doc: Path) -> None:
        cfg = tmp_path / "alt.toml"
        cfg.write_text('[env]\nkey = "val"\n')
        assert _resolve(doc, "--config", str(cfg)).env == {"key": "val"}

    def test_invalid_toml_returns_2(self, tmp_path: Path, doc: Path) -> None:
        (tmp_path / "pleat.toml").write_text("[env\n")
        assert main([str(doc)]) == 2
