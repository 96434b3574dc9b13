"""Command-line interface for Pleat."""

from __future__ import annotations

import argparse
import logging
import sys
import time
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pleat.compiler import CompileOptions
from pleat.errors import CompileError, LexError, ParseError, RenderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    input_file: Path
    output_file: Path | None
    render: bool
    env: dict[str, str]
    globals: list[str]
    pre_code_file: Path | None
    pretty: bool
    line_numbers: bool
    include_paths: list[Path]
    watch: bool
    debug: bool

    def compile_options(self) -> CompileOptions:
        pre_code = ""
        if self.pre_code_file is not None:
            pre_code = self.pre_code_file.read_text(encoding="utf-8")
        return CompileOptions(
            pretty=self.pretty,
            line_numbers=self.line_numbers,
            globals=list(self.globals),
            pre_code=pre_code,
        )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="pleat",
        description="Pleat template compiler",
    )
    p.add_argument("input", help="Input .pleat file")
    p.add_argument("-o", "--output", help="Output file (default: stdout)")
    p.add_argument(
        "--render",
        action="store_true",
        help="Execute the template and write HTML instead of generated Python",
    )
    p.add_argument(
        "-e",
        "--env",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Set a render variable (repeatable)",
    )
    p.add_argument(
        "-g",
        "--global",
        dest="globals",
        action="append",
        default=[],
        metavar="NAME",
        help="Declare a global read from the render data (repeatable)",
    )
    p.add_argument("--pre-code", metavar="FILE", help="Python file inserted before the template body")
    p.add_argument("--pretty", action="store_true", default=None, help="Indent the generated HTML")
    p.add_argument(
        "--line-numbers",
        action="store_true",
        default=None,
        help="Annotate generated code with template line numbers",
    )
    p.add_argument(
        "--config",
        metavar="FILE",
        help="Config file (default: auto-discover pleat.toml)",
    )
    p.add_argument(
        "--include-path",
        action="append",
        default=[],
        metavar="DIR",
        help="Extra @import search directory (repeatable)",
    )
    p.add_argument("--watch", action="store_true", help="Watch for changes and recompile")
    p.add_argument("--debug", action="store_true", help="Dump AST to stderr and log at DEBUG level")
    return p


def parse_env_arg(s: str) -> tuple[str, str]:
    """Parse a NAME=VALUE string into (name, value)."""
    if "=" not in s:
        raise argparse.ArgumentTypeError(f"invalid env format (expected NAME=VALUE): {s}")
    name, _, value = s.partition("=")
    if not name.isidentifier():
        raise argparse.ArgumentTypeError(f"invalid env name (expected an identifier): {name}")
    return name, value


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else input_dir / "pleat.toml"

    if not path.is_file():
        return {}

    logger.debug("reading config %s", path)
    with open(path, "rb") as f:
        return tomllib.load(f)


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: config file < CLI flags.
    """
    input_file = Path(args.input)
    input_dir = input_file.parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path, input_dir)

    cfg_compile = config.get("compile")
    if not isinstance(cfg_compile, dict):
        cfg_compile = {}

    # Render variables: config < CLI
    env: dict[str, str] = {}
    cfg_env = config.get("env")
    if isinstance(cfg_env, dict):
        for k, v in cfg_env.items():
            env[str(k)] = str(v)
    for raw in args.env:
        name, value = parse_env_arg(raw)
        env[name] = value

    # Globals: config, then CLI additions
    globals_: list[str] = []
    cfg_globals = cfg_compile.get("globals")
    if isinstance(cfg_globals, list):
        globals_.extend(str(g) for g in cfg_globals)
    for name in args.globals:
        if not name.isidentifier():
            raise argparse.ArgumentTypeError(f"invalid global name: {name}")
        if name not in globals_:
            globals_.append(name)

    # Pre-code file: config < CLI
    pre_code_file: Path | None = None
    cfg_pre_code = cfg_compile.get("pre_code")
    if isinstance(cfg_pre_code, str) and cfg_pre_code:
        pre_code_file = input_dir / cfg_pre_code
    if args.pre_code:
        pre_code_file = Path(args.pre_code)

    # Flags: config < CLI
    pretty = bool(cfg_compile.get("pretty", False))
    if args.pretty is not None:
        pretty = args.pretty
    line_numbers = bool(cfg_compile.get("line_numbers", False))
    if args.line_numbers is not None:
        line_numbers = args.line_numbers

    # Import search paths: config < CLI
    include_paths: list[Path] = []
    cfg_paths = cfg_compile.get("include_paths")
    if isinstance(cfg_paths, list):
        include_paths.extend(input_dir / str(p) for p in cfg_paths)
    include_paths.extend(Path(p) for p in args.include_path)

    output_file = Path(args.output) if args.output else None

    return CliOptions(
        input_file=input_file,
        output_file=output_file,
        render=args.render,
        env=env,
        globals=globals_,
        pre_code_file=pre_code_file,
        pretty=pretty,
        line_numbers=line_numbers,
        include_paths=include_paths,
        watch=args.watch,
        debug=args.debug,
    )


def compile_file(options: CliOptions) -> str:
    """Read and compile a template; render it to HTML when asked to."""
    from pleat.compiler import Compiler
    from pleat.debug import dump_ast
    from pleat.loader import TemplateLoader
    from pleat.parser import parse
    from pleat.template import Template

    source = options.input_file.read_text(encoding="utf-8")
    compile_options = options.compile_options()

    root = parse(source, str(options.input_file))
    if options.debug:
        dump_ast(root)

    if not options.render:
        return Compiler(root, source, compile_options).compile()

    doc_dir = options.input_file.parent
    if not doc_dir.parts:
        doc_dir = Path(".")

    loader = TemplateLoader(
        document_dir=doc_dir,
        extra_paths=list(options.include_paths),
        options=compile_options,
    )
    template = Template(source, str(options.input_file), compile_options, loader)
    return template.render(**options.env)


def _write_output(options: CliOptions, text: str) -> None:
    if options.output_file:
        options.output_file.write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
        sys.stdout.flush()


def watch_loop(options: CliOptions) -> None:
    """Poll input file for changes, recompile on each modification."""
    last_mtime = 0.0
    print(f"Watching {options.input_file} for changes...", file=sys.stderr)
    try:
        while True:
            try:
                mtime = options.input_file.stat().st_mtime
            except OSError:
                time.sleep(0.5)
                continue
            if mtime != last_mtime:
                last_mtime = mtime
                try:
                    _write_output(options, compile_file(options))
                    print(f"Compiled {options.input_file}", file=sys.stderr)
                except (LexError, ParseError, CompileError, RenderError) as exc:
                    print(str(exc), file=sys.stderr)
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )

    try:
        options = resolve_options(args)
    except argparse.ArgumentTypeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except tomllib.TOMLDecodeError as exc:
        print(f"error: invalid config: {exc}", file=sys.stderr)
        return 2

    if options.watch:
        watch_loop(options)
        return 0

    try:
        text = compile_file(options)
    except (LexError, ParseError, CompileError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except RenderError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    _write_output(options, text)
    return 0
