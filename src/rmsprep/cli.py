"""Command-line interface for rmsprep."""

from __future__ import annotations

import argparse
import sys
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from rmsprep.errors import SYNTAX_KINDS
from rmsprep.pipeline import Options, Result, process
from rmsprep.symbols import AREA_BASE

CONFIG_NAME = "rmsprep.toml"


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    input_files: list[Path]
    output_file: Path | None
    output_dir: Path | None
    options: Options
    debug: bool
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="rmsprep",
        description="Age of Empires II random map script preprocessor",
    )
    p.add_argument("inputs", nargs="+", metavar="INPUT", help="Input .rms file(s)")
    out = p.add_mutually_exclusive_group()
    out.add_argument("-o", "--output", help="Output file (default: stdout)")
    out.add_argument(
        "-d",
        "--output-dir",
        metavar="DIR",
        help="Write each processed script to DIR under its own name",
    )
    p.add_argument(
        "--config",
        metavar="FILE",
        help=f"Config file (default: auto-discover {CONFIG_NAME})",
    )
    p.add_argument(
        "--no-hoist",
        action="store_true",
        help="Leave rnd(...) calls in place instead of hoisting them to #const",
    )
    p.add_argument(
        "--rnd-prefix",
        default=None,
        metavar="PREFIX",
        help="Prefix for generated rnd constants (default: C)",
    )
    p.add_argument(
        "--area-base",
        type=int,
        default=None,
        metavar="N",
        help=f"First ID assigned to named actor areas (default: {AREA_BASE})",
    )
    p.add_argument(
        "--single-line",
        action="store_true",
        help="Collapse line breaks in the output body",
    )
    p.add_argument(
        "--extern",
        action="append",
        default=[],
        metavar="NAME",
        help="Constant defined by the engine or an included file (repeatable)",
    )
    p.add_argument("--debug", action="store_true", help="Dump block tree to stderr")
    p.add_argument("-v", "--verbose", action="store_true", help="Report each processed file")
    return p


def parse_prefix_arg(s: str) -> str:
    """Validate a generated-constant prefix: an identifier that does not start with a digit."""
    if not s or not (s[0] == "_" or s[0].isalpha()) or not all(
        c == "_" or c.isalnum() for c in s
    ):
        raise argparse.ArgumentTypeError(f"invalid rnd prefix (expected an identifier): {s}")
    return s


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else input_dir / CONFIG_NAME

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        return tomllib.load(f)


def options_from_config(config: dict[str, Any]) -> Options:
    """Build pipeline Options from a loaded config; missing or mistyped keys keep defaults."""
    hoist_rnd = True
    rnd_prefix = "C"
    cfg_hoist = config.get("hoist")
    if isinstance(cfg_hoist, dict):
        if isinstance(cfg_hoist.get("enabled"), bool):
            hoist_rnd = cfg_hoist["enabled"]
        if isinstance(cfg_hoist.get("prefix"), str):
            rnd_prefix = parse_prefix_arg(cfg_hoist["prefix"])

    area_base = AREA_BASE
    cfg_areas = config.get("areas")
    if isinstance(cfg_areas, dict):
        cfg_base = cfg_areas.get("base")
        if isinstance(cfg_base, int) and not isinstance(cfg_base, bool):
            area_base = cfg_base

    keep_newlines = True
    cfg_minify = config.get("minify")
    if isinstance(cfg_minify, dict) and isinstance(cfg_minify.get("keep_newlines"), bool):
        keep_newlines = cfg_minify["keep_newlines"]

    extern: frozenset[str] = frozenset()
    cfg_symbols = config.get("symbols")
    if isinstance(cfg_symbols, dict):
        cfg_extern = cfg_symbols.get("extern")
        if isinstance(cfg_extern, list):
            extern = frozenset(str(name) for name in cfg_extern)

    return Options(
        hoist_rnd=hoist_rnd,
        rnd_prefix=rnd_prefix,
        area_base=area_base,
        keep_newlines=keep_newlines,
        extern_constants=extern,
    )


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: config file < CLI flags.
    """
    input_files = [Path(p) for p in args.inputs]
    input_dir = input_files[0].parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    options = options_from_config(load_config(config_path, input_dir))

    overrides: dict[str, Any] = {}
    if args.no_hoist:
        overrides["hoist_rnd"] = False
    if args.rnd_prefix is not None:
        overrides["rnd_prefix"] = parse_prefix_arg(args.rnd_prefix)
    if args.area_base is not None:
        overrides["area_base"] = args.area_base
    if args.single_line:
        overrides["keep_newlines"] = False
    if args.extern:
        overrides["extern_constants"] = options.extern_constants | frozenset(args.extern)

    output_file = Path(args.output) if args.output else None
    output_dir = Path(args.output_dir) if args.output_dir else None
    if output_file is not None and len(input_files) > 1:
        raise argparse.ArgumentTypeError("-o takes a single input; use -d for several")
    if output_dir is None and output_file is None and len(input_files) > 1:
        raise argparse.ArgumentTypeError("several inputs need an output directory (-d)")

    return CliOptions(
        input_files=input_files,
        output_file=output_file,
        output_dir=output_dir,
        options=replace(options, **overrides),
        debug=args.debug,
        verbose=args.verbose,
    )


def process_file(path: Path, options: CliOptions) -> tuple[str, Result]:
    """Read and process one script, returning its source and the pipeline result."""
    source = path.read_text(encoding="utf-8")
    trace = sys.stderr if options.debug else None
    return source, process(source, str(path), options.options, trace)


def exit_code(result: Result) -> int:
    """0 on success, 1 for lex/structure errors, 2 for semantic errors."""
    if result.ok:
        return 0
    if any(d.kind in SYNTAX_KINDS for d in result.errors):
        return 1
    return 2


def write_output(path: Path, text: str, options: CliOptions) -> None:
    if options.output_file is not None:
        options.output_file.write_text(text, encoding="utf-8")
    elif options.output_dir is not None:
        options.output_dir.mkdir(parents=True, exist_ok=True)
        (options.output_dir / path.name).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = resolve_options(args)
    except argparse.ArgumentTypeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except tomllib.TOMLDecodeError as exc:
        print(f"error: invalid config: {exc}", file=sys.stderr)
        return 2

    status = 0
    for path in options.input_files:
        try:
            source, result = process_file(path, options)
        except OSError as exc:
            print(f"error: cannot read {path}: {exc.strerror}", file=sys.stderr)
            status = max(status, 2)
            continue
        except UnicodeDecodeError as exc:
            print(f"error: cannot decode {path} as UTF-8: {exc.reason}", file=sys.stderr)
            status = max(status, 2)
            continue

        for diag in result.diagnostics:
            print(diag.format(source), file=sys.stderr)

        code = exit_code(result)
        status = max(status, code)
        if result.text is None:
            continue

        write_output(path, result.text, options)
        if options.verbose:
            print(f"Processed {path}", file=sys.stderr)

    return status
