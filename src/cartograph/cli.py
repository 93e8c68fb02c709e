"""Command line front end: ``cartograph <command>``.

Results go to stdout, progress and log records to stderr.

Exit codes:
    validate, validate-files -- 1 when any room is invalid.
    git, build, reconstruct -- 0 even when per-room errors were reported;
        1 only when the pass itself could not run.
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
import time

from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__, tasks
from .config import Config, load_config
from .config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
)
from .config_schema import UnifiedConfig, build_config, to_legacy_config
from .core.project import Project
from .errors import CartographError
from .logger import setup_logging
from .sync import (
    Operations,
    format_build_result,
    format_error_table,
    format_operations,
    report_to_json,
)

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    print(msg, file=sys.stderr)


class _Progress:
    """Single-line progress status on an interactive stderr."""

    def __init__(self) -> None:
        self.enabled = sys.stderr.isatty()
        self._last = 0.0

    def _show(self, text: str, force: bool = False) -> None:
        if not self.enabled:
            return
        now = time.monotonic()
        if not force and now - self._last < 0.1:
            return
        self._last = now
        sys.stderr.write(f"\r\033[K{text}")
        sys.stderr.flush()

    def rooms(self, done: int, total: int, operations: Operations) -> None:
        percent = round(done / total * 100) if total else 100
        self._show(
            f"completed room {done} of {total} "
            f"{{errors={len(operations.errors)}, skipped={operations.skipped}, "
            f"created={operations.created}}} [{percent}%]",
            force=done == total,
        )

    def scripts(
        self, current: int, total: int, batch_num: int, total_batches: int
    ) -> None:
        percent = round(current / total * 100) if total else 100
        if total_batches <= 1:
            text = f"Processing {total} Ruby string procedures... [{percent}%]"
        else:
            text = (
                f"Processing Ruby string procedures (batch {batch_num}/"
                f"{total_batches}) - {current}/{total} files [{percent}%]"
            )
        self._show(text, force=current == total)

    def done(self) -> None:
        if self.enabled:
            sys.stderr.write("\r\033[K")
            sys.stderr.flush()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _load_unified() -> UnifiedConfig:
    load_dotenv()
    if not discover_config_files():
        return UnifiedConfig()
    return build_config(load_hierarchical_config())


def _resolve_config(args: argparse.Namespace, unified: UnifiedConfig) -> Config:
    """Apply CLI args on top of env vars, the YAML config and defaults."""
    return load_config(
        world="dragonrealms" if getattr(args, "dr", False) else None,
        output_dir=getattr(args, "output", None)
        if args.command == "git"
        else None,
        no_format=getattr(args, "no_format", False),
        yaml_fallbacks=dataclasses.asdict(to_legacy_config(unified)),
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _elapsed_ms(then: float) -> int:
    return round((time.perf_counter() - then) * 1000)


def cmd_init(args: argparse.Namespace, config: Config) -> int:
    path = ensure_config()
    print(f"Config file: {path}")
    return 0


def cmd_download(args: argparse.Namespace, config: Config) -> int:
    project = Project.from_config(config)
    _stderr_print(f"downloading {project.remote_map} to {project.map_file}")
    result = tasks.download(project)
    print(f"mapdb of {result['mb']}mb successfully downloaded")
    return 0


def cmd_validate(args: argparse.Namespace, config: Config) -> int:
    project = Project.from_config(config)
    then = time.perf_counter()
    file_path = args.input or project.map_file
    _stderr_print(f"validating mapdb at {file_path}...")
    result = tasks.validate(project, args.input)
    runtime = _elapsed_ms(then)

    if not result.errors:
        print(f"[{runtime}ms] validated {len(result.rooms)} rooms")
        return 0

    print(format_error_table(result.errors, ["id", "title", "error"]))
    print(f"[{runtime}ms] found {len(result.errors)} issues")
    return 1


def cmd_validate_files(args: argparse.Namespace, config: Config) -> int:
    then = time.perf_counter()
    _stderr_print(f"validating {len(args.files)} room files...")
    result = tasks.check_files(args.files)
    runtime = _elapsed_ms(then)

    if not result.errors:
        print(f"[{runtime}ms] validated {result.valid_files} files")
        return 0

    if args.json:
        print(json.dumps(report_to_json(result), indent=2))
    else:
        print(
            format_error_table(result.errors, ["file", "id", "title", "error"])
        )
    _stderr_print(
        f"[{runtime}ms] found {len(result.errors)} validation errors"
    )
    return 1


def cmd_git(args: argparse.Namespace, config: Config) -> int:
    project = Project.from_config(config)
    progress = _Progress()
    then = time.perf_counter()
    input_file = args.input or project.map_file
    _stderr_print(
        f"seeding git version of mapdb at {input_file} -> {project.tree_root}..."
    )
    try:
        operations = asyncio.run(
            tasks.sync(
                project,
                config,
                input_file=args.input,
                on_progress=progress.rooms,
                on_format_progress=progress.scripts,
            )
        )
    finally:
        progress.done()
    print(format_operations(operations, _elapsed_ms(then)))
    return 0


def cmd_build(args: argparse.Namespace, config: Config) -> int:
    bundle = getattr(args, "bundle", False)
    then = time.perf_counter()
    kind = "bundle" if bundle else "standard"
    _stderr_print(f"building {kind} mapdb from {args.input}...")
    result = asyncio.run(
        tasks.build(
            args.input,
            args.output,
            bundle=bundle,
            source=getattr(args, "source", None),
            max_parallel_writes=config.max_parallel_writes,
        )
    )
    print(format_build_result(result, bundle, _elapsed_ms(then)))
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_world(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dr",
        action="store_true",
        help="run in dragonrealms mode (default: gemstone)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cartograph",
        description="Convert a Lich mapdb between monolithic JSON and a per-room git tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Download the gemstone mapdb to $TMPDIR/cartograph/gemstone
  cartograph download

  # Write a git tree from a local mapdb
  cartograph git -i map.json -o mapdb-git

  # Rebuild a bundle for distribution, recovering lost StringProcs
  cartograph build --bundle -i mapdb-git -o dist -s map.json
        """,
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file", help="Also write log records to this file"
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log record format on stderr (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cartograph version {__version__}",
    )
    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    p = sub.add_parser("init", help="create a starter config file")
    p.set_defaults(handler=cmd_init)

    p = sub.add_parser(
        "download",
        aliases=["dl"],
        help="download a mapdb json file to your local tmp dir",
    )
    _add_world(p)
    p.set_defaults(handler=cmd_download)

    p = sub.add_parser("validate", aliases=["v"], help="validate a mapdb file")
    _add_world(p)
    p.add_argument("-i", "--input", help="input mapdb.json file path")
    p.set_defaults(handler=cmd_validate)

    p = sub.add_parser(
        "validate-files", aliases=["vf"], help="validate specific room files"
    )
    _add_world(p)
    p.add_argument(
        "--json", action="store_true", help="output errors in JSON format"
    )
    p.add_argument("files", nargs="+", help="room.json file paths to validate")
    p.set_defaults(handler=cmd_validate_files)

    p = sub.add_parser(
        "git",
        help="output the mapdb on the file system in a git friendly layout",
    )
    _add_world(p)
    p.add_argument("-i", "--input", help="input mapdb.json file path")
    p.add_argument(
        "-o", "--output", help="output directory for git-compatible files"
    )
    p.add_argument(
        "--no-format",
        action="store_true",
        help="write StringProc files without running the formatter",
    )
    p.set_defaults(handler=cmd_git)

    p = sub.add_parser(
        "build", aliases=["b"], help="build mapdb.json from a git tree"
    )
    _add_world(p)
    mode = p.add_mutually_exclusive_group()
    mode.add_argument(
        "--bundle",
        action="store_true",
        help="build a bundle directory with StringProc files",
    )
    mode.add_argument(
        "--userland",
        dest="bundle",
        action="store_true",
        help="alias of --bundle",
    )
    p.add_argument(
        "-i", "--input", required=True, help="input git tree directory"
    )
    p.add_argument(
        "-o",
        "--output",
        required=True,
        help="output file path (standard) or directory path (bundle)",
    )
    p.add_argument(
        "-s", "--source", help="source mapdb.json for StringProc recovery"
    )
    p.set_defaults(handler=cmd_build)

    p = sub.add_parser(
        "reconstruct",
        aliases=["r"],
        help="rebuild a standard mapdb.json from a git tree",
    )
    _add_world(p)
    p.add_argument(
        "-i", "--input", required=True, help="input git tree directory"
    )
    p.add_argument("-o", "--output", required=True, help="output file path")
    p.set_defaults(handler=cmd_build)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        unified = _load_unified()
    except (OSError, ValueError, ValidationError) as e:
        setup_logging(debug=args.debug, log_file=args.log_file)
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        return 1

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=args.log_format,
        level=unified.logging.level,
    )

    try:
        config = _resolve_config(args, unified)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        return 1

    try:
        return args.handler(args, config)
    except CartographError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        _stderr_print(f"ERROR: {e}")
        return 1


def run() -> None:
    """Entry point that handles interrupts and sets the exit code."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
