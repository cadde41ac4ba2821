"""CLI entry point for gitrove."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from gitrove import __version__
from gitrove.errors import GitroveError
from gitrove.filters import FilterMode
from gitrove.pipeline import DEFAULT_JOBS, Emitter, Pipeline, ScanOptions
from gitrove.render import DEFAULT_FORMAT, OutputTemplate
from gitrove.status import RepoStatus
from gitrove.theme import MUTED, color_system_for, styled_line

logger = logging.getLogger("gitrove")


def _comma_list(value: str) -> list[str]:
    """Split ``ahead,no-remote`` into separate filter tokens."""
    return value.split(",")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _setup_logging(err_console: Console, verbose: bool) -> None:
    handler = RichHandler(console=err_console, show_time=False, show_path=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def _make_emitter(console: Console, *, as_json: bool, color: bool) -> Emitter:
    """Build the line writer; calls are already serialized by the pipeline.

    Lines are written as rendered, so tabs and other separators survive.
    Colour is only added when stdout is a terminal that supports it.
    """
    color_system = color_system_for(console.color_system) if color and console.is_terminal else None

    def emit(status: RepoStatus, line: str) -> None:
        if as_json:
            print(json.dumps(status.to_dict(), ensure_ascii=False), flush=True)
        elif color_system is not None:
            print(styled_line(line, status, color_system), flush=True)
        else:
            print(line, flush=True)

    return emit


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitrove",
        description="Find git repositories and report their sync and working-tree state.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Directory to scan for git repos (default: current directory)",
    )
    parser.add_argument(
        "-f", "--filter",
        action="extend",
        type=_comma_list,
        default=[],
        dest="filters",
        metavar="EXPR",
        help="Attributes to filter for, e.g. ahead, changed, no-remote (repeatable, comma separated)",
    )
    parser.add_argument(
        "--format",
        default=DEFAULT_FORMAT,
        help="Output format; fields: {U} {A} {M} {R} {D} {S} {State} {Path} {Remote} {Branch} {Upstream}",
    )
    parser.add_argument(
        "--or",
        action="store_true",
        dest="use_or",
        help="Switch combining of filters from AND to OR",
    )
    parser.add_argument(
        "-s", "--search",
        default="",
        help="String the output line must contain",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print one JSON object per matching repo",
    )
    parser.add_argument(
        "-x", "--exclude",
        action="append",
        default=[],
        metavar="NAME",
        help="Skip directories with this name (repeatable)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        metavar="N",
        help="Do not descend more than N directories below path",
    )
    parser.add_argument(
        "-j", "--jobs",
        type=_positive_int,
        default=DEFAULT_JOBS,
        help=f"Number of repos probed in parallel (default: {DEFAULT_JOBS})",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort on the first unreadable directory or failing repo",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log each probed repo to stderr",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"gitrove {__version__}",
    )
    return parser


def run(args: argparse.Namespace, console: Console, err_console: Console) -> int:
    """Run one scan and return the process exit code."""
    try:
        template = OutputTemplate(args.format)
    except GitroveError as exc:
        err_console.print(f"[bold red]error:[/bold red] {escape(str(exc))}", highlight=False)
        return 1

    options = ScanOptions(
        filters=args.filters,
        mode=FilterMode.OR if args.use_or else FilterMode.AND,
        search=args.search,
        template=template,
        jobs=args.jobs,
        fail_fast=args.fail_fast,
        exclude=frozenset(args.exclude),
        max_depth=args.max_depth,
    )
    emit = _make_emitter(console, as_json=args.json_output, color=not args.no_color)
    pipeline = Pipeline(args.path, options, emit)

    try:
        report = pipeline.run()
    except GitroveError as exc:
        err_console.print(f"[bold red]error:[/bold red] {escape(str(exc))}", highlight=False)
        return 1

    logger.debug("%d repos found, %d shown, %d errors", report.found, report.emitted, len(report.errors))
    if not report.ok:
        err_console.print(
            f"[{MUTED}]{len(report.errors)} error(s) during scan; see warnings above[/{MUTED}]",
            highlight=False,
        )
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the gitrove CLI."""
    args = build_parser().parse_args(argv)

    console = Console(no_color=args.no_color)
    err_console = Console(stderr=True, no_color=args.no_color)
    _setup_logging(err_console, args.verbose)

    code = run(args, console, err_console)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
