"""Command-line entry point for the size watcher."""
from __future__ import annotations

import argparse
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .config import ConfigError, WatchConfig, build_config, load_config, parse_bool
from .monitor import WatchSession
from .reporting import format_initial_sizes


def _bool_arg(value: str) -> bool:
    try:
        return parse_bool(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sizewatch",
        description="Watches a folder for file changes and reports the largest size seen per file.",
    )
    parser.add_argument("--folder", "-fo", help="The folder to watch")
    parser.add_argument("--filter", "-fi", help="File name pattern to watch (default: *.*)")
    _add_flag(parser, "--watch-changed", "--watchChanged", "-ch", help="Watch for content changes (default: true)")
    _add_flag(parser, "--watch-created", "--watchCreated", "-cr", help="Watch for creates (default: false)")
    _add_flag(parser, "--watch-deleted", "--watchDeleted", "-de", help="Watch for deletes (default: false)")
    _add_flag(parser, "--watch-renamed", "--watchRenamed", "-re", help="Watch for renames (default: false)")
    _add_flag(
        parser,
        "--include-subdirectories",
        "--includeSubdirectories",
        "-is",
        help="Watch subdirectories too (default: false)",
    )
    parser.add_argument(
        "--config",
        help="Optional YAML file providing the same options; command-line values take precedence",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser


def _add_flag(parser: argparse.ArgumentParser, *names: str, help: str) -> None:
    parser.add_argument(*names, nargs="?", const=True, default=None, type=_bool_arg, metavar="BOOL", help=help)


def resolve_config(args: argparse.Namespace) -> WatchConfig:
    file_values: Dict[str, Any] = {}
    if args.config:
        file_values = load_config(Path(args.config))
    overrides = {
        "folder": args.folder,
        "filter": args.filter,
        "watch_changed": args.watch_changed,
        "watch_created": args.watch_created,
        "watch_deleted": args.watch_deleted,
        "watch_renamed": args.watch_renamed,
        "include_subdirectories": args.include_subdirectories,
    }
    return build_config(file_values, overrides)


def run(config: WatchConfig) -> None:
    print(f"Folder: {config.folder}")
    print(f"Filter: {config.filter}")
    print(f"Include Subdirectories: {config.include_subdirectories}")
    print()

    with WatchSession(config) as session:
        for line in format_initial_sizes(session.scan()):
            print(line)

        session.start()
        printer = threading.Thread(target=_print_lines, args=(session,), name="sizewatch-printer", daemon=True)
        printer.start()

        try:
            input("Press enter to exit.\n")
        except (EOFError, KeyboardInterrupt):
            logging.info("Watch interrupted by user")

        session.stop()
        printer.join()

        _sizes, report_lines = session.report()
    for line in report_lines:
        print(line)


def _print_lines(session: WatchSession) -> None:
    for line in session.lines():
        print(line, flush=True)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    try:
        config = resolve_config(args)
    except ConfigError as exc:
        logging.error("%s", exc)
        raise SystemExit(2) from exc

    run(config)


if __name__ == "__main__":
    main()
