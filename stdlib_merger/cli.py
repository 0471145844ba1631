"""CLI entrypoints for stdlib-merger commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Tuple

from .config import ConfigError, MergerConfig, load_config
from .errors import MergerError
from .logging import configure_logging, get_logger
from .orchestrator import Orchestrator

_PENDING_COMMANDS = {
    "extract": "Use `stdlib-merger merge` to extract every pattern at once.",
    "strip": "Use `stdlib-merger merge`; stripped libraries are written under stripped_libraries/.",
    "report": "Use `stdlib-merger merge`; reports are written next to the unified modules.",
}


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_library_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-l",
        "--library",
        dest="libraries",
        action="append",
        required=True,
        metavar="ECOSYSTEM:PATH",
        help="Library root to analyze, e.g. elixir:./lib (repeat for each library).",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to a YAML configuration file (defaults are used when omitted).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stdlib-merger",
        description="Merge the common functions of several standard libraries into one.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    merge_parser = subparsers.add_parser(
        "merge",
        help="Extract common patterns into a unified library and strip the originals.",
    )
    _add_verbose_option(merge_parser, suppress_default=True)
    _add_library_options(merge_parser)
    merge_parser.add_argument(
        "-o",
        "--output",
        default="aggregate-library-auto",
        help="Output directory for the unified library (default: aggregate-library-auto).",
    )

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Report matching patterns without writing anything (dry run).",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_library_options(analyze_parser)
    analyze_parser.add_argument(
        "--top",
        type=int,
        default=10,
        help="Number of patterns to list (default: 10).",
    )

    rank_parser = subparsers.add_parser(
        "rank",
        help="Show the quality ranking for one pattern.",
    )
    _add_verbose_option(rank_parser, suppress_default=True)
    _add_library_options(rank_parser)
    rank_parser.add_argument(
        "-p",
        "--pattern",
        required=True,
        help="Pattern name (or id) to rank, e.g. string_split.",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service (FastAPI + uvicorn).",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    for name, help_text in (
        ("extract", "Extract specific patterns without a full merge."),
        ("strip", "Strip extracted patterns from one library."),
        ("report", "Regenerate reports from a previous merge."),
    ):
        pending = subparsers.add_parser(name, help=help_text)
        _add_verbose_option(pending, suppress_default=True)
        pending.add_argument("args", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)

    return parser


def parse_library_argument(value: str) -> Tuple[str, str]:
    """Split ``ecosystem:path``; the path itself may contain colons."""
    ecosystem, sep, path = value.partition(":")
    if not sep or not ecosystem.strip() or not path.strip():
        raise ValueError(f"Expected ECOSYSTEM:PATH, got '{value}'")
    return ecosystem.strip().lower(), path.strip()


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for stdlib-merger commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    configure_logging(verbose=bool(args.verbose), log_file=log_file)
    logger = get_logger("cli")

    if args.command in _PENDING_COMMANDS:
        parser.exit(
            1,
            f"`stdlib-merger {args.command}` is not implemented yet. "
            f"{_PENDING_COMMANDS[args.command]}\n",
        )

    if args.command == "serve":
        from .service.app import run_service

        run_service(args.host, args.port)
        return

    orchestrator = Orchestrator()
    try:
        libraries = [parse_library_argument(value) for value in args.libraries]
        config = _load_config(args.config)
        if args.command == "merge":
            _run_merge(orchestrator, libraries, Path(args.output), config)
        elif args.command == "analyze":
            _run_analyze(orchestrator, libraries, config, top=args.top)
        elif args.command == "rank":
            if not _run_rank(orchestrator, libraries, args.pattern, config):
                parser.exit(1, f"Pattern '{args.pattern}' not found\n")
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except (ConfigError, MergerError, ValueError) as exc:
        if args.verbose:
            logger.exception("stdlib-merger %s failed", args.command)
        parser.exit(
            1,
            f"stdlib-merger {args.command} failed during {orchestrator.stage}: {exc}\n"
            "Run with --verbose for more details.\n",
        )
    except OSError as exc:
        if args.verbose:
            logger.exception("stdlib-merger %s failed", args.command)
        parser.exit(
            1, f"stdlib-merger {args.command} failed during {orchestrator.stage}: {exc}\n"
        )


def _load_config(path: str | None) -> MergerConfig:
    if path is None:
        return MergerConfig()
    config_path = Path(path)
    if not config_path.expanduser().exists():
        get_logger("cli").warning("Configuration file %s not found; using defaults", path)
    return load_config(config_path)


def _run_merge(
    orchestrator: Orchestrator,
    libraries: List[Tuple[str, str]],
    output: Path,
    config: MergerConfig,
) -> None:
    result = orchestrator.run_merge(libraries, output, config)
    stats = result.statistics
    print(f"Merged {stats['libraries_parsed']} libraries into {_relativize(output)}")
    print(f"  Patterns: {stats['total_patterns']} ({stats['universal_patterns']} universal)")
    print(
        f"  Modules: {stats['modules_generated']} "
        f"({stats['placeholder_modules']} placeholders, {stats['total_lines']} lines)"
    )
    print(f"  Functions removed: {stats['functions_removed']}")
    for ecosystem, count in stats["best_by_ecosystem"].items():
        print(f"  Best in {ecosystem}: {count}")
    for name, path in result.reports.items():
        print(f"  {name}: {_relativize(Path(path))}")
    _print_warnings(result.warnings)


def _run_analyze(
    orchestrator: Orchestrator,
    libraries: List[Tuple[str, str]],
    config: MergerConfig,
    *,
    top: int,
) -> None:
    analysis = orchestrator.run_analyze(libraries, config)
    print(f"Libraries parsed: {len(analysis.libraries)}")
    for library in analysis.libraries:
        print(f"  {library.ecosystem}: {len(library.functions)} functions")
    print(
        f"Patterns found: {len(analysis.patterns)} "
        f"({len(analysis.universal_patterns)} universal)"
    )
    ordered = sorted(analysis.patterns, key=lambda pattern: -pattern.similarity_score)
    for pattern in ordered[: max(top, 0)]:
        ecosystems = ", ".join(pattern.implementations)
        print(f"  {pattern.name} [{pattern.category}] {pattern.similarity_score:.2f} ({ecosystems})")
    _print_warnings(analysis.warnings)


def _run_rank(
    orchestrator: Orchestrator,
    libraries: List[Tuple[str, str]],
    pattern_name: str,
    config: MergerConfig,
) -> bool:
    ranking = orchestrator.run_rank(libraries, pattern_name, config)
    if ranking is None:
        return False
    print(f"Pattern: {ranking.pattern.name} ({ranking.pattern.category})")
    print(f"Best: {ranking.best_ecosystem}")
    for ecosystem in ranking.ordered_ecosystems():
        marker = "*" if ecosystem == ranking.best_ecosystem else " "
        print(f" {marker} {ecosystem}: {ranking.scores[ecosystem]:.2f}")
    print(f"Justification: {ranking.justification}")
    return True


def _print_warnings(warnings: List[str]) -> None:
    if not warnings:
        return
    print(f"Warnings ({len(warnings)}):")
    for warning in warnings:
        print(f"  - {warning}")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
