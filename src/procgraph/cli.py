"""
Command line interface for procgraph.

    procgraph math processes.json "2.5 * ($B08 - $B04)" --id evi
    procgraph check processes.json load_collection ndvi@vito

Exit status is 0 on success and 1 on errors while building.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from . import __version__
from .builder import GraphBuilder, load_processes, split_process_id
from .exceptions import BuilderError
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def _cmd_math(args: argparse.Namespace) -> int:
    """Compile a formula and print the process as JSON."""
    builder = GraphBuilder(load_processes(args.catalog), id=args.id)
    node = builder.math(args.formula)
    if not args.no_result:
        node.result = True
    print(json.dumps(builder.to_json(), indent=args.indent, ensure_ascii=False))
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    """Report whether the given processes are in the catalog."""
    builder = GraphBuilder(load_processes(args.catalog))

    table = Table(title="Process support")
    table.add_column("Process")
    table.add_column("Namespace")
    table.add_column("Status")

    missing = 0
    for process_id in args.processes:
        name, namespace = split_process_id(process_id)
        supported = builder.supports(name, namespace)
        if not supported:
            missing += 1
        table.add_row(
            name,
            namespace or "-",
            "[green]supported[/green]" if supported else "[red]missing[/red]",
        )

    Console().print(table)
    return 0 if missing == 0 else 1


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="procgraph", description="Build process graphs from process catalogs")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    math = subparsers.add_parser("math", help="Compile a formula into a process graph")
    math.add_argument("catalog", help="JSON file with process specifications")
    math.add_argument("formula", help="Formula, e.g. \"sqrt(x) * 2\"")
    math.add_argument("--id", help="Identifier of the process")
    math.add_argument("--indent", type=int, default=2, help="JSON indentation (default: 2)")
    math.add_argument("--no-result", action="store_true", help="Don't flag the final node as result")
    math.set_defaults(func=_cmd_math)

    check = subparsers.add_parser("check", help="Check whether processes are supported")
    check.add_argument("catalog", help="JSON file with process specifications")
    check.add_argument("processes", nargs="+", metavar="ID[@NAMESPACE]", help="Process ids to check")
    check.set_defaults(func=_cmd_check)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the procgraph command."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else None)

    try:
        return args.func(args)
    except BuilderError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        Console(stderr=True).print(f"Error: {e}", style="bold red", markup=False, highlight=False, soft_wrap=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
