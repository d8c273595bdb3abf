"""Command-line client for a task graph stored in tasks.toml."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from taskgraph.config import Settings
from taskgraph.filesystem.toml_manager import parse_tasks_config, write_tasks_config
from taskgraph.schemas.task import TaskCreate
from taskgraph.services.datetime_service import parse_datetime
from taskgraph.services.task_graph_service import TaskGraphService

if TYPE_CHECKING:
    from pydantic import BaseModel

logger = logging.getLogger(__name__)

_MUTATING_COMMANDS = frozenset({"add-task", "remove-task", "add-dep", "remove-dep"})


def configure_logging(debug: bool) -> None:
    """Configure logging on stderr so JSON on stdout stays parseable."""
    level = logging.DEBUG if debug else logging.WARNING
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stderr,
        force=True,
    )


def _print_json(model: BaseModel) -> None:
    print(model.model_dump_json(indent=2))


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per graph operation."""
    parser = argparse.ArgumentParser(
        prog="taskgraph",
        description="Manage task dependencies and compute the critical path",
    )
    parser.add_argument("--file", "-f", help="Tasks file (default: TASKS_FILE or ./tasks.toml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("schedule", help="Print every task with its CPM schedule")
    subparsers.add_parser("graph", help="Print nodes, edges and critical path")

    deps = subparsers.add_parser("deps", help="Print direct dependencies and dependents")
    deps.add_argument("task_id", type=int)

    add_task = subparsers.add_parser("add-task", help="Create a task")
    add_task.add_argument("title")
    add_task.add_argument("--duration", type=int, help="Duration in time units")
    add_task.add_argument("--due", help="Due date, e.g. 2026-11-01")

    remove_task = subparsers.add_parser("remove-task", help="Delete a task and its edges")
    remove_task.add_argument("task_id", type=int)

    for name, help_text in (
        ("add-dep", "Make DEPENDENT depend on DEPENDENCY"),
        ("remove-dep", "Remove the dependency of DEPENDENT on DEPENDENCY"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("dependent", type=int)
        sub.add_argument("dependency", type=int)

    return parser


async def _run(args: argparse.Namespace, service: TaskGraphService, settings: Settings) -> None:
    command = args.command
    if command == "schedule":
        _print_json(service.schedule)
    elif command == "graph":
        _print_json(service.export_graph())
    elif command == "deps":
        _print_json(service.get_task_dependencies(args.task_id))
    elif command == "add-task":
        body = TaskCreate(
            title=args.title,
            duration=args.duration,
            due_date=parse_datetime(args.due, settings.timezone) if args.due else None,
        )
        _print_json(await service.add_task(body))
    elif command == "remove-task":
        _print_json(await service.remove_task(args.task_id))
    elif command == "add-dep":
        _print_json(await service.propose_edge(args.dependent, args.dependency))
    elif command == "remove-dep":
        _print_json(await service.remove_edge(args.dependent, args.dependency))


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    configure_logging(args.debug or settings.debug)
    tasks_path = Path(args.file) if args.file else settings.tasks_file

    try:
        snapshot = parse_tasks_config(tasks_path, settings.timezone)
        service = TaskGraphService(snapshot, settings=settings)
        asyncio.run(_run(args, service, settings))
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    if args.command in _MUTATING_COMMANDS:
        write_tasks_config(tasks_path, service.snapshot)
        logger.info("Saved %d task(s) to %s", len(service.snapshot.tasks), tasks_path)


if __name__ == "__main__":
    main()
