"""CLI entry point for taskflow.

Commands:
    taskflow init       scaffold taskflow.config.json in current directory
    taskflow migrate    create or upgrade the database schema
    taskflow serve      start the REST + websocket API server
    taskflow mcp        start the MCP server (stdio transport)
    taskflow task ...   create, list, move and delete tasks
    taskflow dep ...    add, remove and inspect dependencies
    taskflow blocked    report which tasks are blocked before a bulk start
"""

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click

from taskflow.config import (
    CONFIG_FILENAME,
    DEFAULT_DB_PATH,
    DEFAULTS,
    ConfigError,
    load_config,
    resolve_db_path,
)
from taskflow.engine import DependencyEngine
from taskflow.models import STATUSES

DEFAULT_CONFIG: dict[str, Any] = {"db_path": DEFAULT_DB_PATH, **DEFAULTS}

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def _load_settings(config_path: str | None, required: bool) -> dict[str, Any]:
    """Load the config file, falling back to defaults when there is none."""
    path = Path(config_path) if config_path else Path.cwd() / CONFIG_FILENAME
    try:
        return load_config(path)
    except ConfigError as e:
        if required and path.exists():
            raise click.ClickException(f"Config error: {e}") from e
        return dict(DEFAULT_CONFIG)


@contextmanager
def _open_engine(ctx: click.Context) -> Iterator[DependencyEngine]:
    from db.store import SqliteStore

    store = SqliteStore.open(ctx.obj["db_path"])
    try:
        yield DependencyEngine(
            store, max_dependencies=ctx.obj["settings"]["max_dependencies_per_task"]
        )
    finally:
        store.close()


def _emit(result: dict[str, Any]) -> None:
    """Print a tool result as JSON; exit non-zero if it is an error."""
    click.echo(json.dumps(result, indent=2))
    if "error" in result:
        sys.exit(1)


@click.group()
@click.option(
    "--db",
    "db_path",
    default=None,
    help="Database path (overrides $TASKFLOW_DB and the config file)",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    help=f"Config file (default: ./{CONFIG_FILENAME})",
)
@click.pass_context
def main(ctx: click.Context, db_path: str | None, config_path: str | None) -> None:
    """taskflow: tasks with a validated, cycle-free dependency graph."""
    ctx.ensure_object(dict)
    settings = _load_settings(config_path, required=ctx.invoked_subcommand != "init")

    logging.basicConfig(level=settings["log_level"], format=LOG_FORMAT)

    ctx.obj["settings"] = settings
    ctx.obj["db_path"] = resolve_db_path(db_path, config_path)


@main.command()
def init() -> None:
    """Create a starter taskflow.config.json."""
    config_path = Path.cwd() / CONFIG_FILENAME

    if config_path.exists():
        click.echo(f"Config already exists: {config_path}")
        return

    config_path.write_text(json.dumps(DEFAULT_CONFIG, indent=2) + "\n")
    click.echo(f"Created {config_path}")
    click.echo("Done. Run `taskflow migrate` to create the database.")


@main.command()
@click.pass_context
def migrate(ctx: click.Context) -> None:
    """Create or upgrade the database schema."""
    from db.migrations import find_stored_cycle, init_db

    db_path = ctx.obj["db_path"]
    conn = init_db(db_path)
    try:
        cycle = find_stored_cycle(conn)
    finally:
        conn.close()
    click.echo(f"Database ready: {db_path}")
    if cycle:
        click.echo(f"Warning: stored dependencies form a cycle: {' -> '.join(cycle)}")


@main.command()
@click.option("--host", default=None, help="Bind address (default from config)")
@click.option("--port", default=None, type=int, help="Port (default from config)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the taskflow API server."""
    import uvicorn

    from api.app import create_app

    settings = ctx.obj["settings"]
    app = create_app(
        ctx.obj["db_path"],
        max_dependencies=settings["max_dependencies_per_task"],
    )
    uvicorn.run(
        app,
        host=host or settings["host"],
        port=port or settings["port"],
        log_level=settings["log_level"].lower(),
    )


@main.command()
@click.pass_context
def mcp(ctx: click.Context) -> None:
    """Start the taskflow MCP server (stdio transport)."""
    from taskflow.mcp.server import run_server

    run_server(
        db_path=ctx.obj["db_path"],
        max_dependencies=ctx.obj["settings"]["max_dependencies_per_task"],
    )


# ── Tasks ─────────────────────────────────────────────────


@main.group()
def task() -> None:
    """Create, list, move and delete tasks."""


@task.command("add")
@click.argument("name")
@click.option(
    "--status", type=click.Choice(STATUSES), default="pending", show_default=True
)
@click.pass_context
def task_add(ctx: click.Context, name: str, status: str) -> None:
    from taskflow.mcp.tools import create_task

    with _open_engine(ctx) as engine:
        _emit(create_task(engine, name, status))


@task.command("list")
@click.pass_context
def task_list(ctx: click.Context) -> None:
    from taskflow.mcp.tools import list_tasks

    with _open_engine(ctx) as engine:
        _emit(list_tasks(engine))


@task.command("show")
@click.argument("task_id")
@click.pass_context
def task_show(ctx: click.Context, task_id: str) -> None:
    from taskflow.mcp.tools import get_task

    with _open_engine(ctx) as engine:
        _emit(get_task(engine, task_id))


@task.command("status")
@click.argument("task_id")
@click.argument("status", type=click.Choice(STATUSES))
@click.pass_context
def task_status(ctx: click.Context, task_id: str, status: str) -> None:
    """Move a task to STATUS."""
    from taskflow.mcp.tools import update_task_status

    with _open_engine(ctx) as engine:
        _emit(update_task_status(engine, task_id, status))


@task.command("delete")
@click.argument("task_id")
@click.pass_context
def task_delete(ctx: click.Context, task_id: str) -> None:
    """Delete a task and all of its dependencies."""
    from taskflow.mcp.tools import delete_task

    with _open_engine(ctx) as engine:
        _emit(delete_task(engine, task_id))


@task.command("bulk-status")
@click.argument("status", type=click.Choice(STATUSES))
@click.argument("task_ids", nargs=-1, required=True)
@click.option(
    "--skip-blocked",
    is_flag=True,
    help="Leave tasks with incomplete blockers untouched when starting them",
)
@click.pass_context
def task_bulk_status(
    ctx: click.Context, status: str, task_ids: tuple[str, ...], skip_blocked: bool
) -> None:
    """Move every TASK_ID to STATUS in one transaction."""
    from taskflow.mcp.tools import bulk_update_status

    with _open_engine(ctx) as engine:
        _emit(bulk_update_status(engine, list(task_ids), status, skip_blocked))


# ── Dependencies ──────────────────────────────────────────


@main.group()
def dep() -> None:
    """Add, remove and inspect dependencies."""


@dep.command("add")
@click.argument("dependent_task_id")
@click.argument("blocking_task_id")
@click.option("--created-by", default=None, help="Who is adding the dependency")
@click.pass_context
def dep_add(
    ctx: click.Context,
    dependent_task_id: str,
    blocking_task_id: str,
    created_by: str | None,
) -> None:
    """DEPENDENT_TASK_ID cannot start until BLOCKING_TASK_ID is completed."""
    from taskflow.mcp.tools import create_dependency

    with _open_engine(ctx) as engine:
        _emit(create_dependency(engine, dependent_task_id, blocking_task_id, created_by))


@dep.command("remove")
@click.argument("dependency_id")
@click.pass_context
def dep_remove(ctx: click.Context, dependency_id: str) -> None:
    from taskflow.mcp.tools import delete_dependency

    with _open_engine(ctx) as engine:
        _emit(delete_dependency(engine, dependency_id))


@dep.command("show")
@click.argument("task_id")
@click.pass_context
def dep_show(ctx: click.Context, task_id: str) -> None:
    """Show whether TASK_ID is blocked, by whom, and what it blocks."""
    from taskflow.mcp.tools import get_dependency_info

    with _open_engine(ctx) as engine:
        _emit(get_dependency_info(engine, task_id))


@dep.command("chain")
@click.argument("task_id")
@click.option(
    "--downstream",
    is_flag=True,
    help="Walk to the tasks that depend on TASK_ID instead of its blockers",
)
@click.pass_context
def dep_chain(ctx: click.Context, task_id: str, downstream: bool) -> None:
    """Print the transitive dependency chain of TASK_ID."""
    from taskflow.mcp.tools import get_downstream_chain, get_upstream_chain

    walk = get_downstream_chain if downstream else get_upstream_chain
    with _open_engine(ctx) as engine:
        _emit(walk(engine, task_id))


@dep.command("check")
@click.argument("dependent_task_id")
@click.argument("blocking_task_id")
@click.pass_context
def dep_check(ctx: click.Context, dependent_task_id: str, blocking_task_id: str) -> None:
    """Check a dependency without creating it."""
    from taskflow.mcp.tools import can_add_dependency

    with _open_engine(ctx) as engine:
        result = can_add_dependency(engine, dependent_task_id, blocking_task_id)
        if result.get("path"):
            result["formatted_path"] = engine.format_cycle_path(result["path"])
    click.echo(json.dumps(result, indent=2))
    if not result["valid"]:
        sys.exit(1)


@dep.command("available")
@click.argument("task_id")
@click.pass_context
def dep_available(ctx: click.Context, task_id: str) -> None:
    """List tasks that can be added as blockers of TASK_ID."""
    from taskflow.mcp.tools import get_available_blockers

    with _open_engine(ctx) as engine:
        _emit(get_available_blockers(engine, task_id))


@main.command()
@click.argument("task_ids", nargs=-1, required=True)
@click.pass_context
def blocked(ctx: click.Context, task_ids: tuple[str, ...]) -> None:
    """Report which TASK_IDS are blocked by incomplete dependencies."""
    from taskflow.mcp.tools import get_blocked_tasks_info

    with _open_engine(ctx) as engine:
        _emit(get_blocked_tasks_info(engine, list(task_ids)))
