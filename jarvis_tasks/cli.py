#!/usr/bin/env python3
"""Jarvis Tasks CLI - manage task dependencies from the terminal."""
from __future__ import annotations
import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

from .core import init_logging, load_config, open_store
from .models import TaskStatus
from .tasks import (
    DependencyConflictError,
    DependencyError,
    DependencyService,
    StatusBlockedError,
    TaskNotFoundError,
)

console = Console()

STATUS_CHOICES = [s.value for s in TaskStatus]


def _emit(data: dict[str, Any]) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, default=str))


def _fail(ctx: click.Context, message: str, **extra: Any) -> None:
    if ctx.obj["json"]:
        _emit({"error": message, **extra})
    else:
        console.print(f"[red]✗ {message}[/red]")
        cycle = extra.get("cycle")
        if cycle:
            console.print(f"  cycle: {' → '.join(cycle)}")
    ctx.exit(1)


def _service(ctx: click.Context) -> DependencyService:
    return ctx.obj["service"]


def _render_view(view: dict[str, Any]) -> None:
    table = Table(title=f"Task {view['taskId']}", box=box.ROUNDED)
    table.add_column("Depends on", style="cyan")
    table.add_column("Blocked by", style="magenta")
    depends_on, blocked_by = view["dependsOn"], view["blockedBy"]
    for i in range(max(len(depends_on), len(blocked_by), 1)):
        table.add_row(
            depends_on[i] if i < len(depends_on) else "",
            blocked_by[i] if i < len(blocked_by) else "",
        )
    console.print(table)
    if view.get("message"):
        console.print(f"[green]✓ {view['message']}[/green]")


@click.group()
@click.option("--repo", "-r", default=".", help="Project path holding .jarvisrc (default: current dir)")
@click.option("--db", "db_path", type=click.Path(), default=None, help="SQLite database path (overrides .jarvisrc)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), default=None, help="Log level")
@click.version_option(version="1.0.0", prog_name="jarvis-tasks")
@click.pass_context
def cli(ctx, repo: str, db_path: Optional[str], output_json: bool, log_level: Optional[str]):
    """Jarvis Tasks - dependency graph for your task board.

    \b
    Quick start:
      jarvis-tasks task add api --title "Design API"
      jarvis-tasks task add ui --title "Build UI"
      jarvis-tasks deps add ui api     # ui depends on api
      jarvis-tasks deps show ui
    """
    repo_path = Path(repo).resolve()
    config = load_config(repo_path)
    overrides: dict[str, Any] = {}
    if db_path:
        overrides["database_path"] = str(Path(db_path).resolve())
    if log_level:
        overrides["log_level"] = log_level
    if overrides:
        config = config.model_copy(update=overrides)

    init_logging(config, repo_path)
    store = open_store(config, repo_path)
    ctx.call_on_close(store.close)

    ctx.ensure_object(dict)
    ctx.obj["json"] = output_json
    ctx.obj["service"] = DependencyService(store)


@cli.group()
def task():
    """Create, delete and move tasks."""


@task.command("add")
@click.argument("task_id")
@click.option("--title", "-t", default="", help="Task title")
@click.option("--status", "-s", type=click.Choice(STATUS_CHOICES), default="todo", help="Initial status")
@click.pass_context
def task_add(ctx, task_id: str, title: str, status: str):
    """Create or update a task."""
    record = _service(ctx).create_task(task_id, title=title, status=TaskStatus(status))
    if ctx.obj["json"]:
        _emit(record.model_dump(mode="json"))
    else:
        console.print(f"[green]✓ Task {record.id} saved ({record.status.value})[/green]")


@task.command("rm")
@click.argument("task_id")
@click.pass_context
def task_rm(ctx, task_id: str):
    """Delete a task and every dependency touching it."""
    if not _service(ctx).delete_task(task_id):
        _fail(ctx, "Task not found", taskId=task_id)
    if ctx.obj["json"]:
        _emit({"taskId": task_id, "deleted": True})
    else:
        console.print(f"[green]✓ Task {task_id} deleted[/green]")


@task.command("status")
@click.argument("task_id")
@click.argument("new_status", type=click.Choice(STATUS_CHOICES))
@click.pass_context
def task_status(ctx, task_id: str, new_status: str):
    """Move a task to a new status, honouring its dependencies."""
    try:
        record = _service(ctx).change_status(task_id, TaskStatus(new_status))
    except TaskNotFoundError:
        _fail(ctx, "Task not found", taskId=task_id)
    except StatusBlockedError as e:
        _fail(ctx, e.reason, blockingTasks=[t.id for t in e.blocking_tasks])
    else:
        if ctx.obj["json"]:
            _emit(record.model_dump(mode="json"))
        else:
            console.print(f"[green]✓ {record.id} → {record.status.value}[/green]")


@cli.group()
def deps():
    """Inspect and edit task dependencies."""


@deps.command("show")
@click.argument("task_id")
@click.pass_context
def deps_show(ctx, task_id: str):
    """Show what a task depends on and what it blocks."""
    try:
        view = _service(ctx).get(task_id)
    except TaskNotFoundError:
        _fail(ctx, "Task not found", taskId=task_id)
    else:
        if ctx.obj["json"]:
            _emit(view)
        else:
            _render_view(view)


@deps.command("add")
@click.argument("task_id")
@click.argument("depends_on_id")
@click.pass_context
def deps_add(ctx, task_id: str, depends_on_id: str):
    """Make TASK_ID depend on DEPENDS_ON_ID."""
    try:
        view = _service(ctx).add(task_id, depends_on_id)
    except TaskNotFoundError:
        _fail(ctx, "Task not found")
    except DependencyConflictError as e:
        _fail(ctx, e.error, **({"cycle": e.cycle} if e.cycle else {}))
    else:
        if ctx.obj["json"]:
            _emit(view)
        else:
            _render_view(view)


@deps.command("rm")
@click.argument("task_id")
@click.argument("depends_on_id")
@click.pass_context
def deps_rm(ctx, task_id: str, depends_on_id: str):
    """Remove the TASK_ID → DEPENDS_ON_ID dependency."""
    view = _service(ctx).remove(task_id, depends_on_id)
    if ctx.obj["json"]:
        _emit(view)
    else:
        _render_view(view)


@deps.command("depth")
@click.argument("task_id")
@click.pass_context
def deps_depth(ctx, task_id: str):
    """Length of the longest dependency chain below a task."""
    depth = _service(ctx).graph.task_depth(task_id)
    if ctx.obj["json"]:
        _emit({"taskId": task_id, "depth": depth})
    else:
        console.print(f"{task_id}: depth {depth}")


@deps.command("waves")
@click.pass_context
def deps_waves(ctx):
    """Print tasks grouped into dependency waves."""
    try:
        waves = _service(ctx).graph.compute_waves()
    except DependencyError as e:
        _fail(ctx, str(e))
        return
    if ctx.obj["json"]:
        _emit({"waves": waves})
        return
    table = Table(title="Dependency waves", box=box.ROUNDED)
    table.add_column("Wave", justify="right")
    table.add_column("Tasks", style="cyan")
    for i, wave in enumerate(waves):
        table.add_row(str(i), ", ".join(wave))
    console.print(table)


@deps.command("check")
@click.pass_context
def deps_check(ctx):
    """Audit the whole graph for cycles."""
    cycle = _service(ctx).graph.find_cycle()
    if cycle:
        _fail(ctx, "Circular dependency detected", cycle=cycle)
    if ctx.obj["json"]:
        _emit({"acyclic": True})
    else:
        console.print(Panel("[green]No circular dependencies[/green]", box=box.ROUNDED))


def main():
    """Entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
