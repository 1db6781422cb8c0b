"""Task command implementation."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from cartpilot.cli.runtime import UnresolvedIdError, open_runtime, resolve_id
from cartpilot.core.engine.orchestrator import TaskOrchestrator
from cartpilot.core.events.bus import AsyncEventBus, Event
from cartpilot.core.events.sink import EventBusSink
from cartpilot.core.events.types import EventType
from cartpilot.core.models.task import Task, TaskStatus
from cartpilot.core.registry.manager import PluginManager
from cartpilot.plugins.browsers import PlaywrightEngine

if TYPE_CHECKING:
    from pathlib import Path

    from cartpilot.cli.runtime import Runtime

console = Console()

STATUS_STYLES = {
    TaskStatus.IDLE: "dim",
    TaskStatus.MONITORING: "cyan",
    TaskStatus.CARTING: "yellow",
    TaskStatus.CHECKOUT: "magenta",
    TaskStatus.SUCCESS: "green",
    TaskStatus.FAILED: "red",
}


def _styled(status: TaskStatus | str | None) -> str:
    if status is None:
        return "-"
    status = TaskStatus(status)
    style = STATUS_STYLES[status]
    return f"[{style}]{status.value}[/{style}]"


async def _resolve_task_id(runtime: Runtime, prefix: str) -> str:
    tasks = await runtime.database.list_tasks()
    return resolve_id((task.id for task in tasks), prefix, "task")


async def add_task(
    config_path: Path | None,
    retailer: str,
    product_url: str | None,
    product_id: str | None,
    name: str,
    size: str | None,
    color: str | None,
    profile_id: str | None,
    proxy_id: str | None,
    monitor_delay_ms: int,
    retry_delay_ms: int,
) -> None:
    if not product_url and not product_id:
        console.print("[red]Either --url or --product-id is required[/red]")
        return

    async with open_runtime(config_path) as runtime:
        try:
            if profile_id:
                profiles = await runtime.database.list_profiles()
                profile_id = resolve_id((p.id for p in profiles), profile_id, "profile")
            if proxy_id:
                proxies = await runtime.proxy_pool.list_proxies()
                proxy_id = resolve_id((p.id for p in proxies), proxy_id, "proxy")
        except UnresolvedIdError as e:
            console.print(f"[red]{e}[/red]")
            return

        task = await runtime.database.create_task(
            Task(
                retailer=retailer,
                name=name,
                product_url=product_url,
                product_id=product_id,
                size=size,
                color=color,
                profile_id=profile_id,
                proxy_id=proxy_id,
                monitor_delay_ms=monitor_delay_ms,
                retry_delay_ms=retry_delay_ms,
            )
        )
    console.print(f"[green]Created task[/green] {task.id}")


async def list_tasks(config_path: Path | None, status: str | None) -> None:
    async with open_runtime(config_path) as runtime:
        tasks = await runtime.database.list_tasks(TaskStatus(status) if status else None)

    if not tasks:
        console.print("[yellow]No tasks[/yellow]")
        return

    table = Table(title="Tasks")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Retailer", style="cyan")
    table.add_column("Product", style="blue")
    table.add_column("Size / Color")
    table.add_column("Status")
    table.add_column("Updated", style="dim")

    for task in tasks:
        table.add_row(
            task.id[:8],
            task.name or "-",
            task.retailer,
            task.product_reference or "-",
            " / ".join(v for v in (task.size, task.color) if v) or "-",
            _styled(task.status),
            task.updated_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


async def remove_task(config_path: Path | None, task_id: str) -> None:
    async with open_runtime(config_path) as runtime:
        try:
            full_id = await _resolve_task_id(runtime, task_id)
        except UnresolvedIdError as e:
            console.print(f"[red]{e}[/red]")
            return
        await runtime.database.delete_task(full_id)
    console.print(f"[green]Removed task {full_id}[/green]")


async def list_results(config_path: Path | None, task_id: str | None, limit: int) -> None:
    async with open_runtime(config_path) as runtime:
        if task_id:
            try:
                task_id = await _resolve_task_id(runtime, task_id)
            except UnresolvedIdError as e:
                console.print(f"[red]{e}[/red]")
                return
        results = await runtime.database.list_results(task_id, limit=limit)

    if not results:
        console.print("[yellow]No results[/yellow]")
        return

    table = Table(title="Checkout results")
    table.add_column("Completed", style="dim")
    table.add_column("Task", style="dim")
    table.add_column("Outcome")
    table.add_column("Order", style="cyan")
    table.add_column("Price", style="yellow")
    table.add_column("Error", style="red")

    for result in results:
        table.add_row(
            result.completed_at.strftime("%Y-%m-%d %H:%M:%S"),
            result.task_id[:8],
            "[green]success[/green]" if result.success else "[red]failed[/red]",
            result.order_reference or "-",
            f"{result.price:.2f}" if result.price is not None else "-",
            result.error_message or "",
        )
    console.print(table)


async def _print_event(event: Event) -> None:
    data = event.data
    line = f"[dim]{data['task_id'][:8]}[/dim] {_styled(data['status'])}"
    if event.type is EventType.TASK_ERROR:
        line += f" [red]{data['error']}[/red]"
    elif data.get("result"):
        result = data["result"]
        if result["success"]:
            line += f" order [bold]{result['order_reference'] or '?'}[/bold]"
    console.print(line)


async def run_tasks(
    config_path: Path | None,
    task_ids: list[str],
    headless: bool | None,
) -> None:
    """Run tasks until each reaches a terminal state; Ctrl-C stops them."""
    async with open_runtime(config_path) as runtime:
        config = runtime.config
        if headless is not None:
            config.browser.headless = headless

        known = {task.id: task for task in await runtime.database.list_tasks()}
        tasks: list[Task] = []
        for task_id in task_ids:
            try:
                tasks.append(known[resolve_id(known, task_id, "task")])
            except UnresolvedIdError as e:
                console.print(f"[red]{e}[/red]")
                return

        plugins = PluginManager()
        plugins.load_builtin_plugins()
        if config.plugins.enabled:
            plugins.load_external_plugins(config.plugins.directory)

        bus = AsyncEventBus()
        bus.subscribe(EventType.TASK_UPDATE, _print_event)
        bus.subscribe(EventType.TASK_ERROR, _print_event)
        await bus.start()

        orchestrator = TaskOrchestrator(
            store=runtime.database,
            sink=EventBusSink(bus),
            strategies=plugins.strategies,
            browser_engine=PlaywrightEngine(config.browser),
            proxy_pool=runtime.proxy_pool,
            config=config,
            plugins=plugins,
        )

        console.print(f"[bold blue]CartPilot[/bold blue] - running {len(tasks)} task(s)")
        try:
            for task in tasks:
                try:
                    await orchestrator.start(task)
                except Exception as e:
                    console.print(f"[red]Could not start {task.id[:8]}: {e}[/red]")

            updates = await asyncio.gather(
                *(orchestrator.wait(task.id) for task in tasks)
            )
        except (KeyboardInterrupt, asyncio.CancelledError):
            console.print("[yellow]Stopping...[/yellow]")
            updates = []
        finally:
            await orchestrator.close()
            await bus.stop()

    succeeded = sum(1 for u in updates if u is not None and u.result and u.result.success)
    console.print()
    console.print("[bold]Summary:[/bold]")
    console.print(f"  Tasks: {len(tasks)}")
    console.print(f"  [green]Checked out: {succeeded}[/green]")
