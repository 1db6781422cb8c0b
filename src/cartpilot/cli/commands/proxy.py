"""Proxy command implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from cartpilot.cli.runtime import UnresolvedIdError, open_runtime, resolve_id
from cartpilot.core.models.proxy import Proxy, ProxyStatus, ProxyType

if TYPE_CHECKING:
    from pathlib import Path

console = Console()

STATUS_STYLES = {
    ProxyStatus.ACTIVE: "green",
    ProxyStatus.INACTIVE: "red",
    ProxyStatus.BANNED: "magenta",
}


def proxy_table(proxies: list[Proxy], title: str = "Proxies") -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Server", style="cyan")
    table.add_column("Auth", style="magenta")
    table.add_column("Location", style="blue")
    table.add_column("Status")
    table.add_column("Latency (ms)", style="yellow")
    table.add_column("Last tested", style="dim")

    for proxy in proxies:
        style = STATUS_STYLES.get(proxy.status, "white")
        table.add_row(
            proxy.id[:8],
            proxy.server,
            "Yes" if proxy.has_auth else "No",
            proxy.location or "-",
            f"[{style}]{proxy.status.value}[/{style}]",
            f"{proxy.response_time_ms:.0f}" if proxy.response_time_ms is not None else "N/A",
            proxy.last_tested_at.strftime("%Y-%m-%d %H:%M") if proxy.last_tested_at else "-",
        )
    return table


def resolve_proxy_id(pool_proxies: list[Proxy], prefix: str) -> str | None:
    """Match a full id or a unique id prefix as shown by `proxy list`."""
    try:
        return resolve_id((p.id for p in pool_proxies), prefix, "proxy")
    except UnresolvedIdError as e:
        console.print(f"[red]{e}[/red]")
        return None


async def add_proxy(
    config_path: Path | None,
    line: str,
    proxy_type: str,
    location: str | None,
) -> None:
    """Add one proxy given in host:port[:user:pass] form."""
    try:
        parsed = Proxy.from_line(line, ProxyType.from_string(proxy_type))
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return

    async with open_runtime(config_path) as runtime:
        proxy = await runtime.proxy_pool.add_proxy(
            host=parsed.host,
            port=parsed.port,
            proxy_type=parsed.proxy_type,
            username=parsed.username,
            password=parsed.password,
            location=location,
        )
    console.print(f"[green]Added proxy[/green] {proxy.server} ([dim]{proxy.id}[/dim])")


async def list_proxies(config_path: Path | None, status: str | None) -> None:
    async with open_runtime(config_path) as runtime:
        proxies = await runtime.proxy_pool.list_proxies(ProxyStatus(status) if status else None)

    if not proxies:
        console.print("[yellow]No proxies[/yellow]")
        return
    console.print(proxy_table(proxies))


async def test_proxies(
    config_path: Path | None,
    proxy_id: str | None,
    probe_url: str | None,
    concurrent: int | None,
) -> None:
    """Test one proxy, or every proxy when no id is given."""
    async with open_runtime(config_path) as runtime:
        pool = runtime.proxy_pool
        url = probe_url or pool.config.probe_url

        if proxy_id:
            full_id = resolve_proxy_id(await pool.list_proxies(), proxy_id)
            if full_id is None:
                return
            result = await pool.test_proxy(full_id, url)
            if result.success:
                console.print(f"[green]OK[/green] {result.response_time_ms:.0f} ms")
            else:
                console.print("[red]FAILED[/red]")
            return

        total = len(await pool.list_proxies())
        console.print(f"[bold]Testing {total} proxies against {url}[/bold]")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            console=console,
        ) as progress:
            task = progress.add_task("Testing proxies...", total=total)
            results = await pool.test_all(url, concurrent)
            progress.update(task, completed=total)

        proxies = await pool.list_proxies()

    healthy = sum(1 for r in results.values() if r.success)
    console.print()
    console.print(f"[green]Healthy: {healthy}[/green]")
    console.print(f"[red]Failed: {len(results) - healthy}[/red]")
    console.print(proxy_table(proxies, title="Proxy health"))


async def import_proxies(
    config_path: Path | None,
    file: Path,
    proxy_type: str,
    location: str | None,
) -> None:
    if not file.exists():
        console.print(f"[red]File not found: {file}[/red]")
        return

    async with open_runtime(config_path) as runtime:
        report = await runtime.proxy_pool.import_proxies(
            file, ProxyType.from_string(proxy_type), location
        )

    console.print(
        f"[bold]{report.total}[/bold] lines: "
        f"[green]{report.imported} imported[/green], [red]{report.failed} failed[/red]"
    )
    for error in report.errors[:10]:
        console.print(f"  [red]{error}[/red]")
    if len(report.errors) > 10:
        console.print(f"[dim]... and {len(report.errors) - 10} more[/dim]")


async def export_proxies(config_path: Path | None, file: Path) -> None:
    async with open_runtime(config_path) as runtime:
        count = await runtime.proxy_pool.export_proxies(file)
    console.print(f"[green]Exported {count} proxies to {file}[/green]")


async def remove_proxy(config_path: Path | None, proxy_id: str) -> None:
    async with open_runtime(config_path) as runtime:
        pool = runtime.proxy_pool
        full_id = resolve_proxy_id(await pool.list_proxies(), proxy_id)
        if full_id is None:
            return
        await pool.delete_proxy(full_id)
    console.print(f"[green]Removed proxy {full_id}[/green]")
