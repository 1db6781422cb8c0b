"""Main CLI application."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from cartpilot import __version__

# Create main app
app = typer.Typer(
    name="cartpilot",
    help="Retail checkout automation",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
task_app = typer.Typer(help="Create, run and inspect tasks", no_args_is_help=True)
proxy_app = typer.Typer(help="Manage and test proxies", no_args_is_help=True)
profile_app = typer.Typer(help="Manage checkout profiles", no_args_is_help=True)
app.add_typer(task_app, name="task")
app.add_typer(proxy_app, name="proxy")
app.add_typer(profile_app, name="profile")

console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Config file path"),
]


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]CartPilot[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """CartPilot - monitor products and check out when they come in stock."""


# ==================== Tasks ====================


@task_app.command("add")
def task_add(
    retailer: Annotated[str, typer.Argument(help="Retailer key, e.g. shopify, amazon")],
    url: Annotated[str | None, typer.Option("--url", "-u", help="Product page URL")] = None,
    product_id: Annotated[
        str | None,
        typer.Option("--product-id", help="Retailer product id (SKU, ASIN, ...)"),
    ] = None,
    name: Annotated[str, typer.Option("--name", "-n", help="Display name")] = "",
    size: Annotated[str | None, typer.Option("--size", help="Size to select")] = None,
    color: Annotated[str | None, typer.Option("--color", help="Color to select")] = None,
    profile_id: Annotated[
        str | None,
        typer.Option("--profile", "-p", help="Checkout profile id or unique prefix"),
    ] = None,
    proxy_id: Annotated[
        str | None,
        typer.Option("--proxy", help="Proxy id or unique prefix"),
    ] = None,
    monitor_delay: Annotated[
        int,
        typer.Option("--monitor-delay", help="Delay between stock checks (ms)"),
    ] = 3000,
    retry_delay: Annotated[
        int,
        typer.Option("--retry-delay", help="Delay between retries (ms)"),
    ] = 1500,
    config: ConfigOption = None,
) -> None:
    """Create a task."""
    from cartpilot.cli.commands.task import add_task

    asyncio.run(
        add_task(
            config,
            retailer=retailer,
            product_url=url,
            product_id=product_id,
            name=name,
            size=size,
            color=color,
            profile_id=profile_id,
            proxy_id=proxy_id,
            monitor_delay_ms=monitor_delay,
            retry_delay_ms=retry_delay,
        )
    )


@task_app.command("list")
def task_list(
    status: Annotated[str | None, typer.Option("--status", "-s", help="Filter by status")] = None,
    config: ConfigOption = None,
) -> None:
    """List tasks."""
    from cartpilot.cli.commands.task import list_tasks

    asyncio.run(list_tasks(config, status))


@task_app.command("run")
def task_run(
    task_ids: Annotated[list[str], typer.Argument(help="Task ids or unique prefixes to run")],
    headless: Annotated[
        bool | None,
        typer.Option("--headless/--no-headless", help="Override headless mode"),
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Run tasks until they check out, fail or are interrupted."""
    from cartpilot.cli.commands.task import run_tasks

    asyncio.run(run_tasks(config, task_ids, headless))


@task_app.command("results")
def task_results(
    task_id: Annotated[
        str | None,
        typer.Argument(help="Only this task's results (id or unique prefix)"),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-l", help="Maximum rows")] = 50,
    config: ConfigOption = None,
) -> None:
    """Show checkout results, newest first."""
    from cartpilot.cli.commands.task import list_results

    asyncio.run(list_results(config, task_id, limit))


@task_app.command("remove")
def task_remove(
    task_id: Annotated[str, typer.Argument(help="Task id or unique prefix")],
    config: ConfigOption = None,
) -> None:
    """Delete a task and its results."""
    from cartpilot.cli.commands.task import remove_task

    asyncio.run(remove_task(config, task_id))


# ==================== Proxies ====================


@proxy_app.command("add")
def proxy_add(
    line: Annotated[str, typer.Argument(help="host:port[:username:password]")],
    proxy_type: Annotated[str, typer.Option("--type", "-t", help="http, https, socks4, socks5")] = "http",
    location: Annotated[str | None, typer.Option("--location", help="Location tag")] = None,
    config: ConfigOption = None,
) -> None:
    """Add a proxy."""
    from cartpilot.cli.commands.proxy import add_proxy

    asyncio.run(add_proxy(config, line, proxy_type, location))


@proxy_app.command("list")
def proxy_list(
    status: Annotated[
        str | None,
        typer.Option("--status", "-s", help="active, inactive or banned"),
    ] = None,
    config: ConfigOption = None,
) -> None:
    """List proxies."""
    from cartpilot.cli.commands.proxy import list_proxies

    asyncio.run(list_proxies(config, status))


@proxy_app.command("test")
def proxy_test(
    proxy_id: Annotated[str | None, typer.Argument(help="Proxy id; all when omitted")] = None,
    test_url: Annotated[
        str | None,
        typer.Option("--test-url", help="URL to test proxies against"),
    ] = None,
    concurrent: Annotated[
        int | None,
        typer.Option("--concurrent", help="Concurrent tests"),
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Test proxy health."""
    from cartpilot.cli.commands.proxy import test_proxies

    asyncio.run(test_proxies(config, proxy_id, test_url, concurrent))


@proxy_app.command("import")
def proxy_import(
    file: Annotated[Path, typer.Argument(help="Proxy file, one host:port[:user:pass] per line")],
    proxy_type: Annotated[str, typer.Option("--type", "-t", help="http, https, socks4, socks5")] = "http",
    location: Annotated[str | None, typer.Option("--location", help="Location tag")] = None,
    config: ConfigOption = None,
) -> None:
    """Import proxies from a file."""
    from cartpilot.cli.commands.proxy import import_proxies

    asyncio.run(import_proxies(config, file, proxy_type, location))


@proxy_app.command("export")
def proxy_export(
    file: Annotated[Path, typer.Argument(help="Output file")],
    config: ConfigOption = None,
) -> None:
    """Export proxies to a file."""
    from cartpilot.cli.commands.proxy import export_proxies

    asyncio.run(export_proxies(config, file))


@proxy_app.command("remove")
def proxy_remove(
    proxy_id: Annotated[str, typer.Argument(help="Proxy id or unique prefix")],
    config: ConfigOption = None,
) -> None:
    """Remove a proxy."""
    from cartpilot.cli.commands.proxy import remove_proxy

    asyncio.run(remove_proxy(config, proxy_id))


# ==================== Profiles ====================


@profile_app.command("add")
def profile_add(
    file: Annotated[Path, typer.Argument(help="Profile YAML file")],
    config: ConfigOption = None,
) -> None:
    """Add a checkout profile from YAML."""
    from cartpilot.cli.commands.profile import add_profile

    asyncio.run(add_profile(config, file))


@profile_app.command("list")
def profile_list(config: ConfigOption = None) -> None:
    """List checkout profiles."""
    from cartpilot.cli.commands.profile import list_profiles

    asyncio.run(list_profiles(config))


@profile_app.command("remove")
def profile_remove(
    profile_id: Annotated[str, typer.Argument(help="Profile id or unique prefix")],
    config: ConfigOption = None,
) -> None:
    """Remove a checkout profile."""
    from cartpilot.cli.commands.profile import remove_profile

    asyncio.run(remove_profile(config, profile_id))


# ==================== Config ====================


@app.command()
def config(
    action: Annotated[
        str,
        typer.Argument(help="Action: show, validate, init"),
    ],
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Config file"),
    ] = None,
) -> None:
    """Manage configuration."""
    from cartpilot.core.models.config import Config

    if action == "show":
        cfg = Config.from_yaml(file) if file and file.exists() else Config()
        data = cfg.to_dict()
        if data["vault"]["key"]:
            data["vault"]["key"] = "********"

        console.print("[bold]Current Configuration:[/bold]")
        console.print_json(data=data)

    elif action == "validate":
        if not file:
            console.print("[red]--file is required[/red]")
            raise typer.Exit(1)
        try:
            Config.from_yaml(file)
        except Exception as e:
            console.print(f"[red]Config validation failed: {e}[/red]")
            raise typer.Exit(1) from e
        console.print(f"[green]Config file {file} is valid![/green]")

    elif action == "init":
        output_path = file or Path("./config/cartpilot.yaml")
        Config().to_yaml(output_path)
        console.print(f"[green]Config initialized at {output_path}[/green]")

    else:
        console.print(f"[red]Unknown action: {action}[/red]")
        raise typer.Exit(1)


def main() -> None:
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
