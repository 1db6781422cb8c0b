"""Profile command implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import yaml
from rich.console import Console
from rich.table import Table

from cartpilot.cli.runtime import UnresolvedIdError, open_runtime, resolve_id
from cartpilot.core.models.profile import CheckoutProfile

if TYPE_CHECKING:
    from pathlib import Path

console = Console()


async def add_profile(config_path: Path | None, file: Path) -> None:
    """Store a checkout profile read from a YAML file."""
    if not file.exists():
        console.print(f"[red]File not found: {file}[/red]")
        return

    with file.open() as f:
        data = yaml.safe_load(f) or {}

    try:
        profile = CheckoutProfile.from_dict(data)
    except (TypeError, ValueError) as e:
        console.print(f"[red]Invalid profile: {e}[/red]")
        return

    async with open_runtime(config_path) as runtime:
        await runtime.database.create_profile(profile)
    console.print(f"[green]Created profile[/green] {profile.name} ([dim]{profile.id}[/dim])")


async def list_profiles(config_path: Path | None) -> None:
    async with open_runtime(config_path) as runtime:
        profiles = await runtime.database.list_profiles()

    if not profiles:
        console.print("[yellow]No profiles[/yellow]")
        return

    table = Table(title="Profiles")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Email")
    table.add_column("Ship to", style="blue")
    table.add_column("Card", style="magenta")
    table.add_column("Account")

    for profile in profiles:
        info = profile.to_dict()
        address = profile.shipping
        table.add_row(
            profile.id[:8],
            profile.name,
            profile.email or "-",
            ", ".join(v for v in (address.city, address.state, address.country) if v) or "-",
            info["card"] or "-",
            profile.account_email or "guest",
        )
    console.print(table)


async def remove_profile(config_path: Path | None, profile_id: str) -> None:
    async with open_runtime(config_path) as runtime:
        profiles = await runtime.database.list_profiles()
        try:
            full_id = resolve_id((p.id for p in profiles), profile_id, "profile")
        except UnresolvedIdError as e:
            console.print(f"[red]{e}[/red]")
            return
        await runtime.database.delete_profile(full_id)
    console.print(f"[green]Removed profile {full_id}[/green]")
