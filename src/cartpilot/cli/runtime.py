"""Wiring shared by CLI commands."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from cartpilot.core.log import configure_logging
from cartpilot.core.models.config import Config
from cartpilot.core.proxy.pool import ProxyPoolManager
from cartpilot.core.security.vault import FernetVault
from cartpilot.core.storage.database import Database


def load_config(path: Path | None) -> Config:
    """Config from a YAML file when given, else defaults plus CARTPILOT_* env vars."""
    if path is not None:
        return Config.from_yaml(path)
    return Config()


class UnresolvedIdError(LookupError):
    """An id prefix matched no entity, or more than one."""


def resolve_id(ids: Iterable[str], prefix: str, kind: str) -> str:
    """
    Match a full id or a unique id prefix as shown by the list commands.

    Raises:
        UnresolvedIdError: If nothing or more than one id matches
    """
    matches = [i for i in ids if prefix and i.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise UnresolvedIdError(f"Ambiguous {kind} id prefix: {prefix}")
    raise UnresolvedIdError(f"{kind.capitalize()} not found: {prefix}")


@dataclass
class Runtime:
    config: Config
    vault: FernetVault
    database: Database
    proxy_pool: ProxyPoolManager


@asynccontextmanager
async def open_runtime(config_path: Path | None = None) -> AsyncIterator[Runtime]:
    """Open the database and proxy pool for one command invocation."""
    config = load_config(config_path)
    configure_logging(config.logs)

    vault = FernetVault.from_config(config.vault)
    database = Database(config.database, vault=vault)
    await database.init()
    try:
        yield Runtime(
            config=config,
            vault=vault,
            database=database,
            proxy_pool=ProxyPoolManager(database, vault, config.proxy),
        )
    finally:
        await database.close()
