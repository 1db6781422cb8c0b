"""Application configuration: pydantic models loaded from YAML and CARTPILOT_* variables."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BrowserConfig(BaseModel):
    """Browser launch configuration."""

    headless: bool = True
    navigation_timeout_ms: float = Field(default=30000, ge=1000)
    viewport_width: int = Field(default=1920, ge=320)
    viewport_height: int = Field(default=1080, ge=240)
    ignore_https_errors: bool = True
    args: list[str] = [
        "--no-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
    ]


class SessionConfig(BaseModel):
    """Automation session configuration."""

    stop_timeout: float = Field(default=10.0, gt=0)
    reload_wait_until: Literal["load", "domcontentloaded", "networkidle"] = "domcontentloaded"


class ProxyPoolConfig(BaseModel):
    """Proxy pool and health check configuration."""

    probe_url: str = "https://www.google.com"
    timeout: float = Field(default=10.0, gt=0, le=60)
    concurrent: int = Field(default=10, ge=1, le=500)
    auto_select: bool = False
    location: str | None = None


class DatabaseConfig(BaseModel):
    """Database configuration."""

    url: str = "sqlite+aiosqlite:///cartpilot.db"
    echo: bool = False


class VaultConfig(BaseModel):
    """Credential vault configuration."""

    key: str | None = None
    key_file: Path = Path("./data/vault.key")


class LogConfig(BaseModel):
    """Log level, renderer and optional log file."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    structured: bool = False
    file: Path | None = None


class PluginConfig(BaseModel):
    """Strategy plugin configuration."""

    enabled: bool = True
    directory: Path = Path("./plugins")


class Config(BaseSettings):
    """Top-level configuration, one section per component."""

    model_config = SettingsConfigDict(
        env_prefix="CARTPILOT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    proxy: ProxyPoolConfig = Field(default_factory=ProxyPoolConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)
    logs: LogConfig = Field(default_factory=LogConfig)
    plugins: PluginConfig = Field(default_factory=PluginConfig)

    @classmethod
    def from_yaml(cls, path: Path | str) -> Config:
        """Read a YAML config file; an empty file yields the defaults."""
        import yaml

        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")
        return cls.from_dict(yaml.safe_load(path.read_text()) or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe dump, paths as strings."""
        return self.model_dump(mode="json")

    def to_yaml(self, path: Path | str) -> None:
        """Write the config as YAML, creating parent directories."""
        import yaml

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(self.to_dict(), sort_keys=False))
