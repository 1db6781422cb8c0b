"""Core data models."""

from cartpilot.core.models.config import (
    BrowserConfig,
    Config,
    DatabaseConfig,
    LogConfig,
    ProxyPoolConfig,
    SessionConfig,
    VaultConfig,
)
from cartpilot.core.models.profile import Address, CheckoutProfile, PaymentCard
from cartpilot.core.models.proxy import (
    ImportReport,
    Proxy,
    ProxyStatus,
    ProxyTestResult,
    ProxyType,
)
from cartpilot.core.models.task import (
    CheckoutOutcome,
    CheckoutResult,
    Task,
    TaskStatus,
)

__all__ = [
    # Config
    "BrowserConfig",
    "Config",
    "DatabaseConfig",
    "LogConfig",
    "ProxyPoolConfig",
    "SessionConfig",
    "VaultConfig",
    # Profile
    "Address",
    "CheckoutProfile",
    "PaymentCard",
    # Proxy
    "ImportReport",
    "Proxy",
    "ProxyStatus",
    "ProxyTestResult",
    "ProxyType",
    # Task
    "CheckoutOutcome",
    "CheckoutResult",
    "Task",
    "TaskStatus",
]
