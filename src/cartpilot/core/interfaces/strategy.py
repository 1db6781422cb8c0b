"""Site strategy interface definitions.

A site strategy drives one retailer's pages through the purchase flow.
Required steps are abstract methods; optional capabilities are detected
by whether a subclass defines the corresponding method.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from cartpilot.core.models.profile import CheckoutProfile
    from cartpilot.core.models.task import CheckoutOutcome, Task


class Capability(str, Enum):
    """Optional steps a strategy may implement."""

    SELECT_OPTIONS = "select_options"
    LOGIN = "login"
    SUBMIT_CAPTCHA = "submit_captcha"


class SiteStrategy(ABC):
    """Base class for per-retailer automation.

    Optional capabilities, invoked by the session only when present:

        async def select_options(self) -> None
        async def login(self) -> bool
        async def submit_captcha(self) -> bool   # False = unresolved block
    """

    name: ClassVar[str] = "base"

    def __init__(
        self,
        page: Any,
        task: Task,
        profile: CheckoutProfile | None = None,
    ) -> None:
        self.page = page
        self.task = task
        self.profile = profile

    @classmethod
    def capabilities(cls) -> frozenset[Capability]:
        """Optional capabilities this strategy class implements."""
        return frozenset(
            capability
            for capability in Capability
            if callable(getattr(cls, capability.value, None))
        )

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities()

    @abstractmethod
    async def check_availability(self) -> bool:
        """Return True when the product can be added to the cart."""
        ...

    @abstractmethod
    async def add_to_cart(self) -> None:
        """Add the product to the cart. Invoked at most once per session."""
        ...

    @abstractmethod
    async def checkout(self) -> CheckoutOutcome:
        """Submit the order and report the outcome."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(task_id={self.task.id!r})"
