"""Checkout identity models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from cartpilot.core.models.task import utc_now


@dataclass
class Address:
    """Postal address."""

    first_name: str = ""
    last_name: str = ""
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "US"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Address:
        return cls(**{key: str(value) for key, value in (data or {}).items()})


@dataclass
class PaymentCard:
    """Card details used at checkout."""

    holder: str = ""
    number: str = ""
    expiry_month: str = ""
    expiry_year: str = ""
    cvv: str = ""

    @property
    def expiry(self) -> str:
        """Expiry in MM / YY form."""
        return f"{self.expiry_month} / {self.expiry_year[-2:]}"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PaymentCard:
        return cls(**{key: str(value) for key, value in (data or {}).items()})


@dataclass
class CheckoutProfile:
    """Identity, addresses and payment a task checks out with.

    Holds plaintext in memory only; the database stores the secret parts
    through the credential vault.
    """

    name: str
    email: str = ""
    phone: str = ""
    shipping: Address = field(default_factory=Address)
    billing: Address | None = None
    card: PaymentCard = field(default_factory=PaymentCard)

    # Retailer account, for sites that require sign-in
    account_email: str | None = None
    account_password: str | None = None

    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)

    @property
    def billing_address(self) -> Address:
        """Billing address, falling back to shipping."""
        return self.billing or self.shipping

    @property
    def has_account(self) -> bool:
        return bool(self.account_email and self.account_password)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckoutProfile:
        """Build a profile from plain data, e.g. a YAML profile file."""
        if not data.get("name"):
            raise ValueError("Profile needs a name")
        account = data.get("account") or {}
        return cls(
            name=data["name"],
            email=data.get("email", ""),
            phone=str(data.get("phone", "")),
            shipping=Address.from_dict(data.get("shipping")),
            billing=Address.from_dict(data["billing"]) if data.get("billing") else None,
            card=PaymentCard.from_dict(data.get("card")),
            account_email=account.get("email"),
            account_password=account.get("password"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (card number masked, secrets omitted)."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "shipping": asdict(self.shipping),
            "billing": asdict(self.billing) if self.billing else None,
            "card": f"**** {self.card.number[-4:]}" if self.card.number else None,
            "account_email": self.account_email,
            "created_at": self.created_at.isoformat(),
        }
