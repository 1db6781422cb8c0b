"""Selector-driven strategy base shared by the built-in retailers.

Each retailer supplies a ``Selectors`` table and a few URLs; the flow
(load product page, pick options, add to cart, fill checkout, place order)
is the same everywhere. Selector values may be comma-separated CSS lists.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, ClassVar

import structlog
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from cartpilot.core.errors import (
    CheckoutError,
    ConfigurationError,
    NavigationError,
    SelectorNotFoundError,
)
from cartpilot.core.interfaces.strategy import SiteStrategy
from cartpilot.core.models.task import CheckoutOutcome

logger = structlog.get_logger(__name__)

PRICE_PATTERN = re.compile(r"(\d{1,3}(?:[,.]\d{3})*(?:[.,]\d{2})|\d+(?:[.,]\d{2})?)")


@dataclass(frozen=True)
class Selectors:
    """CSS selectors for one retailer's pages."""

    title: str
    add_to_cart: str
    checkout: str
    place_order: str
    order_confirmation: str

    # Product page
    sold_out: str | None = None
    size: str | None = None
    color: str | None = None
    price: str | None = None
    captcha: str | None = None

    # Cart
    go_to_cart: str | None = None
    guest_checkout: str | None = None

    # Account
    login_email: str | None = None
    login_password: str | None = None
    login_submit: str | None = None

    # Shipping
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    address1: str | None = None
    city: str | None = None
    postal_code: str | None = None
    phone: str | None = None

    # Payment
    card_number: str | None = None
    card_name: str | None = None
    card_expiry: str | None = None
    card_expiry_month: str | None = None
    card_expiry_year: str | None = None
    card_cvv: str | None = None

    # Steps clicked in order when present between shipping and payment
    continue_buttons: tuple[str, ...] = ()

    order_number: str | None = None


def parse_price(text: str | None) -> float | None:
    """Extract a price from display text like '$1,299.99'."""
    if not text:
        return None
    match = PRICE_PATTERN.search(text)
    if not match:
        return None
    raw = match.group(1)
    if re.search(r",\d{2}$", raw):
        raw = raw.replace(".", "").replace(",", ".")
    else:
        raw = raw.replace(",", "")
    try:
        return float(raw)
    except ValueError:
        return None


class SelectorStrategy(SiteStrategy):
    """Site strategy driven entirely by a selector table."""

    name: ClassVar[str] = "selector"
    selectors: ClassVar[Selectors]
    _logged_in: bool = False

    # "{product_id}" is substituted when a task only has a product id
    product_url_template: ClassVar[str | None] = None
    cart_url: ClassVar[str | None] = None
    login_url: ClassVar[str | None] = None

    wait_until: ClassVar[str] = "domcontentloaded"
    confirmation_timeout_ms: ClassVar[float] = 30000

    def __init__(self, page: Any, task: Any, profile: Any = None) -> None:
        super().__init__(page, task, profile)
        self._log = logger.bind(task_id=task.id, strategy=self.name)

    # ==================== Page helpers ====================

    def product_url(self) -> str:
        if self.task.product_url:
            return self.task.product_url
        if self.task.product_id and self.product_url_template:
            return self.product_url_template.format(product_id=self.task.product_id)
        raise ConfigurationError(f"No product URL for task {self.task.id}")

    async def open(self, url: str) -> None:
        try:
            await self.page.goto(url, wait_until=self.wait_until)
        except Exception as e:
            raise NavigationError(f"Failed to load {url}: {e}") from e

    async def exists(self, selector: str | None) -> bool:
        if not selector:
            return False
        return await self.page.locator(selector).count() > 0

    async def click(self, selector: str) -> None:
        if not await self.exists(selector):
            raise SelectorNotFoundError(selector)
        await self.page.locator(selector).first.click()

    async def click_if_present(self, selector: str | None) -> bool:
        if not await self.exists(selector):
            return False
        await self.page.locator(selector).first.click()
        return True

    async def fill_if_present(self, selector: str | None, value: str | None) -> bool:
        if not value or not await self.exists(selector):
            return False
        await self.page.locator(selector).first.fill(value)
        return True

    async def text(self, selector: str | None) -> str | None:
        if not await self.exists(selector):
            return None
        return (await self.page.locator(selector).first.inner_text()).strip()

    async def choose(self, selector: str, value: str) -> None:
        """Pick an option from a <select> or a group of option buttons."""
        if not await self.exists(selector):
            raise SelectorNotFoundError(selector)

        locator = self.page.locator(selector)
        tag = await locator.first.evaluate("el => el.tagName")
        if str(tag).upper() == "SELECT":
            await locator.first.select_option(label=value)
            return

        option = locator.filter(has_text=value)
        if await option.count() == 0:
            raise SelectorNotFoundError(selector, f"Option '{value}' not offered")
        await option.first.click()

    async def captcha_present(self) -> bool:
        return await self.exists(self.selectors.captcha)

    # ==================== Capability contract ====================

    async def check_availability(self) -> bool:
        await self.open(self.product_url())

        if await self.captcha_present():
            self._log.warning("Captcha on product page")
            return False

        s = self.selectors
        if not await self.exists(s.title):
            raise SelectorNotFoundError(s.title, "Product page did not render")

        if await self.exists(s.sold_out):
            return False
        if not await self.exists(s.add_to_cart):
            return False
        return bool(await self.page.locator(s.add_to_cart).first.is_enabled())

    async def select_options(self) -> None:
        s = self.selectors
        if self.task.size and s.size:
            await self.choose(s.size, self.task.size)
            self._log.info("Size selected", size=self.task.size)
        if self.task.color and s.color:
            await self.choose(s.color, self.task.color)
            self._log.info("Color selected", color=self.task.color)

    async def add_to_cart(self) -> None:
        await self.click(self.selectors.add_to_cart)
        await self.page.wait_for_load_state(self.wait_until)
        self._log.info("Added to cart")

    async def submit_captcha(self) -> bool:
        """Report whether the page is free of a captcha challenge."""
        if await self.captcha_present():
            self._log.warning("Captcha challenge detected")
            return False
        return True

    async def checkout(self) -> CheckoutOutcome:
        if self.profile is None:
            raise CheckoutError("Task has no checkout profile")

        price = parse_price(await self.text(self.selectors.price))

        await self.go_to_cart()
        await self.click(self.selectors.checkout)
        await self.page.wait_for_load_state(self.wait_until)

        await self.fill_shipping()
        for button in self.selectors.continue_buttons:
            if await self.click_if_present(button):
                await self.page.wait_for_load_state(self.wait_until)
        await self.fill_payment()

        return await self.place_order(price)

    # ==================== Checkout steps ====================

    async def go_to_cart(self) -> None:
        if self.cart_url:
            await self.open(self.cart_url)
        elif await self.click_if_present(self.selectors.go_to_cart):
            await self.page.wait_for_load_state(self.wait_until)

    async def fill_shipping(self) -> None:
        s = self.selectors
        profile = self.profile
        address = profile.shipping

        if not self._logged_in:
            await self.click_if_present(s.guest_checkout)

        await self.fill_if_present(s.email, profile.email)
        await self.fill_if_present(s.first_name, address.first_name)
        await self.fill_if_present(s.last_name, address.last_name)
        await self.fill_if_present(s.address1, address.line1)
        await self.fill_if_present(s.city, address.city)
        await self.fill_if_present(s.postal_code, address.postal_code)
        await self.fill_if_present(s.phone, profile.phone)

    async def fill_payment(self) -> None:
        s = self.selectors
        card = self.profile.card

        await self.fill_if_present(s.card_number, card.number)
        await self.fill_if_present(s.card_name, card.holder)
        await self.fill_if_present(s.card_expiry, card.expiry)
        await self.fill_if_present(s.card_cvv, card.cvv)
        if s.card_expiry_month and await self.exists(s.card_expiry_month):
            await self.choose(s.card_expiry_month, card.expiry_month)
        if s.card_expiry_year and await self.exists(s.card_expiry_year):
            await self.choose(s.card_expiry_year, card.expiry_year)

    async def place_order(self, price: float | None) -> CheckoutOutcome:
        s = self.selectors
        try:
            await self.click(s.place_order)
        except SelectorNotFoundError:
            raise
        except Exception as e:
            raise CheckoutError(f"Order submission failed: {e}") from e

        try:
            await self.page.locator(s.order_confirmation).first.wait_for(
                state="visible", timeout=self.confirmation_timeout_ms
            )
        except PlaywrightTimeoutError:
            self._log.warning("No order confirmation shown")
            return CheckoutOutcome(success=False, price=price)

        order_reference = await self.text(s.order_number or s.order_confirmation)
        self._log.info("Order placed", order_reference=order_reference, price=price)
        return CheckoutOutcome(success=True, order_reference=order_reference, price=price)


class SignInStrategy(SelectorStrategy):
    """Selector strategy for retailers with account sign-in.

    Without account credentials on the profile the session continues as
    a guest.
    """

    async def login(self) -> bool:
        s = self.selectors
        profile = self.profile
        if profile is None or not profile.has_account:
            self._log.info("No account credentials, continuing as guest")
            return True

        if self.login_url:
            await self.open(self.login_url)

        if not await self.fill_if_present(s.login_email, profile.account_email):
            raise SelectorNotFoundError(s.login_email or "login email")
        await self.fill_if_present(s.login_password, profile.account_password)
        await self.click(s.login_submit)
        await self.page.wait_for_load_state(self.wait_until)

        if await self.captcha_present():
            self._log.warning("Captcha after sign-in")
            return False

        if await self.exists(s.login_password):
            self._log.warning("Sign-in rejected")
            return False

        self._logged_in = True
        self._log.info("Signed in")
        return True
