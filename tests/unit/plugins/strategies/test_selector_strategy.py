"""Tests for the selector-driven retailer strategies."""

from __future__ import annotations

import pytest

from cartpilot.core.errors import (
    CheckoutError,
    ConfigurationError,
    NavigationError,
    SelectorNotFoundError,
)
from cartpilot.core.models.profile import Address, CheckoutProfile, PaymentCard
from cartpilot.core.models.task import Task
from cartpilot.plugins.strategies import AmazonStrategy, ShopifyStrategy, WalmartStrategy
from cartpilot.plugins.strategies.base import parse_price
from tests.fakes import MockPage

SHOP = ShopifyStrategy.selectors
AMZ = AmazonStrategy.selectors


@pytest.fixture
def shop_task() -> Task:
    return Task(
        retailer="shopify",
        product_url="https://shop.example.com/products/tee",
        size="M",
        color="Black",
    )


@pytest.fixture
def profile() -> CheckoutProfile:
    return CheckoutProfile(
        name="Main",
        email="ada@example.com",
        phone="5550100",
        shipping=Address(
            first_name="Ada",
            last_name="Lovelace",
            line1="12 Analytical Way",
            city="London",
            state="LDN",
            postal_code="N1 9GU",
            country="GB",
        ),
        card=PaymentCard(
            holder="Ada Lovelace",
            number="4111111111111111",
            expiry_month="04",
            expiry_year="2029",
            cvv="123",
        ),
    )


def product_page(page: MockPage, *, enabled: bool = True) -> MockPage:
    page.set_locator(SHOP.title, text="Tee")
    page.set_locator(SHOP.add_to_cart, enabled=enabled)
    return page


# ============================================================================
# PRICE PARSING
# ============================================================================


class TestParsePrice:
    """Tests for parse_price."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("$1,299.99", 1299.99),
            ("1.299,99 EUR", 1299.99),
            ("$5.00", 5.0),
            ("19", 19.0),
            ("Now only $24.50!", 24.5),
        ],
    )
    def test_parses_display_prices(self, text, expected):
        assert parse_price(text) == expected

    @pytest.mark.parametrize("text", [None, "", "Free"])
    def test_missing_prices(self, text):
        assert parse_price(text) is None


# ============================================================================
# AVAILABILITY
# ============================================================================


class TestAvailability:
    """Tests for check_availability."""

    @pytest.mark.asyncio
    async def test_available_when_add_to_cart_enabled(self, page, shop_task):
        strategy = ShopifyStrategy(product_page(page), shop_task)

        assert await strategy.check_availability() is True
        assert page.visited == ["https://shop.example.com/products/tee"]

    @pytest.mark.asyncio
    async def test_sold_out_marker(self, page, shop_task):
        product_page(page).set_locator(SHOP.sold_out)
        strategy = ShopifyStrategy(page, shop_task)

        assert await strategy.check_availability() is False

    @pytest.mark.asyncio
    async def test_disabled_add_to_cart(self, page, shop_task):
        strategy = ShopifyStrategy(product_page(page, enabled=False), shop_task)

        assert await strategy.check_availability() is False

    @pytest.mark.asyncio
    async def test_page_without_title_raises(self, page, shop_task):
        strategy = ShopifyStrategy(page, shop_task)

        with pytest.raises(SelectorNotFoundError):
            await strategy.check_availability()

    @pytest.mark.asyncio
    async def test_navigation_error(self, page, shop_task):
        page.goto_error = RuntimeError("net::ERR_CONNECTION_RESET")
        strategy = ShopifyStrategy(page, shop_task)

        with pytest.raises(NavigationError, match="ERR_CONNECTION_RESET"):
            await strategy.check_availability()

    @pytest.mark.asyncio
    async def test_captcha_counts_as_unavailable(self, page):
        task = Task(retailer="walmart", product_id="123456")
        page.set_locator(WalmartStrategy.selectors.captcha)
        strategy = WalmartStrategy(page, task)

        assert await strategy.check_availability() is False
        assert page.visited == ["https://www.walmart.com/ip/123456"]

    @pytest.mark.asyncio
    async def test_amazon_availability_text(self, page):
        task = Task(retailer="amazon", product_id="B0TEST")
        page.set_locator(AMZ.title)
        page.set_locator(AMZ.add_to_cart)
        page.set_locator("#availability", text="Currently unavailable.")
        strategy = AmazonStrategy(page, task)

        assert await strategy.check_availability() is False
        assert page.visited == ["https://www.amazon.com/dp/B0TEST"]

    def test_product_id_without_template(self):
        strategy = ShopifyStrategy(MockPage(), Task(retailer="shopify", product_id="42"))

        with pytest.raises(ConfigurationError):
            strategy.product_url()


# ============================================================================
# OPTIONS AND CART
# ============================================================================


class TestOptionsAndCart:
    """Tests for select_options and add_to_cart."""

    @pytest.mark.asyncio
    async def test_selects_size_from_dropdown_and_color_from_buttons(self, page, shop_task):
        size = page.set_locator(SHOP.size, tag="SELECT")
        color = page.set_locator(SHOP.color, tag="DIV", options=["Black", "White"])
        strategy = ShopifyStrategy(page, shop_task)

        await strategy.select_options()

        assert size.selected == ["M"]
        assert color.chosen == ["Black"]

    @pytest.mark.asyncio
    async def test_unavailable_option_raises(self, page, shop_task):
        page.set_locator(SHOP.size, tag="DIV", options=["S", "L"])
        strategy = ShopifyStrategy(page, shop_task)

        with pytest.raises(SelectorNotFoundError, match="not offered"):
            await strategy.select_options()

    @pytest.mark.asyncio
    async def test_no_options_requested(self, page):
        task = Task(retailer="shopify", product_url="https://shop.example.com/products/mug")
        strategy = ShopifyStrategy(page, task)

        await strategy.select_options()

    @pytest.mark.asyncio
    async def test_add_to_cart_clicks(self, page, shop_task):
        button = page.set_locator(SHOP.add_to_cart)
        strategy = ShopifyStrategy(page, shop_task)

        await strategy.add_to_cart()

        assert button.clicks == 1

    @pytest.mark.asyncio
    async def test_add_to_cart_missing_button(self, page, shop_task):
        strategy = ShopifyStrategy(page, shop_task)

        with pytest.raises(SelectorNotFoundError):
            await strategy.add_to_cart()


# ============================================================================
# CHECKOUT
# ============================================================================


def checkout_page(page: MockPage, *, confirmed: bool = True) -> dict:
    fields = {
        name: page.set_locator(getattr(SHOP, name))
        for name in (
            "email",
            "first_name",
            "last_name",
            "address1",
            "city",
            "postal_code",
            "phone",
            "card_number",
            "card_name",
            "card_expiry",
            "card_cvv",
        )
    }
    page.set_locator(SHOP.price, text="$1,299.99")
    fields["checkout"] = page.set_locator(SHOP.checkout)
    fields["place_order"] = page.set_locator(SHOP.place_order)
    page.set_locator(SHOP.order_confirmation, text="Order #1001", visible=confirmed)
    return fields


class TestCheckout:
    """Tests for the checkout flow."""

    @pytest.mark.asyncio
    async def test_full_guest_checkout(self, page, shop_task, profile):
        fields = checkout_page(page)
        strategy = ShopifyStrategy(page, shop_task, profile)

        outcome = await strategy.checkout()

        assert outcome.success is True
        assert outcome.order_reference == "Order #1001"
        assert outcome.price == 1299.99
        assert "https://shop.example.com/cart" in page.visited
        assert fields["checkout"].clicks == 1
        assert fields["email"].filled == ["ada@example.com"]
        assert fields["address1"].filled == ["12 Analytical Way"]
        assert fields["postal_code"].filled == ["N1 9GU"]
        assert fields["card_number"].filled == ["4111111111111111"]
        assert fields["card_expiry"].filled == ["04 / 29"]
        assert fields["card_cvv"].filled == ["123"]

    @pytest.mark.asyncio
    async def test_no_confirmation_is_unsuccessful(self, page, shop_task, profile):
        checkout_page(page, confirmed=False)
        strategy = ShopifyStrategy(page, shop_task, profile)

        outcome = await strategy.checkout()

        assert outcome.success is False
        assert outcome.price == 1299.99

    @pytest.mark.asyncio
    async def test_place_order_failure(self, page, shop_task, profile):
        checkout_page(page)
        page.set_locator(SHOP.place_order, click_error=RuntimeError("detached"))
        strategy = ShopifyStrategy(page, shop_task, profile)

        with pytest.raises(CheckoutError, match="detached"):
            await strategy.checkout()

    @pytest.mark.asyncio
    async def test_checkout_requires_profile(self, page, shop_task):
        strategy = ShopifyStrategy(page, shop_task)

        with pytest.raises(CheckoutError):
            await strategy.checkout()

    @pytest.mark.asyncio
    async def test_submit_captcha_reports_block(self, page):
        task = Task(retailer="amazon", product_id="B0TEST")
        strategy = AmazonStrategy(page, task)

        assert await strategy.submit_captcha() is True
        page.set_locator(AMZ.captcha)
        assert await strategy.submit_captcha() is False


# ============================================================================
# SIGN-IN
# ============================================================================


class TestSignIn:
    """Tests for account sign-in."""

    @pytest.fixture
    def member(self, profile) -> CheckoutProfile:
        profile.account_email = "ada@example.com"
        profile.account_password = "hunter2"
        return profile

    @pytest.mark.asyncio
    async def test_guest_without_account(self, page, profile):
        strategy = AmazonStrategy(page, Task(retailer="amazon", product_id="B0TEST"), profile)

        assert await strategy.login() is True
        assert page.visited == []

    @pytest.mark.asyncio
    async def test_successful_sign_in(self, page, member):
        email = page.set_locator(AMZ.login_email)
        submit = page.set_locator(AMZ.login_submit)
        strategy = AmazonStrategy(page, Task(retailer="amazon", product_id="B0TEST"), member)

        assert await strategy.login() is True
        assert page.visited == ["https://www.amazon.com/ap/signin"]
        assert email.filled == ["ada@example.com"]
        assert submit.clicks == 1

    @pytest.mark.asyncio
    async def test_rejected_sign_in(self, page, member):
        page.set_locator(AMZ.login_email)
        password = page.set_locator(AMZ.login_password)
        page.set_locator(AMZ.login_submit)
        strategy = AmazonStrategy(page, Task(retailer="amazon", product_id="B0TEST"), member)

        assert await strategy.login() is False
        assert password.filled == ["hunter2"]

    @pytest.mark.asyncio
    async def test_captcha_after_sign_in(self, page, member):
        page.set_locator(AMZ.login_email)
        page.set_locator(AMZ.login_submit)
        page.set_locator(AMZ.captcha)
        strategy = AmazonStrategy(page, Task(retailer="amazon", product_id="B0TEST"), member)

        assert await strategy.login() is False

    @pytest.mark.asyncio
    async def test_missing_sign_in_form(self, page, member):
        strategy = AmazonStrategy(page, Task(retailer="amazon", product_id="B0TEST"), member)

        with pytest.raises(SelectorNotFoundError):
            await strategy.login()
