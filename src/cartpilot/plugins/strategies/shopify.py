"""Shopify storefronts (general-purpose default strategy)."""

from __future__ import annotations

from urllib.parse import urlsplit

from cartpilot.plugins.strategies.base import Selectors, SelectorStrategy


class ShopifyStrategy(SelectorStrategy):
    """Generic Shopify theme flow with guest checkout.

    Also used for retailers without a dedicated strategy.
    """

    name = "shopify"
    selectors = Selectors(
        title=".product__title, .product-single__title, h1.title",
        add_to_cart='button[name="add"], .add-to-cart, #AddToCart',
        sold_out=".sold-out, .disabled",
        size='select[name="options[Size]"], .single-option-selector__radio[name="Size"]',
        color='.swatch-element, .color-option, select[name="options[Color]"]',
        price=".product__price, .product-single__price, .price--sale",
        go_to_cart='.view-cart, .cart__toggle-button, a[href="/cart"]',
        checkout='.cart__checkout, .checkout-button, button[name="checkout"]',
        email="#checkout_email, #email",
        first_name="#checkout_shipping_address_first_name",
        last_name="#checkout_shipping_address_last_name",
        address1="#checkout_shipping_address_address1",
        city="#checkout_shipping_address_city",
        postal_code="#checkout_shipping_address_zip",
        phone="#checkout_shipping_address_phone",
        continue_buttons=(
            "#continue_button, .step__footer__continue-btn",
            'button[data-trekkie-id="continue_to_payment_method_button"]',
        ),
        card_number='#number, [aria-label="Credit card number"]',
        card_name='#name, [aria-label="Name on card"]',
        card_expiry='#expiry, [aria-label="Expiration date (MM / YY)"]',
        card_cvv='#verification_value, [aria-label="Security code"]',
        place_order=(
            '#continue_button, .step__footer__continue-btn, [data-trekkie-id="complete_order_button"]'
        ),
        order_confirmation=".os-order-number",
    )

    async def go_to_cart(self) -> None:
        # Every storefront serves its cart at /cart on its own domain
        parts = urlsplit(self.task.product_url or "")
        if parts.scheme and parts.netloc:
            await self.open(f"{parts.scheme}://{parts.netloc}/cart")
        else:
            await super().go_to_cart()
