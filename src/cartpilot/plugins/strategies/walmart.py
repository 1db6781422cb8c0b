"""Walmart."""

from __future__ import annotations

from cartpilot.plugins.strategies.base import Selectors, SelectorStrategy


def _auto(automation_id: str) -> str:
    return f'[data-automation-id="{automation_id}"]'


class WalmartStrategy(SelectorStrategy):
    """Walmart guest checkout."""

    name = "walmart"
    product_url_template = "https://www.walmart.com/ip/{product_id}"
    cart_url = "https://www.walmart.com/cart"

    selectors = Selectors(
        title=_auto("product-title"),
        add_to_cart=_auto("add-to-cart-button"),
        sold_out=_auto("out-of-stock-message"),
        size=f"{_auto('variant-attribute-selector-group-size')} button",
        color=f"{_auto('variant-attribute-selector-group-color')} button",
        captcha=_auto("captcha-container"),
        checkout=_auto("proceed-to-checkout-button"),
        guest_checkout=_auto("guest-checkout-button"),
        first_name=f"{_auto('shipping-address-form')} input[name='firstName']",
        last_name=f"{_auto('shipping-address-form')} input[name='lastName']",
        address1=f"{_auto('shipping-address-form')} input[name='addressLineOne']",
        city=f"{_auto('shipping-address-form')} input[name='city']",
        postal_code=f"{_auto('shipping-address-form')} input[name='postalCode']",
        phone=f"{_auto('shipping-address-form')} input[name='phone']",
        continue_buttons=(_auto("delivery-type-option"), _auto("continue-to-payment-button")),
        card_number=_auto("cc-number-input"),
        card_expiry=_auto("cc-expiry-input"),
        card_cvv=_auto("cc-cvv-input"),
        place_order=_auto("place-order-button"),
        order_confirmation=_auto("order-confirmation-number"),
    )
