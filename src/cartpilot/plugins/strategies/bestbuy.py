"""Best Buy."""

from __future__ import annotations

from cartpilot.plugins.strategies.base import Selectors, SignInStrategy


class BestBuyStrategy(SignInStrategy):
    name = "bestbuy"
    product_url_template = "https://www.bestbuy.com/site/-/{product_id}.p"
    cart_url = "https://www.bestbuy.com/cart"

    selectors = Selectors(
        title=".sku-title h1",
        add_to_cart=".add-to-cart-button:not(.btn-disabled)",
        sold_out=".add-to-cart-button.btn-disabled",
        size=".variation-option-selector",
        color=".color-swatches-list button",
        price=".priceView-customer-price span",
        captcha='iframe[src*="recaptcha"]',
        checkout=".checkout-buttons__checkout",
        guest_checkout=".checkout-guest",
        login_email="#fld-e",
        login_password="#fld-p1",
        login_submit=".cia-form__controls__submit",
        email="#user\\.emailAddress",
        phone="#user\\.phone",
        first_name='input[id$="firstName"]',
        last_name='input[id$="lastName"]',
        address1='input[id$="street"]',
        city='input[id$="city"]',
        postal_code='input[id$="zipcode"]',
        continue_buttons=(".shipping-option input", ".button--continue button"),
        card_number="#optimized-cc-card-number",
        card_expiry_month="#expiration-month",
        card_expiry_year="#expiration-year",
        card_cvv="#credit-card-cvv",
        place_order=".button__fast-track",
        order_confirmation=".order-number",
    )
