"""Nike."""

from __future__ import annotations

from cartpilot.plugins.strategies.base import Selectors, SignInStrategy


class NikeStrategy(SignInStrategy):
    """Nike launch and product pages; members sign in, others check out as guests."""

    name = "nike"
    cart_url = "https://www.nike.com/cart"
    wait_until = "load"

    selectors = Selectors(
        title=".product-info h1, .product-title, .headline-5",
        add_to_cart=(
            '.add-to-cart-btn, button.ncss-btn-primary-dark, button[data-qa="add-to-cart"]'
        ),
        sold_out=".out-of-stock, .product-status.disabled span, button.add-to-cart-btn:disabled",
        size=(
            '[data-qa="size-dropdown"] button, button[data-test="size-dropdown-option"]'
        ),
        price=".product-price",
        captcha='iframe[src*="recaptcha"], iframe[src*="hcaptcha"]',
        checkout=".fulfillment-btn",
        guest_checkout='.guest-checkout, button[data-automation="guest-checkout-button"]',
        login_email='input[type="email"], input[data-componentname="emailAddress"]',
        login_password='input[type="password"], input[data-componentname="password"]',
        login_submit=(
            '.nike-unite-submit-button button, button[data-automation="continue-button"]'
        ),
        email='#email, input[name="email"]',
        first_name='#firstName, input[name="firstName"]',
        last_name='#lastName, input[name="lastName"]',
        address1='#address1, input[name="address1"]',
        city='#city, input[name="city"]',
        postal_code='#postalCode, input[name="postalCode"]',
        phone='#phoneNumber, input[name="phoneNumber"]',
        continue_buttons=('button[data-automation="checkout-payment-continue-button"]',),
        card_number='#creditCardNumber, input[name="creditCardNumber"]',
        card_name='#creditCardName, input[name="creditCardName"]',
        card_expiry_month='#expirationMonth, select[name="expirationMonth"]',
        card_expiry_year='#expirationYear, select[name="expirationYear"]',
        card_cvv='#cvNumber, input[name="cvNumber"]',
        place_order=(
            '.button-continue, button[data-automation="review-and-pay-place-order-button"]'
        ),
        order_confirmation=(
            '.thank-you-title, h3[data-automation="order-confirmation-title"]'
        ),
        order_number='.order-number, [data-automation="order-confirmation-number"]',
    )
