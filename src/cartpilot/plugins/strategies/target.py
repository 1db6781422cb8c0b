"""Target."""

from __future__ import annotations

from cartpilot.plugins.strategies.base import Selectors, SignInStrategy


def _test(test_id: str, tag: str = "") -> str:
    return f'{tag}[data-test="{test_id}"]'


class TargetStrategy(SignInStrategy):
    name = "target"
    product_url_template = "https://www.target.com/p/-/A-{product_id}"
    cart_url = "https://www.target.com/cart"

    selectors = Selectors(
        title=_test("product-title", "h1"),
        add_to_cart=f"{_test('shipItButton', 'button')}, {_test('pickupButton', 'button')}",
        sold_out=_test("oosMessage", "div"),
        size=f"{_test('sizeBlock', 'div')} button",
        color=f"{_test('colorBlock', 'div')} button",
        price=_test("product-price", "span"),
        captcha='iframe[title="recaptcha challenge"]',
        go_to_cart=_test("cartLink", "a"),
        checkout=_test("checkout-button", "button"),
        guest_checkout=_test("guestCheckoutBtn", "button"),
        login_email='input[id="username"]',
        login_password='input[id="password"]',
        login_submit='button[id="login"]',
        first_name=f"{_test('addressForm', 'form')} input[id='firstName']",
        last_name=f"{_test('addressForm', 'form')} input[id='lastName']",
        address1=f"{_test('addressForm', 'form')} input[id='addressLine1']",
        city=f"{_test('addressForm', 'form')} input[id='city']",
        postal_code=f"{_test('addressForm', 'form')} input[id='zipCode']",
        phone=f"{_test('addressForm', 'form')} input[id='phone']",
        continue_buttons=(_test("shippingMethodRadioButton", "input"),),
        card_number='input[id="creditCardInput-cardNumber"]',
        card_expiry='input[id="creditCardInput-expiration"]',
        card_cvv='input[id="creditCardInput-securityCode"]',
        place_order=_test("placeOrderButton", "button"),
        order_confirmation=_test("confirmationNumber", "span"),
    )
