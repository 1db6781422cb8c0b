"""Amazon (US)."""

from __future__ import annotations

from cartpilot.plugins.strategies.base import Selectors, SignInStrategy


class AmazonStrategy(SignInStrategy):
    """Amazon product pages; account sign-in before checkout."""

    name = "amazon"
    product_url_template = "https://www.amazon.com/dp/{product_id}"
    cart_url = "https://www.amazon.com/gp/cart/view.html"
    login_url = "https://www.amazon.com/ap/signin"

    selectors = Selectors(
        title="#productTitle",
        add_to_cart="#add-to-cart-button",
        size="#native_dropdown_selected_size_name",
        color="#variation_color_name .a-declarative",
        price=".a-price .a-offscreen, #priceblock_ourprice",
        captcha='#captchacharacters, img[src*="captcha"]',
        checkout="#sc-buy-box-ptc-button",
        login_email="#ap_email",
        login_password="#ap_password",
        login_submit="#continue, #signInSubmit",
        continue_buttons=(
            'input[name="shipOptionSelector"]',
            'input[name="ppw-instrumentRowSelection"]',
        ),
        place_order="#submitOrderButtonId, #placeYourOrder",
        order_confirmation=".order-thank-you-message, #widget-purchaseConfirmationStatus",
        order_number="#orderId, .a-text-bold bdi",
    )

    async def check_availability(self) -> bool:
        if not await super().check_availability():
            return False
        # Third-party-only listings keep the button but say so in #availability
        availability = (await self.text("#availability") or "").lower()
        return "unavailable" not in availability and "out of stock" not in availability
