"""
Basic Checkout Example

Monitor one Shopify product and check out as soon as it is in stock.
"""
import asyncio

from cartpilot.core.engine.orchestrator import TaskOrchestrator
from cartpilot.core.events.sink import CollectingSink
from cartpilot.core.models.config import Config
from cartpilot.core.models.profile import Address, CheckoutProfile, PaymentCard
from cartpilot.core.models.task import Task
from cartpilot.core.registry.manager import PluginManager
from cartpilot.core.security.vault import FernetVault
from cartpilot.core.storage.database import Database
from cartpilot.plugins.browsers import PlaywrightEngine


async def main():
    config = Config()
    database = Database(config.database, vault=FernetVault.from_config(config.vault))
    await database.init()

    plugins = PluginManager()
    plugins.load_builtin_plugins()

    sink = CollectingSink()
    orchestrator = TaskOrchestrator(
        store=database,
        sink=sink,
        strategies=plugins.strategies,
        browser_engine=PlaywrightEngine(config.browser),
        config=config,
        plugins=plugins,
    )

    try:
        profile = await database.create_profile(
            CheckoutProfile(
                name="Example",
                email="shopper@example.com",
                shipping=Address(first_name="Sam", last_name="Shopper", line1="1 Main St",
                                 city="Springfield", state="IL", postal_code="62701"),
                card=PaymentCard(holder="Sam Shopper", number="4242424242424242",
                                 expiry_month="12", expiry_year="2030", cvv="123"),
            )
        )
        task = await database.create_task(
            Task(
                retailer="shopify",
                product_url="https://shop.example.com/products/limited-tee",
                size="M",
                profile_id=profile.id,
                monitor_delay_ms=5000,
            )
        )

        await orchestrator.start(task)
        update = await orchestrator.wait(task.id)

        print(f"Final state: {update.state.value}")
        if update.result:
            print(f"Order: {update.result.order_reference} ({update.result.price})")
        for event in sink.for_task(task.id):
            print(f"  {event.status} {event.error or ''}")

    finally:
        await orchestrator.close()
        await database.close()


if __name__ == "__main__":
    asyncio.run(main())
