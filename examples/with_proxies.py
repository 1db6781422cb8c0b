"""
Proxy Pool Example

Import a proxy list, health check it and pick the fastest proxy.
"""
import asyncio

from cartpilot.core.models.config import Config
from cartpilot.core.proxy.pool import ProxyPoolManager
from cartpilot.core.security.vault import FernetVault
from cartpilot.core.storage.database import Database


async def main():
    config = Config()
    vault = FernetVault.from_config(config.vault)
    database = Database(config.database, vault=vault)
    await database.init()

    try:
        pool = ProxyPoolManager(database, vault, config.proxy)

        # One proxy per line: host:port or host:port:user:pass
        report = await pool.import_proxies("proxies.txt", location="us")
        print(f"Imported {report.imported}/{report.total} proxies")

        results = await pool.test_all(concurrent=20)
        healthy = sum(1 for r in results.values() if r.success)
        print(f"Healthy: {healthy}/{len(results)}")

        best = await pool.select_best_proxy("amazon", location="us")
        print(f"Fastest proxy for amazon: {best}")

    finally:
        await database.close()


if __name__ == "__main__":
    asyncio.run(main())
