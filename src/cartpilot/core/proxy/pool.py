"""Proxy pool: inventory, health checks and selection."""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from cartpilot.core.events.types import EventType
from cartpilot.core.models.config import ProxyPoolConfig
from cartpilot.core.models.proxy import (
    ImportReport,
    Proxy,
    ProxyStatus,
    ProxyTestResult,
    ProxyType,
)
from cartpilot.core.models.task import utc_now
from cartpilot.core.proxy.interchange import read_proxy_file, write_proxy_file

if TYPE_CHECKING:
    from cartpilot.core.events.bus import AsyncEventBus
    from cartpilot.core.security.vault import CredentialVault
    from cartpilot.core.storage.database import Database

logger = structlog.get_logger(__name__)


class ProxyPoolManager:
    """Manages proxy records and their health.

    Passwords are sealed with the vault before they reach the database and
    unsealed on the way out; callers always see plaintext.
    """

    def __init__(
        self,
        database: Database,
        vault: CredentialVault,
        config: ProxyPoolConfig | None = None,
        events: AsyncEventBus | None = None,
    ) -> None:
        self.database = database
        self.vault = vault
        self.config = config or ProxyPoolConfig()
        self._events = events

    # ==================== CRUD ====================

    async def add_proxy(
        self,
        host: str,
        port: int,
        proxy_type: ProxyType = ProxyType.HTTP,
        username: str | None = None,
        password: str | None = None,
        location: str | None = None,
    ) -> Proxy:
        """Add a proxy to the pool."""
        proxy = Proxy(
            host=host,
            port=port,
            proxy_type=proxy_type,
            username=username,
            password=password,
            location=location,
        )
        await self.database.create_proxy(self._seal(proxy))
        logger.info("Proxy added", proxy_id=proxy.id, server=proxy.server)
        return proxy

    async def get_proxy(self, proxy_id: str) -> Proxy | None:
        stored = await self.database.get_proxy(proxy_id)
        return self._unseal(stored) if stored else None

    async def list_proxies(self, status: ProxyStatus | None = None) -> list[Proxy]:
        return [self._unseal(p) for p in await self.database.list_proxies(status)]

    async def update_proxy(self, proxy_id: str, **fields: Any) -> bool:
        """Update proxy attributes; returns False for an unknown id."""
        if fields.get("password"):
            fields["password"] = self.vault.encrypt(fields["password"])
        return await self.database.update_proxy(proxy_id, **fields)

    async def delete_proxy(self, proxy_id: str) -> bool:
        deleted = await self.database.delete_proxy(proxy_id)
        if deleted:
            logger.info("Proxy deleted", proxy_id=proxy_id)
        return deleted

    def _seal(self, proxy: Proxy) -> Proxy:
        if not proxy.password:
            return proxy
        return replace(proxy, password=self.vault.encrypt(proxy.password))

    def _unseal(self, proxy: Proxy) -> Proxy:
        if not proxy.password:
            return proxy
        return replace(proxy, password=self.vault.decrypt(proxy.password))

    # ==================== Health ====================

    async def test_proxy(self, proxy_id: str, probe_url: str | None = None) -> ProxyTestResult:
        """
        Probe the proxy with one GET request and record the outcome.

        Never raises: timeouts, transport errors, unsupported protocols,
        non-2xx responses and unknown ids all yield ProxyTestResult.failure().

        Args:
            proxy_id: Proxy to test
            probe_url: URL to fetch through the proxy (defaults to config)
        """
        url = probe_url or self.config.probe_url

        try:
            proxy = await self.get_proxy(proxy_id)
        except Exception as e:
            logger.error("Failed to load proxy for test", proxy_id=proxy_id, error=str(e))
            return ProxyTestResult.failure()

        if proxy is None:
            logger.warning("Proxy not found", proxy_id=proxy_id)
            return ProxyTestResult.failure()

        result = await self._probe(proxy, url)
        await self._record(proxy_id, result)

        if self._events is not None:
            await self._events.emit(
                EventType.PROXY_TESTED,
                {
                    "proxy_id": proxy_id,
                    "success": result.success,
                    "response_time_ms": result.response_time_ms,
                },
                source="proxy_pool",
            )

        return result

    async def _probe(self, proxy: Proxy, url: str) -> ProxyTestResult:
        timeout = self.config.timeout
        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._fetch(proxy, url, timeout), timeout=timeout)
        except TimeoutError:
            logger.info("Proxy test timed out", proxy_id=proxy.id, timeout=timeout)
            return ProxyTestResult.failure()
        except Exception as e:
            logger.info("Proxy test failed", proxy_id=proxy.id, error=str(e))
            return ProxyTestResult.failure()

        if not response.is_success:
            logger.info("Proxy test rejected", proxy_id=proxy.id, status=response.status_code)
            return ProxyTestResult.failure()

        latency = (time.perf_counter() - start) * 1000
        logger.info("Proxy test passed", proxy_id=proxy.id, response_time_ms=round(latency, 1))
        return ProxyTestResult(success=True, response_time_ms=latency)

    async def _fetch(self, proxy: Proxy, url: str, timeout: float) -> httpx.Response:
        async with httpx.AsyncClient(
            proxy=proxy.url,
            timeout=timeout,
            verify=False,
            follow_redirects=True,
        ) as client:
            return await client.get(url)

    async def _record(self, proxy_id: str, result: ProxyTestResult) -> None:
        fields: dict[str, Any] = {
            "status": ProxyStatus.ACTIVE if result.success else ProxyStatus.INACTIVE,
            "last_tested_at": utc_now(),
            "response_time_ms": result.response_time_ms if result.success else None,
        }

        try:
            await self.database.update_proxy(proxy_id, **fields)
        except Exception as e:
            logger.error("Failed to record proxy test", proxy_id=proxy_id, error=str(e))

    async def test_all(
        self,
        probe_url: str | None = None,
        concurrent: int | None = None,
    ) -> dict[str, ProxyTestResult]:
        """Test every proxy with bounded concurrency."""
        semaphore = asyncio.Semaphore(concurrent or self.config.concurrent)
        proxies = await self.database.list_proxies()

        async def check(proxy_id: str) -> tuple[str, ProxyTestResult]:
            async with semaphore:
                return proxy_id, await self.test_proxy(proxy_id, probe_url)

        results = dict(await asyncio.gather(*(check(p.id) for p in proxies)))

        logger.info(
            "Health check complete",
            total=len(results),
            healthy=sum(1 for r in results.values() if r.success),
        )
        return results

    # ==================== Selection ====================

    async def select_best_proxy(
        self,
        retailer: str,
        location: str | None = None,
    ) -> str | None:
        """
        Pick the active proxy with the lowest recorded latency.

        Args:
            retailer: Retailer the proxy is for (logged only)
            location: Exact location a candidate must have

        Returns:
            Proxy id, or None when no candidate qualifies
        """
        try:
            proxy = await self.database.find_fastest_proxy(location)
        except Exception as e:
            logger.error("Proxy selection failed", retailer=retailer, error=str(e))
            return None

        if proxy is None:
            logger.info("No proxy available", retailer=retailer, location=location)
            return None

        logger.debug(
            "Selected proxy",
            retailer=retailer,
            proxy_id=proxy.id,
            response_time_ms=proxy.response_time_ms,
        )
        return proxy.id

    # ==================== Import / Export ====================

    async def import_proxies(
        self,
        path: Path | str,
        proxy_type: ProxyType = ProxyType.HTTP,
        location: str | None = None,
    ) -> ImportReport:
        """Import a proxy list file; malformed lines are reported, not fatal."""
        proxies, errors = read_proxy_file(path, proxy_type)
        report = ImportReport(total=len(proxies) + len(errors), failed=len(errors), errors=errors)

        for proxy in proxies:
            if location:
                proxy.location = location
            try:
                await self.database.create_proxy(self._seal(proxy))
                report.imported += 1
            except Exception as e:
                report.failed += 1
                report.errors.append(f"{proxy.server}: {e}")

        logger.info("Proxies imported", path=str(path), **report.to_dict())

        if self._events is not None:
            await self._events.emit(EventType.PROXY_IMPORTED, report.to_dict(), source="proxy_pool")

        return report

    async def export_proxies(self, path: Path | str) -> int:
        """Write every proxy, credentials included, to a list file."""
        count = write_proxy_file(path, await self.list_proxies())
        logger.info("Proxies exported", path=str(path), count=count)
        return count
