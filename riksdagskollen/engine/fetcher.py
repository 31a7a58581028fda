"""Feed fetching across search strategies, proxies and bounded retries."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable
from urllib.parse import quote

import httpx
import structlog

from ..config import FetchSettings
from ..infra import ProxyPool, ProxyRecord
from ..state import FetchResult
from .feed import filter_relevant, parse_feed
from .strategies import StrategyBook

Sleep = Callable[[float], Awaitable[None]]

ACCEPT_HEADER = "application/rss+xml, application/xml, text/xml"
ALL_ATTEMPTS_FAILED = "all attempts failed"


class FeedFetcher:
    """Try strategies (outer), proxies (inner) and retries (innermost).

    The first attempt producing at least one relevant item wins. Exhausting
    every combination yields an unsuccessful ``FetchResult``; nothing raises.
    """

    def __init__(
        self,
        settings: FetchSettings,
        proxy_pool: ProxyPool,
        strategies: StrategyBook,
        client: httpx.AsyncClient,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.proxy_pool = proxy_pool
        self.strategies = strategies
        self.client = client
        self._sleep = sleep
        self._clock = clock
        self.logger = logger or structlog.get_logger("riksdagskollen.fetcher")

    async def fetch_items(self, subject: str, retries: int | None = None) -> FetchResult:
        if retries is None:
            retries = self.settings.retries_per_proxy
        started = self._clock()
        attempts = 0
        proxies_seen: set[str] = set()
        strategies = self.strategies.ordered(self.settings.max_strategies)

        for strategy_index, strategy in enumerate(strategies, start=1):
            feed_url = self.feed_url(strategy.build_query(subject))
            proxies = self.proxy_pool.ordered()
            for proxy_index, proxy in enumerate(proxies):
                proxies_seen.add(proxy.label)
                for retry in range(retries):
                    attempts += 1
                    request_started = self._clock()
                    try:
                        response = await self.client.get(
                            self.proxied_url(proxy, feed_url),
                            headers=self._headers(),
                            timeout=self.settings.request_timeout,
                        )
                        if self._is_failure(response):
                            raise RuntimeError(f"Unexpected status {response.status_code}")
                        payload = self._payload(response, proxy)
                    except Exception as exc:  # noqa: BLE001
                        self.proxy_pool.mark_failure(proxy)
                        self.logger.warning(
                            "fetch_attempt_failed",
                            subject=subject,
                            strategy=strategy.id,
                            proxy=proxy.label,
                            attempt=retry + 1,
                            error=str(exc),
                        )
                        if retry < retries - 1:
                            await self._sleep(self.settings.retry_backoff * (retry + 1))
                        continue

                    self.proxy_pool.mark_success(proxy, self._clock() - request_started)
                    items = filter_relevant(parse_feed(payload), subject)
                    if items:
                        self.strategies.record(strategy.id, True, len(items))
                        self.logger.info(
                            "fetch_succeeded",
                            subject=subject,
                            strategy=strategy.id,
                            proxy=proxy.label,
                            items=len(items),
                        )
                        return FetchResult(
                            success=True,
                            items=items,
                            strategy_used=strategy.id,
                            proxy_used=proxy.label,
                            strategies_attempted=strategy_index,
                            proxies_attempted=len(proxies_seen),
                            total_attempts=attempts,
                            elapsed=self._clock() - started,
                        )
                    # Reachable but nothing relevant: stop retrying, move to the next proxy
                    break
                if proxy_index < len(proxies) - 1:
                    await self._sleep(self.settings.proxy_delay)
            self.strategies.record(strategy.id, False, 0)

        self.logger.warning("fetch_exhausted", subject=subject, attempts=attempts)
        return FetchResult(
            success=False,
            error=ALL_ATTEMPTS_FAILED,
            strategies_attempted=len(strategies),
            proxies_attempted=len(proxies_seen),
            total_attempts=attempts,
            elapsed=self._clock() - started,
        )

    # ------------------------------------------------------------------
    def feed_url(self, query: str) -> str:
        return self.settings.feed_url.replace("{query}", quote(query, safe=""))

    @staticmethod
    def proxied_url(proxy: ProxyRecord, url: str) -> str:
        if not proxy.prefix:
            return url
        return proxy.prefix + quote(url, safe="")

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.settings.user_agent, "Accept": ACCEPT_HEADER}

    @staticmethod
    def _payload(response: httpx.Response, proxy: ProxyRecord) -> str:
        if proxy.endpoint.json_envelope:
            return str(response.json().get("contents") or "")
        return response.text

    @staticmethod
    def _is_failure(response: httpx.Response) -> bool:
        return response.status_code >= 400 or response.status_code < 200


__all__ = ["ALL_ATTEMPTS_FAILED", "FeedFetcher"]
