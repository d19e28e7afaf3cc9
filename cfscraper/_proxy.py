"""Proxy rotation with time-boxed bans.

Strategies:
- ``sequential``: round-robin over the usable proxies
- ``random``: uniform pick
- ``smart``: favour proxies with a good success ratio, with a small
  bonus for rarely used ones, picking randomly among the top three
"""

import logging
import random
import time
from dataclasses import dataclass

logger = logging.getLogger("cfscraper")

STRATEGIES = ("sequential", "random", "smart")
DEFAULT_BAN_TIME = 300.0


def normalize_proxy(proxy: str) -> str:
    """``host:port`` → ``http://host:port``; URLs with a scheme pass through."""
    proxy = proxy.strip()
    if "://" not in proxy:
        return f"http://{proxy}"
    return proxy


@dataclass
class ProxyStats:
    success: int = 0
    failure: int = 0

    @property
    def total(self) -> int:
        return self.success + self.failure

    @property
    def ratio(self) -> float:
        if not self.total:
            return 0.5
        return self.success / self.total

    @property
    def score(self) -> float:
        return self.ratio * 0.8 + (1 / (1 + self.total)) * 0.2


class ProxyManager:
    """Picks a proxy per request and tracks which ones misbehave."""

    def __init__(
        self,
        proxies,
        rotation_strategy: str = "sequential",
        ban_time: float = DEFAULT_BAN_TIME,
    ):
        if rotation_strategy not in STRATEGIES:
            raise ValueError(
                f"Unknown proxy rotation strategy: {rotation_strategy} "
                f"(expected one of {', '.join(STRATEGIES)})"
            )
        if isinstance(proxies, str):
            proxies = [proxies]
        elif isinstance(proxies, dict):
            proxies = list(proxies.values())
        self.proxies: list[str] = [normalize_proxy(p) for p in proxies or []]
        self.rotation_strategy = rotation_strategy
        self.ban_time = ban_time
        self._index = 0
        self._current: str | None = None
        self._banned: dict[str, float] = {}
        self._stats: dict[str, ProxyStats] = {
            p: ProxyStats() for p in self.proxies
        }

    @property
    def current_proxy(self) -> str | None:
        return self._current

    def stats(self, proxy: str) -> ProxyStats:
        """Counters for a managed proxy; unknown proxies read as empty."""
        return self._stats.get(normalize_proxy(proxy)) or ProxyStats()

    def is_banned(self, proxy: str) -> bool:
        return normalize_proxy(proxy) in self._banned

    def _cleanup_banned(self) -> None:
        now = time.monotonic()
        for proxy, until in list(self._banned.items()):
            if until <= now:
                del self._banned[proxy]
                logger.debug("Proxy ban expired: %s", proxy)

    def get_proxy(self) -> str | None:
        """Next proxy URL, or None when none are configured.

        If every proxy is banned the full list is used anyway; a banned
        proxy beats no proxy.
        """
        if not self.proxies:
            return None
        self._cleanup_banned()
        available = [p for p in self.proxies if p not in self._banned]
        if not available:
            logger.warning("All %d proxies banned, reusing them", len(self.proxies))
            available = list(self.proxies)

        if self.rotation_strategy == "random":
            proxy = random.choice(available)
        elif self.rotation_strategy == "smart":
            ranked = sorted(
                available, key=lambda p: self.stats(p).score, reverse=True
            )
            proxy = random.choice(ranked[:3])
        else:
            proxy = available[self._index % len(available)]
            self._index += 1

        self._current = proxy
        return proxy

    def report_success(self, proxy: str) -> None:
        stats = self._stats.get(normalize_proxy(proxy))
        if stats is not None:
            stats.success += 1

    def report_failure(self, proxy: str) -> None:
        proxy = normalize_proxy(proxy)
        if proxy not in self._stats:
            return
        self._stats[proxy].failure += 1
        self._banned[proxy] = time.monotonic() + self.ban_time
        logger.info("Proxy %s banned for %.0fs", proxy, self.ban_time)
