"""Stealth mode: per-request header noise and optional human-like pacing."""

import asyncio
import logging
import random
from urllib.parse import urlparse

logger = logging.getLogger("cfscraper")

_POPULAR_REFERERS = (
    "https://www.google.com/",
    "https://www.bing.com/",
    "https://duckduckgo.com/",
    "https://www.reddit.com/",
    "https://twitter.com/",
)

_ACCEPT_VARIANTS = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,*/*;q=0.8",
)

_ACCEPT_LANGUAGE_VARIANTS = (
    "en-US,en;q=0.9",
    "en-US,en;q=0.8",
    "en-GB,en;q=0.9,en-US;q=0.8",
    "en-US,en;q=0.9,es;q=0.8",
)

_FIREFOX_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,*/*;q=0.8"
)


class StealthMode:
    """Randomizes optional request headers.

    Every request gets its own roll of the dice; headers the caller set
    explicitly are never overwritten.

    Args:
        min_delay: Lower bound of the human-like pause, in seconds.
        max_delay: Upper bound of the human-like pause, in seconds.
        human_like_delays: Sleep a random pause before each request.
        randomize_headers: Add Referer/Accept/DNT/Sec-Fetch noise.
        browser_quirks: Add browser-specific extras (Chrome X-Client-Data).
    """

    def __init__(
        self,
        min_delay: float = 1.0,
        max_delay: float = 5.0,
        human_like_delays: bool = False,
        randomize_headers: bool = True,
        browser_quirks: bool = True,
    ):
        if min_delay > max_delay:
            raise ValueError("min_delay must not exceed max_delay")
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.human_like_delays = human_like_delays
        self.randomize_headers = randomize_headers
        self.browser_quirks = browser_quirks

    def random_delay(self) -> float:
        return random.uniform(self.min_delay, self.max_delay)

    async def pause(self) -> float:
        if not self.human_like_delays:
            return 0.0
        delay = self.random_delay()
        logger.debug("Stealth: pausing %.2fs", delay)
        await asyncio.sleep(delay)
        return delay

    def apply(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None,
        user_agent: str = "",
    ) -> dict[str, str]:
        """Return a copy of ``headers`` with stealth headers mixed in."""
        result = dict(headers or {})
        present = {k.lower() for k in result}

        def put(name: str, value: str) -> None:
            if name.lower() not in present:
                result[name] = value
                present.add(name.lower())

        if self.randomize_headers:
            if random.random() < 0.3:
                put("Referer", self._pick_referer(url))
            if random.random() < 0.1:
                put("Accept", random.choice(_ACCEPT_VARIANTS))
            if random.random() < 0.1:
                put("Accept-Language", random.choice(_ACCEPT_LANGUAGE_VARIANTS))
            if random.random() < 0.15:
                put("DNT", "1")
            if random.random() < 0.2:
                put("Sec-Fetch-Dest", "document")
                put("Sec-Fetch-Mode", "navigate")
                put("Sec-Fetch-Site", random.choice(("none", "same-origin", "cross-site")))
                if method.upper() == "GET" and random.random() < 0.5:
                    put("Sec-Fetch-User", "?1")

        if self.browser_quirks:
            if "Chrome/" in user_agent:
                if random.random() < 0.3:
                    put("X-Client-Data", self._client_data())
            elif "Firefox/" in user_agent and random.random() < 0.2:
                put("Accept", _FIREFOX_ACCEPT)

        return result

    @staticmethod
    def _pick_referer(url: str) -> str:
        parsed = urlparse(url)
        if random.random() < 0.7:
            return f"{parsed.scheme}://{parsed.netloc}/"
        return random.choice(_POPULAR_REFERERS)

    @staticmethod
    def _client_data() -> str:
        # Chrome variations header: base64 of a small protobuf; shape only.
        alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
        return "CI" + "".join(random.choice(alphabet) for _ in range(18)) + "=="
