"""cfscraper -- async HTTP client that solves Cloudflare IUAM challenges."""

import logging
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("cfscraper")
except PackageNotFoundError:
    __version__ = "0.0.0"

from cfscraper._async import TOKEN_COOKIES, AsyncScraper
from cfscraper._base import DEFAULT_HEADERS
from cfscraper._captcha import (
    CaptchaSolver,
    register_captcha_provider,
    unregister_captcha_provider,
)
from cfscraper._challenge import ChallengeKind, classify
from cfscraper._errors import (
    CaptchaError,
    CaptchaProviderMissing,
    ChallengeExtractionError,
    ChallengeSolveError,
    ConnectionFailed,
    CookiesNotFound,
    FirewallBlocked,
    InterpreterError,
    LoopProtection,
    ScraperError,
    ScraperHTTPError,
    TooManyRedirects,
    UnsupportedChallenge,
)
from cfscraper._interpreters import available_interpreters, get_interpreter
from cfscraper._proxy import ProxyManager
from cfscraper._response import ScraperResponse
from cfscraper._stealth import StealthMode

__all__ = [
    "__version__",
    "AsyncScraper",
    "ScraperResponse",
    "ChallengeKind",
    "classify",
    "ScraperError",
    "ScraperHTTPError",
    "FirewallBlocked",
    "UnsupportedChallenge",
    "ChallengeExtractionError",
    "ChallengeSolveError",
    "LoopProtection",
    "CaptchaProviderMissing",
    "CaptchaError",
    "InterpreterError",
    "ConnectionFailed",
    "TooManyRedirects",
    "CookiesNotFound",
    "CaptchaSolver",
    "register_captcha_provider",
    "unregister_captcha_provider",
    "ProxyManager",
    "StealthMode",
    "available_interpreters",
    "get_interpreter",
    "DEFAULT_HEADERS",
    "TOKEN_COOKIES",
    "create_scraper",
    "get_tokens",
    "get_cookie_string",
]

# Silent by default; callers opt in via logging.getLogger("cfscraper").setLevel(...)
logging.getLogger("cfscraper").addHandler(logging.NullHandler())


def create_scraper(**options) -> AsyncScraper:
    """Module-level convenience: build an AsyncScraper."""
    return AsyncScraper(**options)


async def get_tokens(url: str, **options) -> tuple[dict[str, str], str]:
    """Module-level convenience: one-shot get_tokens with a fresh scraper."""
    async with AsyncScraper(**options) as s:
        return await s.get_tokens(url)


async def get_cookie_string(url: str, **options) -> tuple[str, str]:
    """Module-level convenience: one-shot get_cookie_string with a fresh scraper."""
    async with AsyncScraper(**options) as s:
        return await s.get_cookie_string(url)
