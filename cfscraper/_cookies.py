"""Cookie helpers over the scraper's rnet Jar.

rnet stores response cookies in the jar and replays them on matching
requests. These helpers read the jar back and purge challenge cookies
from it; matching is always left to the jar.
"""

import logging
from urllib.parse import urlparse

logger = logging.getLogger("cfscraper")


def _cookie_url(cookie, url: str) -> str:
    """A URL the jar resolves to ``cookie``.

    Host-only cookies carry no Domain attribute; they belong to the host
    of ``url``.
    """
    parsed = urlparse(url)
    domain = (cookie.domain or "").lstrip(".") or parsed.hostname or ""
    return f"{parsed.scheme or 'https'}://{domain}{cookie.path or '/'}"


def cookies_for_url(jar, url: str) -> list:
    """Every cookie in ``jar`` that would be sent to ``url``."""
    return [c for c in jar.get_all() if jar.get(c.name, url) is not None]


def cookie_values(jar, url: str, names) -> dict[str, str]:
    """name → value for each of ``names`` the jar would send to ``url``."""
    values = {}
    for name in names:
        cookie = jar.get(name, url)
        if cookie is not None:
            values[name] = cookie.value
    return values


def purge_cookies(jar, names, url: str) -> int:
    """Remove ``names`` from every domain in ``jar``. Returns how many went.

    Best effort: a cookie the jar refuses to drop is logged and skipped.
    """
    names = set(names)
    removed = 0
    for cookie in jar.get_all():
        if cookie.name not in names:
            continue
        try:
            jar.remove(cookie.name, _cookie_url(cookie, url))
        except Exception as e:
            logger.debug("Failed to purge cookie %s: %s", cookie.name, e)
            continue
        removed += 1
    if removed:
        logger.debug("Purged %d challenge cookie(s)", removed)
    return removed
