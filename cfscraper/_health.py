"""Session health: age and 403 history that decide when to refresh."""

import logging
import time

logger = logging.getLogger("cfscraper")

# A 403 this recent marks the session stale.
RECENT_403_WINDOW = 60.0

# Probe statuses that count as a successful refresh.
REFRESH_OK_STATUSES = frozenset({200, 301, 302, 304})

# Anti-bot cookies purged on refresh.
CHALLENGE_COOKIES = (
    "cf_clearance",
    "cf_chl_2",
    "cf_chl_prog",
    "cf_chl_rc_ni",
    "cf_turnstile",
    "__cf_bm",
)


class SessionHealth:
    """Per-scraper session counters.

    The scraper consults ``is_stale()`` before each dispatch and calls
    ``reset()`` when it refreshes. ``reset()`` leaves ``last_403_at``
    alone: a session keeps refreshing for 60s after its last 403.
    """

    def __init__(self, refresh_interval: float = 3600.0):
        self.refresh_interval = refresh_interval
        self.started_at = time.monotonic()
        self.request_count = 0
        self.last_403_at: float | None = None

    @property
    def age(self) -> float:
        return time.monotonic() - self.started_at

    def is_stale(self) -> bool:
        if self.age > self.refresh_interval:
            logger.debug(
                "Session is %.0fs old (interval %.0fs), stale",
                self.age,
                self.refresh_interval,
            )
            return True
        if (
            self.last_403_at is not None
            and time.monotonic() - self.last_403_at < RECENT_403_WINDOW
        ):
            logger.debug("Recent 403 on this session, stale")
            return True
        return False

    def record_request(self) -> None:
        self.request_count += 1

    def record_403(self) -> None:
        self.last_403_at = time.monotonic()

    def reset(self) -> None:
        self.started_at = time.monotonic()
        self.request_count = 0
