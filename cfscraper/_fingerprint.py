"""Browser identity: Chrome emulation profile, User-Agent, sec-ch-ua.

The TLS cipher suite, extension order and HTTP/2 settings all come from
rnet's ``Emulation`` profile. "Cipher rotation" therefore means moving to
another Chrome profile, and with it a matching User-Agent and client
hints. Once a challenge is solved the identity is pinned, because
``cf_clearance`` is bound to the fingerprint that earned it.
"""

import logging
import platform
import random
import re

from rnet import Emulation

logger = logging.getLogger("cfscraper")

# Rotation stays within the newest profiles; old Chrome builds stand out.
ROTATION_POOL_SIZE = 3

# ---------------------------------------------------------------------------
# sec-ch-ua GREASE algorithm (Chromium user_agent_utils.cc)
# ---------------------------------------------------------------------------

_GREASY_CHARS = [" ", "(", ":", "-", ".", "/", ")", ";", "=", "?", "_"]
_GREASED_VERSIONS = ["8", "99", "24"]
_BRAND_ORDER = [
    [0, 1, 2],
    [0, 2, 1],
    [1, 0, 2],
    [1, 2, 0],
    [2, 0, 1],
    [2, 1, 0],
]


def generate_sec_ch_ua(
    major_version: int, brand: str = "Google Chrome"
) -> str:
    """sec-ch-ua value Chrome sends for ``major_version``.

    The GREASE brand, its version and the brand order are all seeded by
    the major version, so the output is deterministic.
    """
    seed = major_version
    grease_brand = (
        f"Not{_GREASY_CHARS[seed % 11]}A{_GREASY_CHARS[(seed + 1) % 11]}Brand"
    )
    brands = [
        (grease_brand, _GREASED_VERSIONS[seed % 3]),
        ("Chromium", str(major_version)),
        (brand, str(major_version)),
    ]
    order = _BRAND_ORDER[seed % 6]
    shuffled: list[tuple[str, str]] = [("", "")] * 3
    for i in range(3):
        shuffled[order[i]] = brands[i]
    return ", ".join(f'"{b}";v="{v}"' for b, v in shuffled)


# ---------------------------------------------------------------------------
# Platform
# ---------------------------------------------------------------------------

_UA_PLATFORMS = {
    "Darwin": ('"macOS"', "Macintosh; Intel Mac OS X 10_15_7"),
    "Linux": ('"Linux"', "X11; Linux x86_64"),
    "Windows": ('"Windows"', "Windows NT 10.0; Win64; x64"),
}


def _detect_platform() -> tuple[str, str]:
    """(sec-ch-ua-platform, UA platform token) for the host OS."""
    return _UA_PLATFORMS.get(platform.system(), _UA_PLATFORMS["Windows"])


_HOST_PLATFORM, _HOST_UA_TOKEN = _detect_platform()


def chrome_user_agent(major_version: int) -> str:
    """Reduced Chrome User-Agent string, as shipped since Chrome 101."""
    return (
        f"Mozilla/5.0 ({_HOST_UA_TOKEN}) AppleWebKit/537.36 "
        f"(KHTML, like Gecko) Chrome/{major_version}.0.0.0 Safari/537.36"
    )


# ---------------------------------------------------------------------------
# Chrome profile discovery
# ---------------------------------------------------------------------------

_CHROME_RE = re.compile(r"^Chrome(\d+)$")


def _discover_chrome_profiles() -> list[tuple[int, Emulation]]:
    """Chrome Emulation profiles known to rnet, newest first."""
    profiles = []
    for name in dir(Emulation):
        m = _CHROME_RE.match(name)
        if m:
            profiles.append((int(m.group(1)), getattr(Emulation, name)))
    profiles.sort(key=lambda p: p[0], reverse=True)
    return profiles


CHROME_PROFILES: list[tuple[int, Emulation]] = _discover_chrome_profiles()

_VERSION_BY_REPR: dict[str, int] = {
    repr(em): ver for ver, em in CHROME_PROFILES
}


def chrome_version(emulation: Emulation) -> int | None:
    """Chrome major version of an Emulation profile, or None."""
    return _VERSION_BY_REPR.get(repr(emulation))


# ---------------------------------------------------------------------------
# FingerprintManager
# ---------------------------------------------------------------------------


class FingerprintManager:
    """Current browser identity, per-request rotation, and pinning."""

    def __init__(
        self,
        initial: Emulation | None = None,
        pool_size: int = ROTATION_POOL_SIZE,
    ):
        self._pool = [em for _, em in CHROME_PROFILES[:pool_size]]
        if initial is None:
            initial = self._pool[0] if self._pool else CHROME_PROFILES[0][1]
        self._current = initial
        self._pinned = False
        self._rotation_count = 0

    @property
    def current(self) -> Emulation:
        return self._current

    @property
    def pinned(self) -> bool:
        return self._pinned

    @property
    def version(self) -> int | None:
        return chrome_version(self._current)

    @property
    def user_agent(self) -> str:
        return chrome_user_agent(self.version or CHROME_PROFILES[0][0])

    def pin(self) -> None:
        """Pin current fingerprint (cookies are bound to this TLS identity)."""
        if not self._pinned:
            self._pinned = True
            logger.debug("Fingerprint pinned to %s", self._current)

    def rotate(self) -> bool:
        """Advance to the next profile in the pool.

        Returns True if the identity changed and the client must be
        rebuilt. No-op while pinned.
        """
        if self._pinned or len(self._pool) < 2:
            return False
        self._rotation_count += 1
        nxt = self._pool[self._rotation_count % len(self._pool)]
        if nxt == self._current:
            return False
        self._current = nxt
        logger.debug("Rotated fingerprint to %s", self._current)
        return True

    def reset(self, emulation: Emulation | None = None) -> None:
        """Full identity reset: new (random by default) profile, unpinned."""
        if emulation is None and self._pool:
            emulation = random.choice(self._pool)
        self._current = emulation or CHROME_PROFILES[0][1]
        self._pinned = False
        self._rotation_count = 0
        logger.debug("Fingerprint reset to %s", self._current)

    def identity_headers(self) -> dict[str, str]:
        """User-Agent plus the low-entropy client hints for the current profile."""
        headers = {"User-Agent": self.user_agent}
        ver = self.version
        if ver is not None:
            headers.update({
                "sec-ch-ua": generate_sec_ch_ua(ver),
                "sec-ch-ua-mobile": "?0",
                "sec-ch-ua-platform": _HOST_PLATFORM,
            })
        return headers
