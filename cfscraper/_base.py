"""BaseScraper -- shared configuration and logic, zero I/O."""

import datetime
import logging
from urllib.parse import urlencode, urljoin, urlparse

import brotli
from rnet import Emulation, Jar, Method, Proxy

from cfscraper._fingerprint import FingerprintManager
from cfscraper._health import SessionHealth
from cfscraper._interpreters import get_interpreter
from cfscraper._proxy import DEFAULT_BAN_TIME, ProxyManager
from cfscraper._ratelimit import RequestThrottle
from cfscraper._stealth import StealthMode

logger = logging.getLogger("cfscraper")

_METHOD_MAP: dict[str, Method] = {
    "GET": Method.GET,
    "POST": Method.POST,
    "PUT": Method.PUT,
    "DELETE": Method.DELETE,
    "HEAD": Method.HEAD,
    "OPTIONS": Method.OPTIONS,
    "PATCH": Method.PATCH,
    "TRACE": Method.TRACE,
}


def _to_method(method: str) -> Method:
    """Convert a string HTTP method to rnet Method enum."""
    try:
        return _METHOD_MAP[method.upper()]
    except KeyError:
        raise ValueError(f"Unknown HTTP method: {method}") from None


DEFAULT_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8,"
        "application/signed-exchange;v=b3;q=0.7"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Upgrade-Insecure-Requests": "1",
}

DEFAULT_CONNECT_TIMEOUT = datetime.timedelta(seconds=10)
DEFAULT_TIMEOUT = datetime.timedelta(seconds=30)

# Request kwargs that carry a body; dropped when a redirect becomes a GET.
_BODY_KWARGS = ("form", "json", "body", "multipart")


def _normalize_timeout(val) -> datetime.timedelta:
    if isinstance(val, datetime.timedelta):
        return val
    return datetime.timedelta(seconds=float(val))


_BINARY_CONTENT_PREFIXES = (
    "image/",
    "audio/",
    "video/",
    "font/",
    "application/pdf",
    "application/zip",
    "application/gzip",
    "application/x-gzip",
    "application/octet-stream",
    "application/wasm",
    "application/vnd.",
)


def _is_binary_content_type(content_type: str) -> bool:
    """Check if a Content-Type indicates binary (non-text) content.

    Unknown or missing content types are treated as text, since
    challenge pages are always HTML.
    """
    ct = content_type.lower().split(";")[0].strip()
    if not ct:
        return False
    return any(ct.startswith(p) for p in _BINARY_CONTENT_PREFIXES)


def _decode_headers(header_map) -> dict[str, str]:
    """Decode rnet HeaderMap to lowercase string dict.

    Multi-value headers are joined with "; ". The client jar stores
    Set-Cookie values, so nothing here parses cookies.
    """
    result: dict[str, str] = {}
    for raw_key in header_map.keys():
        k = raw_key.decode("ascii", errors="replace").lower()
        parts = [
            v.decode("utf-8", errors="replace")
            for v in header_map.get_all(k)
        ]
        result[k] = "; ".join(parts)
    return result


def _extract_location(header_map) -> str:
    """Extract Location header from raw HeaderMap without full decode."""
    raw = header_map.get("location")
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return str(raw)


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class BaseScraper:
    """Configuration, identity and header logic shared by the scraper. No I/O.

    Args:
        delay: Seconds to wait before submitting a JS challenge. None
            uses the delay the challenge page itself asks for.
        double_down: Re-request once before treating a captcha as real.
        interpreter: JavaScript interpreter name (``native``, ``v8``,
            ``nodejs``).
        disable_cloudflare_v1: Skip challenge detection entirely.
        disable_cloudflare_v2: Accepted for option compatibility.
        disable_cloudflare_v3: Accepted for option compatibility.
        disable_turnstile: Accepted for option compatibility.
        solve_depth: Consecutive challenges solved before LoopProtection.
        session_refresh_interval: Session age (seconds) that triggers a
            refresh.
        auto_refresh_on_403: Refresh and retry on HTTP 403.
        max_403_retries: Refresh-and-retry budget across 403s.
        min_request_interval: Minimum spacing between dispatches.
        max_concurrent_requests: In-flight request ceiling.
        rotate_tls_ciphers: Rotate the TLS/browser profile per request
            until a challenge is solved.
        allow_brotli: Advertise and decode Brotli.
        captcha: Captcha provider options, e.g. ``{"provider": "name"}``.
        proxies: Proxy URL, list of URLs, or mapping of scheme → URL.
        proxy_options: ``rotation_strategy`` and ``ban_time``.
        enable_stealth: Randomize optional headers per request.
        stealth_options: Keyword arguments for StealthMode.
        request_pre_hook: ``hook(scraper, method, url, kwargs)`` returning
            ``(method, url, kwargs)``.
        request_post_hook: ``hook(scraper, response)`` returning a
            response; returning a different object skips challenge
            handling.
        debug: Log every response at INFO level.
    """

    def __init__(
        self,
        *,
        delay: float | None = None,
        double_down: bool = True,
        interpreter: str = "native",
        disable_cloudflare_v1: bool = False,
        disable_cloudflare_v2: bool = False,
        disable_cloudflare_v3: bool = False,
        disable_turnstile: bool = False,
        solve_depth: int = 3,
        session_refresh_interval: float = 3600.0,
        auto_refresh_on_403: bool = True,
        max_403_retries: int = 3,
        min_request_interval: float = 1.0,
        max_concurrent_requests: int = 1,
        rotate_tls_ciphers: bool = True,
        allow_brotli: bool = True,
        captcha: dict | None = None,
        proxies=None,
        proxy_options: dict | None = None,
        enable_stealth: bool = True,
        stealth_options: dict | None = None,
        request_pre_hook=None,
        request_post_hook=None,
        debug: bool = False,
        emulation: Emulation | None = None,
        headers: dict[str, str] | None = None,
        connect_timeout: datetime.timedelta | float | int | None = None,
        timeout: datetime.timedelta | float | int | None = None,
        follow_redirects: bool = True,
        max_redirects: int = 10,
    ):
        # Fail on a bad interpreter name now, not mid-challenge.
        get_interpreter(interpreter)
        self.interpreter = interpreter

        self.delay = delay
        self.double_down = double_down
        self.disable_cloudflare_v1 = disable_cloudflare_v1
        self.disable_cloudflare_v2 = disable_cloudflare_v2
        self.disable_cloudflare_v3 = disable_cloudflare_v3
        self.disable_turnstile = disable_turnstile
        self.solve_depth = solve_depth
        self.auto_refresh_on_403 = auto_refresh_on_403
        self.max_403_retries = max_403_retries
        self.rotate_tls_ciphers = rotate_tls_ciphers
        self.allow_brotli = allow_brotli
        self.captcha = dict(captcha or {})
        self.debug = debug
        self.follow_redirects = follow_redirects
        self.max_redirects = max_redirects

        if headers is not None:
            self.headers = dict(headers)
        else:
            self.headers = dict(DEFAULT_HEADERS)
            if not allow_brotli:
                self.headers["Accept-Encoding"] = "gzip, deflate"
        self.connect_timeout = (
            _normalize_timeout(connect_timeout)
            if connect_timeout is not None
            else DEFAULT_CONNECT_TIMEOUT
        )
        self.timeout = (
            _normalize_timeout(timeout)
            if timeout is not None
            else DEFAULT_TIMEOUT
        )

        self._fingerprint = FingerprintManager(emulation)
        self._jar = Jar()
        self._health = SessionHealth(session_refresh_interval)
        self._throttle = RequestThrottle(
            min_interval=min_request_interval,
            max_concurrent=max_concurrent_requests,
        )
        self._retry_403_count = 0

        if proxies:
            proxy_options = proxy_options or {}
            self._proxy_manager: ProxyManager | None = ProxyManager(
                proxies,
                rotation_strategy=proxy_options.get(
                    "rotation_strategy", "sequential"
                ),
                ban_time=proxy_options.get("ban_time", DEFAULT_BAN_TIME),
            )
        else:
            self._proxy_manager = None

        if enable_stealth:
            self._stealth: StealthMode | None = StealthMode(
                **(stealth_options or {})
            )
        else:
            self._stealth = None

        self._request_pre_hook = request_pre_hook
        self._request_post_hook = request_post_hook

        self._client_headers = self._compute_client_headers()

        logger.debug(
            "Scraper created with emulation=%s, interpreter=%s, solve_depth=%d",
            self._fingerprint.current,
            self.interpreter,
            self.solve_depth,
        )

    # ------------------------------------------------------------------
    # Identity and headers
    # ------------------------------------------------------------------

    @property
    def emulation(self) -> Emulation:
        return self._fingerprint.current

    @property
    def user_agent(self) -> str:
        return self._client_headers.get("User-Agent", self._fingerprint.user_agent)

    @property
    def retry_403_count(self) -> int:
        return self._retry_403_count

    def _compute_client_headers(self) -> dict[str, str]:
        """Client-level header snapshot: identity headers under session headers.

        Refreshed whenever the fingerprint changes (_build_client_kwargs).
        """
        headers = self._fingerprint.identity_headers()
        headers.update(self.headers)
        return headers

    def _build_headers(
        self, extra: dict[str, str] | None = None,
    ) -> dict[str, str]:
        """Per-request headers as a delta over the client-level headers.

        rnet adds per-request headers on top of client headers, so only
        new or changed values are returned. Cookies are left to the
        client's jar. Empty-string values suppress a header.
        """
        client_headers = self._client_headers
        merged = dict(client_headers)
        if extra:
            merged.update(extra)

        delta = {}
        for k, v in merged.items():
            if v == "":
                continue
            if k not in client_headers or client_headers[k] != v:
                delta[k] = v
        return delta

    def _build_client_kwargs(self) -> dict:
        """Kwargs for rnet Client construction.

        Also refreshes the cached client header snapshot so a rotated
        fingerprint brings its own User-Agent and client hints.
        """
        self._client_headers = self._compute_client_headers()
        return {
            "emulation": self._fingerprint.current,
            "headers": dict(self._client_headers),
            "connect_timeout": self.connect_timeout,
            "timeout": self.timeout,
            "cookie_store": True,
            "cookie_provider": self._jar,
        }

    # ------------------------------------------------------------------
    # URLs and bodies
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_params(url: str, params: dict[str, str] | None) -> str:
        """Append query parameters to a URL (rnet has no params= kwarg)."""
        if not params:
            return url
        sep = "&" if "?" in url else "?"
        return url + sep + urlencode(params)

    @staticmethod
    def _resolve_redirect_url(base_url: str, location: str) -> str:
        """Resolve a Location header value to an absolute URL.

        Handles absolute, protocol-relative (//host/path) and relative
        locations.
        """
        location = location.strip()
        if location.startswith("//"):
            scheme = urlparse(base_url).scheme or "https"
            location = f"{scheme}:{location}"
        resolved = urljoin(base_url, location)
        parsed = urlparse(resolved)
        if not parsed.path:
            resolved = parsed._replace(path="/").geturl()
        return resolved

    @staticmethod
    def _make_proxy(proxy) -> Proxy:
        if isinstance(proxy, str):
            return Proxy.all(proxy)
        return proxy

    def _decode_brotli(self, raw: bytes, url: str) -> bytes:
        """Decode a body still marked ``Content-Encoding: br``."""
        if not self.allow_brotli:
            logger.warning(
                "Brotli body from %s but allow_brotli is False; "
                "returning it undecoded",
                url,
            )
            return raw
        try:
            return brotli.decompress(raw)
        except brotli.error:
            # Transport already decoded it and left the header behind.
            logger.debug("Body from %s is not Brotli data, keeping as-is", url)
            return raw

    def _debug_response(self, resp) -> None:
        if not self.debug:
            return
        logger.info(
            "%s %s -> HTTP %d\nheaders: %s\nbody: %s",
            resp.method,
            resp.url,
            resp.status_code,
            resp.headers,
            resp.text[:500],
        )
