"""AsyncScraper -- Cloudflare-aware async HTTP client on rnet.Client.

Each public request runs the same pipeline:

    throttle → rotate TLS profile → refresh stale session → pick proxy →
    stealth headers → pre-hook → dispatch → post-hook →
    [classify → solve → resubmit]* → 403 refresh/retry

The challenge loop and the 403 retry both run inside the caller's
concurrency slot, so a retry never waits on a slot it already holds.
"""

import asyncio
import logging

import rnet

from cfscraper._attempt import AttemptState
from cfscraper._base import (
    _BODY_KWARGS,
    BaseScraper,
    _decode_headers,
    _extract_location,
    _is_binary_content_type,
    _origin,
    _to_method,
)
from cfscraper._captcha import get_captcha_provider
from cfscraper._challenge import (
    ChallengeKind,
    classify,
    is_captcha_challenge,
    is_new_captcha_challenge,
)
from cfscraper._cookies import cookie_values, cookies_for_url, purge_cookies
from cfscraper._errors import (
    ChallengeSolveError,
    ConnectionFailed,
    CookiesNotFound,
    FirewallBlocked,
    LoopProtection,
    ScraperError,
    ScraperHTTPError,
    TooManyRedirects,
    UnsupportedChallenge,
)
from cfscraper._form import extract_delay
from cfscraper._health import CHALLENGE_COOKIES, REFRESH_OK_STATUSES
from cfscraper._resolver import ChallengeAnswer, solve, solve_captcha
from cfscraper._response import ScraperResponse

logger = logging.getLogger("cfscraper")

# Cookies returned by get_tokens().
TOKEN_COOKIES = (
    "cf_clearance",
    "cf_chl_2",
    "cf_chl_prog",
    "cf_chl_rc_ni",
    "cf_turnstile",
)

_REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


class AsyncScraper(BaseScraper):
    """Async HTTP client that solves Cloudflare IUAM challenges.

    Usage::

        async with AsyncScraper() as scraper:
            resp = await scraper.get("https://example.com")
            tokens, user_agent = await scraper.get_tokens("https://example.com")

    See ``BaseScraper`` for the constructor options.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._client = self._make_client()

    def _make_client(self) -> rnet.Client:
        return rnet.Client(**self._build_client_kwargs())

    def _rebuild_client(self) -> None:
        """Fresh TLS session and pool. The jar is shared, so cookies carry over."""
        self._client = self._make_client()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def request(
        self, method: str, url: str, **kwargs
    ) -> ScraperResponse:
        """Send a request, solving any Cloudflare challenge on the way.

        Args:
            method: HTTP method.
            url: Target URL.
            **kwargs: ``headers``, ``params``, ``proxy`` (URL), plus any
                rnet request option (``form``, ``json``, ``body``,
                ``timeout``...).

        Raises:
            FirewallBlocked: Cloudflare 1020 block page.
            UnsupportedChallenge: A newer (v2) challenge page.
            ChallengeExtractionError: The challenge page could not be parsed.
            ChallengeSolveError: The answer could not be computed or was
                rejected.
            LoopProtection: Too many consecutive challenges.
            CaptchaProviderMissing: Captcha page with no usable provider.
            ConnectionFailed: Transport error.
        """
        await self._throttle.acquire()
        try:
            return await self._attempt(method, url, kwargs)
        finally:
            self._throttle.release()

    async def get(self, url: str, **kwargs) -> ScraperResponse:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> ScraperResponse:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs) -> ScraperResponse:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs) -> ScraperResponse:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs) -> ScraperResponse:
        return await self.request("DELETE", url, **kwargs)

    async def head(self, url: str, **kwargs) -> ScraperResponse:
        return await self.request("HEAD", url, **kwargs)

    async def options(self, url: str, **kwargs) -> ScraperResponse:
        return await self.request("OPTIONS", url, **kwargs)

    async def solve_challenge(
        self, response: ScraperResponse
    ) -> ScraperResponse:
        """Run the challenge loop on a response fetched elsewhere.

        Non-challenge responses come back unchanged.
        """
        await self._throttle.acquire()
        try:
            state = AttemptState(
                response.method, response.url, {}, self.solve_depth
            )
            return await self._handle_challenges(response, state)
        finally:
            self._throttle.release()

    async def get_tokens(
        self, url: str, **kwargs
    ) -> tuple[dict[str, str], str]:
        """Fetch ``url`` and return its Cloudflare cookies and the User-Agent.

        Raises:
            ScraperHTTPError: The final response was not HTTP 200.
            CookiesNotFound: No cookies were set for the host.
        """
        resp = await self.get(url, **kwargs)
        if resp.status_code != 200:
            raise ScraperHTTPError(resp.status_code, resp.url)

        if not cookies_for_url(self._jar, resp.url):
            raise CookiesNotFound(resp.url)

        tokens = cookie_values(self._jar, resp.url, TOKEN_COOKIES)
        return tokens, self.user_agent

    async def get_cookie_string(
        self, url: str, **kwargs
    ) -> tuple[str, str]:
        """Like ``get_tokens`` but serialized as a Cookie header value."""
        tokens, user_agent = await self.get_tokens(url, **kwargs)
        return "; ".join(f"{k}={v}" for k, v in tokens.items()), user_agent

    def get_cookies(self) -> dict[str, str]:
        """Every cookie the scraper holds, name → value."""
        return {cookie.name: cookie.value for cookie in self._jar.get_all()}

    def add_cookie(self, raw: str, url: str) -> None:
        """Inject a Set-Cookie string as if ``url`` had sent it."""
        self._jar.add(raw, url)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _attempt(
        self,
        method: str,
        url: str,
        kwargs: dict,
        *,
        internal_retry: bool = False,
    ) -> ScraperResponse:
        """One pass through the pipeline.

        ``internal_retry`` marks the re-issue after a 403 refresh: the
        session was just refreshed, and a 200 here must not reset the
        403 counter.
        """
        orig_method, orig_url, orig_kwargs = method, url, kwargs
        kwargs = dict(kwargs)
        url = self._apply_params(url, kwargs.pop("params", None))

        if self.rotate_tls_ciphers and self._fingerprint.rotate():
            self._rebuild_client()

        if not internal_retry and self._health.is_stale():
            await self._refresh_session(url)

        managed_proxy = None
        if self._proxy_manager is not None and not kwargs.get("proxy"):
            managed_proxy = self._proxy_manager.get_proxy()
            if managed_proxy:
                kwargs["proxy"] = managed_proxy

        if self._stealth is not None:
            await self._stealth.pause()
            kwargs["headers"] = self._stealth.apply(
                method, url, kwargs.get("headers"), self.user_agent
            )

        self._health.record_request()

        if self._request_pre_hook is not None:
            method, url, kwargs = self._request_pre_hook(
                self, method, url, kwargs
            )

        resp = await self._send(
            method, url, kwargs, managed_proxy=managed_proxy
        )

        if self._request_post_hook is not None:
            hooked = self._request_post_hook(self, resp)
            if hooked is not resp:
                return hooked

        if not self.disable_cloudflare_v1:
            state = AttemptState(
                method,
                url,
                kwargs,
                self.solve_depth,
                internal_retry,
                managed_proxy=managed_proxy,
            )
            resp = await self._handle_challenges(resp, state)

        if (
            not resp.location
            and resp.status_code == 200
            and not internal_retry
            and self._retry_403_count
        ):
            logger.debug("HTTP 200, resetting 403 retry counter")
            self._retry_403_count = 0

        if (
            resp.status_code == 403
            and self.auto_refresh_on_403
            and not is_captcha_challenge(
                resp.status_code, resp.headers, resp.text
            )
        ):
            return await self._handle_403(
                resp, orig_method, orig_url, orig_kwargs
            )
        return resp

    async def _handle_challenges(
        self, resp: ScraperResponse, state: AttemptState
    ) -> ScraperResponse:
        """Classify, solve and resubmit until a non-challenge response."""
        while True:
            kind = classify(resp.status_code, resp.headers, resp.text)

            if kind is ChallengeKind.FIREWALL_BLOCK:
                raise FirewallBlocked(resp.url)

            if kind is ChallengeKind.UNSUPPORTED:
                variant = (
                    "captcha"
                    if is_new_captcha_challenge(
                        resp.status_code, resp.headers, resp.text
                    )
                    else "JavaScript"
                )
                raise UnsupportedChallenge(resp.url, variant)

            if kind is ChallengeKind.CAPTCHA_CHALLENGE:
                if self.double_down and not state.doubled_down:
                    state.doubled_down = True
                    logger.info(
                        "Captcha at %s, re-requesting once before solving",
                        resp.url,
                    )
                    resp = await self._send(
                        state.method,
                        state.url,
                        state.kwargs,
                        managed_proxy=state.managed_proxy,
                    )
                    if not is_captcha_challenge(
                        resp.status_code, resp.headers, resp.text
                    ):
                        continue

                provider = get_captcha_provider(self.captcha)
                if provider is None:
                    logger.info("Captcha at %s, returning it as-is", resp.url)
                    return resp
                self._count_solve(state)
                answer = await solve_captcha(
                    resp.text, resp.url, provider, self.captcha
                )
                resp = await self._submit_answer(answer, resp.url, state)
                continue

            if kind is ChallengeKind.JS_CHALLENGE:
                self._count_solve(state)
                await self._challenge_delay(resp.text)
                answer = solve(resp.text, resp.url, self.interpreter)
                resp = await self._submit_answer(answer, resp.url, state)
                continue

            location = resp.location
            if location and state.submit_url is not None:
                referer = state.submit_url
                target = self._resolve_redirect_url(referer, location)
                state.submit_url = None
                logger.debug("Following challenge redirect to %s", target)
                kwargs = dict(state.kwargs)
                headers = dict(kwargs.get("headers") or {})
                headers["Referer"] = referer
                kwargs["headers"] = headers
                resp = await self._send(
                    state.method,
                    target,
                    kwargs,
                    managed_proxy=state.managed_proxy,
                )
                continue

            if not location and resp.status_code not in (429, 503):
                state.reset_loop()
            return resp

    def _count_solve(self, state: AttemptState) -> None:
        if not state.can_solve:
            logger.warning(
                "Loop protection tripped after %d consecutive challenges",
                state.loop_count,
            )
            raise LoopProtection(state.loop_count)
        state.use_solve()

    async def _challenge_delay(self, body: str) -> None:
        delay = self.delay if self.delay is not None else extract_delay(body)
        if delay:
            logger.debug("Waiting %.1fs before submitting challenge", delay)
            await asyncio.sleep(delay)

    async def _submit_answer(
        self, answer: ChallengeAnswer, page_url: str, state: AttemptState
    ) -> ScraperResponse:
        """POST the answer with redirects disabled.

        Raises:
            ChallengeSolveError: Cloudflare answered 400 (answer rejected).
        """
        kwargs = {
            k: v for k, v in state.kwargs.items() if k not in _BODY_KWARGS
        }
        headers = dict(kwargs.get("headers") or {})
        headers["Origin"] = _origin(page_url)
        headers["Referer"] = page_url
        kwargs["headers"] = headers
        kwargs["form"] = dict(answer.payload)

        logger.info("Submitting challenge answer to %s", answer.submit_url)
        resp = await self._send(
            "POST",
            answer.submit_url,
            kwargs,
            allow_redirects=False,
            managed_proxy=state.managed_proxy,
        )
        if resp.status_code == 400:
            raise ChallengeSolveError(
                "Invalid challenge answer detected, Cloudflare broken?"
            )
        state.submit_url = answer.submit_url
        self._fingerprint.pin()
        return resp

    async def _handle_403(
        self,
        resp: ScraperResponse,
        method: str,
        url: str,
        kwargs: dict,
    ) -> ScraperResponse:
        if self._retry_403_count >= self.max_403_retries:
            logger.warning(
                "HTTP 403 at %s, 403 retries exhausted (%d)",
                url,
                self.max_403_retries,
            )
            return resp

        self._retry_403_count += 1
        self._health.record_403()
        logger.info(
            "HTTP 403 at %s, refreshing session (retry %d/%d)",
            url,
            self._retry_403_count,
            self.max_403_retries,
        )
        if not await self._refresh_session(url):
            logger.debug("Session refresh failed, returning the 403")
            return resp

        retry = await self._attempt(method, url, kwargs, internal_retry=True)
        if retry.status_code == 200:
            self._retry_403_count = 0
        return retry

    async def _refresh_session(self, url: str) -> bool:
        """Drop challenge cookies, reset identity, and re-prime with a probe GET.

        Returns True iff the probe answered 200/301/302/304. Never raises
        for transport errors.
        """
        origin = _origin(url)
        logger.info("Refreshing session for %s", origin)
        purge_cookies(self._jar, CHALLENGE_COOKIES, origin)
        self._health.reset()
        self._fingerprint.reset(
            None if self.rotate_tls_ciphers else self._fingerprint.current
        )
        self._rebuild_client()

        try:
            probe = await self._send("GET", origin, {}, allow_redirects=False)
        except ScraperError as e:
            logger.debug("Session refresh probe to %s failed: %s", origin, e)
            return False

        if probe.status_code in REFRESH_OK_STATUSES:
            logger.debug("Session refreshed (probe HTTP %d)", probe.status_code)
            return True
        logger.debug("Session refresh probe returned HTTP %d", probe.status_code)
        return False

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        kwargs: dict,
        *,
        allow_redirects: bool = True,
        managed_proxy: str | None = None,
    ) -> ScraperResponse:
        """Dispatch one request, following redirects when allowed.

        Spacing is applied once per call; redirect hops are not throttled.
        Only ``managed_proxy`` is scored with the ProxyManager, and only
        while it is still the proxy in use.
        """
        extra_headers = kwargs.get("headers")
        proxy = kwargs.get("proxy")
        passthrough = {
            k: v for k, v in kwargs.items() if k not in ("headers", "proxy")
        }

        if managed_proxy is not None and proxy != managed_proxy:
            managed_proxy = None

        await self._throttle.wait()

        current_url = url
        current_method = method
        redirects = 0
        while True:
            rnet_method = _to_method(current_method)
            request_kwargs = dict(passthrough)
            request_kwargs["headers"] = self._build_headers(extra_headers)
            if proxy:
                request_kwargs["proxy"] = self._make_proxy(proxy)

            try:
                raw = await self._client.request(
                    rnet_method, current_url, **request_kwargs
                )
            except Exception as e:
                if managed_proxy is not None:
                    self._proxy_manager.report_failure(managed_proxy)
                raise ConnectionFailed(current_url, str(e)) from e

            if managed_proxy is not None:
                self._proxy_manager.report_success(managed_proxy)

            status = raw.status.as_int()

            if (
                allow_redirects
                and self.follow_redirects
                and status in _REDIRECT_STATUSES
            ):
                location = _extract_location(raw.headers)
                if location:
                    redirects += 1
                    if redirects > self.max_redirects:
                        raise TooManyRedirects(url, self.max_redirects)
                    next_url = self._resolve_redirect_url(
                        current_url, location
                    )
                    if status in (301, 302, 303) and current_method not in (
                        "GET",
                        "HEAD",
                    ):
                        current_method = "GET"
                        passthrough = {
                            k: v
                            for k, v in passthrough.items()
                            if k not in _BODY_KWARGS
                        }
                    logger.debug(
                        "Redirect %d: %s -> %s", status, current_url, next_url
                    )
                    current_url = next_url
                    continue

            resp = await self._read_response(raw, current_url, current_method)
            self._debug_response(resp)
            return resp

    async def _read_response(
        self, raw, url: str, method: str
    ) -> ScraperResponse:
        headers = _decode_headers(raw.headers)
        text = None
        content = b""
        try:
            if headers.get("content-encoding", "").lower() == "br":
                content = self._decode_brotli(await raw.bytes(), url)
            elif _is_binary_content_type(headers.get("content-type", "")):
                content = await raw.bytes()
            else:
                text = await raw.text()
        except Exception as e:
            raise ConnectionFailed(url, f"failed to read body: {e}") from e
        return ScraperResponse(
            status_code=raw.status.as_int(),
            headers=headers,
            url=url,
            content=content,
            text=text,
            method=method.upper(),
        )
