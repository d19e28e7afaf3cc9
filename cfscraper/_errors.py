"""Typed exceptions for cfscraper."""


class ScraperError(Exception):
    """Base exception for all cfscraper errors."""


class FirewallBlocked(ScraperError):
    """Cloudflare firewall rule blocked the request (error code 1020)."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(
            f"Cloudflare has blocked this request (Code 1020 Detected) at {url}"
        )


class UnsupportedChallenge(ScraperError):
    """A newer Cloudflare challenge variant that cannot be solved here."""

    def __init__(self, url: str, variant: str):
        self.url = url
        self.variant = variant
        super().__init__(
            f"Detected a Cloudflare version 2 {variant} challenge at {url}; "
            f"this challenge variant is not supported"
        )


class ChallengeExtractionError(ScraperError):
    """The challenge page did not contain the expected form or script."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(
            f"Cloudflare IUAM detected, but the challenge parameters "
            f"could not be extracted: {reason}"
        )


class ChallengeSolveError(ScraperError):
    """The challenge answer could not be computed or was rejected."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to solve Cloudflare challenge: {reason}")


class LoopProtection(ScraperError):
    """Too many consecutive challenges for one logical request."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"!!Loop Protection!! We have tried to solve {attempts} "
            f"time(s) in a row."
        )


class CaptchaProviderMissing(ScraperError):
    """A captcha challenge was served but no usable provider is configured."""

    def __init__(self, provider: str | None = None):
        self.provider = provider
        if provider is None:
            msg = (
                "Cloudflare Captcha detected, unfortunately you haven't "
                "loaded an anti Captcha provider correctly via the "
                "'captcha' parameter."
            )
        else:
            msg = f"Cloudflare Captcha detected, but provider {provider!r} is not registered."
        super().__init__(msg)


class CaptchaError(ScraperError):
    """The captcha provider failed to produce a token."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Captcha solving failed: {reason}")


class InterpreterError(ScraperError):
    """The JavaScript interpreter could not evaluate the challenge."""

    def __init__(self, interpreter: str, reason: str):
        self.interpreter = interpreter
        self.reason = reason
        super().__init__(f"{interpreter} interpreter failed: {reason}")


class ConnectionFailed(ScraperError):
    """Failed to establish a connection."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Connection failed to {url}: {reason}")


class TooManyRedirects(ScraperError):
    """Exceeded the maximum number of redirects."""

    def __init__(self, url: str, max_redirects: int):
        self.url = url
        self.max_redirects = max_redirects
        super().__init__(
            f"Too many redirects ({max_redirects}) for {url}"
        )


class CookiesNotFound(ScraperError):
    """No Cloudflare cookies were set for the requested host."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(
            f"Unable to find Cloudflare cookies for {url}. Does the site "
            f"actually have Cloudflare IUAM (I'm Under Attack Mode) enabled?"
        )


class ScraperHTTPError(ScraperError):
    """HTTP error raised by raise_for_status()."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(
            f"HTTP {status_code} at {url}"
        )
