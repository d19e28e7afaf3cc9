"""Cloudflare challenge detection.

Pure logic, no I/O. Every predicate takes the response status code,
lowercased headers and decoded body, and only ever fires for responses
served by Cloudflare (``Server: cloudflare``).

Classification order is fixed:
1. Firewall block (1020), fatal
2. Newer captcha challenge (orchestrate/captcha|managed), unsupported
3. Newer JS challenge (orchestrate/jsch), unsupported
4. Legacy captcha challenge
5. Legacy IUAM JavaScript challenge
"""

import enum
import logging
import re

logger = logging.getLogger("cfscraper")


class ChallengeKind(enum.Enum):
    """What a response turned out to be."""

    NONE = "none"
    JS_CHALLENGE = "js_challenge"
    CAPTCHA_CHALLENGE = "captcha_challenge"
    UNSUPPORTED = "unsupported"
    FIREWALL_BLOCK = "firewall_block"


_CHALLENGE_FORM_RE = re.compile(
    r'<form .*?="challenge-form" action="/\S+__cf_chl_f_tk='
)
_JS_TRACE_RE = re.compile(r"/cdn-cgi/images/trace/jsch/")
_CAPTCHA_TRACE_RE = re.compile(r"/cdn-cgi/images/trace/(captcha|managed)/")
_NEW_JS_RE = re.compile(
    r"""cpo\.src\s*=\s*['"]/cdn-cgi/challenge-platform/\S+orchestrate/jsch/v1"""
)
_NEW_CAPTCHA_RE = re.compile(
    r"""cpo\.src\s*=\s*['"]/cdn-cgi/challenge-platform/\S+orchestrate/(captcha|managed)/v1"""
)
_FIREWALL_MARKER = '<span class="cf-error-code">1020</span>'


def _is_cloudflare(headers: dict[str, str]) -> bool:
    return headers.get("server", "").startswith("cloudflare")


def is_js_challenge(
    status_code: int, headers: dict[str, str], body: str
) -> bool:
    """Legacy IUAM page: 429/503 with the jsch trace image and challenge form."""
    return (
        _is_cloudflare(headers)
        and status_code in (429, 503)
        and _JS_TRACE_RE.search(body) is not None
        and _CHALLENGE_FORM_RE.search(body) is not None
    )


def is_captcha_challenge(
    status_code: int, headers: dict[str, str], body: str
) -> bool:
    """Legacy captcha page: 403 with the captcha trace image and challenge form."""
    return (
        _is_cloudflare(headers)
        and status_code == 403
        and _CAPTCHA_TRACE_RE.search(body) is not None
        and _CHALLENGE_FORM_RE.search(body) is not None
    )


def is_firewall_blocked(
    status_code: int, headers: dict[str, str], body: str
) -> bool:
    return (
        _is_cloudflare(headers)
        and status_code == 403
        and _FIREWALL_MARKER in body
    )


def is_new_js_challenge(
    status_code: int, headers: dict[str, str], body: str
) -> bool:
    return (
        is_js_challenge(status_code, headers, body)
        and _NEW_JS_RE.search(body) is not None
    )


def is_new_captcha_challenge(
    status_code: int, headers: dict[str, str], body: str
) -> bool:
    return (
        is_captcha_challenge(status_code, headers, body)
        and _NEW_CAPTCHA_RE.search(body) is not None
    )


def classify(
    status_code: int, headers: dict[str, str], body: str
) -> ChallengeKind:
    """Classify a response.

    Args:
        status_code: HTTP status code.
        headers: Response headers (lowercase keys).
        body: Decoded response body.

    Returns:
        The ChallengeKind. ``ChallengeKind.NONE`` for ordinary traffic.
    """
    if not _is_cloudflare(headers):
        return ChallengeKind.NONE

    if is_firewall_blocked(status_code, headers, body):
        logger.info("Cloudflare firewall block (1020) detected")
        return ChallengeKind.FIREWALL_BLOCK

    if is_new_captcha_challenge(
        status_code, headers, body
    ) or is_new_js_challenge(status_code, headers, body):
        logger.info("Cloudflare v2 challenge detected (HTTP %d)", status_code)
        return ChallengeKind.UNSUPPORTED

    if is_captcha_challenge(status_code, headers, body):
        logger.info("Cloudflare captcha challenge detected")
        return ChallengeKind.CAPTCHA_CHALLENGE

    if is_js_challenge(status_code, headers, body):
        logger.info(
            "Cloudflare IUAM challenge detected (HTTP %d)", status_code
        )
        return ChallengeKind.JS_CHALLENGE

    return ChallengeKind.NONE
