"""Challenge resolution: page HTML in, resubmission request out.

``solve`` is synchronous and side-effect free apart from running the
interpreter. ``solve_captcha`` awaits the configured provider. Neither
dispatches the submission; the scraper does that.
"""

import logging
from dataclasses import dataclass, field
from urllib.parse import urlparse

from cfscraper._captcha import CaptchaSolver
from cfscraper._errors import (
    CaptchaError,
    ChallengeExtractionError,
    ChallengeSolveError,
)
from cfscraper._form import (
    CAPTCHA_CHALLENGE_FIELDS,
    JS_CHALLENGE_FIELDS,
    extract_challenge_form,
    extract_site_key,
    unescape,
)
from cfscraper._interpreters import get_interpreter

logger = logging.getLogger("cfscraper")


@dataclass(frozen=True)
class ChallengeAnswer:
    """Where to POST the answer and what to send."""

    submit_url: str
    payload: dict[str, str] = field(default_factory=dict)


def submit_url_for(url: str, action: str) -> str:
    """Absolute submission URL: page origin + unescaped form action."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}{unescape(action)}"


def solve(body: str, url: str, interpreter: str = "native") -> ChallengeAnswer:
    """Solve a legacy IUAM page.

    Args:
        body: Challenge page HTML.
        url: URL the page was served from.
        interpreter: Interpreter name (see ``get_interpreter``).

    Raises:
        ChallengeExtractionError: Form missing from the page.
        ChallengeSolveError: Interpreter unavailable or evaluation failed.
    """
    form = extract_challenge_form(body, JS_CHALLENGE_FIELDS)
    domain = urlparse(url).hostname or ""

    try:
        engine = get_interpreter(interpreter)
        answer = engine.solve_challenge(body, domain)
    except (ChallengeExtractionError, ChallengeSolveError):
        raise
    except Exception as e:
        raise ChallengeSolveError(
            f"unable to compute the answer with {interpreter!r}: {e}"
        ) from e

    payload = dict(form.fields)
    payload["jschl_answer"] = answer
    submit_url = submit_url_for(url, form.action)
    logger.info("IUAM challenge solved for %s", domain)
    return ChallengeAnswer(submit_url=submit_url, payload=payload)


async def solve_captcha(
    body: str, url: str, provider: CaptchaSolver, options: dict
) -> ChallengeAnswer:
    """Build the captcha resubmission using a provider token.

    Raises:
        ChallengeExtractionError: Form or site key missing from the page.
        CaptchaError: The provider failed.
    """
    form = extract_challenge_form(body, CAPTCHA_CHALLENGE_FIELDS)
    site_key = extract_site_key(body)
    if site_key is None:
        raise ChallengeExtractionError("captcha site key not found")

    captcha_type = (
        "hCaptcha" if form.fields.get("cf_captcha_kind") == "h" else "reCaptcha"
    )
    try:
        token = await provider.solve_captcha(captcha_type, url, site_key, options)
    except CaptchaError:
        raise
    except Exception as e:
        raise CaptchaError(f"{provider.name}: {e}") from e
    if not token:
        raise CaptchaError(f"{provider.name} returned an empty token")

    payload = dict(form.fields)
    payload["g-recaptcha-response"] = token
    if captcha_type == "hCaptcha":
        payload["h-captcha-response"] = token
    return ChallengeAnswer(
        submit_url=submit_url_for(url, form.action), payload=payload
    )
