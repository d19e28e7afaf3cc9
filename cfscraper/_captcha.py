"""Captcha provider extension point.

No provider ships with cfscraper. Applications register one under a name
and select it with ``captcha={"provider": "<name>", ...}``. The special
name ``return_response`` hands the captcha page back to the caller.
"""

import logging

from cfscraper._errors import CaptchaProviderMissing

logger = logging.getLogger("cfscraper")

RETURN_RESPONSE = "return_response"


class CaptchaSolver:
    """Base class for captcha providers."""

    name = "base"

    async def solve_captcha(
        self,
        captcha_type: str,
        url: str,
        site_key: str,
        options: dict,
    ) -> str:
        """Return the response token for the widget on ``url``.

        Args:
            captcha_type: ``"reCaptcha"`` or ``"hCaptcha"``.
            url: Page the captcha was served on.
            site_key: The widget's ``data-sitekey``.
            options: The scraper's ``captcha`` dict, as configured.
        """
        raise NotImplementedError


_PROVIDERS: dict[str, CaptchaSolver] = {}


def register_captcha_provider(name: str, solver: CaptchaSolver) -> None:
    if name == RETURN_RESPONSE:
        raise ValueError(f"{RETURN_RESPONSE!r} is reserved")
    _PROVIDERS[name] = solver
    logger.debug("Registered captcha provider %s", name)


def unregister_captcha_provider(name: str) -> None:
    _PROVIDERS.pop(name, None)


def get_captcha_provider(options: dict | None) -> CaptchaSolver | None:
    """Resolve the configured provider.

    Returns None for the ``return_response`` policy.

    Raises:
        CaptchaProviderMissing: No provider configured, or an unknown name.
    """
    name = (options or {}).get("provider")
    if not name:
        raise CaptchaProviderMissing()
    if name == RETURN_RESPONSE:
        return None
    try:
        return _PROVIDERS[name]
    except KeyError:
        raise CaptchaProviderMissing(name) from None
