"""Challenge page parsing: form, hidden fields, submit delay, site key.

Pure functions over the challenge page HTML. Nothing here talks to the
network or runs JavaScript.
"""

import logging
import re
from dataclasses import dataclass, field

from cfscraper._errors import ChallengeExtractionError

logger = logging.getLogger("cfscraper")

# Hidden inputs the IUAM endpoint expects back, plus jschl_answer.
JS_CHALLENGE_FIELDS = frozenset({"r", "jschl_vc", "pass"})

CAPTCHA_CHALLENGE_FIELDS = frozenset({"r", "cf_captcha_kind", "vc", "captcha_vc"})

_FORM_RE = re.compile(
    r'<form (.*?="challenge-form" action="(.*?__cf_chl_f_tk=\S+)"(.*?)</form>)',
    re.M | re.S,
)
_INPUT_RE = re.compile(r"<input\s(.*?)/?>|<input(.*?)>", re.S)
_NAME_RE = re.compile(r'name="([^"]+)"')
_VALUE_RE = re.compile(r'value="([^"]+)"')
_DELAY_RE = re.compile(r"submit\(\);\r?\n\s*},\s*([0-9]+)")
_SITE_KEY_RE = re.compile(r'data-sitekey="([^"]+)"')

_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#039;", "'"),
    ("&amp;", "&"),
)


@dataclass(frozen=True)
class ChallengeForm:
    """The challenge form found on an IUAM or captcha page."""

    action: str
    fields: dict[str, str] = field(default_factory=dict)
    html: str = ""


def unescape(text: str) -> str:
    """Undo the HTML entity escaping Cloudflare applies to form actions.

    ``&amp;`` is replaced last so that ``&amp;lt;`` stays ``&lt;``.
    """
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def extract_challenge_form(
    body: str, allowed: frozenset[str] = JS_CHALLENGE_FIELDS
) -> ChallengeForm:
    """Locate the challenge form and collect its allow-listed inputs.

    Args:
        body: Challenge page HTML.
        allowed: Input names to keep. Everything else is ignored.

    Returns:
        ChallengeForm with the raw (still escaped) action path.

    Raises:
        ChallengeExtractionError: No challenge form in the page.
    """
    match = _FORM_RE.search(body)
    if match is None or not match.group(2):
        raise ChallengeExtractionError("challenge form not found")

    form_html, action = match.group(1), match.group(2)

    fields: dict[str, str] = {}
    for input_match in _INPUT_RE.finditer(form_html):
        attrs = input_match.group(1) or input_match.group(2) or ""
        name = _NAME_RE.search(attrs)
        if name is None or name.group(1) not in allowed:
            continue
        value = _VALUE_RE.search(attrs)
        if value is not None:
            fields[name.group(1)] = value.group(1)

    logger.debug(
        "Challenge form: action=%s, fields=%s", action, sorted(fields)
    )
    return ChallengeForm(action=action, fields=fields, html=form_html)


def extract_delay(body: str) -> float | None:
    """Submit delay the page waits before posting, in seconds."""
    match = _DELAY_RE.search(body)
    if match is None:
        return None
    return int(match.group(1)) / 1000.0


def extract_site_key(body: str) -> str | None:
    match = _SITE_KEY_RE.search(body)
    return match.group(1) if match else None
