"""ScraperResponse -- read-only response wrapper."""

import json
from typing import Any


class ScraperResponse:
    """Response object built from a raw rnet response.

    Provides a requests/httpx-like API:
    - ``status_code``: int
    - ``content``: bytes (body after any Brotli decoding)
    - ``text``: str (decoded from content, lazy)
    - ``headers``: dict[str, str] (lowercase keys)
    - ``url``: final URL after redirects
    - ``method``: HTTP method of the request that produced it
    - ``ok``: True if 200 <= status_code < 300
    """

    __slots__ = (
        "_status_code",
        "_content",
        "_text",
        "_headers",
        "_url",
        "_method",
    )

    def __init__(
        self,
        *,
        status_code: int,
        headers: dict[str, str],
        url: str,
        content: bytes = b"",
        text: str | None = None,
        method: str = "GET",
    ):
        self._status_code = status_code
        if not content and text is not None:
            content = text.encode("utf-8")
        self._content = content
        self._text = text
        self._headers = headers
        self._url = url
        self._method = method

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def headers(self) -> dict[str, str]:
        return self._headers

    @property
    def url(self) -> str:
        """Final URL after redirects."""
        return self._url

    @property
    def method(self) -> str:
        return self._method

    @property
    def content(self) -> bytes:
        """Raw response body as bytes."""
        return self._content

    @property
    def text(self) -> str:
        """Response body decoded as text (UTF-8, invalid bytes replaced)."""
        if self._text is None:
            self._text = self._content.decode("utf-8", errors="replace")
        return self._text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def location(self) -> str | None:
        return self.headers.get("location") or None

    def json(self, **kwargs) -> Any:
        return json.loads(self.text, **kwargs)

    def raise_for_status(self) -> None:
        from cfscraper._errors import ScraperHTTPError

        if not self.ok:
            raise ScraperHTTPError(self.status_code, self.url)

    def __repr__(self) -> str:
        return f"<ScraperResponse [{self.status_code}] {self.method} {self.url}>"
