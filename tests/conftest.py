"""Shared mock objects, fixtures and the scraper factory for cfscraper tests."""

import json
from unittest.mock import patch
from urllib.parse import urlparse

from cfscraper._async import AsyncScraper

# ---------------------------------------------------------------------------
# Challenge page fixtures
# ---------------------------------------------------------------------------

CF_HEADERS = {"Server": "cloudflare", "Content-Type": "text/html; charset=UTF-8"}

IUAM_BODY = """<!DOCTYPE HTML>
<html lang="en-US">
<head>
  <title>Just a moment...</title>
  <script type="text/javascript">
  //<![CDATA[
  (function(){
    var a = function() {try{return !!window.addEventListener} catch(e) {return !1} },
    b = function(b, c) {a() ? document.addEventListener("DOMContentLoaded", b, c) : document.attachEvent("onreadystatechange", b)};
    b(function(){
      var a = document.getElementById('cf-content');a.style.display = 'block';
      setTimeout(function(){
        var s,t,o,p,b,r,e,a,k,i,n,g,f, abcDef={"xyz":+((!+[]+!![]+[])+(+!![]))};
        g = String.fromCharCode;
        t = document.createElement('div');
        t.innerHTML="<a href='/'>x</a>";
        t = t.firstChild.href;r = t.match(/https?:\\/\\//)[0];
        t = t.substr(r.length); t = t.substr(0,t.length-1); k = 'cf-dn-abc';
        a = document.getElementById('jschl-answer');
        f = document.getElementById('challenge-form');
        ;abcDef.xyz+=+((!+[]+!![]+!![]+[])+(+[]));a.value = (+abcDef.xyz).toFixed(10) + t.length; '; 121'
        f.action += location.hash;
        f.submit();
      }, 4000);
    }, false);
  })();
  //]]>
  </script>
</head>
<body>
  <div id="cf-content"><img src="/cdn-cgi/images/trace/jsch/nojs/transparent.gif?ray=5f1a2b3c4d5e6f70"></div>
  <form class="challenge-form" id="challenge-form" action="/?__cf_chl_jschl_tk__=abc&amp;__cf_chl_f_tk=tok123" method="POST" enctype="application/x-www-form-urlencoded">
    <input type="hidden" name="r" value="rvalue123"/>
    <input type="hidden" name="jschl_vc" value="vc456"/>
    <input type="hidden" name="pass" value="1600000000.123-abc"/>
    <input type="hidden" id="jschl-answer" name="jschl_answer"/>
    <input type="hidden" name="other" value="ignored"/>
  </form>
</body>
</html>
"""

IUAM_SUBMIT_URL = (
    "https://example.com/?__cf_chl_jschl_tk__=abc&__cf_chl_f_tk=tok123"
)

# Answer the fixture script computes: 21 + 30, hostname term stripped.
IUAM_ANSWER = "51.0000000000"

NEW_IUAM_BODY = IUAM_BODY.replace(
    "</head>",
    "<script>(function(){var cpo=document.createElement('script');"
    "cpo.src = '/cdn-cgi/challenge-platform/h/b/orchestrate/jsch/v1?ray=5f1a';"
    "document.head.appendChild(cpo);}());</script></head>",
)

CAPTCHA_BODY = """<!DOCTYPE HTML>
<html lang="en-US">
<head><title>Attention Required! | Cloudflare</title></head>
<body>
  <img src="/cdn-cgi/images/trace/captcha/nojs/h/transparent.gif?ray=5f1a2b3c">
  <form class="challenge-form" id="challenge-form" action="/?__cf_chl_captcha_tk__=xyz&amp;__cf_chl_f_tk=cap789" method="POST">
    <input type="hidden" name="r" value="capr"/>
    <input type="hidden" name="cf_captcha_kind" value="h"/>
    <input type="hidden" name="vc" value="capvc"/>
    <div class="h-captcha" data-sitekey="site-key-123"></div>
  </form>
</body>
</html>
"""

NEW_CAPTCHA_BODY = CAPTCHA_BODY.replace(
    "</head>",
    "<script>cpo.src = '/cdn-cgi/challenge-platform/h/g/orchestrate/managed/v1?ray=5f1a';"
    "</script></head>",
)

FIREWALL_BODY = """<!DOCTYPE html>
<html><head><title>Access denied | example.com used Cloudflare to restrict access</title></head>
<body>
  <h1><span class="cf-error-type">Error</span><span class="cf-error-code">1020</span></h1>
  <h2 class="cf-subheadline">Access denied</h2>
</body></html>
"""

# ---------------------------------------------------------------------------
# Mock rnet types
# ---------------------------------------------------------------------------


class MockStatus:
    def __init__(self, code: int):
        self._code = code

    def as_int(self) -> int:
        return self._code

    def is_success(self) -> bool:
        return 200 <= self._code < 300


class MockHeaderMap:
    """Mock rnet HeaderMap with bytes keys and bytes values.

    Accepts a dict, or a list of (name, value) pairs for repeated
    headers such as Set-Cookie.
    """

    def __init__(self, data=None):
        self._raw: dict[bytes, list[bytes]] = {}
        items = data.items() if isinstance(data, dict) else (data or [])
        for k, v in items:
            bk = k.lower().encode("ascii")
            self._raw.setdefault(bk, []).append(v.encode("utf-8"))

    def keys(self):
        return list(self._raw.keys())

    def __getitem__(self, key):
        if isinstance(key, str):
            key = key.lower().encode("ascii")
        return self._raw[key][0]

    def get(self, key):
        try:
            return self[key]
        except KeyError:
            return None

    def get_all(self, key):
        if isinstance(key, str):
            key = key.lower().encode("ascii")
        return list(self._raw.get(key, []))


class AsyncMockResponse:
    """Mock rnet response with async text()/bytes()."""

    def __init__(
        self,
        status_code: int,
        headers=None,
        body: str = "",
        raw_body: bytes | None = None,
    ):
        self.status = MockStatus(status_code)
        self.headers = MockHeaderMap(headers)
        self._body = body
        self._raw_body = raw_body

    async def text(self):
        return self._body

    async def bytes(self):
        if self._raw_body is not None:
            return self._raw_body
        return self._body.encode("utf-8")

    def json(self):
        return json.loads(self._body)


class MockCookie:
    def __init__(self, name: str, value: str, domain: str, path: str = "/"):
        self.name = name
        self.value = value
        self.domain = domain
        self.path = path


class MockJar:
    """Mock rnet Jar keyed by (domain, name).

    Set-Cookie values are reduced to name, value, Domain and Path.
    """

    def __init__(self):
        self.cookies: dict[tuple[str, str], MockCookie] = {}
        self.removed: list[tuple[str, str]] = []

    def add(self, cookie_str, url):
        first, _, attrs = cookie_str.partition(";")
        name, _, value = first.partition("=")
        domain = urlparse(url).hostname or ""
        path = "/"
        for attr in attrs.split(";"):
            key, _, val = attr.strip().partition("=")
            if key.lower() == "domain" and val:
                domain = val.lstrip(".")
            elif key.lower() == "path" and val:
                path = val
        name = name.strip()
        self.cookies[(domain, name)] = MockCookie(
            name, value.strip(), domain, path
        )

    def _matching(self, url):
        host = urlparse(url).hostname or ""
        return [
            c
            for c in self.cookies.values()
            if host == c.domain or host.endswith("." + c.domain)
        ]

    def get(self, name, url):
        for cookie in self._matching(url):
            if cookie.name == name:
                return cookie
        return None

    def get_all(self):
        return list(self.cookies.values())

    def remove(self, name, url):
        self.removed.append((name, url))
        self.cookies.pop((urlparse(url).hostname or "", name), None)

    def cookie_header(self, url) -> str:
        return "; ".join(f"{c.name}={c.value}" for c in self._matching(url))


class AsyncMockClient:
    """Async mock rnet client.

    ``responses`` is either a list (served in order, the last one
    repeating) or a callable ``(method, url, kwargs) -> response``.
    Exceptions are raised instead of returned. With a ``cookie_jar``
    it stores Set-Cookie values and logs the Cookie header each
    request would carry, as rnet's cookie store does.
    """

    def __init__(self, responses, cookie_jar: MockJar | None = None):
        self._responses = responses
        self._index = 0
        self.request_count = 0
        self.last_kwargs: dict = {}
        self.request_log: list[tuple] = []
        self.cookie_jar = cookie_jar
        self.cookie_log: list[str] = []

    async def request(self, method, url, **kwargs):
        self.last_kwargs = kwargs
        self.request_count += 1
        self.request_log.append((method, url, kwargs))
        if self.cookie_jar is not None:
            self.cookie_log.append(self.cookie_jar.cookie_header(url))
        if callable(self._responses):
            resp = self._responses(method, url, kwargs)
        else:
            resp = self._responses[
                min(self._index, len(self._responses) - 1)
            ]
            self._index += 1
        if isinstance(resp, Exception):
            raise resp
        if self.cookie_jar is not None:
            for raw in resp.headers.get_all("set-cookie"):
                self.cookie_jar.add(raw.decode("utf-8"), url)
        return resp


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def cf_response(status_code: int, body: str, **extra_headers) -> AsyncMockResponse:
    headers = dict(CF_HEADERS)
    headers.update(extra_headers)
    return AsyncMockResponse(status_code, headers, body)


def ok_response(body: str = "ok", headers=None) -> AsyncMockResponse:
    return AsyncMockResponse(200, headers or {"Content-Type": "text/html"}, body)


class StubInterpreter:
    """Interpreter double that records calls and returns a fixed answer."""

    name = "stub"

    def __init__(self, answer: str = IUAM_ANSWER):
        self.answer = answer
        self.calls: list[tuple[str, str]] = []

    def solve_challenge(self, body: str, domain: str) -> str:
        self.calls.append((body, domain))
        return self.answer


# ---------------------------------------------------------------------------
# Scraper factory
# ---------------------------------------------------------------------------


def make_scraper(responses, **scraper_kwargs):
    """Create an AsyncScraper wired to an AsyncMockClient.

    Throttling, stealth noise, TLS rotation and the challenge delay are
    off unless a test turns them back on.
    """
    options = {
        "min_request_interval": 0,
        "enable_stealth": False,
        "rotate_tls_ciphers": False,
        "delay": 0,
    }
    options.update(scraper_kwargs)
    jar = MockJar()
    mock = AsyncMockClient(responses, cookie_jar=jar)
    with patch.object(
        AsyncScraper, "_make_client", return_value=mock
    ), patch("cfscraper._base.Jar", return_value=jar):
        scraper = AsyncScraper(**options)
    scraper._rebuild_client = lambda: None
    return scraper, mock


def sent_method(entry) -> str:
    """HTTP method name of a request_log entry."""
    return repr(entry[0]).rsplit(".", 1)[-1].upper()
