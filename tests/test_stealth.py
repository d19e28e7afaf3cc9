"""Tests for stealth header noise and pacing."""

from unittest.mock import AsyncMock, patch

import pytest

from cfscraper._stealth import StealthMode

CHROME_UA = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
FIREFOX_UA = "Mozilla/5.0 (X11; Linux x86_64; rv:133.0) Gecko/20100101 Firefox/133.0"
URL = "https://example.com/page"


def always():
    return patch("cfscraper._stealth.random.random", return_value=0.0)


def never():
    return patch("cfscraper._stealth.random.random", return_value=0.99)


class TestConstruction:
    def test_bad_bounds(self):
        with pytest.raises(ValueError):
            StealthMode(min_delay=5, max_delay=1)

    def test_random_delay_in_bounds(self):
        stealth = StealthMode(min_delay=1, max_delay=2)
        for _ in range(20):
            assert 1 <= stealth.random_delay() <= 2


class TestApply:
    def test_all_headers_when_dice_hit(self):
        with always():
            headers = StealthMode().apply("GET", URL, None, CHROME_UA)
        assert headers["Referer"] == "https://example.com/"
        assert headers["DNT"] == "1"
        assert headers["Sec-Fetch-Dest"] == "document"
        assert headers["Sec-Fetch-Mode"] == "navigate"
        assert headers["Sec-Fetch-User"] == "?1"
        assert "Accept" in headers
        assert "Accept-Language" in headers
        assert headers["X-Client-Data"].startswith("CI")

    def test_nothing_when_dice_miss(self):
        with never():
            headers = StealthMode().apply("GET", URL, {"X-Own": "1"}, CHROME_UA)
        assert headers == {"X-Own": "1"}

    def test_caller_headers_win(self):
        with always():
            headers = StealthMode().apply(
                "GET", URL, {"referer": "https://mine/"}, CHROME_UA
            )
        assert headers["referer"] == "https://mine/"
        assert "Referer" not in headers

    def test_input_not_mutated(self):
        original = {"X-Own": "1"}
        with always():
            StealthMode().apply("GET", URL, original, CHROME_UA)
        assert original == {"X-Own": "1"}

    def test_no_sec_fetch_user_for_post(self):
        with always():
            headers = StealthMode().apply("POST", URL, None, CHROME_UA)
        assert "Sec-Fetch-User" not in headers

    def test_randomize_off(self):
        with always():
            headers = StealthMode(randomize_headers=False).apply(
                "GET", URL, None, CHROME_UA
            )
        assert list(headers) == ["X-Client-Data"]

    def test_firefox_quirk(self):
        with always():
            headers = StealthMode(randomize_headers=False).apply(
                "GET", URL, None, FIREFOX_UA
            )
        assert headers["Accept"].startswith("text/html")
        assert "X-Client-Data" not in headers

    def test_popular_referer(self):
        with patch(
            "cfscraper._stealth.random.random", return_value=0.9
        ), patch(
            "cfscraper._stealth.random.choice", return_value="https://www.google.com/"
        ):
            referer = StealthMode._pick_referer(URL)
        assert referer == "https://www.google.com/"


class TestPause:
    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        with patch(
            "cfscraper._stealth.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            assert await StealthMode().pause() == 0.0
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_human_like(self):
        stealth = StealthMode(min_delay=1, max_delay=1, human_like_delays=True)
        with patch(
            "cfscraper._stealth.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            assert await stealth.pause() == 1.0
        sleep.assert_awaited_once_with(1.0)
