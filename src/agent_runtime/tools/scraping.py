"""HTML fetching and parsing for the scraping tools."""

from __future__ import annotations

from urllib import error, request

from bs4 import BeautifulSoup

DEFAULT_TIMEOUT_S = 10.0
USER_AGENT = "Mozilla/5.0 (compatible; agent-runtime/0.1)"


def parse_html(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup, "html.parser")


def fetch_html(url: str, *, timeout_s: float = DEFAULT_TIMEOUT_S) -> str:
    req = request.Request(url=url, method="GET", headers={"User-Agent": USER_AGENT})
    try:
        with request.urlopen(req, timeout=timeout_s) as response:
            charset = response.headers.get_content_charset() or "utf-8"
            return response.read().decode(charset, errors="replace")
    except error.HTTPError as exc:
        raise RuntimeError(f"failed to load page {url}: status {exc.code}") from exc
    except error.URLError as exc:
        raise RuntimeError(f"failed to load page {url}: {exc.reason}") from exc
