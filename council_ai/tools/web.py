"""Fast web search through the DuckDuckGo HTML endpoint (no browser needed)."""

import logging
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

SEARCH_URL = "https://html.duckduckgo.com/html/"
MAX_RESULTS = 5
TIMEOUT_SEC = 10.0
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


@dataclass
class SearchHit:
    title: str
    url: str
    snippet: str


def _unwrap_redirect(link: str) -> str:
    """DuckDuckGo wraps result links in ``/l/?uddg=<target>``."""
    if "duckduckgo.com/l/" not in link:
        return link
    target = parse_qs(urlparse(link).query).get("uddg")
    return target[0] if target else link


def parse_results(html: str, limit: int = MAX_RESULTS) -> list[SearchHit]:
    """Pull title, target URL and snippet from a DuckDuckGo HTML results page."""
    soup = BeautifulSoup(html, "html.parser")
    hits: list[SearchHit] = []
    for body in soup.select(".result__body"):
        anchor = body.select_one("a.result__a")
        if anchor is None or not anchor.get("href"):
            continue
        url = _unwrap_redirect(str(anchor["href"]))
        if "duckduckgo.com" in url or any(h.url == url for h in hits):
            continue
        snippet_el = body.select_one(".result__snippet")
        hits.append(
            SearchHit(
                title=anchor.get_text(" ", strip=True),
                url=url,
                snippet=snippet_el.get_text(" ", strip=True) if snippet_el else "",
            )
        )
        if len(hits) >= limit:
            break
    return hits


def format_hits(query: str, hits: list[SearchHit]) -> str:
    blocks = [f"### {h.title}\nURL: {h.url}\n{h.snippet}\n" for h in hits]
    return f'Search Results for "{query}" (Fast Mode):\n\n' + "\n".join(blocks)


async def web_search(query: str, client: httpx.AsyncClient | None = None) -> list[SearchHit]:
    """Run a search and return up to five hits.

    Raises httpx.HTTPError on network failure or a non-2xx answer; the caller
    decides whether to fall back to the browser.
    """
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=TIMEOUT_SEC, follow_redirects=True)
    try:
        response = await client.get(SEARCH_URL, params={"q": query}, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
    finally:
        if owns_client:
            await client.aclose()
    hits = parse_results(response.text)
    logger.info("Web search %r: %d hits", query, len(hits))
    return hits
