"""Tests for council_ai/tools/web.py."""

import httpx
import pytest

from council_ai.tools.web import SEARCH_URL, format_hits, parse_results, web_search

RESULTS_HTML = """
<html><body>
  <div class="result results_links">
    <div class="links_main links_deep result__body">
      <h2 class="result__title">
        <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fdocs.python.org%2F3%2Flibrary%2Fasyncio.html&amp;rut=abc">asyncio Asynchronous I/O</a>
      </h2>
      <a class="result__snippet" href="#">asyncio is a library to write <b>concurrent</b> code.</a>
    </div>
  </div>
  <div class="result">
    <div class="result__body">
      <a class="result__a" href="https://duckduckgo.com/y.js?ad_provider=x">Sponsored</a>
    </div>
  </div>
  <div class="result">
    <div class="result__body">
      <a class="result__a" href="https://realpython.com/async-io-python/">Async IO in Python</a>
      <div class="result__snippet">A walkthrough.</div>
    </div>
  </div>
  <div class="result">
    <div class="result__body">
      <a class="result__a" href="https://realpython.com/async-io-python/">Duplicate</a>
    </div>
  </div>
</body></html>
"""


def test_parse_results_unwraps_and_filters():
    hits = parse_results(RESULTS_HTML)
    assert [h.url for h in hits] == [
        "https://docs.python.org/3/library/asyncio.html",
        "https://realpython.com/async-io-python/",
    ]
    assert hits[0].title == "asyncio Asynchronous I/O"
    assert hits[0].snippet == "asyncio is a library to write concurrent code."
    assert hits[1].snippet == "A walkthrough."


def test_parse_results_respects_limit():
    assert len(parse_results(RESULTS_HTML, limit=1)) == 1


def test_parse_results_empty_page():
    assert parse_results("<html><body>No results.</body></html>") == []


def test_format_hits():
    hits = parse_results(RESULTS_HTML)
    text = format_hits("python asyncio", hits)
    assert text.startswith('Search Results for "python asyncio" (Fast Mode):\n\n### asyncio Asynchronous I/O\n')
    assert "URL: https://realpython.com/async-io-python/\nA walkthrough.\n" in text


async def test_web_search_uses_given_client():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, text=RESULTS_HTML)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        hits = await web_search("python asyncio", client=client)

    assert seen["url"].startswith(SEARCH_URL)
    assert "q=python+asyncio" in seen["url"]
    assert len(hits) == 2


async def test_web_search_raises_on_http_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="busy"))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await web_search("anything", client=client)
