import httpx

from pdxcamps.services.web_search_service import WebSearch


DDG_HTML = """
<html><body>
<div class="result results_links results_links_deep web-result">
  <div class="links_main links_deep result__body">
    <h2 class="result__title">
      <a rel="nofollow" class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Ftrackers.example%2Fpdx%2Fsummer&amp;rut=abc">Trackers Earth Summer Camps</a>
    </h2>
    <a class="result__snippet" href="#">Outdoor <b>summer camps</b> in Portland</a>
  </div>
</div>
<div class="result">
  <div class="result__body">
    <h2><a class="result__a" href="https://omsi.edu/camps">OMSI Camps</a></h2>
  </div>
</div>
</body></html>
"""

PAGE_HTML = """
<html><head><title>Wild Week</title><style>.x{color:red}</style></head>
<body><script>var tracking = 1;</script><h1>Wild Week</h1><p>Day camps for   ages 6-12.</p></body></html>
"""


def test_search_parses_ddg_results():
    def handler(request):
        assert request.url.params["q"] == "portland summer camps"
        return httpx.Response(200, text=DDG_HTML)

    ws = WebSearch(transport=httpx.MockTransport(handler))
    results = ws.search("portland summer camps")
    assert results == [
        {"title": "Trackers Earth Summer Camps", "url": "https://trackers.example/pdx/summer", "snippet": "Outdoor summer camps in Portland"},
        {"title": "OMSI Camps", "url": "https://omsi.edu/camps", "snippet": None},
    ]
    assert len(ws.search("portland summer camps", k=1)) == 1


def test_search_failure_returns_nothing():
    ws = WebSearch(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    assert ws.search("camps") == []


def test_fetch_content_strips_scripts_and_truncates():
    ws = WebSearch(max_content_chars=30, transport=httpx.MockTransport(lambda request: httpx.Response(200, text=PAGE_HTML)))
    text = ws.fetch_content("https://wild.example")
    assert len(text) == 30
    assert text.startswith("Wild Week")
    assert "tracking" not in WebSearch.extract_text(PAGE_HTML)
    assert WebSearch.extract_text(PAGE_HTML).endswith("Day camps for ages 6-12.")


def test_fetch_content_failure():
    ws = WebSearch(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    assert ws.fetch_content("https://gone.example") is None
