import requests

from support_assistant.ingestion.web import SiteCrawler, fetch_website_text, normalize_url

SITE = {
    "https://docs.example.com/": """
        <html><head><title>Service docs</title></head><body>
        <nav><a href="/power">Power</a> <a href="/broken">Broken</a></nav>
        <p>Start here for board repairs.</p>
        <a href="https://other.example.com/">Elsewhere</a>
        <a href="mailto:help@example.com">Mail</a>
        </body></html>
    """,
    "https://docs.example.com/power": """
        <html><head><title>Power rails</title></head><body>
        <script>var tracking = 1;</script>
        <p>VS1 is nominally 2.05V.</p>
        <a href="/#top">Home</a> <a href="/empty">Empty</a>
        </body></html>
    """,
    "https://docs.example.com/empty": "<html><body><footer>Copyright</footer></body></html>",
}


class FakeResponse:
    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, pages):
        self.pages = pages
        self.requested = []

    def get(self, url, headers=None, timeout=None):
        self.requested.append(url)
        if url not in self.pages:
            return FakeResponse("", status_code=404)
        return FakeResponse(self.pages[url])


def test_normalize_url_adds_scheme_and_drops_fragment():
    assert normalize_url(" docs.example.com/guide#intro ") == "https://docs.example.com/guide"
    assert normalize_url("http://docs.example.com/") == "http://docs.example.com/"


def test_crawl_stays_on_host_and_skips_failed_and_empty_pages():
    session = FakeSession(SITE)
    crawler = SiteCrawler("https://docs.example.com/", delay=0, session=session)

    pages = list(crawler.crawl())

    assert [page.title for page in pages] == ["Service docs", "Power rails"]
    assert "var tracking" not in pages[1].text
    assert pages[0].text == "Start here for board repairs. Elsewhere Mail"
    assert all("other.example.com" not in url for url in session.requested)
    assert session.requested.count("https://docs.example.com/") == 1
    assert "https://docs.example.com/broken" in session.requested


def test_crawl_stops_at_max_pages():
    session = FakeSession(SITE)

    pages = list(SiteCrawler("docs.example.com/", max_pages=1, delay=0, session=session).crawl())

    assert [page.url for page in pages] == ["https://docs.example.com/"]
    assert session.requested == ["https://docs.example.com/"]


def test_allowed_paths_limit_followed_links():
    session = FakeSession(SITE)
    crawler = SiteCrawler(
        "https://docs.example.com/", delay=0, session=session, allowed_paths=["/power"]
    )

    pages = list(crawler.crawl())

    assert [page.title for page in pages] == ["Service docs", "Power rails"]
    assert session.requested == ["https://docs.example.com/", "https://docs.example.com/power"]


def test_fetch_website_text_joins_one_section_per_page():
    text = fetch_website_text("https://docs.example.com/", delay=0, session=FakeSession(SITE))

    assert text.startswith("# Service docs\nSource: https://docs.example.com/")
    assert "# Power rails\nSource: https://docs.example.com/power\n\nVS1 is nominally 2.05V." in text
