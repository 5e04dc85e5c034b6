"""Utilities for ingesting content from web sources."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Set
from urllib.parse import urldefrag, urljoin, urlparse

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"User-Agent": "SupportAssistant/1.0"}
BOILERPLATE_TAGS = ["script", "style", "noscript", "header", "footer", "nav", "aside", "form"]


@dataclass
class WebPage:
    url: str
    title: str
    text: str

    def as_section(self) -> str:
        return f"# {self.title}\nSource: {self.url}\n\n{self.text}"


def normalize_url(url: str) -> str:
    """Default bare hosts to https and drop fragments."""

    url = url.strip()
    if not urlparse(url).scheme:
        url = f"https://{url}"
    return urldefrag(url)[0]


class SiteCrawler:
    """Breadth-first crawl of one host, optionally limited to path prefixes.

    Pages that fail to load or have no text after boilerplate removal are
    skipped and do not count towards ``max_pages``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        max_pages: int = 10,
        delay: float = 0.5,
        allowed_paths: Optional[Iterable[str]] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
    ) -> None:
        self.base_url = normalize_url(base_url)
        self.host = urlparse(self.base_url).netloc
        self.max_pages = max_pages
        self.delay = delay
        self.allowed_paths = tuple(allowed_paths or ())
        self.session = session or requests.Session()
        self.timeout = timeout

    def _in_scope(self, url: str) -> bool:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or parsed.netloc != self.host:
            return False
        return not self.allowed_paths or parsed.path.startswith(self.allowed_paths)

    def _fetch(self, url: str) -> Optional[BeautifulSoup]:
        try:
            response = self.session.get(url, headers=DEFAULT_HEADERS, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Skipping %s: %s", url, exc)
            return None
        return BeautifulSoup(response.text, "html.parser")

    def _links(self, soup: BeautifulSoup, page_url: str) -> Iterator[str]:
        for anchor in soup.find_all("a", href=True):
            link = urldefrag(urljoin(page_url, anchor["href"]))[0]
            if self._in_scope(link):
                yield link

    @staticmethod
    def _page(soup: BeautifulSoup, url: str) -> WebPage:
        title = soup.title.get_text(strip=True) if soup.title else ""
        root = soup.body or soup
        for tag in root(BOILERPLATE_TAGS):
            tag.decompose()
        text = " ".join(root.get_text(" ", strip=True).split())
        return WebPage(url=url, title=title or url, text=text)

    def crawl(self) -> Iterator[WebPage]:
        queue = deque([self.base_url])
        seen: Set[str] = {self.base_url}
        yielded = 0
        while queue and yielded < self.max_pages:
            url = queue.popleft()
            soup = self._fetch(url)
            if soup is None:
                continue
            for link in self._links(soup, url):
                if link not in seen:
                    seen.add(link)
                    queue.append(link)
            page = self._page(soup, url)
            if page.text:
                yielded += 1
                yield page
            if queue and yielded < self.max_pages and self.delay > 0:
                time.sleep(self.delay)
        logger.info("Crawled %d pages starting at %s", yielded, self.base_url)


def fetch_website_text(base_url: str, *, max_pages: int = 10, **kwargs) -> str:
    """Crawl ``base_url`` and join the pages into one text, one section per page."""

    pages: List[WebPage] = list(SiteCrawler(base_url, max_pages=max_pages, **kwargs).crawl())
    return "\n\n".join(page.as_section() for page in pages)
