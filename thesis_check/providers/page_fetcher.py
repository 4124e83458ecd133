from typing import Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from thesis_check.config import PAGE_MAX_CHARS, REQUEST_TIMEOUT
from thesis_check.errors import ProviderUnavailable
from thesis_check.logger import get_logger
from thesis_check.providers.web_search import make_session
from thesis_check.utils.text_utils import normalize_whitespace

logger = get_logger("page_fetcher")


def clean_soup(soup: BeautifulSoup, max_chars: Optional[int] = None) -> str:
    """Visible body text with navigation and script noise removed.

    Sentence terminators are kept so the text can be split into sentences.
    """
    for junk in soup(["script", "style", "nav", "footer", "noscript", "header", "aside"]):
        junk.decompose()
    main = soup.find(["main", "article"])
    root = main if main else (soup.body or soup)
    elems = root.find_all(["p", "h1", "h2", "h3", "li"])
    parts = [el.get_text(separator=" ", strip=True) for el in elems]
    text = normalize_whitespace(" ".join(p for p in parts if p))
    if not text:
        text = normalize_whitespace(root.get_text(separator=" ", strip=True))
    if max_chars and len(text) > max_chars:
        return text[:max_chars]
    return text


class RequestsPageFetcher:
    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: float = REQUEST_TIMEOUT, max_chars: int = PAGE_MAX_CHARS):
        self.session = session or make_session()
        self.timeout = timeout
        self.max_chars = max_chars

    def fetch(self, url: str) -> str:
        if urlparse(url or "").scheme not in ("http", "https"):
            raise ProviderUnavailable("page_fetcher", f"unsupported url {url!r}")
        try:
            logger.debug(f"requests: GET {url}")
            r = self.session.get(url, timeout=self.timeout, allow_redirects=True)
            r.raise_for_status()
        except requests.RequestException as e:
            raise ProviderUnavailable("page_fetcher", f"{url}: {e}") from e
        soup = BeautifulSoup(r.text, "html.parser")
        text = clean_soup(soup, self.max_chars)
        logger.info(f"   ✅ Scraped {len(text)} chars for {url}")
        return text
