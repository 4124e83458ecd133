import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, Hashable, List, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from thesis_check.config import (
    GOOGLE_API_KEYS,
    QUOTA_COOLDOWN_SECONDS,
    REQUEST_TIMEOUT,
    SEARCH_CACHE_MAXSIZE,
    SEARCH_CACHE_TTL,
    SEARCH_ENGINE_ID,
    SEARCH_RESULTS_PER_QUERY,
)
from thesis_check.errors import ProviderUnavailable
from thesis_check.logger import get_logger
from thesis_check.schemas.source_schemas import SearchResult

logger = get_logger("web_search")

GOOGLE_ENDPOINT = "https://www.googleapis.com/customsearch/v1"


# ---- Session ----
def make_session() -> requests.Session:
    s = requests.Session()
    retries = Retry(
        total=1,
        backoff_factor=0.1,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET"],
        respect_retry_after_header=False,
    )
    s.mount("https://", HTTPAdapter(max_retries=retries, pool_connections=20, pool_maxsize=20))
    s.mount("http://", HTTPAdapter(max_retries=retries, pool_connections=20, pool_maxsize=20))
    s.headers.update({
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Connection": "keep-alive",
    })
    return s


# ---- Cache ----
class TTLCache:
    """Bounded mapping with per-entry expiry and least-recently-used eviction."""

    def __init__(self, maxsize: int = SEARCH_CACHE_MAXSIZE, ttl: float = SEARCH_CACHE_TTL,
                 clock: Callable[[], float] = time.monotonic):
        self.maxsize = maxsize
        self.ttl = ttl
        self._clock = clock
        self._data: "OrderedDict[Hashable, tuple]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable, default=None):
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._data[key]
                return default
            self._data.move_to_end(key)
            return value

    def set(self, key: Hashable, value) -> None:
        with self._lock:
            self._data[key] = (self._clock() + self.ttl, value)
            self._data.move_to_end(key)
            while len(self._data) > self.maxsize:
                self._data.popitem(last=False)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._data)


_MISSING = object()


# ---- Google Custom Search ----
class GoogleSearchProvider:
    """Google Custom Search with API-key rotation.

    A key that receives HTTP 429 is parked for `cooldown` seconds and the query
    is retried with the next available key.
    """

    def __init__(
        self,
        api_keys: Sequence[str] = GOOGLE_API_KEYS,
        engine_id: str = SEARCH_ENGINE_ID,
        num_results: int = SEARCH_RESULTS_PER_QUERY,
        cooldown: float = QUOTA_COOLDOWN_SECONDS,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.api_keys = [k for k in api_keys if k]
        self.engine_id = engine_id
        self.num_results = num_results
        self.cooldown = cooldown
        self.session = session or make_session()
        self.timeout = timeout
        self._clock = clock
        self._retry_after: Dict[str, float] = {}
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.api_keys and self.engine_id)

    def available_keys(self) -> List[str]:
        now = self._clock()
        return [k for k in self.api_keys if self._retry_after.get(k, 0) <= now]

    def _next_key(self, tried: set) -> Optional[str]:
        with self._lock:
            keys = [k for k in self.available_keys() if k not in tried]
            if not keys:
                return None
            key = keys[self._cursor % len(keys)]
            self._cursor += 1
            return key

    def _park(self, key: str) -> None:
        with self._lock:
            self._retry_after[key] = self._clock() + self.cooldown
        logger.warning(f"⚠️ API key {key[:5]}... over quota, parked for {self.cooldown / 3600:.0f}h")

    @staticmethod
    def _parse(items: List[dict], limit: int) -> List[SearchResult]:
        out = []
        for item in items[:limit]:
            link = item.get("link")
            if not link:
                continue
            metatags = (item.get("pagemap") or {}).get("metatags") or [{}]
            out.append(SearchResult(
                title=item.get("title", ""),
                url=link,
                author=metatags[0].get("author"),
            ))
        return out

    def search(self, query: str) -> List[SearchResult]:
        if not self.configured:
            raise ProviderUnavailable("google", "missing API key or search engine id")

        tried = set()
        while True:
            key = self._next_key(tried)
            if key is None:
                raise ProviderUnavailable("google", "all API keys over quota")
            tried.add(key)
            params = {"key": key, "cx": self.engine_id, "q": query, "num": self.num_results}
            try:
                r = self.session.get(GOOGLE_ENDPOINT, params=params, timeout=self.timeout)
            except requests.RequestException as e:
                raise ProviderUnavailable("google", str(e)) from e
            if r.status_code == 429:
                self._park(key)
                continue
            try:
                r.raise_for_status()
                data = r.json()
            except (requests.RequestException, ValueError) as e:
                raise ProviderUnavailable("google", str(e)) from e
            results = self._parse(data.get("items", []) or [], self.num_results)
            logger.info(f"google_search: got {len(results)} items for '{query[:60]}'")
            return results


class CachedSearchProvider:
    """Wraps any search provider with a TTL cache keyed on the normalized query."""

    def __init__(self, provider, cache: Optional[TTLCache] = None):
        self.provider = provider
        self.cache = cache if cache is not None else TTLCache()

    @staticmethod
    def cache_key(query: str) -> str:
        return query.strip().lower()[:100]

    def search(self, query: str) -> List[SearchResult]:
        key = self.cache_key(query)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Search cache hit for '{query[:50]}'")
            return list(cached)
        results = self.provider.search(query)
        self.cache.set(key, list(results))
        return results
