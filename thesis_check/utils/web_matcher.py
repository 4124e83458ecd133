"""
Web matching: paragraph search queries, page fetches and sentence comparison.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from thesis_check.config import (
    MAX_FETCH_WORKERS,
    MIN_PAGE_SENTENCE_LENGTH,
    MIN_PARAGRAPH_LENGTH,
    MIN_SENTENCE_LENGTH,
    SEARCH_QUERY_MAX_CHARS,
    WEB_SIMILARITY_THRESHOLD,
)
from thesis_check.errors import ProviderUnavailable
from thesis_check.logger import get_logger
from thesis_check.schemas.analysis_schemas import MatchRecord, SourceSummary, WebMatchResult
from thesis_check.schemas.source_schemas import SearchResult
from thesis_check.utils.page_locator import PageLocator
from thesis_check.utils.similarity_utils import TextProfile, build_profile, profile_cosine
from thesis_check.utils.text_utils import paragraph_spans, sentence_spans, trimmed_span

logger = get_logger("web_matcher")

PageSentences = List[Tuple[str, TextProfile]]


def web_plagiarism_score(
    total_paragraphs: int, paragraphs_with_hits: int, hit_percents: Iterable[int]
) -> int:
    """Share of paragraphs with hits, scaled by the mean hit similarity."""
    hit_percents = list(hit_percents)
    if total_paragraphs <= 0 or not hit_percents:
        return 0
    avg_similarity = sum(hit_percents) / len(hit_percents) / 100
    return min(round(paragraphs_with_hits / total_paragraphs * 100 * avg_similarity), 100)


def _domain(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


class WebMatcher:
    def __init__(
        self,
        search_provider=None,
        page_fetcher=None,
        similarity_threshold: float = WEB_SIMILARITY_THRESHOLD,
        min_paragraph_length: int = MIN_PARAGRAPH_LENGTH,
        min_sentence_length: int = MIN_SENTENCE_LENGTH,
        min_page_sentence_length: int = MIN_PAGE_SENTENCE_LENGTH,
        query_max_chars: int = SEARCH_QUERY_MAX_CHARS,
        max_fetch_workers: int = MAX_FETCH_WORKERS,
    ):
        self.search_provider = search_provider
        self.page_fetcher = page_fetcher
        self.similarity_threshold = similarity_threshold
        self.min_paragraph_length = min_paragraph_length
        self.min_sentence_length = min_sentence_length
        self.min_page_sentence_length = min_page_sentence_length
        self.query_max_chars = query_max_chars
        self.max_fetch_workers = max_fetch_workers

    # ---- Page handling ----

    def _fetch_one(self, url: str) -> Optional[PageSentences]:
        try:
            text = self.page_fetcher.fetch(url)
        except Exception as e:
            logger.debug(f"Fetch failed for {url}: {e}")
            return None
        if not text:
            return None
        sentences = []
        for start, end in sentence_spans(text):
            raw = text[start:end]
            if len(raw) < self.min_page_sentence_length:
                continue
            sentences.append((raw.strip(), build_profile(raw)))
        return sentences

    def _prefetch(self, urls: List[str], pages: Dict[str, Optional[PageSentences]]) -> None:
        pending = [u for u in dict.fromkeys(urls) if u not in pages]
        if not pending:
            return
        with ThreadPoolExecutor(max_workers=max(1, min(self.max_fetch_workers, len(pending)))) as executor:
            for url, sentences in zip(pending, executor.map(self._fetch_one, pending)):
                pages[url] = sentences

    # ---- Matching ----

    def _sentence_spans(self, content: str, start: int, end: int) -> List[Tuple[int, int]]:
        spans = [(start + s, start + e) for s, e in sentence_spans(content[start:end])] or [(start, end)]
        result = []
        for s, e in spans:
            s, e = trimmed_span(content, s, e)
            if e - s >= self.min_sentence_length:
                result.append((s, e))
        return result

    def match(self, content: str) -> WebMatchResult:
        paragraphs = paragraph_spans(content)
        total_paragraphs = len(paragraphs)

        if self.search_provider is None or self.page_fetcher is None:
            logger.warning("⚠️ Web matching skipped: no search provider or page fetcher configured")
            return WebMatchResult(total_paragraphs=total_paragraphs, degraded=True)

        locator = PageLocator(content)
        pages: Dict[str, Optional[PageSentences]] = {}
        records: List[MatchRecord] = []
        sources: List[SourceSummary] = []
        seen_urls = set()
        hit_paragraphs = set()
        degraded = False
        queries_succeeded = 0

        logger.info(f"🌐 Web matching {total_paragraphs} paragraphs")
        for p_idx, (p_start, p_end) in enumerate(paragraphs):
            p_start, p_end = trimmed_span(content, p_start, p_end)
            if p_end - p_start < self.min_paragraph_length:
                continue

            query = content[p_start:p_end][:self.query_max_chars]
            try:
                results: List[SearchResult] = self.search_provider.search(query)
            except ProviderUnavailable as e:
                logger.warning(f"⚠️ Search unavailable for paragraph {p_idx + 1}: {e}")
                degraded = True
                continue
            except Exception as e:
                logger.error(f"❌ Search failed for paragraph {p_idx + 1}: {e}")
                degraded = True
                continue
            queries_succeeded += 1
            if not results:
                continue

            self._prefetch([r.url for r in results], pages)
            sentences = [
                (s, e, build_profile(content[s:e]))
                for s, e in self._sentence_spans(content, p_start, p_end)
            ]

            for result in results:
                page_sentences = pages.get(result.url)
                if not page_sentences:
                    continue
                for s, e, profile in sentences:
                    best, best_text = 0.0, ""
                    for text, page_profile in page_sentences:
                        sim = profile_cosine(profile, page_profile)
                        if sim > best:
                            best, best_text = sim, text
                    if best <= self.similarity_threshold:
                        continue

                    percent = round(best * 100)
                    hit_paragraphs.add(p_idx)
                    if result.url not in seen_urls:
                        seen_urls.add(result.url)
                        sources.append(SourceSummary(
                            source_id=result.url,
                            title=result.title,
                            author=result.author,
                            overall_similarity_percent=percent,
                            url=result.url,
                            source_type="web",
                            domain=_domain(result.url),
                        ))
                    records.append(MatchRecord(
                        start_offset=s,
                        end_offset=e,
                        matched_text=content[s:e],
                        source_ref=result.url,
                        similarity_percent=percent,
                        page_number=locator.page_for(s),
                        source_type="web",
                        source_title=result.title,
                        source_text=best_text,
                    ))
                    logger.debug(f"Paragraph {p_idx + 1} hit {result.url} at {percent}%")

        records.sort(key=lambda r: r.similarity_percent, reverse=True)
        score = web_plagiarism_score(
            total_paragraphs, len(hit_paragraphs), [r.similarity_percent for r in records]
        )
        logger.info(
            f"✅ Web score {score}% ({len(hit_paragraphs)}/{total_paragraphs} paragraphs, "
            f"{len(sources)} sources{', degraded' if degraded else ''})"
        )
        return WebMatchResult(
            web_plagiarism_score=score,
            match_records=records,
            sources=sources,
            total_paragraphs=total_paragraphs,
            paragraphs_with_hits=len(hit_paragraphs),
            queries_succeeded=queries_succeeded,
            degraded=degraded,
        )
