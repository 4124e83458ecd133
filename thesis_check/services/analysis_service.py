"""
One analysis pass over a stored document.

Corpus and web matching run concurrently in worker threads, then the AI
heuristic and every classifier provider. Collaborator failures degrade the
affected signal; only a missing or unreadable document fails the pass.
"""

import asyncio
import time
from typing import List, Optional, Sequence, Tuple

from thesis_check.config import (
    MAX_AI_SEGMENTS,
    MAX_MATCH_RECORDS,
    MAX_MATCHED_TEXT_CHARS,
    MAX_SOURCES,
    MIN_CONTENT_LENGTH,
)
from thesis_check.errors import InsufficientContent, JobFailure, ProviderUnavailable
from thesis_check.logger import get_logger
from thesis_check.schemas.analysis_schemas import (
    AIFlaggedSegment,
    AnalysisOptions,
    AnalysisResult,
    ClassifierDetection,
    CorpusMatchResult,
    DetectionResult,
    FusedAIResult,
    MatchRecord,
    SourceSummary,
    WebMatchResult,
)
from thesis_check.schemas.source_schemas import CorpusDocument
from thesis_check.utils.ai_detector import HeuristicAIScorer
from thesis_check.utils.ai_fusion import fuse_detections
from thesis_check.utils.corpus_matcher import CorpusMatcher
from thesis_check.utils.web_matcher import WebMatcher

logger = get_logger("analysis_service")


def limit_text(text: str, max_chars: int = MAX_MATCHED_TEXT_CHARS) -> str:
    if not text or len(text) <= max_chars:
        return text or ""
    return text[:max_chars] + "..."


def combined_plagiarism_score(scores: Sequence[int]) -> int:
    """Mean of the plagiarism signals that actually ran; 0 when none did."""
    if not scores:
        return 0
    return round(sum(scores) / len(scores))


class AnalysisService:
    def __init__(
        self,
        corpus,
        search_provider=None,
        page_fetcher=None,
        classifiers: Sequence = (),
        corpus_matcher: Optional[CorpusMatcher] = None,
        web_matcher: Optional[WebMatcher] = None,
        ai_scorer: Optional[HeuristicAIScorer] = None,
        min_content_length: int = MIN_CONTENT_LENGTH,
        max_match_records: int = MAX_MATCH_RECORDS,
        max_sources: int = MAX_SOURCES,
        max_ai_segments: int = MAX_AI_SEGMENTS,
        max_text_chars: int = MAX_MATCHED_TEXT_CHARS,
    ):
        self.corpus = corpus
        self.classifiers = list(classifiers)
        self.corpus_matcher = corpus_matcher or CorpusMatcher()
        self.web_matcher = web_matcher or WebMatcher(search_provider, page_fetcher)
        self.ai_scorer = ai_scorer or HeuristicAIScorer()
        self.min_content_length = min_content_length
        self.max_match_records = max_match_records
        self.max_sources = max_sources
        self.max_ai_segments = max_ai_segments
        self.max_text_chars = max_text_chars

    def _load(self, document_id: str) -> CorpusDocument:
        try:
            doc = self.corpus.get_document(document_id)
        except KeyError as e:
            raise JobFailure(document_id, "document not found") from e
        if not isinstance(doc.content, str):
            raise JobFailure(document_id, "document content is unreadable")
        return doc

    # ---- Plagiarism signals ----

    def _corpus_signal(self, doc: CorpusDocument) -> CorpusMatchResult:
        try:
            candidates = self.corpus.list_documents()
            reference = self.corpus.reference_paragraphs()
        except ProviderUnavailable:
            raise
        except Exception as e:
            raise ProviderUnavailable("corpus", str(e) or type(e).__name__) from e
        return self.corpus_matcher.match(doc.content, candidates, reference, document_id=doc.id)

    async def _traditional(
        self, doc: CorpusDocument, degraded: List[str]
    ) -> Tuple[Optional[CorpusMatchResult], Optional[WebMatchResult]]:
        corpus_out, web_out = await asyncio.gather(
            asyncio.to_thread(self._corpus_signal, doc),
            asyncio.to_thread(self.web_matcher.match, doc.content),
            return_exceptions=True,
        )

        corpus_res: Optional[CorpusMatchResult] = None
        if isinstance(corpus_out, (InsufficientContent, ProviderUnavailable)):
            logger.warning(f"⚠️ Corpus signal skipped for {doc.id}: {corpus_out}")
            degraded.append("corpus")
        elif isinstance(corpus_out, BaseException):
            raise corpus_out
        else:
            corpus_res = corpus_out

        web_res: Optional[WebMatchResult] = None
        if isinstance(web_out, ProviderUnavailable):
            logger.warning(f"⚠️ Web signal skipped for {doc.id}: {web_out}")
            degraded.append("web")
        elif isinstance(web_out, BaseException):
            raise web_out
        else:
            web_res = web_out
            if web_res.degraded:
                degraded.append("web")
            if web_res.degraded and web_res.queries_succeeded == 0:
                web_res = None
        return corpus_res, web_res

    # ---- AI signals ----

    @staticmethod
    def _to_detection(provider, response, content: str) -> ClassifierDetection:
        n = len(content)
        details = []
        for span in response.flagged_spans:
            start = min(span.start, n)
            end = min(max(span.end, start), n)
            if end > start:
                details.append(AIFlaggedSegment(
                    start_offset=start,
                    end_offset=end,
                    text=content[start:end],
                    confidence_percent=round(span.confidence),
                ))
        return ClassifierDetection(
            provider=provider.name, score=response.score, weight=provider.weight, details=details
        )

    async def _ai(self, content: str, degraded: List[str]) -> FusedAIResult:
        heuristic = await asyncio.to_thread(self.ai_scorer.detect, content)
        detections: List[DetectionResult] = [heuristic]

        outcomes = await asyncio.gather(
            *(asyncio.to_thread(c.classify, content) for c in self.classifiers),
            return_exceptions=True,
        )
        for provider, outcome in zip(self.classifiers, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"⚠️ Classifier {provider.name} unavailable: {outcome}")
                degraded.append(f"ai:{provider.name}")
                continue
            detections.append(self._to_detection(provider, outcome, content))

        return fuse_detections(detections, content)

    # ---- Result assembly ----

    def _limit_matches(self, records: List[MatchRecord]) -> List[MatchRecord]:
        records = sorted(records, key=lambda r: r.similarity_percent, reverse=True)
        return [
            r.model_copy(update={
                "matched_text": limit_text(r.matched_text, self.max_text_chars),
                "source_text": limit_text(r.source_text, self.max_text_chars),
            })
            for r in records[:self.max_match_records]
        ]

    def _limit_sources(self, sources: List[SourceSummary]) -> List[SourceSummary]:
        ordered = sorted(sources, key=lambda s: s.overall_similarity_percent, reverse=True)
        return ordered[:self.max_sources]

    def _limit_segments(self, segments: List[AIFlaggedSegment]) -> List[AIFlaggedSegment]:
        return [
            s.model_copy(update={"text": limit_text(s.text, self.max_text_chars)})
            for s in segments[:self.max_ai_segments]
        ]

    async def analyze(self, document_id: str, options: Optional[AnalysisOptions] = None) -> AnalysisResult:
        options = options or AnalysisOptions()
        started = time.perf_counter()
        doc = self._load(document_id)
        content = doc.content
        logger.info(
            f"📄 Analysing {document_id} ({len(content)} chars, "
            f"traditional={options.check_traditional}, ai={options.check_ai})"
        )

        if len(content.strip()) < self.min_content_length:
            logger.warning(f"⚠️ {document_id} is too short to analyse ({len(content.strip())} chars)")
            return AnalysisResult(
                document_id=document_id,
                degraded_signals=["content"],
                reduced_confidence=True,
                processing_seconds=round(time.perf_counter() - started, 3),
            )

        degraded: List[str] = []
        corpus_res = web_res = None
        if options.check_traditional:
            corpus_res, web_res = await self._traditional(doc, degraded)

        fused = FusedAIResult()
        if options.check_ai:
            fused = await self._ai(content, degraded)

        ran = [r.plagiarism_score for r in (corpus_res,) if r is not None]
        ran += [r.web_plagiarism_score for r in (web_res,) if r is not None]
        matches: List[MatchRecord] = []
        sources: List[SourceSummary] = []
        for res in (corpus_res, web_res):
            if res is not None:
                matches.extend(res.match_records)
                sources.extend(res.sources)

        result = AnalysisResult(
            document_id=document_id,
            plagiarism_score=combined_plagiarism_score(ran) if options.check_traditional else 0,
            corpus_score=corpus_res.plagiarism_score if corpus_res else 0,
            web_score=web_res.web_plagiarism_score if web_res else 0,
            ai_score=fused.ai_score,
            sources=self._limit_sources(sources),
            matches=self._limit_matches(matches),
            flagged_segments=self._limit_segments(fused.flagged_segments),
            ai_providers=fused.providers,
            degraded_signals=degraded,
            reduced_confidence=bool(degraded),
            processing_seconds=round(time.perf_counter() - started, 3),
        )
        logger.info(
            f"✅ {document_id}: plagiarism {result.plagiarism_score}%, AI {result.ai_score}% "
            f"in {result.processing_seconds:.1f}s"
        )
        return result
