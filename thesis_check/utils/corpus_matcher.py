"""
Corpus matching: chunk-level overlap between a document and stored documents.

Every (target chunk, candidate chunk) pair is scored with cosine and character
n-gram similarity; either metric clearing its threshold is a hit. Hits are
weighted by the target chunk's token count so the final score approximates the
share of the document that overlaps something in the corpus.
"""

from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from thesis_check.config import (
    CHUNK_OVERLAP,
    CHUNK_SIZE,
    COSINE_THRESHOLD,
    KEYWORD_PRUNE_RATIO,
    MIN_REFERENCE_PARAGRAPH_LENGTH,
    MIN_TOKENS,
    NGRAM_THRESHOLD,
    REFERENCE_COSINE_THRESHOLD,
    REFERENCE_NGRAM_THRESHOLD,
)
from thesis_check.logger import get_logger
from thesis_check.schemas.analysis_schemas import Chunk, CorpusMatchResult, MatchRecord, SourceSummary
from thesis_check.schemas.source_schemas import CorpusDocument
from thesis_check.utils.chunker import build_chunks, chunk_tokens, tokenize_for_chunking
from thesis_check.utils.page_locator import PageLocator
from thesis_check.utils.similarity_utils import (
    TextProfile,
    build_profile,
    is_match,
    profile_cosine,
    profile_ngram,
)

logger = get_logger("corpus_matcher")

REFERENCE_SOURCE_ID = "reference_data"
REFERENCE_SOURCE_TITLE = "Reference material"


class _ChunkIndex:
    """Chunks of one comparison source with their profiles and an inverted token index."""

    def __init__(self, chunks: List[Chunk], content: str):
        self.chunks = chunks
        self.content = content
        self.profiles = [build_profile(c.text) for c in chunks]
        self.postings: Dict[str, Set[int]] = defaultdict(set)
        for idx, profile in enumerate(self.profiles):
            for term in profile.vocabulary:
                self.postings[term].add(idx)

    def candidates_for(self, profile: TextProfile, prune_ratio: float) -> Iterable[int]:
        if prune_ratio <= 0:
            return range(len(self.chunks))
        shared: Counter = Counter()
        for term in profile.vocabulary:
            for idx in self.postings.get(term, ()):
                shared[idx] += 1
        keep = []
        for idx, count in shared.items():
            smaller = min(len(profile.vocabulary), len(self.profiles[idx].vocabulary)) or 1
            if count / smaller >= prune_ratio:
                keep.append(idx)
        return sorted(keep)

    def source_text(self, idx: int) -> str:
        chunk = self.chunks[idx]
        if self.content and chunk.end_offset > chunk.start_offset:
            return self.content[chunk.start_offset:chunk.end_offset]
        return chunk.text


class CorpusMatcher:
    def __init__(
        self,
        chunk_size: int = CHUNK_SIZE,
        overlap: int = CHUNK_OVERLAP,
        min_tokens: int = MIN_TOKENS,
        cosine_threshold: float = COSINE_THRESHOLD,
        ngram_threshold: float = NGRAM_THRESHOLD,
        reference_cosine_threshold: float = REFERENCE_COSINE_THRESHOLD,
        reference_ngram_threshold: float = REFERENCE_NGRAM_THRESHOLD,
        keyword_prune_ratio: float = KEYWORD_PRUNE_RATIO,
        min_reference_paragraph_length: int = MIN_REFERENCE_PARAGRAPH_LENGTH,
    ):
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.min_tokens = min_tokens
        self.cosine_threshold = cosine_threshold
        self.ngram_threshold = ngram_threshold
        self.reference_cosine_threshold = reference_cosine_threshold
        self.reference_ngram_threshold = reference_ngram_threshold
        self.keyword_prune_ratio = keyword_prune_ratio
        self.min_reference_paragraph_length = min_reference_paragraph_length

    def match(
        self,
        content: str,
        candidates: Iterable[CorpusDocument],
        reference_paragraphs: Sequence[str] = (),
        document_id: str = "",
    ) -> CorpusMatchResult:
        """Compare `content` against every candidate and the reference paragraphs.

        Raises InsufficientContent when the document itself is too short.
        Candidates that are too short or fail to compare are skipped.
        """
        candidates = [c for c in candidates if c.id != document_id]
        paragraphs = [p for p in reference_paragraphs if len(p) >= self.min_reference_paragraph_length]
        if not candidates and not paragraphs:
            logger.info("No corpus documents or reference data to compare against")
            return CorpusMatchResult()

        tokens, target_chunks = build_chunks(
            content, document_id, self.chunk_size, self.overlap, self.min_tokens
        )
        total_tokens = len(tokens)
        target_profiles = [build_profile(c.text) for c in target_chunks]
        locator = PageLocator(content)
        logger.info(
            f"🔍 Corpus matching {len(target_chunks)} chunks against "
            f"{len(candidates)} documents and {len(paragraphs)} reference paragraphs"
        )

        records: List[MatchRecord] = []
        sources: List[SourceSummary] = []
        global_acc = 0.0

        for candidate in candidates:
            found: List[MatchRecord] = []
            try:
                acc = self._match_candidate(
                    content, target_chunks, target_profiles, candidate, locator, found
                )
            except Exception as e:
                logger.error(f"❌ Skipping candidate {candidate.id}: {e}")
                continue
            records.extend(found)
            if acc > 0:
                global_acc += acc
                sources.append(SourceSummary(
                    source_id=candidate.id,
                    title=candidate.title,
                    author=candidate.author,
                    overall_similarity_percent=round(min(acc / total_tokens, 1.0) * 100),
                    source_type="corpus",
                ))

        if paragraphs:
            ref_acc = self._match_reference(
                content, target_chunks, target_profiles, paragraphs, locator, records
            )
            if ref_acc > 0:
                global_acc += ref_acc
                sources.append(SourceSummary(
                    source_id=REFERENCE_SOURCE_ID,
                    title=REFERENCE_SOURCE_TITLE,
                    overall_similarity_percent=round(min(ref_acc / total_tokens, 1.0) * 100),
                    source_type="reference",
                ))

        score = min(round(global_acc / total_tokens * 100), 100) if total_tokens else 0
        records.sort(key=lambda r: r.similarity_percent, reverse=True)
        sources.sort(key=lambda s: s.overall_similarity_percent, reverse=True)
        logger.info(f"✅ Corpus score {score}% from {len(records)} matches, {len(sources)} sources")
        return CorpusMatchResult(
            plagiarism_score=score,
            match_records=records,
            sources=sources,
            total_tokens=total_tokens,
        )

    def _compare(
        self,
        content: str,
        target_chunks: List[Chunk],
        target_profiles: List[TextProfile],
        index: _ChunkIndex,
        locator: PageLocator,
        records: List[MatchRecord],
        source_ref: str,
        source_title: str,
        source_type: str,
        thresholds: Tuple[float, float],
    ) -> float:
        acc = 0.0
        for chunk, profile in zip(target_chunks, target_profiles):
            for idx in index.candidates_for(profile, self.keyword_prune_ratio):
                other = index.profiles[idx]
                cosine = profile_cosine(profile, other)
                ngram = profile_ngram(profile, other)
                if not is_match(cosine, ngram, *thresholds):
                    continue
                best = max(cosine, ngram)
                acc += chunk.token_count * best
                records.append(MatchRecord(
                    start_offset=chunk.start_offset,
                    end_offset=chunk.end_offset,
                    matched_text=content[chunk.start_offset:chunk.end_offset],
                    source_ref=source_ref,
                    similarity_percent=round(best * 100),
                    page_number=locator.page_for(chunk.start_offset),
                    source_type=source_type,
                    source_title=source_title,
                    source_text=index.source_text(idx),
                ))
                logger.debug(
                    f"{source_ref}: chunk@{chunk.start_offset} cosine={cosine:.2f} ngram={ngram:.2f}"
                )
        return acc

    def _match_candidate(
        self,
        content: str,
        target_chunks: List[Chunk],
        target_profiles: List[TextProfile],
        candidate: CorpusDocument,
        locator: PageLocator,
        records: List[MatchRecord],
    ) -> float:
        cand_tokens = tokenize_for_chunking(candidate.content)
        if len(cand_tokens) < self.min_tokens:
            logger.debug(f"Candidate {candidate.id} has {len(cand_tokens)} tokens, skipped")
            return 0.0
        cand_chunks = chunk_tokens(
            cand_tokens, candidate.content, candidate.id, self.chunk_size, self.overlap, None
        )
        index = _ChunkIndex(cand_chunks, candidate.content)
        return self._compare(
            content, target_chunks, target_profiles, index, locator, records,
            candidate.id, candidate.title, "corpus",
            (self.cosine_threshold, self.ngram_threshold),
        )

    def _match_reference(
        self,
        content: str,
        target_chunks: List[Chunk],
        target_profiles: List[TextProfile],
        paragraphs: Sequence[str],
        locator: PageLocator,
        records: List[MatchRecord],
    ) -> float:
        acc = 0.0
        for i, paragraph in enumerate(paragraphs):
            try:
                ref_tokens = tokenize_for_chunking(paragraph)
                ref_chunks = chunk_tokens(
                    ref_tokens, paragraph, f"{REFERENCE_SOURCE_ID}#{i}",
                    self.chunk_size, self.overlap, None,
                )
                if not ref_chunks:
                    continue
                acc += self._compare(
                    content, target_chunks, target_profiles,
                    _ChunkIndex(ref_chunks, paragraph), locator, records,
                    REFERENCE_SOURCE_ID, REFERENCE_SOURCE_TITLE, "reference",
                    (self.reference_cosine_threshold, self.reference_ngram_threshold),
                )
            except Exception as e:
                logger.error(f"❌ Skipping reference paragraph {i}: {e}")
        return acc
