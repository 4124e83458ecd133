"""
Heuristic AI-likelihood scoring.

A weighted table of lexical detectors is matched sentence by sentence (or
paragraph by paragraph), and two statistical bonuses are added: uniform
sentence lengths and a high length-adjusted type-token ratio. The score is the
share of the maximum attainable weight.

Known error profile: formal human academic prose triggers the passive-voice and
vocabulary detectors and can score high (false positives), while short or
casual AI output triggers few detectors and scores low (false negatives). The
score is a signal to review, not a verdict.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from thesis_check.config import (
    AI_SEGMENT_MIN_SCORE,
    DIVERSITY_BASELINE,
    DIVERSITY_SPAN,
    HEURISTIC_WEIGHT,
    MIN_SENTENCES_FOR_UNIFORMITY,
    MIN_WORDS_FOR_DIVERSITY,
    SENTENCE_FLAG_RATIO,
    SENTENCE_UNIFORMITY_WEIGHT,
    VOCABULARY_DIVERSITY_WEIGHT,
)
from thesis_check.logger import get_logger
from thesis_check.schemas.analysis_schemas import AIFlaggedSegment, AIScoreResult, HeuristicDetection
from thesis_check.utils.text_utils import sentence_spans, split_paragraphs, tokenize, trimmed_span

logger = get_logger("ai_detector")

SENTENCE = "sentence"
PARAGRAPH = "paragraph"


@dataclass(frozen=True)
class Detector:
    name: str
    pattern: re.Pattern
    weight: float
    scope: str = SENTENCE


def _rx(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE | re.DOTALL)


DEFAULT_DETECTORS: List[Detector] = [
    # Stock phrases
    Detector("ensure_that", _rx(r"\bensure that\b"), 0.5),
    Detector("as_mentioned", _rx(r"\bas (previously )?mentioned\b"), 0.4),
    Detector("important_to_note", _rx(r"\bit is (important|worth) (to note|noting) that\b"), 0.5),
    Detector("first_then_finally", _rx(r"\bfirst(ly)?\b.*\bthen\b.*\bfinally\b"), 0.6, PARAGRAPH),
    Detector("on_the_other_hand", _rx(r"\bon the other hand\b"), 0.3),
    Detector("comprehensive", _rx(r"\bcomprehensive(ly)?\b"), 0.7),
    Detector("in_addition", _rx(r"\bin addition\b"), 0.3),
    Detector("in_this_context", _rx(r"\bin this context\b"), 0.6),
    Detector("with_the_aim", _rx(r"\b(with the aim of|for the purpose of)\b"), 0.4),
    Detector("summary", _rx(r"\b(in summary|in conclusion|to summari[sz]e)\b"), 0.5, PARAGRAPH),
    Detector("not_only_but_also", _rx(r"\bnot only\b.*\bbut also\b"), 0.6),
    Detector("however_necessary", _rx(r"\bhowever, it is (necessary|essential)\b"), 0.5),
    Detector("this_shows", _rx(r"\bthis (shows|indicates|demonstrates|suggests) that\b"), 0.7),
    Detector("based_on_results", _rx(r"\bbased on the (results|findings)\b"), 0.6),
    Detector("in_my_opinion", _rx(r"\bin my (opinion|view)\b"), 0.3),
    Detector("can_be_concluded", _rx(r"\bit can be concluded that\b"), 0.7),
    # Grammatical patterns
    Detector("discourse_connectives",
             _rx(r"\b(furthermore|moreover|consequently|nevertheless|additionally|hence|thus)\b"), 2),
    Detector("hedging",
             _rx(r"\b(it can be argued|it is likely that|arguably|to some extent|it appears that|may potentially)\b"), 2),
    Detector("passive_voice", _rx(r"\b(is|are|was|were|been|being)\s+\w+ed\b"), 2),
    Detector("complex_phrases",
             _rx(r"\b(in a comprehensive manner|from the perspective of \w+|in the context of \w+"
                 r"|in the capacity of|plays? a (crucial|pivotal|vital) role)\b"), 3),
    # Vocabulary
    Detector("advanced_vocabulary",
             _rx(r"\b(methodology|correlation|implementation|synthesis|diversification|optimi[sz]ation"
                 r"|standardi[sz]ation|paradigm|facilitate|leverage)\b"), 4),
    Detector("technical_terms",
             _rx(r"\b(algorithms?|models?|systems?|databases?|frameworks?|analysis|evaluation)\b"), 3),
    # Structure
    Detector("repetitive_structure",
             _rx(r"(\bfirst(ly)?\b.*?\bsecond(ly)?\b.*?\bthird(ly)?\b|\bon the one hand\b.*?\bon the other hand\b)"),
             4, PARAGRAPH),
    Detector("list_pattern", re.compile(r"([0-9]+\. .*?){3,}", re.DOTALL), 3, PARAGRAPH),
]


def analyze_sentence_length(content: str, min_sentences: int = MIN_SENTENCES_FOR_UNIFORMITY) -> Dict[str, float]:
    """Uniformity of sentence lengths in words: clamp(1 - coefficient of variation)."""
    sentences = [s for s in re.split(r"[.!?]+", content or "") if s.strip()]
    if len(sentences) < min_sentences:
        return {"uniformity": 0.0, "average": 0.0, "std_dev": 0.0, "cv": 0.0}
    lengths = np.array([len(s.split()) for s in sentences], dtype=float)
    average = float(lengths.mean())
    std_dev = float(lengths.std())
    cv = std_dev / average if average > 0 else 0.0
    uniformity = max(0.0, min(1.0, 1 - cv))
    return {"uniformity": uniformity, "average": average, "std_dev": std_dev, "cv": cv}


def analyze_vocabulary_diversity(
    content: str,
    min_words: int = MIN_WORDS_FOR_DIVERSITY,
    baseline: float = DIVERSITY_BASELINE,
    span: float = DIVERSITY_SPAN,
) -> Dict[str, float]:
    """Length-adjusted type-token ratio, TTR * log10(N), mapped onto [0, 1]."""
    words = tokenize(content)
    if len(words) < min_words:
        return {"score": 0.0, "unique_ratio": 0.0, "unique_words": 0, "total_words": len(words)}
    unique = len(set(words))
    unique_ratio = unique / len(words)
    adjusted = unique_ratio * math.log10(len(words))
    score = max(0.0, min(1.0, (adjusted - baseline) / span)) if span > 0 else 0.0
    return {
        "score": score,
        "unique_ratio": unique_ratio,
        "adjusted_ttr": adjusted,
        "unique_words": unique,
        "total_words": len(words),
    }


class HeuristicAIScorer:
    def __init__(
        self,
        detectors: Optional[Sequence[Detector]] = None,
        uniformity_weight: float = SENTENCE_UNIFORMITY_WEIGHT,
        diversity_weight: float = VOCABULARY_DIVERSITY_WEIGHT,
        segment_min_score: int = AI_SEGMENT_MIN_SCORE,
        sentence_flag_ratio: float = SENTENCE_FLAG_RATIO,
        weight: float = HEURISTIC_WEIGHT,
    ):
        self.detectors = list(DEFAULT_DETECTORS if detectors is None else detectors)
        self.uniformity_weight = uniformity_weight
        self.diversity_weight = diversity_weight
        self.segment_min_score = segment_min_score
        self.sentence_flag_ratio = sentence_flag_ratio
        self.weight = weight

    @property
    def max_possible_score(self) -> float:
        return sum(d.weight for d in self.detectors) + self.uniformity_weight + self.diversity_weight

    @property
    def sentence_max_score(self) -> float:
        return sum(d.weight for d in self.detectors if d.scope == SENTENCE)

    def score(self, content: str) -> AIScoreResult:
        content = content or ""
        spans = [trimmed_span(content, s, e) for s, e in sentence_spans(content)]
        spans = [(s, e) for s, e in spans if e > s]
        sentences = [content[s:e] for s, e in spans]
        paragraphs = split_paragraphs(content)

        total = 0.0
        patterns: Dict[str, Any] = {}
        for detector in self.detectors:
            units = sentences if detector.scope == SENTENCE else paragraphs
            hits = []
            for unit in units:
                m = detector.pattern.search(unit)
                if m:
                    hits.append(m.group(0))
            if hits:
                total += detector.weight
                patterns[detector.name] = {"count": len(hits), "examples": hits[:3]}

        lengths = analyze_sentence_length(content)
        diversity = analyze_vocabulary_diversity(content)
        total += lengths["uniformity"] * self.uniformity_weight
        total += diversity["score"] * self.diversity_weight
        patterns["sentence_uniformity"] = {
            "value": round(lengths["uniformity"], 2),
            "details": f"Average length: {lengths['average']:.1f} words/sentence",
        }
        patterns["vocabulary_diversity"] = {
            "value": round(diversity["score"], 2),
            "details": f"{diversity['unique_words']} unique words / {diversity['total_words']} total words",
        }

        max_score = self.max_possible_score
        score = round(total / max_score * 100) if max_score > 0 else 0
        score = max(0, min(100, score))

        segments: List[AIFlaggedSegment] = []
        if score >= self.segment_min_score:
            segments = self._flag_sentences(content, spans)

        logger.info(f"🤖 Heuristic AI score {score}% ({len(segments)} flagged sentences)")
        return AIScoreResult(score=score, flagged_segments=segments, details=patterns)

    def _flag_sentences(self, content: str, spans) -> List[AIFlaggedSegment]:
        sentence_max = self.sentence_max_score
        if sentence_max <= 0:
            return []
        flagged = []
        for start, end in spans:
            sentence = content[start:end]
            hit_weight = sum(
                d.weight for d in self.detectors
                if d.scope == SENTENCE and d.pattern.search(sentence)
            )
            ratio = hit_weight / sentence_max
            if ratio >= self.sentence_flag_ratio:
                flagged.append(AIFlaggedSegment(
                    start_offset=start,
                    end_offset=end,
                    text=sentence,
                    confidence_percent=round(ratio * 100),
                ))
        return flagged

    def detect(self, content: str) -> HeuristicDetection:
        result = self.score(content)
        return HeuristicDetection(
            score=result.score,
            weight=self.weight,
            details=result.flagged_segments,
            patterns=result.details,
        )
