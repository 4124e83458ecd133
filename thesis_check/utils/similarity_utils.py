import math
from collections import Counter
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Set

from thesis_check.config import COSINE_THRESHOLD, NGRAM_SIZE, NGRAM_THRESHOLD
from thesis_check.schemas.analysis_schemas import SimilarityScore
from thesis_check.utils.text_utils import tokenize


@dataclass(frozen=True)
class TextProfile:
    """Pre-computed term counts and character n-grams of one text."""
    terms: Counter
    norm: float
    ngrams: FrozenSet[str]
    vocabulary: FrozenSet[str] = field(default_factory=frozenset)


def char_ngrams(text: str, n: int = NGRAM_SIZE) -> Set[str]:
    s = (text or "").lower()
    return {s[i:i + n] for i in range(len(s) - n + 1)}


def build_profile(text: str, n: int = NGRAM_SIZE) -> TextProfile:
    terms = Counter(tokenize(text))
    norm = math.sqrt(sum(v * v for v in terms.values()))
    return TextProfile(terms=terms, norm=norm, ngrams=frozenset(char_ngrams(text, n)),
                       vocabulary=frozenset(terms))


def _cosine_counts(a: Counter, a_norm: float, b: Counter, b_norm: float) -> float:
    if a_norm == 0 or b_norm == 0:
        return 0.0
    if len(a) > len(b):
        a, b = b, a
    dot = sum(v * b.get(k, 0) for k, v in a.items())
    return min(dot / (a_norm * b_norm), 1.0)


def _jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    a, b = set(a), set(b)
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


def profile_cosine(a: TextProfile, b: TextProfile) -> float:
    return _cosine_counts(a.terms, a.norm, b.terms, b.norm)


def profile_ngram(a: TextProfile, b: TextProfile) -> float:
    if not a.ngrams and not b.ngrams:
        return 0.0
    inter = len(a.ngrams & b.ngrams)
    return inter / (len(a.ngrams) + len(b.ngrams) - inter)


def cosine_similarity(text1: str, text2: str) -> float:
    """Cosine of term-frequency vectors over the union vocabulary."""
    a, b = Counter(tokenize(text1)), Counter(tokenize(text2))
    a_norm = math.sqrt(sum(v * v for v in a.values()))
    b_norm = math.sqrt(sum(v * v for v in b.values()))
    return _cosine_counts(a, a_norm, b, b_norm)


def ngram_similarity(text1: str, text2: str, n: int = NGRAM_SIZE) -> float:
    """Jaccard index of lowercased character n-gram sets."""
    return _jaccard(char_ngrams(text1, n), char_ngrams(text2, n))


def sentence_similarity(sentence1: str, sentence2: str) -> float:
    """Dice-style word overlap: 2 * common / (len1 + len2)."""
    tokens1, tokens2 = tokenize(sentence1), tokenize(sentence2)
    total = len(tokens1) + len(tokens2)
    if total == 0:
        return 0.0
    lookup = set(tokens2)
    common = sum(1 for tok in tokens1 if tok in lookup)
    return min(2 * common / total, 1.0)


def score(method: str, text1: str, text2: str) -> SimilarityScore:
    fn = {"cosine": cosine_similarity, "ngram": ngram_similarity, "dice": sentence_similarity}[method]
    return SimilarityScore(method=method, value=fn(text1, text2))


def is_match(
    cosine: float,
    ngram: float,
    cosine_threshold: float = COSINE_THRESHOLD,
    ngram_threshold: float = NGRAM_THRESHOLD,
) -> bool:
    """OR-gate: either metric clearing its own threshold is a hit."""
    return cosine >= cosine_threshold or ngram >= ngram_threshold
