"""
Shared pytest fixtures for thesis-check tests.

Provides:
- Deterministic synthetic documents (shared and disjoint vocabularies)
- Human-style and AI-style prose samples
- Fake search / fetch / classifier collaborators
"""

from itertools import product
from typing import Dict, List

import pytest

from thesis_check.errors import ProviderUnavailable
from thesis_check.providers.corpus import InMemoryCorpus
from thesis_check.schemas.source_schemas import (
    ClassifierResponse,
    CorpusDocument,
    FlaggedSpan,
    SearchResult,
)


def make_words(letters: str, count: int) -> List[str]:
    """`count` distinct three-letter words built only from `letters`."""
    words = ["".join(p) for p in product(letters, repeat=3)]
    assert len(words) >= count
    return words[:count]


def make_text(letters: str, count: int, per_sentence: int = 0) -> str:
    words = make_words(letters, count)
    if not per_sentence:
        return " ".join(words)
    sentences = [
        " ".join(words[i:i + per_sentence]) + "."
        for i in range(0, len(words), per_sentence)
    ]
    return " ".join(sentences)


HUMAN_TEXT = (
    "I went to the shop on Tuesday. It rained. My brother, who never listens, "
    "forgot his umbrella and got completely soaked on the way back home. We laughed. "
    "Dinner took ages because the oven broke again."
)

# About 150 words, 13 sentences of very uneven length, no detector phrases.
HUMAN_LONG_TEXT = (
    "We drove up to the lake on Saturday morning. The road was awful. Halfway there our old car "
    "started making a grinding noise, so Dad pulled over near a farm stand and spent twenty minutes "
    "poking around under the hood while my sister and I bought peaches. Nobody knew what he was "
    "looking for. Neither did he, honestly. When we finally got going again the racket had stopped "
    "on its own, which he took as proof that he fixed it. Cold grey water, nearly empty beach. Maya "
    "swam anyway, shrieking nonstop, and I sat on a splintery dock reading some paperback with a torn "
    "cover until clouds rolled in. Lunch got rained out. Mom laughed so hard about the soggy "
    "sandwiches that she snorted coffee through her nose, which made everyone lose it all over again. "
    "Best trip ever? Probably not. Still, none of us would trade that afternoon."
)

AI_TEXT = (
    "Furthermore, the implementation of the proposed framework is designed in a comprehensive "
    "manner to ensure that the evaluation remains robust. Moreover, it can be argued that the "
    "methodology is optimized to facilitate a deeper analysis of the underlying system. This shows "
    "that the correlation between the models is influenced by data, and it plays a crucial role in "
    "the outcome. Additionally, the database was structured in the context of scalability, which is "
    "expected to leverage modern optimization paradigms. Consequently, based on the results, it can "
    "be concluded that the proposed algorithm is implemented in a comprehensive manner."
)


# =============================================================================
# Documents
# =============================================================================

@pytest.fixture
def shared_text() -> str:
    """600 distinct words drawn from the letters a-m."""
    return make_text("abcdefghijklm", 600)


@pytest.fixture
def disjoint_text() -> str:
    """600 distinct words drawn from the letters n-z; no trigram overlap with shared_text."""
    return make_text("nopqrstuvwxyz", 600)


@pytest.fixture
def corpus(shared_text) -> InMemoryCorpus:
    return InMemoryCorpus(
        documents=[
            CorpusDocument(id="target", content=shared_text, title="Target thesis"),
            CorpusDocument(id="copy", content=shared_text, title="Copied thesis", author="A. Author"),
        ],
        reference_paragraphs=[],
    )


# =============================================================================
# Fake collaborators
# =============================================================================

class FakeSearch:
    def __init__(self, results: List[SearchResult] = None, error: Exception = None):
        self.results = results or []
        self.error = error
        self.queries: List[str] = []

    def search(self, query: str) -> List[SearchResult]:
        self.queries.append(query)
        if self.error:
            raise self.error
        return list(self.results)


class FakeFetcher:
    def __init__(self, pages: Dict[str, str]):
        self.pages = pages
        self.calls: List[str] = []

    def fetch(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.pages:
            raise ProviderUnavailable("page_fetcher", f"{url}: 404")
        return self.pages[url]


class FakeClassifier:
    def __init__(self, name: str, weight: float, score: float, spans=None, error: Exception = None):
        self.name = name
        self.weight = weight
        self.score = score
        self.spans = spans or []
        self.error = error
        self.calls = 0

    def classify(self, text: str) -> ClassifierResponse:
        self.calls += 1
        if self.error:
            raise self.error
        return ClassifierResponse(
            score=self.score,
            flagged_spans=[FlaggedSpan(start=s, end=e, confidence=c) for s, e, c in self.spans],
        )


@pytest.fixture
def fake_search():
    return FakeSearch


@pytest.fixture
def fake_fetcher():
    return FakeFetcher


@pytest.fixture
def fake_classifier():
    return FakeClassifier
