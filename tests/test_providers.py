"""
Tests for the search, fetch, classifier, corpus and sink providers.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from thesis_check.errors import ProviderUnavailable
from thesis_check.providers.corpus import InMemoryCorpus, load_reference_paragraphs
from thesis_check.providers.hf_classifier import HuggingFaceClassifier, label_to_score
from thesis_check.providers.page_fetcher import RequestsPageFetcher
from thesis_check.providers.sinks import FanOutJobSink, InMemoryJobSink
from thesis_check.providers.web_search import (
    CachedSearchProvider,
    GoogleSearchProvider,
    TTLCache,
)
from thesis_check.schemas.analysis_schemas import AnalysisResult
from thesis_check.schemas.source_schemas import CorpusDocument, SearchResult


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def response(status=200, payload=None, text=""):
    r = MagicMock()
    r.status_code = status
    r.json.return_value = payload or {}
    r.text = text
    if status >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return r


ITEMS = {
    "items": [
        {"title": "First", "link": "https://a.example/1",
         "pagemap": {"metatags": [{"author": "Ada"}]}},
        {"title": "No link"},
        {"title": "Second", "link": "https://b.example/2"},
    ]
}


# =============================================================================
# Search
# =============================================================================

class TestTTLCache:
    def test_expiry(self):
        clock = FakeClock()
        cache = TTLCache(maxsize=10, ttl=60, clock=clock)
        cache.set("q", ["r"])
        assert cache.get("q") == ["r"]
        clock.now += 61
        assert cache.get("q") is None
        assert "q" not in cache

    def test_lru_eviction(self):
        cache = TTLCache(maxsize=2, ttl=60, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2


class TestGoogleSearchProvider:
    def make(self, keys=("key-one", "key-two"), clock=None):
        session = MagicMock()
        provider = GoogleSearchProvider(
            api_keys=list(keys), engine_id="cx123", session=session,
            cooldown=3600, clock=clock or FakeClock(),
        )
        return provider, session

    def test_parses_results(self):
        provider, session = self.make()
        session.get.return_value = response(payload=ITEMS)
        results = provider.search("neural networks")

        assert [r.url for r in results] == ["https://a.example/1", "https://b.example/2"]
        assert results[0].author == "Ada"
        assert results[1].author is None
        params = session.get.call_args.kwargs["params"]
        assert params["q"] == "neural networks"
        assert params["cx"] == "cx123"
        assert params["num"] == 5

    def test_quota_rotates_to_next_key(self):
        clock = FakeClock()
        provider, session = self.make(clock=clock)
        session.get.side_effect = [response(status=429), response(payload=ITEMS)]
        results = provider.search("query")

        assert len(results) == 2
        keys_used = [c.kwargs["params"]["key"] for c in session.get.call_args_list]
        assert keys_used == ["key-one", "key-two"]
        assert provider.available_keys() == ["key-two"]

        clock.now += 3601
        assert provider.available_keys() == ["key-one", "key-two"]

    def test_all_keys_exhausted(self):
        provider, session = self.make()
        session.get.return_value = response(status=429)
        with pytest.raises(ProviderUnavailable, match="over quota"):
            provider.search("query")
        assert session.get.call_count == 2
        assert provider.available_keys() == []

    def test_not_configured(self):
        provider = GoogleSearchProvider(api_keys=[], engine_id="", session=MagicMock())
        assert not provider.configured
        with pytest.raises(ProviderUnavailable):
            provider.search("query")

    @pytest.mark.parametrize("failure", [
        requests.ConnectionError("refused"),
        requests.Timeout("slow"),
    ])
    def test_transport_errors(self, failure):
        provider, session = self.make()
        session.get.side_effect = failure
        with pytest.raises(ProviderUnavailable) as exc:
            provider.search("query")
        assert exc.value.__cause__ is failure

    def test_http_error(self):
        provider, session = self.make()
        session.get.return_value = response(status=500)
        with pytest.raises(ProviderUnavailable):
            provider.search("query")

    def test_bad_json(self):
        provider, session = self.make()
        bad = response()
        bad.json.side_effect = ValueError("not json")
        session.get.return_value = bad
        with pytest.raises(ProviderUnavailable):
            provider.search("query")


class TestCachedSearchProvider:
    def test_normalized_query_is_cached(self, fake_search):
        inner = fake_search([SearchResult(url="https://a.example/1", title="A")])
        cached = CachedSearchProvider(inner, TTLCache(maxsize=10, ttl=60, clock=FakeClock()))

        first = cached.search("  Neural Networks ")
        second = cached.search("neural networks")
        assert first == second
        assert inner.queries == ["  Neural Networks "]

    def test_cache_key_truncated(self):
        assert CachedSearchProvider.cache_key("X" * 300) == "x" * 100

    def test_errors_are_not_cached(self, fake_search):
        inner = fake_search(error=ProviderUnavailable("google", "down"))
        cached = CachedSearchProvider(inner)
        for _ in range(2):
            with pytest.raises(ProviderUnavailable):
                cached.search("query")
        assert len(inner.queries) == 2


# =============================================================================
# Page fetching
# =============================================================================

HTML = """
<html><head><style>p {color: red}</style><script>var x = 1;</script></head>
<body>
  <nav><p>Home | About</p></nav>
  <main>
    <h1>Deep learning</h1>
    <p>Neural networks learn hierarchical features.</p>
    <p>They require    large datasets.</p>
  </main>
  <footer><p>Copyright</p></footer>
</body></html>
"""


class TestPageFetcher:
    def test_extracts_main_text(self):
        session = MagicMock()
        session.get.return_value = response(text=HTML)
        text = RequestsPageFetcher(session=session).fetch("https://example.org/dl")

        assert text == (
            "Deep learning Neural networks learn hierarchical features. "
            "They require large datasets."
        )

    def test_truncates(self):
        session = MagicMock()
        session.get.return_value = response(text=HTML)
        text = RequestsPageFetcher(session=session, max_chars=13).fetch("https://example.org/dl")
        assert text == "Deep learning"

    def test_rejects_non_http(self):
        session = MagicMock()
        with pytest.raises(ProviderUnavailable):
            RequestsPageFetcher(session=session).fetch("ftp://example.org/file")
        session.get.assert_not_called()

    def test_http_error(self):
        session = MagicMock()
        session.get.return_value = response(status=404)
        with pytest.raises(ProviderUnavailable):
            RequestsPageFetcher(session=session).fetch("https://example.org/missing")


# =============================================================================
# Classifier
# =============================================================================

class TestHuggingFaceClassifier:
    TEXT = "This text is comfortably longer than twenty characters."

    @pytest.mark.parametrize("label,confidence,expected", [
        ("AI", 0.9, 90.0),
        ("ai", 0.25, 25.0),
        ("HUMAN", 0.8, 20.0),
        ("OTHER", 0.99, 50.0),
    ])
    def test_label_to_score(self, label, confidence, expected):
        assert label_to_score(label, confidence) == pytest.approx(expected)

    def test_high_score_flags_excerpt(self):
        client = MagicMock()
        client.text_classification.return_value = [{"label": "AI", "score": 0.95}]
        classifier = HuggingFaceClassifier(client=client, model="some/model", max_chars=30)

        response_ = classifier.classify(self.TEXT)
        assert response_.score == pytest.approx(95.0)
        assert [(s.start, s.end) for s in response_.flagged_spans] == [(0, 30)]
        client.text_classification.assert_called_once_with(self.TEXT[:30], model="some/model")

    def test_object_results_and_low_score(self):
        client = MagicMock()
        client.text_classification.return_value = [SimpleNamespace(label="HUMAN", score=0.9)]
        response_ = HuggingFaceClassifier(client=client).classify(self.TEXT)
        assert response_.score == pytest.approx(10.0)
        assert response_.flagged_spans == []

    def test_short_text(self):
        client = MagicMock()
        with pytest.raises(ProviderUnavailable):
            HuggingFaceClassifier(client=client).classify("too short")
        client.text_classification.assert_not_called()

    def test_client_error(self):
        client = MagicMock()
        client.text_classification.side_effect = RuntimeError("503 model loading")
        with pytest.raises(ProviderUnavailable, match="model loading"):
            HuggingFaceClassifier(client=client).classify(self.TEXT)

    def test_empty_response(self):
        client = MagicMock()
        client.text_classification.return_value = []
        with pytest.raises(ProviderUnavailable):
            HuggingFaceClassifier(client=client).classify(self.TEXT)


# =============================================================================
# Corpus and sinks
# =============================================================================

class TestReferenceData:
    def test_paragraphs(self, tmp_path):
        path = tmp_path / "data.txt"
        path.write_text("First reference paragraph " * 5 + "\n\n  \n\nSecond one " * 5, encoding="utf-8")
        paragraphs = load_reference_paragraphs(str(path))
        assert len(paragraphs) == 6
        assert paragraphs[0].startswith("First reference paragraph")

    def test_missing_file(self, tmp_path):
        assert load_reference_paragraphs(str(tmp_path / "absent.txt")) == []

    def test_short_file(self, tmp_path):
        path = tmp_path / "data.txt"
        path.write_text("tiny", encoding="utf-8")
        assert load_reference_paragraphs(str(path)) == []

    def test_corpus_loads_reference_lazily(self, tmp_path):
        path = tmp_path / "data.txt"
        path.write_text("x" * 120, encoding="utf-8")
        corpus = InMemoryCorpus(reference_path=str(path))
        assert corpus.reference_paragraphs() == ["x" * 120]


class TestInMemoryCorpus:
    def test_create_and_get(self):
        corpus = InMemoryCorpus(reference_paragraphs=[])
        doc = corpus.create_document("content here", title="Title", author="Someone")
        assert len(doc.id) == 32
        assert corpus.get_document(doc.id) is doc
        assert corpus.list_documents() == [doc]
        assert len(corpus) == 1
        assert doc.created_at is not None

    def test_unknown_document(self):
        with pytest.raises(KeyError):
            InMemoryCorpus().get_document("missing")

    def test_without_reference_path(self):
        assert InMemoryCorpus().reference_paragraphs() == []


class TestSinks:
    def test_fan_out(self):
        a, b = InMemoryJobSink(), InMemoryJobSink()
        FanOutJobSink(a, b).consume(AnalysisResult(document_id="doc", job_id="j1"))
        assert a.consumed == ["doc"] == b.consumed
        assert a.get("j1") is b.get("j1")

    def test_results_without_job_are_keyed_by_document(self):
        sink = InMemoryJobSink()
        sink.consume(AnalysisResult(document_id="doc", plagiarism_score=10))
        sink.consume(AnalysisResult(document_id="doc", plagiarism_score=20))
        assert sink.get("doc").plagiarism_score == 20
        assert sink.consumed == ["doc"]

    def test_jobs_over_same_document_are_kept_apart(self):
        sink = InMemoryJobSink()
        sink.consume(AnalysisResult(document_id="doc", job_id="first", ai_score=70))
        sink.consume(AnalysisResult(document_id="doc", job_id="second", ai_score=0))
        assert sink.get("first").ai_score == 70
        assert sink.get("second").ai_score == 0
        assert sink.consumed == ["doc", "doc"]

    def test_oldest_results_are_dropped(self):
        sink = InMemoryJobSink(max_results=2)
        for job_id in ("j1", "j2", "j3"):
            sink.consume(AnalysisResult(document_id="doc", job_id=job_id))
        assert len(sink) == 2
        assert sink.get("j1") is None
        assert sink.get("j2") is not None
        assert sink.get("j3") is not None


class TestContracts:
    def test_adapters_satisfy_protocols(self):
        from thesis_check.providers.base import (
            ClassifierProvider,
            CorpusSource,
            JobSink,
            PageFetcher,
            SearchProvider,
        )
        from thesis_check.providers.sinks import LoggingJobSink

        google = GoogleSearchProvider(api_keys=["k"], engine_id="cx", session=MagicMock())
        assert isinstance(InMemoryCorpus(), CorpusSource)
        assert isinstance(google, SearchProvider)
        assert isinstance(CachedSearchProvider(google), SearchProvider)
        assert isinstance(RequestsPageFetcher(session=MagicMock()), PageFetcher)
        assert isinstance(HuggingFaceClassifier(client=MagicMock()), ClassifierProvider)
        for sink in (InMemoryJobSink(), LoggingJobSink(), FanOutJobSink()):
            assert isinstance(sink, JobSink)
