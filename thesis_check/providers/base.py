"""
Contracts the analysis engine consumes from its collaborators.

Concrete adapters live beside this module; the engine only depends on these
shapes, so tests and alternative deployments can pass any object that fits.
"""

from typing import Iterable, List, Protocol, runtime_checkable

from thesis_check.schemas.analysis_schemas import AnalysisResult
from thesis_check.schemas.source_schemas import ClassifierResponse, CorpusDocument, SearchResult


@runtime_checkable
class CorpusSource(Protocol):
    def get_document(self, document_id: str) -> CorpusDocument:
        """Raises KeyError for an unknown id."""
        ...

    def list_documents(self) -> Iterable[CorpusDocument]:
        ...

    def reference_paragraphs(self) -> List[str]:
        ...


@runtime_checkable
class SearchProvider(Protocol):
    def search(self, query: str) -> List[SearchResult]:
        """May return an empty list or raise ProviderUnavailable."""
        ...


@runtime_checkable
class PageFetcher(Protocol):
    def fetch(self, url: str) -> str:
        ...


@runtime_checkable
class ClassifierProvider(Protocol):
    name: str
    weight: float

    def classify(self, text: str) -> ClassifierResponse:
        """Raises ProviderUnavailable when the backing service cannot answer."""
        ...


@runtime_checkable
class JobSink(Protocol):
    def consume(self, result: AnalysisResult) -> None:
        ...
