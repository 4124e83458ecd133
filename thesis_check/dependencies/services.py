# thesis_check/dependencies/services.py

from functools import lru_cache

from thesis_check.config import GOOGLE_API_KEYS, HF_TOKEN, REFERENCE_DATA_PATH, SEARCH_ENGINE_ID
from thesis_check.logger import get_logger
from thesis_check.providers.corpus import InMemoryCorpus
from thesis_check.providers.hf_classifier import HuggingFaceClassifier
from thesis_check.providers.page_fetcher import RequestsPageFetcher
from thesis_check.providers.sinks import FanOutJobSink, InMemoryJobSink, LoggingJobSink
from thesis_check.providers.web_search import CachedSearchProvider, GoogleSearchProvider
from thesis_check.services.analysis_service import AnalysisService
from thesis_check.services.processing_coordinator import ProcessingCoordinator

logger = get_logger("dependencies")


@lru_cache()
def get_corpus() -> InMemoryCorpus:
    return InMemoryCorpus(reference_path=REFERENCE_DATA_PATH)


@lru_cache()
def get_result_store() -> InMemoryJobSink:
    return InMemoryJobSink()


@lru_cache()
def get_search_provider():
    if not GOOGLE_API_KEYS or not SEARCH_ENGINE_ID:
        logger.warning("⚠️ Google search not configured, web matching disabled")
        return None
    return CachedSearchProvider(GoogleSearchProvider())


@lru_cache()
def get_page_fetcher():
    return RequestsPageFetcher() if get_search_provider() is not None else None


@lru_cache()
def get_classifiers() -> tuple:
    if not HF_TOKEN:
        logger.warning("⚠️ HF_TOKEN not set, AI score uses the heuristic only")
        return ()
    try:
        return (HuggingFaceClassifier(),)
    except Exception as e:
        logger.error(f"❌ HuggingFace client not available: {e}")
        return ()


@lru_cache()
def get_analysis_service() -> AnalysisService:
    return AnalysisService(
        get_corpus(),
        search_provider=get_search_provider(),
        page_fetcher=get_page_fetcher(),
        classifiers=get_classifiers(),
    )


@lru_cache()
def get_coordinator() -> ProcessingCoordinator:
    sink = FanOutJobSink(get_result_store(), LoggingJobSink())
    return ProcessingCoordinator(get_analysis_service().analyze, sink=sink)
