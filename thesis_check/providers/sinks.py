import threading
from collections import OrderedDict
from typing import List, Optional

from thesis_check.config import JOB_HISTORY_LIMIT
from thesis_check.logger import get_logger
from thesis_check.schemas.analysis_schemas import AnalysisResult

logger = get_logger("job_sink")


class InMemoryJobSink:
    """Keeps the most recent results, one per job.

    Results are keyed by job id (document id for results produced outside the
    coordinator), so two jobs over the same document never shadow each other.
    The oldest entries are dropped past `max_results`.
    """

    def __init__(self, max_results: int = JOB_HISTORY_LIMIT):
        self.max_results = max_results
        self._results: "OrderedDict[str, AnalysisResult]" = OrderedDict()
        self._lock = threading.Lock()

    def consume(self, result: AnalysisResult) -> None:
        key = result.job_id or result.document_id
        with self._lock:
            self._results.pop(key, None)
            self._results[key] = result
            while len(self._results) > self.max_results:
                self._results.popitem(last=False)

    def get(self, job_id: str) -> Optional[AnalysisResult]:
        with self._lock:
            return self._results.get(job_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    @property
    def consumed(self) -> List[str]:
        """Document ids of the retained results, oldest first."""
        with self._lock:
            return [r.document_id for r in self._results.values()]


class LoggingJobSink:
    def consume(self, result: AnalysisResult) -> None:
        logger.info(
            f"📊 {result.document_id}: plagiarism={result.plagiarism_score}% "
            f"(corpus {result.corpus_score}%, web {result.web_score}%) ai={result.ai_score}% "
            f"sources={len(result.sources)} matches={len(result.matches)} "
            f"segments={len(result.flagged_segments)}"
            + (f" degraded={','.join(result.degraded_signals)}" if result.degraded_signals else "")
        )


class FanOutJobSink:
    def __init__(self, *sinks):
        self.sinks = list(sinks)

    def consume(self, result: AnalysisResult) -> None:
        for sink in self.sinks:
            sink.consume(result)
