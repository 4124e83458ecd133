"""
Admission control for analysis jobs.

At most `max_concurrent` jobs run at once; the rest wait in a FIFO list.
`submit` never blocks: it returns a future that resolves with the job's
AnalysisResult, or fails with JobFailure, once the job has run. Every finished
job, successful or not, frees its slot and starts the next waiting job.
"""

import asyncio
import math
import uuid
from collections import OrderedDict, deque
from datetime import datetime, timezone
from typing import Awaitable, Callable, Deque, Dict, Optional, Tuple

from thesis_check.config import JOB_HISTORY_LIMIT, MAX_CONCURRENT_ANALYSES
from thesis_check.errors import JobFailure
from thesis_check.logger import get_logger
from thesis_check.schemas.analysis_schemas import (
    AnalysisJob,
    AnalysisOptions,
    AnalysisResult,
    CoordinatorStatus,
    JobStatus,
)

logger = get_logger("processing_coordinator")

Runner = Callable[[str, AnalysisOptions], Awaitable[AnalysisResult]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def estimate_processing_minutes(file_size_kb: float, options: Optional[AnalysisOptions] = None) -> int:
    """Rough wall-clock estimate shown to users before a job finishes."""
    options = options or AnalysisOptions()
    seconds = 30 + max(file_size_kb, 0) * 0.005
    if options.check_traditional:
        seconds *= 1.5
    if options.check_ai:
        seconds *= 1.8
    seconds *= 1.3
    return max(2, math.ceil(seconds / 60))


class ProcessingCoordinator:
    def __init__(
        self,
        runner: Runner,
        sink=None,
        max_concurrent: int = MAX_CONCURRENT_ANALYSES,
        history_limit: int = JOB_HISTORY_LIMIT,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._runner = runner
        self.sink = sink
        self.max_concurrent = max_concurrent
        self.history_limit = history_limit
        self._running: Dict[str, AnalysisJob] = {}
        self._queue: Deque[Tuple[AnalysisJob, AnalysisOptions, asyncio.Future]] = deque()
        self._jobs: "OrderedDict[str, AnalysisJob]" = OrderedDict()
        self._tasks = set()

    # ---- Public API ----

    def enqueue(self, document_id: str, options: Optional[AnalysisOptions] = None) -> Tuple[AnalysisJob, asyncio.Future]:
        """Admit or queue a job. Must be called from the coordinator's event loop."""
        loop = asyncio.get_running_loop()
        options = options or AnalysisOptions()
        job = AnalysisJob(job_id=uuid.uuid4().hex, document_id=document_id, submitted_at=_now())
        future = loop.create_future()
        self._remember(job)

        if len(self._running) < self.max_concurrent:
            self._start(job, options, future)
        else:
            self._queue.append((job, options, future))
            logger.info(f"⏳ Queued {document_id} (position {len(self._queue)})")
        return job, future

    def submit(self, document_id: str, options: Optional[AnalysisOptions] = None) -> asyncio.Future:
        return self.enqueue(document_id, options)[1]

    def status(self) -> CoordinatorStatus:
        return CoordinatorStatus(
            running_count=len(self._running),
            running_document_ids=[j.document_id for j in self._running.values()],
            queue_length=len(self._queue),
            max_concurrent=self.max_concurrent,
        )

    def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        job = self._jobs.get(job_id)
        return job.model_copy() if job is not None else None

    @property
    def running_count(self) -> int:
        return len(self._running)

    # ---- Internals ----

    def _remember(self, job: AnalysisJob) -> None:
        self._jobs[job.job_id] = job
        while len(self._jobs) > self.history_limit:
            finished = next(
                (jid for jid, j in self._jobs.items() if j.status in (JobStatus.DONE, JobStatus.FAILED)),
                None,
            )
            if finished is None:
                break
            del self._jobs[finished]

    def _start(self, job: AnalysisJob, options: AnalysisOptions, future: asyncio.Future) -> None:
        job.status = JobStatus.RUNNING
        job.started_at = _now()
        self._running[job.job_id] = job
        logger.info(f"▶️ Started {job.document_id} ({len(self._running)}/{self.max_concurrent} running)")
        task = asyncio.ensure_future(self._run(job, options, future))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _deliver(self, result: AnalysisResult) -> None:
        if self.sink is None:
            return
        try:
            self.sink.consume(result)
        except Exception as e:
            logger.error(f"❌ Job sink failed for job {result.job_id} ({result.document_id}): {e}", exc_info=True)

    async def _run(self, job: AnalysisJob, options: AnalysisOptions, future: asyncio.Future) -> None:
        try:
            result = await self._runner(job.document_id, options)
        except Exception as e:
            if isinstance(e, JobFailure):
                failure = e
            else:
                failure = JobFailure(job.document_id, str(e) or type(e).__name__)
                failure.__cause__ = e
            job.status = JobStatus.FAILED
            job.failure_reason = failure.reason
            job.completed_at = _now()
            logger.error(f"❌ Job {job.job_id} for {job.document_id} failed: {failure.reason}")
            if not future.done():
                future.set_exception(failure)
        else:
            result = result.model_copy(update={"job_id": job.job_id})
            job.status = JobStatus.DONE
            job.completed_at = _now()
            self._deliver(result)
            logger.info(f"✅ Job {job.job_id} for {job.document_id} done")
            if not future.done():
                future.set_result(result)
        finally:
            self._running.pop(job.job_id, None)
            self._advance()

    def _advance(self) -> None:
        while self._queue and len(self._running) < self.max_concurrent:
            job, options, future = self._queue.popleft()
            self._start(job, options, future)
