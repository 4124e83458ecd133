"""
Tests for job admission, FIFO queueing and failure isolation in the coordinator.
"""

import asyncio

import pytest

from thesis_check.errors import JobFailure
from thesis_check.providers.sinks import InMemoryJobSink
from thesis_check.schemas.analysis_schemas import AnalysisOptions, AnalysisResult, JobStatus
from thesis_check.services.processing_coordinator import (
    ProcessingCoordinator,
    estimate_processing_minutes,
)


class GatedRunner:
    """Runner whose jobs block until their gate is opened."""

    def __init__(self, failures=None):
        self.failures = failures or {}
        self.gates = {}
        self.started = []
        self.active = 0
        self.max_active = 0

    def gate(self, document_id):
        return self.gates.setdefault(document_id, asyncio.Event())

    def open_all(self, *document_ids):
        for doc in document_ids:
            self.gate(doc).set()

    async def __call__(self, document_id, options):
        self.started.append(document_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            await self.gate(document_id).wait()
            if document_id in self.failures:
                raise self.failures[document_id]
            return AnalysisResult(document_id=document_id)
        finally:
            self.active -= 1


class BrokenSink:
    def __init__(self):
        self.calls = 0

    def consume(self, result):
        self.calls += 1
        raise IOError("disk full")


class TestAdmission:
    @pytest.mark.asyncio
    async def test_single_slot_runs_fifo(self):
        runner = GatedRunner()
        coordinator = ProcessingCoordinator(runner, max_concurrent=1)
        futures = [coordinator.submit(doc) for doc in ("a", "b", "c")]

        status = coordinator.status()
        assert status.running_count == 1
        assert status.running_document_ids == ["a"]
        assert status.queue_length == 2

        runner.open_all("c", "b", "a")
        results = await asyncio.gather(*futures)

        assert [r.document_id for r in results] == ["a", "b", "c"]
        assert runner.started == ["a", "b", "c"]
        assert runner.max_active == 1
        assert coordinator.status().running_count == 0
        assert coordinator.status().queue_length == 0

    @pytest.mark.asyncio
    async def test_concurrency_bound(self):
        runner = GatedRunner()
        coordinator = ProcessingCoordinator(runner, max_concurrent=2)
        futures = [coordinator.submit(doc) for doc in ("a", "b", "c", "d")]

        assert coordinator.running_count == 2
        assert coordinator.status().queue_length == 2

        runner.open_all("a", "b", "c", "d")
        await asyncio.gather(*futures)
        assert runner.max_active == 2
        assert runner.started == ["a", "b", "c", "d"]

    @pytest.mark.asyncio
    async def test_job_states(self):
        runner = GatedRunner()
        coordinator = ProcessingCoordinator(runner, max_concurrent=1)
        first, first_future = coordinator.enqueue("a")
        second, second_future = coordinator.enqueue("b", AnalysisOptions(check_ai=False))

        assert coordinator.get_job(first.job_id).status == JobStatus.RUNNING
        assert coordinator.get_job(second.job_id).status == JobStatus.QUEUED
        assert coordinator.get_job(second.job_id).started_at is None

        runner.open_all("a", "b")
        await asyncio.gather(first_future, second_future)
        done = coordinator.get_job(second.job_id)
        assert done.status == JobStatus.DONE
        assert done.started_at is not None
        assert done.completed_at >= done.started_at

    @pytest.mark.asyncio
    async def test_get_job_returns_snapshot(self):
        runner = GatedRunner()
        coordinator = ProcessingCoordinator(runner)
        job, future = coordinator.enqueue("a")
        snapshot = coordinator.get_job(job.job_id)
        snapshot.status = JobStatus.FAILED
        assert coordinator.get_job(job.job_id).status == JobStatus.RUNNING
        runner.open_all("a")
        await future

    def test_unknown_job(self):
        coordinator = ProcessingCoordinator(GatedRunner())
        assert coordinator.get_job("missing") is None

    def test_enqueue_needs_running_loop(self):
        coordinator = ProcessingCoordinator(GatedRunner())
        with pytest.raises(RuntimeError):
            coordinator.enqueue("a")

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            ProcessingCoordinator(GatedRunner(), max_concurrent=0)


class TestFailures:
    @pytest.mark.asyncio
    async def test_failure_is_wrapped_and_queue_advances(self):
        cause = ValueError("tokenizer exploded")
        runner = GatedRunner(failures={"a": cause})
        coordinator = ProcessingCoordinator(runner, max_concurrent=1)
        job_a, future_a = coordinator.enqueue("a")
        _, future_b = coordinator.enqueue("b")

        runner.open_all("a", "b")
        with pytest.raises(JobFailure) as exc:
            await future_a
        assert exc.value.document_id == "a"
        assert exc.value.reason == "tokenizer exploded"
        assert exc.value.__cause__ is cause

        result = await future_b
        assert result.document_id == "b"
        failed = coordinator.get_job(job_a.job_id)
        assert failed.status == JobStatus.FAILED
        assert failed.failure_reason == "tokenizer exploded"

    @pytest.mark.asyncio
    async def test_job_failure_passes_through(self):
        original = JobFailure("a", "document not found")
        runner = GatedRunner(failures={"a": original})
        coordinator = ProcessingCoordinator(runner)
        future = coordinator.submit("a")
        runner.open_all("a")
        with pytest.raises(JobFailure) as exc:
            await future
        assert exc.value is original

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_fail_job(self):
        runner = GatedRunner()
        sink = BrokenSink()
        coordinator = ProcessingCoordinator(runner, sink=sink, max_concurrent=1)
        futures = [coordinator.submit("a"), coordinator.submit("b")]
        runner.open_all("a", "b")
        results = await asyncio.gather(*futures)
        assert [r.document_id for r in results] == ["a", "b"]
        assert sink.calls == 2

    @pytest.mark.asyncio
    async def test_sink_receives_successful_results_only(self):
        runner = GatedRunner(failures={"b": RuntimeError("boom")})
        sink = InMemoryJobSink()
        coordinator = ProcessingCoordinator(runner, sink=sink, max_concurrent=2)
        (job_a, future_a), (job_b, future_b) = coordinator.enqueue("a"), coordinator.enqueue("b")
        runner.open_all("a", "b")
        await asyncio.gather(future_a, future_b, return_exceptions=True)
        assert sink.consumed == ["a"]
        assert sink.get(job_a.job_id).document_id == "a"
        assert sink.get(job_b.job_id) is None

    @pytest.mark.asyncio
    async def test_results_carry_their_job_id(self):
        runner = GatedRunner()
        coordinator = ProcessingCoordinator(runner)
        job, future = coordinator.enqueue("a")
        runner.open_all("a")
        assert (await future).job_id == job.job_id

    @pytest.mark.asyncio
    async def test_repeated_document_keeps_each_jobs_result(self):
        async def runner(document_id, options):
            return AnalysisResult(document_id=document_id, ai_score=80 if options.check_ai else 0)

        sink = InMemoryJobSink()
        coordinator = ProcessingCoordinator(runner, sink=sink, max_concurrent=1)
        with_ai, first = coordinator.enqueue("a", AnalysisOptions(check_ai=True))
        without_ai, second = coordinator.enqueue("a", AnalysisOptions(check_ai=False))
        await asyncio.gather(first, second)
        assert sink.get(with_ai.job_id).ai_score == 80
        assert sink.get(without_ai.job_id).ai_score == 0


class TestHistory:
    @pytest.mark.asyncio
    async def test_finished_jobs_are_evicted_oldest_first(self):
        runner = GatedRunner()
        coordinator = ProcessingCoordinator(runner, history_limit=2)
        runner.open_all("a", "b", "c")
        jobs = []
        for doc in ("a", "b", "c"):
            job, future = coordinator.enqueue(doc)
            await future
            jobs.append(job)
        assert coordinator.get_job(jobs[0].job_id) is None
        assert coordinator.get_job(jobs[1].job_id) is not None
        assert coordinator.get_job(jobs[2].job_id) is not None

    @pytest.mark.asyncio
    async def test_unfinished_jobs_are_kept(self):
        runner = GatedRunner()
        coordinator = ProcessingCoordinator(runner, max_concurrent=1, history_limit=1)
        jobs = [coordinator.enqueue(doc) for doc in ("a", "b", "c")]
        for job, _ in jobs:
            assert coordinator.get_job(job.job_id) is not None
        runner.open_all("a", "b", "c")
        await asyncio.gather(*(f for _, f in jobs))


class TestEstimate:
    def test_minimum_two_minutes(self):
        assert estimate_processing_minutes(0) == 2

    def test_large_file(self):
        # (30 + 50) * 1.5 * 1.8 * 1.3 = 280.8s
        assert estimate_processing_minutes(10000) == 5

    def test_options_reduce_estimate(self):
        light = AnalysisOptions(check_traditional=False, check_ai=False)
        assert estimate_processing_minutes(10000, light) == 2
        assert estimate_processing_minutes(50000, light) < estimate_processing_minutes(50000)

    def test_negative_size_treated_as_zero(self):
        assert estimate_processing_minutes(-100) == 2
