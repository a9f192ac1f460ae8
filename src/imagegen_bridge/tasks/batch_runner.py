from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Sequence

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn, TimeRemainingColumn

from ..errors import ValidationError
from ..types import GenerationJob, JobResult

logger = logging.getLogger(__name__)

JobFn = Callable[[GenerationJob], Awaitable[JobResult]]


class BatchRunner:
    """
    Run independent jobs with a bounded number of concurrent workers.

    Each ``run_batch`` call owns its own queue and result list. Its workers are
    asyncio tasks that claim the next job, run it, record one result, and repeat
    until that queue is empty. A failing job produces a failing result and never
    stops its siblings, so ``run_batch`` always returns one result per job, even
    when several batches overlap on the same runner.
    """

    def __init__(
        self,
        job_fn: JobFn,
        model_for: Callable[[GenerationJob], str | None] | None = None,
        console: Console | None = None,
    ) -> None:
        self._job_fn = job_fn
        self._model_for = model_for
        self._console = console

    @staticmethod
    def _claim_next(queue: deque[GenerationJob]) -> GenerationJob | None:
        # Single event loop, no await between check and pop: claiming is atomic.
        if not queue:
            return None
        return queue.popleft()

    def _model(self, job: GenerationJob) -> str | None:
        return self._model_for(job) if self._model_for is not None else None

    async def _run_one(self, job: GenerationJob) -> JobResult:
        if not job.prompt:
            return JobResult.failure(job.prompt, "Missing required parameter: prompt", model=self._model(job))
        try:
            return await self._job_fn(job)
        except Exception as exc:  # noqa: BLE001 - job boundary converts every failure into a result
            logger.exception("Job for prompt %r raised unexpectedly", job.prompt[:60])
            return JobResult.failure(job.prompt, str(exc) or type(exc).__name__, model=self._model(job))

    async def _worker(
        self,
        queue: deque[GenerationJob],
        results: list[JobResult],
        on_done: Callable[[JobResult], None],
    ) -> None:
        while (job := self._claim_next(queue)) is not None:
            result = await self._run_one(job)
            results.append(result)
            on_done(result)

    async def run_batch(self, jobs: Sequence[GenerationJob], concurrency: int = 3) -> list[JobResult]:
        """
        Execute every job and return their results in completion order.

        Raises
        ------
        ValidationError
            If ``jobs`` is not a non-empty list or ``concurrency`` is below one.
            Raised before any job starts.
        """
        if not isinstance(jobs, (list, tuple)) or not jobs:
            raise ValidationError("Batch requires a non-empty list of jobs")
        if not isinstance(concurrency, int) or concurrency < 1:
            raise ValidationError(f"Concurrency must be a positive integer, got {concurrency!r}")

        queue: deque[GenerationJob] = deque(jobs)
        worker_count = min(concurrency, len(jobs))
        results: list[JobResult] = []
        logger.info("Running %d jobs with %d workers", len(jobs), worker_count)

        if self._console is None:
            await asyncio.gather(*(self._worker(queue, results, lambda _: None) for _ in range(worker_count)))
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[bold]batch[/bold]"),
                TextColumn("{task.description}"),
                TimeElapsedColumn(),
                TimeRemainingColumn(),
                console=self._console,
                transient=True,
            ) as progress:
                task_id = progress.add_task("queued", total=len(jobs))

                def advance(result: JobResult) -> None:
                    status = "ok" if result.success else "failed"
                    progress.update(task_id, description=f"{len(results)}/{len(jobs)} ({status})")
                    progress.advance(task_id)

                await asyncio.gather(*(self._worker(queue, results, advance) for _ in range(worker_count)))

        failures = sum(1 for result in results if not result.success)
        logger.info("Batch finished: %d succeeded, %d failed", len(results) - failures, failures)
        return results
