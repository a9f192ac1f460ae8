from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx
import pytest

from imagegen_bridge.clients.fetcher import ImageFetcher
from imagegen_bridge.clients.provider_client import ProviderClient
from imagegen_bridge.config import AppConfig
from imagegen_bridge.errors import TransportError, ValidationError
from imagegen_bridge.tasks.batch_runner import BatchRunner
from imagegen_bridge.tasks.generation import ImageGenerator
from imagegen_bridge.types import GenerationJob, JobResult

from conftest import PNG_BYTES, chat_response, image_message


class TestBatchRunner:
    @pytest.mark.asyncio
    async def test_missing_prompt_recorded_without_running_job(self) -> None:
        called: list[str] = []

        async def job_fn(job: GenerationJob) -> JobResult:
            called.append(job.prompt)
            await asyncio.sleep(0.01 * (len(job.prompt) % 3))
            return JobResult.ok(job.prompt, "model-x", Path(f"/tmp/{job.prompt}.png"))

        prompts = ["one", "two", "three", "", "five", "six", "seven"]
        jobs = [GenerationJob(prompt=prompt) for prompt in prompts]

        results = await BatchRunner(job_fn).run_batch(jobs, concurrency=3)

        assert len(results) == 7
        failures = [result for result in results if not result.success]
        assert len(failures) == 1
        assert failures[0].prompt == ""
        assert "prompt" in failures[0].error
        assert sorted(called) == sorted(p for p in prompts if p)

    @pytest.mark.asyncio
    async def test_failures_do_not_abort_siblings(self) -> None:
        async def job_fn(job: GenerationJob) -> JobResult:
            if job.prompt.startswith("bad"):
                raise TransportError("upstream failed", status_code=502)
            if job.prompt == "boom":
                raise KeyError("unexpected")
            return JobResult.ok(job.prompt, "m", Path("x.png"))

        jobs = [GenerationJob(prompt=p) for p in ["ok1", "bad1", "boom", "ok2", "bad2"]]
        results = await BatchRunner(job_fn).run_batch(jobs, concurrency=2)

        assert len(results) == 5
        by_prompt = {result.prompt: result for result in results}
        assert by_prompt["ok1"].success and by_prompt["ok2"].success
        assert not by_prompt["bad1"].success
        assert "502" in by_prompt["bad1"].error
        assert not by_prompt["boom"].success

    @pytest.mark.asyncio
    async def test_concurrency_ceiling_and_single_claim(self) -> None:
        active = 0
        peak = 0
        seen: list[str] = []

        async def job_fn(job: GenerationJob) -> JobResult:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            seen.append(job.prompt)
            await asyncio.sleep(0.01)
            active -= 1
            return JobResult.ok(job.prompt, "m", Path("x.png"))

        jobs = [GenerationJob(prompt=f"p{i}") for i in range(10)]
        results = await BatchRunner(job_fn).run_batch(jobs, concurrency=3)

        assert len(results) == 10
        assert peak == 3
        assert sorted(seen) == sorted(job.prompt for job in jobs)

    @pytest.mark.asyncio
    async def test_overlapping_batches_keep_their_own_results(self) -> None:
        slow_started = asyncio.Event()
        release_slow = asyncio.Event()

        async def job_fn(job: GenerationJob) -> JobResult:
            if job.prompt == "slow":
                slow_started.set()
                await release_slow.wait()
            return JobResult.ok(job.prompt, "m", Path(f"{job.prompt}.png"))

        runner = BatchRunner(job_fn)
        first = asyncio.create_task(
            runner.run_batch([GenerationJob(prompt="a"), GenerationJob(prompt="slow")], concurrency=2)
        )
        await slow_started.wait()

        second = asyncio.create_task(
            runner.run_batch([GenerationJob(prompt=f"b{i}") for i in range(3)], concurrency=1)
        )
        await asyncio.sleep(0)
        release_slow.set()
        first_results, second_results = await asyncio.gather(first, second)

        assert sorted(result.prompt for result in first_results) == ["a", "slow"]
        assert sorted(result.prompt for result in second_results) == ["b0", "b1", "b2"]

    @pytest.mark.asyncio
    async def test_fewer_jobs_than_workers(self) -> None:
        async def job_fn(job: GenerationJob) -> JobResult:
            return JobResult.ok(job.prompt, "m", Path("x.png"))

        results = await BatchRunner(job_fn).run_batch([GenerationJob(prompt="solo")], concurrency=8)
        assert [result.prompt for result in results] == ["solo"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("jobs", "concurrency"), [([], 3), ("not-a-list", 3), ([GenerationJob("x")], 0)])
    async def test_invalid_arguments_raise_before_any_job(self, jobs, concurrency) -> None:  # noqa: ANN001
        called = False

        async def job_fn(job: GenerationJob) -> JobResult:
            nonlocal called
            called = True
            return JobResult.ok(job.prompt, "m", Path("x.png"))

        with pytest.raises(ValidationError):
            await BatchRunner(job_fn).run_batch(jobs, concurrency)
        assert called is False

    def test_result_serialisation(self) -> None:
        ok = JobResult.ok("cat", "model-a", Path("out/cat.png")).to_dict()
        failed = JobResult.failure("dog", "no image", model="model-b").to_dict()

        assert ok == {"success": True, "filePath": str(Path("out/cat.png")), "prompt": "cat", "model": "model-a"}
        assert failed == {"success": False, "error": "no image", "prompt": "dog", "model": "model-b"}


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_mixed_outcomes(self, app_config: AppConfig, tmp_path: Path) -> None:
        posted: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, content=PNG_BYTES)
            prompt = json.loads(request.content)["messages"][0]["content"]
            posted.append(prompt)
            if prompt == "server error":
                return httpx.Response(500, text="internal failure")
            if prompt == "refuse":
                return httpx.Response(200, text=chat_response({"content": "I cannot help with that."}))
            if prompt == "link":
                return httpx.Response(200, text=chat_response({"content": "https://cdn.example.test/i.png"}))
            return httpx.Response(200, text=image_message())

        transport = httpx.MockTransport(handler)
        client = ProviderClient(transport=transport)
        fetcher = ImageFetcher(transport=transport)
        generator = ImageGenerator(app_config, client, fetcher)
        runner = BatchRunner(generator.run, model_for=lambda job: app_config.model_for(job.provider))

        prompts = ["fox", "server error", "", "refuse", "link", "owl", "bear"]
        saved = tmp_path / "named.png"
        jobs = [GenerationJob(prompt=p) for p in prompts]
        jobs[0] = GenerationJob(prompt="fox", target_path=saved)
        try:
            results = await runner.run_batch(jobs, concurrency=3)
        finally:
            await client.aclose()
            await fetcher.aclose()

        assert len(results) == len(jobs)
        by_prompt = {result.prompt: result for result in results}
        assert "" not in posted
        assert not by_prompt[""].success
        assert not by_prompt["server error"].success
        assert "500" in by_prompt["server error"].error
        assert not by_prompt["refuse"].success
        assert "I cannot help with that." in by_prompt["refuse"].error
        for prompt in ("fox", "link", "owl", "bear"):
            result = by_prompt[prompt]
            assert result.success, result.error
            assert result.model == "google/gemini-3-pro-image-preview"
            assert result.file_path.read_bytes() == PNG_BYTES
        assert by_prompt["fox"].file_path == saved
        assert by_prompt["owl"].file_path.parent == tmp_path / "project"
