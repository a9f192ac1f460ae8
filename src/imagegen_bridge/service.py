from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Sequence

import aiofiles
from rich.console import Console

from .clients.fetcher import ImageFetcher
from .clients.provider_client import ProviderClient
from .config import AppConfig
from .documents import images_to_pdf, images_to_pptx
from .errors import DocumentAssemblyError, ValidationError
from .tasks.batch_plan import parse_batch_requests
from .tasks.batch_runner import BatchRunner
from .tasks.generation import ImageGenerator
from .types import GenerationJob, JobResult, Provider, SizeOptions

logger = logging.getLogger(__name__)

BATCH_MODEL_ALIASES = {
    "nano-banana-pro": Provider.NANO_BANANA,
    "seedream-4.5": Provider.SEEDREAM,
}


class ImageToolService:
    """Plain-async implementation of every tool the server exposes."""

    def __init__(
        self,
        config: AppConfig,
        client: ProviderClient | None = None,
        fetcher: ImageFetcher | None = None,
    ) -> None:
        self._config = config
        self._client = client or ProviderClient(timeout=config.request_timeout_seconds)
        self._fetcher = fetcher or ImageFetcher()
        self._generator = ImageGenerator(config, self._client, self._fetcher)

    @property
    def config(self) -> AppConfig:
        return self._config

    async def aclose(self) -> None:
        await self._client.aclose()
        await self._fetcher.aclose()

    def batch_runner(self, console: Console | None = None) -> BatchRunner:
        return BatchRunner(
            self._generator.run,
            model_for=lambda job: self._config.model_for(job.provider),
            console=console,
        )

    async def generate_image(
        self,
        provider: Provider,
        prompt: str,
        save_to_file_path: str | None = None,
        size_options: SizeOptions | None = None,
    ) -> dict[str, Any]:
        if not prompt:
            raise ValidationError("Missing required parameter: prompt")
        job = GenerationJob(
            prompt=prompt,
            provider=provider,
            target_path=Path(save_to_file_path) if save_to_file_path else None,
            size_options=size_options,
        )
        result = await self._generator.run(job)
        return result.to_dict()

    async def edit_image(
        self,
        provider: Provider,
        image_path: str,
        edit_prompt: str,
        save_to_file_path: str | None = None,
        size_options: SizeOptions | None = None,
    ) -> dict[str, Any]:
        if not image_path or not edit_prompt:
            raise ValidationError("Missing required parameter: imagePath or editPrompt")

        source_path = Path(image_path)
        try:
            async with aiofiles.open(source_path, "rb") as handle:
                source_image = await handle.read()
        except OSError as exc:
            result = JobResult.failure(
                edit_prompt,
                f"Cannot read source image {source_path}: {exc}",
                model=self._config.model_for(provider),
            )
            result.extra["originalPath"] = str(source_path)
            return result.to_dict()

        job = GenerationJob.edit(
            edit_prompt,
            source_image,
            provider=provider,
            source_path=source_path,
            target_path=Path(save_to_file_path) if save_to_file_path else None,
            size_options=size_options,
        )
        result = await self._generator.run(job)
        return result.to_dict()

    async def generate_batch(
        self,
        requests: Sequence[object],
        provider: Provider,
        concurrency: int | None = None,
        size_options: SizeOptions | None = None,
    ) -> dict[str, Any]:
        if not isinstance(requests, list) or not requests:
            raise ValidationError("Missing required parameter: requests (array)")

        jobs = parse_batch_requests(requests).to_jobs(provider, size_options)
        results = await self.batch_runner().run_batch(jobs, concurrency or self._config.default_concurrency)
        return {
            "success": all(result.success for result in results),
            "results": [result.to_dict() for result in results],
        }

    async def _assemble(self, builder, image_paths: Sequence[str], output_path: str) -> dict[str, Any]:  # noqa: ANN001
        if not image_paths or not isinstance(image_paths, list):
            raise ValidationError("Missing required parameter: imagePaths (array of image paths)")
        if not output_path:
            raise ValidationError("Missing required parameter: outputPath")
        try:
            return await asyncio.to_thread(builder, image_paths, output_path)
        except DocumentAssemblyError as exc:
            logger.error("%s", exc)
            return {"success": False, "error": str(exc)}

    async def images_to_pdf(self, image_paths: Sequence[str], output_path: str) -> dict[str, Any]:
        return await self._assemble(images_to_pdf, image_paths, output_path)

    async def images_to_pptx(self, image_paths: Sequence[str], output_path: str) -> dict[str, Any]:
        return await self._assemble(images_to_pptx, image_paths, output_path)
