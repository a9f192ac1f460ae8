from __future__ import annotations

import logging

from ..clients.fetcher import ImageFetcher
from ..clients.provider_client import ProviderClient
from ..clients.request_builder import build_request
from ..config import AppConfig
from ..errors import ImageGenError
from ..output.store import OutputStore
from ..resolver import resolve_image
from ..types import GenerationJob, JobResult, Operation

logger = logging.getLogger(__name__)


class ImageGenerator:
    """Runs one job end to end: build request, call provider, resolve image, persist."""

    def __init__(
        self,
        config: AppConfig,
        client: ProviderClient,
        fetcher: ImageFetcher,
        store: OutputStore | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._fetcher = fetcher
        self._store = store or OutputStore(config.output)

    @property
    def config(self) -> AppConfig:
        return self._config

    async def run(self, job: GenerationJob) -> JobResult:
        """
        Execute a job and report its outcome.

        Failures from the image-generation error taxonomy are returned as a
        failing ``JobResult`` rather than raised.
        """
        model = self._config.model_for(job.provider)
        verb = "Editing" if job.operation is Operation.EDIT else "Generating"
        logger.info("%s image with %s", verb, model or job.provider.value)

        try:
            request = build_request(job, self._config)
            response = await self._client.send(request)
            image = await resolve_image(response.text, self._fetcher)
            path = await self._store.save(job, image.data, image.mime_type)
        except ImageGenError as exc:
            logger.warning("%s failed for prompt %r: %s", verb, (job.prompt or "")[:60], exc)
            return JobResult.failure(job.prompt, str(exc), model=model)

        extra = {}
        if job.source_path is not None:
            extra["originalPath"] = str(job.source_path)
        return JobResult.ok(job.prompt, request.model, path, **extra)
