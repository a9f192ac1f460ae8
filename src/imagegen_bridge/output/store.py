from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path

import aiofiles
import aiofiles.os

from ..config import OutputConfig
from ..errors import PersistenceError
from ..imaging import extension_for
from ..types import GenerationJob, Operation, Provider

logger = logging.getLogger(__name__)

PROMPT_SLUG_CHARS = 30
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9\u4e00-\u9fa5]")


def prompt_slug(prompt: str) -> str:
    """First characters of a prompt, reduced to a filename-safe token."""
    return _UNSAFE_CHARS.sub("_", prompt[:PROMPT_SLUG_CHARS])


class OutputStore:
    """Decides where images land on disk and writes them."""

    def __init__(self, config: OutputConfig) -> None:
        self._config = config

    @property
    def base_dir(self) -> Path:
        return self._config.output_dir

    def directory_for(self, job: GenerationJob) -> Path:
        # New generations prefer the project directory; edits go to the output directory.
        if job.operation is Operation.GENERATE and self._config.project_dir is not None:
            return self._config.project_dir
        return self._config.output_dir

    def default_path(self, job: GenerationJob, extension: str, now: datetime | None = None) -> Path:
        if job.operation is Operation.EDIT:
            prefix = "edited"
        elif job.provider is Provider.GLM:
            prefix = "glm"
        else:
            prefix = "generated"
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S-%f")
        suffix = uuid.uuid4().hex[:6]
        name = f"{prefix}_{prompt_slug(job.prompt)}_{stamp}_{suffix}.{extension}"
        return self.directory_for(job) / name

    async def save(self, job: GenerationJob, data: bytes, mime_type: str | None = None) -> Path:
        """Write image bytes to the job's target path (or a generated one) and return it."""
        path = job.target_path or self.default_path(job, extension_for(mime_type, data))
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, "wb") as handle:
                await handle.write(data)
        except OSError as exc:
            raise PersistenceError(f"Failed to write image to {path}: {exc}") from exc

        logger.info("Image saved to %s", path)
        return path
