from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Sequence

from pydantic import BaseModel, Field, RootModel, ValidationError

from ..types import GenerationJob, Provider, SizeOptions


class BatchRequest(BaseModel):
    """One entry of a batch: a prompt and an optional destination path."""

    prompt: str | None = Field(default=None, description="Image generation prompt")
    save_to_file_path: str | None = Field(
        default=None,
        alias="saveToFilePath",
        description="Optional output path including file name and extension",
    )

    model_config = {"populate_by_name": True, "extra": "ignore"}

    def to_job(self, provider: Provider, size_options: SizeOptions | None = None) -> GenerationJob:
        return GenerationJob(
            prompt=self.prompt or "",
            provider=provider,
            target_path=Path(self.save_to_file_path) if self.save_to_file_path else None,
            size_options=size_options,
        )


class BatchDefinition(RootModel[List[BatchRequest]]):
    """Collection of batch requests loaded from a tool call or a JSON document."""

    def to_jobs(self, provider: Provider, size_options: SizeOptions | None = None) -> List[GenerationJob]:
        return [request.to_job(provider, size_options) for request in self.root]

    def __iter__(self) -> Iterable[BatchRequest]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)


def parse_batch_requests(requests: Sequence[object]) -> BatchDefinition:
    """Validate raw request entries; entries without a prompt stay in the batch and fail there."""
    try:
        return BatchDefinition.model_validate(list(requests))
    except ValidationError as exc:
        raise RuntimeError(f"Invalid batch requests: {exc.error_count()} malformed entries") from exc


def load_batch_definition(path: str | Path) -> BatchDefinition:
    """Load and validate a batch file: a JSON array of ``{prompt, saveToFilePath?}`` objects."""
    with Path(path).open("r", encoding="utf-8") as handle:
        data = json.load(handle)

    if not isinstance(data, list):
        raise RuntimeError(
            f"Unsupported batch definition structure at {path}; expected a JSON array."
        )
    return parse_batch_requests(data)
