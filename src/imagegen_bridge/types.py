from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping


class Provider(str, Enum):
    NANO_BANANA = "nano_banana"
    SEEDREAM = "seedream"
    GLM = "glm"

    @property
    def is_chat(self) -> bool:
        """Whether the provider speaks the conversational chat-completions API."""
        return self is not Provider.GLM


class Operation(str, Enum):
    GENERATE = "generate"
    EDIT = "edit"


class ImageSource(str, Enum):
    """Where in a provider response the image bytes were found."""

    INLINE_BASE64 = "inline_base64"
    INLINE_STRUCTURED = "inline_structured"
    REMOTE_URL = "remote_url"
    TEXT_SCANNED = "text_scanned"


@dataclass(frozen=True, slots=True)
class SizeOptions:
    """Sizing hints; chat providers read image_size/aspect_ratio, GLM reads size."""

    image_size: str | None = None
    aspect_ratio: str | None = None
    size: str | None = None

    def image_config(self) -> dict[str, str]:
        config: dict[str, str] = {}
        if self.image_size:
            config["image_size"] = self.image_size
        if self.aspect_ratio:
            config["aspect_ratio"] = self.aspect_ratio
        return config


@dataclass(frozen=True, slots=True)
class GenerationJob:
    """One caller-submitted unit of generation or edit work."""

    prompt: str
    provider: Provider = Provider.NANO_BANANA
    operation: Operation = Operation.GENERATE
    source_image: bytes | None = None
    source_path: Path | None = None
    target_path: Path | None = None
    size_options: SizeOptions | None = None

    @classmethod
    def edit(
        cls,
        prompt: str,
        source_image: bytes,
        provider: Provider = Provider.NANO_BANANA,
        **kwargs: Any,
    ) -> "GenerationJob":
        return cls(
            prompt=prompt,
            provider=provider,
            operation=Operation.EDIT,
            source_image=source_image,
            **kwargs,
        )


@dataclass(frozen=True, slots=True)
class ProviderRequest:
    provider: Provider
    model: str
    endpoint: str
    headers: Mapping[str, str]
    body: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class ProviderResponse:
    status_code: int
    text: str
    content_type: str = ""


@dataclass(frozen=True, slots=True)
class ImageCandidate:
    """An image located in a response, either as bytes or as a URL still to fetch."""

    source: ImageSource
    data: bytes | None = None
    url: str | None = None
    mime_type: str | None = None
    text: str = ""


@dataclass(frozen=True, slots=True)
class ResolvedImage:
    data: bytes
    source: ImageSource
    mime_type: str | None = None
    url: str | None = None
    text: str = ""


@dataclass(slots=True)
class JobResult:
    """Outcome of one job, serialised back to the tool caller."""

    success: bool
    prompt: str | None
    model: str | None = None
    file_path: Path | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, prompt: str, model: str, file_path: Path, **extra: Any) -> "JobResult":
        return cls(success=True, prompt=prompt, model=model, file_path=file_path, extra=dict(extra))

    @classmethod
    def failure(cls, prompt: str | None, error: str, model: str | None = None) -> "JobResult":
        return cls(success=False, prompt=prompt, model=model, error=error)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.success:
            payload["filePath"] = str(self.file_path)
        else:
            payload["error"] = self.error
        payload["prompt"] = self.prompt
        payload["model"] = self.model
        payload.update(self.extra)
        return payload
