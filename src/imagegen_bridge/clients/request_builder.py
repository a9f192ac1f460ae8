from __future__ import annotations

import base64
from typing import Any, Dict

from ..config import AppConfig, ChatProviderConfig, GlmProviderConfig
from ..errors import ValidationError
from ..imaging import detect_mime_type
from ..types import GenerationJob, Operation, Provider, ProviderRequest

CHAT_MAX_TOKENS = 4000
DEFAULT_IMAGE_CONFIG = {"image_size": "1K"}


def _headers(api_key: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def _validate(job: GenerationJob) -> None:
    if not job.prompt or not job.prompt.strip():
        raise ValidationError("Missing required parameter: prompt")
    if job.operation is Operation.EDIT and not job.source_image:
        raise ValidationError("Edit jobs require a source image")


def _chat_request(job: GenerationJob, settings: ChatProviderConfig) -> ProviderRequest:
    content: Any
    if job.operation is Operation.EDIT:
        assert job.source_image is not None
        mime_type = detect_mime_type(job.source_image)
        encoded = base64.b64encode(job.source_image).decode("utf-8")
        content = [
            {"type": "text", "text": job.prompt},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
        ]
    else:
        content = job.prompt

    body: Dict[str, Any] = {
        "model": settings.model,
        "messages": [{"role": "user", "content": content}],
        "modalities": ["image", "text"],
        "stream": False,
        "max_tokens": CHAT_MAX_TOKENS,
    }

    if settings.accepts_image_config():
        hint = job.size_options.image_config() if job.size_options else {}
        body["image_config"] = hint or dict(DEFAULT_IMAGE_CONFIG)

    return ProviderRequest(
        provider=job.provider,
        model=settings.model,
        endpoint=settings.chat_url,
        headers=_headers(settings.api_key),
        body=body,
    )


def _glm_request(job: GenerationJob, settings: GlmProviderConfig) -> ProviderRequest:
    if job.operation is Operation.EDIT:
        raise ValidationError("GLM-Image does not support image editing")

    size = (job.size_options.size if job.size_options else None) or settings.default_size
    body = {
        "model": settings.model,
        "prompt": job.prompt,
        "size": size,
        "watermark_enabled": False,
    }
    return ProviderRequest(
        provider=job.provider,
        model=settings.model,
        endpoint=settings.generations_url,
        headers=_headers(settings.api_key),
        body=body,
    )


def build_request(job: GenerationJob, config: AppConfig) -> ProviderRequest:
    """
    Translate a job into the outbound request for its provider.

    Performs no I/O. Raises ``ValidationError`` for an empty prompt, an edit
    without a source image, or a provider with no credentials configured.
    """
    _validate(job)

    settings = config.provider(job.provider)
    if settings is None:
        raise ValidationError(f"Provider '{job.provider.value}' is not configured (missing API key)")

    if job.provider is Provider.GLM:
        assert isinstance(settings, GlmProviderConfig)
        return _glm_request(job, settings)
    assert isinstance(settings, ChatProviderConfig)
    return _chat_request(job, settings)
