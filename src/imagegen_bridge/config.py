from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .types import Provider

DEFAULT_CHAT_API_BASE = "https://openrouter.ai/api/v1"
DEFAULT_ZHIPU_API_BASE = "https://open.bigmodel.cn/api/paas/v4"
IMAGE_CONFIG_MODEL_TOKENS = ("gemini", "nano-banana")


class ChatProviderConfig(BaseModel):
    """Settings for a provider reached through the chat-completions API."""

    api_base: str = Field(default=DEFAULT_CHAT_API_BASE, description="Chat API base URL")
    api_key: str = Field(..., min_length=1, description="Bearer token for the chat API")
    model: str = Field(..., min_length=1, description="Model identifier sent with every request")
    image_config: Optional[bool] = Field(
        default=None,
        description=(
            "Whether the model accepts an image_config sizing hint. "
            "Unset falls back to matching the model id against known family tokens."
        ),
    )

    @property
    def chat_url(self) -> str:
        base = self.api_base.rstrip("/")
        if base.endswith("/v1"):
            return f"{base}/chat/completions"
        return f"{base}/v1/chat/completions"

    def accepts_image_config(self) -> bool:
        if self.image_config is not None:
            return self.image_config
        model = self.model.lower()
        return any(token in model for token in IMAGE_CONFIG_MODEL_TOKENS)


class GlmProviderConfig(BaseModel):
    """Settings for the Zhipu GLM-Image generation endpoint."""

    api_base: str = Field(default=DEFAULT_ZHIPU_API_BASE, description="Zhipu API base URL")
    api_key: str = Field(..., min_length=1, description="Zhipu API key")
    model: str = Field(default="glm-image")
    default_size: str = Field(default="1280x1280", pattern=r"^\d+x\d+$")

    @property
    def generations_url(self) -> str:
        return f"{self.api_base.rstrip('/')}/images/generations"


class OutputConfig(BaseModel):
    """Where generated images land when the caller gives no explicit path."""

    output_dir: Path = Field(default_factory=lambda: Path("generated-images"))
    project_dir: Path | None = Field(
        default=None,
        description="Preferred directory for new generations; edits always go to output_dir",
    )


class AppConfig(BaseModel):
    """Top-level configuration threaded into the request builder and batch runner."""

    nano_banana: ChatProviderConfig | None = None
    seedream: ChatProviderConfig | None = None
    glm: GlmProviderConfig | None = None
    output: OutputConfig = Field(default_factory=OutputConfig)
    request_timeout_seconds: float = Field(default=300.0, gt=0, le=3600)
    default_concurrency: int = Field(default=3, ge=1, le=32)

    def provider(self, provider: Provider) -> ChatProviderConfig | GlmProviderConfig | None:
        return getattr(self, provider.value)

    def model_for(self, provider: Provider) -> str | None:
        settings = self.provider(provider)
        return settings.model if settings is not None else None


def _float_from_env(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid float value: {value}") from exc


def _int_from_env(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer value: {value}") from exc


def load_config(dotenv_path: str | Path | None = None) -> AppConfig:
    """
    Load configuration from environment variables (optionally seeded by a .env file).

    Providers whose credential is absent are left unconfigured; jobs addressed to
    them fail validation instead of the whole server refusing to start.

    Parameters
    ----------
    dotenv_path:
        Optional override for the .env file location. Defaults to ``.env`` in the
        working directory.

    Raises
    ------
    RuntimeError
        If a configuration value is present but invalid.
    """
    env_path = Path(dotenv_path) if dotenv_path else Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    chat_key = os.getenv("GEMINI_API_KEY")
    chat_base = os.getenv("GEMINI_API_BASE", DEFAULT_CHAT_API_BASE)

    nano_data: dict[str, object] | None = None
    seedream_data: dict[str, object] | None = None
    if chat_key:
        nano_data = {
            "api_base": chat_base,
            "api_key": chat_key,
            "model": os.getenv("GEMINI_MODEL", "google/gemini-3-pro-image-preview"),
        }
        seedream_data = {
            "api_base": chat_base,
            "api_key": chat_key,
            "model": os.getenv("SEEDREAM_MODEL", "bytedance-seed/seedream-4.5"),
        }

    glm_data: dict[str, object] | None = None
    zhipu_key = os.getenv("ZHIPU_API_KEY")
    if zhipu_key:
        glm_data = {
            "api_base": os.getenv("ZHIPU_API_BASE", DEFAULT_ZHIPU_API_BASE),
            "api_key": zhipu_key,
            "model": os.getenv("GLM_MODEL", "glm-image"),
        }

    project_dir = os.getenv("PROJECT_DIR")
    data = {
        "nano_banana": nano_data,
        "seedream": seedream_data,
        "glm": glm_data,
        "output": {
            "output_dir": Path(os.getenv("OUTPUT_DIR", "generated-images")),
            "project_dir": Path(project_dir) if project_dir else Path.cwd(),
        },
        "request_timeout_seconds": _float_from_env(os.getenv("REQUEST_TIMEOUT"), 300.0),
        "default_concurrency": _int_from_env(os.getenv("DEFAULT_CONCURRENCY"), 3),
    }

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        invalid = {"/".join(str(part) for part in err["loc"]) for err in exc.errors()}
        invalid_str = ", ".join(sorted(invalid))
        raise RuntimeError(f"Invalid configuration values: {invalid_str}") from exc
