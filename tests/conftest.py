from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any

import pytest

from imagegen_bridge.config import AppConfig, ChatProviderConfig, GlmProviderConfig, OutputConfig

PNG_B64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8/5+hHgAHggJ/PchI7wAAAABJRU5ErkJggg=="
PNG_BYTES = base64.b64decode(PNG_B64)
CHAT_BASE = "https://router.example.test/api/v1"
GLM_BASE = "https://glm.example.test/api/paas/v4"


class FakeFetcher:
    def __init__(self, payloads: dict[str, bytes] | None = None) -> None:
        self.payloads = payloads or {}
        self.calls: list[str] = []

    async def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        return self.payloads[url]


def chat_response(message: dict[str, Any]) -> str:
    return json.dumps({"id": "gen-1", "choices": [{"index": 0, "message": message}]})


def image_message(data: bytes = PNG_BYTES, mime: str = "image/png") -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return chat_response(
        {
            "role": "assistant",
            "content": "",
            "images": [{"type": "image_url", "image_url": {"url": f"data:{mime};base64,{encoded}"}}],
        }
    )


def build_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        nano_banana=ChatProviderConfig(
            api_base=CHAT_BASE, api_key="test-chat-key", model="google/gemini-3-pro-image-preview"
        ),
        seedream=ChatProviderConfig(
            api_base=CHAT_BASE, api_key="test-chat-key", model="bytedance-seed/seedream-4.5"
        ),
        glm=GlmProviderConfig(api_base=GLM_BASE, api_key="test-glm-key"),
        output=OutputConfig(output_dir=tmp_path / "out", project_dir=tmp_path / "project"),
    )


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return build_config(tmp_path)


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES
