from __future__ import annotations

from pathlib import Path

import pytest

from imagegen_bridge.config import load_config
from imagegen_bridge.types import Provider

ENV_VARS = (
    "GEMINI_API_KEY",
    "GEMINI_API_BASE",
    "GEMINI_MODEL",
    "SEEDREAM_MODEL",
    "ZHIPU_API_KEY",
    "ZHIPU_API_BASE",
    "GLM_MODEL",
    "OUTPUT_DIR",
    "PROJECT_DIR",
    "REQUEST_TIMEOUT",
    "DEFAULT_CONCURRENCY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_loads_providers_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "chat-key")
    monkeypatch.setenv("GEMINI_API_BASE", "https://proxy.example.test")
    monkeypatch.setenv("ZHIPU_API_KEY", "glm-key")
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("PROJECT_DIR", str(tmp_path / "proj"))

    config = load_config(tmp_path / "missing.env")

    assert config.nano_banana is not None
    assert config.nano_banana.model == "google/gemini-3-pro-image-preview"
    assert config.nano_banana.chat_url == "https://proxy.example.test/v1/chat/completions"
    assert config.model_for(Provider.SEEDREAM) == "bytedance-seed/seedream-4.5"
    assert config.glm is not None
    assert config.glm.generations_url == "https://open.bigmodel.cn/api/paas/v4/images/generations"
    assert config.output.output_dir == tmp_path / "out"
    assert config.output.project_dir == tmp_path / "proj"


def test_missing_credentials_leave_providers_unconfigured(tmp_path: Path) -> None:
    config = load_config(tmp_path / "missing.env")
    assert config.nano_banana is None
    assert config.seedream is None
    assert config.glm is None
    assert config.model_for(Provider.GLM) is None


def test_dotenv_file_is_read(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    # load_dotenv writes os.environ directly; register both names so teardown removes them.
    for name in ("ZHIPU_API_KEY", "GLM_MODEL"):
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
    env_file = tmp_path / ".env"
    env_file.write_text("ZHIPU_API_KEY=from-file\nGLM_MODEL=glm-image-2\n")
    config = load_config(env_file)
    assert config.glm is not None
    assert config.glm.api_key == "from-file"
    assert config.glm.model == "glm-image-2"


def test_invalid_timeout(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("REQUEST_TIMEOUT", "soon")
    with pytest.raises(RuntimeError, match="Invalid float value"):
        load_config(tmp_path / "missing.env")


def test_out_of_range_value_names_the_field(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DEFAULT_CONCURRENCY", "0")
    with pytest.raises(RuntimeError, match="default_concurrency"):
        load_config(tmp_path / "missing.env")
