"""
MCP server exposing image generation, image editing and document assembly tools over stdio.
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Awaitable, Literal, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from .config import load_config
from .errors import ImageGenError
from .logs import configure_logging
from .service import BATCH_MODEL_ALIASES, ImageToolService
from .types import Provider, SizeOptions

logger = logging.getLogger(__name__)

ImageSize = Literal["1K", "2K", "4K"]
AspectRatio = Literal["1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9"]
GlmSize = Literal[
    "1280x1280", "1568x1056", "1056x1568", "1472x1088", "1088x1472",
    "1728x960", "960x1728", "1024x1024", "768x1024", "1024x768",
]

mcp = FastMCP("imagegen-bridge")

_service: ImageToolService | None = None
_dotenv_path: Path | None = None


def get_service() -> ImageToolService:
    global _service
    if _service is None:
        _service = ImageToolService(load_config(_dotenv_path))
    return _service


def _dump(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)


async def _respond(tool: str, call: Awaitable[dict[str, Any]]) -> str:
    try:
        return _dump(await call)
    except (ImageGenError, RuntimeError) as exc:
        logger.error("Tool %s failed: %s", tool, exc)
        raise ToolError(_dump({"success": False, "error": str(exc), "tool": tool})) from exc


PromptArg = Annotated[str, Field(description="Detailed description of the image to generate")]
SavePathArg = Annotated[
    Optional[str], Field(description="Optional output path including file name and extension")
]
ImagePathArg = Annotated[str, Field(description="Path of the image to edit")]
EditPromptArg = Annotated[
    str, Field(description="Edit instruction stating what to change, e.g. 'make the background blue'")
]
ImageSizeArg = Annotated[ImageSize, Field(description="Resolution: 1K, 2K (default) or 4K")]
AspectRatioArg = Annotated[Optional[AspectRatio], Field(description="Aspect ratio such as 1:1 or 16:9")]
RequestsArg = Annotated[
    list[dict[str, Any]],
    Field(description="Batch entries, each {prompt, saveToFilePath?}"),
]
ConcurrencyArg = Annotated[Optional[int], Field(description="Number of concurrent requests (default 3)")]


@mcp.tool()
async def generate_image_nano(
    prompt: PromptArg,
    saveToFilePath: SavePathArg = None,
    image_size: ImageSizeArg = "2K",
    aspect_ratio: AspectRatioArg = None,
) -> str:
    """Generate an image with nano-banana-pro. Detailed prompts (layout, colours, text, lighting, style) work best."""
    options = SizeOptions(image_size=image_size, aspect_ratio=aspect_ratio)
    return await _respond(
        "generate_image_nano",
        get_service().generate_image(Provider.NANO_BANANA, prompt, saveToFilePath, options),
    )


@mcp.tool()
async def generate_image_seedream(prompt: PromptArg, saveToFilePath: SavePathArg = None) -> str:
    """Generate an image with ByteDance Seedream 4.5."""
    return await _respond(
        "generate_image_seedream",
        get_service().generate_image(Provider.SEEDREAM, prompt, saveToFilePath),
    )


@mcp.tool()
async def edit_image_nano(
    imagePath: ImagePathArg,
    editPrompt: EditPromptArg,
    saveToFilePath: SavePathArg = None,
    image_size: ImageSizeArg = "2K",
    aspect_ratio: AspectRatioArg = None,
) -> str:
    """Edit an existing image with nano-banana-pro. State the change, not the current picture."""
    options = SizeOptions(image_size=image_size, aspect_ratio=aspect_ratio)
    return await _respond(
        "edit_image_nano",
        get_service().edit_image(Provider.NANO_BANANA, imagePath, editPrompt, saveToFilePath, options),
    )


@mcp.tool()
async def edit_image_seedream(
    imagePath: ImagePathArg,
    editPrompt: EditPromptArg,
    saveToFilePath: SavePathArg = None,
) -> str:
    """Edit an existing image with ByteDance Seedream 4.5."""
    return await _respond(
        "edit_image_seedream",
        get_service().edit_image(Provider.SEEDREAM, imagePath, editPrompt, saveToFilePath),
    )


@mcp.tool()
async def generate_image_glm(
    prompt: PromptArg,
    saveToFilePath: SavePathArg = None,
    size: Annotated[GlmSize, Field(description="Image size, default 1280x1280")] = "1280x1280",
) -> str:
    """Generate an image with Zhipu GLM-Image (no watermark)."""
    return await _respond(
        "generate_image_glm",
        get_service().generate_image(Provider.GLM, prompt, saveToFilePath, SizeOptions(size=size)),
    )


@mcp.tool()
async def generate_image_glm_batch(
    requests: RequestsArg,
    concurrency: ConcurrencyArg = None,
    size: Annotated[GlmSize, Field(description="Image size, default 1280x1280")] = "1280x1280",
) -> str:
    """Generate several images concurrently with Zhipu GLM-Image."""
    return await _respond(
        "generate_image_glm_batch",
        get_service().generate_batch(requests, Provider.GLM, concurrency, SizeOptions(size=size)),
    )


@mcp.tool()
async def generate_image_batch(
    requests: RequestsArg,
    concurrency: ConcurrencyArg = None,
    model: Annotated[
        Literal["nano-banana-pro", "seedream-4.5"],
        Field(description="nano-banana-pro (default) or seedream-4.5"),
    ] = "nano-banana-pro",
    image_size: ImageSizeArg = "2K",
    aspect_ratio: AspectRatioArg = None,
) -> str:
    """Generate several images concurrently. image_size and aspect_ratio apply to nano-banana-pro only."""
    provider = BATCH_MODEL_ALIASES[model]
    options = None
    if provider is Provider.NANO_BANANA:
        options = SizeOptions(image_size=image_size, aspect_ratio=aspect_ratio)
    return await _respond(
        "generate_image_batch",
        get_service().generate_batch(requests, provider, concurrency, options),
    )


@mcp.tool()
async def images_to_pdf(
    imagePaths: Annotated[list[str], Field(description="Image paths in page order")],
    outputPath: Annotated[str, Field(description="Output PDF path")],
) -> str:
    """Combine images into a PDF, one borderless page per image."""
    return await _respond("images_to_pdf", get_service().images_to_pdf(imagePaths, outputPath))


@mcp.tool()
async def images_to_pptx(
    imagePaths: Annotated[list[str], Field(description="Image paths in slide order")],
    outputPath: Annotated[str, Field(description="Output PPTX path")],
) -> str:
    """Combine images into a PowerPoint deck, one full-bleed slide per image."""
    return await _respond("images_to_pptx", get_service().images_to_pptx(imagePaths, outputPath))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the image generation MCP server over stdio.")
    parser.add_argument(
        "--dotenv",
        type=Path,
        default=None,
        help="Optional path to a .env file containing provider credentials.",
    )
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (default: INFO).")
    return parser.parse_args()


def main() -> None:
    global _dotenv_path
    args = parse_args()
    configure_logging(args.log_level)
    _dotenv_path = args.dotenv

    service = get_service()
    config = service.config
    logger.info(
        "Starting imagegen-bridge: chat=%s glm=%s output_dir=%s",
        config.nano_banana.chat_url if config.nano_banana else "unconfigured",
        config.glm.model if config.glm else "unconfigured",
        config.output.output_dir,
    )
    config.output.output_dir.mkdir(parents=True, exist_ok=True)
    mcp.run()


if __name__ == "__main__":
    main()
