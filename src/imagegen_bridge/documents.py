from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from PIL import Image
from pptx import Presentation
from pptx.util import Inches

from .errors import DocumentAssemblyError

logger = logging.getLogger(__name__)

LANCZOS = Image.Resampling.LANCZOS
PDF_MAX_WIDTH = 1920
PDF_MAX_HEIGHT = 1080


def _fit_within(size: tuple[int, int], max_width: int, max_height: int) -> tuple[int, int]:
    width, height = size
    if width <= max_width and height <= max_height:
        return width, height
    scale = min(max_width / width, max_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def _check_inputs(image_paths: Sequence[str | Path]) -> list[Path]:
    if not image_paths:
        raise DocumentAssemblyError("At least one image path is required")
    paths = [Path(p) for p in image_paths]
    missing = [str(p) for p in paths if not p.is_file()]
    if missing:
        raise DocumentAssemblyError(f"Image file not found: {', '.join(missing)}")
    return paths


def images_to_pdf(
    image_paths: Sequence[str | Path],
    output_path: str | Path,
    max_width: int = PDF_MAX_WIDTH,
    max_height: int = PDF_MAX_HEIGHT,
) -> dict[str, object]:
    """
    Write one PDF page per image, each page exactly the size of its image.

    Oversized images are scaled down to fit ``max_width`` x ``max_height`` while
    keeping their aspect ratio, so pages have no margins or letterboxing.
    """
    paths = _check_inputs(image_paths)
    output = Path(output_path)
    pages: list[Image.Image] = []
    try:
        for index, path in enumerate(paths, start=1):
            logger.info("Adding page %d/%d: %s", index, len(paths), path)
            with Image.open(path) as image:
                page = image.convert("RGB")
            target = _fit_within(page.size, max_width, max_height)
            if target != page.size:
                page = page.resize(target, resample=LANCZOS)
            pages.append(page)

        output.parent.mkdir(parents=True, exist_ok=True)
        # 72 dpi makes one pixel one PDF point, so the page matches the image.
        pages[0].save(output, format="PDF", save_all=True, append_images=pages[1:], resolution=72.0)
    except OSError as exc:
        raise DocumentAssemblyError(f"Failed to build PDF {output}: {exc}") from exc
    finally:
        for page in pages:
            page.close()

    logger.info("PDF saved to %s", output)
    return {
        "success": True,
        "message": f"Converted {len(paths)} images to PDF",
        "filePath": str(output),
        "pageCount": len(paths),
    }


def _slide_size_for(aspect: float) -> tuple[float, float]:
    if aspect > 1.5:
        return 13.33, 7.5
    if aspect < 0.67:
        return 7.5, 13.33
    return 10.0, 7.5


def images_to_pptx(image_paths: Sequence[str | Path], output_path: str | Path) -> dict[str, object]:
    """
    Write one slide per image, each picture cropped to cover the whole slide.

    The slide size follows the first image: widescreen, portrait or 4:3.
    """
    paths = _check_inputs(image_paths)
    output = Path(output_path)
    try:
        sizes = []
        for path in paths:
            with Image.open(path) as image:
                sizes.append(image.size)

        first_width, first_height = sizes[0]
        slide_width, slide_height = _slide_size_for(first_width / first_height)

        presentation = Presentation()
        presentation.core_properties.author = "imagegen-bridge"
        presentation.core_properties.title = "Generated Presentation"
        presentation.slide_width = Inches(slide_width)
        presentation.slide_height = Inches(slide_height)
        blank_layout = presentation.slide_layouts[6]
        slide_aspect = slide_width / slide_height

        for index, (path, (width, height)) in enumerate(zip(paths, sizes), start=1):
            logger.info("Adding slide %d/%d: %s", index, len(paths), path)
            slide = presentation.slides.add_slide(blank_layout)
            picture = slide.shapes.add_picture(
                str(path), 0, 0, width=presentation.slide_width, height=presentation.slide_height
            )
            image_aspect = width / height
            if image_aspect > slide_aspect:
                excess = 1 - slide_aspect / image_aspect
                picture.crop_left = picture.crop_right = excess / 2
            elif image_aspect < slide_aspect:
                excess = 1 - image_aspect / slide_aspect
                picture.crop_top = picture.crop_bottom = excess / 2

        output.parent.mkdir(parents=True, exist_ok=True)
        presentation.save(str(output))
    except OSError as exc:
        raise DocumentAssemblyError(f"Failed to build PPTX {output}: {exc}") from exc

    logger.info("PPTX saved to %s", output)
    return {
        "success": True,
        "message": f"Converted {len(paths)} images to PPTX",
        "filePath": str(output),
        "slideCount": len(paths),
    }
