from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image
from pptx import Presentation

from imagegen_bridge.documents import _fit_within, images_to_pdf, images_to_pptx
from imagegen_bridge.errors import DocumentAssemblyError


def _make_image(path: Path, size: tuple[int, int], color: str) -> Path:
    Image.new("RGB", size, color).save(path)
    return path


@pytest.fixture
def images(tmp_path: Path) -> list[Path]:
    return [
        _make_image(tmp_path / "wide.png", (320, 180), "red"),
        _make_image(tmp_path / "tall.jpg", (180, 320), "blue"),
    ]


def test_images_to_pdf(images: list[Path], tmp_path: Path) -> None:
    output = tmp_path / "docs" / "deck.pdf"
    result = images_to_pdf(images, output)

    assert result["success"] is True
    assert result["pageCount"] == 2
    assert result["filePath"] == str(output)
    assert output.read_bytes().startswith(b"%PDF")


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        ((800, 600), (800, 600)),
        ((3840, 2160), (1920, 1080)),
        ((1000, 4000), (270, 1080)),
    ],
)
def test_pages_fit_within_bounds(size: tuple[int, int], expected: tuple[int, int]) -> None:
    assert _fit_within(size, 1920, 1080) == expected


def test_images_to_pptx(images: list[Path], tmp_path: Path) -> None:
    output = tmp_path / "deck.pptx"
    result = images_to_pptx(images, output)

    assert result["slideCount"] == 2
    presentation = Presentation(str(output))
    assert len(presentation.slides) == 2
    # First image is 16:9, so the deck is widescreen.
    assert presentation.slide_width > presentation.slide_height


def test_missing_image(tmp_path: Path) -> None:
    with pytest.raises(DocumentAssemblyError, match="not found"):
        images_to_pdf([tmp_path / "nope.png"], tmp_path / "out.pdf")


def test_empty_input(tmp_path: Path) -> None:
    with pytest.raises(DocumentAssemblyError):
        images_to_pptx([], tmp_path / "out.pptx")
