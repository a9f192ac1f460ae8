"""
Image generation and editing over three upstream providers, with batch execution.
"""
from .config import load_config
from .resolver import extract_image, resolve_image
from .tasks.batch_runner import BatchRunner

__all__ = ["load_config", "extract_image", "resolve_image", "BatchRunner"]
