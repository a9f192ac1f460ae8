"""
Persistence of generated images.
"""
from .store import OutputStore, prompt_slug

__all__ = ["OutputStore", "prompt_slug"]
