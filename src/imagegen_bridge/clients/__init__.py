"""
Provider request construction and HTTP adapters.
"""
from .fetcher import ImageFetcher
from .provider_client import ProviderClient
from .request_builder import build_request

__all__ = ["ImageFetcher", "ProviderClient", "build_request"]
