from __future__ import annotations

import logging

import httpx

from ..errors import DownloadError

logger = logging.getLogger(__name__)


class ImageFetcher:
    """Downloads images that a provider referenced by URL instead of inlining."""

    def __init__(self, timeout: float = 120.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._session = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._session.aclose()

    async def fetch(self, url: str) -> bytes:
        logger.info("Downloading image from %s", url)
        try:
            response = await self._session.get(url)
        except httpx.HTTPError as exc:
            raise DownloadError(f"Failed to download image from {url}: {exc}") from exc

        if not response.is_success:
            raise DownloadError(f"Failed to download image: HTTP {response.status_code} from {url}")
        return response.content

    async def __aenter__(self) -> "ImageFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()
