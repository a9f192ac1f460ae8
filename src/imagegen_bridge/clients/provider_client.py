from __future__ import annotations

import logging

import httpx

from ..errors import TransportError
from ..types import ProviderRequest, ProviderResponse

logger = logging.getLogger(__name__)

BODY_EXCERPT_CHARS = 500


class ProviderClient:
    """Sends built provider requests and returns the raw response text."""

    def __init__(self, timeout: float = 300.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._session = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._session.aclose()

    async def send(self, request: ProviderRequest) -> ProviderResponse:
        """
        POST the request body and return the provider's response.

        Raises ``TransportError`` on connection failures and on any non-2xx
        status; the error carries the status code and an excerpt of the body.
        """
        logger.debug("POST %s (model=%s)", request.endpoint, request.model)
        try:
            response = await self._session.post(
                request.endpoint,
                headers=dict(request.headers),
                json=dict(request.body),
            )
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Request to {request.provider.value} at {request.endpoint} failed: {exc}"
            ) from exc

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            excerpt = exc.response.text[:BODY_EXCERPT_CHARS]
            if exc.response.status_code == 404:
                raise TransportError(
                    f"Endpoint not found at {request.endpoint}. "
                    "Check the API base URL configured for this provider",
                    status_code=404,
                    body=excerpt,
                ) from exc
            raise TransportError(
                f"{request.provider.value} API request failed",
                status_code=exc.response.status_code,
                body=excerpt,
            ) from exc

        return ProviderResponse(
            status_code=response.status_code,
            text=response.text,
            content_type=response.headers.get("content-type", ""),
        )

    async def __aenter__(self) -> "ProviderClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()
