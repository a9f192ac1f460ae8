from __future__ import annotations


class ImageGenError(Exception):
    """Base class for failures raised while generating, editing or storing images."""


class ValidationError(ImageGenError, ValueError):
    """A job or call is missing a required field; raised before any network call."""


class TransportError(ImageGenError):
    """The provider answered with a non-2xx status or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        if body:
            message = f"{message}: {body}"
        super().__init__(message)


class NoImageFoundError(ImageGenError):
    """The provider answered but the response carries no extractable image."""

    def __init__(self, message: str | None = None, text: str = "") -> None:
        self.text = text
        if message is None:
            message = "No image URL or base64 data found in the response; the prompt may need adjusting"
            if text:
                message = f"{message}. Provider said: {text[:300]}"
        super().__init__(message)


class DownloadError(ImageGenError):
    """Fetching an image referenced by URL failed."""


class PersistenceError(ImageGenError):
    """Writing an image to its target path failed."""


class DocumentAssemblyError(ImageGenError):
    """Building a PDF or PPTX from images failed."""
