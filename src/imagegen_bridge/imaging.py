from __future__ import annotations

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
}


def detect_mime_type(data: bytes, default: str = "image/jpeg") -> str:
    """Guess an image MIME type from its leading signature bytes."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data.startswith(b"GIF8"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:2] == b"BM":
        return "image/bmp"
    return default


def extension_for(mime_type: str | None, data: bytes = b"") -> str:
    """File extension for an image, preferring the declared MIME type over sniffing."""
    if mime_type:
        ext = _EXTENSIONS.get(mime_type.lower())
        if ext:
            return ext
    return _EXTENSIONS[detect_mime_type(data, default="image/png")]
