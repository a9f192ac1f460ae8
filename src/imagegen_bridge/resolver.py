"""
Locate the generated image inside a provider response.

Providers answer in several shapes: a single chat-completion JSON document, a
server-sent-event transcript of JSON fragments, a direct image-generation JSON
document, or plain text that merely mentions an image URL or data URL.
``parse_response`` classifies the raw text once; an ordered list of strategy
functions then inspects the classified shape, and the first strategy that yields
an image wins. Later strategies are never consulted once an image is found.
"""
from __future__ import annotations

import base64
import binascii
import dataclasses
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Sequence, Union

from .errors import NoImageFoundError
from .types import ImageCandidate, ImageSource, ResolvedImage

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:(image/[^;]+);base64,(.+)$", re.DOTALL)
TEXT_IMAGE_URL_PATTERN = re.compile(r"https?://[^\s)]+\.(?:jpg|jpeg|png|gif|webp)", re.IGNORECASE)
TEXT_DATA_URL_PATTERN = re.compile(r"data:(image/[^;]+);base64,([A-Za-z0-9+/=]+)")
STREAM_DATA_PREFIX = "data:"
STREAM_DONE_SENTINEL = "[DONE]"


# --------------------------------------------------------------------------- #
# Response shapes
# --------------------------------------------------------------------------- #
@dataclass(frozen=True, slots=True)
class JsonDocument:
    payload: Any


@dataclass(frozen=True, slots=True)
class EventStream:
    frames: tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class PlainText:
    text: str


ResponseShape = Union[JsonDocument, EventStream, PlainText]


def parse_response(text: str) -> ResponseShape:
    """Classify raw response text; never raises."""
    try:
        return JsonDocument(json.loads(text))
    except json.JSONDecodeError as exc:
        logger.debug("Response is not a JSON document (%s); trying event-stream parsing", exc)

    frames: list[Any] = []
    saw_done = False
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith(STREAM_DATA_PREFIX):
            continue
        fragment = line[len(STREAM_DATA_PREFIX):].strip()
        if fragment == STREAM_DONE_SENTINEL:
            saw_done = True
            continue
        try:
            frames.append(json.loads(fragment))
        except json.JSONDecodeError as exc:
            logger.debug("Skipping unparseable stream frame: %s", exc)

    # A data: line that never parsed (e.g. an inline data URL) is plain text.
    if frames or saw_done:
        return EventStream(tuple(frames))
    return PlainText(text)


# --------------------------------------------------------------------------- #
# Extraction state and helpers
# --------------------------------------------------------------------------- #
@dataclass(slots=True)
class ExtractionState:
    """Shared scratch space for the strategy chain."""

    shape: ResponseShape
    text_parts: List[str] = field(default_factory=list)

    def add_text(self, text: Any) -> None:
        if isinstance(text, str) and text:
            self.text_parts.append(text)

    @property
    def text(self) -> str:
        return "".join(self.text_parts)


def _decode_base64(payload: str, source: ImageSource) -> bytes:
    compact = "".join(payload.split())
    try:
        data = base64.b64decode(compact, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise NoImageFoundError(f"Response carried undecodable base64 image data ({source.value})") from exc
    if not data:
        raise NoImageFoundError(f"Response carried empty base64 image data ({source.value})")
    return data


def _candidate_from_data_url(url: Any, source: ImageSource) -> Optional[ImageCandidate]:
    if not isinstance(url, str):
        return None
    match = DATA_URL_PATTERN.match(url.strip())
    if not match:
        return None
    mime_type, payload = match.groups()
    return ImageCandidate(source=source, data=_decode_base64(payload, source), mime_type=mime_type)


def _first_choice(payload: Any) -> Optional[dict]:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    return choice if isinstance(choice, dict) else None


def _document_message(state: ExtractionState) -> Optional[dict]:
    if not isinstance(state.shape, JsonDocument):
        return None
    choice = _first_choice(state.shape.payload)
    if choice is None:
        return None
    message = choice.get("message")
    return message if isinstance(message, dict) else None


def _scan_image_list(images: Any) -> Optional[ImageCandidate]:
    if not isinstance(images, list):
        return None
    for entry in images:
        if not isinstance(entry, dict):
            continue
        image_url = entry.get("image_url")
        url = image_url.get("url") if isinstance(image_url, dict) else image_url
        candidate = _candidate_from_data_url(url, ImageSource.INLINE_BASE64)
        if candidate is not None:
            return candidate
    return None


def _scan_parts(parts: Sequence[Any], state: ExtractionState) -> Optional[ImageCandidate]:
    """Accumulate every text part; return the first inline image part."""
    found: Optional[ImageCandidate] = None
    for part in parts:
        if not isinstance(part, dict):
            continue
        kind = part.get("type")
        if kind == "text":
            state.add_text(part.get("text"))
        elif kind == "image" and found is None:
            inline = part.get("inline_data")
            if isinstance(inline, dict) and inline.get("data"):
                found = ImageCandidate(
                    source=ImageSource.INLINE_STRUCTURED,
                    data=_decode_base64(inline["data"], ImageSource.INLINE_STRUCTURED),
                    mime_type=inline.get("mime_type"),
                )
    return found


def _scan_content(content: Any, state: ExtractionState) -> Optional[ImageCandidate]:
    if isinstance(content, list):
        return _scan_parts(content, state)
    state.add_text(content)
    return None


# --------------------------------------------------------------------------- #
# Strategies
# --------------------------------------------------------------------------- #
Strategy = Callable[[ExtractionState], Optional[ImageCandidate]]


def from_message_images(state: ExtractionState) -> Optional[ImageCandidate]:
    """``choices[0].message.images`` holding data URLs."""
    message = _document_message(state)
    if message is None:
        return None
    return _scan_image_list(message.get("images"))


def from_message_parts(state: ExtractionState) -> Optional[ImageCandidate]:
    """``choices[0].message.content`` as a list of typed parts."""
    message = _document_message(state)
    if message is None or not isinstance(message.get("content"), list):
        return None
    return _scan_parts(message["content"], state)


def from_message_text(state: ExtractionState) -> Optional[ImageCandidate]:
    message = _document_message(state)
    if message is not None and isinstance(message.get("content"), str):
        state.add_text(message["content"])
    return None


def from_generation_data(state: ExtractionState) -> Optional[ImageCandidate]:
    """Direct image-generation shape: ``data[0].url`` or ``data[0].b64_json``."""
    if not isinstance(state.shape, JsonDocument) or not isinstance(state.shape.payload, dict):
        return None
    entries = state.shape.payload.get("data")
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        return None
    entry = entries[0]
    if isinstance(entry.get("url"), str) and entry["url"]:
        return ImageCandidate(source=ImageSource.REMOTE_URL, url=entry["url"])
    if isinstance(entry.get("b64_json"), str) and entry["b64_json"]:
        return ImageCandidate(
            source=ImageSource.INLINE_BASE64,
            data=_decode_base64(entry["b64_json"], ImageSource.INLINE_BASE64),
        )
    return None


def from_event_stream(state: ExtractionState) -> Optional[ImageCandidate]:
    """Walk every stream frame, accumulating text and keeping the first inline image."""
    if not isinstance(state.shape, EventStream):
        return None
    found: Optional[ImageCandidate] = None
    for frame in state.shape.frames:
        choice = _first_choice(frame)
        if choice is None:
            continue
        for key in ("delta", "message"):
            body = choice.get(key)
            if not isinstance(body, dict):
                continue
            if found is None:
                found = _scan_image_list(body.get("images"))
            candidate = _scan_content(body.get("content"), state)
            if found is None:
                found = candidate
    return found


def from_text_scan(state: ExtractionState) -> Optional[ImageCandidate]:
    """Last resort: an image URL, then a data URL, anywhere in the accumulated text."""
    text = state.shape.text if isinstance(state.shape, PlainText) else state.text
    if not text:
        return None

    url_match = TEXT_IMAGE_URL_PATTERN.search(text)
    if url_match:
        return ImageCandidate(source=ImageSource.REMOTE_URL, url=url_match.group(0))

    data_match = TEXT_DATA_URL_PATTERN.search(text)
    if data_match:
        mime_type, payload = data_match.groups()
        return ImageCandidate(
            source=ImageSource.TEXT_SCANNED,
            data=_decode_base64(payload, ImageSource.TEXT_SCANNED),
            mime_type=mime_type,
        )
    return None


STRATEGIES: tuple[Strategy, ...] = (
    from_message_images,
    from_message_parts,
    from_message_text,
    from_generation_data,
    from_event_stream,
    from_text_scan,
)


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #
def extract_image(text: str, strategies: Sequence[Strategy] = STRATEGIES) -> ImageCandidate:
    """
    Find the image in a raw provider response without performing any I/O.

    Returns a candidate carrying either decoded bytes or a URL still to be
    fetched. Raises ``NoImageFoundError`` when no strategy finds an image, which
    usually means the provider answered with explanatory text only.
    """
    state = ExtractionState(shape=parse_response(text))
    for strategy in strategies:
        candidate = strategy(state)
        if candidate is not None:
            logger.debug("Image located by %s (%s)", strategy.__name__, candidate.source.value)
            return dataclasses.replace(candidate, text=state.text)

    explanation = state.shape.text if isinstance(state.shape, PlainText) else state.text
    raise NoImageFoundError(text=explanation.strip())


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...


async def resolve_image(text: str, fetcher: Fetcher) -> ResolvedImage:
    """Extract the image from a response, downloading it when only a URL was given."""
    candidate = extract_image(text)
    if candidate.data is not None:
        data = candidate.data
    else:
        assert candidate.url is not None
        data = await fetcher.fetch(candidate.url)
    return ResolvedImage(
        data=data,
        source=candidate.source,
        mime_type=candidate.mime_type,
        url=candidate.url,
        text=candidate.text,
    )
