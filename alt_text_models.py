"""alt_text_models.py

Plain data records passed between the pipeline stages, plus the exceptions
the stages raise. Kept free of I/O so every stage module can import it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

ALT_TEXT_PLACEHOLDER = "Unable to generate alt-text"
TOPIC_PLACEHOLDER = "Unable to determine topic"

SOURCE_IMG = "img"
SOURCE_PICTURE = "picture"
SOURCE_CSS_BACKGROUND = "css-background"
SOURCE_DATA_BG = "data-bg"

SCORE_VISION = "vision"
SCORE_ESTIMATED = "estimated"


class HttpStatusError(Exception):
    """Raised when a fetched resource answers with status >= 400."""

    def __init__(self, status: int, url: str):
        super().__init__(f"HTTP {status} for {url}")
        self.status = status
        self.url = url


class NoUsableImageError(Exception):
    """No image candidate survived harvesting, filtering and fetching."""


class CapabilityMissingError(Exception):
    """A stage needed a capability (network, text, vision) that was not supplied."""


@dataclass
class ImageCandidate:
    url: str
    source_kind: str = SOURCE_IMG
    width: Optional[int] = None
    height: Optional[int] = None
    alt: Optional[str] = None
    area: Optional[int] = None
    size_bytes: Optional[int] = None

    def __post_init__(self):
        if self.area is None and self.width and self.height:
            self.area = self.width * self.height


@dataclass
class ImageData:
    data_uri: str
    size_bytes: int
    content_type: str = "application/octet-stream"


@dataclass
class ScoredCandidate:
    candidate: ImageCandidate
    image: ImageData
    score: float
    score_source: str = SCORE_VISION


@dataclass
class PageContext:
    alt_text: str
    topic: Optional[str] = None


@dataclass
class ImageDescription:
    alt_text: str
    description: Optional[str] = None


@dataclass
class PageResult:
    url: str
    alt_text: str
    topic: str
    resource_used: int = 0

    def context(self) -> PageContext:
        return PageContext(alt_text=self.alt_text, topic=self.topic)


@dataclass
class ImageResult:
    url: str
    image_url: str
    alt_text: str
    score: float
    score_source: str
    description: Optional[str] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    image_size_bytes: Optional[int] = None
    resource_used: int = 0


@dataclass
class FetchErrorInfo:
    kind: str
    message: str
    suggestion: str
    code: Optional[str] = None
    target: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "target": self.target,
        })


@dataclass
class ModelErrorInfo:
    kind: str
    message: str
    suggestion: str
    code: Optional[str] = None
    target: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "target": self.target,
        })


@dataclass
class ResultRecord:
    url: str
    page_alt_text: str = ALT_TEXT_PLACEHOLDER
    page_topic: str = TOPIC_PLACEHOLDER
    resource_used: Optional[int] = None
    image_url: Optional[str] = None
    image_alt_text: Optional[str] = None
    image_description: Optional[str] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    image_size_bytes: Optional[int] = None
    fetch_error: Optional[FetchErrorInfo] = None
    model_error: Optional[ModelErrorInfo] = None

    def __post_init__(self):
        # the two page fields are never empty
        if not self.page_alt_text:
            self.page_alt_text = ALT_TEXT_PLACEHOLDER
        if not self.page_topic:
            self.page_topic = TOPIC_PLACEHOLDER

    @property
    def has_image(self) -> bool:
        return self.image_url is not None

    def to_dict(self) -> Dict[str, Any]:
        """Render with camelCase keys, leaving out fields that are absent."""
        return _compact({
            "url": self.url,
            "pageAltText": self.page_alt_text,
            "pageTopic": self.page_topic,
            "resourceUsed": self.resource_used,
            "imageUrl": self.image_url,
            "imageAltText": self.image_alt_text,
            "imageDescription": self.image_description,
            "imageWidth": self.image_width,
            "imageHeight": self.image_height,
            "imageSizeBytes": self.image_size_bytes,
            "fetchError": self.fetch_error.to_dict() if self.fetch_error else None,
            "modelError": self.model_error.to_dict() if self.model_error else None,
        })


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


__all__ = [
    "ALT_TEXT_PLACEHOLDER",
    "TOPIC_PLACEHOLDER",
    "HttpStatusError",
    "NoUsableImageError",
    "CapabilityMissingError",
    "ImageCandidate",
    "ImageData",
    "ScoredCandidate",
    "PageContext",
    "ImageDescription",
    "PageResult",
    "ImageResult",
    "FetchErrorInfo",
    "ModelErrorInfo",
    "ResultRecord",
]
