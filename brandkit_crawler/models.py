"""Data models used throughout the crawler pipeline."""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

FontUsage = Literal["heading", "body", "other"]
ProgressStatus = Literal["running", "completed", "failed"]
JobStatus = Literal["pending", "running", "completed", "failed"]

DEFAULT_BLUR_SCORE = 50


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return None
    return number or None


def _first_source(sources: Any, src: Any) -> Optional[str]:
    """First usable image source; inline data URIs are lazy-load placeholders."""
    candidates = list(sources) if isinstance(sources, (list, tuple)) else []
    candidates.append(src)
    for value in candidates:
        if isinstance(value, str) and value.strip() and not value.strip().startswith("data:"):
            return value.strip()
    return None


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class ColorInfo:
    """A quantized color and its share of the sampled pixels."""

    hex: str
    rgb: Tuple[int, int, int]
    percentage: int

    def to_dict(self) -> Dict[str, Any]:
        r, g, b = self.rgb
        return {"hex": self.hex, "rgb": {"r": r, "g": g, "b": b}, "percentage": self.percentage}


@dataclass
class FontInfo:
    """A font family observed in computed styles."""

    family: str
    weights: List[str] = field(default_factory=list)
    usage: FontUsage = "other"
    count: int = 0

    def observe(self, weight: Optional[str], usage: FontUsage) -> None:
        """Record one more element using this family.

        Usage only ever upgrades: other -> body -> heading.
        """
        self.count += 1
        if weight and weight not in self.weights:
            self.weights.append(weight)
        if usage == "heading" or (usage == "body" and self.usage == "other"):
            self.usage = usage


@dataclass
class BrandKit:
    """Aggregated colors, fonts and CSS data for one crawled site."""

    colors: List[ColorInfo] = field(default_factory=list)
    fonts: List[FontInfo] = field(default_factory=list)
    css_colors: List[str] = field(default_factory=list)
    css_variables: Dict[str, str] = field(default_factory=dict)
    screenshot_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "colors": [color.to_dict() for color in self.colors],
            "fonts": [asdict(font) for font in self.fonts],
            "css_colors": list(self.css_colors),
            "css_variables": dict(self.css_variables),
            "screenshot_url": self.screenshot_url,
        }


@dataclass
class RawImage:
    """One image reference as reported by the in-page extraction script."""

    src: str
    alt: Optional[str] = None
    title: Optional[str] = None
    aria_label: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    figcaption: Optional[str] = None
    nearby_text: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["RawImage"]:
        if not isinstance(payload, Mapping):
            return None
        src = _first_source(payload.get("sources"), payload.get("src"))
        if src is None:
            return None
        return cls(
            src=src,
            alt=_optional_text(payload.get("alt")),
            title=_optional_text(payload.get("title")),
            aria_label=_optional_text(payload.get("ariaLabel")),
            width=_optional_int(payload.get("width")),
            height=_optional_int(payload.get("height")),
            figcaption=_optional_text(payload.get("figcaption")),
            nearby_text=_optional_text(payload.get("nearbyText")),
        )

    @property
    def is_tiny(self) -> bool:
        return bool(self.width and self.height and self.width < 50 and self.height < 50)


@dataclass
class RawElementStyle:
    """Computed style values sampled from a single DOM element."""

    tag: str
    font_family: Optional[str] = None
    font_weight: Optional[str] = None
    color: Optional[str] = None
    background_color: Optional[str] = None
    border_color: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["RawElementStyle"]:
        if not isinstance(payload, Mapping):
            return None
        tag = payload.get("tag")
        if not isinstance(tag, str) or not tag:
            return None
        return cls(
            tag=tag.upper(),
            font_family=_optional_text(payload.get("fontFamily")),
            font_weight=_optional_text(payload.get("fontWeight")),
            color=_optional_text(payload.get("color")),
            background_color=_optional_text(payload.get("backgroundColor")),
            border_color=_optional_text(payload.get("borderColor")),
        )


@dataclass
class RawBrandData:
    """Style information gathered from one page for brand kit aggregation."""

    root_variables: Dict[str, str] = field(default_factory=dict)
    elements: List[RawElementStyle] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> "RawBrandData":
        if not isinstance(payload, Mapping):
            return cls()
        variables: Dict[str, str] = {}
        raw_variables = payload.get("rootVariables")
        if isinstance(raw_variables, Mapping):
            for name, value in raw_variables.items():
                text = _optional_text(value)
                if isinstance(name, str) and name.startswith("--") and text:
                    variables[name] = text
        elements: List[RawElementStyle] = []
        for item in payload.get("elements") or []:
            element = RawElementStyle.from_payload(item)
            if element is not None:
                elements.append(element)
        return cls(root_variables=variables, elements=elements)


@dataclass
class ImageCandidate:
    """Image reference discovered on a page, before quality analysis."""

    original_url: str
    page_url: str
    alt_text: Optional[str] = None
    title: Optional[str] = None
    aria_label: Optional[str] = None
    figcaption: Optional[str] = None
    nearby_text: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    labels: List[str] = field(default_factory=list)

    @property
    def has_description(self) -> bool:
        return bool(self.alt_text or self.title or self.figcaption)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AnalyzedImage(ImageCandidate):
    """Image candidate enriched with quality analysis and storage details."""

    is_blurry: bool = False
    blur_score: int = DEFAULT_BLUR_SCORE
    dominant_colors: List[ColorInfo] = field(default_factory=list)
    stored_url: Optional[str] = None
    storage_key: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def from_candidate(cls, candidate: ImageCandidate, **fields: Any) -> "AnalyzedImage":
        values = {name: getattr(candidate, name) for name in ImageCandidate.__dataclass_fields__}
        values["labels"] = list(candidate.labels)
        values.update(fields)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["has_description"] = self.has_description
        data["dominant_colors"] = [color.to_dict() for color in self.dominant_colors]
        return data


@dataclass(frozen=True)
class CrawlProgress:
    """Immutable liveness snapshot for a running crawl."""

    total_pages: int
    crawled_pages: int
    total_images: int
    current_page: str
    status: ProgressStatus = "running"
    error: Optional[str] = None

    def evolve(self, **changes: Any) -> "CrawlProgress":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CrawlResult:
    """Outcome of a single crawl run."""

    images: List[ImageCandidate] = field(default_factory=list)
    pages_visited: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    brand_kit: BrandKit = field(default_factory=BrandKit)
    status: ProgressStatus = "running"
    error: Optional[str] = None


@dataclass
class CrawlJob:
    """Persistent record describing one crawl request."""

    id: int
    target_url: str
    max_pages: int
    status: JobStatus = "pending"
    total_pages: int = 0
    crawled_pages: int = 0
    total_images: int = 0
    error_message: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    brand_kit: Optional[BrandKit] = None
    created_at: dt.datetime = field(default_factory=utcnow)
    updated_at: dt.datetime = field(default_factory=utcnow)
    completed_at: Optional[dt.datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "target_url": self.target_url,
            "max_pages": self.max_pages,
            "status": self.status,
            "total_pages": self.total_pages,
            "crawled_pages": self.crawled_pages,
            "total_images": self.total_images,
            "error_message": self.error_message,
            "errors": list(self.errors),
            "brand_kit": self.brand_kit.to_dict() if self.brand_kit else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
