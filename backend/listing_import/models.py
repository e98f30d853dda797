"""
Data models for listing extraction and image ingestion.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple
from enum import Enum


MAX_LISTING_PHOTOS = 6


class ListingSite(Enum):
    """Supported marketplaces."""
    FACEBOOK = "facebook"
    CRAIGSLIST = "craigslist"
    EBAY = "ebay"
    UNSUPPORTED = "unsupported"


class ExtractionStrategy(Enum):
    """Available extraction strategies."""
    STRUCTURED_DATA = "structured_data"
    AI_PHOTOS = "ai_photos"
    TEXT_PATTERNS = "text_patterns"
    GALLERY_CLUSTER = "gallery_cluster"
    SCORED_FALLBACK = "scored_fallback"


@dataclass(frozen=True)
class RawDocument:
    """A fetched listing page."""
    source_url: str
    body: str
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status_code: int = 200
    content_type: str = ""
    final_url: Optional[str] = None


@dataclass(frozen=True)
class PhotoCandidate:
    """A scored image URL harvested from a document."""
    url: str
    raw_score: int
    group_key: str
    source_strategy: str


@dataclass(frozen=True)
class PhotoGroup:
    """Candidates sharing a group key (one inferred gallery)."""
    key: str
    candidates: Tuple[PhotoCandidate, ...]

    def __post_init__(self):
        if not self.candidates:
            raise ValueError("PhotoGroup requires at least one candidate")

    @property
    def size(self) -> int:
        return len(self.candidates)

    @property
    def average_score(self) -> float:
        return sum(c.raw_score for c in self.candidates) / len(self.candidates)


@dataclass
class NormalizedListing:
    """Normalized listing record, the pipeline's output."""
    title: str
    description: str
    price: Optional[float] = None
    location: Optional[str] = None
    photo_urls: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Ordered by confidence: keep first occurrence, cap the gallery
        unique = []
        for url in self.photo_urls:
            if url not in unique:
                unique.append(url)
        self.photo_urls = unique[:MAX_LISTING_PHOTOS]

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "location": self.location,
            "photos": list(self.photo_urls),
            "metadata": dict(self.metadata),
        }


@dataclass
class ImageIngestResult:
    """Outcome of ingesting one photo. Exactly one of storage_url/error is set."""
    original_url: str
    storage_url: Optional[str] = None
    error: Optional[str] = None
    file_name: Optional[str] = None

    def __post_init__(self):
        if (self.storage_url is None) == (self.error is None):
            raise ValueError("exactly one of storage_url and error must be set")

    @property
    def ok(self) -> bool:
        return self.storage_url is not None

    def to_dict(self) -> dict:
        return {
            "original_url": self.original_url,
            "storage_url": self.storage_url,
            "file_name": self.file_name,
            "error": self.error,
        }


@dataclass
class ExtractionResult:
    """Result of one strategy attempt."""
    success: bool
    strategy: ExtractionStrategy
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    location: Optional[str] = None
    photos: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failure(cls, strategy: ExtractionStrategy, error: str) -> 'ExtractionResult':
        return cls(success=False, strategy=strategy, error=error)

    @classmethod
    def from_fields(
        cls,
        strategy: ExtractionStrategy,
        title: Optional[str] = None,
        description: Optional[str] = None,
        price: Optional[float] = None,
        location: Optional[str] = None,
        photos: Optional[List[str]] = None,
    ) -> 'ExtractionResult':
        return cls(
            success=True,
            strategy=strategy,
            title=title,
            description=description,
            price=price,
            location=location,
            photos=list(photos or []),
        )
