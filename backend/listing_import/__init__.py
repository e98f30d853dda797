"""
Marketplace listing import.

Turns a Facebook Marketplace, Craigslist or eBay listing URL into a
normalized listing record, and re-hosts its photos in owned storage.

    from backend.listing_import import extract_listing, ingest_images

    listing = extract_listing("https://austin.craigslist.org/tls/d/drill/7712345678.html")
    results = ingest_images(listing.photo_urls, item_id="item-42")
"""

from typing import List, Optional

from .errors import (
    ListingImportError, FetchError, UnsupportedDomainError, ParseError, AIServiceError,
    AIExtractionError, ImageDownloadError, StorageError, ExtractionFailedError,
)
from .extractor import ListingExtractor, extract_year
from .image_ingest import ImageIngestor, build_photo_records, clean_image_url
from .models import ImageIngestResult, ListingSite, NormalizedListing


def extract_listing(url: str, item_id: Optional[str] = None) -> NormalizedListing:
    """Extract a listing with the default configuration."""
    return ListingExtractor().extract_listing(url, item_id=item_id)


def ingest_images(photo_urls: List[str], item_id: str) -> List[ImageIngestResult]:
    """Download photos and upload them to the configured storage backend."""
    return ImageIngestor().ingest_images(photo_urls, item_id)


__all__ = [
    'extract_listing',
    'ingest_images',
    'extract_year',
    'build_photo_records',
    'clean_image_url',
    'ListingExtractor',
    'ImageIngestor',
    'ImageIngestResult',
    'ListingSite',
    'NormalizedListing',
    'ListingImportError',
    'FetchError',
    'UnsupportedDomainError',
    'ParseError',
    'AIServiceError',
    'AIExtractionError',
    'ImageDownloadError',
    'StorageError',
    'ExtractionFailedError',
]
