"""
Listing Extractor - main extraction pipeline.

Routes the URL, fetches the page once, then runs two strategy chains over it:

    photos: structured data -> AI selection (when enabled) -> gallery clustering -> flat fallback
    text:   structured data -> text patterns -> placeholders

Usage:
    extractor = ListingExtractor()
    listing = extractor.extract_listing("https://www.facebook.com/marketplace/item/123/")
"""

import re
from datetime import datetime, timezone
from typing import List, Optional

from .config import config
from .errors import ExtractionFailedError
from .fetcher import Fetcher
from .image_ingest import ImageIngestor
from .logger import get_strategy_logger
from .models import NormalizedListing
from .sites import PLACEHOLDER_DESCRIPTION, extract_listing_id, get_site_profile, route_url
from .strategies import (
    AIPhotoSelector, AiPhotoStrategy, BaseStrategy, ExtractionContext, GalleryClusterStrategy,
    ScoredFallbackStrategy, StrategyChain, StructuredDataStrategy, TextPatternStrategy,
)

log = get_strategy_logger('extractor')

YEAR_RE = re.compile(r'\b(?:19|20)\d{2}\b')


def extract_year(title: Optional[str], description: Optional[str], today: Optional[datetime] = None) -> Optional[int]:
    """
    Best-effort model year from listing text.

    Years must fall in 1900..next year. With several candidates, the first one
    in 1980..this year wins; None when none does.
    """
    current_year = (today or datetime.now(timezone.utc)).year
    text = f"{title or ''} {description or ''}"
    years = []
    for token in YEAR_RE.findall(text):
        year = int(token)
        if 1900 <= year <= current_year + 1 and year not in years:
            years.append(year)

    if len(years) == 1:
        return years[0]
    for year in years:
        if 1980 <= year <= current_year:
            return year
    return None


class ListingExtractor:
    """
    Extraction orchestrator.

    Args:
        fetcher: page fetcher
        ai_selector: model-backed photo selector; built when AI is enabled and omitted
        ingestor: when set, extract_listing(url, item_id) also re-hosts the photos
        use_ai: override the ENABLE_AI_FEATURES switch
    """

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        ai_selector: Optional[AIPhotoSelector] = None,
        ingestor: Optional[ImageIngestor] = None,
        use_ai: Optional[bool] = None,
    ):
        self.fetcher = fetcher or Fetcher()
        self.ingestor = ingestor

        if use_ai is None:
            use_ai = ai_selector is not None or config.is_ai_enabled()
        if use_ai and ai_selector is None:
            ai_selector = AIPhotoSelector()
        self.ai_selector = ai_selector if use_ai else None

        structured = StructuredDataStrategy()
        # Order = priority
        self.photo_strategies: List[BaseStrategy] = [structured]
        if self.ai_selector is not None:
            self.photo_strategies.append(AiPhotoStrategy(self.ai_selector))
        self.photo_strategies += [GalleryClusterStrategy(), ScoredFallbackStrategy()]
        self.text_strategies: List[BaseStrategy] = [structured, TextPatternStrategy()]

    def extract_listing(self, url: str, item_id: Optional[str] = None) -> NormalizedListing:
        """
        Extract a normalized listing from a marketplace URL.

        Raises:
            UnsupportedDomainError: before any network access
            FetchError: the listing page could not be fetched
            ExtractionFailedError: no text and no photos from any strategy
        """
        site = route_url(url)
        profile = get_site_profile(site)
        log.info(f"Extracting {profile.display_name} listing: {url}")

        document = self.fetcher.fetch(url)
        chain = StrategyChain(ExtractionContext(document, profile))

        photos, photo_strategy = [], None
        hit = chain.first(self.photo_strategies, lambda result: bool(result.photos))
        if hit is not None:
            photos, photo_strategy = hit[1].photos, hit[0].strategy_type.value

        title, title_source = chain.first_value(self.text_strategies, 'title')
        description, description_source = chain.first_value(self.text_strategies, 'description')
        price, _ = chain.first_value(self.text_strategies, 'price')
        location, _ = chain.first_value(self.text_strategies, 'location')
        text_source = title_source or description_source

        if not photos and title is None and description is None and price is None:
            log.warning(f"All strategies exhausted for {url}: {[s.value for s in chain.attempted]}")
            raise ExtractionFailedError(url)

        title = title or profile.placeholder_title
        description = description or PLACEHOLDER_DESCRIPTION

        metadata = {
            'source': site.value,
            'listing_id': extract_listing_id(url, profile),
            'extracted_at': document.fetched_at.isoformat(),
            'extracted_year': extract_year(title, description),
            'extraction_strategy': photo_strategy,
            'text_strategy': text_source.value if text_source else None,
        }
        listing = NormalizedListing(
            title=title,
            description=description,
            price=price,
            location=location,
            photo_urls=photos,
            metadata=metadata,
        )
        log.info(f"Extracted: {listing.title!r}, price={listing.price}, {len(listing.photo_urls)} photos "
                 f"(photos via {photo_strategy}, text via {metadata['text_strategy']})")

        if item_id is not None:
            listing.metadata['item_id'] = item_id
            if self.ingestor is not None and listing.photo_urls:
                results = self.ingestor.ingest_images(listing.photo_urls, item_id)
                listing.metadata['image_ingest'] = [r.to_dict() for r in results]
        return listing
