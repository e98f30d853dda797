"""
Base class for extraction strategies.
"""

import html
import json
import re
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any

from bs4 import BeautifulSoup

from ..models import ExtractionResult, ExtractionStrategy, RawDocument
from ..photo_harvest import HarvestMatch, harvest_photo_urls
from ..sites import SiteProfile

MAX_REASONABLE_PRICE = 10_000_000


class ExtractionContext:
    """
    Everything a strategy may look at for one extraction run.

    Harvested photo URLs are computed lazily and shared, so the AI selector,
    the clustering engine and the flat fallback all see the same candidates.
    """

    def __init__(self, document: RawDocument, profile: SiteProfile):
        self.document = document
        self.profile = profile
        self._matches: Optional[List[HarvestMatch]] = None
        self.cache: Dict[str, Any] = {}  # derived data shared between strategies

    @property
    def site(self):
        return self.profile.site

    @property
    def matches(self) -> List[HarvestMatch]:
        if self._matches is None:
            self._matches = harvest_photo_urls(self.document.body, self.profile.site)
        return self._matches


class BaseStrategy(ABC):
    """Base class for extraction strategies."""

    strategy_type: ExtractionStrategy

    @abstractmethod
    def extract(self, context: ExtractionContext) -> ExtractionResult:
        """
        Extract listing data from a fetched document.

        Returns:
            ExtractionResult; a failure result means "strategy declined"
        """

    def can_handle(self, context: ExtractionContext) -> bool:
        """Quick applicability check without doing the work."""
        return True


def unescape_json_string(value: str) -> str:
    """Decode JSON string escapes (\\u00e9, \\/, \\n) captured raw by a regex."""
    if '\\' not in value:
        return value
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value.replace('\\/', '/')


def clean_text(value: Optional[str]) -> Optional[str]:
    """Decode escapes and entities, collapse whitespace. Empty -> None."""
    if value is None:
        return None
    text = html.unescape(unescape_json_string(str(value)))
    text = re.sub(r'\s+', ' ', text).strip()
    return text or None


def strip_html(fragment: Optional[str]) -> Optional[str]:
    """Strip tags from an HTML fragment and normalize whitespace."""
    if not fragment:
        return None
    text = BeautifulSoup(fragment, 'html.parser').get_text(' ')
    return clean_text(text)


def parse_price(value) -> Optional[float]:
    """
    Parse prices like '$1,250', '1250.00', 1250 or {'amount': '1250'}.

    Returns None for non-numeric, zero, negative or absurd values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, dict):
        for key in ('amount', 'amount_with_offset', 'value', 'price', 'formatted_amount', 'text'):
            if key in value:
                parsed = parse_price(value[key])
                if parsed is not None:
                    return parsed
        return None
    if isinstance(value, (int, float)):
        price = float(value)
    else:
        text = str(value).strip()
        if text.startswith('-'):
            return None
        match = re.search(r'\d[\d,]*(?:\.\d+)?', text)
        if not match:
            return None
        try:
            price = float(match.group(0).replace(',', ''))
        except ValueError:
            return None
    if price <= 0 or price >= MAX_REASONABLE_PRICE:
        return None
    return price
