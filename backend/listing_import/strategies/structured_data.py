"""
Structured-data extraction strategy.

Reads listing data from <script type="application/ld+json"> blocks and, on
Facebook, from the application-state JSON the page embeds for its client
(__RELAY_STORE__, __additionalDataLoaded, <script type="application/json">).
Photos found here are the highest-confidence source and skip scoring.
"""

import re
from typing import Optional, List, Callable, Any

from ..models import ExtractionResult, ExtractionStrategy, ListingSite, MAX_LISTING_PHOTOS
from ..errors import ParseError
from ..json_parsing import decode_at
from ..logger import get_strategy_logger
from .base import BaseStrategy, ExtractionContext, clean_text, parse_price, unescape_json_string

log = get_strategy_logger('structured_data')

MAX_SEARCH_DEPTH = 40
MAX_SEARCH_NODES = 20_000

TITLE_KEYS = ('marketplace_listing_title', 'listing_title', 'title', 'name')
PRICE_KEYS = ('listing_price', 'marketplace_listing_price', 'price', 'formatted_price', 'offers')
IMAGE_KEYS = ('primary_listing_photo', 'listing_photos', 'photos', 'image', 'images')
LISTING_IMAGE_KEYS = ('primary_listing_photo', 'listing_photos', 'photos')
DESCRIPTION_KEYS = ('redacted_description', 'listing_description', 'description')
LOCATION_KEYS = ('location_text', 'location', 'availableAtOrFrom')

# ld+json nodes with one of these types can describe a listing
LISTING_TYPES = {'Product', 'IndividualProduct', 'Offer', 'Vehicle', 'Car', 'Motorcycle', 'Thing'}

LD_JSON_RE = re.compile(r'<script[^>]*type=["\']application/ld\+json["\'][^>]*>(.*?)</script>', re.DOTALL | re.IGNORECASE)
APP_JSON_RE = re.compile(r'<script[^>]*type=["\']application/json["\'][^>]*>(.*?)</script>', re.DOTALL | re.IGNORECASE)
APP_STATE_MARKERS = ('__RELAY_STORE__', '__additionalDataLoaded')


def search_tree(root: Any, predicate: Callable[[dict], bool],
                max_depth: int = MAX_SEARCH_DEPTH, max_nodes: int = MAX_SEARCH_NODES) -> Optional[dict]:
    """
    Depth-first, document-order search for the first dict matching predicate.

    Gives up past max_depth levels or after visiting max_nodes nodes, so a
    hostile or enormous payload cannot stall extraction.
    """
    stack = [(root, 0)]
    visited = 0
    while stack:
        node, depth = stack.pop()
        visited += 1
        if visited > max_nodes:
            log.debug(f"search_tree stopped after {max_nodes} nodes")
            return None
        if isinstance(node, dict):
            if predicate(node):
                return node
            children = list(node.values())
        elif isinstance(node, list):
            children = node
        else:
            continue
        if depth >= max_depth:
            continue
        for child in reversed(children):
            if isinstance(child, (dict, list)):
                stack.append((child, depth + 1))
    return None


def _first_present(node: dict, keys) -> Any:
    for key in keys:
        value = node.get(key)
        if value not in (None, '', [], {}):
            return value
    return None


def is_listing_shape(node: dict) -> bool:
    """A title/name string plus a price or image field."""
    node_type = node.get('@type')
    if node_type is not None:
        types = node_type if isinstance(node_type, list) else [node_type]
        if not any(t in LISTING_TYPES for t in types if isinstance(t, str)):
            return False
    title = _first_present(node, TITLE_KEYS)
    if not isinstance(title, str) or not title.strip():
        return False
    if _first_present(node, PRICE_KEYS) is not None:
        return True
    # a bare name + image is also what profile nodes look like
    if node_type is None:
        return _first_present(node, LISTING_IMAGE_KEYS) is not None
    return _first_present(node, IMAGE_KEYS) is not None


def _text_value(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, dict):
        for key in ('text', 'name', 'display_name'):
            if isinstance(value.get(key), str):
                return clean_text(value[key])
        geo = value.get('reverse_geocode') or value.get('address') or value
        if isinstance(geo, dict):
            parts = [geo.get(k) for k in ('city', 'addressLocality', 'state', 'addressRegion')]
            parts = [p for p in parts if isinstance(p, str) and p.strip()]
            if parts:
                return ', '.join(parts)
    return None


def _photo_url(value: Any) -> Optional[str]:
    if isinstance(value, str):
        url = unescape_json_string(value)
    elif isinstance(value, dict):
        image = value.get('image')
        if isinstance(image, dict) and isinstance(image.get('uri'), str):
            url = image['uri']
        else:
            url = next((value[k] for k in ('uri', 'url', 'contentUrl') if isinstance(value.get(k), str)), None)
    else:
        url = None
    if url and re.match(r'^https?://', url, re.IGNORECASE):
        return url
    return None


def _collect_photos(node: dict) -> List[str]:
    photos = []
    primary = _photo_url(node.get('primary_listing_photo'))
    if primary:
        photos.append(primary)
    for key in IMAGE_KEYS[1:]:
        value = node.get(key)
        if value is None:
            continue
        items = value if isinstance(value, list) else [value]
        for item in items:
            url = _photo_url(item)
            if url and url not in photos:
                photos.append(url)
    return photos[:MAX_LISTING_PHOTOS]


def _price_value(value: Any) -> Optional[float]:
    if isinstance(value, list):
        value = value[0] if value else None
    return parse_price(value)


def listing_fields(node: dict) -> dict:
    """Normalize a listing-shaped node into extraction fields."""
    return {
        'title': clean_text(_first_present(node, TITLE_KEYS)),
        'description': _text_value(_first_present(node, DESCRIPTION_KEYS)),
        'price': _price_value(_first_present(node, PRICE_KEYS)),
        'location': _text_value(_first_present(node, LOCATION_KEYS)),
        'photos': _collect_photos(node),
    }


def _json_blobs(body: str, site: ListingSite):
    """(position, text, start) for every candidate JSON blob, in document order."""
    blobs = [(m.start(), m.group(1), None) for m in LD_JSON_RE.finditer(body)]
    if site == ListingSite.FACEBOOK:
        blobs.extend((m.start(), m.group(1), None) for m in APP_JSON_RE.finditer(body))
        for marker in APP_STATE_MARKERS:
            index = body.find(marker)
            while index != -1:
                brace = body.find('{', index)
                if brace != -1:
                    blobs.append((index, body, brace))
                index = body.find(marker, index + len(marker))
    blobs.sort(key=lambda blob: blob[0])
    return blobs


def find_structured_listing(body: str, site: ListingSite) -> Optional[dict]:
    """
    First listing-shaped object in the page's embedded JSON.

    Returns:
        dict with title/description/price/location/photos, or None

    Raises:
        ParseError: embedded JSON blocks exist but none of them decodes
    """
    if not body:
        return None
    blobs = _json_blobs(body, site)
    decoded = 0
    for _, text, start in blobs:
        if start is None:
            text = text.strip()
            if not text:
                continue
            start = 0
        try:
            data, _ = decode_at(text, start)
        except ValueError:
            continue
        decoded += 1
        node = search_tree(data, is_listing_shape)
        if node is not None:
            return listing_fields(node)
    if blobs and not decoded:
        raise ParseError(f"{len(blobs)} embedded JSON blocks, none decodable")
    return None


class StructuredDataStrategy(BaseStrategy):
    """Extract listing data from embedded structured JSON."""

    strategy_type = ExtractionStrategy.STRUCTURED_DATA

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        try:
            listing = find_structured_listing(context.document.body, context.site)
        except ParseError as e:
            return ExtractionResult.failure(self.strategy_type, str(e))
        if listing is None:
            return ExtractionResult.failure(self.strategy_type, "No structured listing data found")
        log.info(f"Structured listing found: {listing['title']!r}, {len(listing['photos'])} photos")
        return ExtractionResult.from_fields(self.strategy_type, **listing)
