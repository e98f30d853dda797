"""
Photo candidate harvesting.

Collects every image URL in a document that matches a site's CDN/path
conventions. Patterns are ordered from most to least specific; the index of
the pattern that matched feeds the base relevance score.
"""

import re
from dataclasses import dataclass
from typing import List, Tuple, Dict

from .models import ListingSite
from .sites import SITE_PROFILES, is_site_image_url

_IMG_EXT = r'\.(?:jpg|jpeg|png|webp)'

HARVEST_PATTERNS: Dict[ListingSite, List[Tuple[str, str]]] = {
    ListingSite.FACEBOOK: [
        ('marketplace_listing_photo', r'"marketplace_listing_photo":\{"uri":"([^"]+)"'),
        ('marketplace_photo', r'"marketplace_photo":\{"uri":"([^"]+)"'),
        ('listing_photo', r'"listing_photo":\{"uri":"([^"]+)"'),
        ('photo_image', r'"photo_image":\{"uri":"([^"]+)"'),
        ('img_src_marketplace', r'src="([^"]*fbcdn[^"]*t39\.30808-6[^"]*' + _IMG_EXT + r'[^"]*)"'),
        ('json_uri_marketplace', r'"uri":"([^"]*fbcdn[^"]*t39\.30808-6[^"]*' + _IMG_EXT + r'[^"]*)"'),
        ('img_src_t45', r'src="([^"]*fbcdn[^"]*t45\.[^"]*' + _IMG_EXT + r'[^"]*)"'),
        ('json_uri_t45', r'"uri":"([^"]*fbcdn[^"]*t45\.[^"]*' + _IMG_EXT + r'[^"]*)"'),
        ('img_src', r'src="([^"]*fbcdn[^"]*' + _IMG_EXT + r'[^"]*)"'),
        ('json_uri', r'"(?:uri|url)":"([^"]*fbcdn[^"]*' + _IMG_EXT + r'[^"]*)"'),
    ],
    ListingSite.CRAIGSLIST: [
        ('gallery_anchor', r'<a[^>]+href="(https?://images\.craigslist\.org/[^"]+' + _IMG_EXT + r')"'),
        ('img_src', r'<img[^>]+src="(https?://images\.craigslist\.org/[^"]+)"'),
        ('json_url', r'"(?:url|src|image)":"(https?:\\?/\\?/images\.craigslist\.org[^"]+)"'),
    ],
    ListingSite.EBAY: [
        ('zoom_src', r'data-zoom-src="(https?://i\.ebayimg\.com/[^"]+)"'),
        ('img_src_gallery', r'<img[^>]+src="(https?://i\.ebayimg\.com/images/g/[^"]+)"'),
        ('data_src', r'data-src="(https?://i\.ebayimg\.com/[^"]+)"'),
        ('json_url', r'"(?:url|URL|image)":"(https?:\\?/\\?/i\.ebayimg\.com[^"]+)"'),
    ],
}

_COMPILED = {
    site: [(name, re.compile(pattern, re.IGNORECASE)) for name, pattern in patterns]
    for site, patterns in HARVEST_PATTERNS.items()
}


@dataclass(frozen=True)
class HarvestMatch:
    """One occurrence of an image URL in a document."""
    url: str
    position: int  # offset of the URL in the document
    pattern_index: int
    pattern_name: str
    pattern_count: int
    raw_length: int = 0  # length of the URL as written in the document


def clean_harvested_url(raw: str) -> str:
    """Undo the JSON/HTML escaping image URLs carry inside page source."""
    url = (raw.replace('\\/', '/')
              .replace('\\u002F', '/')
              .replace('\\u0026', '&')
              .replace('&amp;', '&'))
    return url.replace('\\', '')


def harvest_photo_urls(body: str, site: ListingSite) -> List[HarvestMatch]:
    """
    Find all candidate photo URLs for a site, in document order.

    A URL found by several patterns at the same offset is kept once, credited
    to the most specific pattern. The same URL at different offsets is kept
    per offset, since each occurrence has its own surrounding context.
    """
    patterns = _COMPILED.get(site, [])
    profile = SITE_PROFILES.get(site)
    if not patterns or profile is None or not body:
        return []

    best: Dict[Tuple[str, int], HarvestMatch] = {}
    for index, (name, regex) in enumerate(patterns):
        for match in regex.finditer(body):
            url = clean_harvested_url(match.group(1))
            if not is_site_image_url(url, profile):
                continue
            key = (url, match.start(1))
            if key not in best:
                best[key] = HarvestMatch(url, match.start(1), index, name, len(patterns),
                                         len(match.group(1)))

    return sorted(best.values(), key=lambda m: (m.position, m.pattern_index))


def unique_urls(matches: List[HarvestMatch]) -> List[str]:
    """Distinct URLs in first-appearance order."""
    seen = []
    for m in matches:
        if m.url not in seen:
            seen.append(m.url)
    return seen
