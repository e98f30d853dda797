"""
Pattern-based text extraction strategy.

Ordered regex rules per site and field; the first match that survives
cleanup wins. Used when no structured listing block is present.
"""

import re
from dataclasses import dataclass
from typing import Optional, Dict, List

from ..models import ExtractionResult, ExtractionStrategy, ListingSite
from ..logger import get_strategy_logger
from .base import BaseStrategy, ExtractionContext, clean_text, strip_html, parse_price

log = get_strategy_logger('text_patterns')

# JSON string body, escapes included
_JSON_STR = r'"((?:[^"\\]|\\.)+)"'


@dataclass(frozen=True)
class TextRule:
    pattern: str
    html: bool = False  # capture is an HTML fragment to strip


TEXT_RULES: Dict[ListingSite, Dict[str, List[TextRule]]] = {
    ListingSite.FACEBOOK: {
        'title': [
            TextRule(r'"marketplace_listing_title":' + _JSON_STR),
            TextRule(r'"listing_title":' + _JSON_STR),
            TextRule(r'property="og:title"\s+content="([^"]+)"'),
            TextRule(r'<title[^>]*>([^<]+)</title>'),
            TextRule(r'name="title"\s+content="([^"]+)"'),
        ],
        'description': [
            TextRule(r'"marketplace_listing_description":' + _JSON_STR),
            TextRule(r'"redacted_description":\{"text":' + _JSON_STR),
            TextRule(r'"listing_description":' + _JSON_STR),
            TextRule(r'property="og:description"\s+content="([^"]+)"'),
            TextRule(r'name="description"\s+content="([^"]+)"'),
        ],
        'price': [
            TextRule(r'"listing_price":\{[^{}]*?"amount":"?([0-9.,]+)'),
            TextRule(r'"marketplace_listing_price":\{[^{}]*?"amount":"?([0-9.,]+)'),
            TextRule(r'"(?:marketplace_listing_price|listing_price)":"?([0-9.,]+)'),
            TextRule(r'"formatted_price":\{"text":"([^"]+)"'),
            TextRule(r'property="(?:product|og):price:amount"\s+content="([0-9.,]+)"'),
            TextRule(r'"\$([0-9,]+(?:\.\d{2})?)"'),
            TextRule(r'aria-label="[^"]*\$([0-9,]+)[^"]*"'),
        ],
        'location': [
            TextRule(r'"marketplace_listing_location":' + _JSON_STR),
            TextRule(r'"listing_location":' + _JSON_STR),
            TextRule(r'"location_text":\{"text":' + _JSON_STR),
            TextRule(r'"location_text":' + _JSON_STR),
        ],
    },
    ListingSite.CRAIGSLIST: {
        'title': [
            TextRule(r'<span[^>]*id="titletextonly"[^>]*>([^<]+)</span>'),
            TextRule(r'<title[^>]*>([^<]+)</title>'),
        ],
        'description': [
            TextRule(r'<section[^>]*id="postingbody"[^>]*>(.*?)</section>', html=True),
            TextRule(r'<div[^>]*class="postinginfos"[^>]*>(.*?)</div>', html=True),
        ],
        'price': [
            TextRule(r'<span class="price">[^$<]*\$([0-9,]+)'),
            TextRule(r'\$([0-9,]+)'),
        ],
        'location': [
            TextRule(r'<span class="postingtitletext">.*?<small>\s*\(?([^<)]+)\)?\s*</small>'),
            TextRule(r'<small>\s*\(?([^<)]+)\)?\s*</small>'),
        ],
    },
    ListingSite.EBAY: {
        'title': [
            TextRule(r'<h1[^>]*class="[^"]*x-item-title[^"]*"[^>]*>(.*?)</h1>', html=True),
            TextRule(r'<title[^>]*>([^<]+)</title>'),
        ],
        'description': [
            TextRule(r'<div[^>]*id="desc_div"[^>]*>(.*?)</div>', html=True),
            TextRule(r'<div[^>]*class="[^"]*desc[^"]*"[^>]*>(.*?)</div>', html=True),
        ],
        'price': [
            TextRule(r'notranslate">\s*(?:US\s*)?\$([0-9,]+\.\d{2})'),
            TextRule(r'price[^>]*>\s*(?:US\s*)?\$([0-9,]+(?:\.\d{2})?)'),
        ],
        'location': [
            TextRule(r'<span[^>]*class="[^"]*location[^"]*"[^>]*>([^<]+)</span>'),
            TextRule(r'Located in:?\s*([^<\n]+)'),
            TextRule(r'Ships from\s*([^<\n]+)'),
        ],
    },
}

TITLE_SUFFIXES = (
    r'\s*[-|]\s*Facebook\s*Marketplace\s*$',
    r'\s*\|\s*Facebook\s*$',
    r'\s*\|\s*eBay\s*$',
    r'\s*-\s*craigslist\s*$',
)

# page titles that name the site rather than the listing
GENERIC_TITLES = {'facebook', 'marketplace', 'facebook marketplace', 'ebay', 'craigslist'}


def clean_title(raw: Optional[str]) -> Optional[str]:
    title = clean_text(raw)
    if not title:
        return None
    for suffix in TITLE_SUFFIXES:
        title = re.sub(suffix, '', title, flags=re.IGNORECASE)
    title = title.strip()
    if not title or title.lower() in GENERIC_TITLES:
        return None
    return title


def _apply(rule: TextRule, body: str) -> Optional[str]:
    match = re.search(rule.pattern, body, re.IGNORECASE | re.DOTALL)
    if not match:
        return None
    captured = match.group(1)
    return strip_html(captured) if rule.html else clean_text(captured)


def extract_text_fields(body: str, site: ListingSite) -> dict:
    """
    Run a site's text rules over a document.

    Returns:
        dict with title/description/price/location, each None when not found
    """
    rules = TEXT_RULES.get(site, {})
    fields = {'title': None, 'description': None, 'price': None, 'location': None}
    if not body:
        return fields

    for field, field_rules in rules.items():
        for rule in field_rules:
            value = _apply(rule, body)
            if field == 'title':
                value = clean_title(value)
            elif field == 'price':
                value = parse_price(value)
            if value is not None:
                fields[field] = value
                break
    return fields


class TextPatternStrategy(BaseStrategy):
    """Extract text fields with per-site regular expressions."""

    strategy_type = ExtractionStrategy.TEXT_PATTERNS

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        fields = extract_text_fields(context.document.body, context.site)
        if all(value is None for value in fields.values()):
            return ExtractionResult.failure(self.strategy_type, "No text patterns matched")
        log.debug(f"Text fields found: {[k for k, v in fields.items() if v is not None]}")
        return ExtractionResult.from_fields(self.strategy_type, **fields)
