"""
Photo relevance scoring and gallery clustering.

Pure functions over (document, harvested matches): the same input always
yields the same ranked output.

    candidates = score_candidates(document, matches, profile)
    photos = select_gallery(candidates, profile) or select_flat_fallback(candidates, profile)

Weights are a per-site starting calibration kept in ScoringProfile.
"""

import re
from dataclasses import dataclass
from typing import List, Tuple, Optional, Dict

from .logger import get_strategy_logger
from .models import (
    ExtractionStrategy, ListingSite, PhotoCandidate, PhotoGroup, RawDocument,
    MAX_LISTING_PHOTOS,
)
from .photo_harvest import HarvestMatch
from .sites import url_host

log = get_strategy_logger('scoring')


@dataclass(frozen=True)
class ScoringProfile:
    """Per-site scoring weights."""
    site: ListingSite
    # (substring, bonus); only the first marker found counts
    path_markers: Tuple[Tuple[str, int], ...]
    # (regex, bonus); every matching entry counts
    resolution_bonuses: Tuple[Tuple[str, int], ...]
    tiny_tokens: Tuple[str, ...]
    # markers that must co-occur with a path marker in flat fallback
    quality_markers: Tuple[str, ...]
    # URL substrings that disqualify a URL from flat fallback
    excluded_tokens: Tuple[str, ...]
    # regex stripping the size suffix before grouping
    size_suffix: Optional[str]
    # path segment (negative index) that identifies a gallery
    group_segment: int
    # regex stripping the size variant from a query-less URL; size_suffix when unset
    variant_suffix: Optional[str] = None
    tiny_penalty: int = -100
    context_window: int = 500
    positive_context: Tuple[Tuple[str, int], ...] = (
        (r'photo|image', 15),
        (r'gallery|carousel', 25),
        (r'listing|marketplace', 20),
        (r'media-viewer|photo-viewer', 30),
    )
    negative_context: Tuple[Tuple[str, int], ...] = (
        (r'profile|avatar', -100),
        (r'cover|header', -80),
        (r'\bads?\b|advert|sponsor', -90),
        (r'recommend|suggested', -70),
        (r'\bfriends?\b|\buser\b', -60),
        (r'comment|reaction', -50),
        (r'badge|icon', -40),
    )
    cluster_min: int = 3
    cluster_max: int = 8
    cluster_bonus: int = 50
    max_gallery: int = MAX_LISTING_PHOTOS
    fallback_min_score: int = 50
    fallback_max: int = 5


SCORING_PROFILES: Dict[ListingSite, ScoringProfile] = {
    ListingSite.FACEBOOK: ScoringProfile(
        site=ListingSite.FACEBOOK,
        path_markers=(('t39.30808-6', 100), ('t45.', 60)),
        resolution_bonuses=(
            (r's960x960', 50),
            (r'dst-jpg', 40),
            (r'p960|p720', 30),
            (r'1080|960', 20),
        ),
        tiny_tokens=('32x32', '50x50', '64x64'),
        quality_markers=('s960x960', 'dst-jpg', 'p960', 'p720', '1080'),
        excluded_tokens=('profile', 'avatar', 'cover', 'header', 'badge', 'icon', '/safe_image', 'external.'),
        size_suffix=r'_(s|p|dst-jpg).*',
        group_segment=-2,
    ),
    ListingSite.CRAIGSLIST: ScoringProfile(
        site=ListingSite.CRAIGSLIST,
        path_markers=(('images.craigslist.org/', 100),),
        resolution_bonuses=(
            (r'_1200x900', 50),
            (r'_600x450', 40),
            (r'_300x300', 10),
        ),
        tiny_tokens=('50x50',),
        quality_markers=('_1200x900', '_600x450'),
        excluded_tokens=('icon', 'logo'),
        size_suffix=r'_\d+x\d+c?\.\w+$',
        group_segment=-2,
    ),
    ListingSite.EBAY: ScoringProfile(
        site=ListingSite.EBAY,
        path_markers=(('/images/g/', 100),),
        resolution_bonuses=(
            (r's-l1600', 50),
            (r's-l1200|s-l960', 40),
            (r's-l800|s-l640|s-l500', 20),
        ),
        tiny_tokens=('s-l64.', 's-l140.'),
        quality_markers=('s-l1600', 's-l1200', 's-l960', 's-l800'),
        excluded_tokens=('icon', 'logo', '/thumbs/'),
        size_suffix=None,
        group_segment=-3,
        variant_suffix=r'/s-l\d+\.\w+$',
    ),
}


def get_scoring_profile(site: ListingSite) -> ScoringProfile:
    return SCORING_PROFILES[site]


def is_tiny(url: str, profile: ScoringProfile) -> bool:
    """Thumbnail-sized URL; never a listing photo."""
    return any(token in url for token in profile.tiny_tokens)


def url_score(url: str, profile: ScoringProfile) -> int:
    """Score from the URL's own shape: path marker, resolution and tiny tokens."""
    score = 0
    for marker, bonus in profile.path_markers:
        if marker in url:
            score += bonus
            break
    for pattern, bonus in profile.resolution_bonuses:
        if re.search(pattern, url):
            score += bonus
    if is_tiny(url, profile):
        score += profile.tiny_penalty
    return score


def context_score(context: str, profile: ScoringProfile) -> int:
    """Keyword weights for the text surrounding a match (lowercased)."""
    score = 0
    for pattern, weight in profile.positive_context + profile.negative_context:
        if re.search(pattern, context):
            score += weight
    return score


def derive_group_key(url: str, profile: ScoringProfile) -> str:
    """
    Gallery key: query dropped, size suffix stripped, identifying path segment.
    Falls back to the host when the segment is empty.
    """
    base = url.split('?', 1)[0].split('#', 1)[0]
    if profile.size_suffix:
        base = re.sub(profile.size_suffix, '', base)
    segments = base.split('/')
    try:
        segment = segments[profile.group_segment]
    except IndexError:
        segment = ''
    return segment or url_host(url)


def photo_identity(url: str, profile: ScoringProfile) -> str:
    """The URL with its size variant removed; equal for every size of one photo."""
    base = url.split('?', 1)[0].split('#', 1)[0]
    pattern = profile.variant_suffix or profile.size_suffix
    return re.sub(pattern, '', base) if pattern else base


def mask_urls(body: str, matches: List[HarvestMatch]) -> str:
    """Blank out harvested URLs so their own text is not read as context."""
    spans = sorted({(m.position, m.position + m.raw_length) for m in matches})
    parts = []
    cursor = 0
    for start, end in spans:
        start = max(start, cursor)
        if end <= start:
            continue
        parts.append(body[cursor:start])
        parts.append(' ' * (end - start))
        cursor = end
    parts.append(body[cursor:])
    return ''.join(parts)


def score_candidates(document: RawDocument, matches: List[HarvestMatch],
                     profile: ScoringProfile) -> List[PhotoCandidate]:
    """Score every harvested match. Output order follows the input order."""
    body = mask_urls(document.body, matches)
    candidates = []
    for m in matches:
        start = max(0, m.position - profile.context_window)
        context = body[start:m.position + profile.context_window].lower()
        score = (m.pattern_count - m.pattern_index) + url_score(m.url, profile) + context_score(context, profile)
        candidates.append(PhotoCandidate(
            url=m.url,
            raw_score=score,
            group_key=derive_group_key(m.url, profile),
            source_strategy=m.pattern_name,
        ))
    return candidates


def cluster_candidates(candidates: List[PhotoCandidate]) -> List[PhotoGroup]:
    """Group by group_key, groups in first-appearance order."""
    grouped: Dict[str, List[PhotoCandidate]] = {}
    for c in candidates:
        grouped.setdefault(c.group_key, []).append(c)
    return [PhotoGroup(key, tuple(items)) for key, items in grouped.items()]


def group_score(group: PhotoGroup, profile: ScoringProfile) -> float:
    bonus = profile.cluster_bonus if profile.cluster_min <= group.size <= profile.cluster_max else 0
    return group.average_score + bonus


def _ranked_unique(candidates, limit: int, profile: ScoringProfile) -> List[str]:
    """Best first; one URL per photo, the best-scored size of it."""
    ordered = sorted(candidates, key=lambda c: -c.raw_score)
    urls = []
    seen = set()
    for c in ordered:
        identity = photo_identity(c.url, profile)
        if identity not in seen:
            seen.add(identity)
            urls.append(c.url)
    return urls[:limit]


def select_gallery(candidates: List[PhotoCandidate], profile: ScoringProfile) -> List[str]:
    """
    Pick the best-scoring group and return its positive candidates, best first.

    Thumbnail-sized URLs are dropped before grouping. Ties between groups
    keep the earliest group.
    """
    best: Optional[PhotoGroup] = None
    best_score = float('-inf')
    for group in cluster_candidates([c for c in candidates if not is_tiny(c.url, profile)]):
        score = group_score(group, profile)
        log.debug(f"Group {group.key}: {group.size} images, avg {group.average_score:.1f}, final {score:.1f}")
        if score > best_score:
            best, best_score = group, score

    if best is None:
        return []
    positive = [c for c in best.candidates if c.raw_score > 0]
    photos = _ranked_unique(positive, profile.max_gallery, profile)
    log.debug(f"Selected {len(photos)} images from group {best.key}")
    return photos


def qualifies_for_fallback(url: str, profile: ScoringProfile) -> bool:
    """Listing path marker and quality marker on the same URL, and nothing excluded."""
    lowered = url.lower()
    if any(token in lowered for token in profile.excluded_tokens) or is_tiny(url, profile):
        return False
    has_path = any(marker in url for marker, _ in profile.path_markers)
    has_quality = any(marker in url for marker in profile.quality_markers)
    return has_path and has_quality


def select_flat_fallback(candidates: List[PhotoCandidate], profile: ScoringProfile) -> List[str]:
    """Strict flat list: qualifying URLs scoring at least the minimum, best first."""
    best_by_url: Dict[str, int] = {}
    for c in candidates:
        if not qualifies_for_fallback(c.url, profile):
            continue
        if c.url not in best_by_url or c.raw_score > best_by_url[c.url]:
            best_by_url[c.url] = c.raw_score

    passed = [(url, score) for url, score in best_by_url.items() if score >= profile.fallback_min_score]
    passed.sort(key=lambda item: -item[1])
    log.debug(f"Fallback filtering: {len(passed)} passed (from {len(best_by_url)} candidates)")
    photos = []
    seen = set()
    for url, _ in passed:
        identity = photo_identity(url, profile)
        if identity not in seen:
            seen.add(identity)
            photos.append(url)
    return photos[:profile.fallback_max]


def rank_listing_photos(document: RawDocument, matches: List[HarvestMatch],
                        profile: ScoringProfile) -> Tuple[List[str], ExtractionStrategy]:
    """Gallery clustering first, flat fallback when clustering comes back empty."""
    candidates = score_candidates(document, matches, profile)
    gallery = select_gallery(candidates, profile)
    if gallery:
        return gallery, ExtractionStrategy.GALLERY_CLUSTER
    return select_flat_fallback(candidates, profile), ExtractionStrategy.SCORED_FALLBACK
