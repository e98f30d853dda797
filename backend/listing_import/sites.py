"""
Marketplace site configuration and URL routing.

Each supported marketplace gets a SiteProfile describing its domains, the
image CDNs its listing photos live on, and how listing ids appear in URLs.
Site-specific regex tables live next to the strategies that use them.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple, List
from urllib.parse import urlparse

from .errors import UnsupportedDomainError
from .models import ListingSite


@dataclass(frozen=True)
class ImageCdn:
    """An image host and the headers it expects."""
    domain: str
    referer: Optional[str] = None
    origin: Optional[str] = None
    strict_headers: bool = False  # answers 403 unless referer/headers look right
    essential_params: Tuple[str, ...] = ()  # query params kept by clean_image_url()


@dataclass(frozen=True)
class SiteProfile:
    """Configuration for one marketplace."""
    site: ListingSite
    display_name: str
    domains: Tuple[str, ...]
    image_cdn_domains: Tuple[str, ...]
    listing_id_pattern: str
    ai_hints: str = ""

    @property
    def placeholder_title(self) -> str:
        return f"{self.display_name} Item"


PLACEHOLDER_DESCRIPTION = "No description available"


SITE_PROFILES = {
    ListingSite.FACEBOOK: SiteProfile(
        site=ListingSite.FACEBOOK,
        display_name="Facebook Marketplace",
        domains=("facebook.com",),
        image_cdn_domains=("fbcdn.net",),
        listing_id_pattern=r'/item/(\d+)',
        ai_hints=(
            '- Look for URLs with "t39.30808-6" format (Facebook\'s marketplace photo format)\n'
            '- Prefer URLs with quality indicators like "s960x960", "dst-jpg", "p960", "p720"\n'
            '- Avoid URLs with "profile", "avatar", "cover", "ad", "thumb" indicators'
        ),
    ),
    ListingSite.CRAIGSLIST: SiteProfile(
        site=ListingSite.CRAIGSLIST,
        display_name="Craigslist",
        domains=("craigslist.org",),
        image_cdn_domains=("images.craigslist.org",),
        listing_id_pattern=r'(\d+)\.html$',
        ai_hints=(
            '- Listing photos are served from images.craigslist.org\n'
            '- Prefer "_1200x900" or "_600x450" sizes over "_50x50c" thumbnails'
        ),
    ),
    ListingSite.EBAY: SiteProfile(
        site=ListingSite.EBAY,
        display_name="eBay",
        domains=("ebay.com",),
        image_cdn_domains=("ebayimg.com",),
        listing_id_pattern=r'/itm/(?:[^/?#]+/)?(\d+)',
        ai_hints=(
            '- Listing photos live under i.ebayimg.com/images/g/<id>/\n'
            '- Prefer large renditions such as "s-l1600" over "s-l64" or "s-l140" thumbnails\n'
            '- Avoid images from "similar items" or sponsored carousels'
        ),
    ),
}

SUPPORTED_DOMAINS: List[str] = [d for p in SITE_PROFILES.values() for d in p.domains]


IMAGE_CDNS = (
    ImageCdn(
        domain="fbcdn.net",
        referer="https://www.facebook.com/",
        origin="https://www.facebook.com",
        strict_headers=True,
        essential_params=('stp', '_nc_cat', '_nc_sid', '_nc_ohc', '_nc_ht', '_nc_gid', 'oh', 'oe'),
    ),
    ImageCdn(domain="images.craigslist.org", referer="https://www.craigslist.org/"),
    ImageCdn(domain="ebayimg.com", referer="https://www.ebay.com/"),
)


def host_matches(host: str, domain: str) -> bool:
    """True when host is the domain itself or one of its subdomains."""
    host = (host or "").lower().rstrip('.')
    domain = domain.lower()
    return host == domain or host.endswith('.' + domain)


def url_host(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def route_url(url: str) -> ListingSite:
    """
    Classify a listing URL by marketplace.

    Raises:
        UnsupportedDomainError: the host is missing or not on the allowlist
    """
    host = url_host(url)
    if host:
        for profile in SITE_PROFILES.values():
            if any(host_matches(host, d) for d in profile.domains):
                return profile.site
    raise UnsupportedDomainError(url, SUPPORTED_DOMAINS)


def get_site_profile(site: ListingSite) -> SiteProfile:
    try:
        return SITE_PROFILES[site]
    except KeyError:
        raise UnsupportedDomainError(site.value, SUPPORTED_DOMAINS)


def is_site_image_url(url: str, profile: SiteProfile) -> bool:
    """Absolute http(s) URL on one of the site's image CDNs."""
    if not isinstance(url, str) or not re.match(r'^https?://', url, re.IGNORECASE):
        return False
    host = url_host(url)
    return any(host_matches(host, d) for d in profile.image_cdn_domains)


def find_image_cdn(url: str) -> Optional[ImageCdn]:
    host = url_host(url)
    for cdn in IMAGE_CDNS:
        if host_matches(host, cdn.domain):
            return cdn
    return None


def extract_listing_id(url: str, profile: SiteProfile) -> Optional[str]:
    path = urlparse(url).path
    match = re.search(profile.listing_id_pattern, path)
    return match.group(1) if match else None
