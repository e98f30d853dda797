"""
Image proxy helpers.

Lets the UI show marketplace photos whose CDNs refuse cross-site requests:
the URL is checked against an allowlist and fetched with browser headers.
"""

import re
from typing import Optional, Tuple
from urllib.parse import unquote

import requests

from .config import config
from .fetcher import browser_headers
from .photo_harvest import clean_harvested_url
from .sites import host_matches, url_host

PROXY_ALLOWED_DOMAINS = ('fbcdn.net', 'facebook.com', 'craigslist.org', 'ebayimg.com')


class ProxyRejected(Exception):
    """Request rejected before any upstream fetch."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


def normalize_proxy_url(raw: Optional[str]) -> str:
    """
    Undo double encoding and JSON escaping on a proxied URL.

    Raises:
        ProxyRejected: missing or not an absolute http(s) URL (400)
    """
    if not raw:
        raise ProxyRejected('URL parameter is required', 400)
    url = clean_harvested_url(unquote(raw))
    if not re.match(r'^https?://[^/\s]+', url, re.IGNORECASE) or not url_host(url):
        raise ProxyRejected('Invalid URL format', 400)
    return url


def is_allowed_proxy_url(url: str) -> bool:
    host = url_host(url)
    return bool(host) and any(host_matches(host, domain) for domain in PROXY_ALLOWED_DOMAINS)


def open_upstream(raw_url: Optional[str], session: Optional[requests.Session] = None,
                  timeout: Optional[float] = None) -> Tuple[requests.Response, str]:
    """
    Validate a proxy request and open the upstream response for streaming.

    Returns:
        (response, content type); the caller streams and closes the response

    Raises:
        ProxyRejected: 400 for a bad URL, 403 for a host outside the allowlist
    """
    url = normalize_proxy_url(raw_url)
    if not is_allowed_proxy_url(url):
        raise ProxyRejected('Domain not allowed', 403)

    session = session or requests.Session()
    response = session.get(
        url,
        headers=browser_headers('image', url),
        timeout=timeout if timeout is not None else config.IMAGE_TIMEOUT_SECONDS,
        stream=True,
    )
    return response, response.headers.get('content-type', 'image/jpeg')


def cache_control_header() -> str:
    return f'public, max-age={config.PROXY_CACHE_SECONDS}'
