"""
Page Fetcher
============

Plain HTTP GET with browser-identity headers. No cookies, no JavaScript,
no retries: callers decide what a failure means.
"""

from typing import Optional, Dict

import requests

from .config import config
from .errors import FetchError
from .logger import get_strategy_logger
from .models import RawDocument
from .sites import find_image_cdn

log = get_strategy_logger('fetcher')

BROWSER_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)

DOCUMENT_ACCEPT = 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8'
IMAGE_ACCEPT = 'image/webp,image/apng,image/*,*/*;q=0.8'


def browser_headers(purpose: str = 'document', url: Optional[str] = None, referer: Optional[str] = None) -> Dict[str, str]:
    """
    Build headers that look like a desktop Chrome request.

    Args:
        purpose: "document" for listing pages, "image" for photo downloads
        url: target URL; when it is a known image CDN its referer/origin is added
        referer: explicit referer, overrides the CDN default
    """
    headers = {
        'User-Agent': BROWSER_USER_AGENT,
        'Accept-Language': 'en-US,en;q=0.9',
        'Cache-Control': 'no-cache',
        'Pragma': 'no-cache',
    }
    if purpose == 'image':
        headers.update({
            'Accept': IMAGE_ACCEPT,
            'Sec-Fetch-Dest': 'image',
            'Sec-Fetch-Mode': 'no-cors',
            'Sec-Fetch-Site': 'cross-site',
            'DNT': '1',
        })
    else:
        headers.update({
            'Accept': DOCUMENT_ACCEPT,
            'Sec-Fetch-Dest': 'document',
            'Sec-Fetch-Mode': 'navigate',
            'Sec-Fetch-Site': 'none',
            'Upgrade-Insecure-Requests': '1',
        })

    cdn = find_image_cdn(url) if url else None
    if referer:
        headers['Referer'] = referer
    elif cdn and cdn.referer:
        headers['Referer'] = cdn.referer
        if cdn.origin:
            headers['Origin'] = cdn.origin
    return headers


class Fetcher:
    """Fetches listing pages."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else config.FETCH_TIMEOUT_SECONDS

    def fetch(self, url: str) -> RawDocument:
        """
        GET a listing page.

        Raises:
            FetchError: network failure or non-2xx status
        """
        log.info(f"Fetching {url}")
        try:
            response = self.session.get(url, headers=browser_headers('document', url), timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Network error: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            raise FetchError(response.reason or "request failed", status=response.status_code, url=url)

        body = response.text
        log.debug(f"Fetched {len(body)} chars from {url} ({response.status_code})")
        return RawDocument(
            source_url=url,
            body=body,
            status_code=response.status_code,
            content_type=response.headers.get('content-type', ''),
            final_url=getattr(response, 'url', None) or url,
        )
