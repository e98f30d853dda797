"""
Image Ingestion
===============

Downloads selected listing photos and re-hosts them in owned storage.

- sequential, with a fixed pause between downloads
- one retry with a cleaned URL when a strict CDN answers 403
- a failed photo is recorded and the batch continues
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlparse, parse_qsl, urlencode

import requests

from .config import config
from .errors import ImageDownloadError, ListingImportError
from .fetcher import BROWSER_USER_AGENT, browser_headers
from .logger import get_strategy_logger
from .models import ImageIngestResult
from .storage import ObjectStorage, get_storage
from .sites import find_image_cdn

log = get_strategy_logger('image_ingest')

CONTENT_TYPE_EXTENSIONS = {
    'image/jpeg': 'jpg',
    'image/jpg': 'jpg',
    'image/png': 'png',
    'image/webp': 'webp',
    'image/gif': 'gif',
}


def content_type_to_extension(content_type: Optional[str]) -> str:
    """File extension for an image content type; jpg when unknown."""
    mime = (content_type or '').split(';', 1)[0].strip().lower()
    return CONTENT_TYPE_EXTENSIONS.get(mime, 'jpg')


def clean_image_url(url: str) -> str:
    """
    Drop tracking parameters from a strict CDN URL, keeping the ones it needs
    to authorize the request. Other URLs are returned unchanged.
    """
    cdn = find_image_cdn(url)
    if cdn is None or not cdn.essential_params:
        return url
    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    kept = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=False) if k in cdn.essential_params]
    return parsed._replace(query=urlencode(kept), fragment='').geturl()


def build_photo_records(item_id: str, results: List[ImageIngestResult],
                        created_at: Optional[datetime] = None) -> List[dict]:
    """
    Rows for the item photo table: successful uploads only, first one primary,
    order_index consecutive from 0.
    """
    created_at = created_at or datetime.now(timezone.utc)
    stored = [r for r in results if r.ok]
    return [
        {
            'item_id': item_id,
            'url': result.storage_url,
            'is_primary': index == 0,
            'order_index': index,
            'created_at': created_at.isoformat(),
        }
        for index, result in enumerate(stored)
    ]


class ImageIngestor:
    """
    Downloads photos and uploads them to ObjectStorage.

    Args:
        storage: destination (backend from STORAGE_MODE when omitted)
        session: requests session used for downloads
        delay: seconds to pause between downloads
        sleep: injectable for tests
    """

    def __init__(
        self,
        storage: Optional[ObjectStorage] = None,
        session: Optional[requests.Session] = None,
        delay: Optional[float] = None,
        timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.storage = storage or get_storage()
        self.session = session or requests.Session()
        self.delay = delay if delay is not None else config.IMAGE_DOWNLOAD_DELAY_SECONDS
        self.timeout = timeout if timeout is not None else config.IMAGE_TIMEOUT_SECONDS
        self._sleep = sleep

    def ingest_images(self, photo_urls: List[str], item_id: str) -> List[ImageIngestResult]:
        """Ingest every URL in order; one result per input URL."""
        log.info(f"Starting download of {len(photo_urls)} images for item {item_id}")
        results = []
        for index, url in enumerate(photo_urls):
            results.append(self.ingest_one(url, item_id, index))
            if index < len(photo_urls) - 1:
                self._sleep(self.delay)

        successful = sum(1 for r in results if r.ok)
        log.info(f"Image download complete: {successful} successful, {len(results) - successful} failed")
        return results

    def ingest_one(self, url: str, item_id: str, index: int) -> ImageIngestResult:
        try:
            data, content_type = self.download(url)
            extension = content_type_to_extension(content_type)
            file_name = f"{item_id}_{index + 1}_{uuid.uuid4().hex}.{extension}"
            storage_url = self.storage.upload(file_name, data, content_type or 'image/jpeg')
        except (ListingImportError, requests.RequestException) as e:
            log.warning(f"Failed to ingest image {index + 1} ({url}): {e}")
            return ImageIngestResult(original_url=url, error=str(e) or type(e).__name__)

        log.debug(f"Image {index + 1} stored at {storage_url}")
        return ImageIngestResult(original_url=url, storage_url=storage_url, file_name=file_name)

    def download(self, url: str) -> Tuple[bytes, str]:
        """
        GET one image.

        Raises:
            ImageDownloadError: non-2xx (after the strict-CDN retry) or empty body
        """
        if not url or not url.lower().startswith(('http://', 'https://')):
            raise ImageDownloadError("Invalid image URL", url=url)

        response = self.session.get(url, headers=browser_headers('image', url), timeout=self.timeout)

        cdn = find_image_cdn(url)
        if response.status_code == 403 and cdn is not None and cdn.strict_headers:
            retry_url = clean_image_url(url)
            log.info(f"Image blocked (403), retrying with cleaned URL: {retry_url}")
            response = self.session.get(retry_url, headers={
                'User-Agent': BROWSER_USER_AGENT,
                'Accept': 'image/*,*/*;q=0.8',
                'Referer': cdn.referer,
            }, timeout=self.timeout)

        if not 200 <= response.status_code < 300:
            raise ImageDownloadError(
                f"HTTP {response.status_code}: {response.reason or 'download failed'}",
                url=url, status=response.status_code,
            )

        data = response.content
        if not data:
            raise ImageDownloadError("Empty image data received", url=url)
        return data, response.headers.get('content-type', 'image/jpeg')
