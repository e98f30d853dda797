"""
Listing Import API
==================

HTTP endpoints for URL import, photo ingestion, the item assistant, the
image proxy and files-mode photo serving. Request bodies are validated with
pydantic; library errors are mapped to status codes in one place.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

import requests
from flask import Response, jsonify, request, send_from_directory, stream_with_context
from pydantic import BaseModel, Field, ValidationError, field_validator

from backend.listing_import import (
    ListingExtractor, ImageIngestor, build_photo_records,
    UnsupportedDomainError, FetchError, ExtractionFailedError, AIServiceError,
)
from backend.listing_import.assistant import ItemAssistant
from backend.listing_import.config import config
from backend.listing_import.logger import get_strategy_logger
from backend.listing_import.proxy import ProxyRejected, cache_control_header, open_upstream

log = get_strategy_logger('api')

PHOTO_TYPES = {'image/jpeg': 'image/jpeg', 'image/jpg': 'image/jpeg', 'image/png': 'image/png', 'image/webp': 'image/webp'}
MAX_PHOTO_BYTES = 10 * 1024 * 1024


# =============================================================================
# REQUEST MODELS
# =============================================================================

def _check_http_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValueError('Invalid URL format')
    return value


class ImportUrlRequest(BaseModel):
    url: str
    item_id: Optional[str] = Field(default=None, alias='itemId')

    model_config = {'populate_by_name': True}

    @field_validator('url')
    @classmethod
    def valid_url(cls, value):
        return _check_http_url(value)


class DownloadImagesRequest(BaseModel):
    photo_urls: List[str] = Field(alias='photoUrls', min_length=1)
    item_id: str = Field(alias='itemId', min_length=1)

    model_config = {'populate_by_name': True}


class GenerateDescriptionRequest(BaseModel):
    category: str
    manufacturer: str
    model: str
    condition: int = Field(ge=1, le=10)
    details: Optional[str] = Field(default=None, alias='additionalDetails')

    model_config = {'populate_by_name': True}


class PricingRequest(BaseModel):
    category: str
    manufacturer: str
    model: str
    year: Optional[int] = None
    condition: Optional[int] = Field(default=None, ge=1, le=10)


# =============================================================================
# COLLABORATORS (patched in tests)
# =============================================================================

def get_extractor() -> ListingExtractor:
    return ListingExtractor()


def get_ingestor() -> ImageIngestor:
    return ImageIngestor()


def get_assistant() -> ItemAssistant:
    return ItemAssistant()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _validation_error(e: ValidationError):
    details = [{'field': '.'.join(str(p) for p in err['loc']), 'message': err['msg']} for err in e.errors()]
    return jsonify({'error': 'Invalid request data', 'details': details}), 400


def _error_response(e: Exception):
    """Map a library error to a JSON error response."""
    if isinstance(e, UnsupportedDomainError):
        return jsonify({'error': str(e), 'supported_domains': e.supported_domains}), 400
    if isinstance(e, FetchError):
        return jsonify({'error': str(e), 'status': e.status}), 502
    if isinstance(e, ExtractionFailedError):
        return jsonify({'error': str(e)}), 422
    log.error(f"Request failed: {type(e).__name__}: {e}")
    return jsonify({'error': str(e)}), 500


# =============================================================================
# LISTING IMPORT
# =============================================================================

def import_url():
    """POST /api/ai/import-url - Extract a listing (and optionally ingest its photos)"""
    try:
        body = ImportUrlRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        return _validation_error(e)

    try:
        extractor = get_extractor()
        if body.item_id is not None and extractor.ingestor is None:
            extractor.ingestor = get_ingestor()
        listing = extractor.extract_listing(body.url, item_id=body.item_id)
        return jsonify({
            'success': True,
            'importResult': listing.to_dict(),
            'timestamp': _now(),
        })
    except Exception as e:
        return _error_response(e)


def download_images():
    """POST /api/ai/download-images - Re-host listing photos in storage"""
    try:
        body = DownloadImagesRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        return _validation_error(e)

    try:
        results = get_ingestor().ingest_images(body.photo_urls, body.item_id)
        successful = sum(1 for r in results if r.ok)
        return jsonify({
            'success': True,
            'results': [r.to_dict() for r in results],
            'photoRecords': build_photo_records(body.item_id, results),
            'summary': {
                'total': len(results),
                'successful': successful,
                'failed': len(results) - successful,
            },
            'timestamp': _now(),
        })
    except Exception as e:
        return _error_response(e)


# =============================================================================
# ITEM ASSISTANT
# =============================================================================

def _ai_disabled():
    return jsonify({'error': 'AI features are not enabled'}), 503


def analyze_photos():
    """POST /api/ai/analyze-photos - Identify an item from uploaded photos (multipart field 'photos')"""
    if not config.is_ai_enabled():
        return _ai_disabled()

    files = request.files.getlist('photos')
    if not files:
        return jsonify({'error': 'At least one photo is required'}), 400
    photos = []
    for f in files:
        mime_type = PHOTO_TYPES.get(f.mimetype)
        if mime_type is None:
            return jsonify({'error': f'Invalid file type: {f.mimetype}. Only JPEG, PNG, and WebP are allowed.'}), 400
        data = f.read()
        if len(data) > MAX_PHOTO_BYTES:
            return jsonify({'error': 'File size too large. Maximum size is 10MB per file.'}), 400
        photos.append((data, mime_type))

    try:
        log.info(f"Analyzing {len(photos)} photos")
        analysis = get_assistant().analyze_photos(photos)
        return jsonify({'success': True, 'analysis': analysis.model_dump(), 'timestamp': _now()})
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except AIServiceError as e:
        return jsonify({'error': str(e)}), 502
    except Exception as e:
        return _error_response(e)


def generate_description():
    """POST /api/ai/generate-description - Write a listing description"""
    if not config.is_ai_enabled():
        return _ai_disabled()
    try:
        body = GenerateDescriptionRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        return _validation_error(e)

    try:
        description = get_assistant().generate_description(
            body.category, body.manufacturer, body.model, body.condition, body.details)
        return jsonify({'success': True, 'description': description, 'timestamp': _now()})
    except AIServiceError as e:
        return jsonify({'error': str(e)}), 502
    except Exception as e:
        return _error_response(e)


def pricing_suggestions():
    """POST /api/ai/pricing-suggestions - Suggest a listing price"""
    if not config.is_ai_enabled():
        return _ai_disabled()
    try:
        body = PricingRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        return _validation_error(e)

    try:
        pricing = get_assistant().pricing_suggestions(
            body.category, body.manufacturer, body.model, body.year, body.condition)
        return jsonify({'success': True, 'pricing': pricing.model_dump(by_alias=True), 'timestamp': _now()})
    except AIServiceError as e:
        return jsonify({'error': str(e)}), 502
    except Exception as e:
        return _error_response(e)


# =============================================================================
# STORED PHOTOS
# =============================================================================

def serve_upload(key):
    """GET /uploads/<key> - Serve a photo stored in files mode"""
    root = Path(config.STORAGE_DIR).resolve()
    path = (root / key).resolve()
    if root not in path.parents or not path.is_file():
        return jsonify({'error': 'Image not found'}), 404
    return send_from_directory(str(root), key)


def uploads_path() -> str:
    """URL path prefix of STORAGE_BASE_URL, where files-mode photos are served."""
    return urlparse(config.STORAGE_BASE_URL).path.rstrip('/') or '/uploads'


# =============================================================================
# IMAGE PROXY
# =============================================================================

def proxy_image():
    """GET /proxy?url=<encoded> - Stream an allowlisted marketplace image"""
    try:
        upstream, content_type = open_upstream(request.args.get('url'))
    except ProxyRejected as e:
        return jsonify({'error': str(e)}), e.status
    except requests.RequestException as e:
        return jsonify({'error': f'Failed to fetch image: {e}'}), 502

    if not upstream.ok:
        log.warning(f"Proxy upstream returned {upstream.status_code} for {request.args.get('url')}")
        upstream.close()
        return jsonify({'error': 'Failed to fetch image'}), upstream.status_code

    def generate():
        try:
            for chunk in upstream.iter_content(chunk_size=8192):
                if chunk:
                    yield chunk
        finally:
            upstream.close()

    return Response(
        stream_with_context(generate()),
        status=200,
        content_type=content_type,
        headers={'Cache-Control': cache_control_header()},
    )


def register_routes(app):
    """Register all routes with Flask app"""

    # Listing import
    app.add_url_rule('/api/ai/import-url', 'import_url', import_url, methods=['POST'])
    app.add_url_rule('/api/ai/download-images', 'download_images', download_images, methods=['POST'])

    # Item assistant
    app.add_url_rule('/api/ai/analyze-photos', 'analyze_photos', analyze_photos, methods=['POST'])
    app.add_url_rule('/api/ai/generate-description', 'generate_description', generate_description, methods=['POST'])
    app.add_url_rule('/api/ai/pricing-suggestions', 'pricing_suggestions', pricing_suggestions, methods=['POST'])

    # Image proxy
    app.add_url_rule('/proxy', 'proxy_image', proxy_image, methods=['GET'])
    app.add_url_rule('/api/proxy/image', 'proxy_image_api', proxy_image, methods=['GET'])

    # Files-mode storage
    app.add_url_rule(f'{uploads_path()}/<path:key>', 'serve_upload', serve_upload, methods=['GET'])

    log.info("Listing import API endpoints registered (8 endpoints)")
