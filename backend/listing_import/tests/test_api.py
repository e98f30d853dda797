#!/usr/bin/env python3
"""
API Tests
=========

Flask test client against create_app(), with the extractor, ingestor,
assistant and upstream image session replaced by fakes.

Run:
    python -m pytest backend/listing_import/tests/test_api.py -v
"""

import io
import tempfile
import unittest
from datetime import datetime, timezone
from unittest import mock
from urllib.parse import urlparse

import requests

from backend.api import routes
from backend.app import create_app
from backend.listing_import.errors import FetchError
from backend.listing_import.extractor import ListingExtractor
from backend.listing_import.image_ingest import ImageIngestor
from backend.listing_import.assistant import ItemAssistant
from backend.listing_import.llm import LLMHandler, LLMInterface
from backend.listing_import.models import RawDocument
from backend.listing_import.proxy import cache_control_header, is_allowed_proxy_url, normalize_proxy_url, ProxyRejected
from backend.listing_import.rate_limiter import MinIntervalRateLimiter
from backend.listing_import.storage import LocalFileStorage

FB_URL = "https://www.facebook.com/marketplace/item/1234567890/"
FB_IMAGE = "https://scontent.xx.fbcdn.net/v/t39.30808-6/1_n.jpg?stp=dst-jpg"

LISTING_PAGE = (
    '<script type="application/json">{"target":{"marketplace_listing_title":"Oak Rocking Chair",'
    '"listing_price":{"amount":"85"},'
    '"listing_photos":[{"image":{"uri":"https://scontent.xx.fbcdn.net/v/t39.30808-6/1_n.jpg"}}]}}</script>'
)


class FakeFetcher:
    def __init__(self, body="", error=None):
        self.body = body
        self.error = error
        self.calls = []

    def fetch(self, url):
        self.calls.append(url)
        if self.error:
            raise self.error
        return RawDocument(source_url=url, body=self.body, fetched_at=datetime(2024, 5, 1, tzinfo=timezone.utc))


class FakeResponse:
    def __init__(self, status_code=200, content=b"\xff\xd8image", content_type="image/jpeg", reason="OK"):
        self.status_code = status_code
        self.content = content
        self.reason = reason
        self.headers = {"content-type": content_type}
        self.closed = False

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, responses):
        self.responses = dict(responses)
        self.calls = []

    def get(self, url, headers=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "headers": headers, "kwargs": kwargs})
        return self.responses.get(url) or FakeResponse(404, b"", reason="Not Found")


class MemoryStorage:
    def __init__(self):
        self.objects = {}

    def upload(self, key, data, content_type):
        self.objects[key] = data
        return f"https://cdn.example.com/{key}"

    def delete(self, key):
        self.objects.pop(key, None)


class ScriptedLLM(LLMInterface):
    def __init__(self, reply):
        self.reply = reply
        self.images = []

    def generate(self, prompt, max_tokens=1000, temperature=0.0, images=None):
        self.images.append(images)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def fake_assistant(reply, llm=None):
    return ItemAssistant(LLMHandler(client=llm or ScriptedLLM(reply), rate_limiter=MinIntervalRateLimiter(0),
                                    max_attempts=1))


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.app = create_app()
        self.app.testing = True
        self.client = self.app.test_client()


# =============================================================================
# IMPORT URL
# =============================================================================

class TestImportUrl(ApiTestCase):

    def post(self, body, fetcher):
        extractor = ListingExtractor(fetcher=fetcher, use_ai=False)
        with mock.patch.object(routes, 'get_extractor', return_value=extractor):
            return self.client.post('/api/ai/import-url', json=body)

    def test_success(self):
        response = self.post({'url': FB_URL}, FakeFetcher(LISTING_PAGE))
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertTrue(data['success'])
        self.assertEqual(data['importResult']['title'], "Oak Rocking Chair")
        self.assertEqual(data['importResult']['price'], 85.0)
        self.assertEqual(data['importResult']['photos'], ["https://scontent.xx.fbcdn.net/v/t39.30808-6/1_n.jpg"])
        self.assertIn('timestamp', data)

    def test_missing_url(self):
        response = self.post({}, FakeFetcher())
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], 'Invalid request data')

    def test_malformed_url(self):
        self.assertEqual(self.post({'url': 'not-a-url'}, FakeFetcher()).status_code, 400)

    def test_unsupported_domain(self):
        fetcher = FakeFetcher()
        response = self.post({'url': 'https://example.com/item/1'}, fetcher)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['supported_domains'], ['facebook.com', 'craigslist.org', 'ebay.com'])
        self.assertEqual(fetcher.calls, [])

    def test_fetch_failure(self):
        response = self.post({'url': FB_URL}, FakeFetcher(error=FetchError("Not Found", status=404, url=FB_URL)))
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.get_json()['status'], 404)

    def test_nothing_extracted(self):
        response = self.post({'url': FB_URL}, FakeFetcher("<html></html>"))
        self.assertEqual(response.status_code, 422)

    def test_item_id_ingests_photos(self):
        storage = MemoryStorage()
        session = FakeSession({"https://scontent.xx.fbcdn.net/v/t39.30808-6/1_n.jpg": FakeResponse()})
        ingestor = ImageIngestor(storage=storage, session=session, sleep=lambda s: None)
        with mock.patch.object(routes, 'get_ingestor', return_value=ingestor):
            response = self.post({'url': FB_URL, 'itemId': 'item-7'}, FakeFetcher(LISTING_PAGE))

        metadata = response.get_json()['importResult']['metadata']
        self.assertEqual(metadata['item_id'], 'item-7')
        self.assertEqual(len(metadata['image_ingest']), 1)
        self.assertEqual(len(storage.objects), 1)


# =============================================================================
# DOWNLOAD IMAGES
# =============================================================================

class TestDownloadImages(ApiTestCase):

    def test_summary_and_records(self):
        ok_url = "https://i.ebayimg.com/images/g/A/s-l1600.jpg"
        missing_url = "https://i.ebayimg.com/images/g/B/s-l1600.jpg"
        ingestor = ImageIngestor(storage=MemoryStorage(), session=FakeSession({ok_url: FakeResponse()}),
                                 sleep=lambda s: None)
        with mock.patch.object(routes, 'get_ingestor', return_value=ingestor):
            response = self.client.post('/api/ai/download-images',
                                        json={'photoUrls': [missing_url, ok_url], 'itemId': 'item-3'})

        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['summary'], {'total': 2, 'successful': 1, 'failed': 1})
        self.assertEqual(data['results'][0]['original_url'], missing_url)
        self.assertIsNotNone(data['results'][0]['error'])
        self.assertEqual(len(data['photoRecords']), 1)
        self.assertTrue(data['photoRecords'][0]['is_primary'])
        self.assertEqual(data['photoRecords'][0]['order_index'], 0)

    def test_requires_photos_and_item(self):
        for body in ({'itemId': 'item-3'}, {'photoUrls': [], 'itemId': 'item-3'}, {'photoUrls': ['https://x/1.jpg']}):
            with self.subTest(body=body):
                self.assertEqual(self.client.post('/api/ai/download-images', json=body).status_code, 400)


# =============================================================================
# ITEM ASSISTANT
# =============================================================================

class TestAssistantEndpoints(ApiTestCase):

    DESCRIPTION_BODY = {'category': 'Power Tools', 'manufacturer': 'DeWalt', 'model': 'DCD771', 'condition': 8}

    def test_disabled(self):
        with mock.patch.object(routes.config, 'is_ai_enabled', return_value=False):
            response = self.client.post('/api/ai/generate-description', json=self.DESCRIPTION_BODY)
        self.assertEqual(response.status_code, 503)

    def test_generate_description(self):
        with mock.patch.object(routes.config, 'is_ai_enabled', return_value=True), \
                mock.patch.object(routes, 'get_assistant', return_value=fake_assistant("  Solid drill.  ")):
            response = self.client.post('/api/ai/generate-description', json=self.DESCRIPTION_BODY)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['description'], "Solid drill.")

    def test_condition_out_of_range(self):
        body = dict(self.DESCRIPTION_BODY, condition=11)
        with mock.patch.object(routes.config, 'is_ai_enabled', return_value=True):
            self.assertEqual(self.client.post('/api/ai/generate-description', json=body).status_code, 400)

    def test_pricing(self):
        reply = '{"suggestedPrice": 120, "priceRange": {"min": 100, "max": 140}, "marketInsights": ["Busy season"]}'
        with mock.patch.object(routes.config, 'is_ai_enabled', return_value=True), \
                mock.patch.object(routes, 'get_assistant', return_value=fake_assistant(reply)):
            response = self.client.post('/api/ai/pricing-suggestions',
                                        json={'category': 'Power Tools', 'manufacturer': 'DeWalt', 'model': 'DCD771'})
        pricing = response.get_json()['pricing']
        self.assertEqual(pricing['suggestedPrice'], 120)
        self.assertEqual(pricing['priceRange'], {'min': 100, 'max': 140})

    def test_model_failure(self):
        with mock.patch.object(routes.config, 'is_ai_enabled', return_value=True), \
                mock.patch.object(routes, 'get_assistant', return_value=fake_assistant(RuntimeError("down"))):
            response = self.client.post('/api/ai/pricing-suggestions',
                                        json={'category': 'Power Tools', 'manufacturer': 'DeWalt', 'model': 'DCD771'})
        self.assertEqual(response.status_code, 502)


class TestAnalyzePhotos(ApiTestCase):

    REPLY = ('{"category": "Power Tools", "manufacturer": "DeWalt", "model": "DCD771", "condition": 12, '
             '"description": "Cordless drill", "confidence": 90}')

    def photo(self, data=b"\xff\xd8img", name="front.jpg", mime="image/jpeg"):
        return (io.BytesIO(data), name, mime)

    def post(self, photos, assistant=None, enabled=True):
        with mock.patch.object(routes.config, 'is_ai_enabled', return_value=enabled), \
                mock.patch.object(routes, 'get_assistant', return_value=assistant or fake_assistant(self.REPLY)):
            return self.client.post('/api/ai/analyze-photos', data={'photos': photos},
                                    content_type='multipart/form-data')

    def test_disabled(self):
        self.assertEqual(self.post([self.photo()], enabled=False).status_code, 503)

    def test_analysis(self):
        llm = ScriptedLLM(self.REPLY)
        response = self.post([self.photo(), self.photo(b"\x89PNG", "side.png", "image/png")],
                             assistant=fake_assistant(None, llm=llm))

        self.assertEqual(response.status_code, 200)
        analysis = response.get_json()['analysis']
        self.assertEqual(analysis['category'], "Power Tools")
        self.assertEqual(analysis['condition'], 10)
        self.assertEqual(llm.images, [[(b"\xff\xd8img", "image/jpeg"), (b"\x89PNG", "image/png")]])

    def test_jpg_alias_normalized(self):
        llm = ScriptedLLM(self.REPLY)
        self.post([self.photo(mime="image/jpg")], assistant=fake_assistant(None, llm=llm))
        self.assertEqual(llm.images[0][0][1], "image/jpeg")

    def test_no_photos(self):
        self.assertEqual(self.post([]).status_code, 400)

    def test_invalid_type(self):
        response = self.post([self.photo(b"notes", "notes.txt", "text/plain")])
        self.assertEqual(response.status_code, 400)
        self.assertIn("Invalid file type: text/plain", response.get_json()['error'])

    def test_model_failure(self):
        response = self.post([self.photo()], assistant=fake_assistant(RuntimeError("down")))
        self.assertEqual(response.status_code, 502)


# =============================================================================
# STORED PHOTOS
# =============================================================================

class TestStoredPhotos(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        patcher = mock.patch.object(routes.config, 'STORAGE_DIR', self.tmp.name)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.storage = LocalFileStorage(root=self.tmp.name, base_url=routes.config.STORAGE_BASE_URL)

    def test_uploaded_photo_is_served(self):
        url = self.storage.upload("item-42_0_ab12cd34.jpg", b"\xff\xd8stored", "image/jpeg")
        response = self.client.get(urlparse(url).path)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_data(), b"\xff\xd8stored")
        self.assertEqual(response.mimetype, "image/jpeg")
        response.close()

    def test_missing_photo(self):
        response = self.client.get(f"{routes.uploads_path()}/item-42_9_missing.jpg")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error'], 'Image not found')

    def test_key_outside_storage_dir(self):
        self.assertEqual(self.client.get(f"{routes.uploads_path()}/../secret.jpg").status_code, 404)


# =============================================================================
# IMAGE PROXY
# =============================================================================

class TestProxyEndpoint(ApiTestCase):

    def get(self, path, url, session):
        with mock.patch('backend.listing_import.proxy.requests.Session', return_value=session):
            response = self.client.get(path, query_string={'url': url} if url is not None else None)
            body = response.get_data()
        return response, body

    def test_streams_allowed_image(self):
        upstream = FakeResponse(content=b"\xff\xd8" + b"a" * 20000)
        session = FakeSession({FB_IMAGE: upstream})
        response, body = self.get('/proxy', FB_IMAGE, session)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(body, upstream.content)
        self.assertEqual(response.headers['Content-Type'], 'image/jpeg')
        self.assertEqual(response.headers['Cache-Control'], cache_control_header())
        self.assertTrue(session.calls[0]['kwargs']['stream'])
        self.assertTrue(upstream.closed)

    def test_api_alias(self):
        session = FakeSession({FB_IMAGE: FakeResponse()})
        response, _ = self.get('/api/proxy/image', FB_IMAGE, session)
        self.assertEqual(response.status_code, 200)

    def test_missing_url(self):
        response, _ = self.get('/proxy', None, FakeSession({}))
        self.assertEqual(response.status_code, 400)

    def test_disallowed_domain(self):
        session = FakeSession({})
        response, _ = self.get('/proxy', "https://example.com/a.jpg", session)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(session.calls, [])

    def test_upstream_error_status(self):
        response, _ = self.get('/proxy', FB_IMAGE, FakeSession({}))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error'], 'Failed to fetch image')

    def test_upstream_network_error(self):
        session = mock.MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")
        response, _ = self.get('/proxy', FB_IMAGE, session)
        self.assertEqual(response.status_code, 502)


class TestProxyHelpers(unittest.TestCase):

    def test_allowlist(self):
        self.assertTrue(is_allowed_proxy_url("https://scontent-lax3-1.xx.fbcdn.net/v/1.jpg"))
        self.assertTrue(is_allowed_proxy_url("https://images.craigslist.org/00a0a_x_600x450.jpg"))
        self.assertTrue(is_allowed_proxy_url("https://i.ebayimg.com/images/g/A/s-l1600.jpg"))
        self.assertFalse(is_allowed_proxy_url("https://fbcdn.net.evil.io/1.jpg"))

    def test_normalize_decodes_and_unescapes(self):
        self.assertEqual(normalize_proxy_url("https%3A%2F%2Fi.ebayimg.com%2Fimages%2Fg%2FA%2Fs-l1600.jpg"),
                         "https://i.ebayimg.com/images/g/A/s-l1600.jpg")
        self.assertEqual(normalize_proxy_url("https:\\/\\/i.ebayimg.com\\/a.jpg?x=1&amp;y=2"),
                         "https://i.ebayimg.com/a.jpg?x=1&y=2")

    def test_normalize_rejects(self):
        for raw in (None, "", "ftp://i.ebayimg.com/a.jpg", "javascript:alert(1)"):
            with self.subTest(raw=raw):
                with self.assertRaises(ProxyRejected) as ctx:
                    normalize_proxy_url(raw)
                self.assertEqual(ctx.exception.status, 400)


if __name__ == '__main__':
    unittest.main()
