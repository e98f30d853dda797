#!/usr/bin/env python3
"""
Fetcher Tests
=============

Browser headers, status handling and network failures, against a fake session.
"""

import unittest

import requests

from backend.listing_import.errors import FetchError
from backend.listing_import.fetcher import Fetcher, browser_headers


class FakeResponse:
    def __init__(self, status_code=200, text="", reason="OK", headers=None, url=None):
        self.status_code = status_code
        self.text = text
        self.reason = reason
        self.headers = headers or {}
        self.url = url


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, headers=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


class TestBrowserHeaders(unittest.TestCase):

    def test_document_headers(self):
        headers = browser_headers('document', "https://www.facebook.com/marketplace/item/1/")
        self.assertIn("Chrome/", headers["User-Agent"])
        self.assertEqual(headers["Sec-Fetch-Dest"], "document")
        self.assertEqual(headers["Sec-Fetch-Mode"], "navigate")
        self.assertNotIn("Referer", headers)

    def test_strict_cdn_gets_referer_and_origin(self):
        headers = browser_headers('image', "https://scontent.xx.fbcdn.net/v/t39.30808-6/1_n.jpg")
        self.assertEqual(headers["Sec-Fetch-Dest"], "image")
        self.assertEqual(headers["Referer"], "https://www.facebook.com/")
        self.assertEqual(headers["Origin"], "https://www.facebook.com")

    def test_other_cdn_gets_referer_only(self):
        headers = browser_headers('image', "https://i.ebayimg.com/images/g/A/s-l1600.jpg")
        self.assertEqual(headers["Referer"], "https://www.ebay.com/")
        self.assertNotIn("Origin", headers)

    def test_explicit_referer_wins(self):
        headers = browser_headers('image', "https://scontent.xx.fbcdn.net/1.jpg", referer="https://example.org/")
        self.assertEqual(headers["Referer"], "https://example.org/")


class TestFetcher(unittest.TestCase):

    def test_fetch_returns_document(self):
        session = FakeSession(FakeResponse(200, "<html>ok</html>", headers={"content-type": "text/html"},
                                           url="https://www.ebay.com/itm/1?redirected=1"))
        doc = Fetcher(session=session, timeout=5).fetch("https://www.ebay.com/itm/1")

        self.assertEqual(doc.body, "<html>ok</html>")
        self.assertEqual(doc.source_url, "https://www.ebay.com/itm/1")
        self.assertEqual(doc.final_url, "https://www.ebay.com/itm/1?redirected=1")
        self.assertEqual(doc.content_type, "text/html")
        self.assertEqual(session.calls[0]["timeout"], 5)
        self.assertEqual(session.calls[0]["headers"]["Sec-Fetch-Dest"], "document")

    def test_non_2xx_raises_fetch_error(self):
        session = FakeSession(FakeResponse(404, "", reason="Not Found"))
        with self.assertRaises(FetchError) as ctx:
            Fetcher(session=session).fetch("https://www.ebay.com/itm/1")
        self.assertEqual(ctx.exception.status, 404)
        self.assertEqual(str(ctx.exception), "HTTP 404: Not Found")

    def test_network_error_raises_fetch_error(self):
        session = FakeSession(error=requests.ConnectionError("connection refused"))
        with self.assertRaises(FetchError) as ctx:
            Fetcher(session=session).fetch("https://www.ebay.com/itm/1")
        self.assertIsNone(ctx.exception.status)
        self.assertIn("connection refused", str(ctx.exception))

    def test_no_retry(self):
        session = FakeSession(FakeResponse(503, "", reason="Service Unavailable"))
        with self.assertRaises(FetchError):
            Fetcher(session=session).fetch("https://www.ebay.com/itm/1")
        self.assertEqual(len(session.calls), 1)


if __name__ == '__main__':
    unittest.main()
