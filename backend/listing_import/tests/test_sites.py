#!/usr/bin/env python3
"""
Site Routing Tests
==================

Host classification, listing ids and image CDN lookup.

Run:
    python -m pytest backend/listing_import/tests/test_sites.py
"""

import unittest

from backend.listing_import.errors import UnsupportedDomainError
from backend.listing_import.models import ListingSite
from backend.listing_import.sites import (
    SITE_PROFILES, extract_listing_id, find_image_cdn, host_matches, is_site_image_url, route_url,
)


class TestRouteUrl(unittest.TestCase):

    def test_supported_hosts(self):
        self.assertEqual(route_url("https://www.facebook.com/marketplace/item/123/"), ListingSite.FACEBOOK)
        self.assertEqual(route_url("https://m.facebook.com/marketplace/item/123/"), ListingSite.FACEBOOK)
        self.assertEqual(route_url("https://austin.craigslist.org/tls/d/drill/7712345678.html"), ListingSite.CRAIGSLIST)
        self.assertEqual(route_url("https://www.ebay.com/itm/2345678901"), ListingSite.EBAY)

    def test_host_is_case_insensitive(self):
        self.assertEqual(route_url("https://WWW.FaceBook.COM/marketplace/item/1/"), ListingSite.FACEBOOK)

    def test_lookalike_hosts_rejected(self):
        for url in ("https://notfacebook.com/item/1",
                    "https://facebook.com.evil.io/item/1",
                    "https://ebay.co.uk/itm/1"):
            with self.subTest(url=url):
                with self.assertRaises(UnsupportedDomainError):
                    route_url(url)

    def test_missing_host_rejected(self):
        with self.assertRaises(UnsupportedDomainError):
            route_url("not a url")

    def test_error_lists_supported_domains(self):
        with self.assertRaises(UnsupportedDomainError) as ctx:
            route_url("https://example.com/listing/1")
        self.assertEqual(ctx.exception.supported_domains, ["facebook.com", "craigslist.org", "ebay.com"])
        self.assertIn("example.com", str(ctx.exception))


class TestHelpers(unittest.TestCase):

    def test_host_matches(self):
        self.assertTrue(host_matches("facebook.com", "facebook.com"))
        self.assertTrue(host_matches("www.facebook.com.", "facebook.com"))
        self.assertFalse(host_matches("myfacebook.com", "facebook.com"))

    def test_listing_ids(self):
        fb = SITE_PROFILES[ListingSite.FACEBOOK]
        cl = SITE_PROFILES[ListingSite.CRAIGSLIST]
        ebay = SITE_PROFILES[ListingSite.EBAY]
        self.assertEqual(extract_listing_id("https://www.facebook.com/marketplace/item/1234567890/?ref=search", fb), "1234567890")
        self.assertEqual(extract_listing_id("https://austin.craigslist.org/tls/d/austin-drill/7712345678.html", cl), "7712345678")
        self.assertEqual(extract_listing_id("https://www.ebay.com/itm/nintendo-switch-oled/2345678901", ebay), "2345678901")
        self.assertEqual(extract_listing_id("https://www.ebay.com/itm/2345678901?hash=abc", ebay), "2345678901")
        self.assertIsNone(extract_listing_id("https://www.facebook.com/marketplace/", fb))

    def test_site_image_urls(self):
        fb = SITE_PROFILES[ListingSite.FACEBOOK]
        self.assertTrue(is_site_image_url("https://scontent.xx.fbcdn.net/v/t39.30808-6/1_n.jpg", fb))
        self.assertFalse(is_site_image_url("https://evil.example.com/fbcdn.net/1.jpg", fb))
        self.assertFalse(is_site_image_url("//scontent.xx.fbcdn.net/v/1.jpg", fb))
        self.assertFalse(is_site_image_url(None, fb))

    def test_image_cdn_lookup(self):
        cdn = find_image_cdn("https://scontent-lax3-1.xx.fbcdn.net/v/t39.30808-6/1_n.jpg")
        self.assertTrue(cdn.strict_headers)
        self.assertEqual(cdn.referer, "https://www.facebook.com/")
        self.assertEqual(find_image_cdn("https://i.ebayimg.com/images/g/A/s-l1600.jpg").referer, "https://www.ebay.com/")
        self.assertIsNone(find_image_cdn("https://example.com/a.jpg"))

    def test_placeholder_titles(self):
        self.assertEqual(SITE_PROFILES[ListingSite.FACEBOOK].placeholder_title, "Facebook Marketplace Item")
        self.assertEqual(SITE_PROFILES[ListingSite.CRAIGSLIST].placeholder_title, "Craigslist Item")
        self.assertEqual(SITE_PROFILES[ListingSite.EBAY].placeholder_title, "eBay Item")


if __name__ == '__main__':
    unittest.main()
