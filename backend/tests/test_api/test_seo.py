"""
API tests for the sitemap and robots.txt endpoints

Author: Vadiler
Date: 2025-11-08
"""
from unittest.mock import patch


class TestSitemaps:

    @patch('vadiler.api.seo.SeoService')
    def test_index_is_xml(self, mock_service, client):
        mock_service.return_value.sitemap_index.return_value = '<?xml version="1.0"?><sitemapindex/>'

        response = client.get('/sitemap.xml')

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "max-age=3600" in response.headers["cache-control"]

    @patch('vadiler.api.seo.SeoService')
    def test_named_sitemap(self, mock_service, client):
        mock_service.return_value.sitemap.return_value = "<urlset/>"

        response = client.get('/sitemap-products-1.xml')

        assert response.text == "<urlset/>"
        mock_service.return_value.sitemap.assert_called_once_with("products-1")

    @patch('vadiler.api.seo.SeoService')
    def test_unknown_sitemap_is_404(self, mock_service, client):
        mock_service.return_value.sitemap.side_effect = KeyError("nope")

        assert client.get('/sitemap-nope.xml').status_code == 404

    @patch('vadiler.api.seo.SeoService')
    def test_robots(self, mock_service, client):
        mock_service.return_value.robots_txt.return_value = "User-agent: *\nAllow: /\n"

        response = client.get('/robots.txt')

        assert response.headers["content-type"].startswith("text/plain")
        assert response.text.startswith("User-agent: *")
