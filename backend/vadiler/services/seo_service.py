"""
SEO Service
Sitemap XML and robots.txt for the storefront

Author: Vadiler
Date: 2025-11-06
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union
from xml.sax.saxutils import escape

from vadiler.core.config import settings
from vadiler.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

DEFAULT_SITE_URL = "https://vadiler.com"
PRODUCT_PAGE_SIZE = 1000
MAX_PRODUCT_PAGES = 100

SUB_SITEMAPS = (
    "sitemap-products.xml",
    "sitemap-categories.xml",
    "sitemap-cities.xml",
    "sitemap-special-days.xml",
)

# (path, changefreq, priority)
STATIC_PAGES = [
    ("", "daily", 1.0),
    ("/kategoriler", "weekly", 0.9),
    ("/hakkimizda", "monthly", 0.5),
    ("/iletisim", "monthly", 0.5),
    ("/siparis-takip", "monthly", 0.4),
    ("/kvkk", "yearly", 0.3),
    ("/gizlilik-politikasi", "yearly", 0.3),
    ("/cerez-politikasi", "yearly", 0.3),
    ("/mesafeli-satis-sozlesmesi", "yearly", 0.3),
    ("/iade-ve-iptal", "yearly", 0.3),
]

ISTANBUL_DISTRICTS = [
    "Arnavutköy", "Avcılar", "Bağcılar", "Bahçelievler", "Bakırköy",
    "Başakşehir", "Bayrampaşa", "Beşiktaş", "Beylikdüzü", "Beyoğlu",
    "Büyükçekmece", "Çatalca", "Esenler", "Esenyurt", "Eyüpsultan",
    "Fatih", "Gaziosmanpaşa", "Güngören", "Kağıthane", "Küçükçekmece",
    "Sarıyer", "Silivri", "Sultangazi", "Şişli", "Zeytinburnu",
    "Adalar", "Ataşehir", "Beykoz", "Çekmeköy", "Kadıköy",
    "Kartal", "Maltepe", "Pendik", "Sancaktepe", "Sultanbeyli",
    "Şile", "Tuzla", "Ümraniye", "Üsküdar",
]

SPECIAL_DAY_SLUGS = [
    "sevgililer-gunu", "anneler-gunu", "dogum-gunu", "yildonumu", "gecmis-olsun",
    "tebrikler", "yeni-bebek", "taziye", "acilis-kutlama", "tesekkur",
]

ROBOTS_DISALLOW = ["/yonetim/", "/api/", "/hesabim/", "/sepet/", "/odeme/", "/payment/"]
ROBOTS_FILTER_PARAMS = ["sort", "price", "page", "stok", "filter"]

_TR_ASCII = str.maketrans({"ğ": "g", "ü": "u", "ş": "s", "ı": "i", "ö": "o", "ç": "c"})

XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


@dataclass
class SitemapEntry:
    url: str
    lastmod: Optional[Union[str, datetime]] = None
    changefreq: Optional[str] = None
    priority: Optional[float] = None


def site_url() -> str:
    return (settings.SITE_URL or DEFAULT_SITE_URL).rstrip("/")


def city_slug(name: str) -> str:
    """Turkish district name to an ascii URL slug ("Şişli" -> "sisli")"""
    slug = name.replace("İ", "i").replace("I", "ı").lower().translate(_TR_ASCII)
    slug = "-".join(slug.split())
    return "".join(ch for ch in slug if ch.isascii() and (ch.isalnum() or ch == "-"))


def format_priority(value: float) -> str:
    return f"{max(0.0, min(1.0, float(value))):.1f}"


def _lastmod(value: Union[str, datetime]) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def build_sitemap_xml(entries: Iterable[SitemapEntry]) -> str:
    urls = []
    for entry in entries:
        parts = [f"\n  <url>\n    <loc>{escape(entry.url, XML_ENTITIES)}</loc>"]
        if entry.lastmod:
            parts.append(f"<lastmod>{escape(_lastmod(entry.lastmod), XML_ENTITIES)}</lastmod>")
        if entry.changefreq:
            parts.append(f"\n    <changefreq>{escape(entry.changefreq, XML_ENTITIES)}</changefreq>")
        if entry.priority is not None:
            parts.append(f"\n    <priority>{format_priority(entry.priority)}</priority>")
        parts.append("\n  </url>")
        urls.append("".join(parts))

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"{''.join(urls)}\n</urlset>\n"
    )


def build_sitemap_index(sitemap_urls: Iterable[str], lastmod: Optional[str] = None) -> str:
    lastmod = lastmod or datetime.now(timezone.utc).isoformat()
    items = "".join(
        f"\n  <sitemap>\n    <loc>{escape(url, XML_ENTITIES)}</loc>"
        f"\n    <lastmod>{escape(lastmod)}</lastmod>\n  </sitemap>"
        for url in sitemap_urls
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"{items}\n</sitemapindex>\n"
    )


class SeoService:

    def __init__(self, product_repo: Optional[ProductRepository] = None, base_url: Optional[str] = None):
        self.product_repo = product_repo or ProductRepository()
        self.base_url = (base_url or site_url()).rstrip("/")

    def static_entries(self, now: Optional[str] = None) -> List[SitemapEntry]:
        now = now or datetime.now(timezone.utc).isoformat()
        return [
            SitemapEntry(f"{self.base_url}{path}", now, changefreq, priority)
            for path, changefreq, priority in STATIC_PAGES
        ]

    def category_entries(self) -> List[SitemapEntry]:
        return [
            SitemapEntry(f"{self.base_url}/{c.slug}", c.updated_at, "daily", 0.8)
            for c in self.product_repo.find_categories(active_only=True)
            if c.slug
        ]

    def product_entries(self) -> List[SitemapEntry]:
        """Every product page, read in pages of PRODUCT_PAGE_SIZE rows"""
        entries: List[SitemapEntry] = []
        for page in range(MAX_PRODUCT_PAGES):
            rows = self.product_repo.find_sitemap_page(PRODUCT_PAGE_SIZE, page * PRODUCT_PAGE_SIZE)
            for row in rows:
                if not row.get("slug") or not row.get("category"):
                    continue
                entries.append(SitemapEntry(
                    f"{self.base_url}/{row['category']}/{row['slug']}",
                    row.get("updated_at"),
                    "weekly",
                    0.7,
                ))
            if len(rows) < PRODUCT_PAGE_SIZE:
                break
        return entries

    def city_entries(self, now: Optional[str] = None) -> List[SitemapEntry]:
        now = now or datetime.now(timezone.utc).isoformat()
        entries = [SitemapEntry(f"{self.base_url}/sehir/istanbul", now, "weekly", 0.8)]
        entries.extend(
            SitemapEntry(f"{self.base_url}/sehir/istanbul/{city_slug(name)}", now, "weekly", 0.7)
            for name in ISTANBUL_DISTRICTS
        )
        return entries

    def special_day_entries(self, now: Optional[str] = None) -> List[SitemapEntry]:
        now = now or datetime.now(timezone.utc).isoformat()
        return [
            SitemapEntry(f"{self.base_url}/ozel-gun/{slug}", now, "weekly", 0.8)
            for slug in SPECIAL_DAY_SLUGS
        ]

    def sitemap(self, name: str) -> str:
        """
        Render one sub-sitemap by name

        Raises:
            KeyError: unknown sitemap name
        """
        sources = {
            "products": self.product_entries,
            "categories": self.category_entries,
            "cities": self.city_entries,
            "special-days": self.special_day_entries,
            "pages": self.static_entries,
        }
        return build_sitemap_xml(sources[name]())

    def sitemap_index(self) -> str:
        names = ("sitemap-pages.xml",) + SUB_SITEMAPS
        return build_sitemap_index(f"{self.base_url}/{name}" for name in names)

    def robots_txt(self) -> str:
        lines = ["User-agent: *", "Allow: /"]
        lines += [f"Disallow: {path}" for path in ROBOTS_DISALLOW]
        lines += [f"Disallow: /*?{param}=*" for param in ROBOTS_FILTER_PARAMS]
        lines += ["", "User-agent: Googlebot", "Allow: /"]
        lines += [f"Disallow: {path}" for path in ROBOTS_DISALLOW]
        lines += ["", f"Host: {self.base_url}", f"Sitemap: {self.base_url}/sitemap.xml"]
        lines += [f"Sitemap: {self.base_url}/{name}" for name in SUB_SITEMAPS]
        return "\n".join(lines) + "\n"
