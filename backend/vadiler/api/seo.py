"""
SEO Endpoints
Sitemap index, sub-sitemaps and robots.txt served at the site root

Author: Vadiler
Date: 2025-11-07
"""
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse, Response

from vadiler.services.seo_service import SeoService

logger = logging.getLogger(__name__)

router = APIRouter()

XML_MEDIA_TYPE = "application/xml"
SITEMAP_CACHE = "public, max-age=3600, s-maxage=3600"


def _xml(body: str) -> Response:
    return Response(content=body, media_type=XML_MEDIA_TYPE, headers={"Cache-Control": SITEMAP_CACHE})


@router.get("/sitemap.xml")
async def sitemap_index():
    return _xml(SeoService().sitemap_index())


@router.get("/sitemap-{name}.xml")
async def sitemap(name: str):
    try:
        return _xml(SeoService().sitemap(name))
    except KeyError:
        raise HTTPException(status_code=404, detail="Sitemap not found")
    except Exception as e:
        logger.error(f"Sitemap {name} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error generating sitemap")


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt():
    return SeoService().robots_txt()
