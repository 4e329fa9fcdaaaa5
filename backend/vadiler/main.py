"""
Vadiler - Backend API
Storefront backend for Vadiler Çiçekçilik (flower delivery, Istanbul)

Author: Vadiler
Date: 2025-11-07
"""
import logging
import time
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before settings are read
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vadiler.api import (
    admin, analytics, auth, coupons, cron, customers, delivery, orders, payment, products, reviews, seo,
)
from vadiler.core.config import settings
from vadiler.core.database import CONNECTION_TIMEOUT, get_db_connection_with_retry
from vadiler.core.logging_config import setup_logging
from vadiler.core.rate_limit import RateLimitMiddleware

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
)

# Rate limiting runs inside CORS so 429 responses still carry CORS headers
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(payment.router, prefix="/api/payment", tags=["Payment"])
app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])
app.include_router(auth.router, prefix="/api/auth", tags=["Customer Auth"])
app.include_router(customers.router, prefix="/api/customers", tags=["Customers"])
app.include_router(coupons.router, prefix="/api/coupons", tags=["Coupons"])
app.include_router(reviews.router, prefix="/api/reviews", tags=["Reviews"])
app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(products.categories_router, prefix="/api/categories", tags=["Products"])
app.include_router(delivery.router, prefix="/api/delivery-off-days", tags=["Delivery"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(seo.router, tags=["SEO"])


@app.get("/")
async def root():
    """Root endpoint - API status"""
    return {
        "message": "Vadiler API",
        "status": "online",
        "version": settings.API_VERSION,
    }


@app.get("/health")
async def health():
    """Health check for monitoring - tests database connectivity"""
    start_time = time.time()

    db_status = "unknown"
    db_latency_ms = None
    db_error = None

    try:
        conn = get_db_connection_with_retry(max_retries=1, retry_delay=0.5)
        cursor = conn.cursor()

        db_start = time.time()
        cursor.execute("SELECT 1")
        cursor.fetchone()
        db_latency_ms = round((time.time() - db_start) * 1000, 2)

        cursor.close()
        conn.close()
        db_status = "connected"
    except Exception as e:
        db_status = "disconnected"
        db_error = str(e)
        logger.warning(f"Health check database error: {e}")

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "service": "vadiler-api",
        "version": settings.API_VERSION,
        "database": {
            "status": db_status,
            "latency_ms": db_latency_ms,
            "error": db_error,
            "connection_timeout_s": CONNECTION_TIMEOUT,
        },
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
    }
