"""
Review Service
Product reviews from verified buyers, helpful votes and rating stats

Author: Vadiler
Date: 2025-11-05
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from vadiler.core.rate_limit import RateLimiter
from vadiler.domain.review import Review, ReviewStats
from vadiler.repositories.order_repository import OrderRepository
from vadiler.repositories.review_repository import REVIEW_SORTS, VOTE_COLUMNS, ReviewRepository

logger = logging.getLogger(__name__)

VOTE_COOLDOWN_SECONDS = 60

# One vote per IP per review per cooldown
vote_limiter = RateLimiter()


class ReviewError(Exception):
    """Review request rejected; carries the HTTP status"""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def order_contains_product(products: List[Dict[str, Any]], product_id: int) -> bool:
    for line in products or []:
        for key in ("productId", "product_id", "id"):
            try:
                if int(line.get(key)) == int(product_id):
                    return True
            except (TypeError, ValueError):
                continue
    return False


def compute_review_stats(product_id: int, rows: List[Dict[str, Any]]) -> ReviewStats:
    """Stats over approved reviews: average to one decimal and 1..5 distribution"""
    distribution = {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
    verified = 0
    with_photos = 0
    total_rating = 0

    for row in rows:
        rating = int(row.get("rating") or 0)
        if rating in distribution:
            distribution[rating] += 1
        total_rating += rating
        if row.get("is_verified_purchase"):
            verified += 1
        if row.get("photos"):
            with_photos += 1

    total = len(rows)
    return ReviewStats(
        product_id=product_id,
        average_rating=round(total_rating / total, 1) if total else 0.0,
        total_reviews=total,
        rating_distribution=distribution,
        verified_purchase_count=verified,
        with_photos_count=with_photos,
    )


class ReviewService:

    def __init__(self, review_repo: Optional[ReviewRepository] = None,
                 order_repo: Optional[OrderRepository] = None,
                 limiter: Optional[RateLimiter] = None):
        self.review_repo = review_repo or ReviewRepository()
        self.order_repo = order_repo or OrderRepository()
        self.limiter = limiter or vote_limiter

    def list_reviews(self, product_id: Optional[int] = None, customer_id: Optional[str] = None,
                     rating: Optional[int] = None, is_approved: Optional[bool] = True,
                     verified_only: bool = False, has_photos: bool = False,
                     sort_by: str = "newest", limit: int = 10,
                     offset: int = 0) -> Tuple[List[Review], int]:
        if sort_by not in REVIEW_SORTS:
            sort_by = "newest"
        return self.review_repo.find_all(
            product_id=product_id,
            customer_id=customer_id,
            rating=rating,
            is_approved=is_approved,
            verified_only=verified_only,
            has_photos=has_photos,
            sort_by=sort_by,
            limit=limit,
            offset=offset,
        )

    def create_review(self, data: Dict[str, Any]) -> Review:
        """
        Create an unapproved review for a product the customer bought

        Raises:
            ReviewError: 400 missing fields, bad rating or duplicate;
                404 order not found; 403 product not in the order
        """
        required = ("productId", "customerId", "orderId", "rating", "title", "comment")
        if any(not data.get(key) for key in required):
            raise ReviewError("Tüm zorunlu alanları doldurun")

        try:
            rating = int(data["rating"])
            product_id = int(data["productId"])
        except (TypeError, ValueError):
            raise ReviewError("Puan 1 ile 5 arasında olmalıdır")
        if rating < 1 or rating > 5:
            raise ReviewError("Puan 1 ile 5 arasında olmalıdır")

        customer_id = str(data["customerId"])
        if self.review_repo.exists_for_customer(product_id, customer_id):
            raise ReviewError("Bu ürünü zaten değerlendirdiniz")

        order = self.order_repo.find_by_id(str(data["orderId"]))
        if order is None or order.customer_id != customer_id:
            raise ReviewError("Sipariş bulunamadı", status_code=404)
        if not order_contains_product(order.products, product_id):
            raise ReviewError("Bu ürünü satın almadınız", status_code=403)

        review = self.review_repo.create({
            "product_id": product_id,
            "customer_id": customer_id,
            "order_id": order.id,
            "rating": rating,
            "title": str(data["title"]).strip(),
            "comment": str(data["comment"]).strip(),
            "pros": list(data.get("pros") or []),
            "cons": list(data.get("cons") or []),
            "photos": list(data.get("photos") or []),
            "is_verified_purchase": True,
            "is_approved": False,
            "helpful_count": 0,
            "unhelpful_count": 0,
        })
        logger.info(f"Review {review.id} created for product {product_id}")
        return review

    def vote(self, review_id: str, vote_type: Optional[str], client_ip: str) -> Dict[str, int]:
        if vote_type not in VOTE_COLUMNS:
            raise ReviewError("Geçersiz oy türü")

        allowed, _, _ = self.limiter.is_allowed(
            f"review-vote:{client_ip}:{review_id}", max_requests=1, window_seconds=VOTE_COOLDOWN_SECONDS
        )
        if not allowed:
            raise ReviewError("Çok sık oy veriyorsunuz. Lütfen bekleyin.", status_code=429)

        counts = self.review_repo.add_vote(review_id, vote_type)
        if counts is None:
            raise ReviewError("Değerlendirme bulunamadı", status_code=404)
        return counts

    def get_stats(self, product_id: int) -> ReviewStats:
        return compute_review_stats(product_id, self.review_repo.find_approved_for_product(product_id))

    def approve(self, review_id: str, approved: bool = True) -> Review:
        review = self.review_repo.set_approval(review_id, approved)
        if review is None:
            raise ReviewError("Değerlendirme bulunamadı", status_code=404)
        return review

    def respond(self, review_id: str, response: str) -> Review:
        if not (response or "").strip():
            raise ReviewError("Yanıt metni gerekli")
        review = self.review_repo.set_seller_response(review_id, response.strip())
        if review is None:
            raise ReviewError("Değerlendirme bulunamadı", status_code=404)
        return review

    def delete(self, review_id: str) -> None:
        if not self.review_repo.delete(review_id):
            raise ReviewError("Değerlendirme bulunamadı", status_code=404)
