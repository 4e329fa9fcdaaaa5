"""
Payment Helpers
Builds iyzico checkout form requests from stored orders and maps gateway
errors to customer facing Turkish messages.

Everything here is pure: no database, no network.

Author: Vadiler
Date: 2025-11-03
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import re

from vadiler.domain.order import Order
from vadiler.services.formatting import format_price, to_gsm_number

FALLBACK_IP = "85.34.78.112"
DEFAULT_CITY = "Istanbul"
DEFAULT_ZIP = "34000"
DEFAULT_IDENTITY_NUMBER = "11111111111"
DEFAULT_CATEGORY = "Çiçekler"
ADDRESS_FALLBACK = "Address not provided"

DEFAULT_ERROR_MESSAGE = "Ödeme işlemi başarısız oldu. Lütfen tekrar deneyin."
GENERIC_ERROR_MESSAGE = "Ödeme işlemi başarısız oldu. Lütfen tekrar deneyin veya başka bir kart kullanın."
TOKEN_EXPIRED_MESSAGE = "Ödeme süresi doldu. Lütfen sayfayı yenileyip tekrar deneyin."

_TURKISH_CHARS = re.compile(r"[ğüşıöçĞÜŞİÖÇ]")

# mdStatus -> (valid, message)
THREEDS_STATUS = {
    "1": (True, "3DS authentication successful"),
    "2": (True, "3DS authentication successful (Card not enrolled)"),
    "3": (True, "3DS authentication successful (Bank not enrolled)"),
    "4": (True, "3DS authentication successful (Registration attempt)"),
    "0": (False, "3DS authentication failed"),
    "5": (False, "3DS authentication failed (Unknown error)"),
    "6": (False, "3DS authentication failed (Error)"),
    "7": (False, "3DS authentication failed (System error)"),
}


def validate_3ds_status(md_status: Optional[str]) -> Dict[str, Any]:
    valid, message = THREEDS_STATUS.get(str(md_status), (False, "Unknown 3DS status"))
    return {"is_valid": valid, "message": message}


def validate_payment_response(response: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not response:
        return {"is_valid": False, "error": "No response from payment gateway"}
    if response.get("status") != "success":
        return {"is_valid": False, "error": response.get("errorMessage") or "Payment failed"}
    return {"is_valid": True}


def client_ip_from_headers(headers, fallback: str = FALLBACK_IP) -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return fallback


def build_basket_items(products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Basket items from stored order lines; price is the line total"""
    items = []
    for product in products or []:
        unit_price = float(product.get("price") or 0)
        quantity = int(product.get("quantity") or 1)
        tags = product.get("tags") or []

        item = {
            "id": f"PROD_{product.get('id')}",
            "name": (product.get("name") or "Ürün")[:256],
            "category1": product.get("categoryName") or product.get("category") or DEFAULT_CATEGORY,
            "itemType": "PHYSICAL",
            "price": format_price(unit_price * quantity),
        }
        if tags:
            item["category2"] = tags[0]
        items.append(item)
    return items


def split_buyer_name(full_name: Optional[str]) -> tuple:
    """iyzico needs both name and surname; a single word is used for both"""
    parts = (full_name or "").split()
    first = parts[0] if parts else "Müşteri"
    surname = " ".join(parts[1:]) or first
    return first, surname


def resolve_buyer(order: Order, customer: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    """
    Buyer identity for an order

    Client supplied customer data wins when complete; otherwise the order's
    own snapshot is used, falling back to the delivery recipient.
    Returns None when no email can be found.
    """
    customer = customer or {}
    if customer.get("name") and customer.get("email") and customer.get("phone"):
        return {
            "id": customer.get("id") or order.customer_id or f"GUEST_{order.id}",
            "name": customer["name"],
            "email": customer["email"],
            "phone": customer["phone"],
        }

    email = order.customer_email or ""
    if not email:
        return None

    return {
        "id": order.customer_id or f"GUEST_{order.id}",
        "name": order.customer_name or order.recipient_name or "Müşteri",
        "email": email,
        "phone": order.customer_phone or order.recipient_phone or "",
    }


def build_checkout_form_request(order: Order, buyer: Dict[str, Any], callback_url: str,
                                ip_address: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Checkout form initialize request built from trusted order data"""
    now = now or datetime.now(timezone.utc)
    delivery = order.delivery or {}
    first_name, surname = split_buyer_name(buyer.get("name"))
    city = delivery.get("province") or DEFAULT_CITY
    address = delivery.get("fullAddress") or delivery.get("recipientAddress")
    total = format_price(order.total)

    return {
        "locale": "tr",
        "conversationId": order.id,
        "price": total,
        "paidPrice": total,
        "currency": "TRY",
        "basketId": f"BASKET_{order.id}",
        "paymentGroup": "PRODUCT",
        "callbackUrl": callback_url,
        "enabledInstallments": [1],
        "buyer": {
            "id": buyer["id"],
            "name": first_name,
            "surname": surname,
            "gsmNumber": to_gsm_number(buyer.get("phone")),
            "email": buyer["email"],
            "identityNumber": DEFAULT_IDENTITY_NUMBER,
            "registrationAddress": address or "Istanbul, Turkey",
            "registrationDate": now.strftime("%Y-%m-%d %H:%M:%S"),
            "ip": ip_address,
            "city": city,
            "country": "Turkey",
            "zipCode": DEFAULT_ZIP,
        },
        "shippingAddress": {
            "contactName": delivery.get("recipientName") or buyer.get("name"),
            "city": city,
            "country": "Turkey",
            "address": address or ADDRESS_FALLBACK,
            "zipCode": DEFAULT_ZIP,
        },
        "billingAddress": {
            "contactName": buyer.get("name"),
            "city": city,
            "country": "Turkey",
            "address": address or ADDRESS_FALLBACK,
            "zipCode": DEFAULT_ZIP,
        },
        "basketItems": build_basket_items(order.products),
    }


def callback_url(app_url: str) -> str:
    """Callback must be HTTPS except on localhost"""
    base = (app_url or "").rstrip("/")
    if base.startswith("http://") and "localhost" not in base:
        base = "https://" + base[len("http://"):]
    return f"{base}/api/payment/callback"


def map_iyzico_error(error_code: Optional[str] = None, error_message: Optional[str] = None) -> str:
    """
    Turn a gateway error into a message the customer can act on

    Checks run from most to least specific. Unknown Turkish messages from the
    gateway are passed through as-is.
    """
    if not error_code and not error_message:
        return DEFAULT_ERROR_MESSAGE

    code = (error_code or "").upper()
    message = (error_message or "").lower()

    if "TOKEN" in code or "token" in message:
        if "expired" in message or "süre" in message:
            return TOKEN_EXPIRED_MESSAGE
        if "not found" in message or "bulunamadı" in message:
            return "Ödeme oturumu bulunamadı. Lütfen sepetinize dönüp tekrar deneyin."
        if "already used" in message or "kullanılmış" in message:
            return "Bu ödeme işlemi zaten tamamlandı."

    if "güvenlik" in message or "security" in message or "3ds" in message:
        return ("Banka güvenlik doğrulaması başarısız oldu. "
                "Lütfen bankanızla iletişime geçin veya başka bir kart deneyin.")

    if "DECLINED" in code or "declined" in message or "reddedildi" in message:
        return "Kartınız reddedildi. Lütfen bankanızla iletişime geçin veya başka bir kart deneyin."

    if "INSUFFICIENT" in code or "insufficient" in message or "yetersiz" in message:
        return "Kart bakiyeniz yetersiz. Lütfen başka bir kart deneyin."

    if "LIMIT" in code or "limit" in message:
        return "Kart limitiniz aşıldı. Lütfen başka bir kart deneyin."

    if "INVALID" in code or "invalid" in message or "geçersiz" in message:
        return "Kart bilgileri geçersiz. Lütfen bilgileri kontrol edip tekrar deneyin."

    if "FRAUD" in code or "fraud" in message or "şüpheli" in message:
        return "İşlem güvenlik nedeniyle reddedildi. Lütfen bankanızla iletişime geçin."

    if ("TIMEOUT" in code or "CONNECTION" in code
            or "timeout" in message or "connection" in message):
        return "Banka bağlantısı zaman aşımına uğradı. Lütfen tekrar deneyin."

    if error_message and _TURKISH_CHARS.search(error_message):
        return error_message

    return GENERIC_ERROR_MESSAGE
