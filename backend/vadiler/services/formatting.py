"""
Formatting helpers shared by orders, payments and tracking
"""
import re
from typing import Optional

DEFAULT_PHONE = "5000000000"


def digits_only(value: Optional[str]) -> str:
    return re.sub(r"\D", "", str(value or ""))


def normalize_tr_phone(value: Optional[str]) -> str:
    """
    Normalize a Turkish phone number to its 10 national digits.

    "+90 (532) 123 45 67", "05321234567" and "5321234567" all become
    "5321234567".
    """
    digits = digits_only(value)
    if len(digits) >= 12 and digits.startswith("90"):
        digits = digits[2:]
    if len(digits) >= 11 and digits.startswith("0"):
        digits = digits[1:]
    return digits[:10]


def to_gsm_number(value: Optional[str]) -> str:
    """+90 prefixed number for the payment gateway"""
    digits = normalize_tr_phone(value) or DEFAULT_PHONE
    return f"+90{digits}"


def last_ten_digits(value: Optional[str]) -> str:
    digits = digits_only(value)
    return digits[-10:]


def mask_phone(value: Optional[str]) -> str:
    """532 123 ** ** style masking for public pages"""
    digits = normalize_tr_phone(value)
    if len(digits) < 6:
        return ""
    return f"{digits[:3]} {digits[3:6]} ** **"


def normalize_email(value: Optional[str]) -> str:
    return str(value or "").strip().lower()


def format_price(value) -> str:
    """Two decimal string used by the payment gateway"""
    return f"{float(value or 0):.2f}"


def format_try(value) -> str:
    """1234.5 -> 1.234,50 (Turkish lira display)"""
    formatted = f"{float(value or 0):,.2f}"
    return formatted.replace(",", "X").replace(".", ",").replace("X", ".")
