# app/utils/formatting.py
import re
from datetime import datetime

from app.core.clock import ensure_utc, utcnow

# Documents expiring within this many days are flagged to admins
EXPIRING_SOON_DAYS = 30


def format_liters(amount: int) -> str:
    """
    Human label for an order size.

    >>> format_liters(5000)
    '5 mil litros'
    >>> format_liters(100)
    '100 litros'
    """
    if amount >= 1000 and amount % 1000 == 0:
        return f"{amount // 1000} mil litros"
    return f"{amount} litros"


def format_phone_for_whatsapp(phone: str) -> str:
    """
    Digits-only phone with Chilean country code, for wa.me links.

    >>> format_phone_for_whatsapp("+56 9 1234 5678")
    '56912345678'
    """
    digits = re.sub(r"\D", "", phone)
    if not digits.startswith("56"):
        digits = "56" + digits
    return digits


def document_expiration_status(
    expires_at: datetime | None,
    now: datetime | None = None,
) -> str:
    """
    Classify a provider document expiry date.

    Returns one of: no_expiry | expired | expiring_soon | valid
    """
    if expires_at is None:
        return "no_expiry"
    now = now or utcnow()
    days_left = (ensure_utc(expires_at) - ensure_utc(now)).total_seconds() / 86400
    if days_left < 0:
        return "expired"
    if days_left <= EXPIRING_SOON_DAYS:
        return "expiring_soon"
    return "valid"
