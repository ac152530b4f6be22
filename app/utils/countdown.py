# app/utils/countdown.py
"""
Offer expiration countdown helpers.

Clients poll the offers list and render these labels; computing them
server side keeps every client on the same clock.
"""

from datetime import datetime

from app.core.clock import ensure_utc, utcnow

WARNING_THRESHOLD_MS = 10 * 60 * 1000
CRITICAL_THRESHOLD_MS = 5 * 60 * 1000


def time_remaining_ms(expires_at: datetime, now: datetime | None = None) -> int:
    """Milliseconds until expires_at, never negative."""
    now = now or utcnow()
    delta = ensure_utc(expires_at) - ensure_utc(now)
    return max(0, int(delta.total_seconds() * 1000))


def format_countdown(ms: int) -> str:
    """
    Format remaining time.

      - ms <= 0        -> "Expirada"
      - ms >= 1 hour   -> "1 h 05 min"
      - otherwise      -> "MM:SS"
    """
    if ms <= 0:
        return "Expirada"

    total_seconds = ms // 1000
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60

    if hours > 0:
        return f"{hours} h {minutes:02d} min"
    return f"{minutes:02d}:{seconds:02d}"


def is_warning_state(ms: int) -> bool:
    return 0 < ms < WARNING_THRESHOLD_MS


def is_critical_state(ms: int) -> bool:
    return 0 < ms < CRITICAL_THRESHOLD_MS
